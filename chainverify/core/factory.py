from chainverify.core.engine import VerificationEngine
from chainverify.gateway.discord import DiscordGateway
from chainverify.ledger.client import LedgerQueryClient
from chainverify.observability.logging import log
from chainverify.settings import settings
from chainverify.store.record_store import build_record_store
from chainverify.store.session_repo import build_session_store
from chainverify.utils.lock import build_session_locks


async def build_engine() -> VerificationEngine:
    """Wire the engine from settings. Record store schema is prepared here."""
    records = build_record_store()
    await records.init()
    engine = VerificationEngine(
        ledger=LedgerQueryClient(),
        records=records,
        sessions=build_session_store(),
        gateway=DiscordGateway(),
        locks=build_session_locks(),
    )
    log(
        event="engine_ready",
        sessionBackend=settings.SESSION_BACKEND,
        recordBackend=settings.RECORD_BACKEND,
        lockBackend=settings.SESSION_LOCK_BACKEND,
        busyPolicy=settings.SESSION_BUSY_POLICY,
    )
    return engine


async def close_engine(engine: VerificationEngine) -> None:
    await engine.gateway.close()
    await engine.records.close()
