import pytest
from types import SimpleNamespace

from chainverify.core.engine import VerificationEngine
from chainverify.settings import settings
from chainverify.store.record_store import MemoryRecordStore
from chainverify.store.session_repo import MemorySessionStore
from tests.fakes import FakeGateway, FakeLedger, make_cfg


@pytest.fixture(autouse=True)
def no_metrics(monkeypatch):
    # Metrics talk to Redis; unit tests never do
    monkeypatch.setattr(settings, "METRICS_ENABLED", False)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def records():
    return MemoryRecordStore()


@pytest.fixture
def sessions():
    return MemorySessionStore()


@pytest.fixture
def clock():
    # mutable "now" for freshness checks
    return SimpleNamespace(now=0.0)


@pytest.fixture
def make_engine(ledger, gateway, records, sessions, clock):
    def _make(**cfg_overrides):
        return VerificationEngine(
            ledger=ledger,
            records=records,
            sessions=sessions,
            gateway=gateway,
            clock=lambda: clock.now,
            cfg=make_cfg(**cfg_overrides),
        )
    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()
