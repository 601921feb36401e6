"""
Durable set of completed verifications.

Uniqueness is enforced by the store itself (constraint level), never by a
check-then-insert in the caller: two conversations can pass their pre-checks
for the same transaction moments apart, and only one insert may win.

- tx_hash is unique across all role kinds, except the Developer sentinel.
- (wallet_address, role_type) is unique, except for Developer.
- github_profile is unique among Developer records.
"""
from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Tuple

import asyncpg

from chainverify.core.state_machine import DEVELOPER
from chainverify.observability.logging import log
from chainverify.settings import settings
from chainverify.store.models import VerificationRecord

# Which uniqueness rule a conflicting insert broke
FIELD_TX_HASH = "tx_hash"
FIELD_WALLET = "wallet_address"
FIELD_GITHUB = "github_profile"


class RecordStoreError(Exception):
    """Base exception for record store failures."""


class DuplicateRecordError(RecordStoreError):
    """Raised by insert() when a uniqueness constraint rejects the record."""

    def __init__(self, field: str, value: str = ""):
        super().__init__(f"duplicate {field}: {value}")
        self.field = field
        self.value = value


class RecordStore:
    async def init(self) -> None:
        """Prepare the backend (schema, pool). Idempotent."""

    async def close(self) -> None:
        pass

    async def exists_for_wallet(self, wallet_address: str, role_kind: str) -> bool:
        raise NotImplementedError

    async def exists_by_tx_hash(self, tx_hash: str) -> bool:
        raise NotImplementedError

    async def insert(self, record: VerificationRecord) -> None:
        """Atomic single write. Raises DuplicateRecordError on a uniqueness conflict."""
        raise NotImplementedError

    async def find_by_owner(self, owner_id: str) -> List[VerificationRecord]:
        raise NotImplementedError


class MemoryRecordStore(RecordStore):
    """In-process store with the same constraints; for development and tests."""

    def __init__(self):
        self._records: List[VerificationRecord] = []
        self._by_tx: Dict[str, VerificationRecord] = {}
        self._by_wallet: Dict[Tuple[str, str], VerificationRecord] = {}
        self._by_github: Dict[str, VerificationRecord] = {}
        self._lock = asyncio.Lock()

    async def exists_for_wallet(self, wallet_address: str, role_kind: str) -> bool:
        return (wallet_address, role_kind) in self._by_wallet

    async def exists_by_tx_hash(self, tx_hash: str) -> bool:
        return tx_hash in self._by_tx

    async def insert(self, record: VerificationRecord) -> None:
        async with self._lock:
            if record.roleKind == DEVELOPER:
                if record.githubProfile is not None and record.githubProfile in self._by_github:
                    raise DuplicateRecordError(FIELD_GITHUB, record.githubProfile)
            else:
                if record.txHash in self._by_tx:
                    raise DuplicateRecordError(FIELD_TX_HASH, record.txHash)
                if (record.walletAddress, record.roleKind) in self._by_wallet:
                    raise DuplicateRecordError(FIELD_WALLET, record.walletAddress)

            self._records.append(record)
            if record.roleKind == DEVELOPER:
                if record.githubProfile is not None:
                    self._by_github[record.githubProfile] = record
            else:
                self._by_tx[record.txHash] = record
                self._by_wallet[(record.walletAddress, record.roleKind)] = record

    async def find_by_owner(self, owner_id: str) -> List[VerificationRecord]:
        return [r for r in self._records if r.ownerId == owner_id]

    def __len__(self) -> int:
        return len(self._records)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS verifications (
    id BIGSERIAL PRIMARY KEY,
    tx_hash TEXT NOT NULL,
    wallet_address TEXT NOT NULL,
    discord_id TEXT NOT NULL,
    role_type TEXT NOT NULL,
    github_profile TEXT,
    verified_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS verifications_tx_hash_key
    ON verifications (tx_hash) WHERE role_type <> 'Developer';

CREATE UNIQUE INDEX IF NOT EXISTS verifications_wallet_role_key
    ON verifications (wallet_address, role_type) WHERE role_type <> 'Developer';

CREATE UNIQUE INDEX IF NOT EXISTS verifications_github_profile_key
    ON verifications (github_profile) WHERE role_type = 'Developer';

CREATE INDEX IF NOT EXISTS verifications_discord_id_idx
    ON verifications (discord_id);
"""

_CONSTRAINT_FIELDS = {
    "verifications_tx_hash_key": FIELD_TX_HASH,
    "verifications_wallet_role_key": FIELD_WALLET,
    "verifications_github_profile_key": FIELD_GITHUB,
}


_RECORD_ATTRS = {
    FIELD_TX_HASH: "txHash",
    FIELD_WALLET: "walletAddress",
    FIELD_GITHUB: "githubProfile",
}


def _conflict_field(exc) -> str:
    name = getattr(exc, "constraint_name", None) or ""
    return _CONSTRAINT_FIELDS.get(name, FIELD_TX_HASH)


def _row_to_record(row) -> VerificationRecord:
    return VerificationRecord(
        txHash=row["tx_hash"],
        walletAddress=row["wallet_address"],
        ownerId=row["discord_id"],
        roleKind=row["role_type"],
        verifiedAt=row["verified_at"],
        githubProfile=row["github_profile"],
    )


class PostgresRecordStore(RecordStore):
    """asyncpg-backed store over the `verifications` table."""

    def __init__(self, dsn: Optional[str] = None, pool=None):
        self.dsn = (dsn if dsn is not None else settings.PG_DSN).strip()
        self._pool = pool
        self._init_lock = asyncio.Lock()
        self._initialized = False

    async def _ensure_pool(self):
        if self._pool is None:
            if not self.dsn:
                raise RecordStoreError("PG_DSN (or PG_USER/PG_HOST/...) must be set for the postgres record backend")
            self._pool = await asyncpg.create_pool(dsn=self.dsn, min_size=1, max_size=6, command_timeout=30.0)
        return self._pool

    async def init(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return
            pool = await self._ensure_pool()
            async with pool.acquire() as conn:
                await conn.execute(_SCHEMA)
            self._initialized = True
            log(event="record_store_ready", backend="postgres")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
        self._initialized = False

    async def exists_for_wallet(self, wallet_address: str, role_kind: str) -> bool:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchval(
                "SELECT 1 FROM verifications WHERE wallet_address = $1 AND role_type = $2 LIMIT 1",
                wallet_address,
                role_kind,
            )
        return row is not None

    async def exists_by_tx_hash(self, tx_hash: str) -> bool:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchval(
                "SELECT 1 FROM verifications WHERE tx_hash = $1 AND role_type <> 'Developer' LIMIT 1",
                tx_hash,
            )
        return row is not None

    async def insert(self, record: VerificationRecord) -> None:
        pool = await self._ensure_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    "INSERT INTO verifications "
                    "(tx_hash, wallet_address, discord_id, role_type, github_profile, verified_at) "
                    "VALUES ($1, $2, $3, $4, $5, $6)",
                    record.txHash,
                    record.walletAddress,
                    record.ownerId,
                    record.roleKind,
                    record.githubProfile,
                    record.verifiedAt,
                )
        except asyncpg.UniqueViolationError as e:
            field = _conflict_field(e)
            raise DuplicateRecordError(field, getattr(record, _RECORD_ATTRS[field]) or "") from e

    async def find_by_owner(self, owner_id: str) -> List[VerificationRecord]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT tx_hash, wallet_address, discord_id, role_type, github_profile, verified_at "
                "FROM verifications WHERE discord_id = $1 ORDER BY verified_at",
                owner_id,
            )
        return [_row_to_record(r) for r in rows]


def build_record_store() -> RecordStore:
    if settings.RECORD_BACKEND == "memory":
        return MemoryRecordStore()
    return PostgresRecordStore()
