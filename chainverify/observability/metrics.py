"""
Verification counters & ledger latency snapshot
-----------------------------------------------
Lightweight Redis counters consumed by /admin/stats. Callers treat every
function here as best-effort: a metrics failure never changes the outcome of
a verification step.
"""
from __future__ import annotations
import time
from typing import List, Tuple

from chainverify.core.state_machine import CHAIN_ROLE_KINDS
from chainverify.settings import settings
from chainverify.store.redis_conn import get_redis

K_OUTCOME = "metrics:verify:{role}:{outcome}"      # INCR
K_LEDGER_LAT = "metrics:ledger:latencies"          # LPUSH ms
K_LEDGER_FAIL = "metrics:ledger:failures"          # INCR

# Outcome names used by the engine
OUTCOMES = (
    "started",
    "identifier_accepted",
    "rejected",
    "verified",
    "conflict",
    "infra_error",
)

_MAX_SAMPLES = 500


def _percentile(data: List[float], p: float) -> float:
    """Deterministic percentile (nearest-rank on sorted data)."""
    if not data:
        return 0.0
    d = sorted(data)
    k = max(1, int(round(p * len(d))))
    return float(d[k - 1])


def _p50_p95(latencies_s: List[float]) -> Tuple[float, float]:
    if not latencies_s:
        return 0.0, 0.0
    return _percentile(latencies_s, 0.50), _percentile(latencies_s, 0.95)


async def increment_outcome(role_kind: str, outcome: str) -> None:
    if not settings.METRICS_ENABLED:
        return
    r = get_redis()
    await r.incr(K_OUTCOME.format(role=role_kind.lower(), outcome=outcome), 1)


async def record_ledger_latency(ms: int) -> None:
    if not settings.METRICS_ENABLED:
        return
    r = get_redis()
    await r.lpush(K_LEDGER_LAT, int(ms))
    await r.ltrim(K_LEDGER_LAT, 0, _MAX_SAMPLES - 1)


async def increment_ledger_failure() -> None:
    if not settings.METRICS_ENABLED:
        return
    r = get_redis()
    await r.incr(K_LEDGER_FAIL, 1)


async def _read_latency_list(key: str) -> List[float]:
    r = get_redis()
    raw = await r.lrange(key, 0, _MAX_SAMPLES - 1) or []
    out: List[float] = []
    for x in raw:
        try:
            out.append(float(x) / 1000.0)  # seconds
        except (TypeError, ValueError):
            continue
    return out


async def get_stats_snapshot() -> dict:
    """
    Shape consumed by /admin/stats:
      - outcomes: {role: {outcome: count}}
      - ledger_p50_latency / ledger_p95_latency (seconds), ledger_failures
    """
    r = get_redis()
    outcomes = {}
    for role in CHAIN_ROLE_KINDS:
        per_role = {}
        for outcome in OUTCOMES:
            per_role[outcome] = int(await r.get(K_OUTCOME.format(role=role.lower(), outcome=outcome)) or 0)
        outcomes[role] = per_role

    p50, p95 = _p50_p95(await _read_latency_list(K_LEDGER_LAT))
    return {
        "outcomes": outcomes,
        "ledger_p50_latency": round(p50, 3),
        "ledger_p95_latency": round(p95, 3),
        "ledger_failures": int(await r.get(K_LEDGER_FAIL) or 0),
        "snapshot_at": int(time.time()),
    }
