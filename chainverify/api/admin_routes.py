from fastapi import APIRouter, Depends, HTTPException

import chainverify.observability.metrics as metrics
from chainverify.api.auth import require_admin
from chainverify.api.routes import get_engine
from chainverify.core.engine import VerificationEngine

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/session/{role_kind}/{owner_id}")
async def get_session_snapshot(
    role_kind: str, owner_id: str, engine: VerificationEngine = Depends(get_engine), _=Depends(require_admin)
):
    """In-flight session, for a moderator looking into a stuck verification."""
    if role_kind not in engine.profiles:
        raise HTTPException(status_code=404, detail="Unknown role kind")
    s = await engine.sessions.get(owner_id, role_kind)
    if s is None:
        return {"ownerId": owner_id, "roleKind": role_kind, "session": None}
    return {"ownerId": owner_id, "roleKind": role_kind, "session": dict(s.__dict__)}


@router.get("/records/{owner_id}")
async def get_records(owner_id: str, engine: VerificationEngine = Depends(get_engine), _=Depends(require_admin)):
    records = await engine.records.find_by_owner(owner_id)
    return {
        "ownerId": owner_id,
        "records": [
            {
                "txHash": r.txHash,
                "walletAddress": r.walletAddress,
                "roleKind": r.roleKind,
                "verifiedAt": r.verifiedAt.isoformat(),
                "githubProfile": r.githubProfile,
            }
            for r in records
        ],
    }


@router.get("/stats")
async def get_stats(_=Depends(require_admin)):
    """Outcome counters and ledger latency backed by Redis."""
    return await metrics.get_stats_snapshot()
