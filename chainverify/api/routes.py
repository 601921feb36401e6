from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from chainverify.api.auth import require_api_key
from chainverify.api.schemas import (
    ButtonOut,
    DeleteConversationRequest,
    DeveloperRecordRequest,
    MessageRequest,
    RestartRequest,
    SelectRoleRequest,
    VerificationResponse,
)
from chainverify.core.engine import Reply, VerificationEngine
from chainverify.core.roles import profile_for_command

router = APIRouter(prefix="/api/verification", dependencies=[Depends(require_api_key)])


def get_engine(request: Request) -> VerificationEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Verification engine not ready")
    return engine


def _to_response(reply: Optional[Reply]) -> VerificationResponse:
    if reply is None:
        return VerificationResponse(status="ignored")
    return VerificationResponse(
        status="success",
        reply=reply.text,
        ephemeral=reply.ephemeral,
        outcome=reply.outcome,
        conversationId=reply.conversationId,
        delivered=reply.delivered,
        buttons=[ButtonOut(customId=b.custom_id, label=b.label) for b in reply.buttons],
    )


@router.post("/select", response_model=VerificationResponse)
async def select_role(req: SelectRoleRequest, engine: VerificationEngine = Depends(get_engine)):
    """Role picked from the verification menu."""
    return _to_response(await engine.select_role(req.ownerId, req.ownerName or "", req.roleKind))


@router.post("/message", response_model=VerificationResponse)
async def conversation_message(req: MessageRequest, engine: VerificationEngine = Depends(get_engine)):
    """
    A user message posted in a conversation. The reply is posted into the
    conversation by the engine; the response mirrors it for the caller.
    """
    return _to_response(await engine.handle_message(req.ownerId, req.conversationId, req.text))


@router.post("/restart", response_model=VerificationResponse)
async def restart(req: RestartRequest, engine: VerificationEngine = Depends(get_engine)):
    role_kind = req.roleKind
    if role_kind is None and req.command:
        profile = profile_for_command(engine.profiles, req.command)
        role_kind = profile.kind if profile else None
    if role_kind is None:
        raise HTTPException(status_code=400, detail="roleKind or a known restart command is required")
    return _to_response(await engine.restart(req.ownerId, role_kind))


@router.post("/conversation/delete", response_model=VerificationResponse)
async def delete_conversation(req: DeleteConversationRequest, engine: VerificationEngine = Depends(get_engine)):
    try:
        reply = await engine.delete_conversation(req.ownerId, req.conversationId, req.customId)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_response(reply)


@router.post("/developer", response_model=VerificationResponse)
async def record_developer(req: DeveloperRecordRequest, engine: VerificationEngine = Depends(get_engine)):
    """Called by the GitHub OAuth service once a developer passed its checks."""
    return _to_response(await engine.record_developer_verification(req.ownerId, req.githubProfile))
