from typing import List, Literal, Optional
from pydantic import BaseModel, Field

ChainRoleKind = Literal["Validator", "Delegator"]


class SelectRoleRequest(BaseModel):
    ownerId: str
    ownerName: Optional[str] = None
    roleKind: ChainRoleKind


class MessageRequest(BaseModel):
    ownerId: str
    conversationId: str
    text: str = ""


class RestartRequest(BaseModel):
    ownerId: str
    roleKind: Optional[ChainRoleKind] = None
    # "/start-again-validator" style command name, used when roleKind is absent
    command: Optional[str] = None


class DeleteConversationRequest(BaseModel):
    ownerId: str
    conversationId: str
    customId: str


class DeveloperRecordRequest(BaseModel):
    ownerId: str
    githubProfile: str = Field(min_length=1)


class ButtonOut(BaseModel):
    customId: str
    label: str


class VerificationResponse(BaseModel):
    status: Literal["success", "ignored", "error"] = "success"
    reply: str = ""
    ephemeral: bool = False
    outcome: str = ""
    conversationId: Optional[str] = None
    delivered: bool = False
    buttons: List[ButtonOut] = Field(default_factory=list)
