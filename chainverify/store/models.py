from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from chainverify.core.state_machine import AWAITING_IDENTIFIER


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class VerificationSession:
    # Core identifiers
    ownerId: str = ""
    roleKind: str = ""

    # Private conversation (thread) the flow runs in
    conversationId: str = ""

    # State
    step: str = AWAITING_IDENTIFIER

    # Set once the identifier step succeeds.
    # candidateIdentifier is the value the transaction memo must carry.
    candidateAddress: Optional[str] = None
    candidateIdentifier: Optional[str] = None

    createdAtEpoch: Optional[int] = None
    lastUpdatedAtEpoch: Optional[int] = None

    def reset(self) -> None:
        """Back to the first step, same conversation."""
        self.step = AWAITING_IDENTIFIER
        self.candidateAddress = None
        self.candidateIdentifier = None


@dataclass
class VerificationRecord:
    txHash: str
    walletAddress: str
    ownerId: str
    roleKind: str
    verifiedAt: datetime = field(default_factory=_utcnow)
    # Developer records only
    githubProfile: Optional[str] = None
