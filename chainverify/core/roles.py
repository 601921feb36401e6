"""
Role profiles: the knobs that distinguish one on-chain verification flow from
another. The engine is written once against these.
"""
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Pattern

from chainverify.core import messages as msg
from chainverify.core.state_machine import DELEGATOR, VALIDATOR
from chainverify.settings import settings

MEMO_FROM_IDENTIFIER = "identifier"
MEMO_FROM_ADDRESS = "address"

VALIDATOR_ID_RE = re.compile(r"^[0-9]+$")
# base58 alphabet (no 0, O, I, l)
ACCOUNT_ADDRESS_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{50,60}$")


@dataclass(frozen=True)
class RoleProfile:
    kind: str
    role_id: str
    identifier_pattern: Pattern
    # identifier is a validator ID that must be resolved to its account address
    resolves_address: bool
    # None: no staking requirement
    min_stake: Optional[Decimal]
    # transaction sender must equal the candidate address
    sender_must_match: bool
    memo_source: str
    restart_command: str
    conversation_prefix: str
    delete_button_id: str

    # replies
    prompt: str
    restart_prompt: str
    bad_identifier: str
    address_taken: str
    instruct: str
    memo_mismatch: str

    @property
    def label(self) -> str:
        return self.kind

    def candidate_identifier(self, identifier: str, address: str) -> str:
        """Value the transaction memo must carry."""
        return address if self.memo_source == MEMO_FROM_ADDRESS else identifier


def build_profiles(cfg=settings) -> Dict[str, RoleProfile]:
    return {
        VALIDATOR: RoleProfile(
            kind=VALIDATOR,
            role_id=cfg.VALIDATOR_ROLE_ID,
            identifier_pattern=VALIDATOR_ID_RE,
            resolves_address=True,
            min_stake=None,
            sender_must_match=True,
            memo_source=MEMO_FROM_IDENTIFIER,
            restart_command="start-again-validator",
            conversation_prefix="validator",
            delete_button_id="archive_thread_validator",
            prompt=msg.PROMPT_VALIDATOR,
            restart_prompt=msg.RESTART_PROMPT_VALIDATOR,
            bad_identifier=msg.BAD_VALIDATOR_ID,
            address_taken=msg.VALIDATOR_ADDRESS_TAKEN,
            instruct=msg.INSTRUCT_VALIDATOR,
            memo_mismatch=msg.MEMO_MISMATCH_VALIDATOR,
        ),
        DELEGATOR: RoleProfile(
            kind=DELEGATOR,
            role_id=cfg.DELEGATOR_ROLE_ID,
            identifier_pattern=ACCOUNT_ADDRESS_RE,
            resolves_address=False,
            min_stake=Decimal(str(cfg.DELEGATOR_MIN_STAKE)),
            sender_must_match=False,
            memo_source=MEMO_FROM_ADDRESS,
            restart_command="start-again-delegator",
            conversation_prefix="delegator",
            delete_button_id="archive_thread_delegator",
            prompt=msg.PROMPT_DELEGATOR,
            restart_prompt=msg.RESTART_PROMPT_DELEGATOR,
            bad_identifier=msg.BAD_ACCOUNT_ADDRESS,
            address_taken=msg.DELEGATOR_ADDRESS_TAKEN,
            instruct=msg.INSTRUCT_DELEGATOR,
            memo_mismatch=msg.MEMO_MISMATCH_DELEGATOR,
        ),
    }


def profile_for_button(profiles: Dict[str, RoleProfile], custom_id: str) -> Optional[RoleProfile]:
    for p in profiles.values():
        if p.delete_button_id == custom_id:
            return p
    return None


def profile_for_command(profiles: Dict[str, RoleProfile], command: str) -> Optional[RoleProfile]:
    name = (command or "").lstrip("/")
    for p in profiles.values():
        if p.restart_command == name:
            return p
    return None
