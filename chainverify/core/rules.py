"""
Pure validation decisions over already-fetched facts.

Each check returns normally when the input passes and raises a
VerificationError carrying the user reply when it does not.
"""
import re
from datetime import datetime
from decimal import Decimal

from chainverify.core import messages as msg
from chainverify.core.errors import InputFormatError, ValidationRejection
from chainverify.core.roles import RoleProfile
from chainverify.ledger.parser import StakingStatus, TransactionStatus
from chainverify.utils.time import age_seconds

TX_HASH_RE = re.compile(r"^[0-9a-f]{64}$")


def format_amount(amount: Decimal) -> str:
    """1500.000000 -> "1500", 999.50 -> "999.5"."""
    if amount == 0:
        return "0"
    return format(amount.normalize(), "f")


def normalize_identifier(profile: RoleProfile, text: str) -> str:
    identifier = (text or "").strip()
    if not profile.identifier_pattern.match(identifier):
        raise InputFormatError(profile.bad_identifier, "bad_identifier")
    return identifier


def normalize_tx_hash(text: str) -> str:
    tx_hash = (text or "").strip().lower()
    if not TX_HASH_RE.match(tx_hash):
        raise InputFormatError(msg.BAD_TX_HASH, "bad_tx_hash")
    return tx_hash


def check_stake(profile: RoleProfile, status: StakingStatus) -> None:
    """Delegation target required; staked amount must be >= the minimum."""
    if profile.min_stake is None:
        return
    if not status.hasTarget:
        raise ValidationRejection(msg.NOT_DELEGATING, "not_delegating")
    if status.stakedAmount < profile.min_stake:
        raise ValidationRejection(
            msg.STAKE_TOO_LOW.format(
                amount=format_amount(status.stakedAmount),
                min_stake=format_amount(profile.min_stake),
            ),
            "stake_too_low",
        )


def check_transaction(profile: RoleProfile, status: TransactionStatus, candidate_address: str, candidate_identifier: str) -> None:
    """Finality, readable details, sender rule, exact memo (trimmed at the ends only)."""
    if not (status.finalized and status.successful):
        raise ValidationRejection(msg.TX_NOT_FINAL, "tx_not_final")

    if not status.has_details:
        raise ValidationRejection(msg.TX_UNREADABLE, "tx_unreadable")

    if profile.sender_must_match and status.sender != candidate_address:
        raise ValidationRejection(
            msg.SENDER_MISMATCH_VALIDATOR.format(address=candidate_address),
            "sender_mismatch",
        )

    if status.memo.strip() != (candidate_identifier or "").strip():
        raise ValidationRejection(
            profile.memo_mismatch.format(identifier=candidate_identifier),
            "memo_mismatch",
        )


def check_freshness(block_time: datetime, now_epoch: float, max_age_sec: int) -> None:
    """Reject when the block is more than max_age_sec old. Exactly max_age_sec passes."""
    if age_seconds(block_time, now_epoch) > max_age_sec:
        raise ValidationRejection(
            msg.TX_TOO_OLD.format(max_age_label=msg.max_age_label(max_age_sec)),
            "tx_too_old",
        )
