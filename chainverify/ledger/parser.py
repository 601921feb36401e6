"""
Facts extracted from concordium-client text output.

Every function here is pure and matches the fixed vocabulary the CLI prints.
If the CLI changes its wording, that is a contract break with the tool; the
tests pin the transcripts these patterns were written against.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from email.utils import parsedate_to_datetime
from typing import Optional

DELEGATION_TARGET_MARKER = "Delegation target:"
FINALIZED_MARKER = "Transaction is finalized"
SUCCESS_MARKER = 'with status "success"'

STAKED_AMOUNT_RE = re.compile(r"Staked amount:\s+([\d.]+)\s+CCD")
SENDER_RE = re.compile(r"from account '([^']+)'")
MEMO_RE = re.compile(r"Transfer memo:\r?\n(.+)")
BLOCK_HASH_RE = re.compile(r"Transaction is finalized into block ([0-9a-fA-F]{64})")
BLOCK_TIME_RE = re.compile(r"^\s*Block time:\s+(.+?)\s*$", re.MULTILINE)

_BLOCK_TIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S.%f %Z",
    "%Y-%m-%d %H:%M:%S %Z",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
)


@dataclass(frozen=True)
class StakingStatus:
    hasTarget: bool = False
    stakedAmount: Decimal = Decimal("0")


@dataclass(frozen=True)
class TransactionStatus:
    finalized: bool = False
    successful: bool = False
    sender: Optional[str] = None
    memo: Optional[str] = None
    blockHash: Optional[str] = None

    @property
    def has_details(self) -> bool:
        return bool(self.sender and self.memo and self.blockHash)


def parse_staking_status(text: str) -> StakingStatus:
    """
    `account show` output. A missing amount counts as 0 even when a delegation
    target is present, so it fails any positive minimum.
    """
    text = text or ""
    has_target = DELEGATION_TARGET_MARKER in text
    amount = Decimal("0")
    m = STAKED_AMOUNT_RE.search(text)
    if m:
        try:
            amount = Decimal(m.group(1))
        except InvalidOperation:
            amount = Decimal("0")
    return StakingStatus(hasTarget=has_target, stakedAmount=amount)


def parse_transaction_status(text: str) -> TransactionStatus:
    text = text or ""
    sender = SENDER_RE.search(text)
    memo = MEMO_RE.search(text)
    block = BLOCK_HASH_RE.search(text)

    memo_val = memo.group(1).strip() if memo else None
    return TransactionStatus(
        finalized=FINALIZED_MARKER in text,
        successful=SUCCESS_MARKER in text,
        sender=sender.group(1) if sender else None,
        memo=memo_val or None,
        blockHash=block.group(1).lower() if block else None,
    )


def parse_timestamp(value: str) -> Optional[datetime]:
    """
    Accepts ISO-8601 (trailing Z ok), "YYYY-MM-DD HH:MM:SS[.ffffff] UTC" and
    RFC-2822 ("Fri, 15 Mar 2024 10:20:30 UTC"). Naive values are UTC.
    """
    s = (value or "").strip()
    if not s:
        return None

    dt = None
    iso = s[:-1] + "+00:00" if s.endswith("Z") else s
    try:
        dt = datetime.fromisoformat(iso)
    except ValueError:
        dt = None

    if dt is None:
        for fmt in _BLOCK_TIME_FORMATS:
            try:
                dt = datetime.strptime(s, fmt)
                break
            except ValueError:
                continue

    if dt is None:
        try:
            dt = parsedate_to_datetime(s)
        except (TypeError, ValueError, IndexError):
            dt = None

    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_block_time(text: str) -> Optional[datetime]:
    """`block show` output -> the Block time value, or None."""
    m = BLOCK_TIME_RE.search(text or "")
    if not m:
        return None
    return parse_timestamp(m.group(1))


def parse_validator_address(text: str, validator_id: str) -> Optional[str]:
    """
    `consensus show-parameters --include-bakers` output: the account on the
    row whose first column is "<validator_id>:".
    """
    wanted = f"{validator_id}:"
    for line in (text or "").splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == wanted:
            return parts[1]
    return None
