from datetime import datetime, timezone
from decimal import Decimal

from chainverify.ledger.parser import (
    parse_block_time,
    parse_staking_status,
    parse_timestamp,
    parse_transaction_status,
    parse_validator_address,
)
from tests.ledger_samples import (
    ACCOUNT_DELEGATING_OUTPUT,
    ACCOUNT_NOT_DELEGATING_OUTPUT,
    BAKERS_OUTPUT,
    BLOCK_EPOCH,
    BLOCK_HASH,
    OTHER_ADDRESS,
    TX_COMMITTED_OUTPUT,
    VALIDATOR_ADDRESS,
    VALIDATOR_ID,
    block_output,
    tx_status_output,
)


def test_staking_status_delegating():
    s = parse_staking_status(ACCOUNT_DELEGATING_OUTPUT)
    assert s.hasTarget is True
    assert s.stakedAmount == Decimal("1500")


def test_staking_status_not_delegating():
    s = parse_staking_status(ACCOUNT_NOT_DELEGATING_OUTPUT)
    assert s.hasTarget is False
    assert s.stakedAmount == Decimal("0")


def test_staking_amount_absent_counts_as_zero():
    text = "Delegation target: Passive delegation\nRestake earnings: yes\n"
    s = parse_staking_status(text)
    assert s.hasTarget is True
    assert s.stakedAmount == Decimal("0")


def test_staking_amount_keeps_decimal_precision():
    s = parse_staking_status("Delegation target: Staking pool with ID 1\nStaked amount: 999.999999 CCD\n")
    assert s.stakedAmount == Decimal("999.999999")


def test_transaction_status_success():
    t = parse_transaction_status(tx_status_output())
    assert t.finalized is True
    assert t.successful is True
    assert t.sender == VALIDATOR_ADDRESS
    assert t.memo == VALIDATOR_ID
    assert t.blockHash == BLOCK_HASH
    assert t.has_details


def test_transaction_status_rejected():
    t = parse_transaction_status(tx_status_output(status="reject"))
    assert t.finalized is True
    assert t.successful is False


def test_transaction_status_committed_not_finalized():
    t = parse_transaction_status(TX_COMMITTED_OUTPUT)
    assert t.finalized is False
    assert t.blockHash is None


def test_transaction_memo_trimmed():
    t = parse_transaction_status(tx_status_output(memo="12345 "))
    assert t.memo == "12345"


def test_transaction_without_memo():
    text = tx_status_output().split("Transfer memo:")[0]
    t = parse_transaction_status(text)
    assert t.memo is None
    assert t.sender == VALIDATOR_ADDRESS
    assert not t.has_details


def test_transaction_status_empty():
    t = parse_transaction_status("")
    assert (t.finalized, t.successful, t.sender, t.memo, t.blockHash) == (False, False, None, None, None)


def test_block_time_from_block_show():
    dt = parse_block_time(block_output())
    assert dt == datetime.fromtimestamp(BLOCK_EPOCH, tz=timezone.utc)


def test_block_time_missing():
    assert parse_block_time("Hash: abc\nHeight: 1\n") is None
    assert parse_block_time("Block time:   not a date\n") is None


def test_timestamp_formats():
    expected = datetime(2024, 3, 15, 10, 20, 30, tzinfo=timezone.utc)
    assert parse_timestamp("2024-03-15T10:20:30Z") == expected
    assert parse_timestamp("2024-03-15 10:20:30 UTC") == expected
    assert parse_timestamp("Fri, 15 Mar 2024 10:20:30 UTC") == expected
    assert parse_timestamp("2024-03-15 10:20:30.250 UTC") == expected.replace(microsecond=250000)
    assert parse_timestamp("") is None


def test_validator_address_lookup():
    assert parse_validator_address(BAKERS_OUTPUT, VALIDATOR_ID) == VALIDATOR_ADDRESS
    assert parse_validator_address(BAKERS_OUTPUT, "0") == OTHER_ADDRESS


def test_validator_address_requires_exact_id():
    # "4" must not match "42:" or "420:"
    assert parse_validator_address(BAKERS_OUTPUT, "4") == "2ZrSDwAmhVGiDQJhCf6DRZzqZNrCmjDPuTNNdTJYpg5aHrbaLd"
    assert parse_validator_address(BAKERS_OUTPUT, "7") is None
    assert parse_validator_address("", VALIDATOR_ID) is None
