"""Unit tests for the ledger hash chain."""
from datetime import datetime
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from payrail.models.ledger import LedgerRecord
from payrail.services.ledger import LedgerService
from payrail.services.ports import OutcomeRecord

from tests.fakes import ALICE, BATCH_TX, DIRECT_TX


def outcome(tx_id: str, status: str, legs=None) -> OutcomeRecord:
    return OutcomeRecord(
        transaction_id=tx_id,
        status=status,
        legs=legs or [],
        correlation_id=f"test-{uuid4()}",
    )


@pytest.mark.asyncio
async def test_ledger_chain_integrity(db_session):
    """Records for one transaction form a valid hash chain."""
    ledger = LedgerService(db_session)

    for status in ("TIMED_OUT", "TIMED_OUT", "NOTIFIED"):
        await ledger.record_outcome(outcome(BATCH_TX, status))
    await db_session.commit()

    result = await ledger.verify_chain(BATCH_TX)

    assert result.is_valid
    assert result.chain_intact
    assert result.total_records == 3
    assert result.verified_records == 3
    assert result.errors == []


@pytest.mark.asyncio
async def test_chains_are_scoped_per_transaction(db_session):
    ledger = LedgerService(db_session)

    first_batch = await ledger.record_outcome(outcome(BATCH_TX, "TIMED_OUT"))
    first_direct = await ledger.record_outcome(outcome(DIRECT_TX, "FAILED"))
    second_batch = await ledger.record_outcome(outcome(BATCH_TX, "NOTIFIED"))

    assert first_batch.sequence_number == 1
    assert first_batch.prev_hash is None
    assert first_direct.sequence_number == 1
    assert first_direct.prev_hash is None
    assert second_batch.sequence_number == 2
    assert second_batch.prev_hash == first_batch.hash


@pytest.mark.asyncio
async def test_legs_total_is_summed(db_session):
    ledger = LedgerService(db_session)

    record = await ledger.record_outcome(outcome(BATCH_TX, "NOTIFIED", legs=[
        {"leg_id": "a", "recipient_address": ALICE, "amount": 100},
        {"leg_id": "b", "recipient_address": ALICE.lower(), "amount": 250},
    ]))

    assert record.legs_total == 350


@pytest.mark.asyncio
async def test_tampering_is_detected(db_session):
    ledger = LedgerService(db_session)
    await ledger.record_outcome(outcome(BATCH_TX, "TIMED_OUT"))
    second = await ledger.record_outcome(outcome(BATCH_TX, "FAILED"))
    await db_session.commit()

    second.status = "NOTIFIED"
    await db_session.commit()

    result = await ledger.verify_chain(BATCH_TX)

    assert not result.is_valid
    assert result.verified_records == 1
    assert any("hash mismatch" in error for error in result.errors)


@pytest.mark.asyncio
async def test_duplicate_sequence_is_rejected(db_session):
    """The unique (transaction_id, sequence_number) pair is the atomic-insert guard."""
    ledger = LedgerService(db_session)
    first = await ledger.record_outcome(outcome(BATCH_TX, "TIMED_OUT"))
    await db_session.commit()

    now = datetime.utcnow()
    db_session.add(LedgerRecord(
        transaction_id=BATCH_TX,
        sequence_number=first.sequence_number,
        status="NOTIFIED",
        legs=[],
        recorded_at=now,
        correlation_id="racer",
        prev_hash=None,
        hash="0" * 64,
    ))
    with pytest.raises(IntegrityError):
        await db_session.flush()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_empty_chain_is_valid(db_session):
    result = await LedgerService(db_session).verify_chain("0xnothing")

    assert result.is_valid
    assert result.total_records == 0
    assert result.first_record_id is None
