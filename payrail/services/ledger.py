"""Ledger service: append-only outcome log with a per-transaction hash chain."""
import logging
from typing import Optional, List
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payrail.models.ledger import LedgerRecord
from payrail.schemas.ledger import LedgerVerifyResponse
from payrail.services.ports import OutcomeRecord

logger = logging.getLogger(__name__)


class LedgerService:
    """Records disbursement outcomes. Each transaction id has its own chain."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_outcome(self, outcome: OutcomeRecord) -> LedgerRecord:
        """Append a record, linking it to the previous record for the same transaction."""
        prev_record = await self._get_last_record(outcome.transaction_id)
        prev_hash = prev_record.hash if prev_record else None
        sequence_number = prev_record.sequence_number + 1 if prev_record else 1

        record_id = str(uuid4())
        legs = list(outcome.legs)

        record_hash = LedgerRecord.compute_hash(
            record_id=record_id,
            transaction_id=outcome.transaction_id,
            sequence_number=sequence_number,
            status=outcome.status,
            legs=legs,
            recorded_at=outcome.recorded_at,
            prev_hash=prev_hash
        )

        record = LedgerRecord(
            id=record_id,
            transaction_id=outcome.transaction_id,
            sequence_number=sequence_number,
            status=outcome.status,
            legs=legs,
            legs_total=sum(int(leg.get("amount", 0)) for leg in legs),
            detail=outcome.detail,
            recorded_at=outcome.recorded_at,
            correlation_id=outcome.correlation_id,
            prev_hash=prev_hash,
            hash=record_hash
        )

        # (transaction_id, sequence_number) is unique: a concurrent writer fails here
        self.db.add(record)
        await self.db.flush()

        logger.info(
            f"Ledger record {sequence_number} for {outcome.transaction_id}: "
            f"{outcome.status} with {len(legs)} legs"
        )
        return record

    async def _get_last_record(self, transaction_id: str) -> Optional[LedgerRecord]:
        result = await self.db.execute(
            select(LedgerRecord)
            .where(LedgerRecord.transaction_id == transaction_id)
            .order_by(LedgerRecord.sequence_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_records(self, transaction_id: str, limit: int = 100) -> List[LedgerRecord]:
        """Get ledger records for a transaction in chain order."""
        result = await self.db.execute(
            select(LedgerRecord)
            .where(LedgerRecord.transaction_id == transaction_id)
            .order_by(LedgerRecord.sequence_number.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def verify_chain(self, transaction_id: str) -> LedgerVerifyResponse:
        """Verify the integrity of one transaction's hash chain."""
        result = await self.db.execute(
            select(LedgerRecord)
            .where(LedgerRecord.transaction_id == transaction_id)
            .order_by(LedgerRecord.sequence_number.asc())
        )
        records = list(result.scalars().all())

        errors = []
        verified = 0
        prev_hash = None
        expected_sequence = 1

        for record in records:
            if record.sequence_number != expected_sequence:
                errors.append(
                    f"Record {record.id}: sequence gap. "
                    f"Expected {expected_sequence}, got {record.sequence_number}"
                )
            expected_sequence = record.sequence_number + 1

            if record.prev_hash != prev_hash:
                errors.append(
                    f"Record {record.id} (seq {record.sequence_number}): "
                    f"prev_hash mismatch. Expected {prev_hash}, got {record.prev_hash}"
                )

            expected_hash = LedgerRecord.compute_hash(
                record_id=record.id,
                transaction_id=record.transaction_id,
                sequence_number=record.sequence_number,
                status=record.status,
                legs=record.legs,
                recorded_at=record.recorded_at,
                prev_hash=record.prev_hash
            )

            if record.hash != expected_hash:
                errors.append(
                    f"Record {record.id} (seq {record.sequence_number}): "
                    f"hash mismatch. Possible tampering detected."
                )
            else:
                verified += 1

            prev_hash = record.hash

        if errors:
            logger.warning(f"Ledger chain for {transaction_id} failed verification: {len(errors)} errors")

        return LedgerVerifyResponse(
            transaction_id=transaction_id,
            is_valid=len(errors) == 0,
            total_records=len(records),
            verified_records=verified,
            first_record_id=records[0].id if records else None,
            last_record_id=records[-1].id if records else None,
            chain_intact=len(errors) == 0,
            errors=errors
        )
