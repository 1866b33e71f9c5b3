"""Append-only ledger of disbursement outcomes with a per-transaction hash chain."""
import hashlib
import json
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import String, DateTime, JSON, BigInteger, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payrail.database import Base


class LedgerRecord(Base):
    """One recorded outcome of one orchestrator run for a transaction."""
    __tablename__ = "ledger_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    transaction_id: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    sequence_number: Mapped[int] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    legs: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    legs_total: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    detail: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    recorded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    correlation_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Hash chain scoped to transaction_id; NULL prev_hash for the first record
    prev_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("transaction_id", "sequence_number", name="uq_ledger_tx_sequence"),
        Index("ix_ledger_records_recorded_status", "recorded_at", "status"),
    )

    @staticmethod
    def compute_hash(
        record_id: str,
        transaction_id: str,
        sequence_number: int,
        status: str,
        legs: list,
        recorded_at: datetime,
        prev_hash: Optional[str]
    ) -> str:
        """Compute SHA-256 hash for the record."""
        data = {
            "record_id": record_id,
            "transaction_id": transaction_id,
            "sequence_number": sequence_number,
            "status": status,
            "legs": legs,
            "recorded_at": recorded_at.isoformat(),
            "prev_hash": prev_hash
        }
        canonical = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(canonical.encode()).hexdigest()
