"""Disbursement and disbursement leg models with their state machines."""
import enum
import hashlib
import json
from datetime import datetime
from typing import Optional, List

from sqlalchemy import String, Enum, DateTime, Text, ForeignKey, BigInteger, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payrail.database import Base


class DisbursementKind(str, enum.Enum):
    """Shape of the on-chain payment."""
    DIRECT = "DIRECT"  # one recipient, token transfer or execute-payroll
    BATCH = "BATCH"    # N recipients, one execute-batch-payroll call


class DisbursementStatus(str, enum.Enum):
    """
    Disbursement lifecycle.

    BROADCAST -> POLLING -> CONFIRMED -> EXPANDED -> NOTIFIED
    BROADCAST -> POLLING -> FAILED
    BROADCAST -> POLLING -> TIMED_OUT -> POLLING (next external trigger)
    """
    BROADCAST = "BROADCAST"
    POLLING = "POLLING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"
    EXPANDED = "EXPANDED"
    NOTIFIED = "NOTIFIED"


VALID_TRANSITIONS = {
    DisbursementStatus.BROADCAST: [DisbursementStatus.POLLING],
    DisbursementStatus.POLLING: [
        DisbursementStatus.CONFIRMED,
        DisbursementStatus.FAILED,
        DisbursementStatus.TIMED_OUT,
    ],
    DisbursementStatus.TIMED_OUT: [DisbursementStatus.POLLING],  # Re-driven by a later trigger
    DisbursementStatus.CONFIRMED: [DisbursementStatus.EXPANDED],
    DisbursementStatus.EXPANDED: [DisbursementStatus.NOTIFIED],
    DisbursementStatus.FAILED: [],  # Terminal state
    DisbursementStatus.NOTIFIED: [],  # Terminal state
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)


class NotificationState(str, enum.Enum):
    """Per-leg notification outcome. Leaves NOT_SENT at most once."""
    NOT_SENT = "NOT_SENT"
    SENT = "SENT"
    SKIPPED_NO_CONTACT = "SKIPPED_NO_CONTACT"
    FAILED = "FAILED"


def compute_leg_id(parent_transaction_id: str, recipient_address: str) -> str:
    """Deterministic leg identifier for (parent transaction, recipient).

    The pair is JSON-encoded before hashing so that no delimiter inside an
    address can make two different pairs collide.
    """
    canonical = json.dumps([parent_transaction_id, recipient_address], separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()


class Disbursement(Base):
    """A broadcast payment intent from the business wallet. Never deleted."""
    __tablename__ = "disbursements"

    transaction_id: Mapped[str] = mapped_column(String(80), primary_key=True)
    kind: Mapped[DisbursementKind] = mapped_column(Enum(DisbursementKind), nullable=False)

    # Pre-confirmation estimate in micro-STX; legs are authoritative after confirmation
    declared_total: Mapped[int] = mapped_column(BigInteger, nullable=False)
    period_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)  # BATCH only

    sender_address: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    recipient_address: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)  # DIRECT only
    organization_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    # State machine
    status: Mapped[DisbursementStatus] = mapped_column(
        Enum(DisbursementStatus), default=DisbursementStatus.BROADCAST, index=True
    )

    # Confirmation tracking
    poll_attempts: Mapped[int] = mapped_column(default=0)
    last_chain_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    legs: Mapped[List["DisbursementLeg"]] = relationship(
        "DisbursementLeg",
        back_populates="disbursement",
        lazy="selectin",
        order_by="DisbursementLeg.position",
    )

    __table_args__ = (
        Index("ix_disbursements_status_created", "status", "created_at"),
    )

    def can_transition_to(self, new_status: DisbursementStatus) -> bool:
        """Check if transition to new status is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, [])

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class DisbursementLeg(Base):
    """One recipient's share of a disbursement. Derived from confirmed chain data."""
    __tablename__ = "disbursement_legs"

    leg_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    parent_transaction_id: Mapped[str] = mapped_column(
        String(80), ForeignKey("disbursements.transaction_id"), nullable=False, index=True
    )
    recipient_address: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)  # micro-STX
    position: Mapped[int] = mapped_column(default=0)

    # Set when the chain yielded no transfer events for a batch
    is_degraded: Mapped[bool] = mapped_column(default=False)

    override_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    recipient_display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    notification_state: Mapped[NotificationState] = mapped_column(
        Enum(NotificationState), default=NotificationState.NOT_SENT, nullable=False
    )
    notification_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    disbursement: Mapped["Disbursement"] = relationship("Disbursement", back_populates="legs")

    __table_args__ = (
        UniqueConstraint("parent_transaction_id", "recipient_address", name="uq_leg_parent_recipient"),
    )

    @property
    def is_notification_pending(self) -> bool:
        return self.notification_state == NotificationState.NOT_SENT
