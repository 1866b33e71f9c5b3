"""Database models package."""
from payrail.models.disbursement import (
    Disbursement,
    DisbursementKind,
    DisbursementLeg,
    DisbursementStatus,
    NotificationState,
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    compute_leg_id,
)
from payrail.models.ledger import LedgerRecord
from payrail.models.team import TeamMember

__all__ = [
    "Disbursement",
    "DisbursementKind",
    "DisbursementLeg",
    "DisbursementStatus",
    "NotificationState",
    "TERMINAL_STATUSES",
    "VALID_TRANSITIONS",
    "compute_leg_id",
    "LedgerRecord",
    "TeamMember",
]
