"""Pydantic schemas for API validation."""
from payrail.schemas.common import (
    CorrelatedResponse,
    ErrorResponse,
)
from payrail.schemas.disbursement import (
    DisbursementCreate,
    DisbursementResponse,
    LegResponse,
    RosterEntryIn,
    RunRequest,
    RunResponse,
    HistoryRow,
)
from payrail.schemas.ledger import (
    LedgerRecordResponse,
    LedgerVerifyResponse,
)

__all__ = [
    "CorrelatedResponse",
    "ErrorResponse",
    "DisbursementCreate",
    "DisbursementResponse",
    "LegResponse",
    "RosterEntryIn",
    "RunRequest",
    "RunResponse",
    "HistoryRow",
    "LedgerRecordResponse",
    "LedgerVerifyResponse",
]
