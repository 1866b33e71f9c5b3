"""Ledger schemas."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel


class LedgerRecordResponse(BaseModel):
    """Schema for ledger record response."""
    id: str
    transaction_id: str
    sequence_number: int
    status: str
    legs: List[dict]
    legs_total: int
    detail: Optional[dict]
    recorded_at: datetime
    correlation_id: str
    prev_hash: Optional[str]
    hash: str

    class Config:
        from_attributes = True


class LedgerVerifyResponse(BaseModel):
    """Schema for ledger chain verification response."""
    transaction_id: str
    is_valid: bool
    total_records: int
    verified_records: int
    first_record_id: Optional[str]
    last_record_id: Optional[str]
    chain_intact: bool
    errors: List[str] = []
