"""Disbursement schemas."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, model_validator

from payrail.models.disbursement import DisbursementKind, DisbursementStatus, NotificationState


class DisbursementCreate(BaseModel):
    """Schema for registering a freshly broadcast transaction."""
    transaction_id: str = Field(..., min_length=1, max_length=80)
    kind: DisbursementKind
    declared_total: int = Field(..., ge=0, description="Declared amount in micro-STX")
    period_reference: Optional[str] = Field(default=None, max_length=255)
    sender_address: Optional[str] = Field(default=None, max_length=128)
    recipient_address: Optional[str] = Field(default=None, max_length=128)
    organization_id: Optional[str] = Field(default=None, max_length=64)

    @model_validator(mode="after")
    def check_kind_fields(self):
        """Direct payments name their recipient; only batches carry a period."""
        if self.kind == DisbursementKind.DIRECT:
            if not self.recipient_address:
                raise ValueError("recipient_address is required for DIRECT disbursements")
            if self.period_reference:
                raise ValueError("period_reference is only valid for BATCH disbursements")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "transaction_id": "0x5f3c9b1e2d4a6f8e0c1b3d5f7a9e2c4b6d8f0a1c3e5b7d9f2a4c6e8b0d1f3a5c",
                "kind": "BATCH",
                "declared_total": 400000000,
                "period_reference": "2026-09",
                "sender_address": "ST3S1YJ0D5C0XQ9XP3Y2RZ6XJ4N8QK9W5M1M44",
            }
        }


class RosterEntryIn(BaseModel):
    """Recipient known to the caller from its own payroll roster."""
    address: str = Field(..., min_length=1, max_length=128)
    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)


class RunRequest(BaseModel):
    """Optional roster supplied when driving a disbursement."""
    roster: List[RosterEntryIn] = []


class LegResponse(BaseModel):
    """Schema for a disbursement leg."""
    leg_id: str
    parent_transaction_id: str
    recipient_address: str
    amount: int
    position: int
    is_degraded: bool
    override_name: Optional[str]
    recipient_display_name: Optional[str]
    notification_state: NotificationState
    notification_error: Optional[str]
    notified_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class DisbursementResponse(BaseModel):
    """Schema for disbursement response."""
    transaction_id: str
    kind: DisbursementKind
    declared_total: int
    period_reference: Optional[str]
    sender_address: Optional[str]
    recipient_address: Optional[str]
    organization_id: Optional[str]
    status: DisbursementStatus
    poll_attempts: int
    last_chain_status: Optional[str]
    confirmed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    legs: List[LegResponse] = []

    class Config:
        from_attributes = True


class RunResponse(BaseModel):
    """Result of one orchestrator run."""
    transaction_id: str
    status: DisbursementStatus
    poll_attempts: int
    legs_notified: int
    legs_failed: int
    legs_skipped: int
    ledger_record_id: Optional[str] = None


class HistoryRow(BaseModel):
    """Display row for one leg of a disbursement."""
    leg_id: str
    transaction_id: str
    recipient_name: str
    recipient_address: str
    recipient_address_short: str
    amount: int
    amount_stx: str
    amount_usd: Optional[str] = None
    status: str
    payroll_type: str
    period_reference: Optional[str] = None
    explorer_link: Optional[str] = None
    notification_state: NotificationState
    created_at: datetime
