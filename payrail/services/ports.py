"""Collaborator interfaces consumed by the settlement engine.

The engine never talks to concrete infrastructure directly; the production
wiring plugs in the Stacks API client, the team member table, the Mailjet
notifier and the ledger service.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Protocol

from stacks_api_adapter import ChainTxStatus, TransferEvent


@dataclass(frozen=True, slots=True)
class RecipientIdentity:
    """Identity store entry for a wallet address."""
    address: str
    display_name: str
    contact_email: Optional[str] = None


@dataclass(slots=True)
class DisbursedNotice:
    """Payload handed to the notifier for one leg."""
    recipient_name: str
    recipient_contact: str
    amount: int  # micro-STX
    transaction_id: str
    organization_name: str


@dataclass(slots=True)
class NotificationResult:
    """Outcome of a single notification attempt."""
    sent: bool
    error: Optional[str] = None


@dataclass(slots=True)
class OutcomeRecord:
    """Outcome handed to the ledger store once per orchestrator run."""
    transaction_id: str
    status: str
    legs: List[dict] = field(default_factory=list)
    recorded_at: datetime = field(default_factory=datetime.utcnow)
    correlation_id: str = ""
    detail: Optional[dict] = None


class ChainClient(Protocol):
    """Read-only view of the chain."""

    async def get_transaction_status(self, tx_id: str) -> ChainTxStatus: ...
    async def get_transfer_events(self, tx_id: str) -> List[TransferEvent]: ...


class IdentityStore(Protocol):
    """Wallet address to recipient identity lookup."""

    async def lookup_by_address(self, address: str) -> Optional[RecipientIdentity]: ...


class Notifier(Protocol):
    """Fire-and-forget recipient notification."""

    async def notify_disbursed(self, notice: DisbursedNotice) -> NotificationResult: ...


class LedgerStore(Protocol):
    """Append-only outcome log."""

    async def record_outcome(self, outcome: OutcomeRecord): ...


@dataclass(frozen=True, slots=True)
class RosterEntry:
    """Recipient the caller already knows from its own payroll roster."""
    address: str
    name: Optional[str] = None
    email: Optional[str] = None
