"""Transaction and event schemas for the Stacks API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import ChainTxStatus, EventType


class ContractCall(BaseModel):
    """Contract call section of a transaction."""

    model_config = ConfigDict(extra="ignore")

    contract_id: str
    function_name: str
    function_args: list[dict[str, Any]] = Field(default_factory=list)


class TxResult(BaseModel):
    """Clarity result of an executed transaction."""

    model_config = ConfigDict(extra="ignore")

    hex: str | None = None
    repr: str | None = None


class Transaction(BaseModel):
    """Subset of the /extended/v1/tx/{tx_id} payload the engine relies on."""

    model_config = ConfigDict(extra="ignore")

    tx_id: str
    tx_status: str
    tx_type: str | None = None
    sender_address: str | None = None
    fee_rate: str | None = None
    nonce: int | None = None
    block_height: int | None = None
    burn_block_time: int | None = None
    contract_call: ContractCall | None = None
    tx_result: TxResult | None = None

    @property
    def status(self) -> ChainTxStatus:
        """Normalised status."""
        return ChainTxStatus.from_raw(self.tx_status)

    @property
    def function_name(self) -> str | None:
        """Called contract function, if any."""
        return self.contract_call.function_name if self.contract_call else None


class TransferEvent(BaseModel):
    """A single STX value transfer emitted by a transaction."""

    sender_address: str
    recipient_address: str
    amount: int = Field(..., ge=0, description="Amount in micro-STX")
    event_index: int | None = None


class TransactionEvent(BaseModel):
    """Raw event as listed by /extended/v1/tx/events."""

    model_config = ConfigDict(extra="allow")

    event_index: int | None = None
    event_type: str
    asset: dict[str, Any] | None = None
    stx_transfer_event: dict[str, Any] | None = None

    def to_transfer(self) -> TransferEvent | None:
        """Decode an STX transfer, or None for any other event kind."""
        if self.event_type == EventType.STX_TRANSFER.value and self.stx_transfer_event:
            payload = self.stx_transfer_event
        elif self.event_type == EventType.STX_ASSET.value and self.asset:
            asset_event_type = self.asset.get("asset_event_type")
            if asset_event_type and asset_event_type != "transfer":
                return None
            payload = self.asset
        else:
            return None

        recipient = payload.get("recipient") or ""
        if not recipient:
            return None
        return TransferEvent(
            sender_address=payload.get("sender") or "",
            recipient_address=recipient,
            amount=int(payload.get("amount") or 0),
            event_index=self.event_index,
        )


class TransactionEventListResponse(BaseModel):
    """Page of events for a transaction."""

    model_config = ConfigDict(extra="ignore")

    limit: int
    offset: int
    events: list[TransactionEvent] = Field(default_factory=list)
