"""Stacks API schemas."""

from .enums import ChainTxStatus, EventType, RawTxStatus
from .transactions import (
    ContractCall,
    Transaction,
    TransactionEvent,
    TransactionEventListResponse,
    TransferEvent,
    TxResult,
)

__all__ = [
    # Enums
    "ChainTxStatus",
    "EventType",
    "RawTxStatus",
    # Transactions
    "ContractCall",
    "Transaction",
    "TransactionEvent",
    "TransactionEventListResponse",
    "TransferEvent",
    "TxResult",
]
