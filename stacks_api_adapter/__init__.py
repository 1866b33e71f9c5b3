"""Stacks API Adapter - async Python client for the Hiro Stacks API."""

from .client import StacksAPIClient
from .config import MAINNET_BASE_URL, TESTNET_BASE_URL, StacksAPISettings
from .exceptions import (
    StacksAPIError,
    StacksAPINetworkError,
    StacksAPINotFoundError,
    StacksAPIRateLimitError,
    StacksAPIServerError,
    StacksAPIValidationError,
)
from .schemas import (
    ChainTxStatus,
    ContractCall,
    EventType,
    RawTxStatus,
    Transaction,
    TransactionEvent,
    TransactionEventListResponse,
    TransferEvent,
    TxResult,
)

__version__ = "0.1.0"

__all__ = [
    # Main classes
    "StacksAPIClient",
    "StacksAPISettings",
    "MAINNET_BASE_URL",
    "TESTNET_BASE_URL",
    # Exceptions
    "StacksAPIError",
    "StacksAPINotFoundError",
    "StacksAPIValidationError",
    "StacksAPIRateLimitError",
    "StacksAPIServerError",
    "StacksAPINetworkError",
    # Enums
    "ChainTxStatus",
    "EventType",
    "RawTxStatus",
    # Schemas
    "ContractCall",
    "Transaction",
    "TransactionEvent",
    "TransactionEventListResponse",
    "TransferEvent",
    "TxResult",
]
