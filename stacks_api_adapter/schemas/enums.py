"""Enumerations for the Stacks API."""

from enum import Enum


class RawTxStatus(str, Enum):
    """tx_status values reported by the Hiro API."""

    SUCCESS = "success"
    PENDING = "pending"
    ABORT_BY_RESPONSE = "abort_by_response"
    ABORT_BY_POST_CONDITION = "abort_by_post_condition"
    DROPPED_REPLACE_BY_FEE = "dropped_replace_by_fee"
    DROPPED_REPLACE_ACROSS_FORK = "dropped_replace_across_fork"
    DROPPED_TOO_EXPENSIVE = "dropped_too_expensive"
    DROPPED_STALE_GARBAGE_COLLECT = "dropped_stale_garbage_collect"
    DROPPED_PROBLEMATIC = "dropped_problematic"


class ChainTxStatus(str, Enum):
    """Normalised transaction status consumed by the settlement engine."""

    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"
    UNKNOWN = "unknown"

    @classmethod
    def from_raw(cls, raw: str | None) -> "ChainTxStatus":
        """Collapse a raw tx_status into the four engine-level states."""
        if not raw:
            return cls.UNKNOWN
        value = raw.lower()
        if value == RawTxStatus.SUCCESS.value:
            return cls.SUCCESS
        if value == RawTxStatus.PENDING.value:
            return cls.PENDING
        if value.startswith("abort") or value.startswith("dropped"):
            return cls.FAILED
        return cls.UNKNOWN


class EventType(str, Enum):
    """Transaction event types that carry STX transfers."""

    STX_ASSET = "stx_asset"
    STX_TRANSFER = "stx_transfer_event"
    SMART_CONTRACT_LOG = "smart_contract_log"
    FUNGIBLE_TOKEN_ASSET = "fungible_token_asset"
    NON_FUNGIBLE_TOKEN_ASSET = "non_fungible_token_asset"
    STX_LOCK = "stx_lock"
