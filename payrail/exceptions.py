"""Engine-level exceptions."""
from typing import Any


class DisbursementError(Exception):
    """Base exception for disbursement processing errors."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class DisbursementNotFoundError(DisbursementError):
    """No disbursement registered for the transaction id."""

    pass


class DisbursementConflictError(DisbursementError):
    """Transaction id already registered with different parameters."""

    pass


class InvalidTransitionError(DisbursementError):
    """State machine refused a transition."""

    pass


class LegExpansionError(DisbursementError):
    """Expansion requested for a disbursement that is not confirmed."""

    pass
