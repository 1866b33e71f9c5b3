"""Custom exceptions for the Stacks API adapter."""

from __future__ import annotations

from typing import Any


class StacksAPIError(Exception):
    """Base exception for Stacks API errors."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class StacksAPINotFoundError(StacksAPIError):
    """Resource not found (404). Usually a transaction not yet indexed."""

    pass


class StacksAPIValidationError(StacksAPIError):
    """Malformed request (400/422)."""

    pass


class StacksAPIRateLimitError(StacksAPIError):
    """Rate limit exceeded (429)."""

    pass


class StacksAPIServerError(StacksAPIError):
    """Server-side error (5xx)."""

    pass


class StacksAPINetworkError(StacksAPIError):
    """Network connectivity error or timeout."""

    pass
