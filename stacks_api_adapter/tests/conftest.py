"""Pytest configuration and fixtures."""

import pytest


@pytest.fixture
def tx_id() -> str:
    """A testnet transaction id."""
    return "0x5c4b0b8a9d3e3c3a1f6f2e1d0c9b8a7f6e5d4c3b2a1908f7e6d5c4b3a2918070"


@pytest.fixture
def mock_settings():
    """Create test settings."""
    from stacks_api_adapter.config import StacksAPISettings

    return StacksAPISettings(
        network="testnet",
        retry_attempts=1,  # Disable retries for faster tests
        events_page_size=2,
    )
