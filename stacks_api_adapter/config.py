"""Configuration settings for the Stacks API adapter."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAINNET_BASE_URL = "https://api.hiro.so"
TESTNET_BASE_URL = "https://api.testnet.hiro.so"


class StacksAPISettings(BaseSettings):
    """Hiro Stacks API configuration.

    All settings can be configured via environment variables with STACKS_API_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="STACKS_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    network: str = Field(
        default="testnet",
        description="Stacks network: 'mainnet' or 'testnet'",
    )
    base_url: str | None = Field(
        default=None,
        description="API base URL. Derived from network when unset",
    )
    api_key: str | None = Field(
        default=None,
        description="Optional Hiro API key sent as x-api-key",
    )
    timeout_seconds: float = Field(
        default=15.0,
        description="HTTP request timeout in seconds",
    )
    retry_attempts: int = Field(
        default=3,
        description="Number of retry attempts for transient failures",
    )
    retry_min_wait_seconds: float = Field(
        default=1.0,
        description="Minimum wait time between retries in seconds",
    )
    retry_max_wait_seconds: float = Field(
        default=10.0,
        description="Maximum wait time between retries in seconds",
    )
    events_page_size: int = Field(
        default=50,
        description="Page size when listing transaction events",
    )

    @model_validator(mode="after")
    def derive_base_url(self):
        """Pick the Hiro endpoint for the configured network."""
        if not self.base_url:
            self.base_url = (
                MAINNET_BASE_URL if self.network == "mainnet" else TESTNET_BASE_URL
            )
        self.base_url = self.base_url.rstrip("/")
        return self
