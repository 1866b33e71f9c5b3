"""Hiro Stacks API client."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import StacksAPISettings
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
    Transaction,
    TransactionEventListResponse,
    TransferEvent,
)


class StacksAPIClient:
    """Async client for the Hiro Stacks blockchain API.

    Usage:
        async with StacksAPIClient(settings) as client:
            status = await client.get_transaction_status(tx_id)
    """

    def __init__(self, settings: StacksAPISettings | None = None):
        """Initialize client.

        Args:
            settings: Stacks API settings. If not provided, loads from environment.
        """
        self.settings = settings or StacksAPISettings()
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "StacksAPIClient":
        """Enter async context."""
        headers = {"Accept": "application/json"}
        if self.settings.api_key:
            headers["x-api-key"] = self.settings.api_key
        self._client = httpx.AsyncClient(
            base_url=self.settings.base_url,
            timeout=httpx.Timeout(self.settings.timeout_seconds),
            headers=headers,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get HTTP client, ensuring it's initialized."""
        if self._client is None:
            raise RuntimeError(
                "Client not initialized. Use 'async with StacksAPIClient() as client:'"
            )
        return self._client

    def _build_endpoint(
        self, path: str, params: dict[str, Any] | None = None
    ) -> str:
        """Build endpoint path with query parameters, dropping None values."""
        if not params:
            return path
        filtered = {k: v for k, v in params.items() if v is not None}
        if not filtered:
            return path
        return f"{path}?{urlencode(filtered)}"

    def _handle_error(self, response: httpx.Response) -> None:
        """Raise appropriate exception for error response.

        Raises:
            StacksAPINotFoundError: For 404 responses.
            StacksAPIValidationError: For 400/422 responses.
            StacksAPIRateLimitError: For 429 responses.
            StacksAPIServerError: For 5xx responses.
            StacksAPIError: For other error responses.
        """
        if response.is_success:
            return

        try:
            details = response.json()
        except ValueError:
            details = response.text

        status = response.status_code
        message = f"HTTP {status}"

        if status == 404:
            raise StacksAPINotFoundError(message, details)
        elif status in (400, 422):
            raise StacksAPIValidationError(message, details)
        elif status == 429:
            raise StacksAPIRateLimitError(message, details)
        elif status >= 500:
            raise StacksAPIServerError(message, details)
        else:
            raise StacksAPIError(message, details)

    def _create_retry_decorator(self):
        """Create retry decorator with current settings."""
        return retry(
            retry=retry_if_exception_type(
                (StacksAPIServerError, StacksAPINetworkError, StacksAPIRateLimitError)
            ),
            stop=stop_after_attempt(self.settings.retry_attempts),
            wait=wait_exponential(
                min=self.settings.retry_min_wait_seconds,
                max=self.settings.retry_max_wait_seconds,
            ),
            reraise=True,
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make a request to the API and return the decoded JSON body."""
        endpoint = self._build_endpoint(path, params)

        @self._create_retry_decorator()
        async def _do_request():
            try:
                response = await self.client.request(method=method, url=endpoint)
            except httpx.TimeoutException as e:
                raise StacksAPINetworkError(f"Timeout: {e}")
            except httpx.NetworkError as e:
                raise StacksAPINetworkError(f"Network error: {e}")

            self._handle_error(response)
            return response.json()

        return await _do_request()

    # ==================== Transactions API ====================

    async def get_transaction(self, tx_id: str) -> Transaction:
        """Get a transaction by id.

        Args:
            tx_id: Transaction id (0x-prefixed hex).

        Returns:
            Transaction details.

        Raises:
            StacksAPINotFoundError: If the node has not indexed the transaction.
        """
        data = await self._request("GET", f"/extended/v1/tx/{tx_id}")
        return Transaction(**data)

    async def get_transaction_status(self, tx_id: str) -> ChainTxStatus:
        """Get the normalised status of a transaction.

        A transaction the API does not know yet is reported as UNKNOWN rather
        than raised, since freshly broadcast transactions take a while to be
        indexed.
        """
        try:
            tx = await self.get_transaction(tx_id)
        except StacksAPINotFoundError:
            return ChainTxStatus.UNKNOWN
        return tx.status

    async def list_transaction_events(
        self, tx_id: str, limit: int | None = None, offset: int = 0
    ) -> TransactionEventListResponse:
        """List one page of events emitted by a transaction.

        Args:
            tx_id: Transaction id.
            limit: Page size. Defaults to settings.events_page_size.
            offset: Number of events to skip.

        Returns:
            Page of raw events.
        """
        data = await self._request(
            "GET",
            "/extended/v1/tx/events",
            params={
                "tx_id": tx_id,
                "limit": limit or self.settings.events_page_size,
                "offset": offset,
            },
        )
        return TransactionEventListResponse(**data)

    async def get_transfer_events(self, tx_id: str) -> list[TransferEvent]:
        """Collect every STX transfer emitted by a transaction, in event order.

        Non-transfer events (contract logs, token events, mints, burns) are
        skipped.
        """
        transfers: list[TransferEvent] = []
        offset = 0
        page_size = self.settings.events_page_size

        while True:
            page = await self.list_transaction_events(tx_id, limit=page_size, offset=offset)
            for event in page.events:
                transfer = event.to_transfer()
                if transfer is not None:
                    transfers.append(transfer)
            if len(page.events) < page_size:
                break
            offset += len(page.events)

        return transfers
