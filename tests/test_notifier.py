"""Tests for the Mailjet notifier."""
import json

import httpx
import pytest

from payrail.services.notifier import NOTIFICATIONS_DISABLED, MailjetNotifier
from payrail.services.ports import DisbursedNotice

from tests.fakes import BATCH_TX


@pytest.fixture
def notice() -> DisbursedNotice:
    return DisbursedNotice(
        recipient_name="Alice <Nakamoto>",
        recipient_contact="alice@example.com",
        amount=187_669_000,
        transaction_id=BATCH_TX,
        organization_name="Acme Labs",
    )


def mailjet_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.mailjet.com")


@pytest.mark.asyncio
async def test_sends_payment_email(settings, notice):
    settings.mailjet_api_key = "key"
    settings.mailjet_secret_key = "secret"
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["auth"] = request.headers["authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"Messages": [{"Status": "success"}]})

    async with mailjet_client(handler) as client:
        result = await MailjetNotifier(settings, client=client).notify_disbursed(notice)

    assert result.sent
    assert result.error is None
    assert captured["path"] == "/v3.1/send"
    assert captured["auth"].startswith("Basic ")
    message = captured["body"]["Messages"][0]
    assert message["To"] == [{"Email": "alice@example.com", "Name": "Alice <Nakamoto>"}]
    assert "187.669000 STX" in message["Subject"]
    assert "Acme Labs" in message["Subject"]
    assert "&lt;Nakamoto&gt;" in message["HTMLPart"]
    assert f"/txid/{BATCH_TX}?chain=testnet" in message["HTMLPart"]


@pytest.mark.asyncio
async def test_http_error_is_reported_not_raised(settings, notice):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"ErrorMessage": "unauthorized"})

    async with mailjet_client(handler) as client:
        result = await MailjetNotifier(settings, client=client).notify_disbursed(notice)

    assert not result.sent
    assert result.error == "HTTP 401"


@pytest.mark.asyncio
async def test_network_error_is_reported_not_raised(settings, notice):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with mailjet_client(handler) as client:
        result = await MailjetNotifier(settings, client=client).notify_disbursed(notice)

    assert not result.sent
    assert "connection refused" in result.error


@pytest.mark.asyncio
async def test_rejected_message_status(settings, notice):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"Messages": [{"Status": "error"}]})

    async with mailjet_client(handler) as client:
        result = await MailjetNotifier(settings, client=client).notify_disbursed(notice)

    assert not result.sent
    assert "error" in result.error


@pytest.mark.asyncio
async def test_disabled_notifications_short_circuit(settings, notice):
    settings.notifications_enabled = False
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"Messages": [{"Status": "success"}]})

    async with mailjet_client(handler) as client:
        result = await MailjetNotifier(settings, client=client).notify_disbursed(notice)

    assert not result.sent
    assert result.error == NOTIFICATIONS_DISABLED
    assert calls == []
