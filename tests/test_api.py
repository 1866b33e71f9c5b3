"""API tests over an in-memory database with a fake chain and notifier."""
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from payrail.models.team import TeamMember

from tests.fakes import ALICE, BOB, BATCH_TX, DIRECT_TX


BATCH_PAYLOAD = {
    "transaction_id": BATCH_TX,
    "kind": "BATCH",
    "declared_total": 400,
    "period_reference": "2026-09",
    "organization_id": "org-1",
}


@pytest_asyncio.fixture
async def team(db_session):
    db_session.add_all([
        TeamMember(organization_id="org-1", name="Alice Nakamoto", email="alice@example.com", wallet_address=ALICE),
        TeamMember(organization_id="org-1", name="Bob Builder", email="bob@example.com", wallet_address=BOB),
    ])
    await db_session.commit()


@pytest.mark.asyncio
async def test_register_and_get(client):
    response = await client.post("/v1/disbursements", json=BATCH_PAYLOAD)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["transaction_id"] == BATCH_TX
    assert data["status"] == "BROADCAST"
    assert data["legs"] == []

    response = await client.get(f"/v1/disbursements/{BATCH_TX}")
    assert response.status_code == 200
    assert response.json()["data"]["declared_total"] == 400


@pytest.mark.asyncio
async def test_register_twice_is_idempotent_but_conflicts_are_rejected(client):
    assert (await client.post("/v1/disbursements", json=BATCH_PAYLOAD)).status_code == 201
    assert (await client.post("/v1/disbursements", json=BATCH_PAYLOAD)).status_code == 201

    response = await client.post("/v1/disbursements", json={**BATCH_PAYLOAD, "declared_total": 999})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_direct_requires_recipient(client):
    response = await client.post("/v1/disbursements", json={
        "transaction_id": DIRECT_TX,
        "kind": "DIRECT",
        "declared_total": 1_000_000,
    })

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_run_reports_and_records(client, team, notifier):
    await client.post("/v1/disbursements", json=BATCH_PAYLOAD)

    response = await client.post(f"/v1/disbursements/{BATCH_TX}/run")

    assert response.status_code == 200
    result = response.json()["data"]
    assert result["status"] == "NOTIFIED"
    assert result["legs_notified"] == 2
    assert result["ledger_record_id"]
    assert notifier.notify_disbursed.await_count == 2

    legs = (await client.get(f"/v1/disbursements/{BATCH_TX}/legs")).json()["data"]
    assert [(leg["recipient_address"], leg["amount"]) for leg in legs] == [(ALICE, 100), (BOB, 250)]
    assert [leg["recipient_display_name"] for leg in legs] == ["Alice Nakamoto", "Bob Builder"]

    history = (await client.get(f"/v1/disbursements/{BATCH_TX}/history", params={"stx_price": "2"})).json()["data"]
    assert [row["status"] for row in history] == ["Success", "Success"]
    assert history[0]["payroll_type"] == "Batch Payroll"
    assert history[0]["amount_stx"] == "0.000100"
    assert history[0]["explorer_link"].endswith(f"/txid/{BATCH_TX}?chain=testnet")

    records = (await client.get(f"/v1/ledger/{BATCH_TX}")).json()["data"]
    assert len(records) == 1
    assert records[0]["status"] == "NOTIFIED"
    assert records[0]["legs_total"] == 350

    verify = (await client.get(f"/v1/ledger/{BATCH_TX}/verify")).json()["data"]
    assert verify["is_valid"]
    assert verify["total_records"] == 1


@pytest.mark.asyncio
async def test_run_with_roster_uses_caller_contacts(client, notifier):
    await client.post("/v1/disbursements", json=BATCH_PAYLOAD)

    response = await client.post(f"/v1/disbursements/{BATCH_TX}/run", json={"roster": [
        {"address": ALICE, "name": "Alice", "email": "alice@roster.test"},
    ]})

    assert response.status_code == 200
    assert response.json()["data"]["legs_notified"] == 1
    assert response.json()["data"]["legs_skipped"] == 1
    notice = notifier.notify_disbursed.await_args.args[0]
    assert notice.recipient_contact == "alice@roster.test"


@pytest.mark.asyncio
async def test_unknown_disbursement_is_404(client):
    assert (await client.get("/v1/disbursements/0xmissing")).status_code == 404
    assert (await client.post("/v1/disbursements/0xmissing/run")).status_code == 404
    assert (await client.get("/v1/disbursements/0xmissing/history")).status_code == 404


@pytest.mark.asyncio
async def test_list_filters_by_status(client):
    await client.post("/v1/disbursements", json=BATCH_PAYLOAD)

    broadcast = (await client.get("/v1/disbursements", params={"status": "BROADCAST"})).json()["data"]
    failed = (await client.get("/v1/disbursements", params={"status": "FAILED"})).json()["data"]

    assert [d["transaction_id"] for d in broadcast] == [BATCH_TX]
    assert failed == []


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client):
    response = await client.get("/v1/disbursements", headers={"X-Correlation-ID": "corr-123"})

    assert response.headers["X-Correlation-ID"] == "corr-123"
    assert response.json()["correlation_id"] == "corr-123"


@pytest.mark.asyncio
async def test_health(client, monkeypatch):
    monkeypatch.setattr("payrail.main.ping_database", AsyncMock(return_value=True))

    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "ok"


@pytest.mark.asyncio
async def test_unhandled_error_returns_error_response(client):
    from payrail.main import app
    from payrail.api.deps import get_ledger_service

    def broken_ledger():
        raise RuntimeError("database exploded")

    app.dependency_overrides[get_ledger_service] = broken_ledger
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as raw_client:
        response = await raw_client.get(f"/v1/ledger/{BATCH_TX}")

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Internal server error"
    assert body["error_code"] == "INTERNAL_ERROR"
    assert body["correlation_id"]
    assert "database exploded" not in response.text
