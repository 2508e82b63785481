"""End-to-end tests for the REST API over an in-memory database.

The app's providers are overridden with the test DealService and ledger,
so no lifespan (and no PostgreSQL or Redis) is needed.
"""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio
from conftest import ARBITER, BUYER, CARRIER, CUSTODY, PRODUCER, TOTAL

from trade_escrow.api.deps import get_deal_service, get_token_ledger
from trade_escrow.domain.identifiers import deal_id_from_reference
from trade_escrow.main import create_app

DEAL_ID = deal_id_from_reference("api-batch-7")


def _as(identity: str) -> dict[str, str]:
    return {"X-Caller-Identity": identity}


@pytest_asyncio.fixture
async def client(service, ledger):
    app = create_app()
    app.dependency_overrides[get_deal_service] = lambda: service
    app.dependency_overrides[get_token_ledger] = lambda: ledger
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _fund_and_lock(client: httpx.AsyncClient) -> httpx.Response:
    await client.post("/api/v1/ledger/mint", json={"identity": BUYER, "amount": TOTAL})
    await client.post("/api/v1/ledger/approve", json={"amount": TOTAL}, headers=_as(BUYER))
    return await client.post(
        "/api/v1/deals",
        json={
            "deal_id": DEAL_ID,
            "producer": PRODUCER,
            "carrier": CARRIER,
            "arbiter": ARBITER,
            "producer_amount": 1000,
            "carrier_amount": 325,
        },
        headers=_as(BUYER),
    )


class TestDealLifecycle:
    @pytest.mark.asyncio
    async def test_full_flow(self, client) -> None:
        resp = await _fund_and_lock(client)
        assert resp.status_code == 201
        body = resp.json()
        assert body["buyer"] == BUYER
        assert body["fee"] == 39
        assert body["status"] == "LOCKED"

        for role, identity in (("producer", PRODUCER), ("carrier", CARRIER), ("buyer", BUYER)):
            resp = await client.post(f"/api/v1/deals/{DEAL_ID}/sign/{role}", headers=_as(identity))
            assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "RELEASE_AUTHORIZED"

        resp = await client.post(f"/api/v1/deals/{DEAL_ID}/finalize", headers=_as(ARBITER))
        assert resp.status_code == 200
        payout = resp.json()
        assert (payout["producer_take"], payout["carrier_take"], payout["arbiter_take"]) == (
            1000,
            325,
            39,
        )
        assert [r["recipient"] for r in payout["receipts"]] == [PRODUCER, CARRIER, ARBITER]

        resp = await client.get(f"/api/v1/ledger/balances/{CARRIER}")
        assert resp.json()["balance"] == 325

        resp = await client.get(f"/api/v1/deals/{DEAL_ID}")
        deal = resp.json()
        assert deal["producer_amount"] == 0
        assert deal["carrier_amount"] == 0
        assert deal["arbiter_acknowledged"] is True
        assert deal["status"] == "SETTLED"

        resp = await client.get(f"/api/v1/deals/{DEAL_ID}/events")
        events = resp.json()
        assert [e["event_type"] for e in events][-1] == "ARBITER_ACKNOWLEDGED"
        assert events[0]["metadata"]["total"] == "1364"

    @pytest.mark.asyncio
    async def test_second_finalize_conflicts(self, client) -> None:
        await _fund_and_lock(client)
        for role, identity in (("producer", PRODUCER), ("carrier", CARRIER), ("buyer", BUYER)):
            await client.post(f"/api/v1/deals/{DEAL_ID}/sign/{role}", headers=_as(identity))
        await client.post(f"/api/v1/deals/{DEAL_ID}/finalize", headers=_as(ARBITER))

        resp = await client.post(f"/api/v1/deals/{DEAL_ID}/finalize", headers=_as(ARBITER))

        assert resp.status_code == 409
        assert resp.json()["error"] == "ALREADY_SETTLED"


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_out_of_order(self, client) -> None:
        await _fund_and_lock(client)
        resp = await client.post(f"/api/v1/deals/{DEAL_ID}/sign/carrier", headers=_as(CARRIER))
        assert resp.status_code == 409
        assert resp.json()["error"] == "OUT_OF_ORDER"

    @pytest.mark.asyncio
    async def test_wrong_identity(self, client) -> None:
        await _fund_and_lock(client)
        resp = await client.post(f"/api/v1/deals/{DEAL_ID}/sign/producer", headers=_as(CARRIER))
        assert resp.status_code == 403
        assert resp.json()["error"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_missing_authorization(self, client) -> None:
        await _fund_and_lock(client)
        resp = await client.post(f"/api/v1/deals/{DEAL_ID}/finalize", headers=_as(ARBITER))
        assert resp.status_code == 409
        assert resp.json()["error"] == "MISSING_AUTHORIZATION"

    @pytest.mark.asyncio
    async def test_unfunded_buyer(self, client) -> None:
        resp = await client.post(
            "/api/v1/deals",
            json={
                "deal_id": DEAL_ID,
                "producer": PRODUCER,
                "carrier": CARRIER,
                "arbiter": ARBITER,
                "producer_amount": 1000,
                "carrier_amount": 325,
            },
            headers=_as(BUYER),
        )
        assert resp.status_code == 402
        assert resp.json()["error"] == "INSUFFICIENT_FUNDS"

        resp = await client.get(f"/api/v1/deals/{DEAL_ID}")
        assert resp.json()["exists"] is False

    @pytest.mark.asyncio
    async def test_payout_failure_reports_completed_transfers(self, client, ledger) -> None:
        await _fund_and_lock(client)
        for role, identity in (("producer", PRODUCER), ("carrier", CARRIER), ("buyer", BUYER)):
            await client.post(f"/api/v1/deals/{DEAL_ID}/sign/{role}", headers=_as(identity))
        ledger.frozen.add(ARBITER)

        resp = await client.post(f"/api/v1/deals/{DEAL_ID}/finalize", headers=_as(ARBITER))

        assert resp.status_code == 502
        body = resp.json()
        assert body["error"] == "PAYOUT_TRANSFER_FAILED"
        assert [r["role"] for r in body["completed"]] == ["producer", "carrier"]
        assert ledger.balance_of(CUSTODY) == 39

    @pytest.mark.asyncio
    async def test_malformed_deal_id(self, client) -> None:
        resp = await client.post("/api/v1/deals/0x1234/sign/producer", headers=_as(PRODUCER))
        assert resp.status_code == 422
        assert resp.json()["error"] == "INVALID_DEAL_ID"

    @pytest.mark.asyncio
    async def test_missing_caller_header(self, client) -> None:
        resp = await client.post(f"/api/v1/deals/{DEAL_ID}/sign/producer")
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_negative_amount_rejected_by_schema(self, client) -> None:
        resp = await client.post(
            "/api/v1/deals",
            json={
                "deal_id": DEAL_ID,
                "producer": PRODUCER,
                "carrier": CARRIER,
                "arbiter": ARBITER,
                "producer_amount": -1,
                "carrier_amount": 325,
            },
            headers=_as(BUYER),
        )
        assert resp.status_code == 422


class TestReads:
    @pytest.mark.asyncio
    async def test_unknown_deal_is_zeroed(self, client) -> None:
        resp = await client.get(f"/api/v1/deals/{deal_id_from_reference('ghost')}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["exists"] is False
        assert body["buyer"] == ""
        assert body["status"] is None

    @pytest.mark.asyncio
    async def test_status_of_unknown_deal(self, client) -> None:
        resp = await client.get(f"/api/v1/deals/{deal_id_from_reference('ghost')}/status")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_status_and_party_listing(self, client) -> None:
        await _fund_and_lock(client)

        resp = await client.get(f"/api/v1/deals/{DEAL_ID}/status")
        assert resp.json()["allowed_events"] == ["producer_signs"]

        resp = await client.get("/api/v1/deals", params={"party": CARRIER})
        assert [d["deal_id"] for d in resp.json()] == [DEAL_ID]

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client) -> None:
        resp = await client.get(
            f"/api/v1/deals/{DEAL_ID}", headers={"X-Request-ID": "trace-123"}
        )
        assert resp.headers["X-Request-ID"] == "trace-123"


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_reports_database(self, client, engine) -> None:
        with patch(
            "trade_escrow.infrastructure.database.engine.get_engine",
            return_value=engine,
        ):
            resp = await client.get("/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["database"] == "healthy"
        assert body["locks"] == "in-process"
