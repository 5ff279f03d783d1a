"""HTTP-level tests for the faucet API.

The ledger is replaced by an in-memory fake and the limiter runs on an
in-memory store with a controllable clock.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from tiny_faucet.adapters.quota_store.in_memory import InMemoryQuotaStore
from tiny_faucet.api.dependencies import (
    get_funding_service,
    get_ledger_client,
    get_quota_store,
    get_rate_limiter,
)
from tiny_faucet.api.routes.home import describe_window
from tiny_faucet.core.config import settings
from tiny_faucet.core.errors import (
    LedgerUnavailableError,
    QuotaStoreUnavailableError,
    TransferRejectedError,
)
from tiny_faucet.main import app
from tiny_faucet.services.funding_service import FundingService
from tiny_faucet.services.rate_limiter import RateLimiter

DAY_MS = 86_400_000


@pytest.fixture
def store(clock) -> InMemoryQuotaStore:
    return InMemoryQuotaStore(clock=clock)


@pytest.fixture
def limiter(store, clock) -> RateLimiter:
    return RateLimiter(store, max_requests=3, window_ms=DAY_MS, clock=clock)


@pytest.fixture
def client(fake_ledger, limiter, store):
    async def no_sleep(_seconds: float) -> None:
        return None

    funding = FundingService(fake_ledger, replenish_grace_seconds=0, sleep=no_sleep)
    app.dependency_overrides[get_ledger_client] = lambda: fake_ledger
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_funding_service] = lambda: funding
    app.dependency_overrides[get_quota_store] = lambda: store
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


def _fund(client: TestClient, address: str, token: str = "pathUSD", amount: int = 1000):
    return client.post("/api/fund", json={"address": address, "token": token, "amount": amount})


class TestFund:
    def test_success(self, client, fake_ledger, recipient):
        resp = _fund(client, recipient, "AlphaUSD", 5000)

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Tokens sent successfully"
        assert body["data"]["recipient"] == recipient
        assert body["data"]["token"] == "AlphaUSD"
        assert body["data"]["token_address"] == "0x20c0000000000000000000000000000000000001"
        assert body["data"]["amount"] == 5000
        tx_hash = body["data"]["tx_hash"]
        assert body["data"]["explorer_url"].endswith(f"/tx/{tx_hash}")
        assert body["rate_limit"]["remaining"] == 2
        assert body["rate_limit"]["reset_at"].endswith("Z")
        assert fake_ledger.transfers == [("AlphaUSD", recipient, 5000)]

    def test_fourth_request_is_rejected(self, client, fake_ledger, recipient):
        for expected_remaining in (2, 1, 0):
            resp = _fund(client, recipient)
            assert resp.json()["rate_limit"]["remaining"] == expected_remaining

        resp = _fund(client, recipient)

        assert resp.status_code == 429
        error = resp.json()["error"]
        assert error["code"] == "rate_limit_exceeded"
        assert error["details"]["remaining"] == 0
        assert error["details"]["limit"] == 3
        assert resp.headers["X-RateLimit-Limit"] == "3"
        assert resp.headers["X-RateLimit-Remaining"] == "0"
        assert int(resp.headers["Retry-After"]) > 0
        assert len(fake_ledger.transfers) == 3

    def test_window_resets(self, client, clock, recipient):
        for _ in range(3):
            _fund(client, recipient)
        clock.advance(DAY_MS)

        resp = _fund(client, recipient)

        assert resp.status_code == 200
        assert resp.json()["rate_limit"]["remaining"] == 2

    def test_quota_is_case_insensitive(self, client, recipient):
        _fund(client, recipient.lower())
        _fund(client, recipient)
        resp = _fund(client, recipient.lower())

        assert resp.json()["rate_limit"]["remaining"] == 0

    @pytest.mark.parametrize(
        "payload",
        [
            {"address": "0x123", "token": "pathUSD", "amount": 1000},
            {"address": "0x742d35Cc6634C0532925a3b844Bc454e4438f44e", "token": "DogeUSD", "amount": 1000},
            {"address": "0x742d35Cc6634C0532925a3b844Bc454e4438f44e", "token": "pathUSD", "amount": 2000},
            {"token": "pathUSD", "amount": 1000},
        ],
    )
    def test_invalid_body_is_400(self, client, fake_ledger, payload):
        resp = client.post("/api/fund", json=payload)

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_failed"
        assert fake_ledger.transfers == []

    def test_invalid_body_does_not_consume_quota(self, client, recipient):
        client.post("/api/fund", json={"address": recipient, "token": "x", "amount": 1})

        status = client.get(f"/api/rate-limit/{recipient}").json()
        assert status["requests_used"] == 0

    def test_replenishes_when_short(self, client, fake_ledger, recipient):
        fake_ledger.balances["BetaUSD"] = Decimal(3000)
        fake_ledger.replenished_balances = {"BetaUSD": Decimal(1_000_000)}

        resp = _fund(client, recipient, "BetaUSD", 5000)

        assert resp.status_code == 200
        assert fake_ledger.replenish_calls == 1

    def test_insufficient_funds_is_503(self, client, fake_ledger, recipient):
        fake_ledger.balances["ThetaUSD"] = Decimal(0)

        resp = _fund(client, recipient, "ThetaUSD", 10000)

        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "insufficient_funds"
        assert fake_ledger.replenish_calls == 1

    def test_failed_transfer_still_consumes_quota(self, client, fake_ledger, recipient):
        fake_ledger.transfer_error = TransferRejectedError(code="transfer_rejected", message="reverted")

        resp = _fund(client, recipient)
        assert resp.status_code == 502

        fake_ledger.transfer_error = None
        assert _fund(client, recipient).json()["rate_limit"]["remaining"] == 1

    def test_ledger_outage_is_503(self, client, fake_ledger, recipient):
        fake_ledger.balance_error = LedgerUnavailableError(code="ledger_unavailable", message="down")

        resp = _fund(client, recipient)

        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "ledger_unavailable"


class TestRateLimitStatus:
    def test_fresh_address(self, client, recipient):
        resp = client.get(f"/api/rate-limit/{recipient}")

        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "address": recipient,
            "requests_used": 0,
            "requests_remaining": 3,
            "reset_at": None,
        }

    def test_reflects_usage_without_consuming(self, client, recipient):
        _fund(client, recipient)

        first = client.get(f"/api/rate-limit/{recipient}").json()
        second = client.get(f"/api/rate-limit/{recipient}").json()

        assert first == second
        assert first["requests_used"] == 1
        assert first["requests_remaining"] == 2
        assert first["reset_at"].endswith("Z")

    def test_invalid_address(self, client):
        resp = client.get("/api/rate-limit/0xnothex")

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_address"


class TestBalance:
    def test_balance(self, client):
        resp = client.get("/api/balance/pathUSD")

        assert resp.status_code == 200
        body = resp.json()
        assert body["token"] == "pathUSD"
        assert body["balance"] == "100000"
        assert body["address"] == "0x20c0000000000000000000000000000000000000"

    def test_unknown_token(self, client):
        resp = client.get("/api/balance/DogeUSD")

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_token"


class TestInfoAndHealth:
    def test_info(self, client, fake_ledger):
        body = client.get("/api/info").json()

        assert [t["name"] for t in body["supported_tokens"]] == ["pathUSD", "AlphaUSD", "BetaUSD", "ThetaUSD"]
        assert body["allowed_amounts"] == [1000, 5000, 10000]
        assert body["wallet_address"] == fake_ledger.wallet_address
        assert body["rate_limit"]["max_requests"] == 3

    def test_readiness(self, client, fake_ledger):
        resp = client.get("/api/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["chain_id"] == "42431"
        assert body["wallet"] == fake_ledger.wallet_address

    def test_readiness_when_ledger_down(self, client, fake_ledger):
        fake_ledger.balance_error = LedgerUnavailableError(code="ledger_unavailable", message="down")

        resp = client.get("/api/health")

        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "service_unhealthy"

    def test_readiness_when_quota_store_down(self, client, store):
        store.ping = AsyncMock(
            side_effect=QuotaStoreUnavailableError(
                code="quota_store_unavailable",
                message="Quota store is not reachable",
                details={"backend": "redis", "reason": "connection refused"},
            )
        )

        resp = client.get("/api/health")

        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "service_unhealthy"

    def test_readiness_when_quota_store_ping_fails(self, client, store):
        store.ping = AsyncMock(return_value=False)

        resp = client.get("/api/health")

        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "service_unhealthy"

    def test_liveness(self, client):
        assert client.get("/health").json() == {"status": "ok", "service": "tempo-tiny-faucet"}

    def test_landing_page(self, client, fake_ledger):
        resp = client.get("/")

        assert resp.status_code == 200
        assert "text/html" in resp.headers["content-type"]
        assert fake_ledger.wallet_address in resp.text

    def test_openapi_documents_error_envelope(self, client):
        schema = client.get("/openapi.json").json()

        assert "ErrorResponse" in schema["components"]["schemas"]
        assert "429" in schema["paths"]["/api/fund"]["post"]["responses"]


@pytest.mark.parametrize(
    "window_ms, expected",
    [
        (86_400_000, "24 hours"),
        (3_600_000, "1 hour"),
        (1_800_000, "30 minutes"),
        (90_000, "90 seconds"),
        (1_000, "1 second"),
        (1_500, "1500 ms"),
    ],
)
def test_describe_window(window_ms, expected):
    assert describe_window(window_ms) == expected


def test_landing_page_short_window(client):
    with patch.object(settings.rate_limit, "window_ms", 1_800_000):
        resp = client.get("/")

    assert "requests per 30 minutes" in resp.text
    assert "0 hours" not in resp.text


def test_fund_rejects_bad_checksum(client, fake_ledger):
    resp = _fund(client, "0x742d35CC6634C0532925a3b844Bc454e4438f44e")

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_failed"
    assert fake_ledger.transfers == []


def test_rate_limit_status_rejects_bad_checksum(client):
    resp = client.get("/api/rate-limit/0x742d35CC6634C0532925a3b844Bc454e4438f44e")

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_address"
