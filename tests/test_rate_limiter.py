"""Tests for the fixed-window per-address rate limiter."""

from unittest.mock import AsyncMock

import pytest

from tiny_faucet.adapters.quota_store.base import QuotaRecord
from tiny_faucet.adapters.quota_store.in_memory import InMemoryQuotaStore
from tiny_faucet.core.errors import QuotaStoreUnavailableError
from tiny_faucet.services.rate_limiter import QuotaDecision, RateLimiter, ms_to_iso

DAY_MS = 86_400_000
ADDRESS = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"


@pytest.fixture
def store(clock) -> InMemoryQuotaStore:
    return InMemoryQuotaStore(clock=clock)


@pytest.fixture
def limiter(store, clock) -> RateLimiter:
    return RateLimiter(store, max_requests=3, window_ms=DAY_MS, clock=clock)


class TestCheckAndConsume:
    @pytest.mark.asyncio
    async def test_three_requests_then_denied(self, limiter, clock) -> None:
        start = clock()

        first = await limiter.check_and_consume(ADDRESS)
        assert first.allowed is True
        assert first.remaining == 2
        assert first.reset_at_ms == start + DAY_MS

        clock.advance(1000)
        second = await limiter.check_and_consume(ADDRESS)
        assert second.allowed is True
        assert second.remaining == 1
        assert second.reset_at_ms == start + DAY_MS

        clock.advance(1000)
        third = await limiter.check_and_consume(ADDRESS)
        assert third.allowed is True
        assert third.remaining == 0
        assert third.reset_at_ms == start + DAY_MS

        clock.advance(1000)
        fourth = await limiter.check_and_consume(ADDRESS)
        assert fourth.allowed is False
        assert fourth.remaining == 0
        assert fourth.reset_at_ms == start + DAY_MS
        assert fourth.retry_after_seconds == (DAY_MS - 3000) // 1000

    @pytest.mark.asyncio
    async def test_denied_request_does_not_consume(self, limiter, store) -> None:
        for _ in range(3):
            await limiter.check_and_consume(ADDRESS)

        await limiter.check_and_consume(ADDRESS)
        await limiter.check_and_consume(ADDRESS)

        record = await store.get("ratelimit:" + ADDRESS.lower())
        assert record.count == 3

    @pytest.mark.asyncio
    async def test_window_does_not_slide(self, limiter, clock) -> None:
        start = clock()
        await limiter.check_and_consume(ADDRESS)

        clock.advance(DAY_MS - 10)
        decision = await limiter.check_and_consume(ADDRESS)

        assert decision.reset_at_ms == start + DAY_MS

    @pytest.mark.asyncio
    async def test_new_window_after_reset(self, limiter, clock) -> None:
        for _ in range(3):
            await limiter.check_and_consume(ADDRESS)

        clock.advance(DAY_MS)
        decision = await limiter.check_and_consume(ADDRESS)

        assert decision.allowed is True
        assert decision.remaining == 2
        assert decision.reset_at_ms == clock() + DAY_MS

    @pytest.mark.asyncio
    async def test_stale_record_treated_as_absent(self, clock) -> None:
        store = AsyncMock()
        store.get.return_value = QuotaRecord(count=3, reset_at_ms=clock() - 1)
        limiter = RateLimiter(store, max_requests=3, window_ms=DAY_MS, clock=clock)

        decision = await limiter.check_and_consume(ADDRESS)

        assert decision.allowed is True
        assert decision.remaining == 2
        store.set_with_expiry.assert_awaited_once()
        _, record, ttl = store.set_with_expiry.await_args.args
        assert record == QuotaRecord(count=1, reset_at_ms=clock() + DAY_MS)
        assert ttl == DAY_MS

    @pytest.mark.asyncio
    async def test_increment_keeps_ttl_aligned_with_reset(self, clock) -> None:
        store = AsyncMock()
        reset_at = clock() + 5_000
        store.get.return_value = QuotaRecord(count=1, reset_at_ms=reset_at)
        limiter = RateLimiter(store, max_requests=3, window_ms=DAY_MS, clock=clock)

        await limiter.check_and_consume(ADDRESS)

        key, record, ttl = store.set_with_expiry.await_args.args
        assert key == "ratelimit:" + ADDRESS.lower()
        assert record == QuotaRecord(count=2, reset_at_ms=reset_at)
        assert ttl == 5_000

    @pytest.mark.asyncio
    async def test_addresses_are_case_insensitive(self, limiter) -> None:
        await limiter.check_and_consume(ADDRESS.lower())
        await limiter.check_and_consume(ADDRESS.upper().replace("0X", "0x"))
        decision = await limiter.check_and_consume(ADDRESS)

        assert decision.remaining == 0

    @pytest.mark.asyncio
    async def test_addresses_are_independent(self, limiter) -> None:
        for _ in range(3):
            await limiter.check_and_consume(ADDRESS)

        other = await limiter.check_and_consume("0x" + "ab" * 20)

        assert other.allowed is True
        assert other.remaining == 2

    @pytest.mark.asyncio
    async def test_retry_after_rounds_up(self, clock) -> None:
        store = AsyncMock()
        store.get.return_value = QuotaRecord(count=3, reset_at_ms=clock() + 1_001)
        limiter = RateLimiter(store, max_requests=3, window_ms=DAY_MS, clock=clock)

        decision = await limiter.check_and_consume(ADDRESS)

        assert decision.retry_after_seconds == 2
        store.set_with_expiry.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_single_request_window(self, store, clock) -> None:
        limiter = RateLimiter(store, max_requests=1, window_ms=1_000, clock=clock)

        assert (await limiter.check_and_consume(ADDRESS)).remaining == 0
        assert (await limiter.check_and_consume(ADDRESS)).allowed is False

    @pytest.mark.asyncio
    async def test_store_fault_propagates(self, clock) -> None:
        store = AsyncMock()
        store.get.side_effect = QuotaStoreUnavailableError(
            code="quota_store_unavailable", message="down"
        )
        limiter = RateLimiter(store, max_requests=3, window_ms=DAY_MS, clock=clock)

        with pytest.raises(QuotaStoreUnavailableError):
            await limiter.check_and_consume(ADDRESS)

    @pytest.mark.asyncio
    async def test_empty_address_rejected(self, limiter) -> None:
        with pytest.raises(ValueError):
            await limiter.check_and_consume("  ")


class TestInspect:
    @pytest.mark.asyncio
    async def test_fresh_address(self, limiter) -> None:
        snapshot = await limiter.inspect(ADDRESS)

        assert snapshot.count == 0
        assert snapshot.remaining == 3
        assert snapshot.reset_at_ms is None
        assert snapshot.reset_at is None

    @pytest.mark.asyncio
    async def test_reports_usage_without_consuming(self, limiter, clock) -> None:
        await limiter.check_and_consume(ADDRESS)

        for _ in range(5):
            snapshot = await limiter.inspect(ADDRESS)

        assert snapshot.count == 1
        assert snapshot.remaining == 2
        assert snapshot.reset_at_ms == clock() + DAY_MS
        assert (await limiter.check_and_consume(ADDRESS)).remaining == 1

    @pytest.mark.asyncio
    async def test_expired_window_reads_fresh(self, limiter, clock) -> None:
        await limiter.check_and_consume(ADDRESS)
        clock.advance(DAY_MS)

        snapshot = await limiter.inspect(ADDRESS)

        assert snapshot.count == 0
        assert snapshot.reset_at_ms is None


class TestConstruction:
    @pytest.mark.parametrize(
        "kwargs",
        [{"max_requests": 0, "window_ms": 1}, {"max_requests": 1, "window_ms": 0}],
    )
    def test_invalid_policy(self, store, kwargs) -> None:
        with pytest.raises(ValueError):
            RateLimiter(store, **kwargs)

    def test_properties(self, store) -> None:
        limiter = RateLimiter(store, max_requests=5, window_ms=60_000)
        assert limiter.max_requests == 5
        assert limiter.window_ms == 60_000


class TestDecisionHelpers:
    def test_headers_when_allowed(self) -> None:
        decision = QuotaDecision(allowed=True, limit=3, remaining=2, reset_at_ms=1_700_000_000_999)

        assert decision.to_headers() == {
            "X-RateLimit-Limit": "3",
            "X-RateLimit-Remaining": "2",
            "X-RateLimit-Reset": "1700000000",
        }

    def test_headers_when_denied(self) -> None:
        decision = QuotaDecision(
            allowed=False, limit=3, remaining=0, reset_at_ms=1_700_000_000_000, retry_after_seconds=42
        )

        assert decision.to_headers()["Retry-After"] == "42"

    def test_iso_timestamp(self) -> None:
        assert ms_to_iso(1_700_000_000_123) == "2023-11-14T22:13:20.123Z"
