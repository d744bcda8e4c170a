"""
Unit tests for the validated-claim cache.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_promo.app.caching.claim_cache import AuthClaimCache


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def claim_cache(clock):
    return AuthClaimCache(clock=clock)


class TestAuthClaimCache:

    @pytest.mark.asyncio
    async def test_miss(self, claim_cache):
        assert await claim_cache.get_cached_claims("unknown") is None

    @pytest.mark.asyncio
    async def test_retrievable_before_expiry(self, claim_cache, clock):
        claims = {"sub": "user-1", "aud": "authenticated", "exp": 1_060}
        await claim_cache.save_token_claims("token-a", claims, 1_060)

        clock.now = 1_059.9
        assert await claim_cache.get_cached_claims("token-a") == claims

    @pytest.mark.asyncio
    async def test_absent_at_expiry_and_evicted(self, claim_cache, clock):
        await claim_cache.save_token_claims("token-a", {"sub": "user-1"}, 1_060)

        clock.now = 1_060
        assert await claim_cache.get_cached_claims("token-a") is None
        assert await claim_cache.size() == 0

    @pytest.mark.asyncio
    async def test_absent_after_expiry(self, claim_cache, clock):
        await claim_cache.save_token_claims("token-a", {"sub": "user-1"}, 1_060)

        clock.now = 5_000
        assert await claim_cache.get_cached_claims("token-a") is None

    @pytest.mark.asyncio
    async def test_save_overwrites(self, claim_cache, clock):
        await claim_cache.save_token_claims("token-a", {"sub": "old"}, 1_010)
        await claim_cache.save_token_claims("token-a", {"sub": "new"}, 2_000)

        clock.now = 1_500
        assert await claim_cache.get_cached_claims("token-a") == {"sub": "new"}
        assert await claim_cache.size() == 1

    @pytest.mark.asyncio
    async def test_no_sweep_without_reads(self, claim_cache, clock):
        for index in range(5):
            await claim_cache.save_token_claims(f"token-{index}", {"sub": str(index)}, 1_001)

        clock.now = 10_000
        # expired entries linger until a read finds them
        assert await claim_cache.size() == 5

    @pytest.mark.asyncio
    async def test_unbounded_by_default(self, claim_cache):
        for index in range(50):
            await claim_cache.save_token_claims(f"token-{index}", {}, 9_999)

        assert await claim_cache.size() == 50

    @pytest.mark.asyncio
    async def test_max_entries_evicts_least_recently_used(self, clock):
        cache = AuthClaimCache(max_entries=2, clock=clock)
        await cache.save_token_claims("a", {"sub": "a"}, 9_999)
        await cache.save_token_claims("b", {"sub": "b"}, 9_999)

        # touching "a" makes "b" the eviction candidate
        assert await cache.get_cached_claims("a") == {"sub": "a"}
        await cache.save_token_claims("c", {"sub": "c"}, 9_999)

        assert await cache.get_cached_claims("b") is None
        assert await cache.get_cached_claims("a") == {"sub": "a"}
        assert await cache.get_cached_claims("c") == {"sub": "c"}

    @pytest.mark.asyncio
    async def test_clear(self, claim_cache):
        await claim_cache.save_token_claims("a", {}, 9_999)
        await claim_cache.clear()
        assert await claim_cache.size() == 0
