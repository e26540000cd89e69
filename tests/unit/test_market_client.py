"""Unit tests for MarketDataClient."""

import httpx
import pytest

from whale_tracker.clients.market_client import MarketDataClient, parse_price
from whale_tracker.config import MarketDataConfig
from whale_tracker.utils.error_handling import MarketDataError


def make_client(routes, calls, api_key=None, attempts=2):
    """Build a client whose requests are answered from ``routes`` by URL path.

    A route value may be a list of ``(status, body)`` pairs served in order.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        route = routes[request.url.path]
        status, body = route.pop(0) if isinstance(route, list) else route
        return httpx.Response(status, json=body)

    config = MarketDataConfig(
        etherscan_url="https://etherscan.test/api",
        etherscan_api_key=api_key,
        coingecko_url="https://coingecko.test/api/v3",
        dexscreener_url="https://dexscreener.test",
        backoff_attempts=attempts,
        backoff_base_delay=0.0,
        backoff_jitter=0.0,
    )
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MarketDataClient(config, http_client=http_client)


class TestParsePrice:
    """Test suite for parse_price."""

    def test_valid(self):
        assert parse_price("3012.55") == 3012.55

    def test_invalid_values(self):
        assert parse_price(None) is None
        assert parse_price("abc") is None
        assert parse_price(0) is None
        assert parse_price(float("nan")) is None


class TestNativePrice:
    """Test suite for native token price lookups."""

    @pytest.mark.asyncio
    async def test_etherscan_first_for_ethereum(self, eth_chain_config):
        # Setup
        calls = []
        client = make_client({
            "/api": (200, {"status": "1", "result": {"ethusd": "3100.5"}}),
        }, calls, api_key="key")

        # Execute
        price = await client.get_native_price(eth_chain_config)

        # Verify
        assert price == 3100.5
        assert calls == ["/api"]

    @pytest.mark.asyncio
    async def test_coingecko_fallback(self, eth_chain_config):
        """A failing Etherscan lookup falls through to CoinGecko."""
        # Setup
        calls = []
        client = make_client({
            "/api": (500, {}),
            "/api/v3/simple/price": (200, {"ethereum": {"usd": 2999.0}}),
        }, calls, api_key="key")

        # Execute
        price = await client.get_native_price(eth_chain_config)

        # Verify
        assert price == 2999.0
        assert calls == ["/api", "/api", "/api/v3/simple/price"]

    @pytest.mark.asyncio
    async def test_no_api_key_skips_etherscan(self, eth_chain_config):
        calls = []
        client = make_client({"/api/v3/simple/price": (200, {"ethereum": {"usd": 3000}})}, calls)
        assert await client.get_native_price(eth_chain_config) == 3000.0
        assert calls == ["/api/v3/simple/price"]

    @pytest.mark.asyncio
    async def test_all_sources_fail(self, sol_chain_config):
        calls = []
        client = make_client({"/api/v3/simple/price": (503, {})}, calls)
        assert await client.get_native_price(sol_chain_config) is None


class TestDexscreener:
    """Test suite for pair and discovery lookups."""

    @pytest.mark.asyncio
    async def test_pairs_filtered_by_chain_and_cached(self):
        # Setup
        calls = []
        pairs = [{"chainId": "solana", "pairAddress": "a"}, {"chainId": "bsc", "pairAddress": "b"}]
        client = make_client({"/latest/dex/tokens/Mint1": (200, {"pairs": pairs})}, calls)

        # Execute
        first = await client.get_token_pairs("Mint1", chain="solana")
        second = await client.get_token_pairs("Mint1", chain="solana")

        # Verify
        assert [p["pairAddress"] for p in first] == ["a"]
        assert second == first
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_no_pairs(self):
        calls = []
        client = make_client({"/latest/dex/tokens/Mint2": (200, {"pairs": None})}, calls)
        assert await client.get_token_pairs("Mint2") == []

    @pytest.mark.asyncio
    async def test_client_error_fails_fast(self):
        """A 404 is not retried."""
        # Setup
        calls = []
        client = make_client({"/latest/dex/tokens/Mint3": (404, {})}, calls, attempts=5)

        # Execute / Verify
        with pytest.raises(MarketDataError) as exc_info:
            await client.get_token_pairs("Mint3")
        assert exc_info.value.http_status == 404
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_solana_token_pairs_list_body(self):
        calls = []
        client = make_client({"/token-pairs/v1/solana/Mint4": (200, [{"pairAddress": "p"}])}, calls)
        assert await client.get_solana_token_pairs("Mint4") == [{"pairAddress": "p"}]

    @pytest.mark.asyncio
    async def test_discovery_deduplicates_and_skips_failed_feeds(self):
        # Setup
        calls = []
        client = make_client({
            "/token-boosts/latest/v1": (200, [
                {"chainId": "solana", "tokenAddress": "A"},
                {"chainId": "bsc", "tokenAddress": "0xb"},
            ]),
            "/token-boosts/top/v1": (404, {}),
            "/token-profiles/latest/v1": (200, [
                {"chainId": "solana", "tokenAddress": "A"},
                {"chainId": "solana", "tokenAddress": "C"},
                {"chainId": "solana"},
            ]),
        }, calls)

        # Execute
        tokens = await client.get_discovery_tokens()

        # Verify
        assert tokens == [
            {"chainId": "solana", "tokenAddress": "A"},
            {"chainId": "bsc", "tokenAddress": "0xb"},
            {"chainId": "solana", "tokenAddress": "C"},
        ]
