"""Market data HTTP client.

This module wraps the third-party price and pair discovery APIs:

- Etherscan ``stats/ethprice`` and CoinGecko ``simple/price`` for native token prices
- Dexscreener token pairs and boosted/profile discovery feeds

Every call goes through ``retry_with_backoff`` so transient failures are
retried with jittered exponential delays while client errors fail fast.
"""

import math
from typing import Any, Dict, List, Optional, Tuple

import httpx
from cachetools import TTLCache

from whale_tracker.config import ChainConfig, MarketDataConfig, get_market_data_config
from whale_tracker.logging_config import get_logger
from whale_tracker.utils.backoff import retry_with_backoff
from whale_tracker.utils.error_handling import MarketDataError

# Get logger
logger = get_logger(__name__)

DISCOVERY_PATHS = (
    "/token-boosts/latest/v1",
    "/token-boosts/top/v1",
    "/token-profiles/latest/v1",
)


def parse_price(value: Any) -> Optional[float]:
    """Parse a price, treating non-finite or non-positive values as missing."""
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


class MarketDataClient:
    """Client for price quotes and Dexscreener pair data."""

    def __init__(
        self,
        config: Optional[MarketDataConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the market data client.

        Args:
            config: Market data configuration. Defaults to environment-based config.
            http_client: Optional pre-built client, mainly for tests
        """
        self.config = config or get_market_data_config()
        self._http_client = http_client
        self._pair_cache: TTLCache = TTLCache(
            maxsize=self.config.pair_cache_size,
            ttl=self.config.pair_cache_ttl
        )

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.config.request_timeout,
                headers={"Accept": "application/json"},
            )
        return self._http_client

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None,
                        timeout: Optional[float] = None) -> Any:
        """GET a JSON document with retry and backoff.

        Raises:
            MarketDataError: If every attempt failed or the error is not retryable
        """
        client = self._get_http_client()

        async def _fetch() -> Any:
            try:
                response = await client.get(url, params=params, timeout=timeout or self.config.request_timeout)
            except httpx.HTTPError as e:
                raise MarketDataError(f"Request to {url} failed: {str(e)}", url=url) from e
            if response.status_code >= 400:
                raise MarketDataError(
                    f"HTTP {response.status_code} from {url}",
                    http_status=response.status_code,
                    url=url
                )
            try:
                return response.json()
            except ValueError as e:
                raise MarketDataError(f"Invalid JSON from {url}", url=url) from e

        return await retry_with_backoff(
            _fetch,
            attempts=self.config.backoff_attempts,
            base_delay=self.config.backoff_base_delay,
            max_jitter=self.config.backoff_jitter,
            operation_name=f"GET {url}",
        )

    # Native token prices

    async def get_etherscan_eth_price(self) -> Optional[float]:
        """Get the ETH/USD price from Etherscan, or None without an API key."""
        if not self.config.etherscan_api_key:
            return None
        data = await self._get_json(
            self.config.etherscan_url,
            params={"module": "stats", "action": "ethprice", "apikey": self.config.etherscan_api_key},
            timeout=self.config.price_timeout,
        )
        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(result, dict):
            return None
        return parse_price(result.get("ethusd"))

    async def get_coingecko_price(self, coingecko_id: str) -> Optional[float]:
        """Get a USD price from CoinGecko ``simple/price``."""
        data = await self._get_json(
            f"{self.config.coingecko_url}/simple/price",
            params={"ids": coingecko_id, "vs_currencies": "usd"},
            timeout=self.config.price_timeout,
        )
        if not isinstance(data, dict):
            return None
        return parse_price((data.get(coingecko_id) or {}).get("usd"))

    async def get_native_price(self, chain_config: ChainConfig) -> Optional[float]:
        """Get the USD price of a chain's native token.

        Etherscan is tried first for Ethereum; CoinGecko is the fallback and
        the only source for the other chains. A failing source falls through
        to the next one.

        Args:
            chain_config: Chain whose native token is priced

        Returns:
            The price, or None if no source produced a usable value
        """
        if chain_config.name == "ethereum":
            try:
                price = await self.get_etherscan_eth_price()
                if price is not None:
                    return price
            except MarketDataError as e:
                logger.warning(f"Etherscan price lookup failed: {e.message}")

        try:
            return await self.get_coingecko_price(chain_config.coingecko_id)
        except MarketDataError as e:
            logger.warning(f"CoinGecko price lookup failed for {chain_config.coingecko_id}: {e.message}")
            return None

    # Dexscreener

    async def get_token_pairs(self, token_address: str, chain: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get the trading pairs of a token.

        Args:
            token_address: Token contract or mint address
            chain: Optional Dexscreener chain id to filter on

        Returns:
            List of pair dicts (empty when the token has no market)
        """
        cache_key: Tuple[str, Optional[str]] = (token_address, chain)
        if cache_key in self._pair_cache:
            return self._pair_cache[cache_key]

        data = await self._get_json(f"{self.config.dexscreener_url}/latest/dex/tokens/{token_address}")
        pairs = (data.get("pairs") or []) if isinstance(data, dict) else []
        if chain:
            pairs = [p for p in pairs if p.get("chainId") == chain]

        self._pair_cache[cache_key] = pairs
        return pairs

    async def get_solana_token_pairs(self, token_address: str) -> List[Dict[str, Any]]:
        """Get the pools of a Solana token from ``token-pairs/v1``."""
        data = await self._get_json(f"{self.config.dexscreener_url}/token-pairs/v1/solana/{token_address}")
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return data.get("pairs") or []
        return []

    async def get_discovery_tokens(self) -> List[Dict[str, str]]:
        """Collect candidate tokens from the boosted and profile feeds.

        Candidates are de-duplicated by ``(chainId, tokenAddress)``. A feed
        that fails is logged and skipped.

        Returns:
            List of ``{"chainId", "tokenAddress"}`` dicts
        """
        seen = set()
        candidates: List[Dict[str, str]] = []

        for path in DISCOVERY_PATHS:
            try:
                data = await self._get_json(f"{self.config.dexscreener_url}{path}")
            except MarketDataError as e:
                logger.warning(f"Discovery feed {path} failed: {e.message}")
                continue

            if isinstance(data, list):
                entries = data
            elif isinstance(data, dict):
                entries = [data]
            else:
                entries = []
            for entry in entries:
                chain_id = entry.get("chainId")
                token_address = entry.get("tokenAddress")
                if not chain_id or not token_address:
                    continue
                key = (chain_id, token_address)
                if key in seen:
                    continue
                seen.add(key)
                candidates.append({"chainId": chain_id, "tokenAddress": token_address})

        return candidates

    def clear_cache(self):
        self._pair_cache.clear()

    async def close(self):
        """Close the client and release resources."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
