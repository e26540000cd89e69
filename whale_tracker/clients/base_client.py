"""Base JSON-RPC client.

This module provides the core functionality for making JSON-RPC requests to
Ethereum, BNB Chain and Solana nodes.
"""

# Standard library imports
import asyncio
import json
from typing import Any, List, Optional

# Third-party library imports
import httpx

# Internal imports
from whale_tracker.config import ChainConfig
from whale_tracker.logging_config import get_logger
from whale_tracker.utils.error_handling import BadDataError, NetworkError, RPCError

# Get logger
logger = get_logger(__name__)

RETRIABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}
RATE_LIMIT_RPC_CODES = {-32005, 429}


class BaseRpcClient:
    """Base client for JSON-RPC 2.0 nodes."""

    def __init__(
        self,
        config: ChainConfig,
        max_retries: int = 3,
        initial_retry_delay: float = 1.0,
        max_retry_delay: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the RPC client.

        Args:
            config: Chain configuration holding the RPC URL and timeout
            max_retries: Retries after the first attempt
            initial_retry_delay: First retry delay in seconds
            max_retry_delay: Upper bound for the retry delay in seconds
            http_client: Optional pre-built client, mainly for tests
        """
        self.config = config
        self.headers = {"Content-Type": "application/json"}
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self.max_retry_delay = max_retry_delay
        self._http_client = http_client
        self._request_id = 0

    @property
    def chain(self) -> str:
        return self.config.name

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.config.timeout,
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=20)
            )
        return self._http_client

    def _retry_delay(self, retry_count: int) -> float:
        return min(self.initial_retry_delay * (2 ** retry_count), self.max_retry_delay)

    async def _make_request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Make a JSON-RPC request to the node.

        Args:
            method: The RPC method to call
            params: The parameters to pass to the method

        Returns:
            The ``result`` member of the JSON-RPC response

        Raises:
            RPCError: If the node returns an error object
            NetworkError: If the node cannot be reached after all retries
            BadDataError: If the response body is not valid JSON-RPC
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }
        client = self._get_http_client()

        for retry_count in range(self.max_retries + 1):
            can_retry = retry_count < self.max_retries
            if retry_count > 0:
                logger.info(f"Retry attempt {retry_count}/{self.max_retries} for {method}")

            try:
                response = await client.post(self.config.rpc_url, headers=self.headers, json=payload)
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                if can_retry:
                    wait_time = self._retry_delay(retry_count)
                    logger.warning(f"Request failed, retrying in {wait_time}s: {str(e)}")
                    await asyncio.sleep(wait_time)
                    continue
                raise NetworkError(
                    f"{self.chain} RPC unreachable: {str(e)}",
                    details={"method": method}
                ) from e

            if response.status_code in RETRIABLE_STATUS_CODES:
                if can_retry:
                    wait_time = self._retry_delay(retry_count)
                    logger.warning(f"HTTP status {response.status_code}, retrying in {wait_time}s: {method}")
                    await asyncio.sleep(wait_time)
                    continue
                raise NetworkError(
                    f"{self.chain} RPC returned HTTP {response.status_code}",
                    details={"method": method, "status": response.status_code}
                )

            if response.status_code >= 400:
                raise RPCError(
                    f"HTTP {response.status_code} from {self.chain} RPC",
                    endpoint=self.config.rpc_url,
                    details={"method": method}
                )

            try:
                body = response.json()
            except json.JSONDecodeError as e:
                raise BadDataError(
                    f"Undecodable response for {method}",
                    details={"chain": self.chain}
                ) from e

            if not isinstance(body, dict):
                raise BadDataError(f"Unexpected response shape for {method}", details={"chain": self.chain})

            error = body.get("error")
            if error:
                message = f"{self.chain} RPC error: {error.get('message', 'Unknown error')}"
                if error.get("code") in RATE_LIMIT_RPC_CODES and can_retry:
                    wait_time = self._retry_delay(retry_count)
                    logger.warning(f"Rate limited, retrying in {wait_time}s: {method}")
                    await asyncio.sleep(wait_time)
                    continue
                raise RPCError(message, rpc_error_code=error.get("code"), endpoint=self.config.rpc_url)

            return body.get("result")

        raise NetworkError(f"{self.chain} RPC retries exhausted", details={"method": method})

    async def _request_structure(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Make a request whose result must not be null.

        Raises:
            BadDataError: If the node returned a null result
        """
        result = await self._make_request(method, params)
        if result is None:
            raise BadDataError(f"{method} returned no data", details={"chain": self.chain, "params": params})
        return result

    async def __aenter__(self):
        """Async context manager entry.

        Returns:
            Self
        """
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self):
        """Close the client and release resources."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
