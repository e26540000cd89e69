"""Ethereum and BNB Chain JSON-RPC client."""

from typing import Any, Dict, Optional, Union

from whale_tracker.clients.base_client import BaseRpcClient
from whale_tracker.logging_config import get_logger
from whale_tracker.utils.error_handling import BadDataError
from whale_tracker.utils.validation import to_checksum_address

logger = get_logger(__name__)


def decode_quantity(value: Union[str, int, None]) -> int:
    """Decode a hex-encoded JSON-RPC quantity.

    Raises:
        BadDataError: If the value is not a quantity
    """
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(value, 16)
    except (TypeError, ValueError) as e:
        raise BadDataError(f"Invalid quantity: {value!r}") from e


def encode_quantity(value: int) -> str:
    return hex(value)


class EvmClient(BaseRpcClient):
    """Client for EVM chain operations."""

    async def get_block_number(self) -> int:
        """Get the latest block number."""
        return decode_quantity(await self._request_structure("eth_blockNumber"))

    async def get_block(self, number: int, full_transactions: bool = True) -> Dict[str, Any]:
        """Get a block by number.

        Args:
            number: Block number
            full_transactions: Whether to include full transaction objects

        Returns:
            Block object

        Raises:
            BadDataError: If the node does not know the block
        """
        return await self._request_structure(
            "eth_getBlockByNumber", [encode_quantity(number), full_transactions]
        )

    async def get_transaction(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Get a transaction by hash, or None if the node has not seen it."""
        return await self._make_request("eth_getTransactionByHash", [tx_hash])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Get a transaction receipt, or None while it is still pending."""
        return await self._make_request("eth_getTransactionReceipt", [tx_hash])

    async def call(self, to: str, data: str) -> Optional[str]:
        """Execute a read-only contract call against the latest block."""
        return await self._make_request("eth_call", [{"to": to, "data": data}, "latest"])

    async def get_balance(self, address: str) -> int:
        """Get an address balance in wei.

        Raises:
            ValidationError: If the address is malformed
        """
        address = to_checksum_address(address)
        return decode_quantity(await self._request_structure("eth_getBalance", [address, "latest"]))
