"""Solana JSON-RPC client.

Covers the slot polling, parsed block, balance and token account calls used
by the Solana whale detector and the token acquisition monitor.
"""

from typing import Any, Dict, List, Optional, Set

from whale_tracker.clients.base_client import BaseRpcClient
from whale_tracker.logging_config import get_logger
from whale_tracker.utils.error_handling import BadDataError, ValidationError
from whale_tracker.utils.validation import validate_public_key

logger = get_logger(__name__)

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
LAMPORTS_PER_SOL = 1_000_000_000


class SolanaClient(BaseRpcClient):
    """Client for Solana blockchain operations."""

    commitment = "confirmed"

    async def get_slot(self) -> int:
        """Get the current slot."""
        return await self._request_structure("getSlot", [{"commitment": self.commitment}])

    async def get_parsed_block(self, slot: int) -> Dict[str, Any]:
        """Get a block with jsonParsed transactions.

        Args:
            slot: Slot number

        Returns:
            Block object

        Raises:
            BadDataError: If the slot was skipped or is unavailable
        """
        return await self._request_structure("getBlock", [
            slot,
            {
                "encoding": "jsonParsed",
                "maxSupportedTransactionVersion": 0,
                "transactionDetails": "full",
                "rewards": False,
                "commitment": self.commitment,
            },
        ])

    async def get_balance(self, pubkey: str) -> int:
        """Get the balance of an account in lamports.

        Raises:
            ValidationError: If the public key is malformed
        """
        if not validate_public_key(pubkey):
            raise ValidationError("Invalid Solana public key", details={"pubkey": pubkey})
        result = await self._request_structure("getBalance", [pubkey, {"commitment": self.commitment}])
        try:
            return int(result["value"])
        except (KeyError, TypeError, ValueError) as e:
            raise BadDataError("Malformed getBalance result", details={"pubkey": pubkey}) from e

    async def get_token_accounts_by_owner(self, owner: str) -> Set[str]:
        """Get the mints for which an owner holds a non-zero balance.

        Args:
            owner: Wallet public key

        Returns:
            Set of mint addresses
        """
        if not validate_public_key(owner):
            raise ValidationError("Invalid Solana public key", details={"pubkey": owner})

        result = await self._request_structure("getTokenAccountsByOwner", [
            owner,
            {"programId": TOKEN_PROGRAM_ID},
            {"encoding": "jsonParsed", "commitment": self.commitment},
        ])

        mints: Set[str] = set()
        for account in result.get("value", []):
            info = (
                account.get("account", {})
                .get("data", {})
                .get("parsed", {})
                .get("info", {})
            )
            mint = info.get("mint")
            ui_amount = info.get("tokenAmount", {}).get("uiAmount") or 0
            if mint and ui_amount > 0:
                mints.add(mint)
        return mints


def iter_system_transfers(block: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Extract parsed System Program transfers from successful transactions.

    Args:
        block: Block fetched with ``get_parsed_block``

    Returns:
        List of ``{source, destination, lamports, signature}`` dicts
    """
    transfers: List[Dict[str, Any]] = []
    for entry in block.get("transactions") or []:
        meta = entry.get("meta") or {}
        if meta.get("err") is not None:
            continue
        transaction = entry.get("transaction") or {}
        signatures = transaction.get("signatures") or []
        signature: Optional[str] = signatures[0] if signatures else None
        instructions = (transaction.get("message") or {}).get("instructions") or []
        for instruction in instructions:
            if instruction.get("program") != "system":
                continue
            parsed = instruction.get("parsed")
            if not isinstance(parsed, dict) or parsed.get("type") != "transfer":
                continue
            info = parsed.get("info") or {}
            transfers.append({
                "source": info.get("source"),
                "destination": info.get("destination"),
                "lamports": int(info.get("lamports") or 0),
                "signature": signature,
            })
    return transfers
