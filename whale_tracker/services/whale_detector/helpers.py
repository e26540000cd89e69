"""Helper functions for whale detection."""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from whale_tracker.services.whale_detector.models import TransactionType

# Leading 4 bytes of call data mapped to a transaction type
METHOD_SIGNATURES = {
    "0x40c10f19": TransactionType.MINT,  # mint(address,uint256)
    "0x38ed1739": TransactionType.SWAP,  # swapExactTokensForTokens
}

# ERC-20 transfer selectors
TOKEN_TRANSFER_SIGNATURES = {
    "0xa9059cbb": "transfer",
    "0x23b872dd": "transferFrom",
}

# symbol()
SYMBOL_SELECTOR = "0x95d89b41"


def method_id(call_data: Optional[str]) -> Optional[str]:
    """Return the lower-cased 4-byte selector of call data, if any."""
    if not call_data or len(call_data) < 10 or not call_data.startswith("0x"):
        return None
    return call_data[:10].lower()


def classify_transaction_type(call_data: Optional[str]) -> TransactionType:
    """Infer the transaction type from its call data (transfer by default)."""
    selector = method_id(call_data)
    return METHOD_SIGNATURES.get(selector, TransactionType.TRANSFER)


def detect_token_transfer(call_data: Optional[str]) -> Optional[str]:
    """Return ``transfer`` or ``transferFrom`` for ERC-20 transfer call data."""
    return TOKEN_TRANSFER_SIGNATURES.get(method_id(call_data))


def from_base_units(amount: Union[int, str, None], decimals: int) -> Decimal:
    """Convert an integer amount in base units (wei, lamports) to display units."""
    if amount is None:
        return Decimal(0)
    try:
        return Decimal(int(amount)) / (Decimal(10) ** decimals)
    except (TypeError, ValueError, InvalidOperation):
        return Decimal(0)


def format_amount(amount: Decimal) -> str:
    """Render a display-unit amount as a plain decimal string."""
    text = format(amount.normalize(), "f")
    return text if text else "0"


def qualifies(value: Optional[Decimal], minimum: float, maximum: Optional[float] = None) -> bool:
    """Whether a native value is inside the whale bounds.

    Zero or missing values never qualify. The minimum is inclusive, as is the
    optional maximum.
    """
    if value is None or value <= 0:
        return False
    if value < Decimal(str(minimum)):
        return False
    if maximum is not None and value > Decimal(str(maximum)):
        return False
    return True


def decode_abi_string(data: Optional[str]) -> Optional[str]:
    """Decode an ABI-encoded ``string`` or ``bytes32`` return value."""
    if not data or not data.startswith("0x") or len(data) <= 2:
        return None
    try:
        raw = bytes.fromhex(data[2:])
    except ValueError:
        return None

    if len(raw) >= 64:
        offset = int.from_bytes(raw[:32], "big")
        if offset + 32 <= len(raw):
            length = int.from_bytes(raw[offset:offset + 32], "big")
            value = raw[offset + 32:offset + 32 + length]
            if len(value) == length:
                return value.decode("utf-8", errors="ignore").strip("\x00") or None

    if len(raw) == 32:
        return raw.rstrip(b"\x00").decode("utf-8", errors="ignore") or None
    return None
