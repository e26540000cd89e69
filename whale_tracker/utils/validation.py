"""Validation utilities for the whale tracker.

This module validates and normalizes EVM and Solana addresses.
"""

import re

import base58
from web3 import Web3

from whale_tracker.utils.error_handling import ValidationError

# Solana public key validation pattern (base58 format)
PUBKEY_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def validate_public_key(pubkey: str) -> bool:
    """Validate a Solana public key.

    Args:
        pubkey: The public key to validate

    Returns:
        True if the public key is valid, False otherwise
    """
    if not pubkey or not isinstance(pubkey, str):
        return False
    if not PUBKEY_PATTERN.match(pubkey):
        return False
    try:
        return len(base58.b58decode(pubkey)) == 32
    except ValueError:
        return False


def is_evm_address(address: str) -> bool:
    """Check whether a string is a well-formed EVM address."""
    if not address or not isinstance(address, str):
        return False
    return Web3.is_address(address)


def to_checksum_address(address: str) -> str:
    """Validate an EVM address and return its checksummed form.

    Raises:
        ValidationError: If the address is malformed
    """
    if not is_evm_address(address):
        raise ValidationError("Invalid Ethereum address", details={"address": address})
    return Web3.to_checksum_address(address)


def normalize_address(chain: str, address: str) -> str:
    """Return the canonical form of an address on the given chain.

    EVM addresses are checksummed; Solana keys are returned unchanged
    after validation.

    Raises:
        ValidationError: If the address is malformed for that chain
    """
    if chain == "solana":
        if not validate_public_key(address):
            raise ValidationError("Invalid Solana public key", details={"address": address})
        return address
    return to_checksum_address(address)
