"""
Hashing and byte-encoding helpers for dutchbid.

This module provides:
- Keccak-256 hashing
- Hex <-> bytes conversion used when handing ciphertext handles and
  validity proofs to the settlement contract
- Address format checks

Keccak-256 is the EVM hash; it is used to derive deterministic ciphertext
handles on local development chains where no encryption service runs.
"""

from typing import Union

from Crypto.Hash import keccak


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: handle derivation on mock chains, EVM conventions.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def to_payload(data: Union[bytes, bytearray, str]) -> bytes:
    """
    Encode a handle or proof as a binary contract payload.

    Accepts raw bytes or a hex string. Raises ValueError on anything else
    or on an empty payload.
    """
    if isinstance(data, (bytes, bytearray)):
        payload = bytes(data)
    elif isinstance(data, str):
        payload = hex_to_bytes(data)
    else:
        raise ValueError(f"Cannot encode {type(data).__name__} as payload")

    if not payload:
        raise ValueError("Empty payload")
    return payload


def is_valid_address(address: str) -> bool:
    """Check if string is a valid address format."""
    if not address.startswith("0x"):
        return False
    if len(address) != 42:  # 0x + 40 hex chars
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False


__all__ = [
    "keccak256",
    "bytes_to_hex",
    "hex_to_bytes",
    "to_payload",
    "is_valid_address",
]
