from __future__ import annotations

"""
watchtower.core.utils
=====================

Low-level helpers shared by the ledger probe, the tasks and the artifact layer:
- Fixed-width big-endian encodings for storage keys.
- Hex helpers for 0x-prefixed values.
- Gwei/wei conversion backed by web3.
"""

from web3 import Web3

from .types import ADDRESS_BYTES, UINT256_BYTES, Gwei, Wei


def uint256_be(value: int) -> bytes:
    """
    Encode a non-negative integer as a 32-byte big-endian word.

    Raises:
        ValueError: for negative values or values wider than 256 bits.
    """
    if value < 0:
        raise ValueError(f"uint256 cannot be negative: {value}")
    if value.bit_length() > 8 * UINT256_BYTES:
        raise ValueError(f"value does not fit in uint256: {value}")
    return int(value).to_bytes(UINT256_BYTES, "big")


def remove_hex_prefix(value: str) -> str:
    return value[2:] if value[:2] in ("0x", "0X") else value


def address_bytes(address: str) -> bytes:
    """Raw 20 bytes of a 0x-prefixed address (checksum not enforced)."""
    raw = bytes.fromhex(remove_hex_prefix(address))
    if len(raw) != ADDRESS_BYTES:
        raise ValueError(f"address must be {ADDRESS_BYTES} bytes, got {len(raw)}: {address!r}")
    return raw


def hex_to_bytes32(value: str) -> bytes:
    """Decode a hex string into exactly 32 bytes (left-padded like common.BytesToHash)."""
    raw = bytes.fromhex(remove_hex_prefix(value))
    if len(raw) > UINT256_BYTES:
        raise ValueError(f"hex value is longer than 32 bytes: {value!r}")
    return raw.rjust(UINT256_BYTES, b"\x00")


def gwei_to_wei(amount: Gwei) -> Wei:
    return int(Web3.to_wei(amount, "gwei"))


def wei_to_eth(amount: Wei) -> float:
    return float(Web3.from_wei(amount, "ether"))


def same_address(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return remove_hex_prefix(a).lower() == remove_hex_prefix(b).lower()

