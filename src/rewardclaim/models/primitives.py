"""Primitive value normalization — addresses, 32-byte hashes, uint256 values.

Every value that crosses into the engine is normalized here first, so the
rest of the package can compare addresses and hashes by plain equality:
- addresses are EIP-55 checksummed strings
- hashes (roots, leaves, proof siblings) are raw 32-byte ``bytes``
- integers are validated against the uint256 range
"""

from __future__ import annotations

from typing import Union

from eth_utils import is_address, to_bytes, to_checksum_address

UINT256_MAX = 2**256 - 1

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_HASH = b"\x00" * 32

HashLike = Union[bytes, bytearray, str]


def normalize_address(value: str) -> str:
    """Return the checksummed form of an address, or raise ValueError."""
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"Invalid address: {value!r}")
    return to_checksum_address(value)


def to_hash32(value: HashLike) -> bytes:
    """Coerce a 0x-hex string or bytes value into exactly 32 raw bytes."""
    if isinstance(value, str):
        raw = to_bytes(hexstr=value)
    elif isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        raise ValueError(f"Expected bytes32 value, got {type(value).__name__}")
    if len(raw) != 32:
        raise ValueError(f"Expected 32 bytes, got {len(raw)}")
    return raw


def to_uint256(value: int, name: str = "value") -> int:
    """Validate that ``value`` is an int in [0, 2**256)."""
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"{name} out of uint256 range: {value}")
    return value


def to_salt(value: Union[int, HashLike]) -> int:
    """Interpret an epoch salt given as integer, bytes32 or 0x-hex string.

    Byte and hex forms are read as big-endian, the same way a bytes32 value
    is reinterpreted as uint256 on chain.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return to_uint256(value, "epoch_salt")
    if isinstance(value, str):
        raw = to_bytes(hexstr=value)
    elif isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        raise ValueError(f"Unsupported epoch salt type: {type(value).__name__}")
    if len(raw) > 32:
        raise ValueError(f"Epoch salt longer than 32 bytes: {len(raw)}")
    return int.from_bytes(raw, "big")


def hex32(value: bytes) -> str:
    """Render a 32-byte value as a 0x-prefixed lowercase hex string."""
    return "0x" + bytes(value).hex()
