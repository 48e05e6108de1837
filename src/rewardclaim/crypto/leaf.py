"""Leaf codec — packed claim encoding and keccak-256 leaf hashing.

The packed layout is exactly Solidity's
``abi.encodePacked(address, uint256[], uint256[], uint256, uint256)``:

    claimer      20 bytes (raw address)
    item_ids     32 bytes per element, no length prefix
    amounts      32 bytes per element, no length prefix
    cost         32 bytes
    epoch_salt   32 bytes

Off-chain tree builders must produce byte-identical leaves. A mismatch can
never be exploited but leaves every affected claim permanently unclaimable.
"""

from __future__ import annotations

from typing import Sequence

from eth_abi import encode
from eth_utils import keccak, to_canonical_address

from rewardclaim.models.primitives import normalize_address, to_uint256


def _words(values: Sequence[int], name: str) -> bytes:
    """Pack uint256 values as consecutive 32-byte big-endian words."""
    checked = [to_uint256(v, name) for v in values]
    # A static tuple of uint256 encodes without offsets or length prefix.
    return encode(["uint256"] * len(checked), checked)


def encode_leaf(
    claimer: str,
    item_ids: Sequence[int],
    amounts: Sequence[int],
    cost: int,
    epoch_salt: int,
) -> bytes:
    """Serialize claim fields into the packed leaf preimage."""
    return b"".join((
        to_canonical_address(normalize_address(claimer)),
        _words(item_ids, "item_id"),
        _words(amounts, "amount"),
        _words([cost], "cost"),
        _words([epoch_salt], "epoch_salt"),
    ))


def hash_leaf(data: bytes) -> bytes:
    """keccak-256 of a packed leaf preimage."""
    return keccak(data)


def leaf_hash(
    claimer: str,
    item_ids: Sequence[int],
    amounts: Sequence[int],
    cost: int,
    epoch_salt: int,
) -> bytes:
    return hash_leaf(encode_leaf(claimer, item_ids, amounts, cost, epoch_salt))
