"""Tests for the leaf codec — proves the packed layout matches abi.encodePacked."""

import pytest

from conftest import EPOCH_SALT, build_elements
from rewardclaim.crypto.leaf import encode_leaf, hash_leaf, leaf_hash
from rewardclaim.models.claim import ClaimElement
from rewardclaim.models.primitives import hex32

CLAIMER = "0x" + "ab" * 20


def _word(value: int) -> bytes:
    return value.to_bytes(32, "big")


class TestEncodeLeaf:
    def test_packed_layout(self) -> None:
        encoded = encode_leaf(CLAIMER, [1, 2], [3, 4], 10, 7)
        expected = (
            bytes.fromhex("ab" * 20)
            + _word(1) + _word(2)
            + _word(3) + _word(4)
            + _word(10)
            + _word(7)
        )
        assert encoded == expected

    def test_length_has_no_array_prefixes(self) -> None:
        encoded = encode_leaf(CLAIMER, [1, 2, 3], [1, 1, 1], 0, 0)
        assert len(encoded) == 20 + 32 * 3 + 32 * 3 + 32 + 32

    def test_empty_arrays(self) -> None:
        encoded = encode_leaf(CLAIMER, [], [], 10, 1)
        assert encoded == bytes.fromhex("ab" * 20) + _word(10) + _word(1)

    def test_checksum_and_lowercase_address_encode_identically(self) -> None:
        upper = "0x" + "AB" * 20
        assert encode_leaf(upper, [1], [1], 1, 1) == encode_leaf(CLAIMER, [1], [1], 1, 1)

    def test_rejects_negative_values(self) -> None:
        with pytest.raises(ValueError, match="uint256"):
            encode_leaf(CLAIMER, [-1], [1], 1, 1)

    def test_rejects_oversized_values(self) -> None:
        with pytest.raises(ValueError, match="uint256"):
            encode_leaf(CLAIMER, [1], [1], 2**256, 1)

    def test_rejects_invalid_address(self) -> None:
        with pytest.raises(ValueError, match="Invalid address"):
            encode_leaf("0x1234", [1], [1], 1, 1)


class TestLeafHash:
    def test_keccak_not_sha3(self) -> None:
        # keccak-256 of the empty string (differs from NIST SHA3-256)
        assert hash_leaf(b"").hex() == (
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )

    def test_deterministic(self) -> None:
        assert leaf_hash(CLAIMER, [1], [1], 10, 5) == leaf_hash(CLAIMER, [1], [1], 10, 5)

    @pytest.mark.parametrize(
        "changed",
        [
            dict(claimer="0x" + "cd" * 20),
            dict(item_ids=[2]),
            dict(amounts=[2]),
            dict(cost=11),
            dict(epoch_salt=6),
        ],
    )
    def test_every_field_changes_identity(self, changed: dict) -> None:
        base = dict(claimer=CLAIMER, item_ids=[1], amounts=[1], cost=10, epoch_salt=5)
        assert leaf_hash(**base) != leaf_hash(**{**base, **changed})

    def test_item_order_matters(self) -> None:
        assert leaf_hash(CLAIMER, [1, 2], [5, 5], 1, 1) != leaf_hash(CLAIMER, [2, 1], [5, 5], 1, 1)

    def test_element_hash_matches_function(self) -> None:
        element = ClaimElement(
            claimer=CLAIMER, item_ids=(1, 2), amounts=(3, 4), cost=10, epoch_salt=9,
        )
        assert element.leaf_hash() == leaf_hash(CLAIMER, [1, 2], [3, 4], 10, 9)
        assert len(element.leaf_hash()) == 32


# ethers.solidityPacked(["address","uint256[]","uint256[]","uint256","uint256"], ...)
# hashed with keccak256, for the four-claim scenario in conftest.
REFERENCE_LEAVES = [
    "0x01ff8aa2c7aed1c94931a8406114b546c9eb1916454a4c06bf17cda1aa5f1300",
    "0x61e4895c3f3358d115ea947948129d26c67a8bcdd3897d7ed6cb0faa696c26e3",
    "0xa64215d8c0832bbff9b0c0f39ec6e5ba50d167e730afe87575eec1b40707cd34",
    "0x21c5dc3289832e3129f381b86b59f008b85e1972113ef94547deeb66ebd30b09",
]


class TestReferenceVectors:
    def test_leaf_hashes_match_solidity_packed(self) -> None:
        assert [hex32(e.leaf_hash()) for e in build_elements()] == REFERENCE_LEAVES

    def test_first_leaf_from_raw_fields(self) -> None:
        leaf = leaf_hash("0x" + "a1" * 20, [1], [1], 10, EPOCH_SALT)
        assert hex32(leaf) == REFERENCE_LEAVES[0]
