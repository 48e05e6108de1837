"""Cryptographic primitives — leaf codec, Merkle verification, proof generation."""

from rewardclaim.crypto.leaf import encode_leaf, hash_leaf, leaf_hash
from rewardclaim.crypto.merkle import ClaimMerkleTree, MerkleProof, MerkleVerifier

__all__ = [
    "ClaimMerkleTree",
    "MerkleProof",
    "MerkleVerifier",
    "encode_leaf",
    "hash_leaf",
    "leaf_hash",
]
