"""Merkle proof verification and off-chain tree construction over keccak-256.

Two pair-combination rules are supported:

- Sorted pair (default): parent = keccak(min(a, b) || max(a, b)). Proofs
  are plain sibling lists; left/right position does not matter.
- Positional: parent = keccak(left || right). Proofs additionally carry a
  path bitmap where bit i is set when the i-th sibling sits on the left.

The tree builder mirrors merkletreejs with ``hashLeaves`` and
``sortPairs``: leaves keep insertion order and an odd trailing node is
promoted to the next level unchanged (it is not duplicated).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple

from eth_utils import keccak

from rewardclaim.models.primitives import to_hash32


class PairHasher(Protocol):
    """Combines a running node with one proof sibling."""

    def combine(self, node: bytes, sibling: bytes, sibling_on_left: bool) -> bytes:
        ...


class SortedPairHasher:
    """Order-independent combination; ``sibling_on_left`` is ignored."""

    def combine(self, node: bytes, sibling: bytes, sibling_on_left: bool) -> bytes:
        # Equal-length bytes compare as big-endian unsigned integers.
        if node <= sibling:
            return keccak(node + sibling)
        return keccak(sibling + node)


class PositionalPairHasher:
    """Left/right combination driven by the proof path bitmap."""

    def combine(self, node: bytes, sibling: bytes, sibling_on_left: bool) -> bytes:
        if sibling_on_left:
            return keccak(sibling + node)
        return keccak(node + sibling)


def hasher_for(scheme: str) -> PairHasher:
    """Return the pair hasher for a proof scheme name ("sorted-pair" / "positional")."""
    if scheme == "sorted-pair":
        return SortedPairHasher()
    if scheme == "positional":
        return PositionalPairHasher()
    raise ValueError(f"Unknown proof scheme: {scheme}")


@dataclass(frozen=True)
class MerkleProof:
    """An inclusion proof for a single leaf."""
    leaf_hash: bytes
    siblings: Tuple[bytes, ...]
    root: bytes
    path: int = 0  # Only meaningful for the positional scheme

    def hex_siblings(self) -> list[str]:
        return ["0x" + s.hex() for s in self.siblings]


class MerkleVerifier:
    """Recomputes a root from a leaf and its proof. Pure; no state."""

    def __init__(self, hasher: Optional[PairHasher] = None) -> None:
        self._hasher = hasher or SortedPairHasher()

    @property
    def hasher(self) -> PairHasher:
        return self._hasher

    def process_proof(
        self,
        leaf: bytes,
        proof: Sequence[bytes],
        path: int = 0,
    ) -> bytes:
        """Fold the proof siblings into the leaf and return the computed root."""
        current = to_hash32(leaf)
        for i, sibling in enumerate(proof):
            current = self._hasher.combine(
                current, to_hash32(sibling), bool((path >> i) & 1),
            )
        return current

    def verify(
        self,
        leaf: bytes,
        proof: Sequence[bytes],
        root: bytes,
        path: int = 0,
    ) -> bool:
        """True iff folding ``proof`` into ``leaf`` yields ``root``.

        An empty proof verifies only a single-leaf tree (leaf == root).
        """
        return self.process_proof(leaf, proof, path) == to_hash32(root)


class ClaimMerkleTree:
    """Off-chain Merkle tree builder producing roots and inclusion proofs.

    Usage:
        tree = ClaimMerkleTree()
        for element in elements:
            tree.add_leaf(element.leaf_hash())
        root = tree.compute_root()
        proof = tree.inclusion_proof(elements[0].leaf_hash())
    """

    def __init__(self, hasher: Optional[PairHasher] = None) -> None:
        self._hasher = hasher or SortedPairHasher()
        self._leaves: list[bytes] = []
        self._levels: list[list[bytes]] = []
        self._computed = False

    def add_leaf(self, leaf: bytes) -> None:
        """Add a leaf hash. Must be called before compute_root."""
        if self._computed:
            raise RuntimeError("Tree already computed. Create a new tree.")
        self._leaves.append(to_hash32(leaf))

    @property
    def leaf_count(self) -> int:
        return len(self._leaves)

    def compute_root(self) -> bytes:
        """Build every level and return the root.

        Raises ValueError for an empty tree; a claim tree with no leaves has
        nothing to commit to.
        """
        if not self._leaves:
            raise ValueError("No leaves to build tree")

        current_level = list(self._leaves)
        self._levels = [current_level]
        while len(current_level) > 1:
            next_level: list[bytes] = []
            for i in range(0, len(current_level), 2):
                if i + 1 == len(current_level):
                    next_level.append(current_level[i])  # Promote odd node
                    continue
                next_level.append(
                    self._hasher.combine(current_level[i], current_level[i + 1], False)
                )
            self._levels.append(next_level)
            current_level = next_level

        self._computed = True
        return current_level[0]

    @property
    def root(self) -> bytes:
        if not self._computed:
            raise RuntimeError("Must call compute_root before reading the root")
        return self._levels[-1][0]

    def inclusion_proof(self, leaf: bytes) -> Optional[MerkleProof]:
        """Generate an inclusion proof for the first occurrence of a leaf.

        Returns None if the leaf is not in the tree.
        Must call compute_root first.
        """
        if not self._computed:
            raise RuntimeError("Must call compute_root before generating proofs")

        leaf = to_hash32(leaf)
        if leaf not in self._levels[0]:
            return None

        idx = self._levels[0].index(leaf)
        siblings: list[bytes] = []
        path = 0
        for level in self._levels[:-1]:
            sibling_idx = idx ^ 1
            if sibling_idx < len(level):
                if sibling_idx < idx:
                    path |= 1 << len(siblings)
                siblings.append(level[sibling_idx])
            idx //= 2

        return MerkleProof(
            leaf_hash=leaf,
            siblings=tuple(siblings),
            root=self.root,
            path=path,
        )
