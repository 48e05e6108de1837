"""Claim ledger — the set of consumed leaf hashes.

Replay protection lives here: for every leaf L, ``mark_consumed`` succeeds
at most once over the engine's lifetime. Entries are never removed once
the transaction that created them commits; ``revert`` exists only so an
aborting transaction can undo its own write.
"""

from __future__ import annotations

from rewardclaim.models.claim import ClaimElement
from rewardclaim.models.primitives import HashLike, to_hash32
from rewardclaim.settlement.errors import AlreadyClaimed


class ClaimLedger:
    """In-memory consumed-leaf set.

    Usage:
        ledger = ClaimLedger()
        leaf = ledger.mark_consumed(element)
        ledger.is_consumed(leaf)  # True
        ledger.mark_consumed(element)  # raises AlreadyClaimed
    """

    def __init__(self) -> None:
        self._consumed: set[bytes] = set()

    def is_consumed(self, leaf: HashLike) -> bool:
        return to_hash32(leaf) in self._consumed

    def mark_consumed(self, element: ClaimElement) -> bytes:
        """Record the element's leaf as spent and return the leaf hash.

        The caller must already have validated the claim. The failure is
        reported with the claim's fields, not the raw hash.
        """
        leaf = element.leaf_hash()
        if leaf in self._consumed:
            raise AlreadyClaimed(element)
        self._consumed.add(leaf)
        return leaf

    def revert(self, leaf: HashLike) -> None:
        """Withdraw an uncommitted entry. Only the owning transaction may call this."""
        self._consumed.discard(to_hash32(leaf))

    @property
    def count(self) -> int:
        return len(self._consumed)
