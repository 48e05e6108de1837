"""Merkle root registry — the set of roots claims may be settled against.

A root is active or not; there is no other state. Publishing an active
root and deprecating an inactive one are caller logic errors. A deprecated
root may be published again later, which starts a new publish cycle for
the same value.

Ownership checks and notifications belong to the settlement engine; this
class only holds and validates the set.
"""

from __future__ import annotations

from typing import List

from rewardclaim.models.primitives import HashLike, to_hash32
from rewardclaim.settlement.errors import RootAlreadyActive, RootNotActive


class RootRegistry:
    """Usage:
        registry = RootRegistry()
        registry.publish(root)
        registry.is_active(root)  # True
        registry.deprecate(root)
    """

    def __init__(self) -> None:
        self._active: set[bytes] = set()

    def publish(self, root: HashLike) -> bytes:
        """Mark ``root`` active. Raises RootAlreadyActive if it already is."""
        value = to_hash32(root)
        if value in self._active:
            raise RootAlreadyActive(value)
        self._active.add(value)
        return value

    def deprecate(self, root: HashLike) -> bytes:
        """Mark ``root`` inactive. Raises RootNotActive if it is not active."""
        value = to_hash32(root)
        if value not in self._active:
            raise RootNotActive(value)
        self._active.discard(value)
        return value

    def is_active(self, root: HashLike) -> bool:
        return to_hash32(root) in self._active

    def active_roots(self) -> List[bytes]:
        return sorted(self._active)

    @property
    def count(self) -> int:
        return len(self._active)
