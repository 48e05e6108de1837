"""Claim models — claim elements, decoded payloads, settlement records.

A claim element is never stored as a struct. It is rebuilt on every
settlement attempt from the payer, the transferred amount and the decoded
payload, then hashed into the leaf that identifies it.

Policies that shape the wire format:
- CostPolicy decides whether the payload carries an explicit cost.
- ProofScheme decides how proof siblings are combined.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Tuple

from rewardclaim.crypto.leaf import leaf_hash
from rewardclaim.models.primitives import (
    hex32,
    normalize_address,
    to_hash32,
    to_uint256,
)


class CostPolicy(str, enum.Enum):
    """How the claim's cost field is obtained.

    IMPLICIT: the transferred amount is the cost; the payload has no cost.
    CHECKED: the payload declares a cost that must equal the amount.
    Both policies hash the same leaf layout.
    """
    IMPLICIT = "cost-implicit"
    CHECKED = "cost-checked"


class ProofScheme(str, enum.Enum):
    """How a node is combined with its proof sibling."""
    SORTED_PAIR = "sorted-pair"
    POSITIONAL = "positional"


def _uint_tuple(values: Sequence[int], name: str) -> Tuple[int, ...]:
    return tuple(to_uint256(v, name) for v in values)


@dataclass(frozen=True)
class ClaimElement:
    """One claimable reward batch, as committed to in a Merkle tree."""
    claimer: str
    item_ids: Tuple[int, ...]
    amounts: Tuple[int, ...]
    cost: int
    epoch_salt: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "claimer", normalize_address(self.claimer))
        object.__setattr__(self, "item_ids", _uint_tuple(self.item_ids, "item_id"))
        object.__setattr__(self, "amounts", _uint_tuple(self.amounts, "amount"))
        to_uint256(self.cost, "cost")
        to_uint256(self.epoch_salt, "epoch_salt")

    def leaf_hash(self) -> bytes:
        return leaf_hash(
            self.claimer, self.item_ids, self.amounts, self.cost, self.epoch_salt,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view, used for error context and event payloads."""
        return {
            "claimer": self.claimer,
            "item_ids": list(self.item_ids),
            "amounts": list(self.amounts),
            "cost": self.cost,
            "epoch_salt": self.epoch_salt,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClaimElement:
        return cls(
            claimer=data["claimer"],
            item_ids=tuple(data["item_ids"]),
            amounts=tuple(data["amounts"]),
            cost=int(data["cost"]),
            epoch_salt=int(data["epoch_salt"]),
        )


@dataclass(frozen=True)
class ClaimPayload:
    """The decoded bytes attached to an inbound fee transfer.

    ``cost`` is only present under CostPolicy.CHECKED and ``path`` is only
    meaningful under ProofScheme.POSITIONAL (bit i set means the i-th
    sibling sits on the left).
    """
    root: bytes
    epoch_salt: int
    proof: Tuple[bytes, ...]
    item_ids: Tuple[int, ...]
    amounts: Tuple[int, ...]
    cost: Optional[int] = None
    path: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "root", to_hash32(self.root))
        object.__setattr__(self, "proof", tuple(to_hash32(p) for p in self.proof))
        object.__setattr__(self, "item_ids", _uint_tuple(self.item_ids, "item_id"))
        object.__setattr__(self, "amounts", _uint_tuple(self.amounts, "amount"))
        to_uint256(self.epoch_salt, "epoch_salt")
        to_uint256(self.path, "path")
        if self.cost is not None:
            to_uint256(self.cost, "cost")


@dataclass(frozen=True)
class Settlement:
    """Record of a committed settlement, returned to the caller."""
    root: bytes
    element: ClaimElement
    leaf_hash: bytes
    mint_result: Any = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        data = self.element.to_dict()
        data["root"] = hex32(self.root)
        data["leaf_hash"] = hex32(self.leaf_hash)
        return data
