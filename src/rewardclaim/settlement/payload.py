"""Claim payload codec — the ABI wire format attached to fee transfers.

Base layout (cost-implicit, sorted-pair):

    (bytes32 root, uint256 epochSalt, bytes32[] proof,
     uint256[] itemIds, uint256[] amounts)

Policy-dependent trailing fields, in this order:
    uint256 cost   when CostPolicy.CHECKED
    uint256 path   when ProofScheme.POSITIONAL
"""

from __future__ import annotations

import logging
from typing import Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError

from rewardclaim.models.claim import ClaimPayload, CostPolicy, ProofScheme
from rewardclaim.settlement.errors import InconsistentArrayLengths, InvalidPayload

logger = logging.getLogger(__name__)

BASE_TYPES: Tuple[str, ...] = ("bytes32", "uint256", "bytes32[]", "uint256[]", "uint256[]")


class ClaimPayloadCodec:
    """Encodes and decodes claim payloads for one cost policy / proof scheme."""

    def __init__(
        self,
        cost_policy: CostPolicy = CostPolicy.IMPLICIT,
        proof_scheme: ProofScheme = ProofScheme.SORTED_PAIR,
    ) -> None:
        self._cost_policy = CostPolicy(cost_policy)
        self._proof_scheme = ProofScheme(proof_scheme)
        types = list(BASE_TYPES)
        if self._cost_policy == CostPolicy.CHECKED:
            types.append("uint256")
        if self._proof_scheme == ProofScheme.POSITIONAL:
            types.append("uint256")
        self._types = tuple(types)

    @property
    def types(self) -> Tuple[str, ...]:
        return self._types

    def encode(self, payload: ClaimPayload) -> bytes:
        values: list = [
            payload.root,
            payload.epoch_salt,
            list(payload.proof),
            list(payload.item_ids),
            list(payload.amounts),
        ]
        if self._cost_policy == CostPolicy.CHECKED:
            if payload.cost is None:
                raise ValueError("cost-checked payloads must declare a cost")
            values.append(payload.cost)
        if self._proof_scheme == ProofScheme.POSITIONAL:
            values.append(payload.path)
        return encode(list(self._types), values)

    def decode(self, data: bytes) -> ClaimPayload:
        """Decode and validate payload bytes.

        Raises InvalidPayload for malformed bytes and InconsistentArrayLengths
        when item ids and amounts are not index-paired.
        """
        try:
            values = decode(list(self._types), bytes(data))
        except (DecodingError, TypeError) as e:
            raise InvalidPayload(str(e)) from e

        root, epoch_salt, proof, item_ids, amounts = values[:5]
        rest = list(values[5:])
        cost = rest.pop(0) if self._cost_policy == CostPolicy.CHECKED else None
        path = rest.pop(0) if self._proof_scheme == ProofScheme.POSITIONAL else 0

        if len(item_ids) != len(amounts):
            raise InconsistentArrayLengths(item_ids, amounts)

        logger.debug(
            "decoded claim payload: %d proof nodes, %d items", len(proof), len(item_ids),
        )
        return ClaimPayload(
            root=root,
            epoch_salt=epoch_salt,
            proof=tuple(proof),
            item_ids=tuple(item_ids),
            amounts=tuple(amounts),
            cost=cost,
            path=path,
        )
