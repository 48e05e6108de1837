"""Settlement errors.

Taxonomy:
    AuthorizationError     caller lacks the owner role
    ConfigurationError     invalid configuration input (null addresses)
    RegistryStateError     root already active / not active
    ClaimValidationError   rejected settlement attempts (expected, frequent)

Every error carries a JSON-friendly ``context`` dict. Claim errors carry
the full claim fields so a client can diagnose a rejection without
recomputing the leaf hash.
"""

from __future__ import annotations

from typing import Any, Sequence

from rewardclaim.models.claim import ClaimElement
from rewardclaim.models.primitives import hex32


class SettlementError(ValueError):
    """Base class for all engine failures."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context: dict[str, Any] = context

    @property
    def name(self) -> str:
        return type(self).__name__


class AuthorizationError(SettlementError):
    pass


class ConfigurationError(SettlementError):
    pass


class RegistryStateError(SettlementError):
    pass


class ClaimValidationError(SettlementError):
    pass


class NotContractOwner(AuthorizationError):
    def __init__(self, account: str) -> None:
        super().__init__(f"Account is not the contract owner: {account}", account=account)
        self.account = account


class InvalidFeeContractAddress(ConfigurationError):
    def __init__(self, address: str) -> None:
        super().__init__(f"Invalid fee contract address: {address}", address=address)
        self.address = address


class RootAlreadyActive(RegistryStateError):
    def __init__(self, root: bytes) -> None:
        super().__init__(f"Merkle root already active: {hex32(root)}", root=hex32(root))
        self.root = root


class RootNotActive(RegistryStateError):
    def __init__(self, root: bytes) -> None:
        super().__init__(f"Merkle root not active: {hex32(root)}", root=hex32(root))
        self.root = root


class InvalidFeeContract(ClaimValidationError):
    def __init__(self, token: str, expected: str) -> None:
        super().__init__(
            f"Payment from {token} but fee contract is {expected}",
            token=token,
            expected=expected,
        )
        self.token = token
        self.expected = expected


class InvalidMerkleRoot(ClaimValidationError):
    def __init__(self, root: bytes) -> None:
        super().__init__(f"Merkle root is not active: {hex32(root)}", root=hex32(root))
        self.root = root


class InvalidPayload(ClaimValidationError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid claim payload: {reason}", reason=reason)
        self.reason = reason


class InconsistentArrayLengths(ClaimValidationError):
    def __init__(self, item_ids: Sequence[int], amounts: Sequence[int]) -> None:
        super().__init__(
            f"item_ids ({len(item_ids)}) and amounts ({len(amounts)}) differ in length",
            item_ids=list(item_ids),
            amounts=list(amounts),
        )


class CostMismatch(ClaimValidationError):
    def __init__(self, declared: int, transferred: int) -> None:
        super().__init__(
            f"Declared cost {declared} does not match transferred amount {transferred}",
            declared=declared,
            transferred=transferred,
        )
        self.declared = declared
        self.transferred = transferred


class _ClaimElementError(ClaimValidationError):
    """A rejection reported with the full claim fields."""

    reason = ""

    def __init__(self, element: ClaimElement) -> None:
        super().__init__(
            f"{self.reason}: claimer={element.claimer} item_ids={list(element.item_ids)} "
            f"amounts={list(element.amounts)} cost={element.cost} "
            f"epoch_salt={element.epoch_salt}",
            **element.to_dict(),
        )
        self.element = element


class AlreadyClaimed(_ClaimElementError):
    reason = "Claim already settled"


class InvalidProof(_ClaimElementError):
    reason = "Merkle proof does not verify"
