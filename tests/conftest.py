"""Shared fixtures — in-memory fee/reward tokens and a four-claim tree."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Callable, Optional, Sequence

import pytest

from rewardclaim.crypto.merkle import ClaimMerkleTree
from rewardclaim.models.claim import ClaimElement, ClaimPayload
from rewardclaim.models.primitives import normalize_address
from rewardclaim.settlement.engine import ClaimSettlementEngine

OWNER = normalize_address("0x" + "01" * 20)
OTHER = normalize_address("0x" + "0f" * 20)
CLAIMERS = [normalize_address("0x" + f"{i:02x}" * 20) for i in (0xA1, 0xA2, 0xA3, 0xA4)]
FEE_TOKEN_ADDRESS = normalize_address("0x" + "fe" * 20)
OTHER_TOKEN_ADDRESS = normalize_address("0x" + "fd" * 20)
ENGINE_ADDRESS = normalize_address("0x" + "ee" * 20)

# ethers.zeroPadValue('0x9a794a09cf7b4fb99e2e3d4aeac42eab', 32) read as uint256
EPOCH_SALT = int("9a794a09cf7b4fb99e2e3d4aeac42eab", 16)


class InMemoryFeeToken:
    """Fungible fee token that notifies its receiver and undoes on failure."""

    def __init__(self, address: str) -> None:
        self._address = normalize_address(address)
        self.balances: dict[str, int] = defaultdict(int)

    @property
    def address(self) -> str:
        return self._address

    def mint(self, to: str, amount: int) -> None:
        self.balances[normalize_address(to)] += amount

    def balance_of(self, account: str) -> int:
        return self.balances[normalize_address(account)]

    def safe_transfer(self, sender: str, to: Any, amount: int, data: bytes) -> Any:
        sender = normalize_address(sender)
        if self.balances[sender] < amount:
            raise ValueError("insufficient balance")
        self.balances[sender] -= amount
        self.balances[ENGINE_ADDRESS] += amount
        try:
            return to.on_payment_received(self._address, sender, amount, data)
        except BaseException:
            self.balances[ENGINE_ADDRESS] -= amount
            self.balances[sender] += amount
            raise


class InMemoryRewardToken:
    """Multi-token balances with a batch mint guarded by a minter flag."""

    def __init__(self) -> None:
        self.balances: dict[tuple[str, int], int] = defaultdict(int)
        self.batches: list[tuple[str, list[int], list[int]]] = []
        self.minter_granted = True
        self.on_mint: Optional[Callable[[], None]] = None

    def balance_of(self, account: str, item_id: int) -> int:
        return self.balances[(normalize_address(account), item_id)]

    def mint_batch(
        self,
        recipient: str,
        item_ids: Sequence[int],
        amounts: Sequence[int],
    ) -> None:
        if not self.minter_granted:
            raise PermissionError("NotRoleHolder: minter")
        if self.on_mint is not None:
            self.on_mint()
        for item_id, amount in zip(item_ids, amounts):
            self.balances[(normalize_address(recipient), item_id)] += amount
        self.batches.append((recipient, list(item_ids), list(amounts)))


@dataclass
class ClaimWorld:
    engine: ClaimSettlementEngine
    fee_token: InMemoryFeeToken
    reward_token: InMemoryRewardToken
    elements: list[ClaimElement]
    tree: ClaimMerkleTree
    root: bytes
    notifications: list

    def payload(self, index: int, proof_of: Optional[int] = None, root: Optional[bytes] = None) -> bytes:
        """Payload claiming elements[index], optionally with another leaf's proof."""
        element = self.elements[index]
        proof_element = self.elements[proof_of if proof_of is not None else index]
        proof = self.tree.inclusion_proof(proof_element.leaf_hash())
        return self.engine.codec.encode(ClaimPayload(
            root=root if root is not None else self.root,
            epoch_salt=element.epoch_salt,
            proof=proof.siblings,
            item_ids=element.item_ids,
            amounts=element.amounts,
            cost=element.cost,
            path=proof.path,
        ))

    def claim(self, index: int, **kwargs: Any) -> Any:
        element = self.elements[index]
        return self.fee_token.safe_transfer(
            element.claimer, self.engine, element.cost, self.payload(index, **kwargs),
        )


def build_elements(salt: int = EPOCH_SALT) -> list[ClaimElement]:
    return [
        ClaimElement(claimer=c, item_ids=(i + 1,), amounts=(i + 1,), cost=(i + 1) * 10, epoch_salt=salt)
        for i, c in enumerate(CLAIMERS)
    ]


def build_tree(elements: Sequence[ClaimElement], hasher: Any = None) -> ClaimMerkleTree:
    tree = ClaimMerkleTree(hasher)
    for element in elements:
        tree.add_leaf(element.leaf_hash())
    tree.compute_root()
    return tree


@pytest.fixture
def accounts() -> SimpleNamespace:
    return SimpleNamespace(owner=OWNER, other=OTHER, claimers=list(CLAIMERS))


@pytest.fixture
def make_world() -> Callable[..., ClaimWorld]:
    def _make(**engine_kwargs: Any) -> ClaimWorld:
        fee_token = InMemoryFeeToken(FEE_TOKEN_ADDRESS)
        reward_token = InMemoryRewardToken()
        engine = ClaimSettlementEngine(OWNER, fee_token.address, reward_token, **engine_kwargs)
        notifications: list = []
        engine.subscribe(notifications.append)

        elements = build_elements()
        tree = build_tree(elements, engine.verifier.hasher)
        engine.add_merkle_root(OWNER, tree.root)
        notifications.clear()

        for element in elements:
            fee_token.mint(element.claimer, element.cost * 2)

        return ClaimWorld(
            engine=engine,
            fee_token=fee_token,
            reward_token=reward_token,
            elements=elements,
            tree=tree,
            root=tree.root,
            notifications=notifications,
        )

    return _make


@pytest.fixture
def world(make_world: Callable[..., ClaimWorld]) -> ClaimWorld:
    return make_world()
