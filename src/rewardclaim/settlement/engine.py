"""Claim settlement engine — the inbound payment hook and its owner surface.

The engine owns the root registry and the claim ledger. It is invoked by
the fee token from inside the token's transfer (``on_payment_received``)
and settles the attached claim:

    1. reject payments from any contract other than the fee contract
    2. decode the payload (claimer = payer, cost = transferred amount)
    3. reject inactive roots
    4. rebuild the leaf hash
    5. reject consumed leaves          (AlreadyClaimed)
    6. reject unverifiable proofs      (InvalidProof)
    7. mark the leaf consumed          (before any external call)
    8. emit claim-settled
    9. mint the reward batch

Every entry point runs as one transaction: state changes are journalled
and undone if anything raises. Notifications are buffered until the
outermost transaction commits; an attached journal records them first, and
its record is retracted if a listener then fails. A re-entrant call from a
collaborator (e.g. the minter calling back into the hook) runs in a nested
transaction and sees the ledger write from step 7, so the same leaf can
never be consumed twice.

Usage:
    engine = ClaimSettlementEngine(owner, fee_token.address, reward_minter)
    engine.add_merkle_root(owner, root)
    fee_token.safe_transfer(payer, engine, 10, payload)
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Optional

from rewardclaim.crypto.merkle import MerkleVerifier, hasher_for
from rewardclaim.models.claim import (
    ClaimElement,
    CostPolicy,
    ProofScheme,
    Settlement,
)
from rewardclaim.models.primitives import (
    ZERO_ADDRESS,
    HashLike,
    hex32,
    normalize_address,
    to_uint256,
)
from rewardclaim.persistence.event_log import EventKind, EventRecord
from rewardclaim.settlement.collaborators import NotificationJournal, RewardMinter
from rewardclaim.settlement.errors import (
    AlreadyClaimed,
    ConfigurationError,
    CostMismatch,
    InvalidFeeContract,
    InvalidFeeContractAddress,
    InvalidMerkleRoot,
    InvalidProof,
    NotContractOwner,
    SettlementError,
)
from rewardclaim.settlement.ledger import ClaimLedger
from rewardclaim.settlement.payload import ClaimPayloadCodec
from rewardclaim.settlement.registry import RootRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """A committed engine notification."""
    kind: EventKind
    actor: str
    data: dict[str, Any]


Listener = Callable[[Notification], None]


class _Frame:
    """Undo journal and buffered notifications of one transaction."""

    def __init__(self) -> None:
        self.undo: list[Callable[[], None]] = []
        self.notifications: list[Notification] = []

    def rollback(self) -> None:
        """Run every undo action, newest first. The first failure is re-raised
        after the remaining actions have run."""
        failure: Optional[BaseException] = None
        for action in reversed(self.undo):
            try:
                action()
            except Exception as e:
                logger.exception("undo action failed during rollback")
                if failure is None:
                    failure = e
        self.undo.clear()
        self.notifications.clear()
        if failure is not None:
            raise failure

    def absorb(self, inner: _Frame) -> None:
        self.undo.extend(inner.undo)
        self.notifications.extend(inner.notifications)


class ClaimSettlementEngine:
    """Payment-gated Merkle claim settlement.

    Args:
        owner: The privileged account (root lifecycle, fee contract).
        fee_contract: Address of the fee token allowed to call the hook.
        reward_minter: Batch-mint collaborator. May be None for read-only
            or owner-only use; settlements then fail with ConfigurationError.
        cost_policy: cost-implicit (default) or cost-checked payloads.
        proof_scheme: sorted-pair (default) or positional proofs.
    """

    def __init__(
        self,
        owner: str,
        fee_contract: str,
        reward_minter: Optional[RewardMinter] = None,
        cost_policy: CostPolicy = CostPolicy.IMPLICIT,
        proof_scheme: ProofScheme = ProofScheme.SORTED_PAIR,
    ) -> None:
        self._owner = normalize_address(owner)
        fee = normalize_address(fee_contract)
        if fee == ZERO_ADDRESS:
            raise InvalidFeeContractAddress(fee)
        self._fee_contract = fee
        self._reward_minter = reward_minter
        self._cost_policy = CostPolicy(cost_policy)
        self._proof_scheme = ProofScheme(proof_scheme)

        self._registry = RootRegistry()
        self._ledger = ClaimLedger()
        self._verifier = MerkleVerifier(hasher_for(self._proof_scheme))
        self._codec = ClaimPayloadCodec(self._cost_policy, self._proof_scheme)

        self._listeners: list[Listener] = []
        self._journal: Optional[NotificationJournal] = None
        self._frames: list[_Frame] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def fee_contract(self) -> str:
        return self._fee_contract

    @property
    def reward_minter(self) -> Optional[RewardMinter]:
        return self._reward_minter

    @property
    def cost_policy(self) -> CostPolicy:
        return self._cost_policy

    @property
    def proof_scheme(self) -> ProofScheme:
        return self._proof_scheme

    @property
    def codec(self) -> ClaimPayloadCodec:
        """Payload codec matching this engine's policies (for clients)."""
        return self._codec

    @property
    def verifier(self) -> MerkleVerifier:
        return self._verifier

    def is_root_active(self, root: HashLike) -> bool:
        return self._registry.is_active(root)

    def is_claimed(self, leaf: HashLike) -> bool:
        return self._ledger.is_consumed(leaf)

    def active_roots(self) -> List[bytes]:
        return self._registry.active_roots()

    @property
    def consumed_count(self) -> int:
        return self._ledger.count

    def subscribe(self, listener: Listener) -> None:
        """Register a callback for committed notifications."""
        with self._lock:
            self._listeners.append(listener)

    def attach_journal(self, journal: NotificationJournal) -> None:
        """Persist every committed batch through ``journal`` before listeners run.

        A failing journal write, or a listener failing after the write,
        aborts the transaction and leaves the journal without the batch.
        """
        with self._lock:
            if self._journal is not None:
                raise RuntimeError("A notification journal is already attached")
            self._journal = journal

    # ------------------------------------------------------------------
    # Owner surface
    # ------------------------------------------------------------------

    def add_merkle_root(self, caller: str, root: HashLike) -> bytes:
        """Publish a root. Owner only; raises RootAlreadyActive if active."""
        with self._transaction() as frame:
            self._require_owner(caller)
            value = self._registry.publish(root)
            frame.undo.append(lambda: self._registry.deprecate(value))
            self._emit(frame, EventKind.ROOT_ADDED, self._owner, {"root": hex32(value)})
        logger.info("merkle root added: %s", hex32(value))
        return value

    def deprecate_merkle_root(self, caller: str, root: HashLike) -> bytes:
        """Deprecate a root. Owner only; raises RootNotActive if not active."""
        with self._transaction() as frame:
            self._require_owner(caller)
            value = self._registry.deprecate(root)
            frame.undo.append(lambda: self._registry.publish(value))
            self._emit(frame, EventKind.ROOT_DEPRECATED, self._owner, {"root": hex32(value)})
        logger.info("merkle root deprecated: %s", hex32(value))
        return value

    def set_fee_contract(self, caller: str, new_address: str) -> str:
        """Point the hook at a new fee token. Owner only; rejects the zero address."""
        with self._transaction() as frame:
            self._require_owner(caller)
            address = normalize_address(new_address)
            if address == ZERO_ADDRESS:
                raise InvalidFeeContractAddress(address)
            previous = self._fee_contract
            self._fee_contract = address
            frame.undo.append(lambda: setattr(self, "_fee_contract", previous))
            self._emit(
                frame, EventKind.FEE_CONTRACT_UPDATED, self._owner,
                {"fee_contract": address},
            )
        logger.info("fee contract set: %s -> %s", previous, address)
        return address

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def on_payment_received(
        self,
        token_contract: str,
        payer: str,
        amount: int,
        payload: bytes,
    ) -> Settlement:
        """Receiver hook called by the fee token during a transfer.

        Returns the Settlement record on success. Any failure raises and
        leaves registry, ledger and notifications untouched; the calling
        token is expected to undo its own transfer.
        """
        try:
            with self._transaction() as frame:
                try:
                    token = normalize_address(token_contract)
                except ValueError:
                    raise InvalidFeeContract(str(token_contract), self._fee_contract) from None
                if token != self._fee_contract:
                    raise InvalidFeeContract(token, self._fee_contract)
                if self._reward_minter is None:
                    raise ConfigurationError("No reward minter configured")

                claimer = normalize_address(payer)
                transferred = to_uint256(amount, "amount")
                claim = self._codec.decode(payload)

                if not self._registry.is_active(claim.root):
                    raise InvalidMerkleRoot(claim.root)
                if self._cost_policy == CostPolicy.CHECKED and claim.cost != transferred:
                    raise CostMismatch(claim.cost, transferred)

                element = ClaimElement(
                    claimer=claimer,
                    item_ids=claim.item_ids,
                    amounts=claim.amounts,
                    cost=transferred,
                    epoch_salt=claim.epoch_salt,
                )
                leaf = element.leaf_hash()
                if self._ledger.is_consumed(leaf):
                    raise AlreadyClaimed(element)
                if not self._verifier.verify(leaf, claim.proof, claim.root, claim.path):
                    raise InvalidProof(element)

                # Ledger write precedes the external mint call.
                self._ledger.mark_consumed(element)
                frame.undo.append(lambda: self._ledger.revert(leaf))

                data = element.to_dict()
                data["root"] = hex32(claim.root)
                data["leaf_hash"] = hex32(leaf)
                self._emit(frame, EventKind.CLAIM_SETTLED, claimer, data)

                mint_result = self._reward_minter.mint_batch(
                    claimer, list(element.item_ids), list(element.amounts),
                )
        except SettlementError as e:
            logger.warning("settlement rejected (%s): %s", e.name, e)
            raise

        logger.info(
            "claim settled: claimer=%s root=%s leaf=%s",
            claimer, hex32(claim.root), hex32(leaf),
        )
        return Settlement(
            root=claim.root, element=element, leaf_hash=leaf, mint_result=mint_result,
        )

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def replay(self, events: Iterable[EventRecord]) -> int:
        """Rebuild registry, fee contract and ledger from recorded events.

        Intended for a freshly constructed engine. No notifications are
        emitted. Each settled leaf hash is recomputed and compared with the
        recorded one; a mismatch fails closed. Returns the number of events
        applied.

        Recorded fee contract updates win over the fee contract the engine
        was constructed with; a difference is logged as a warning.
        """
        with self._lock:
            if self._registry.count or self._ledger.count:
                raise RuntimeError("Replay requires a fresh engine")
            configured_fee = self._fee_contract
            applied = 0
            for event in events:
                data = event.payload
                if event.event_kind == EventKind.ROOT_ADDED:
                    self._registry.publish(data["root"])
                elif event.event_kind == EventKind.ROOT_DEPRECATED:
                    self._registry.deprecate(data["root"])
                elif event.event_kind == EventKind.FEE_CONTRACT_UPDATED:
                    self._fee_contract = normalize_address(data["fee_contract"])
                elif event.event_kind == EventKind.CLAIM_SETTLED:
                    element = ClaimElement.from_dict(data)
                    leaf = self._ledger.mark_consumed(element)
                    if hex32(leaf) != data["leaf_hash"]:
                        raise ValueError(
                            f"Leaf hash mismatch on replay of {event.event_id}: "
                            f"recorded {data['leaf_hash']} != computed {hex32(leaf)}"
                        )
                applied += 1
            if self._fee_contract != configured_fee:
                logger.warning(
                    "fee contract %s from event log overrides configured %s",
                    self._fee_contract, configured_fee,
                )
            return applied

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_owner(self, caller: str) -> None:
        try:
            account = normalize_address(caller)
        except ValueError:
            raise NotContractOwner(str(caller)) from None
        if account != self._owner:
            raise NotContractOwner(account)

    def _emit(self, frame: _Frame, kind: EventKind, actor: str, data: dict[str, Any]) -> None:
        frame.notifications.append(Notification(kind=kind, actor=actor, data=data))

    def _publish(self, frame: _Frame) -> None:
        """Journal the committed batch, then hand it to listeners."""
        batch = tuple(frame.notifications)
        if not batch:
            return
        journal = self._journal
        if journal is not None:
            journal.record(batch)
            frame.undo.append(lambda: journal.retract(batch))
        for notification in batch:
            for listener in self._listeners:
                listener(notification)

    @contextmanager
    def _transaction(self) -> Iterator[_Frame]:
        with self._lock:
            frame = _Frame()
            outermost = not self._frames
            self._frames.append(frame)
            try:
                yield frame
                if outermost:
                    self._publish(frame)
            except BaseException as e:
                self._frames.pop()
                frame.rollback()
                if outermost:
                    logger.warning("transaction rolled back: %s", type(e).__name__)
                raise
            self._frames.pop()
            if not outermost:
                self._frames[-1].absorb(frame)
