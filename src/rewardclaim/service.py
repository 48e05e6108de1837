"""Claim service — durable facade over the settlement engine.

Wraps one ClaimSettlementEngine and makes it restartable:
- the service is the engine's notification journal: each committed
  transaction is appended to the event log as one batch
- on construction, a persisted event log is replayed into the engine
- engine errors are returned as typed ServiceResult failures

The engine journals a transaction's batch before it commits, so an event-log
write failure aborts the operation that produced it, and a later listener
failure takes the batch back out of the log. Nothing is settled without an
audit record, and nothing is recorded that did not settle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from rewardclaim.chain.minter import Web3RewardMinter
from rewardclaim.config import EngineConfig
from rewardclaim.models.primitives import HashLike, hex32
from rewardclaim.persistence.event_log import EventLog, EventRecord
from rewardclaim.settlement.engine import ClaimSettlementEngine, Notification
from rewardclaim.settlement.errors import SettlementError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


def build_engine(config: EngineConfig) -> ClaimSettlementEngine:
    """Create an engine for a deployment config.

    An on-chain minter is attached only when the config carries an RPC URL
    and a minter key; otherwise the engine serves owner and read calls.
    """
    minter = None
    if config.can_mint:
        minter = Web3RewardMinter.from_rpc(
            config.rpc_url,
            config.reward_contract,
            config.minter_private_key,
            chain_id=config.chain_id,
        )
    return ClaimSettlementEngine(
        owner=config.owner,
        fee_contract=config.fee_contract,
        reward_minter=minter,
        cost_policy=config.cost_policy,
        proof_scheme=config.proof_scheme,
    )


def _failure(error: SettlementError) -> ServiceResult:
    return ServiceResult(
        success=False,
        errors=[str(error)],
        data={"error": error.name, **error.context},
    )


class ClaimService:
    """Usage:
        engine = ClaimSettlementEngine(owner, fee_contract, minter)
        service = ClaimService(engine, event_log=EventLog(Path("data/events.jsonl")))
        service.add_merkle_root(owner, root)
        result = service.settle_payment(fee_contract, payer, 10, payload)
    """

    def __init__(
        self,
        engine: ClaimSettlementEngine,
        event_log: Optional[EventLog] = None,
    ) -> None:
        self._engine = engine
        self._event_log = event_log if event_log is not None else EventLog()

        if self._event_log.count:
            applied = engine.replay(self._event_log.events())
            logger.info("replayed %d events from event log", applied)

        engine.attach_journal(self)

    @property
    def engine(self) -> ClaimSettlementEngine:
        return self._engine

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    # ------------------------------------------------------------------
    # Owner operations
    # ------------------------------------------------------------------

    def add_merkle_root(self, caller: str, root: HashLike) -> ServiceResult:
        return self._run(
            lambda: {"root": hex32(self._engine.add_merkle_root(caller, root))}
        )

    def deprecate_merkle_root(self, caller: str, root: HashLike) -> ServiceResult:
        return self._run(
            lambda: {"root": hex32(self._engine.deprecate_merkle_root(caller, root))}
        )

    def set_fee_contract(self, caller: str, new_address: str) -> ServiceResult:
        return self._run(
            lambda: {"fee_contract": self._engine.set_fee_contract(caller, new_address)}
        )

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def settle_payment(
        self,
        token_contract: str,
        payer: str,
        amount: int,
        payload: bytes,
    ) -> ServiceResult:
        """Deliver an inbound payment notification relayed by the fee token."""
        def _settle() -> dict[str, Any]:
            settlement = self._engine.on_payment_received(
                token_contract, payer, amount, payload,
            )
            data = settlement.to_dict()
            if settlement.mint_result is not None:
                data["mint_result"] = settlement.mint_result
            return data

        return self._run(_settle)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        return {
            "owner": self._engine.owner,
            "fee_contract": self._engine.fee_contract,
            "cost_policy": self._engine.cost_policy.value,
            "proof_scheme": self._engine.proof_scheme.value,
            "active_roots": [hex32(r) for r in self._engine.active_roots()],
            "claims_settled": self._engine.consumed_count,
            "events": self._event_log.count,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(self, operation: Callable[[], dict[str, Any]]) -> ServiceResult:
        try:
            return ServiceResult(success=True, data=operation())
        except SettlementError as e:
            return _failure(e)
        except ValueError as e:
            return ServiceResult(success=False, errors=[str(e)])
        except OSError as e:
            return ServiceResult(success=False, errors=[f"Event log failure: {e}"])

    # ------------------------------------------------------------------
    # NotificationJournal
    # ------------------------------------------------------------------

    def record(self, notifications: Sequence[Notification]) -> None:
        """Append one committed transaction's notifications as a single batch.

        Event ids continue from the log's count, so they stay unique across
        restarts and are reused after a retraction.
        """
        base = self._event_log.count
        batch = [
            EventRecord.create(
                event_id=f"EVT-{base + offset:08d}",
                event_kind=notification.kind,
                actor_id=notification.actor,
                payload=notification.data,
            )
            for offset, notification in enumerate(notifications, 1)
        ]
        self._event_log.append_batch(batch)

    def retract(self, notifications: Sequence[Notification]) -> None:
        """Drop the batch written by the matching ``record`` call."""
        self._event_log.truncate(self._event_log.count - len(notifications))
