"""Collaborator contracts — the narrow interfaces the engine calls out to.

The engine never moves the fee token and never tracks reward balances. It
is notified by the fee token and asks the reward token to mint:

- FeeToken: calls ``ClaimSettlementEngine.on_payment_received`` from
  inside its own transfer, and undoes the transfer if the hook raises.
- RewardMinter: mints a batch of reward items. The engine must hold the
  minter capability, granted out of band.
- NotificationJournal: persists each committed batch of notifications
  before listeners see it.

Any object satisfying these Protocols can be wired in (in-process
simulations, ``rewardclaim.chain.minter.Web3RewardMinter``, test doubles).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from rewardclaim.settlement.engine import Notification


@runtime_checkable
class RewardMinter(Protocol):
    """Batch-mint capability on the reward token."""

    def mint_batch(
        self,
        recipient: str,
        item_ids: Sequence[int],
        amounts: Sequence[int],
    ) -> Any:
        """Mint ``amounts[i]`` of ``item_ids[i]`` to ``recipient``.

        Must raise on failure; a return value is passed through to the
        settlement record untouched.
        """
        ...


@runtime_checkable
class FeeToken(Protocol):
    """Fungible fee token that notifies receivers of inbound transfers."""

    @property
    def address(self) -> str:
        """The token contract's own address (passed to the receiver hook)."""
        ...

    def safe_transfer(self, sender: str, to: Any, amount: int, data: bytes) -> None:
        """Move ``amount`` from ``sender`` and notify ``to`` with ``data``."""
        ...


@runtime_checkable
class NotificationJournal(Protocol):
    """Durable record of committed notifications.

    ``record`` receives every notification of one committed transaction and
    must persist all of them or none. ``retract`` removes exactly that batch
    again; the engine calls it when a listener fails after the batch was
    recorded.
    """

    def record(self, notifications: Sequence[Notification]) -> None:
        ...

    def retract(self, notifications: Sequence[Notification]) -> None:
        ...
