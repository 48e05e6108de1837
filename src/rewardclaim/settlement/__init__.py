"""Settlement — root registry, claim ledger, payload codec and the settlement engine."""

from rewardclaim.settlement.engine import ClaimSettlementEngine, Notification
from rewardclaim.settlement.ledger import ClaimLedger
from rewardclaim.settlement.payload import ClaimPayloadCodec
from rewardclaim.settlement.registry import RootRegistry

__all__ = [
    "ClaimLedger",
    "ClaimPayloadCodec",
    "ClaimSettlementEngine",
    "Notification",
    "RootRegistry",
]
