"""Engine configuration — JSON parameters plus environment overrides.

Non-secret deployment parameters live in ``config/claim_params.json``.
Connection details and secrets come from the environment (optionally a
``.env`` file):

    REWARDCLAIM_RPC_URL               JSON-RPC endpoint for the reward chain
    REWARDCLAIM_MINTER_PRIVATE_KEY    key of the account holding the minter role
    REWARDCLAIM_FEE_CONTRACT          overrides the configured fee contract

Private keys are never read from the JSON file. The fee contract set here is
only the starting value: once the event log records a fee contract update,
replay restores that address instead.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from rewardclaim.models.claim import CostPolicy, ProofScheme
from rewardclaim.models.primitives import normalize_address

DEFAULT_CONFIG_FILE = (
    Path(__file__).resolve().parents[2] / "config" / "claim_params.json"
)


@dataclass(frozen=True)
class EngineConfig:
    """Deployment parameters for one fee/reward pair."""

    owner: str
    fee_contract: str
    reward_contract: str
    cost_policy: CostPolicy = CostPolicy.IMPLICIT
    proof_scheme: ProofScheme = ProofScheme.SORTED_PAIR
    chain_id: int = 11155111
    rpc_url: Optional[str] = None
    minter_private_key: Optional[str] = None

    @classmethod
    def from_config_file(cls, path: Path = DEFAULT_CONFIG_FILE) -> EngineConfig:
        """Load from a claim_params.json file."""
        params = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls(
            owner=normalize_address(params["owner"]),
            fee_contract=normalize_address(params["fee_contract"]),
            reward_contract=normalize_address(params["reward_contract"]),
            cost_policy=CostPolicy(params.get("cost_policy", CostPolicy.IMPLICIT.value)),
            proof_scheme=ProofScheme(
                params.get("proof_scheme", ProofScheme.SORTED_PAIR.value)
            ),
            chain_id=int(params.get("chain_id", 11155111)),
            rpc_url=params.get("rpc_url"),
        )

    def with_env_overrides(self, env_file: Optional[Path] = None) -> EngineConfig:
        """Return a copy with values from the environment applied.

        If ``env_file`` is given it is loaded first; variables already set
        in the process environment take precedence over the file.
        """
        if env_file is not None:
            load_dotenv(env_file)

        fee = os.getenv("REWARDCLAIM_FEE_CONTRACT")
        return replace(
            self,
            rpc_url=os.getenv("REWARDCLAIM_RPC_URL") or self.rpc_url,
            minter_private_key=(
                os.getenv("REWARDCLAIM_MINTER_PRIVATE_KEY") or self.minter_private_key
            ),
            fee_contract=normalize_address(fee) if fee else self.fee_contract,
        )

    @property
    def can_mint(self) -> bool:
        """True when an on-chain minter can be built from this config."""
        return bool(self.rpc_url and self.minter_private_key)
