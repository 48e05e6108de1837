"""Reward claim CLI — proof tooling and owner operations.

Usage:
    python -m rewardclaim.cli leaf-hash --claimer 0x... --item-ids 1,2 --amounts 1,1 --cost 10 --salt 0x9a79
    python -m rewardclaim.cli build-tree --input claims.json
    python -m rewardclaim.cli encode-payload --root 0x... --salt 0x9a79 --proof 0x..,0x.. --item-ids 1 --amounts 1
    python -m rewardclaim.cli verify-proof --leaf 0x... --root 0x... --proof 0x..,0x..
    python -m rewardclaim.cli status
    python -m rewardclaim.cli add-root --caller 0x... --root 0x...
    python -m rewardclaim.cli deprecate-root --caller 0x... --root 0x...
    python -m rewardclaim.cli set-fee-contract --caller 0x... --address 0x...

build-tree input format:
    {"epoch_salt": "0x9a79...", "claims": [
        {"claimer": "0x...", "item_ids": [1], "amounts": [1], "cost": 10}, ...]}
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from rewardclaim.config import DEFAULT_CONFIG_FILE, EngineConfig
from rewardclaim.crypto.merkle import ClaimMerkleTree, MerkleVerifier, hasher_for
from rewardclaim.models.claim import ClaimElement, ClaimPayload, CostPolicy, ProofScheme
from rewardclaim.models.primitives import hex32, to_hash32, to_salt
from rewardclaim.persistence.event_log import EventLog
from rewardclaim.service import ClaimService, ServiceResult, build_engine
from rewardclaim.settlement.payload import ClaimPayloadCodec

logger = logging.getLogger(__name__)

DEFAULT_DATA = Path(__file__).resolve().parents[2] / "data"
DEFAULT_ENV = Path(__file__).resolve().parents[2] / ".env"


def _int_list(raw: str) -> list[int]:
    return [int(v, 0) for v in raw.split(",") if v.strip()]


def _hash_list(raw: str) -> list[bytes]:
    return [to_hash32(v.strip()) for v in raw.split(",") if v.strip()]


def _salt(raw: str) -> int:
    if raw.lower().startswith("0x"):
        return to_salt(raw)
    return to_salt(int(raw))


def _make_service(args: argparse.Namespace) -> ClaimService:
    """Create a ClaimService with durable persistence."""
    config = EngineConfig.from_config_file(args.config)
    env_file = args.env_file if args.env_file.exists() else None
    config = config.with_env_overrides(env_file)
    args.data.mkdir(parents=True, exist_ok=True)
    event_log = EventLog(storage_path=args.data / "events.jsonl")
    return ClaimService(build_engine(config), event_log=event_log)


def _report(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(result.data, indent=2))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_leaf_hash(args: argparse.Namespace) -> int:
    element = ClaimElement(
        claimer=args.claimer,
        item_ids=tuple(_int_list(args.item_ids)),
        amounts=tuple(_int_list(args.amounts)),
        cost=args.cost,
        epoch_salt=_salt(args.salt),
    )
    print(hex32(element.leaf_hash()))
    return 0


def cmd_build_tree(args: argparse.Namespace) -> int:
    """Build a claim tree and print the root with every claim's proof."""
    claims_file = json.loads(Path(args.input).read_text(encoding="utf-8"))
    salt = to_salt(claims_file["epoch_salt"])
    elements = [
        ClaimElement(
            claimer=c["claimer"],
            item_ids=tuple(c["item_ids"]),
            amounts=tuple(c["amounts"]),
            cost=int(c["cost"]),
            epoch_salt=salt,
        )
        for c in claims_file["claims"]
    ]

    tree = ClaimMerkleTree(hasher_for(args.scheme))
    for element in elements:
        tree.add_leaf(element.leaf_hash())
    root = tree.compute_root()

    claims = []
    for element in elements:
        proof = tree.inclusion_proof(element.leaf_hash())
        entry = element.to_dict()
        entry["leaf_hash"] = hex32(proof.leaf_hash)
        entry["proof"] = proof.hex_siblings()
        entry["path"] = proof.path
        claims.append(entry)

    print(json.dumps({"root": hex32(root), "epoch_salt": salt, "claims": claims}, indent=2))
    return 0


def cmd_encode_payload(args: argparse.Namespace) -> int:
    codec = ClaimPayloadCodec(CostPolicy(args.cost_policy), ProofScheme(args.scheme))
    payload = ClaimPayload(
        root=to_hash32(args.root),
        epoch_salt=_salt(args.salt),
        proof=tuple(_hash_list(args.proof)),
        item_ids=tuple(_int_list(args.item_ids)),
        amounts=tuple(_int_list(args.amounts)),
        cost=args.cost,
        path=args.path,
    )
    print("0x" + codec.encode(payload).hex())
    return 0


def cmd_verify_proof(args: argparse.Namespace) -> int:
    verifier = MerkleVerifier(hasher_for(args.scheme))
    ok = verifier.verify(
        to_hash32(args.leaf), _hash_list(args.proof), to_hash32(args.root), args.path,
    )
    print("valid" if ok else "invalid")
    return 0 if ok else 1


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_add_root(args: argparse.Namespace) -> int:
    return _report(_make_service(args).add_merkle_root(args.caller, args.root))


def cmd_deprecate_root(args: argparse.Namespace) -> int:
    return _report(_make_service(args).deprecate_merkle_root(args.caller, args.root))


def cmd_set_fee_contract(args: argparse.Namespace) -> int:
    return _report(_make_service(args).set_fee_contract(args.caller, args.address))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rewardclaim",
        description="Payment-gated Merkle reward claims: proof tooling and owner CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_FILE,
        help="Path to claim_params.json (default: config/claim_params.json)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=DEFAULT_DATA,
        help="Directory holding events.jsonl (default: data/)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=DEFAULT_ENV,
        help="Optional .env file with RPC URL and minter key",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="command")
    schemes = [s.value for s in ProofScheme]

    # leaf-hash
    p_leaf = sub.add_parser("leaf-hash", help="Compute a claim's leaf hash")
    p_leaf.add_argument("--claimer", required=True, help="Claimer address")
    p_leaf.add_argument("--item-ids", required=True, help="Comma-separated item ids")
    p_leaf.add_argument("--amounts", required=True, help="Comma-separated amounts")
    p_leaf.add_argument("--cost", type=int, required=True, help="Fee amount")
    p_leaf.add_argument("--salt", required=True, help="Epoch salt (integer or 0x-hex)")

    # build-tree
    p_tree = sub.add_parser("build-tree", help="Build a claim tree with proofs")
    p_tree.add_argument("--input", required=True, help="Claims JSON file")
    p_tree.add_argument("--scheme", default=ProofScheme.SORTED_PAIR.value, choices=schemes)

    # encode-payload
    p_enc = sub.add_parser("encode-payload", help="ABI-encode a claim payload")
    p_enc.add_argument("--root", required=True)
    p_enc.add_argument("--salt", required=True)
    p_enc.add_argument("--proof", default="", help="Comma-separated sibling hashes")
    p_enc.add_argument("--item-ids", required=True)
    p_enc.add_argument("--amounts", required=True)
    p_enc.add_argument("--cost", type=int, help="Declared cost (cost-checked only)")
    p_enc.add_argument("--path", type=int, default=0, help="Path bitmap (positional only)")
    p_enc.add_argument(
        "--cost-policy", default=CostPolicy.IMPLICIT.value,
        choices=[p.value for p in CostPolicy],
    )
    p_enc.add_argument("--scheme", default=ProofScheme.SORTED_PAIR.value, choices=schemes)

    # verify-proof
    p_ver = sub.add_parser("verify-proof", help="Check a proof against a root")
    p_ver.add_argument("--leaf", required=True)
    p_ver.add_argument("--root", required=True)
    p_ver.add_argument("--proof", default="")
    p_ver.add_argument("--path", type=int, default=0)
    p_ver.add_argument("--scheme", default=ProofScheme.SORTED_PAIR.value, choices=schemes)

    # status
    sub.add_parser("status", help="Show engine status from the event log")

    # owner operations
    p_add = sub.add_parser("add-root", help="Publish a Merkle root (owner)")
    p_add.add_argument("--caller", required=True)
    p_add.add_argument("--root", required=True)

    p_dep = sub.add_parser("deprecate-root", help="Deprecate a Merkle root (owner)")
    p_dep.add_argument("--caller", required=True)
    p_dep.add_argument("--root", required=True)

    p_fee = sub.add_parser("set-fee-contract", help="Set the fee contract (owner)")
    p_fee.add_argument("--caller", required=True)
    p_fee.add_argument("--address", required=True)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "leaf-hash": cmd_leaf_hash,
        "build-tree": cmd_build_tree,
        "encode-payload": cmd_encode_payload,
        "verify-proof": cmd_verify_proof,
        "status": cmd_status,
        "add-root": cmd_add_root,
        "deprecate-root": cmd_deprecate_root,
        "set-fee-contract": cmd_set_fee_contract,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except ValueError as e:
        logger.debug("command %s failed", args.command, exc_info=True)
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
