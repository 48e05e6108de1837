"""Tests for the reward claim CLI — proves commands dispatch and persist."""

import json
from pathlib import Path

import pytest

from conftest import CLAIMERS, EPOCH_SALT, build_elements, build_tree
from rewardclaim.cli import build_parser, main
from rewardclaim.crypto.leaf import leaf_hash
from rewardclaim.crypto.merkle import MerkleVerifier
from rewardclaim.models.claim import ClaimPayload
from rewardclaim.models.primitives import hex32
from rewardclaim.settlement.payload import ClaimPayloadCodec

OWNER = "0x1111111111111111111111111111111111111111"
ROOT = "0x" + "ab" * 32
SALT_HEX = "0x9a794a09cf7b4fb99e2e3d4aeac42eab"


@pytest.fixture
def global_args(tmp_path: Path) -> list[str]:
    return ["--data", str(tmp_path / "data"), "--env-file", str(tmp_path / "missing.env")]


class TestCLIParsing:
    def test_leaf_hash_command(self) -> None:
        args = build_parser().parse_args([
            "leaf-hash", "--claimer", CLAIMERS[0], "--item-ids", "1,2",
            "--amounts", "1,1", "--cost", "10", "--salt", "7",
        ])
        assert args.command == "leaf-hash"
        assert args.cost == 10

    def test_scheme_choices_enforced(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["build-tree", "--input", "x", "--scheme", "bogus"])

    def test_defaults(self) -> None:
        args = build_parser().parse_args(["status"])
        assert args.log_level == "WARNING"
        assert args.config.name == "claim_params.json"


class TestProofTooling:
    def test_leaf_hash(self, capsys: pytest.CaptureFixture) -> None:
        exit_code = main([
            "leaf-hash", "--claimer", CLAIMERS[0], "--item-ids", "1",
            "--amounts", "1", "--cost", "10", "--salt", SALT_HEX,
        ])
        assert exit_code == 0
        expected = leaf_hash(CLAIMERS[0], [1], [1], 10, EPOCH_SALT)
        assert capsys.readouterr().out.strip() == hex32(expected)

    def test_leaf_hash_decimal_salt(self, capsys: pytest.CaptureFixture) -> None:
        main([
            "leaf-hash", "--claimer", CLAIMERS[0], "--item-ids", "1",
            "--amounts", "1", "--cost", "10", "--salt", "10",
        ])
        expected = leaf_hash(CLAIMERS[0], [1], [1], 10, 10)
        assert capsys.readouterr().out.strip() == hex32(expected)

    def test_leaf_hash_bad_address(self, capsys: pytest.CaptureFixture) -> None:
        exit_code = main([
            "leaf-hash", "--claimer", "0x12", "--item-ids", "1",
            "--amounts", "1", "--cost", "10", "--salt", "1",
        ])
        assert exit_code == 1
        assert "Invalid address" in capsys.readouterr().err

    def test_build_tree(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        elements = build_elements()
        claims_input = {
            "epoch_salt": SALT_HEX,
            "claims": [
                {"claimer": e.claimer, "item_ids": list(e.item_ids),
                 "amounts": list(e.amounts), "cost": e.cost}
                for e in elements
            ],
        }
        input_file = tmp_path / "claims.json"
        input_file.write_text(json.dumps(claims_input))

        assert main(["build-tree", "--input", str(input_file)]) == 0
        output = json.loads(capsys.readouterr().out)

        root = build_tree(elements).root
        assert output["root"] == hex32(root)
        assert output["epoch_salt"] == EPOCH_SALT
        verifier = MerkleVerifier()
        for claim in output["claims"]:
            assert verifier.verify(claim["leaf_hash"], claim["proof"], root)

    def test_encode_payload(self, capsys: pytest.CaptureFixture) -> None:
        sibling = "0x" + "cd" * 32
        exit_code = main([
            "encode-payload", "--root", ROOT, "--salt", SALT_HEX, "--proof", sibling,
            "--item-ids", "1,2", "--amounts", "3,4",
        ])
        assert exit_code == 0
        expected = ClaimPayloadCodec().encode(ClaimPayload(
            root=ROOT, epoch_salt=EPOCH_SALT, proof=(sibling,),
            item_ids=(1, 2), amounts=(3, 4),
        ))
        assert capsys.readouterr().out.strip() == "0x" + expected.hex()

    def test_encode_cost_checked_without_cost(self) -> None:
        exit_code = main([
            "encode-payload", "--root", ROOT, "--salt", "1",
            "--item-ids", "1", "--amounts", "1", "--cost-policy", "cost-checked",
        ])
        assert exit_code == 1

    def test_verify_proof(self, capsys: pytest.CaptureFixture) -> None:
        elements = build_elements()
        tree = build_tree(elements)
        proof = tree.inclusion_proof(elements[1].leaf_hash())
        args = [
            "verify-proof", "--leaf", hex32(proof.leaf_hash),
            "--root", hex32(tree.root), "--proof", ",".join(proof.hex_siblings()),
        ]
        assert main(args) == 0
        assert capsys.readouterr().out.strip() == "valid"

    def test_verify_proof_invalid(self, capsys: pytest.CaptureFixture) -> None:
        elements = build_elements()
        tree = build_tree(elements)
        proof = tree.inclusion_proof(elements[1].leaf_hash())
        args = [
            "verify-proof", "--leaf", hex32(elements[0].leaf_hash()),
            "--root", hex32(tree.root), "--proof", ",".join(proof.hex_siblings()),
        ]
        assert main(args) == 1
        assert capsys.readouterr().out.strip() == "invalid"


class TestOwnerCommands:
    def test_status_runs(self, global_args: list[str], capsys: pytest.CaptureFixture) -> None:
        assert main(global_args + ["status"]) == 0
        status = json.loads(capsys.readouterr().out)
        assert status["active_roots"] == []
        assert status["events"] == 0

    def test_add_root_persists(
        self, tmp_path: Path, global_args: list[str], capsys: pytest.CaptureFixture,
    ) -> None:
        assert main(global_args + ["add-root", "--caller", OWNER, "--root", ROOT]) == 0
        capsys.readouterr()
        assert (tmp_path / "data" / "events.jsonl").exists()

        assert main(global_args + ["status"]) == 0
        status = json.loads(capsys.readouterr().out)
        assert status["active_roots"] == [ROOT]
        assert status["events"] == 1

    def test_deprecate_root(self, global_args: list[str], capsys: pytest.CaptureFixture) -> None:
        main(global_args + ["add-root", "--caller", OWNER, "--root", ROOT])
        assert main(global_args + ["deprecate-root", "--caller", OWNER, "--root", ROOT]) == 0
        capsys.readouterr()
        main(global_args + ["status"])
        assert json.loads(capsys.readouterr().out)["active_roots"] == []

    def test_non_owner_fails(self, global_args: list[str], capsys: pytest.CaptureFixture) -> None:
        exit_code = main(global_args + ["add-root", "--caller", CLAIMERS[0], "--root", ROOT])
        assert exit_code == 1
        assert "not the contract owner" in capsys.readouterr().err

    def test_set_fee_contract(self, global_args: list[str], capsys: pytest.CaptureFixture) -> None:
        new_fee = "0x4444444444444444444444444444444444444444"
        exit_code = main(global_args + ["set-fee-contract", "--caller", OWNER, "--address", new_fee])
        assert exit_code == 0
        capsys.readouterr()
        main(global_args + ["status"])
        assert json.loads(capsys.readouterr().out)["fee_contract"] == new_fee

    def test_no_command_prints_help(self) -> None:
        assert main([]) == 0
