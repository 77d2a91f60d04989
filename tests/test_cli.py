"""Tests for the distributor CLI — proves commands dispatch and state persists between runs."""

import json
from pathlib import Path

import pytest

from distributor.cli import build_parser, main
from helpers import ALICE, BOB, OWNER, STRANGER, TOKEN, UPDATER, RewardTree, h32


T0 = 1_700_000_000


@pytest.fixture
def run(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Invoke the CLI against an isolated data dir with no chain credentials."""
    monkeypatch.delenv("DISTRIBUTOR_RPC_URL", raising=False)
    monkeypatch.delenv("DISTRIBUTOR_PRIVATE_KEY", raising=False)
    base = ["--data", str(tmp_path / "data"), "--env-file", str(tmp_path / "none.env")]

    def _run(*argv: str) -> int:
        return main(base + list(argv))

    return _run


def _create(run, capsys, *extra: str) -> str:
    assert run("create", "--caller", STRANGER, "--owner", OWNER, "--now", str(T0), *extra) == 0
    return json.loads(capsys.readouterr().out)["address"]


class TestCLIParsing:
    def test_status_command(self) -> None:
        args = build_parser().parse_args(["status"])
        assert args.command == "status"
        assert args.distributor is None

    def test_claim_command(self) -> None:
        args = build_parser().parse_args([
            "claim", "--distributor", OWNER, "--caller", STRANGER,
            "--account", ALICE, "--reward", TOKEN, "--claimable", "500",
            "--proof", h32(1), h32(2),
        ])
        assert args.command == "claim"
        assert args.claimable == 500
        assert args.proof == [h32(1), h32(2)]

    def test_set_updater_active_choices(self) -> None:
        parser = build_parser()
        with pytest.raises(SystemExit):
            parser.parse_args([
                "set-updater", "--distributor", OWNER, "--caller", OWNER,
                "--updater", UPDATER, "--active", "maybe",
            ])


class TestCLIExecution:
    def test_no_command_shows_help(self, capsys) -> None:
        assert main([]) == 0

    def test_status_runs(self, run, capsys) -> None:
        assert run("status") == 0
        status = json.loads(capsys.readouterr().out)
        assert status["instances"] == []

    def test_check_invariants_runs(self) -> None:
        assert main(["check-invariants"]) == 0

    def test_full_lifecycle_across_invocations(self, run, capsys) -> None:
        tree = RewardTree([(ALICE, TOKEN, 300), (BOB, TOKEN, 200)])
        address = _create(run, capsys, "--timelock", "3600")

        assert run("fund", "--token", TOKEN, "--holder", address, "--amount", "1000") == 0
        assert run(
            "propose", "--distributor", address, "--caller", OWNER,
            "--root", tree.root, "--now", str(T0 + 10),
        ) == 0
        capsys.readouterr()

        assert run("accept", "--distributor", address, "--caller", STRANGER,
                   "--now", str(T0 + 100)) == 1
        assert "TimelockNotElapsed" in capsys.readouterr().err

        assert run("accept", "--distributor", address, "--caller", STRANGER,
                   "--now", str(T0 + 3610)) == 0
        capsys.readouterr()

        assert run(
            "claim", "--distributor", address, "--caller", STRANGER,
            "--account", ALICE, "--reward", TOKEN, "--claimable", "300",
            "--proof", *tree.proof(ALICE, TOKEN, 300), "--now", str(T0 + 3620),
        ) == 0
        result = json.loads(capsys.readouterr().out)
        assert result["amount"] == 300
        assert result["claimed"] == 300

        assert run(
            "claim", "--distributor", address, "--caller", STRANGER,
            "--account", ALICE, "--reward", TOKEN, "--claimable", "300",
            "--proof", *tree.proof(ALICE, TOKEN, 300), "--now", str(T0 + 3630),
        ) == 1
        assert "AlreadyClaimed" in capsys.readouterr().err

        assert run("status", "--distributor", address) == 0
        status = json.loads(capsys.readouterr().out)
        assert status["root"] == tree.root
        assert status["claims"] == 1

    def test_owner_commands(self, run, capsys) -> None:
        address = _create(run, capsys)
        assert run("set-updater", "--distributor", address, "--caller", OWNER,
                   "--updater", UPDATER, "--now", str(T0)) == 0
        assert run("propose", "--distributor", address, "--caller", UPDATER,
                   "--root", h32(1), "--now", str(T0 + 1)) == 0
        assert run("revoke", "--distributor", address, "--caller", OWNER,
                   "--now", str(T0 + 2)) == 0
        assert run("set-timelock", "--distributor", address, "--caller", OWNER,
                   "--timelock", "0", "--now", str(T0 + 3)) == 0
        assert run("force-update", "--distributor", address, "--caller", OWNER,
                   "--root", h32(2), "--now", str(T0 + 4)) == 0
        assert run("transfer-ownership", "--distributor", address, "--caller", OWNER,
                   "--new-owner", STRANGER, "--now", str(T0 + 5)) == 0
        capsys.readouterr()

        assert run("status", "--distributor", address) == 0
        status = json.loads(capsys.readouterr().out)
        assert status["owner"] == STRANGER
        assert status["updaters"] == [UPDATER]
        assert status["timelock"] == 0
        assert status["root"] == h32(2)

    def test_unauthorized_reports_failure(self, run, capsys) -> None:
        address = _create(run, capsys)
        assert run("force-update", "--distributor", address, "--caller", STRANGER,
                   "--root", h32(1)) == 1
        assert "Unauthorized" in capsys.readouterr().err

    def test_duplicate_create_fails(self, run, capsys) -> None:
        _create(run, capsys)
        assert run("create", "--caller", STRANGER, "--owner", OWNER) == 1
        assert "DeploymentCollision" in capsys.readouterr().err

    def test_unknown_distributor(self, run, capsys) -> None:
        assert run("accept", "--distributor", ALICE, "--caller", STRANGER) == 1
        assert "Unknown distributor" in capsys.readouterr().err
