"""Distributor CLI — command-line interface for reward distributors.

State lives in a data directory: the event log (events.jsonl) and the
token vault (vault.json). Every invocation rebuilds all ledgers by
replaying the event log.

Usage:
    python -m distributor.cli status
    python -m distributor.cli create --caller 0xDep... --owner 0xOwn... --salt 0x01...
    python -m distributor.cli fund --token 0xTok... --holder 0xDist... --amount 1000000
    python -m distributor.cli propose --distributor 0xDist... --caller 0xOwn... --root 0xab...
    python -m distributor.cli accept --distributor 0xDist... --caller 0xAny...
    python -m distributor.cli claim --distributor 0xDist... --caller 0xAny... \\
        --account 0xAcc... --reward 0xTok... --claimable 500 --proof 0x12... 0x34...

If DISTRIBUTOR_RPC_URL and DISTRIBUTOR_PRIVATE_KEY are set (directly or
through the .env file), claims pay out on-chain instead of from the vault.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from distributor.models.commitment import ZERO_HASH
from distributor.persistence.event_log import EventLog
from distributor.policy.resolver import PolicyResolver
from distributor.service import DistributorService, ServiceResult
from distributor.transfer.vault import TokenVault
from distributor.transfer.web3_transfer import Web3TokenTransfer


DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config"
DEFAULT_DATA = Path(__file__).resolve().parents[2] / "data"
DEFAULT_ENV = Path(__file__).resolve().parents[2] / ".env"


def _make_service(args: argparse.Namespace) -> DistributorService:
    """Create a DistributorService with durable persistence."""
    data_dir: Path = args.data
    data_dir.mkdir(parents=True, exist_ok=True)
    resolver = PolicyResolver.from_config_dir(args.config)
    event_log = EventLog(storage_path=data_dir / "events.jsonl")
    vault = TokenVault(storage_path=data_dir / "vault.json")

    transfer = None
    settings = resolver.chain_settings(env_file=args.env_file)
    if settings is not None:
        transfer = Web3TokenTransfer(
            rpc_url=settings.rpc_url,
            private_key=settings.private_key,
            chain_id=settings.chain_id,
            gas=settings.gas,
            gas_price_gwei=settings.gas_price_gwei,
            timeout=settings.timeout,
        )
    return DistributorService(resolver, event_log=event_log, vault=vault, transfer=transfer)


def _report(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(result.data, indent=2, default=str))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    print(json.dumps(service.status(args.distributor), indent=2))
    return 0


def cmd_create(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.create_distributor(
        caller=args.caller,
        owner=args.owner,
        timelock=args.timelock,
        root=args.root,
        reference=args.reference,
        salt=args.salt,
        now=args.now,
    ))


def cmd_fund(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.fund(args.token, args.holder, args.amount))


def cmd_propose(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.propose_root(
        args.distributor, args.caller, args.root, args.reference, now=args.now,
    ))


def cmd_accept(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.accept_root(args.distributor, args.caller, now=args.now))


def cmd_force_update(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.force_update_root(
        args.distributor, args.caller, args.root, args.reference, now=args.now,
    ))


def cmd_revoke(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.revoke_pending_root(args.distributor, args.caller, now=args.now))


def cmd_set_timelock(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.update_timelock(
        args.distributor, args.caller, args.timelock, now=args.now,
    ))


def cmd_set_updater(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.set_updater(
        args.distributor, args.caller, args.updater, args.active == "true", now=args.now,
    ))


def cmd_transfer_ownership(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.transfer_ownership(
        args.distributor, args.caller, args.new_owner, now=args.now,
    ))


def cmd_claim(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.claim(
        args.distributor,
        args.caller,
        args.account,
        args.reward,
        args.claimable,
        args.proof,
        now=args.now,
    ))


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Run the distributor invariant checks."""
    tools_dir = Path(__file__).resolve().parents[2] / "tools"
    sys.path.insert(0, str(tools_dir))
    from check_invariants import check
    return check()


def _add_distributor_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--distributor", required=True, help="Distributor (ledger) address")
    parser.add_argument("--caller", required=True, help="Calling address")
    parser.add_argument("--now", type=int, help="Unix time to execute at (default: current time)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="distributor",
        description="Cumulative Merkle reward distributor CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=DEFAULT_DATA,
        help="Path to data directory (default: data/)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=DEFAULT_ENV,
        help="Path to .env file with RPC credentials (default: .env)",
    )
    sub = parser.add_subparsers(dest="command")

    # status
    p_status = sub.add_parser("status", help="Show factory or distributor status")
    p_status.add_argument("--distributor", help="Distributor address (default: all)")

    # create
    p_create = sub.add_parser("create", help="Create a distributor")
    p_create.add_argument("--caller", required=True, help="Deployer address")
    p_create.add_argument("--owner", required=True, help="Initial owner address")
    p_create.add_argument("--timelock", type=int, help="Timelock in seconds (default: policy)")
    p_create.add_argument("--root", default=ZERO_HASH, help="Initial root (default: none)")
    p_create.add_argument("--reference", default=ZERO_HASH, help="Initial reference")
    p_create.add_argument("--salt", default=ZERO_HASH, help="32-byte salt")
    p_create.add_argument("--now", type=int, help="Unix time to execute at")

    # fund
    p_fund = sub.add_parser("fund", help="Deposit tokens into the vault")
    p_fund.add_argument("--token", required=True, help="Token address")
    p_fund.add_argument("--holder", required=True, help="Holder address (usually a distributor)")
    p_fund.add_argument("--amount", type=int, required=True, help="Amount in base units")

    # propose / force-update
    for name, help_text in (
        ("propose", "Propose a new root"),
        ("force-update", "Owner: set a root immediately"),
    ):
        p = sub.add_parser(name, help=help_text)
        _add_distributor_args(p)
        p.add_argument("--root", required=True, help="Merkle root (32-byte hex)")
        p.add_argument("--reference", default=ZERO_HASH, help="Reference (32-byte hex)")

    # accept / revoke
    _add_distributor_args(sub.add_parser("accept", help="Accept the pending root"))
    _add_distributor_args(sub.add_parser("revoke", help="Owner: revoke the pending root"))

    # set-timelock
    p_tl = sub.add_parser("set-timelock", help="Owner: change the timelock")
    _add_distributor_args(p_tl)
    p_tl.add_argument("--timelock", type=int, required=True, help="Timelock in seconds")

    # set-updater
    p_up = sub.add_parser("set-updater", help="Owner: grant or clear updater status")
    _add_distributor_args(p_up)
    p_up.add_argument("--updater", required=True, help="Updater address")
    p_up.add_argument("--active", choices=["true", "false"], default="true")

    # transfer-ownership
    p_own = sub.add_parser("transfer-ownership", help="Owner: hand over ownership")
    _add_distributor_args(p_own)
    p_own.add_argument("--new-owner", required=True, help="New owner address")

    # claim
    p_claim = sub.add_parser("claim", help="Claim rewards for an account")
    _add_distributor_args(p_claim)
    p_claim.add_argument("--account", required=True, help="Account entitled to the rewards")
    p_claim.add_argument("--reward", required=True, help="Reward token address")
    p_claim.add_argument("--claimable", type=int, required=True, help="Cumulative claimable amount")
    p_claim.add_argument("--proof", nargs="*", default=[], help="Sibling hashes, leaf to root")

    # check-invariants
    sub.add_parser("check-invariants", help="Run distributor invariant checks")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "create": cmd_create,
        "fund": cmd_fund,
        "propose": cmd_propose,
        "accept": cmd_accept,
        "force-update": cmd_force_update,
        "revoke": cmd_revoke,
        "set-timelock": cmd_set_timelock,
        "set-updater": cmd_set_updater,
        "transfer-ownership": cmd_transfer_ownership,
        "claim": cmd_claim,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
