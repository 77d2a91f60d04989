#!/usr/bin/env python3
"""Distributor invariant checks against the policy artifact and a sample run.

1. Static: config/distributor_params.json is well-formed.
2. Dynamic: a scripted scenario on a fresh ledger exercises the timelock,
   the claim guard and rollback, and replay.
"""

import json
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
PARAMS_PATH = ROOT / "config" / "distributor_params.json"

sys.path.insert(0, str(ROOT / "src"))

from distributor.crypto.merkle import hash_pair, leaf_hash  # noqa: E402
from distributor.engine.ledger import RootLedger  # noqa: E402
from distributor.errors import AlreadyClaimed, TimelockNotElapsed, TransferFailed  # noqa: E402
from distributor.policy.resolver import PolicyResolver  # noqa: E402
from distributor.transfer.vault import TokenVault  # noqa: E402


OWNER = "0x" + "11" * 20
ACCOUNT = "0x" + "22" * 20
OTHER = "0x" + "33" * 20
TOKEN = "0x" + "44" * 20
LEDGER = "0x" + "55" * 20


def load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def check_params(errors: list[str]) -> None:
    try:
        PolicyResolver(load_json(PARAMS_PATH))
    except (KeyError, ValueError) as exc:
        errors.append(f"params: {exc}")


def check_scenario(errors: list[str]) -> None:
    vault = TokenVault()
    ledger = RootLedger(LEDGER, OWNER, 100, transfer=vault.payer(LEDGER), now=1)

    leaf_a = leaf_hash(ACCOUNT, TOKEN, 100)
    leaf_b = leaf_hash(OTHER, TOKEN, 50)
    root = hash_pair(leaf_a, leaf_b)

    ledger.propose_root(OWNER, root, now=1_000)
    try:
        ledger.accept_root(OTHER, now=1_099)
        errors.append("accept succeeded before the timelock elapsed")
    except TimelockNotElapsed:
        pass
    ledger.accept_root(OTHER, now=1_100)
    if ledger.root != root:
        errors.append("accepted root is not current")

    try:
        ledger.claim(OTHER, ACCOUNT, TOKEN, 100, [leaf_b], now=1_200)
        errors.append("unfunded claim succeeded")
    except TransferFailed:
        pass
    if ledger.claimed(ACCOUNT, TOKEN) != 0:
        errors.append("failed claim left claimed state behind")

    vault.deposit(TOKEN, LEDGER, 150)
    ledger.claim(OTHER, ACCOUNT, TOKEN, 100, [leaf_b], now=1_300)
    try:
        ledger.claim(OTHER, ACCOUNT, TOKEN, 100, [leaf_b], now=1_301)
        errors.append("double claim succeeded")
    except AlreadyClaimed:
        pass
    if vault.balance_of(TOKEN, ACCOUNT) != 100:
        errors.append(f"account balance {vault.balance_of(TOKEN, ACCOUNT)} != 100")

    replayed = RootLedger.restore(LEDGER, ledger.event_log.events(), transfer=vault.payer(LEDGER))
    if replayed.state() != ledger.state():
        errors.append("replayed ledger state differs from the original")


def check() -> int:
    errors: list[str] = []
    check_params(errors)
    check_scenario(errors)

    if errors:
        print("Invariant check failed:")
        for error in errors:
            print(f"  - {error}")
        return 1

    print("All distributor invariants hold.")
    return 0


if __name__ == "__main__":
    raise SystemExit(check())
