"""Token vault — a balance book that settles claims without a chain.

The vault tracks integer balances per (token, holder). A ledger pays out
through a VaultPayer bound to the ledger's own address, so a claim can
only spend what was deposited for that ledger.

Balances can be persisted to a JSON file so that the CLI keeps them
across invocations. Amounts are written as decimal strings to keep the
full uint256 range exact.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from distributor.errors import DistributorError
from distributor.models.commitment import normalize_address, normalize_amount


class InsufficientBalance(DistributorError):
    """Raised when a holder cannot cover a transfer."""


class TokenVault:
    """In-memory token balances with optional file persistence.

    Usage:
        vault = TokenVault()
        vault.deposit(token, ledger.address, 1_000)
        ledger = RootLedger(..., transfer=vault.payer(ledger_address))
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._balances: dict[str, dict[str, int]] = {}
        self._storage_path = storage_path

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def balance_of(self, token: str, holder: str) -> int:
        token = normalize_address(token)
        holder = normalize_address(holder)
        return self._balances.get(token, {}).get(holder, 0)

    def deposit(self, token: str, holder: str, amount: int) -> int:
        """Credit a holder from outside the system. Returns the new balance."""
        token = normalize_address(token)
        holder = normalize_address(holder)
        amount = normalize_amount(amount)
        book = self._balances.setdefault(token, {})
        book[holder] = book.get(holder, 0) + amount
        self._save()
        return book[holder]

    def move(self, token: str, sender: str, recipient: str, amount: int) -> None:
        """Move amount of token from sender to recipient.

        Raises InsufficientBalance without touching any balance if the
        sender cannot cover it.
        """
        token = normalize_address(token)
        sender = normalize_address(sender)
        recipient = normalize_address(recipient)
        amount = normalize_amount(amount)

        book = self._balances.setdefault(token, {})
        available = book.get(sender, 0)
        if available < amount:
            raise InsufficientBalance(
                f"{sender} holds {available} of {token}, needs {amount}"
            )
        book[sender] = available - amount
        book[recipient] = book.get(recipient, 0) + amount
        self._save()

    def payer(self, holder: str) -> VaultPayer:
        """A TokenTransfer that pays out of holder's balance."""
        return VaultPayer(self, normalize_address(holder))

    def _save(self) -> None:
        if self._storage_path is None:
            return
        data = {
            token: {holder: str(balance) for holder, balance in sorted(book.items())}
            for token, book in sorted(self._balances.items())
        }
        tmp = self._storage_path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        tmp.replace(self._storage_path)

    def _load_from_file(self, path: Path) -> None:
        data = json.loads(path.read_text(encoding="utf-8"))
        for token, book in data.items():
            self._balances[normalize_address(token)] = {
                normalize_address(holder): int(balance)
                for holder, balance in book.items()
            }


class VaultPayer:
    """TokenTransfer implementation backed by a TokenVault holder."""

    def __init__(self, vault: TokenVault, holder: str) -> None:
        self._vault = vault
        self._holder = holder

    @property
    def holder(self) -> str:
        return self._holder

    def transfer(self, token: str, recipient: str, amount: int) -> None:
        self._vault.move(token, self._holder, recipient, amount)
