"""Token transfer abstraction — how a claim actually pays out.

The ledger never moves value itself. It hands (token, recipient, amount)
to a TokenTransfer implementation after its own bookkeeping is final.
Any failure must be raised; a transfer that returns normally is taken as
done. The ledger does not retry.

Adding a new settlement backend = implement this Protocol. Zero changes
to the ledger or the factory.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenTransfer(Protocol):
    """Moves amount of token to recipient, raising on any failure."""

    def transfer(self, token: str, recipient: str, amount: int) -> None:
        ...
