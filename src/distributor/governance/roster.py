"""Authorization roster — who may change a ledger's root.

The roster holds one owner and a set of updaters. Updaters may propose
roots; the owner may additionally force roots, change the timelock, edit
the roster, revoke a pending root and hand over ownership. The owner is
implicitly an updater whether or not it appears in the updater set.

Each RootLedger owns exactly one roster. There is no shared or global
roster.
"""

from __future__ import annotations

from distributor.models.commitment import ZERO_ADDRESS, normalize_address


class AuthorizationRoster:
    """Owner plus updater set for a single ledger.

    Thread-safety: this class is not thread-safe. The ledger serialises
    all access.
    """

    def __init__(self, owner: str = ZERO_ADDRESS) -> None:
        self._owner = normalize_address(owner)
        self._updaters: set[str] = set()

    @property
    def owner(self) -> str:
        return self._owner

    def set_owner(self, new_owner: str) -> str:
        """Replace the owner. Returns the previous owner."""
        previous = self._owner
        self._owner = normalize_address(new_owner)
        return previous

    def set_updater(self, address: str, active: bool) -> None:
        """Grant or clear updater status. Idempotent."""
        canonical = normalize_address(address)
        if active:
            self._updaters.add(canonical)
        else:
            self._updaters.discard(canonical)

    def is_owner(self, address: str) -> bool:
        return normalize_address(address) == self._owner

    def is_updater(self, address: str) -> bool:
        """Explicit updater status; the owner's implicit right is not reported here."""
        return normalize_address(address) in self._updaters

    def can_update(self, address: str) -> bool:
        """Owner or updater."""
        return self.is_owner(address) or self.is_updater(address)

    def updaters(self) -> list[str]:
        return sorted(self._updaters)

    def copy(self) -> AuthorizationRoster:
        clone = AuthorizationRoster(self._owner)
        clone._updaters = set(self._updaters)
        return clone
