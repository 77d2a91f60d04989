"""Capability markers — declared access rules for ledger operations.

Every public mutating operation on a RootLedger is decorated with the
capability its caller must hold:

    ANYONE   no identity check (acceptance and claims; the timelock and
             the Merkle proof carry the protection)
    UPDATER  owner or an explicit updater
    OWNER    owner only

The decorator also makes the operation atomic: it runs inside the
ledger's transaction, so a failure at any step leaves no trace.
"""

from __future__ import annotations

import enum
import functools
from typing import Any, Callable, TypeVar

from distributor.errors import Unauthorized
from distributor.governance.roster import AuthorizationRoster
from distributor.models.commitment import normalize_address


class Capability(str, enum.Enum):
    ANYONE = "anyone"
    UPDATER = "updater"
    OWNER = "owner"


F = TypeVar("F", bound=Callable[..., Any])


def authorize(roster: AuthorizationRoster, caller: str, capability: Capability) -> None:
    """Raise Unauthorized unless caller holds capability."""
    if capability == Capability.ANYONE:
        return
    if capability == Capability.OWNER:
        allowed = roster.is_owner(caller)
    else:
        allowed = roster.can_update(caller)
    if not allowed:
        raise Unauthorized(caller, capability.value)


def operation(capability: Capability) -> Callable[[F], F]:
    """Mark a ledger method as an atomic operation gated by capability.

    The wrapped method receives the caller in checksum form as its first
    argument after self.
    """

    def decorator(method: F) -> F:
        @functools.wraps(method)
        def wrapper(self: Any, caller: str, *args: Any, **kwargs: Any) -> Any:
            caller = normalize_address(caller)
            authorize(self._roster, caller, capability)
            with self._transaction():
                return method(self, caller, *args, **kwargs)

        wrapper.capability = capability  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
