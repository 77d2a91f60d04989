"""Tests for the authorization roster and capability checks."""

import pytest

from distributor.engine.capability import Capability, authorize
from distributor.errors import Unauthorized
from distributor.governance.roster import AuthorizationRoster
from helpers import OWNER, STRANGER, UPDATER


class TestAuthorizationRoster:
    def test_owner_is_implicit_updater(self) -> None:
        roster = AuthorizationRoster(OWNER)
        assert roster.can_update(OWNER)
        assert not roster.is_updater(OWNER)

    def test_set_updater_is_idempotent(self) -> None:
        roster = AuthorizationRoster(OWNER)
        roster.set_updater(UPDATER, True)
        roster.set_updater(UPDATER, True)
        assert roster.updaters() == [UPDATER]
        roster.set_updater(UPDATER, False)
        roster.set_updater(UPDATER, False)
        assert roster.updaters() == []

    def test_lookup_is_case_insensitive(self) -> None:
        roster = AuthorizationRoster(OWNER)
        roster.set_updater(UPDATER.lower(), True)
        assert roster.is_updater(UPDATER)
        assert roster.is_owner(OWNER.lower())

    def test_set_owner_returns_previous(self) -> None:
        roster = AuthorizationRoster(OWNER)
        assert roster.set_owner(STRANGER) == OWNER
        assert roster.owner == STRANGER

    def test_copy_is_independent(self) -> None:
        roster = AuthorizationRoster(OWNER)
        clone = roster.copy()
        clone.set_updater(UPDATER, True)
        assert not roster.is_updater(UPDATER)

    def test_rejects_bad_address(self) -> None:
        with pytest.raises(ValueError):
            AuthorizationRoster("owner")


class TestAuthorize:
    def test_anyone(self) -> None:
        authorize(AuthorizationRoster(OWNER), STRANGER, Capability.ANYONE)

    def test_updater_capability(self) -> None:
        roster = AuthorizationRoster(OWNER)
        roster.set_updater(UPDATER, True)
        authorize(roster, UPDATER, Capability.UPDATER)
        authorize(roster, OWNER, Capability.UPDATER)
        with pytest.raises(Unauthorized):
            authorize(roster, STRANGER, Capability.UPDATER)

    def test_owner_capability_excludes_updaters(self) -> None:
        roster = AuthorizationRoster(OWNER)
        roster.set_updater(UPDATER, True)
        with pytest.raises(Unauthorized, match="owner"):
            authorize(roster, UPDATER, Capability.OWNER)
