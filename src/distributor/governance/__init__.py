"""Governance — root authorization roster."""

from distributor.governance.roster import AuthorizationRoster

__all__ = ["AuthorizationRoster"]
