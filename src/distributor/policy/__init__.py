"""Policy — configuration loading."""

from distributor.policy.resolver import ChainSettings, PolicyResolver

__all__ = ["ChainSettings", "PolicyResolver"]
