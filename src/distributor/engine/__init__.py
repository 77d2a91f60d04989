"""Distributor engine — root ledger, capability markers, instance factory."""

from distributor.engine.capability import Capability, operation
from distributor.engine.factory import InstanceFactory
from distributor.engine.ledger import RootLedger

__all__ = ["Capability", "operation", "InstanceFactory", "RootLedger"]
