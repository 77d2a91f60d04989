"""Cumulative Merkle reward distributor.

Publishes reward entitlements as a timelocked Merkle root and pays out
cumulative claims against it exactly once.
"""

from distributor.engine.factory import InstanceFactory
from distributor.engine.ledger import RootLedger
from distributor.errors import (
    AlreadyClaimed,
    CommitmentNotSet,
    DeploymentCollision,
    DistributorError,
    InvalidProof,
    NoPendingCommitment,
    TimelockNotElapsed,
    TransferFailed,
    TransferPending,
    Unauthorized,
)

__all__ = [
    "InstanceFactory",
    "RootLedger",
    "AlreadyClaimed",
    "CommitmentNotSet",
    "DeploymentCollision",
    "DistributorError",
    "InvalidProof",
    "NoPendingCommitment",
    "TimelockNotElapsed",
    "TransferFailed",
    "TransferPending",
    "Unauthorized",
]
