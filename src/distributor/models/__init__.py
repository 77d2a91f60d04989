"""Core data models for the distributor."""

from distributor.models.commitment import (
    EMPTY_PENDING,
    ZERO_ADDRESS,
    ZERO_HASH,
    PendingCommitment,
    normalize_address,
    normalize_amount,
    normalize_bytes32,
    normalize_timestamp,
)

__all__ = [
    "EMPTY_PENDING",
    "ZERO_ADDRESS",
    "ZERO_HASH",
    "PendingCommitment",
    "normalize_address",
    "normalize_amount",
    "normalize_bytes32",
    "normalize_timestamp",
]
