"""Commitment models — roots, references and the pending-root record.

A commitment is a 32-byte Merkle root summarising the full set of
(account, reward, cumulative claimable) entries for a distribution epoch.
It travels with an opaque 32-byte reference (typically a content address
for the off-chain tree data) that has no effect on claiming.

All 32-byte values are held as 0x-prefixed lowercase hex strings so they
compare, hash, serialise and print identically everywhere. Addresses are
held in EIP-55 checksum form.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from eth_utils import is_address, to_checksum_address


# Sentinel for "no root" and "no reference".
ZERO_HASH = "0x" + "0" * 64
ZERO_ADDRESS = "0x" + "0" * 40

Bytes32Like = Union[str, bytes]


def normalize_bytes32(value: Bytes32Like) -> str:
    """Return a 32-byte value as 0x-prefixed lowercase hex.

    Accepts raw bytes or a hex string with or without the 0x prefix.
    Raises ValueError on anything that is not exactly 32 bytes.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 32:
            raise ValueError(f"Expected 32 bytes, got {len(value)}")
        return "0x" + bytes(value).hex()
    if not isinstance(value, str):
        raise ValueError(f"Expected hex string or bytes, got {type(value).__name__}")
    digits = value[2:] if value[:2] in ("0x", "0X") else value
    if len(digits) != 64:
        raise ValueError(f"Expected 64 hex digits, got {len(digits)}: {value!r}")
    try:
        bytes.fromhex(digits)
    except ValueError as exc:
        raise ValueError(f"Not a hex value: {value!r}") from exc
    return "0x" + digits.lower()


def normalize_address(value: str) -> str:
    """Return an address in checksum form. Raises ValueError if malformed."""
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"Invalid address: {value!r}")
    return to_checksum_address(value)


def normalize_amount(value: int) -> int:
    """Validate a uint256 amount."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Amount must be an int, got {type(value).__name__}")
    if value < 0 or value >= 2**256:
        raise ValueError(f"Amount out of uint256 range: {value}")
    return value


# 9999-12-31T23:59:59Z, the last second a datetime can represent.
MAX_TIMESTAMP = 253_402_300_799


def normalize_timestamp(value: int) -> int:
    """Validate unix seconds that an event timestamp can carry."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Timestamp must be an int, got {type(value).__name__}")
    if value < 0 or value > MAX_TIMESTAMP:
        raise ValueError(f"Timestamp out of range: {value}")
    return value


@dataclass(frozen=True)
class PendingCommitment:
    """A proposed root waiting out the timelock.

    submitted_at == 0 is the sentinel for "nothing pending"; EMPTY_PENDING
    is the canonical instance of it.
    """
    submitted_at: int
    root: str
    reference: str

    @property
    def exists(self) -> bool:
        return self.submitted_at != 0

    def valid_at(self, timelock: int) -> int:
        """Earliest time at which this root may be accepted."""
        return self.submitted_at + timelock

    def to_dict(self) -> dict:
        return {
            "submitted_at": self.submitted_at,
            "root": self.root,
            "reference": self.reference,
        }


EMPTY_PENDING = PendingCommitment(submitted_at=0, root=ZERO_HASH, reference=ZERO_HASH)
