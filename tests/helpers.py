"""Shared test helpers — addresses, a tiny sorted-pair tree builder, payout doubles.

Tree building is an off-chain concern; it lives here only so tests can
produce real proofs.
"""

from __future__ import annotations

from eth_utils import to_checksum_address

from distributor.crypto.merkle import hash_pair, leaf_hash


def addr(byte: int) -> str:
    """A deterministic checksum address made of one repeated byte."""
    return to_checksum_address("0x" + f"{byte:02x}" * 20)


def h32(n: int) -> str:
    """A deterministic 32-byte hex value."""
    return f"0x{n:064x}"


OWNER = addr(0x11)
UPDATER = addr(0x12)
STRANGER = addr(0x13)
ALICE = addr(0xA1)
BOB = addr(0xB0)
CAROL = addr(0xC0)
TOKEN = addr(0x70)
OTHER_TOKEN = addr(0x71)
LEDGER = addr(0x55)
FACTORY = addr(0xFA)


class RewardTree:
    """Sorted-pair keccak Merkle tree over (account, reward, claimable) entries.

    Leaves are sorted; an odd node at the end of a level is carried up
    unchanged, so proofs are plain sibling lists.
    """

    def __init__(self, entries: list[tuple[str, str, int]]) -> None:
        self._leaves = {entry: leaf_hash(*entry) for entry in entries}
        self._levels: list[list[str]] = [sorted(self._leaves.values())]
        while len(self._levels[-1]) > 1:
            current = self._levels[-1]
            parents: list[str] = []
            for i in range(0, len(current), 2):
                if i + 1 < len(current):
                    parents.append(hash_pair(current[i], current[i + 1]))
                else:
                    parents.append(current[i])
            self._levels.append(parents)

    @property
    def root(self) -> str:
        return self._levels[-1][0]

    def proof(self, account: str, reward: str, claimable: int) -> list[str]:
        leaf = self._leaves[(account, reward, claimable)]
        index = self._levels[0].index(leaf)
        path: list[str] = []
        for level in self._levels[:-1]:
            sibling = index ^ 1
            if sibling < len(level):
                path.append(level[sibling])
            index //= 2
        return path


class RecordingTransfer:
    """TokenTransfer double that records every payout."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, int]] = []

    def transfer(self, token: str, recipient: str, amount: int) -> None:
        self.calls.append((token, recipient, amount))


class FailingTransfer:
    """TokenTransfer double that always fails."""

    def __init__(self, message: str = "token reverted") -> None:
        self.message = message
        self.attempts = 0

    def transfer(self, token: str, recipient: str, amount: int) -> None:
        self.attempts += 1
        raise RuntimeError(self.message)


class ManualClock:
    """Clock double advanced by hand."""

    def __init__(self, now: int = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds
