"""Distributor errors — the complete failure taxonomy of the engine.

Every failure is synchronous and local. The engine never retries; the
caller decides what to do next. Any error raised from an operation means
none of that operation's state changes were applied.
"""

from __future__ import annotations


class DistributorError(Exception):
    """Base class for all distributor failures."""


class Unauthorized(DistributorError):
    """Caller lacks the owner or updater capability for the operation."""

    def __init__(self, caller: str, capability: str) -> None:
        super().__init__(f"{caller} lacks {capability} capability")
        self.caller = caller
        self.capability = capability


class NoPendingCommitment(DistributorError):
    """The operation requires a pending root and none exists."""


class TimelockNotElapsed(DistributorError):
    """Acceptance attempted, or timelock shortened, before the wait passed."""

    def __init__(self, valid_at: int, now: int) -> None:
        super().__init__(
            f"Timelock not elapsed: valid at {valid_at}, now {now} "
            f"({valid_at - now}s remaining)"
        )
        self.valid_at = valid_at
        self.now = now


class CommitmentNotSet(DistributorError):
    """Claim attempted while no root is active."""


class InvalidProof(DistributorError):
    """The proof does not reconstruct the current root from the leaf."""


class AlreadyClaimed(DistributorError):
    """Nothing left to pay: requested cumulative amount is not above claimed."""

    def __init__(self, account: str, reward: str, claimable: int, claimed: int) -> None:
        super().__init__(
            f"{account} already claimed {claimed} of {reward} "
            f"(requested cumulative {claimable})"
        )
        self.account = account
        self.reward = reward
        self.claimable = claimable
        self.claimed = claimed


class TransferFailed(DistributorError):
    """The token-transfer collaborator reported failure; the claim was rolled back."""


class DeploymentCollision(DistributorError):
    """An instance already exists at the derived deterministic address."""


class TransferPending(DistributorError):
    """A payout was submitted but its outcome is not yet known.

    Raised by a transfer collaborator once value may already be moving
    (e.g. a broadcast transaction whose receipt never arrived). The ledger
    keeps the claim recorded instead of rolling it back.
    """

    def __init__(self, reference: str, message: str) -> None:
        super().__init__(message)
        self.reference = reference
