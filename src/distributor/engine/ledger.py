"""Root ledger — timelocked root management plus cumulative claim accounting.

The ledger holds the current Merkle root of (account, reward, cumulative
claimable) entries, at most one pending root waiting out the timelock,
the per-(account, reward) amount already paid, and the roster that may
change the root.

Pending-root lifecycle:
    EMPTY   → PENDING   (propose_root, timelock > 0)
    PENDING → CURRENT   (accept_root, once the timelock has elapsed)
    PENDING → EMPTY     (revoke_pending_root, force_update_root)
    PENDING → PENDING   (a newer proposal silently replaces the old one)
    EMPTY   → CURRENT   (propose_root with timelock 0, force_update_root)

Invariants enforced:
- At most one pending root exists.
- claimed[account, reward] only increases, and only through claim().
- A claim pays exactly claimable - claimed, which must be positive.
- claimed is written before the transfer collaborator is called.
- Every operation is all-or-nothing: on failure, state is restored and
  the operation's events are dropped. A payout reported as pending
  (TransferPending) is not a failure: the claim stays recorded.

State changes go through _apply(), the same path used to replay a
persisted event log, so a restored ledger is identical to the original.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Iterator, Optional

from distributor.crypto.merkle import leaf_hash, verify_proof
from distributor.engine.capability import Capability, operation
from distributor.errors import (
    AlreadyClaimed,
    CommitmentNotSet,
    InvalidProof,
    NoPendingCommitment,
    TimelockNotElapsed,
    TransferFailed,
    TransferPending,
)
from distributor.governance.roster import AuthorizationRoster
from distributor.models.commitment import (
    EMPTY_PENDING,
    ZERO_ADDRESS,
    ZERO_HASH,
    Bytes32Like,
    PendingCommitment,
    normalize_address,
    normalize_amount,
    normalize_bytes32,
    normalize_timestamp,
)
from distributor.persistence.event_log import EventKind, EventLog, EventRecord
from distributor.transfer.rail import TokenTransfer


Clock = Callable[[], int]


def system_clock() -> int:
    """Current UTC time in whole seconds."""
    return int(datetime.now(timezone.utc).timestamp())


@dataclass(frozen=True)
class _Snapshot:
    root: str
    reference: str
    pending: PendingCommitment
    timelock: int
    roster: AuthorizationRoster
    unconfirmed: dict[tuple[str, str], str]


class RootLedger:
    """A single reward distribution instance.

    Usage:
        ledger = RootLedger(address, owner, timelock=86_400, transfer=payer)
        ledger.set_updater(owner, updater, True)
        ledger.propose_root(updater, root, reference)
        # ... one day later, anyone:
        ledger.accept_root(anyone)
        amount = ledger.claim(anyone, account, reward, claimable, proof)

    Every mutating operation takes the caller first and an optional `now`
    (unix seconds); `now` defaults to the ledger clock. The host is
    expected to serialise calls; the ledger itself is not thread-safe.
    """

    def __init__(
        self,
        address: str,
        owner: str,
        timelock: int,
        initial_root: Bytes32Like = ZERO_HASH,
        initial_reference: Bytes32Like = ZERO_HASH,
        *,
        transfer: TokenTransfer,
        event_log: Optional[EventLog] = None,
        clock: Optional[Clock] = None,
        now: Optional[int] = None,
        creator: Optional[str] = None,
    ) -> None:
        self._init_state(address, transfer, event_log, clock)
        owner = normalize_address(owner)
        timelock = normalize_amount(timelock)
        initial_root = normalize_bytes32(initial_root)
        initial_reference = normalize_bytes32(initial_reference)
        actor = normalize_address(creator) if creator is not None else owner

        with self._transaction():
            ts = self._now(now)
            self._emit(
                EventKind.OWNER_CHANGED, actor, ts,
                {"old_owner": ZERO_ADDRESS, "new_owner": owner},
            )
            self._emit(EventKind.TIMELOCK_UPDATED, actor, ts, {"timelock": timelock})
            if initial_root != ZERO_HASH:
                self._emit(
                    EventKind.ROOT_UPDATED, actor, ts,
                    {"root": initial_root, "reference": initial_reference},
                )

    def _init_state(
        self,
        address: str,
        transfer: TokenTransfer,
        event_log: Optional[EventLog],
        clock: Optional[Clock],
    ) -> None:
        self._address = normalize_address(address)
        self._transfer = transfer
        self._event_log = event_log if event_log is not None else EventLog()
        self._clock = clock or system_clock

        self._roster = AuthorizationRoster()
        self._root = ZERO_HASH
        self._reference = ZERO_HASH
        self._pending = EMPTY_PENDING
        self._timelock = 0
        self._claimed: dict[tuple[str, str], int] = {}
        self._unconfirmed: dict[tuple[str, str], str] = {}

        self._sequence = 0
        self._buffer: list[tuple[EventKind, str, int, dict[str, Any]]] = []
        self._undo_claims: Optional[list[tuple[tuple[str, str], Optional[int]]]] = None

    @classmethod
    def restore(
        cls,
        address: str,
        events: Iterable[EventRecord],
        *,
        transfer: TokenTransfer,
        event_log: Optional[EventLog] = None,
        clock: Optional[Clock] = None,
    ) -> RootLedger:
        """Rebuild a ledger by replaying its events in log order.

        Events emitted by other addresses are ignored. Nothing is appended
        to the log while replaying.
        """
        ledger = cls.__new__(cls)
        ledger._init_state(address, transfer, event_log, clock)
        for event in events:
            if event.emitter != ledger._address:
                continue
            if event.event_kind == EventKind.INSTANCE_CREATED:
                continue
            ledger._apply(event.event_kind, event.payload)
            ledger._sequence += 1
        return ledger

    # ------------------------------------------------------------------
    # Root management
    # ------------------------------------------------------------------

    @operation(Capability.UPDATER)
    def propose_root(
        self,
        caller: str,
        root: Bytes32Like,
        reference: Bytes32Like = ZERO_HASH,
        now: Optional[int] = None,
    ) -> None:
        """Propose a new root.

        With a zero timelock the root takes effect immediately. Otherwise
        it becomes the pending root, replacing any earlier pending root.
        """
        ts = self._now(now)
        root = normalize_bytes32(root)
        reference = normalize_bytes32(reference)

        if self._timelock == 0:
            self._emit(EventKind.ROOT_UPDATED, caller, ts, {"root": root, "reference": reference})
            return

        # submitted_at == 0 marks "nothing pending".
        if ts == 0:
            raise ValueError("Cannot submit a pending root at time 0")
        self._emit(
            EventKind.ROOT_PROPOSED, caller, ts,
            {"root": root, "reference": reference, "submitted_at": ts},
        )

    @operation(Capability.ANYONE)
    def accept_root(self, caller: str, now: Optional[int] = None) -> None:
        """Promote the pending root once its timelock has elapsed."""
        ts = self._now(now)
        if not self._pending.exists:
            raise NoPendingCommitment("No pending root to accept")
        valid_at = self._pending.valid_at(self._timelock)
        if ts < valid_at:
            raise TimelockNotElapsed(valid_at, ts)

        self._emit(
            EventKind.ROOT_UPDATED, caller, ts,
            {"root": self._pending.root, "reference": self._pending.reference},
        )

    @operation(Capability.OWNER)
    def force_update_root(
        self,
        caller: str,
        root: Bytes32Like,
        reference: Bytes32Like = ZERO_HASH,
        now: Optional[int] = None,
    ) -> None:
        """Set the root immediately and discard any pending root.

        A zero root disables claiming.
        """
        ts = self._now(now)
        self._emit(
            EventKind.ROOT_UPDATED, caller, ts,
            {"root": normalize_bytes32(root), "reference": normalize_bytes32(reference)},
        )

    @operation(Capability.OWNER)
    def revoke_pending_root(self, caller: str, now: Optional[int] = None) -> None:
        """Discard the pending root, whether or not its timelock has elapsed."""
        ts = self._now(now)
        if not self._pending.exists:
            raise NoPendingCommitment("No pending root to revoke")
        self._emit(EventKind.PENDING_ROOT_REVOKED, caller, ts, {})

    @operation(Capability.OWNER)
    def update_timelock(self, caller: str, new_timelock: int, now: Optional[int] = None) -> None:
        """Change the timelock.

        Shortening it is only allowed when nothing is pending or the
        pending root has already waited out the current timelock, so an
        owner cannot rush through a root that is already under review.
        """
        ts = self._now(now)
        new_timelock = normalize_amount(new_timelock)
        if new_timelock < self._timelock and self._pending.exists:
            valid_at = self._pending.valid_at(self._timelock)
            if ts < valid_at:
                raise TimelockNotElapsed(valid_at, ts)
        self._emit(EventKind.TIMELOCK_UPDATED, caller, ts, {"timelock": new_timelock})

    # ------------------------------------------------------------------
    # Roster management
    # ------------------------------------------------------------------

    @operation(Capability.OWNER)
    def set_updater(
        self,
        caller: str,
        address: str,
        active: bool,
        now: Optional[int] = None,
    ) -> None:
        """Grant or clear updater status. Idempotent."""
        ts = self._now(now)
        self._emit(
            EventKind.UPDATER_SET, caller, ts,
            {"address": normalize_address(address), "active": bool(active)},
        )

    @operation(Capability.OWNER)
    def transfer_ownership(self, caller: str, new_owner: str, now: Optional[int] = None) -> None:
        ts = self._now(now)
        self._emit(
            EventKind.OWNER_CHANGED, caller, ts,
            {"old_owner": self._roster.owner, "new_owner": normalize_address(new_owner)},
        )

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    @operation(Capability.ANYONE)
    def claim(
        self,
        caller: str,
        account: str,
        reward: str,
        claimable: int,
        proof: Iterable[Bytes32Like],
        now: Optional[int] = None,
    ) -> int:
        """Pay account whatever is owed of reward up to claimable.

        Anyone may submit the claim; the proof, not the caller, authorises
        it. Returns the amount transferred.

        If the transfer collaborator raises TransferPending the payout may
        still land, so the claim stays recorded and the pending reference
        is kept (see pending_transfer) instead of rolling back.
        """
        ts = self._now(now)
        account = normalize_address(account)
        reward = normalize_address(reward)
        claimable = normalize_amount(claimable)

        if self._root == ZERO_HASH:
            raise CommitmentNotSet("No root is set; claiming is disabled")

        leaf = leaf_hash(account, reward, claimable)
        try:
            valid = verify_proof(proof, self._root, leaf)
        except ValueError as exc:
            raise InvalidProof(f"Malformed proof: {exc}") from exc
        if not valid:
            raise InvalidProof(
                f"Proof does not match root {self._root} for "
                f"({account}, {reward}, {claimable})"
            )

        already = self.claimed(account, reward)
        if claimable <= already:
            raise AlreadyClaimed(account, reward, claimable, already)
        amount = claimable - already

        self._emit(
            EventKind.CLAIMED, caller, ts,
            {"account": account, "reward": reward, "amount": amount, "claimable": claimable},
        )

        try:
            self._transfer.transfer(reward, account, amount)
        except TransferPending as exc:
            self._emit(
                EventKind.TRANSFER_UNCONFIRMED, caller, ts,
                {"account": account, "reward": reward, "amount": amount, "reference": exc.reference},
            )
        except Exception as exc:
            raise TransferFailed(
                f"Transfer of {amount} {reward} to {account} failed: {exc}"
            ) from exc

        return amount

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def address(self) -> str:
        return self._address

    @property
    def root(self) -> str:
        return self._root

    @property
    def reference(self) -> str:
        return self._reference

    @property
    def owner(self) -> str:
        return self._roster.owner

    @property
    def timelock(self) -> int:
        return self._timelock

    @property
    def pending_root(self) -> PendingCommitment:
        """The pending root; all fields zero when nothing is pending."""
        return self._pending

    @property
    def roster(self) -> AuthorizationRoster:
        """A copy of the authorization roster."""
        return self._roster.copy()

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    def is_updater(self, address: str) -> bool:
        return self._roster.is_updater(address)

    def claimed(self, account: str, reward: str) -> int:
        """Cumulative amount of reward already paid to account."""
        key = (normalize_address(account), normalize_address(reward))
        return self._claimed.get(key, 0)

    def pending_transfer(self, account: str, reward: str) -> Optional[str]:
        """Reference of the latest payout for (account, reward) if its outcome is unknown."""
        key = (normalize_address(account), normalize_address(reward))
        return self._unconfirmed.get(key)

    def state(self) -> dict[str, Any]:
        """Serializable summary of the ledger's state."""
        return {
            "address": self._address,
            "owner": self._roster.owner,
            "updaters": self._roster.updaters(),
            "timelock": self._timelock,
            "root": self._root,
            "reference": self._reference,
            "pending_root": self._pending.to_dict(),
            "claims": len(self._claimed),
            "unconfirmed_transfers": len(self._unconfirmed),
        }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _now(self, now: Optional[int]) -> int:
        return normalize_timestamp(self._clock() if now is None else now)

    def _emit(self, kind: EventKind, actor: str, ts: int, payload: dict[str, Any]) -> None:
        """Apply a state change and buffer its event until commit."""
        self._apply(kind, payload)
        self._buffer.append((kind, actor, ts, payload))

    def _apply(self, kind: EventKind, payload: dict[str, Any]) -> None:
        """The single place ledger state is mutated."""
        if kind == EventKind.OWNER_CHANGED:
            self._roster.set_owner(payload["new_owner"])
        elif kind == EventKind.TIMELOCK_UPDATED:
            self._timelock = payload["timelock"]
        elif kind == EventKind.UPDATER_SET:
            self._roster.set_updater(payload["address"], payload["active"])
        elif kind == EventKind.ROOT_PROPOSED:
            self._pending = PendingCommitment(
                submitted_at=payload["submitted_at"],
                root=payload["root"],
                reference=payload["reference"],
            )
        elif kind == EventKind.ROOT_UPDATED:
            self._root = payload["root"]
            self._reference = payload["reference"]
            self._pending = EMPTY_PENDING
        elif kind == EventKind.PENDING_ROOT_REVOKED:
            self._pending = EMPTY_PENDING
        elif kind == EventKind.CLAIMED:
            key = (payload["account"], payload["reward"])
            if self._undo_claims is not None:
                self._undo_claims.append((key, self._claimed.get(key)))
            self._claimed[key] = payload["claimable"]
            self._unconfirmed.pop(key, None)
        elif kind == EventKind.TRANSFER_UNCONFIRMED:
            self._unconfirmed[(payload["account"], payload["reward"])] = payload["reference"]
        else:
            raise ValueError(f"Event kind {kind.value} does not apply to a ledger")

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Run an operation all-or-nothing.

        On any exception the ledger returns to its state at entry and the
        buffered events are dropped. On success the buffered events are
        appended to the log. A transaction opened from inside another one
        (a transfer collaborator calling back into the ledger) acts as a
        savepoint: its events join the outer buffer and commit with it.
        """
        snapshot = _Snapshot(
            root=self._root,
            reference=self._reference,
            pending=self._pending,
            timelock=self._timelock,
            roster=self._roster.copy(),
            unconfirmed=dict(self._unconfirmed),
        )
        outer_buffer, outer_undo = self._buffer, self._undo_claims
        self._undo_claims = []
        self._buffer = []
        try:
            yield
            if outer_undo is None:
                self._commit()
        except BaseException:
            self._root = snapshot.root
            self._reference = snapshot.reference
            self._pending = snapshot.pending
            self._timelock = snapshot.timelock
            self._roster = snapshot.roster
            self._unconfirmed = snapshot.unconfirmed
            for key, previous in reversed(self._undo_claims):
                if previous is None:
                    self._claimed.pop(key, None)
                else:
                    self._claimed[key] = previous
            self._buffer, self._undo_claims = outer_buffer, outer_undo
            raise

        if outer_undo is not None:
            outer_undo.extend(self._undo_claims)
            outer_buffer.extend(self._buffer)
            self._buffer, self._undo_claims = outer_buffer, outer_undo
            return
        self._undo_claims = None

    def _commit(self) -> None:
        """Write the buffered events to the log as the operation's last step.

        Records are built before anything is appended, and the log takes
        them as one unit, so a failure here still rolls the operation back.
        """
        records = [
            EventRecord.create(
                event_id=f"{self._address}:{self._sequence + offset}",
                event_kind=kind,
                emitter=self._address,
                actor_id=actor,
                payload=payload,
                timestamp_utc=datetime.fromtimestamp(ts, tz=timezone.utc),
            )
            for offset, (kind, actor, ts, payload) in enumerate(self._buffer, 1)
        ]
        self._event_log.append_all(records)
        self._sequence += len(records)
        self._buffer = []
