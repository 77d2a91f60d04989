"""Distributor service — unified facade over the factory and its ledgers.

This is the primary interface for programmatic and CLI access. It wires
together:
- Policy (timelock default, factory address, creation code)
- The append-only event log (optionally file-backed)
- The payout collaborator (token vault, or an on-chain transfer)
- The instance factory and every ledger it has created

On construction the whole system is rebuilt by replaying the event log,
so a file-backed service picks up exactly where the last one stopped.

All operations return a ServiceResult. Distributor errors and input
validation errors are reported in the result, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from distributor.engine.factory import InstanceFactory
from distributor.engine.ledger import Clock, RootLedger
from distributor.errors import DistributorError
from distributor.models.commitment import ZERO_HASH, Bytes32Like
from distributor.persistence.event_log import EventLog
from distributor.policy.resolver import PolicyResolver
from distributor.transfer.rail import TokenTransfer
from distributor.transfer.vault import TokenVault


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class DistributorService:
    """Facade over the factory, its ledgers and the payout rail.

    Usage:
        resolver = PolicyResolver.from_config_dir(config_dir)
        service = DistributorService(resolver)

        result = service.create_distributor(deployer, owner, salt=salt)
        address = result.data["address"]
        service.fund(reward_token, address, 1_000_000)
        service.propose_root(address, owner, root)
        service.accept_root(address, anyone)
        service.claim(address, anyone, account, reward_token, 500, proof)

    Payouts go through `transfer` when given (e.g. Web3TokenTransfer);
    otherwise each ledger pays from its own balance in the token vault.
    """

    def __init__(
        self,
        resolver: PolicyResolver,
        event_log: Optional[EventLog] = None,
        vault: Optional[TokenVault] = None,
        transfer: Optional[TokenTransfer] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._resolver = resolver
        self._event_log = event_log if event_log is not None else EventLog()
        self._vault = vault if vault is not None else TokenVault()

        if transfer is not None:
            payer_for: Callable[[str], TokenTransfer] = lambda _address: transfer
        else:
            payer_for = self._vault.payer

        self._factory = InstanceFactory.restore(
            resolver.factory_address(),
            self._event_log.events(),
            payer_for=payer_for,
            event_log=self._event_log,
            clock=clock,
            creation_code=resolver.creation_code(),
        )

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    def create_distributor(
        self,
        caller: str,
        owner: str,
        timelock: Optional[int] = None,
        root: Bytes32Like = ZERO_HASH,
        reference: Bytes32Like = ZERO_HASH,
        salt: Bytes32Like = ZERO_HASH,
        now: Optional[int] = None,
    ) -> ServiceResult:
        """Create a ledger; timelock defaults to the configured policy value."""
        if timelock is None:
            timelock = self._resolver.default_timelock()
        try:
            ledger = self._factory.create(caller, owner, timelock, root, reference, salt, now=now)
        except (DistributorError, ValueError) as exc:
            return ServiceResult(success=False, errors=[f"{type(exc).__name__}: {exc}"])
        return ServiceResult(success=True, data=ledger.state())

    def predict_address(
        self,
        owner: str,
        timelock: Optional[int] = None,
        root: Bytes32Like = ZERO_HASH,
        reference: Bytes32Like = ZERO_HASH,
        salt: Bytes32Like = ZERO_HASH,
    ) -> ServiceResult:
        if timelock is None:
            timelock = self._resolver.default_timelock()
        try:
            address = self._factory.compute_address(owner, timelock, root, reference, salt)
        except ValueError as exc:
            return ServiceResult(success=False, errors=[f"{type(exc).__name__}: {exc}"])
        return ServiceResult(success=True, data={"address": address})

    def get_ledger(self, address: str) -> Optional[RootLedger]:
        try:
            return self._factory.get(address)
        except ValueError:
            return None

    # ------------------------------------------------------------------
    # Root management
    # ------------------------------------------------------------------

    def propose_root(
        self,
        address: str,
        caller: str,
        root: Bytes32Like,
        reference: Bytes32Like = ZERO_HASH,
        now: Optional[int] = None,
    ) -> ServiceResult:
        return self._run(address, lambda ledger: ledger.propose_root(caller, root, reference, now=now))

    def accept_root(self, address: str, caller: str, now: Optional[int] = None) -> ServiceResult:
        return self._run(address, lambda ledger: ledger.accept_root(caller, now=now))

    def force_update_root(
        self,
        address: str,
        caller: str,
        root: Bytes32Like,
        reference: Bytes32Like = ZERO_HASH,
        now: Optional[int] = None,
    ) -> ServiceResult:
        return self._run(
            address, lambda ledger: ledger.force_update_root(caller, root, reference, now=now),
        )

    def revoke_pending_root(self, address: str, caller: str, now: Optional[int] = None) -> ServiceResult:
        return self._run(address, lambda ledger: ledger.revoke_pending_root(caller, now=now))

    def update_timelock(
        self, address: str, caller: str, timelock: int, now: Optional[int] = None,
    ) -> ServiceResult:
        return self._run(address, lambda ledger: ledger.update_timelock(caller, timelock, now=now))

    def set_updater(
        self, address: str, caller: str, updater: str, active: bool, now: Optional[int] = None,
    ) -> ServiceResult:
        return self._run(address, lambda ledger: ledger.set_updater(caller, updater, active, now=now))

    def transfer_ownership(
        self, address: str, caller: str, new_owner: str, now: Optional[int] = None,
    ) -> ServiceResult:
        return self._run(address, lambda ledger: ledger.transfer_ownership(caller, new_owner, now=now))

    # ------------------------------------------------------------------
    # Claims and funding
    # ------------------------------------------------------------------

    def claim(
        self,
        address: str,
        caller: str,
        account: str,
        reward: str,
        claimable: int,
        proof: Iterable[Bytes32Like],
        now: Optional[int] = None,
    ) -> ServiceResult:
        proof = list(proof)
        result = self._run(
            address,
            lambda ledger: {
                "amount": ledger.claim(caller, account, reward, claimable, proof, now=now),
            },
        )
        if result.success:
            ledger = self._factory.get(address)
            result.data["claimed"] = ledger.claimed(account, reward)
            pending = ledger.pending_transfer(account, reward)
            if pending is not None:
                result.data["pending_transfer"] = pending
        return result

    def fund(self, token: str, holder: str, amount: int) -> ServiceResult:
        """Deposit tokens into the vault for a holder (typically a ledger)."""
        try:
            balance = self._vault.deposit(token, holder, amount)
        except ValueError as exc:
            return ServiceResult(success=False, errors=[f"{type(exc).__name__}: {exc}"])
        return ServiceResult(success=True, data={"balance": balance})

    def balance_of(self, token: str, holder: str) -> int:
        return self._vault.balance_of(token, holder)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def status(self, address: Optional[str] = None) -> dict[str, Any]:
        """Summary of one ledger, or of the factory and all its ledgers."""
        if address is not None:
            ledger = self.get_ledger(address)
            return ledger.state() if ledger is not None else {}
        return {
            "factory": self._factory.address,
            "events": self._event_log.count,
            "instances": [ledger.state() for ledger in self._factory.instances()],
        }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run(self, address: str, action: Callable[[RootLedger], Any]) -> ServiceResult:
        ledger = self.get_ledger(address)
        if ledger is None:
            return ServiceResult(success=False, errors=[f"Unknown distributor: {address}"])
        try:
            outcome = action(ledger)
        except (DistributorError, ValueError) as exc:
            return ServiceResult(success=False, errors=[f"{type(exc).__name__}: {exc}"])
        data = ledger.state()
        if isinstance(outcome, dict):
            data.update(outcome)
        return ServiceResult(success=True, data=data)
