"""Instance factory — deterministic creation of RootLedger instances.

A ledger's address is derived CREATE2-style from the factory address, a
salt and the constructor parameters, so anyone can compute it in advance
and the same inputs always name the same instance. Creating twice at one
address fails with DeploymentCollision.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from distributor.crypto.create2 import create2_address, init_code
from distributor.engine.ledger import Clock, RootLedger, system_clock
from distributor.errors import DeploymentCollision
from distributor.models.commitment import (
    ZERO_HASH,
    Bytes32Like,
    normalize_address,
    normalize_amount,
    normalize_bytes32,
    normalize_timestamp,
)
from distributor.persistence.event_log import EventKind, EventLog, EventRecord
from distributor.transfer.rail import TokenTransfer


DEFAULT_CREATION_CODE = b"distributor.RootLedger/1"

PayerFactory = Callable[[str], TokenTransfer]


class InstanceFactory:
    """Creates and indexes RootLedger instances.

    Usage:
        factory = InstanceFactory(factory_address, payer_for=vault.payer)
        address = factory.compute_address(owner, 86_400, root, ref, salt)
        ledger = factory.create(deployer, owner, 86_400, root, ref, salt)
        assert ledger.address == address

    payer_for maps a new ledger's address to the TokenTransfer it pays
    claims through.
    """

    def __init__(
        self,
        address: str,
        *,
        payer_for: PayerFactory,
        event_log: Optional[EventLog] = None,
        clock: Optional[Clock] = None,
        creation_code: bytes = DEFAULT_CREATION_CODE,
    ) -> None:
        self._address = normalize_address(address)
        self._payer_for = payer_for
        self._event_log = event_log if event_log is not None else EventLog()
        self._clock = clock or system_clock
        self._creation_code = creation_code
        self._instances: dict[str, RootLedger] = {}
        self._sequence = 0

    @property
    def address(self) -> str:
        return self._address

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    def compute_address(
        self,
        owner: str,
        timelock: int,
        root: Bytes32Like,
        reference: Bytes32Like,
        salt: Bytes32Like,
    ) -> str:
        """The address create() would use for these parameters."""
        code = init_code(self._creation_code, owner, timelock, root, reference)
        return create2_address(self._address, salt, code)

    def create(
        self,
        caller: str,
        owner: str,
        timelock: int,
        root: Bytes32Like = ZERO_HASH,
        reference: Bytes32Like = ZERO_HASH,
        salt: Bytes32Like = ZERO_HASH,
        now: Optional[int] = None,
    ) -> RootLedger:
        """Create a ledger at its deterministic address and record it.

        The ledger's own initialization events precede the creation record
        in the log.
        """
        caller = normalize_address(caller)
        owner = normalize_address(owner)
        timelock = normalize_amount(timelock)
        root = normalize_bytes32(root)
        reference = normalize_bytes32(reference)
        salt = normalize_bytes32(salt)
        ts = normalize_timestamp(self._clock() if now is None else now)

        address = self.compute_address(owner, timelock, root, reference, salt)
        if address in self._instances:
            raise DeploymentCollision(f"Instance already exists at {address}")

        record = EventRecord.create(
            event_id=f"{self._address}:{self._sequence + 1}",
            event_kind=EventKind.INSTANCE_CREATED,
            emitter=self._address,
            actor_id=caller,
            payload={
                "address": address,
                "creator": caller,
                "owner": owner,
                "timelock": timelock,
                "root": root,
                "reference": reference,
                "salt": salt,
            },
            timestamp_utc=datetime.fromtimestamp(ts, tz=timezone.utc),
        )
        ledger = RootLedger(
            address,
            owner,
            timelock,
            root,
            reference,
            transfer=self._payer_for(address),
            event_log=self._event_log,
            clock=self._clock,
            now=ts,
            creator=caller,
        )
        self._event_log.append(record)
        self._sequence += 1
        self._instances[address] = ledger
        return ledger

    def get(self, address: str) -> Optional[RootLedger]:
        return self._instances.get(normalize_address(address))

    def instances(self) -> list[RootLedger]:
        return list(self._instances.values())

    @classmethod
    def restore(
        cls,
        address: str,
        events: Iterable[EventRecord],
        *,
        payer_for: PayerFactory,
        event_log: Optional[EventLog] = None,
        clock: Optional[Clock] = None,
        creation_code: bytes = DEFAULT_CREATION_CODE,
    ) -> InstanceFactory:
        """Rebuild a factory and every ledger it created from the log."""
        factory = cls(
            address,
            payer_for=payer_for,
            event_log=event_log,
            clock=clock,
            creation_code=creation_code,
        )
        events = list(events)
        for event in events:
            if event.emitter != factory._address:
                continue
            factory._sequence += 1
            if event.event_kind != EventKind.INSTANCE_CREATED:
                continue
            ledger_address = event.payload["address"]
            factory._instances[ledger_address] = RootLedger.restore(
                ledger_address,
                events,
                transfer=payer_for(ledger_address),
                event_log=factory._event_log,
                clock=factory._clock,
            )
        return factory
