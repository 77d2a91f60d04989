"""Tests for the distributor service facade — proves errors come back as results."""

from pathlib import Path

import pytest

from distributor.persistence.event_log import EventLog
from distributor.policy.resolver import PolicyResolver
from distributor.service import DistributorService
from distributor.transfer.vault import TokenVault
from helpers import (
    ALICE,
    BOB,
    OWNER,
    STRANGER,
    TOKEN,
    UPDATER,
    FailingTransfer,
    ManualClock,
    RecordingTransfer,
    RewardTree,
    h32,
)


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


@pytest.fixture
def resolver() -> PolicyResolver:
    return PolicyResolver.from_config_dir(CONFIG_DIR)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def service(resolver: PolicyResolver, clock: ManualClock) -> DistributorService:
    return DistributorService(resolver, clock=clock)


def _create(service: DistributorService, **kwargs) -> str:
    result = service.create_distributor(STRANGER, OWNER, **kwargs)
    assert result.success, result.errors
    return result.data["address"]


class TestCreate:
    def test_default_timelock_from_policy(self, service: DistributorService) -> None:
        address = _create(service)
        assert service.get_ledger(address).timelock == 86_400

    def test_predicted_address_matches(self, service: DistributorService) -> None:
        predicted = service.predict_address(OWNER, 10, salt=h32(4))
        assert predicted.success
        assert _create(service, timelock=10, salt=h32(4)) == predicted.data["address"]

    def test_collision_is_a_failed_result(self, service: DistributorService) -> None:
        _create(service)
        result = service.create_distributor(STRANGER, OWNER)
        assert not result.success
        assert result.errors[0].startswith("DeploymentCollision")

    def test_bad_owner_is_a_failed_result(self, service: DistributorService) -> None:
        result = service.create_distributor(STRANGER, "not-an-address")
        assert not result.success


class TestRootLifecycle:
    def test_propose_wait_accept(self, service: DistributorService, clock: ManualClock) -> None:
        address = _create(service)
        assert service.set_updater(address, OWNER, UPDATER, True).success
        assert service.propose_root(address, UPDATER, h32(1), h32(2)).success

        early = service.accept_root(address, STRANGER)
        assert not early.success
        assert "TimelockNotElapsed" in early.errors[0]

        clock.advance(86_400)
        accepted = service.accept_root(address, STRANGER)
        assert accepted.success
        assert accepted.data["root"] == h32(1)
        assert accepted.data["reference"] == h32(2)

    def test_revoke_and_force(self, service: DistributorService) -> None:
        address = _create(service)
        service.propose_root(address, OWNER, h32(1))
        assert service.revoke_pending_root(address, OWNER).success
        assert service.force_update_root(address, OWNER, h32(3)).data["root"] == h32(3)

    def test_update_timelock_and_ownership(self, service: DistributorService) -> None:
        address = _create(service)
        assert service.update_timelock(address, OWNER, 5).data["timelock"] == 5
        assert service.transfer_ownership(address, OWNER, BOB).data["owner"] == BOB
        result = service.update_timelock(address, OWNER, 6)
        assert not result.success
        assert result.errors[0].startswith("Unauthorized")

    def test_unknown_distributor(self, service: DistributorService) -> None:
        result = service.accept_root(ALICE, STRANGER)
        assert not result.success
        assert "Unknown distributor" in result.errors[0]

    def test_malformed_input_is_a_failed_result(self, service: DistributorService) -> None:
        address = _create(service)
        result = service.propose_root(address, OWNER, "0x12")
        assert not result.success
        assert result.errors[0].startswith("ValueError")


class TestClaims:
    def test_claim_pays_from_vault(self, service: DistributorService) -> None:
        tree = RewardTree([(ALICE, TOKEN, 70), (BOB, TOKEN, 30)])
        address = _create(service, timelock=0, root=tree.root)
        assert service.fund(TOKEN, address, 100).data["balance"] == 100

        result = service.claim(address, STRANGER, ALICE, TOKEN, 70, tree.proof(ALICE, TOKEN, 70))
        assert result.success
        assert result.data["amount"] == 70
        assert result.data["claimed"] == 70
        assert service.balance_of(TOKEN, ALICE) == 70
        assert service.balance_of(TOKEN, address) == 30

    def test_unfunded_claim_fails_and_rolls_back(self, service: DistributorService) -> None:
        tree = RewardTree([(ALICE, TOKEN, 70)])
        address = _create(service, timelock=0, root=tree.root)
        result = service.claim(address, STRANGER, ALICE, TOKEN, 70, tree.proof(ALICE, TOKEN, 70))
        assert not result.success
        assert result.errors[0].startswith("TransferFailed")
        assert service.get_ledger(address).claimed(ALICE, TOKEN) == 0

    def test_external_transfer_rail(self, resolver: PolicyResolver) -> None:
        rail = RecordingTransfer()
        service = DistributorService(resolver, transfer=rail)
        tree = RewardTree([(ALICE, TOKEN, 5)])
        address = _create(service, timelock=0, root=tree.root)
        assert service.claim(address, STRANGER, ALICE, TOKEN, 5, tree.proof(ALICE, TOKEN, 5)).success
        assert rail.calls == [(TOKEN, ALICE, 5)]

    def test_failing_rail(self, resolver: PolicyResolver) -> None:
        service = DistributorService(resolver, transfer=FailingTransfer())
        tree = RewardTree([(ALICE, TOKEN, 5)])
        address = _create(service, timelock=0, root=tree.root)
        result = service.claim(address, STRANGER, ALICE, TOKEN, 5, tree.proof(ALICE, TOKEN, 5))
        assert not result.success

    def test_negative_fund_rejected(self, service: DistributorService) -> None:
        assert not service.fund(TOKEN, ALICE, -5).success


class TestPersistence:
    def test_service_resumes_from_files(self, resolver: PolicyResolver, tmp_path: Path) -> None:
        events = tmp_path / "events.jsonl"
        balances = tmp_path / "vault.json"
        tree = RewardTree([(ALICE, TOKEN, 70), (BOB, TOKEN, 30)])

        first = DistributorService(
            resolver, event_log=EventLog(events), vault=TokenVault(balances),
        )
        address = _create(first, timelock=0, root=tree.root)
        first.fund(TOKEN, address, 100)
        first.claim(address, STRANGER, ALICE, TOKEN, 70, tree.proof(ALICE, TOKEN, 70))

        second = DistributorService(
            resolver, event_log=EventLog(events), vault=TokenVault(balances),
        )
        assert second.status(address) == first.status(address)
        again = second.claim(address, STRANGER, ALICE, TOKEN, 70, tree.proof(ALICE, TOKEN, 70))
        assert not again.success
        assert again.errors[0].startswith("AlreadyClaimed")
        assert second.claim(address, STRANGER, BOB, TOKEN, 30, tree.proof(BOB, TOKEN, 30)).success
        assert second.balance_of(TOKEN, address) == 0

    def test_status_overview(self, service: DistributorService) -> None:
        _create(service, salt=h32(1))
        _create(service, salt=h32(2))
        status = service.status()
        assert status["factory"] == "0x5FbDB2315678afecb367f032d93F642f64180aa3"
        assert len(status["instances"]) == 2
        assert status["events"] == 6

    def test_status_unknown_address(self, service: DistributorService) -> None:
        assert service.status(ALICE) == {}
