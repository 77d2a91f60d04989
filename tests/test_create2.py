"""Tests for deterministic address derivation."""

from eth_abi import encode

from distributor.crypto.create2 import create2_address, init_code
from distributor.models.commitment import ZERO_HASH
from helpers import OWNER, h32


class TestCreate2Address:
    def test_eip1014_example_zero(self) -> None:
        assert create2_address(
            "0x0000000000000000000000000000000000000000", ZERO_HASH, b"\x00",
        ) == "0x4D1A2e2bB4F88F0250f26Ffff098B0b30B26BF38"

    def test_eip1014_example_one(self) -> None:
        assert create2_address(
            "0xdeadbeef00000000000000000000000000000000", ZERO_HASH, b"\x00",
        ) == "0xB928f69Bb1D91Cd65274e3c79d8986362984fDA3"

    def test_salt_changes_address(self) -> None:
        deployer = "0xdeadbeef00000000000000000000000000000000"
        assert create2_address(deployer, h32(1), b"\x00") != create2_address(deployer, h32(2), b"\x00")


class TestInitCode:
    def test_appends_constructor_arguments(self) -> None:
        code = init_code(b"tag", OWNER, 3600, h32(7), h32(8))
        assert code.startswith(b"tag")
        assert code[3:] == encode(
            ["address", "uint256", "bytes32", "bytes32"],
            [OWNER, 3600, bytes.fromhex(h32(7)[2:]), bytes.fromhex(h32(8)[2:])],
        )

    def test_timelock_changes_code(self) -> None:
        assert init_code(b"tag", OWNER, 1, ZERO_HASH, ZERO_HASH) != init_code(
            b"tag", OWNER, 2, ZERO_HASH, ZERO_HASH,
        )
