"""Deterministic instance addresses (EIP-1014 CREATE2 derivation).

    address = keccak256(0xff ++ deployer ++ salt ++ keccak256(init_code))[12:]

init_code is the creation code followed by the ABI-encoded constructor
arguments, so the address depends only on the deployer, the salt and the
parameters. The same inputs always yield the same address.
"""

from __future__ import annotations

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from distributor.models.commitment import (
    Bytes32Like,
    normalize_address,
    normalize_amount,
    normalize_bytes32,
)


CONSTRUCTOR_ABI_TYPES = ("address", "uint256", "bytes32", "bytes32")


def init_code(
    creation_code: bytes,
    owner: str,
    timelock: int,
    root: Bytes32Like,
    reference: Bytes32Like,
) -> bytes:
    """Creation code with the ABI-encoded constructor arguments appended."""
    args = encode(
        list(CONSTRUCTOR_ABI_TYPES),
        [
            normalize_address(owner),
            normalize_amount(timelock),
            bytes.fromhex(normalize_bytes32(root)[2:]),
            bytes.fromhex(normalize_bytes32(reference)[2:]),
        ],
    )
    return creation_code + args


def create2_address(deployer: str, salt: Bytes32Like, code: bytes) -> str:
    """Derive the checksum address for code deployed by deployer with salt."""
    preimage = (
        b"\xff"
        + bytes.fromhex(normalize_address(deployer)[2:])
        + bytes.fromhex(normalize_bytes32(salt)[2:])
        + keccak(code)
    )
    return to_checksum_address(keccak(preimage)[12:])
