"""Merkle proof verification for cumulative reward entries.

Uses keccak-256 as the hash function so proofs produced by standard
Ethereum tooling (e.g. OpenZeppelin's StandardMerkleTree) verify here
unchanged.

Leaf encoding:
    leaf = keccak256(keccak256(abi.encode(address account,
                                          address reward,
                                          uint256 claimable)))

The double hash keeps a 64-byte internal node from ever being accepted as
a leaf. Internal nodes hash the two children in ascending byte order, so
a proof is a flat list of sibling hashes with no left/right markers.

This module only verifies. Building trees and producing proofs happens
off-chain.
"""

from __future__ import annotations

from typing import Iterable

from eth_abi import encode
from eth_utils import keccak

from distributor.models.commitment import (
    Bytes32Like,
    normalize_address,
    normalize_amount,
    normalize_bytes32,
)


LEAF_ABI_TYPES = ("address", "address", "uint256")


def leaf_hash(account: str, reward: str, claimable: int) -> str:
    """Compute the leaf digest for an entry, as 0x-prefixed hex."""
    encoded = encode(
        list(LEAF_ABI_TYPES),
        [normalize_address(account), normalize_address(reward), normalize_amount(claimable)],
    )
    return "0x" + keccak(keccak(encoded)).hex()


def hash_pair(a: Bytes32Like, b: Bytes32Like) -> str:
    """Hash two nodes in sorted order."""
    left = bytes.fromhex(normalize_bytes32(a)[2:])
    right = bytes.fromhex(normalize_bytes32(b)[2:])
    if right < left:
        left, right = right, left
    return "0x" + keccak(left + right).hex()


def process_proof(proof: Iterable[Bytes32Like], leaf: Bytes32Like) -> str:
    """Rebuild the root implied by a leaf and its sibling path."""
    computed = normalize_bytes32(leaf)
    for sibling in proof:
        computed = hash_pair(computed, sibling)
    return computed


def verify_proof(proof: Iterable[Bytes32Like], root: Bytes32Like, leaf: Bytes32Like) -> bool:
    """True if the proof reconstructs root from leaf."""
    return process_proof(proof, leaf) == normalize_bytes32(root)
