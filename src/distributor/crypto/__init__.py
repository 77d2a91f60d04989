"""Cryptographic primitives — leaf hashing, proof verification, address derivation."""

from distributor.crypto.create2 import create2_address, init_code
from distributor.crypto.merkle import hash_pair, leaf_hash, process_proof, verify_proof

__all__ = [
    "create2_address",
    "init_code",
    "hash_pair",
    "leaf_hash",
    "process_proof",
    "verify_proof",
]
