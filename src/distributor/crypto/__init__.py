"""Cryptographic primitives — allocation leaves, sorted-pair Merkle trees, proof checks."""

from distributor.crypto.merkle import MerkleProof, MerkleTree, leaf_hash, verify_proof

__all__ = ["MerkleProof", "MerkleTree", "leaf_hash", "verify_proof"]
