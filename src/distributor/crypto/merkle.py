"""Merkle allocation tree — leaf encoding, sorted-pair hashing, proof folding.

Uses Keccak-256 throughout, matching the Solidity convention the root is
committed under:

    leaf   = keccak256(abi.encodePacked(address recipient, uint256 amount))
    parent = keccak256(min(a, b) ++ max(a, b))

Because siblings are ordered before hashing, a proof is just the list of
sibling digests; no left/right markers are carried.

The verifier functions never raise on adversarial input. Anything that
cannot be decoded simply fails to fold to the root.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from web3 import Web3

UINT256_MAX = 2**256 - 1
DIGEST_SIZE = 32


@dataclass(frozen=True)
class MerkleProof:
    """An inclusion proof for a single allocation."""
    leaf_hash: bytes
    path: tuple[bytes, ...]  # Sibling digests, leaf level first
    root: bytes

    def hex_path(self) -> list[str]:
        return ["0x" + sibling.hex() for sibling in self.path]


def normalize_address(address: Any) -> str:
    """Return the EIP-55 checksum form of a hex address.

    Raises ValueError for anything that is not a 20-byte hex address.
    Mixed-case input must carry a valid checksum.
    """
    if not isinstance(address, str) or not Web3.is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return Web3.to_checksum_address(address)


def validate_amount(amount: Any) -> int:
    """Check that amount fits an unsigned 256-bit word."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Amount must be an integer, got {type(amount).__name__}")
    if amount < 0 or amount > UINT256_MAX:
        raise ValueError(f"Amount out of uint256 range: {amount}")
    return amount


def to_bytes32(value: Any) -> bytes:
    """Decode a 32-byte digest given as bytes or 0x-prefixed hex."""
    if isinstance(value, str):
        try:
            value = Web3.to_bytes(hexstr=value)
        except ValueError as e:
            raise ValueError(f"Not a hex digest: {value!r}") from e
    if not isinstance(value, (bytes, bytearray)) or len(value) != DIGEST_SIZE:
        raise ValueError(f"Digest must be {DIGEST_SIZE} bytes: {value!r}")
    return bytes(value)


def leaf_hash(recipient: str, amount: int) -> bytes:
    """Compute the allocation leaf for (recipient, amount).

    Raises ValueError if either field cannot be encoded.
    """
    address = normalize_address(recipient)
    value = validate_amount(amount)
    # abi.encodePacked(address, uint256): 20 + 32 bytes, no padding on the address
    packed = Web3.to_bytes(hexstr=address) + value.to_bytes(32, "big")
    return bytes(Web3.keccak(packed))


def hash_pair(a: bytes, b: bytes) -> bytes:
    """Hash two nodes together in canonical (numeric) order."""
    lo, hi = (a, b) if a <= b else (b, a)
    return bytes(Web3.keccak(lo + hi))


def verify_proof(
    recipient: Any,
    amount: Any,
    proof: Iterable[Any],
    root: Any,
) -> bool:
    """Return True iff (recipient, amount) folds through proof to root."""
    try:
        node = leaf_hash(recipient, amount)
        siblings = [to_bytes32(sibling) for sibling in proof]
        expected = to_bytes32(root)
    except (TypeError, ValueError):
        return False

    for sibling in siblings:
        node = hash_pair(node, sibling)
    return node == expected


def empty_root() -> bytes:
    """Root of a tree with no allocations."""
    return bytes(Web3.keccak(b""))


class MerkleTree:
    """Builds an allocation tree and produces proofs for it.

    Leaves are sorted before construction so the same allocation set always
    produces the same root, regardless of insertion order. An odd node at
    the end of a level is carried up unchanged.

    Usage:
        tree = MerkleTree.from_allocations({"0xAbc...": 100, "0xDef...": 200})
        root = tree.compute_root()
        proof = tree.inclusion_proof("0xAbc...", 100)
    """

    def __init__(self) -> None:
        self._allocations: dict[str, int] = {}
        self._layers: list[list[bytes]] = []
        self._index: dict[bytes, int] = {}
        self._computed = False

    @classmethod
    def from_allocations(cls, allocations: Mapping[str, int]) -> MerkleTree:
        tree = cls()
        for recipient, amount in allocations.items():
            tree.add_allocation(recipient, amount)
        tree.compute_root()
        return tree

    def add_allocation(self, recipient: str, amount: int) -> bytes:
        """Add one allocation and return its leaf hash.

        Raises ValueError if the recipient already has an allocation.
        """
        if self._computed:
            raise RuntimeError("Tree already computed. Create a new tree.")
        address = normalize_address(recipient)
        if address in self._allocations:
            raise ValueError(f"Duplicate recipient: {address}")
        leaf = leaf_hash(address, amount)
        self._allocations[address] = amount
        return leaf

    @property
    def leaf_count(self) -> int:
        return len(self._allocations)

    @property
    def token_total(self) -> int:
        return sum(self._allocations.values())

    def compute_root(self) -> bytes:
        """Compute the Merkle root. An empty tree has root keccak256("")."""
        if not self._allocations:
            self._layers = []
            self._computed = True
            return empty_root()

        current_level = sorted(
            leaf_hash(address, amount)
            for address, amount in self._allocations.items()
        )
        self._index = {leaf: i for i, leaf in enumerate(current_level)}
        self._layers = [current_level]

        while len(current_level) > 1:
            next_level: list[bytes] = []
            for i in range(0, len(current_level), 2):
                if i + 1 < len(current_level):
                    next_level.append(hash_pair(current_level[i], current_level[i + 1]))
                else:
                    next_level.append(current_level[i])
            self._layers.append(next_level)
            current_level = next_level

        self._computed = True
        return current_level[0]

    @property
    def root(self) -> bytes:
        if not self._computed:
            raise RuntimeError("Must call compute_root first")
        return self._layers[-1][0] if self._layers else empty_root()

    def inclusion_proof(self, recipient: str, amount: int) -> Optional[MerkleProof]:
        """Generate an inclusion proof for an allocation.

        Returns None if the allocation is not in the tree.
        """
        if not self._computed:
            raise RuntimeError("Must call compute_root before generating proofs")
        try:
            leaf = leaf_hash(recipient, amount)
        except ValueError:
            return None
        if leaf not in self._index:
            return None

        idx = self._index[leaf]
        path: list[bytes] = []
        for level in self._layers[:-1]:
            sibling_idx = idx ^ 1
            if sibling_idx < len(level):
                path.append(level[sibling_idx])
            idx //= 2

        return MerkleProof(leaf_hash=leaf, path=tuple(path), root=self.root)

    def to_distribution(self) -> dict[str, Any]:
        """Export the root and every recipient's proof as a JSON-ready dict.

        Amounts are decimal strings; uint256 values do not fit every
        consumer's JSON number type.
        """
        root = self.root
        claims: dict[str, dict[str, Any]] = {}
        for address in sorted(self._allocations):
            amount = self._allocations[address]
            proof = self.inclusion_proof(address, amount)
            claims[address] = {
                "amount": str(amount),
                "proof": proof.hex_path() if proof else [],
            }
        return {
            "merkle_root": "0x" + root.hex(),
            "token_total": str(self.token_total),
            "claims": claims,
        }
