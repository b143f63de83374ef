"""Distribution documents — the published root plus every recipient's proof.

A distribution document is what the off-line builder hands to
recipients and to whoever deploys the distributor:

    {
      "merkle_root": "0x…",
      "token_total": "300",
      "claims": {"0xAbc…": {"amount": "100", "proof": ["0x…", …]}, …}
    }

verify_distribution re-derives everything in the document from the
allocations it lists, so a document can be audited before its root is
committed.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from distributor.crypto.merkle import MerkleTree, normalize_address, verify_proof


def parse_allocations(raw: Mapping[str, Any]) -> dict[str, int]:
    """Turn {address: amount} with int or decimal-string amounts into ints.

    Raises ValueError on a malformed amount. Addresses are validated when
    the tree is built.
    """
    allocations: dict[str, int] = {}
    for address, amount in raw.items():
        if isinstance(amount, bool) or not isinstance(amount, (int, str)):
            raise ValueError(f"Amount for {address} must be an integer or decimal string")
        try:
            allocations[address] = int(amount)
        except ValueError as e:
            raise ValueError(f"Amount for {address} is not an integer: {amount!r}") from e
    return allocations


def load_json(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def build_distribution(raw_allocations: Mapping[str, Any]) -> dict[str, Any]:
    """Build the tree for an allocation list and export its document."""
    tree = MerkleTree.from_allocations(parse_allocations(raw_allocations))
    return tree.to_distribution()


def find_claim(document: Mapping[str, Any], recipient: str) -> tuple[str, dict[str, Any]] | None:
    """Look up a recipient's entry regardless of address letter case."""
    target = normalize_address(recipient)
    for address, entry in document.get("claims", {}).items():
        try:
            if normalize_address(address) == target:
                return target, entry
        except ValueError:
            continue
    return None


def verify_distribution(document: Mapping[str, Any]) -> list[str]:
    """Check a distribution document for internal consistency.

    Returns an empty list if consistent, or a list of problems.
    """
    errors: list[str] = []
    root = document.get("merkle_root")
    claims = document.get("claims")
    if not isinstance(root, str):
        errors.append("merkle_root missing or not a string")
        return errors
    if not isinstance(claims, dict):
        errors.append("claims missing or not an object")
        return errors

    allocations: dict[str, int] = {}
    for address, entry in claims.items():
        try:
            amount = int(entry["amount"])
        except (KeyError, TypeError, ValueError):
            errors.append(f"{address}: missing or malformed amount")
            continue
        allocations[address] = amount
        if not verify_proof(address, amount, entry.get("proof", []), root):
            errors.append(f"{address}: proof does not fold to merkle_root")

    try:
        rebuilt = MerkleTree.from_allocations(allocations)
    except ValueError as e:
        errors.append(f"Allocations cannot be rebuilt: {e}")
        return errors

    rebuilt_root = "0x" + rebuilt.root.hex()
    if rebuilt_root != root.lower():
        errors.append(f"merkle_root {root} does not match rebuilt root {rebuilt_root}")

    token_total = document.get("token_total")
    if token_total is not None and str(rebuilt.token_total) != str(token_total):
        errors.append(
            f"token_total {token_total} does not match sum of claims {rebuilt.token_total}"
        )
    return errors
