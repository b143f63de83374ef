"""Access control — the single administrative identity that may sweep.

The distributor only asks "who is the admin right now?". How that
identity is chosen or rotated belongs to the authority, not to the
distributor.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from distributor.crypto.merkle import normalize_address


@runtime_checkable
class AdminAuthority(Protocol):
    """Source of the current administrative identity."""

    def current_admin(self) -> str:
        ...


class OwnerRegistry:
    """Single-owner authority with owner-gated transfer."""

    def __init__(self, owner: str) -> None:
        self._owner = normalize_address(owner)

    def current_admin(self) -> str:
        return self._owner

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """Hand admin rights to new_owner.

        Raises PermissionError if caller is not the current owner.
        """
        if normalize_address(caller) != self._owner:
            raise PermissionError(f"Only the owner may transfer ownership: {caller}")
        self._owner = normalize_address(new_owner)
