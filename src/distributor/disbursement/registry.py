"""Root registry — the committed Merkle root and the custody handle.

Both are fixed at construction and never change for the lifetime of the
distributor. Who is eligible and for how much is decided entirely by the
root; nothing here can alter it.
"""

from __future__ import annotations

from dataclasses import dataclass

from distributor.crypto.merkle import to_bytes32
from distributor.custody.base import AssetStore


@dataclass(frozen=True)
class RootRegistry:
    """Immutable pairing of committed root and asset store.

    merkle_root may be given as 32 raw bytes or 0x-prefixed hex; it is
    stored as bytes.
    """
    merkle_root: bytes
    asset: AssetStore

    def __post_init__(self) -> None:
        if not isinstance(self.asset, AssetStore):
            raise TypeError(
                f"Asset must implement AssetStore Protocol, got {type(self.asset)}",
            )
        object.__setattr__(self, "merkle_root", to_bytes32(self.merkle_root))

    @property
    def root_hex(self) -> str:
        return "0x" + self.merkle_root.hex()
