"""Claim and disbursement models.

Amounts are plain integers in the token's smallest unit (uint256 range).
No floats, no Decimal: the committed tree fixes amounts exactly.

Per-recipient state machine:
    UNCLAIMED → CLAIMED   (terminal)

The only exit from CLAIMED is the compensating rollback of a claim whose
custody transfer definitely failed within the same call. A transfer whose
outcome is unknown never exits CLAIMED.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional


class ClaimStatus(str, enum.Enum):
    """Lifecycle state of one recipient's allocation."""
    UNCLAIMED = "unclaimed"
    CLAIMED = "claimed"


class MarkResult(str, enum.Enum):
    """Outcome of the ledger's compare-and-set."""
    SUCCESS = "success"
    ALREADY_CLAIMED = "already_claimed"


class RejectionReason(str, enum.Enum):
    """Why a claim or sweep was refused.

    ALREADY_CLAIMED and UNAUTHORIZED are permanent. NOT_IN_MERKLE is
    permanent for the exact inputs given. TRANSFER_FAILED may succeed
    later if custody is replenished. TRANSFER_PENDING means the transfer
    was sent but not confirmed; the allocation stays claimed.
    """
    ALREADY_CLAIMED = "already_claimed"
    NOT_IN_MERKLE = "not_in_merkle"
    TRANSFER_FAILED = "transfer_failed"
    TRANSFER_PENDING = "transfer_pending"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class DisbursementResult:
    """Result of a claim or sweep."""
    success: bool
    reason: Optional[RejectionReason] = None
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def amount(self) -> int:
        """Amount transferred; zero for a rejection."""
        return self.data.get("amount", 0) if self.success else 0

    @staticmethod
    def rejected(reason: RejectionReason, error: str) -> DisbursementResult:
        return DisbursementResult(success=False, reason=reason, errors=[error])
