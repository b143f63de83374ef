"""Core data models for the distributor."""

from distributor.models.claims import (
    ClaimStatus,
    DisbursementResult,
    MarkResult,
    RejectionReason,
)

__all__ = [
    "ClaimStatus",
    "DisbursementResult",
    "MarkResult",
    "RejectionReason",
]
