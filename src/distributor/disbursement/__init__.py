"""Disbursement subsystem — root registry, claim ledger, access control, executor."""

from distributor.disbursement.access import AdminAuthority, OwnerRegistry
from distributor.disbursement.claim_ledger import ClaimLedger
from distributor.disbursement.executor import MerkleDistributor
from distributor.disbursement.registry import RootRegistry

__all__ = [
    "AdminAuthority",
    "ClaimLedger",
    "MerkleDistributor",
    "OwnerRegistry",
    "RootRegistry",
]
