"""Merkle distributor — verifies allocation proofs and disburses each exactly once.

This is the primary interface for programmatic access. It orchestrates:
- Proof checks against the committed root (read-only, callable by anyone)
- The claim ledger (mark before transfer, roll back on failure)
- The custody asset store (the only way value leaves the distributor)
- The event log (claim journal plus Claimed / Recovered notifications)

Claim algorithm, short-circuiting on the first failure:
    1. already claimed?            → ALREADY_CLAIMED
    2. proof folds to the root?    → NOT_IN_MERKLE
    3. compare-and-set the flag    → ALREADY_CLAIMED (lost a race)
    4. journal CLAIM_STARTED       → TRANSFER_FAILED, flag rolled back
    5. transfer from custody       → TRANSFER_FAILED, flag rolled back and
                                     CLAIM_REVERTED journalled;
                                     TRANSFER_PENDING, flag kept
    6. append Claimed event, return the amount

The flag is set, in memory and on disk, before the transfer. Any
recipient-side code that runs during the transfer sees the allocation as
consumed, and a restarted process replays the journal to the same state.

All mutating calls are serialised on one re-entrant lock. Re-entrancy
lets a recipient hook call back into the distributor on the same thread
and be refused rather than deadlock.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Optional

from distributor.crypto.merkle import normalize_address, validate_amount, verify_proof
from distributor.custody.base import AssetStore, TransferError, TransferPending
from distributor.disbursement.access import AdminAuthority
from distributor.disbursement.claim_ledger import ClaimLedger, unconfirmed_claims
from distributor.disbursement.registry import RootRegistry
from distributor.models.claims import DisbursementResult, MarkResult, RejectionReason
from distributor.persistence.event_log import EventKind, EventLog

logger = logging.getLogger(__name__)


class MerkleDistributor:
    """Disburses committed allocations against Merkle inclusion proofs.

    Usage:
        tree = MerkleTree.from_allocations({alice: 100, bob: 200})
        registry = RootRegistry(tree.root, asset_store)
        distributor = MerkleDistributor(registry, OwnerRegistry(admin))

        proof = tree.inclusion_proof(alice, 100)
        distributor.check_claim(alice, 100, proof.path)    # True
        result = distributor.claim(alice, 100, proof.path)
        result.success, result.amount                      # True, 100

    Persistence (optional):
        distributor = MerkleDistributor(registry, authority, event_log=log)
        # The claim journal for this root is replayed on construction.
    """

    def __init__(
        self,
        registry: RootRegistry,
        authority: AdminAuthority,
        event_log: Optional[EventLog] = None,
    ) -> None:
        if not isinstance(authority, AdminAuthority):
            raise TypeError(
                f"Authority must implement AdminAuthority Protocol, got {type(authority)}",
            )
        self._registry = registry
        self._authority = authority
        self._event_log = event_log if event_log is not None else EventLog()
        self._ledger = ClaimLedger.from_events(
            self._event_log.for_root(registry.root_hex), registry.root_hex,
        )
        self._lock = threading.RLock()

        # Set when a record could not be written after value moved (or after
        # a rollback). Transfers stand; the log needs repair.
        self._persistence_degraded: bool = False

    @property
    def merkle_root(self) -> bytes:
        return self._registry.merkle_root

    @property
    def asset(self) -> AssetStore:
        return self._registry.asset

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    @property
    def persistence_degraded(self) -> bool:
        return self._persistence_degraded

    # ------------------------------------------------------------------
    # Read queries
    # ------------------------------------------------------------------

    def check_claim(self, recipient: Any, amount: Any, proof: Iterable[Any]) -> bool:
        """Pre-flight proof check. No side effects."""
        return verify_proof(recipient, amount, proof, self._registry.merkle_root)

    def is_claimed(self, recipient: Any) -> bool:
        try:
            return self._ledger.is_claimed(recipient)
        except ValueError:
            return False

    def status(self) -> dict[str, Any]:
        root_hex = self._registry.root_hex
        records = self._event_log.for_root(root_hex)
        claimed_events = [e for e in records if e.event_kind == EventKind.CLAIMED]
        return {
            "merkle_root": root_hex,
            "asset": self._registry.asset.asset_id,
            "admin": self._authority.current_admin(),
            "claimed_count": self._ledger.claimed_count,
            "total_claimed": str(sum(int(e.payload["amount"]) for e in claimed_events)),
            "unconfirmed": unconfirmed_claims(records, root_hex),
            "event_count": self._event_log.count,
            "persistence_degraded": self._persistence_degraded,
        }

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def claim(self, recipient: Any, amount: Any, proof: Iterable[Any]) -> DisbursementResult:
        """Disburse recipient's allocation if the proof holds and it is unclaimed."""
        try:
            address = normalize_address(recipient)
        except ValueError as e:
            return DisbursementResult.rejected(RejectionReason.NOT_IN_MERKLE, str(e))

        with self._lock:
            if self._ledger.is_claimed(address):
                logger.debug("Rejected claim for %s: already claimed", address)
                return DisbursementResult.rejected(
                    RejectionReason.ALREADY_CLAIMED,
                    f"Allocation already claimed: {address}",
                )

            if not verify_proof(address, amount, proof, self._registry.merkle_root):
                logger.debug("Rejected claim for %s: proof does not fold to root", address)
                return DisbursementResult.rejected(
                    RejectionReason.NOT_IN_MERKLE,
                    f"Invalid proof for {address} amount {amount}",
                )

            if self._ledger.try_mark_claimed(address) is MarkResult.ALREADY_CLAIMED:
                return DisbursementResult.rejected(
                    RejectionReason.ALREADY_CLAIMED,
                    f"Allocation already claimed: {address}",
                )

            payload = {
                "recipient": address,
                "amount": str(amount),
                "merkle_root": self._registry.root_hex,
            }
            try:
                self._event_log.record(EventKind.CLAIM_STARTED, address, payload)
            except (OSError, ValueError) as e:
                self._ledger.revert_claim(address)
                logger.error("Claim for %s not started: %s", address, e)
                return DisbursementResult.rejected(
                    RejectionReason.TRANSFER_FAILED,
                    f"Claim journal unavailable, nothing transferred: {e}",
                )

            try:
                transferred = self._registry.asset.transfer(address, amount)
            except TransferPending as e:
                logger.warning(
                    "Claim for %s kept: transfer %s unconfirmed: %s", address, e.tx_hash, e,
                )
                return DisbursementResult(
                    success=False,
                    reason=RejectionReason.TRANSFER_PENDING,
                    errors=[str(e)],
                    data={"recipient": address, "amount": amount, "tx_hash": e.tx_hash},
                )
            except TransferError as e:
                warning = self._roll_back(address, payload, str(e))
                return DisbursementResult(
                    success=False,
                    reason=RejectionReason.TRANSFER_FAILED,
                    errors=[str(e)] + ([warning] if warning else []),
                )
            except Exception as e:
                self._roll_back(address, payload, repr(e))
                raise

            if not transferred:
                reason = f"Transfer of {amount} to {address} was rejected"
                warning = self._roll_back(address, payload, reason)
                return DisbursementResult(
                    success=False,
                    reason=RejectionReason.TRANSFER_FAILED,
                    errors=[reason] + ([warning] if warning else []),
                )

            warning = self._record_event(EventKind.CLAIMED, address, payload)
            logger.info("Claimed %d for %s", amount, address)
            return DisbursementResult(
                success=True,
                errors=[warning] if warning else [],
                data={"recipient": address, "amount": amount},
            )

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def sweep(self, caller: Any, asset: AssetStore, amount: int) -> DisbursementResult:
        """Send amount of any custody asset to the admin.

        Does not read or touch the claim ledger. A store error is reported
        with its own message. A malformed amount from the admin raises
        ValueError; from anyone else the call is UNAUTHORIZED first.
        """
        with self._lock:
            admin = normalize_address(self._authority.current_admin())
            try:
                caller_address = normalize_address(caller)
            except ValueError:
                caller_address = None
            if caller_address != admin:
                logger.warning("Unauthorized sweep attempt by %s", caller)
                return DisbursementResult.rejected(
                    RejectionReason.UNAUTHORIZED,
                    f"Caller is not the admin: {caller}",
                )
            validate_amount(amount)

            try:
                transferred = asset.transfer(admin, amount)
            except TransferPending as e:
                logger.warning("Sweep of %s unconfirmed: %s", asset.asset_id, e)
                return DisbursementResult(
                    success=False,
                    reason=RejectionReason.TRANSFER_PENDING,
                    errors=[str(e)],
                    data={"asset": asset.asset_id, "amount": amount, "tx_hash": e.tx_hash},
                )
            except TransferError as e:
                return DisbursementResult.rejected(RejectionReason.TRANSFER_FAILED, str(e))
            if not transferred:
                return DisbursementResult.rejected(
                    RejectionReason.TRANSFER_FAILED,
                    f"Transfer of {amount} {asset.asset_id} to {admin} was rejected",
                )

            warning = self._record_event(EventKind.RECOVERED, admin, {
                "asset": asset.asset_id,
                "amount": str(amount),
                "admin": admin,
            })
            logger.info("Recovered %d of %s to %s", amount, asset.asset_id, admin)
            return DisbursementResult(
                success=True,
                errors=[warning] if warning else [],
                data={"asset": asset.asset_id, "amount": amount},
            )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _roll_back(self, address: str, payload: dict[str, Any], reason: str) -> Optional[str]:
        """Clear a claim whose transfer definitely failed."""
        self._ledger.revert_claim(address)
        logger.warning("Claim for %s rolled back: %s", address, reason)
        return self._record_event(
            EventKind.CLAIM_REVERTED, address, {**payload, "reason": reason},
        )

    def _record_event(
        self,
        kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
    ) -> Optional[str]:
        """Append a record after the transfer's outcome is settled.

        MUST NOT raise: value has already moved (or been refused). A write
        failure sets the degraded flag and returns a warning instead.
        """
        try:
            self._event_log.record(kind, actor_id, payload)
            return None
        except (OSError, ValueError) as e:
            self._persistence_degraded = True
            logger.error("Event log write failed for %s %s: %s", kind.value, actor_id, e)
            return f"Persistence degraded: {e} — {kind.value} not recorded"
