"""Claim ledger — per-recipient claimed flags with compare-and-set semantics.

Storage is in-memory. The ledger is rebuilt from the event log's claim
journal on start: CLAIM_STARTED and CLAIMED set a flag, CLAIM_REVERTED
clears it. A claim that started but never reached CLAIMED or
CLAIM_REVERTED stays claimed; its transfer may have gone out.

Unknown recipients read as unclaimed; there is no registration step.
"""

from __future__ import annotations

import threading
from typing import Iterable

from distributor.crypto.merkle import normalize_address
from distributor.models.claims import ClaimStatus, MarkResult
from distributor.persistence.event_log import EventKind, EventRecord

_SETS_FLAG = (EventKind.CLAIM_STARTED, EventKind.CLAIMED)


def unconfirmed_claims(events: Iterable[EventRecord], merkle_root: str) -> list[str]:
    """Recipients whose claim started under merkle_root but never resolved.

    These need reconciling against the asset store by hand.
    """
    open_claims: set[str] = set()
    for event in events:
        if event.payload.get("merkle_root") != merkle_root:
            continue
        if event.event_kind == EventKind.CLAIM_STARTED:
            open_claims.add(normalize_address(event.payload["recipient"]))
        elif event.event_kind in (EventKind.CLAIMED, EventKind.CLAIM_REVERTED):
            open_claims.discard(normalize_address(event.payload["recipient"]))
    return sorted(open_claims)


class ClaimLedger:
    """Tracks which recipients have claimed.

    Usage:
        ledger = ClaimLedger()
        if ledger.try_mark_claimed(recipient) is MarkResult.SUCCESS:
            ...  # proceed to transfer
    """

    def __init__(self) -> None:
        self._claimed: set[str] = set()
        self._lock = threading.Lock()

    @classmethod
    def from_events(cls, events: Iterable[EventRecord], merkle_root: str) -> ClaimLedger:
        """Replay the claim journal recorded under merkle_root, in order."""
        ledger = cls()
        for event in events:
            if event.payload.get("merkle_root") != merkle_root:
                continue
            if event.event_kind in _SETS_FLAG:
                ledger._claimed.add(normalize_address(event.payload["recipient"]))
            elif event.event_kind == EventKind.CLAIM_REVERTED:
                ledger._claimed.discard(normalize_address(event.payload["recipient"]))
        return ledger

    def is_claimed(self, recipient: str) -> bool:
        return normalize_address(recipient) in self._claimed

    def status(self, recipient: str) -> ClaimStatus:
        return ClaimStatus.CLAIMED if self.is_claimed(recipient) else ClaimStatus.UNCLAIMED

    def try_mark_claimed(self, recipient: str) -> MarkResult:
        """Atomically set the recipient's flag if it is not already set."""
        address = normalize_address(recipient)
        with self._lock:
            if address in self._claimed:
                return MarkResult.ALREADY_CLAIMED
            self._claimed.add(address)
            return MarkResult.SUCCESS

    def revert_claim(self, recipient: str) -> None:
        """Undo a mark whose transfer failed in the same call.

        Only the executor's rollback path calls this.
        """
        address = normalize_address(recipient)
        with self._lock:
            self._claimed.discard(address)

    def claimed_recipients(self) -> list[str]:
        return sorted(self._claimed)

    @property
    def claimed_count(self) -> int:
        return len(self._claimed)
