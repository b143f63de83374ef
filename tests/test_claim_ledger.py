"""Tests for the claim ledger — proves the claimed flag is set at most once."""

import threading

import pytest

from distributor.crypto.merkle import normalize_address
from distributor.disbursement.claim_ledger import ClaimLedger, unconfirmed_claims
from distributor.models.claims import ClaimStatus, MarkResult
from distributor.persistence.event_log import EventKind, EventRecord

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
ROOT = "0x" + "11" * 32
OTHER_ROOT = "0x" + "22" * 32


def _claimed_event(
    event_id: str,
    recipient: str,
    root: str,
    kind: EventKind = EventKind.CLAIMED,
) -> EventRecord:
    return EventRecord.create(
        event_id=event_id,
        event_kind=kind,
        actor_id=recipient,
        payload={"recipient": recipient, "amount": "100", "merkle_root": root},
    )


class TestClaimLedger:
    def test_unknown_recipient_is_unclaimed(self) -> None:
        ledger = ClaimLedger()
        assert ledger.is_claimed(ALICE) is False
        assert ledger.status(ALICE) == ClaimStatus.UNCLAIMED

    def test_mark_once(self) -> None:
        ledger = ClaimLedger()
        assert ledger.try_mark_claimed(ALICE) is MarkResult.SUCCESS
        assert ledger.is_claimed(ALICE)
        assert ledger.status(ALICE) == ClaimStatus.CLAIMED

    def test_second_mark_already_claimed(self) -> None:
        ledger = ClaimLedger()
        ledger.try_mark_claimed(ALICE)
        assert ledger.try_mark_claimed(ALICE) is MarkResult.ALREADY_CLAIMED
        assert ledger.claimed_count == 1

    def test_address_case_is_one_identity(self) -> None:
        ledger = ClaimLedger()
        ledger.try_mark_claimed(ALICE)
        assert ledger.try_mark_claimed(normalize_address(ALICE)) is MarkResult.ALREADY_CLAIMED

    def test_recipients_are_independent(self) -> None:
        ledger = ClaimLedger()
        ledger.try_mark_claimed(ALICE)
        assert ledger.is_claimed(BOB) is False
        assert ledger.try_mark_claimed(BOB) is MarkResult.SUCCESS

    def test_revert_claim(self) -> None:
        ledger = ClaimLedger()
        ledger.try_mark_claimed(ALICE)
        ledger.revert_claim(ALICE)
        assert ledger.is_claimed(ALICE) is False
        assert ledger.try_mark_claimed(ALICE) is MarkResult.SUCCESS

    def test_invalid_address_raises(self) -> None:
        ledger = ClaimLedger()
        with pytest.raises(ValueError):
            ledger.try_mark_claimed("0xnope")

    def test_claimed_recipients_sorted(self) -> None:
        ledger = ClaimLedger()
        ledger.try_mark_claimed(BOB)
        ledger.try_mark_claimed(ALICE)
        assert ledger.claimed_recipients() == sorted(
            [normalize_address(ALICE), normalize_address(BOB)]
        )

    def test_concurrent_marks_one_winner(self) -> None:
        ledger = ClaimLedger()
        results: list[MarkResult] = []
        results_lock = threading.Lock()
        barrier = threading.Barrier(16)

        def mark() -> None:
            barrier.wait()
            outcome = ledger.try_mark_claimed(ALICE)
            with results_lock:
                results.append(outcome)

        threads = [threading.Thread(target=mark) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(MarkResult.SUCCESS) == 1
        assert results.count(MarkResult.ALREADY_CLAIMED) == 15


class TestLedgerReplay:
    def test_rebuild_from_events(self) -> None:
        events = [
            _claimed_event("EVT-1", normalize_address(ALICE), ROOT),
            _claimed_event("EVT-2", normalize_address(BOB), ROOT),
        ]
        ledger = ClaimLedger.from_events(events, ROOT)
        assert ledger.is_claimed(ALICE)
        assert ledger.is_claimed(BOB)

    def test_other_roots_ignored(self) -> None:
        events = [_claimed_event("EVT-1", normalize_address(ALICE), OTHER_ROOT)]
        ledger = ClaimLedger.from_events(events, ROOT)
        assert ledger.is_claimed(ALICE) is False

    def test_recovered_events_ignored(self) -> None:
        events = [
            EventRecord.create(
                event_id="EVT-1",
                event_kind=EventKind.RECOVERED,
                actor_id=ALICE,
                payload={"asset": "DROP", "amount": "5", "admin": ALICE, "merkle_root": ROOT},
            )
        ]
        ledger = ClaimLedger.from_events(events, ROOT)
        assert ledger.claimed_count == 0

    def test_started_claim_stays_claimed(self) -> None:
        alice = normalize_address(ALICE)
        events = [_claimed_event("EVT-1", alice, ROOT, EventKind.CLAIM_STARTED)]
        ledger = ClaimLedger.from_events(events, ROOT)
        assert ledger.is_claimed(ALICE)
        assert unconfirmed_claims(events, ROOT) == [alice]

    def test_reverted_claim_is_released(self) -> None:
        alice = normalize_address(ALICE)
        events = [
            _claimed_event("EVT-1", alice, ROOT, EventKind.CLAIM_STARTED),
            _claimed_event("EVT-2", alice, ROOT, EventKind.CLAIM_REVERTED),
        ]
        assert ClaimLedger.from_events(events, ROOT).is_claimed(ALICE) is False
        assert unconfirmed_claims(events, ROOT) == []

    def test_replay_follows_log_order(self) -> None:
        alice = normalize_address(ALICE)
        events = [
            _claimed_event("EVT-1", alice, ROOT, EventKind.CLAIM_STARTED),
            _claimed_event("EVT-2", alice, ROOT, EventKind.CLAIM_REVERTED),
            _claimed_event("EVT-3", alice, ROOT, EventKind.CLAIM_STARTED),
            _claimed_event("EVT-4", alice, ROOT, EventKind.CLAIMED),
        ]
        assert ClaimLedger.from_events(events, ROOT).is_claimed(ALICE)
        assert unconfirmed_claims(events, ROOT) == []
