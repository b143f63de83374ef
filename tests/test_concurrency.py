"""Concurrency tests — at most one successful claim per recipient under threads."""

import threading

from distributor.crypto.merkle import MerkleTree
from distributor.custody.memory import InMemoryAssetStore
from distributor.disbursement.access import OwnerRegistry
from distributor.disbursement.executor import MerkleDistributor
from distributor.disbursement.registry import RootRegistry
from distributor.models.claims import RejectionReason

CUSTODY = "0x" + "dd" * 20
ADMIN = "0x" + "ad" * 20


def _addr(n: int) -> str:
    return "0x" + f"{n:040x}"


def _run_threads(target, count: int) -> None:
    threads = [threading.Thread(target=target, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


class TestConcurrentClaims:
    def test_same_recipient_many_threads(self) -> None:
        allocations = {_addr(i + 1): 10 for i in range(4)}
        tree = MerkleTree.from_allocations(allocations)
        store = InMemoryAssetStore("DROP", custodian=CUSTODY)
        store.credit(CUSTODY, 1_000)
        distributor = MerkleDistributor(RootRegistry(tree.root, store), OwnerRegistry(ADMIN))

        recipient = _addr(1)
        proof = tree.inclusion_proof(recipient, 10).path
        barrier = threading.Barrier(20)
        results = []
        results_lock = threading.Lock()

        def claim(_: int) -> None:
            barrier.wait()
            result = distributor.claim(recipient, 10, proof)
            with results_lock:
                results.append(result)

        _run_threads(claim, 20)

        successes = [r for r in results if r.success]
        assert len(successes) == 1
        assert all(
            r.reason == RejectionReason.ALREADY_CLAIMED for r in results if not r.success
        )
        assert store.balance_of(recipient) == 10
        assert store.balance() == 990

    def test_many_recipients_each_paid_once(self) -> None:
        allocations = {_addr(i + 1): i + 1 for i in range(32)}
        tree = MerkleTree.from_allocations(allocations)
        store = InMemoryAssetStore("DROP", custodian=CUSTODY)
        total = sum(allocations.values())
        store.credit(CUSTODY, total)
        distributor = MerkleDistributor(RootRegistry(tree.root, store), OwnerRegistry(ADMIN))

        recipients = list(allocations)
        errors: list[str] = []

        def claim_twice(i: int) -> None:
            recipient = recipients[i % len(recipients)]
            amount = allocations[recipient]
            proof = tree.inclusion_proof(recipient, amount).path
            for _ in range(2):
                result = distributor.claim(recipient, amount, proof)
                if not result.success and result.reason != RejectionReason.ALREADY_CLAIMED:
                    errors.append(f"{recipient}: {result.errors}")

        _run_threads(claim_twice, 64)

        assert errors == []
        assert store.balance() == 0
        for recipient, amount in allocations.items():
            assert store.balance_of(recipient) == amount
        assert distributor.status()["claimed_count"] == 32

    def test_sweep_and_claims_interleaved(self) -> None:
        allocations = {_addr(i + 1): 5 for i in range(10)}
        tree = MerkleTree.from_allocations(allocations)
        store = InMemoryAssetStore("DROP", custodian=CUSTODY)
        store.credit(CUSTODY, 100)
        distributor = MerkleDistributor(RootRegistry(tree.root, store), OwnerRegistry(ADMIN))
        recipients = list(allocations)

        def work(i: int) -> None:
            if i % 2:
                distributor.sweep(ADMIN, store, 5)
            else:
                recipient = recipients[i // 2]
                distributor.claim(recipient, 5, tree.inclusion_proof(recipient, 5).path)

        _run_threads(work, 20)

        paid = sum(store.balance_of(r) for r in recipients)
        assert paid + store.balance_of(ADMIN) + store.balance() == 100
        assert paid == 5 * distributor.status()["claimed_count"]
