"""Tests for ledger state, queries, and atomic proof-gated writes.

Proof verification is replaced by test doubles so these tests exercise
only the ledger's own bookkeeping.
"""

import secrets
import threading

import pytest

from sealedscore.ledger.errors import EmptyHistory, InvalidProof
from sealedscore.ledger.grants import AccessGrantRegistry
from sealedscore.ledger.ledger import Ledger
from sealedscore.ledger.models import CiphertextHandle, ExternalCiphertext, InputProof

LEDGER_ID = "ledger_under_test"


class AcceptAllVerifier:
    """Accepts every proof and records what it was asked."""

    def __init__(self):
        self.calls = []

    def verify_input(self, ciphertext, proof, *, ledger_id, caller):
        self.calls.append((ciphertext.handle_id, ledger_id, caller))
        return CiphertextHandle(handle_id=ciphertext.handle_id, type_tag=ciphertext.type_tag)


class RejectAllVerifier:
    def verify_input(self, ciphertext, proof, *, ledger_id, caller):
        raise InvalidProof("rejected_by_test")


class BrokenVerifier:
    def verify_input(self, ciphertext, proof, *, ledger_id, caller):
        raise RuntimeError("verifier crashed")


def _input() -> tuple[ExternalCiphertext, InputProof]:
    ct = ExternalCiphertext(handle_id=secrets.token_hex(32))
    return ct, InputProof(signer="test_signer", signature="00")


@pytest.fixture
def ledger():
    return Ledger(ledger_id=LEDGER_ID, verifier=AcceptAllVerifier())


class TestQueries:

    def test_unknown_principal_has_zero_count(self, ledger):
        assert ledger.count_of("alice") == 0
        assert ledger.history_of("alice") == ()

    def test_last_of_empty_raises(self, ledger):
        with pytest.raises(EmptyHistory) as exc:
            ledger.last_of("alice")
        assert exc.value.principal == "alice"
        assert exc.value.code == "empty_history"

    def test_history_preserves_submission_order(self, ledger):
        ids = []
        for _ in range(4):
            ct, proof = _input()
            ledger.submit("alice", ct, proof)
            ids.append(ct.handle_id)

        assert ledger.count_of("alice") == 4
        assert [h.handle_id for h in ledger.history_of("alice")] == ids
        assert ledger.last_of("alice").handle_id == ids[-1]

    def test_submit_increments_count_by_one(self, ledger):
        ct, proof = _input()
        ledger.submit("alice", ct, proof)
        assert ledger.count_of("alice") == 1
        ct2, proof2 = _input()
        ledger.submit("alice", ct2, proof2)
        assert ledger.count_of("alice") == 2
        assert ledger.last_of("alice").handle_id == ct2.handle_id

    def test_histories_are_isolated(self, ledger):
        a, pa = _input()
        b, pb = _input()
        ledger.submit("alice", a, pa)
        ledger.submit("bob", b, pb)

        assert [h.handle_id for h in ledger.history_of("alice")] == [a.handle_id]
        assert [h.handle_id for h in ledger.history_of("bob")] == [b.handle_id]

    def test_history_snapshot_is_not_mutated_by_later_writes(self, ledger):
        ct, proof = _input()
        ledger.submit("alice", ct, proof)
        snapshot = ledger.history_of("alice")

        ct2, proof2 = _input()
        ledger.submit("alice", ct2, proof2)
        assert len(snapshot) == 1
        assert ledger.count_of("alice") == 2

    def test_verifier_receives_binding(self):
        verifier = AcceptAllVerifier()
        ledger = Ledger(ledger_id=LEDGER_ID, verifier=verifier)
        ct, proof = _input()
        ledger.submit("alice", ct, proof)
        assert verifier.calls == [(ct.handle_id, LEDGER_ID, "alice")]

    def test_principals_and_stats(self, ledger):
        for who in ("bob", "alice", "bob"):
            ct, proof = _input()
            ledger.submit(who, ct, proof)

        assert ledger.principals() == ["alice", "bob"]
        stats = ledger.stats()
        assert stats.ledger_id == LEDGER_ID
        assert stats.principals == 2
        assert stats.records == 3
        assert stats.grants == 6  # ledger + caller per record
        assert stats.rejected == 0

    def test_empty_ledger_id_rejected(self):
        with pytest.raises(ValueError):
            Ledger(ledger_id="", verifier=AcceptAllVerifier())


class TestGrantsOnSubmit:

    def test_exactly_ledger_and_caller_granted(self, ledger):
        ct, proof = _input()
        ledger.submit("alice", ct, proof)
        handle = ledger.last_of("alice")
        assert ledger.grants.grantees(handle) == frozenset({LEDGER_ID, "alice"})

    def test_other_principal_not_granted(self, ledger):
        ct, proof = _input()
        ledger.submit("alice", ct, proof)
        handle = ledger.last_of("alice")
        assert not ledger.grants.is_allowed(handle, "bob")

    def test_shared_registry_receives_grants(self):
        registry = AccessGrantRegistry()
        ledger = Ledger(ledger_id=LEDGER_ID, verifier=AcceptAllVerifier(), grants=registry)
        ct, proof = _input()
        ledger.submit("alice", ct, proof)
        assert registry.is_allowed(ledger.last_of("alice"), "alice")


class TestRejectedSubmissions:

    def test_invalid_proof_leaves_no_trace(self):
        registry = AccessGrantRegistry()
        ledger = Ledger(ledger_id=LEDGER_ID, verifier=RejectAllVerifier(), grants=registry)
        ct, proof = _input()

        with pytest.raises(InvalidProof):
            ledger.submit("alice", ct, proof)

        assert ledger.count_of("alice") == 0
        assert ledger.history_of("alice") == ()
        assert len(registry) == 0
        assert ledger.stats().rejected == 1

    def test_rejection_does_not_affect_existing_history(self, ledger):
        ct, proof = _input()
        ledger.submit("alice", ct, proof)

        ledger.verifier = RejectAllVerifier()
        with pytest.raises(InvalidProof):
            ledger.submit("alice", *_input())

        assert ledger.count_of("alice") == 1
        assert ledger.last_of("alice").handle_id == ct.handle_id

    def test_replayed_handle_rejected(self, ledger):
        ct, proof = _input()
        ledger.submit("alice", ct, proof)

        with pytest.raises(InvalidProof, match="replayed_handle"):
            ledger.submit("alice", ct, proof)

        assert ledger.count_of("alice") == 1
        assert len(ledger.grants) == 2
        assert ledger.stats().rejected == 1

    def test_replayed_handle_rejected_for_other_caller(self, ledger):
        ct, proof = _input()
        ledger.submit("alice", ct, proof)

        with pytest.raises(InvalidProof, match="replayed_handle"):
            ledger.submit("bob", ct, proof)

        assert ledger.count_of("bob") == 0
        assert not ledger.grants.is_allowed(ledger.last_of("alice"), "bob")

    def test_concurrent_replays_commit_once(self, ledger):
        ct, proof = _input()
        outcomes = []

        def worker():
            try:
                ledger.submit("alice", ct, proof)
                outcomes.append("ok")
            except InvalidProof:
                outcomes.append("rejected")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert ledger.count_of("alice") == 1

    def test_unexpected_verifier_error_propagates_without_mutation(self):
        ledger = Ledger(ledger_id=LEDGER_ID, verifier=BrokenVerifier())
        with pytest.raises(RuntimeError):
            ledger.submit("alice", *_input())
        assert ledger.count_of("alice") == 0
        assert len(ledger.grants) == 0


class TestConcurrency:

    def test_concurrent_submissions_all_commit_in_order_per_principal(self, ledger):
        principals = [f"player_{i}" for i in range(8)]
        per_principal = 25
        submitted: dict[str, list[str]] = {p: [] for p in principals}

        def worker(principal):
            for _ in range(per_principal):
                ct, proof = _input()
                ledger.submit(principal, ct, proof)
                submitted[principal].append(ct.handle_id)

        threads = [threading.Thread(target=worker, args=(p,)) for p in principals]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for p in principals:
            assert ledger.count_of(p) == per_principal
            assert [h.handle_id for h in ledger.history_of(p)] == submitted[p]
        assert ledger.stats().records == len(principals) * per_principal
