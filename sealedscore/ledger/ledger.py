"""Encrypted score ledger.

Holds, per principal, an append-only list of opaque ciphertext handles.
Writes are gated on an input proof checked by an injected verifier; every
accepted write grants the new handle to the ledger itself and to the caller.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import bittensor as bt

from .errors import EmptyHistory, InvalidProof
from .grants import AccessGrantRegistry
from .models import CiphertextHandle, ExternalCiphertext, InputProof, LedgerStats

if TYPE_CHECKING:
    from sealedscore.fhe.interfaces import ProofVerifier


def _pk(principal: str | None) -> str:
    """Truncate principal for log readability."""
    if not principal:
        return "none"
    return principal[:16]


class Ledger:
    """Per-principal append-only score histories.

    Commits are serialized by a single lock, so submissions are totally
    ordered and each one either fully lands (grants + append) or leaves no
    trace. Proof verification runs before the lock is taken.

    Reads return tuple snapshots of committed state and never observe a
    partially applied submission.
    """

    def __init__(
        self,
        ledger_id: str,
        verifier: ProofVerifier,
        grants: AccessGrantRegistry | None = None,
    ):
        if not ledger_id:
            raise ValueError("ledger_id must be non-empty")
        self.ledger_id = ledger_id
        self.verifier = verifier
        self.grants = grants if grants is not None else AccessGrantRegistry()

        # principal -> committed handles, in acceptance order
        self._histories: dict[str, tuple[CiphertextHandle, ...]] = {}
        # handle ids already committed, across all principals
        self._committed: set[str] = set()
        self._lock = threading.Lock()
        self._rejected = 0

    # -- Writes --

    def submit(
        self,
        caller: str,
        ciphertext: ExternalCiphertext,
        proof: InputProof,
    ) -> None:
        """Verify and append an encrypted score for ``caller``.

        Raises:
            InvalidProof: the proof does not bind ``ciphertext`` to this
                ledger and ``caller``, or the handle was already committed
                (``replayed_handle``). No state is mutated.
        """
        try:
            handle = self.verifier.verify_input(
                ciphertext, proof, ledger_id=self.ledger_id, caller=caller,
            )
        except InvalidProof as e:
            with self._lock:
                self._rejected += 1
            bt.logging.warning({"ledger": {"event": "submit_rejected", "caller": _pk(caller), "reason": str(e)}})
            raise

        with self._lock:
            replayed = handle.handle_id in self._committed
            if replayed:
                self._rejected += 1
            else:
                self._committed.add(handle.handle_id)
                self.grants.allow_all(handle, [self.ledger_id, caller])
                history = self._histories.get(caller, ())
                self._histories[caller] = history + (handle,)
                count = len(history) + 1

        if replayed:
            bt.logging.warning({"ledger": {"event": "submit_rejected", "caller": _pk(caller), "handle": handle.short(), "reason": "replayed_handle"}})
            raise InvalidProof("replayed_handle")

        bt.logging.info({"ledger": {"event": "submit_confirmed", "caller": _pk(caller), "handle": handle.short(), "count": count}})

    # -- Reads --

    def history_of(self, principal: str) -> tuple[CiphertextHandle, ...]:
        """All committed handles for ``principal``, oldest first.

        Not grant-gated: a handle is useless without a decryption grant.
        """
        with self._lock:
            return self._histories.get(principal, ())

    def count_of(self, principal: str) -> int:
        with self._lock:
            return len(self._histories.get(principal, ()))

    def last_of(self, principal: str) -> CiphertextHandle:
        """Most recently committed handle for ``principal``.

        Raises:
            EmptyHistory: ``principal`` has never submitted.
        """
        with self._lock:
            history = self._histories.get(principal, ())
        if not history:
            raise EmptyHistory(principal)
        return history[-1]

    def principals(self) -> list[str]:
        """Principals with at least one committed score."""
        with self._lock:
            return sorted(self._histories)

    def stats(self) -> LedgerStats:
        with self._lock:
            records = sum(len(h) for h in self._histories.values())
            principals = len(self._histories)
            rejected = self._rejected
        return LedgerStats(
            ledger_id=self.ledger_id,
            principals=principals,
            records=records,
            grants=len(self.grants),
            rejected=rejected,
        )


__all__ = ["Ledger"]
