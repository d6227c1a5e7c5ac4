"""Keypair-backed proof verifier.

Accepts an input only if its proof was signed by a trusted coprocessor
over the (ciphertext, ledger, caller) binding.
"""

from __future__ import annotations

from collections.abc import Iterable

import bittensor as bt

from sealedscore.ledger.errors import InvalidProof
from sealedscore.ledger.models import CiphertextHandle, ExternalCiphertext, InputProof

from .proof import verify_input_proof


class KeypairProofVerifier:
    """ProofVerifier trusting a fixed set of coprocessor signer addresses."""

    def __init__(self, trusted_signers: Iterable[str]):
        self.trusted_signers = frozenset(trusted_signers)
        if not self.trusted_signers:
            raise ValueError("at least one trusted signer is required")

    def verify_input(
        self,
        ciphertext: ExternalCiphertext,
        proof: InputProof,
        *,
        ledger_id: str,
        caller: str,
    ) -> CiphertextHandle:
        def _reject(reason: str) -> InvalidProof:
            bt.logging.warning({"proof_verifier": {"event": "rejected", "caller": caller[:16] if caller else "none", "reason": reason}})
            return InvalidProof(reason)

        if not caller:
            raise _reject("empty_caller")

        if proof.signer not in self.trusted_signers:
            raise _reject("untrusted_signer")

        if not verify_input_proof(ciphertext, proof, ledger_id, caller):
            raise _reject("bad_signature")

        return CiphertextHandle(handle_id=ciphertext.handle_id, type_tag=ciphertext.type_tag)


__all__ = ["KeypairProofVerifier"]
