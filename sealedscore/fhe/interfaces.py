"""Capabilities the ledger consumes from the encryption subsystem.

Implementations: KeypairProofVerifier + MockCoprocessor (local runs and
tests). A production deployment plugs in its own coprocessor client.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sealedscore.ledger.models import (
    CiphertextHandle,
    ContextBinding,
    EncryptedInput,
    ExternalCiphertext,
    InputProof,
)


@runtime_checkable
class ProofVerifier(Protocol):
    """Checks that a submission is bound to this ledger and the caller."""

    def verify_input(
        self,
        ciphertext: ExternalCiphertext,
        proof: InputProof,
        *,
        ledger_id: str,
        caller: str,
    ) -> CiphertextHandle:
        """Return the internal handle, or raise InvalidProof."""
        ...


@runtime_checkable
class Encryptor(Protocol):
    """Client-side encryption with proof generation."""

    async def encrypt(self, plaintext: int, binding: ContextBinding) -> EncryptedInput:
        ...


@runtime_checkable
class DecryptionService(Protocol):
    """Grant-checked decryption."""

    async def decrypt(self, handle: CiphertextHandle, requester: str) -> int:
        """Return the plaintext, or raise AccessDenied."""
        ...


__all__ = ["DecryptionService", "Encryptor", "ProofVerifier"]
