"""Encrypted score ledger.

Per-principal, append-only histories of opaque ciphertext handles:
- writes are gated on an input proof checked by an injected verifier
- every accepted write grants the new handle to the ledger and the caller
- decryption rights are enforced by the decryption service, not here
"""

from .errors import AccessDenied, EmptyHistory, InvalidProof, LedgerError
from .grants import AccessGrantRegistry
from .ledger import Ledger
from .models import (
    MAX_SCORE,
    CiphertextHandle,
    ContextBinding,
    EncryptedInput,
    ExternalCiphertext,
    InputProof,
    LedgerStats,
    SubmissionState,
    SubmissionTask,
)

__all__ = [
    "MAX_SCORE",
    "AccessDenied",
    "AccessGrantRegistry",
    "CiphertextHandle",
    "ContextBinding",
    "EmptyHistory",
    "EncryptedInput",
    "ExternalCiphertext",
    "InputProof",
    "InvalidProof",
    "Ledger",
    "LedgerError",
    "LedgerStats",
    "SubmissionState",
    "SubmissionTask",
]
