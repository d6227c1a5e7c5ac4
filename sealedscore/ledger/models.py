"""Pydantic models for the encrypted score ledger.

Handles are opaque: the ledger never sees ciphertext bits, only the
identifier the encryption subsystem hands out.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Score domain - scores are encrypted as unsigned 32-bit integers
# ---------------------------------------------------------------------------

SCORE_TYPE = "euint32"
MAX_SCORE = 2**32 - 1

HANDLE_ID_PATTERN = r"^[0-9a-f]{64}$"


# ---------------------------------------------------------------------------
# Ciphertext representations
# ---------------------------------------------------------------------------


class CiphertextHandle(BaseModel):
    """Internal, immutable reference to an encrypted value held by the ledger."""

    model_config = ConfigDict(frozen=True)

    handle_id: str = Field(pattern=HANDLE_ID_PATTERN)
    type_tag: str = SCORE_TYPE

    def short(self) -> str:
        return self.handle_id[:16]


class ExternalCiphertext(BaseModel):
    """Client-side ciphertext as produced by encryption, before submission."""

    model_config = ConfigDict(frozen=True)

    handle_id: str = Field(pattern=HANDLE_ID_PATTERN)
    type_tag: str = SCORE_TYPE


class InputProof(BaseModel):
    """Attestation binding a ciphertext to one ledger and one principal."""

    model_config = ConfigDict(frozen=True)

    signer: str = Field(min_length=1, description="SS58 address of the attesting coprocessor")
    signature: str = Field(description="Hex-encoded signature over the binding payload")


class ContextBinding(BaseModel):
    """Who the ciphertext is being encrypted for."""

    model_config = ConfigDict(frozen=True)

    ledger_id: str = Field(min_length=1)
    principal: str = Field(min_length=1)


class EncryptedInput(BaseModel):
    """Output of ``encrypt``: the ciphertext and its proof."""

    ciphertext: ExternalCiphertext
    proof: InputProof


# ---------------------------------------------------------------------------
# Submission lifecycle (client side)
# ---------------------------------------------------------------------------


class SubmissionState(str, Enum):
    """Per-record state. ``confirmed`` is terminal."""

    UNSUBMITTED = "unsubmitted"
    PENDING = "pending"
    CONFIRMED = "confirmed"


class SubmissionTask(BaseModel):
    """One score submission as tracked by the submitting client."""

    principal: str
    plaintext: int = Field(ge=0, le=MAX_SCORE)
    state: SubmissionState = SubmissionState.UNSUBMITTED
    handle: CiphertextHandle | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    confirmed_at: datetime | None = None

    def mark_pending(self) -> None:
        if self.state is SubmissionState.CONFIRMED:
            raise ValueError("confirmed submissions cannot be resubmitted")
        self.state = SubmissionState.PENDING
        self.error = None

    def mark_confirmed(self, handle: CiphertextHandle) -> None:
        if self.state is not SubmissionState.PENDING:
            raise ValueError(f"cannot confirm a submission in state {self.state.value}")
        self.state = SubmissionState.CONFIRMED
        self.handle = handle
        self.confirmed_at = datetime.now(timezone.utc)

    def mark_rejected(self, reason: str) -> None:
        if self.state is not SubmissionState.PENDING:
            raise ValueError(f"cannot reject a submission in state {self.state.value}")
        self.state = SubmissionState.UNSUBMITTED
        self.error = reason


# ---------------------------------------------------------------------------
# Ledger observability
# ---------------------------------------------------------------------------


class LedgerStats(BaseModel):
    """Point-in-time counters for a ledger instance."""

    ledger_id: str
    principals: int = 0
    records: int = 0
    grants: int = 0
    rejected: int = 0


__all__ = [
    "HANDLE_ID_PATTERN",
    "MAX_SCORE",
    "SCORE_TYPE",
    "CiphertextHandle",
    "ContextBinding",
    "EncryptedInput",
    "ExternalCiphertext",
    "InputProof",
    "LedgerStats",
    "SubmissionState",
    "SubmissionTask",
]
