"""Ledger error taxonomy.

Write-time errors abort the whole operation; read-time errors are local to
the principal being queried.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all ledger errors."""

    code = "ledger_error"


class InvalidProof(LedgerError):
    """Input proof failed verification. Nothing was written.

    The caller has to re-encrypt and resubmit.
    """

    code = "invalid_proof"


class EmptyHistory(LedgerError):
    """``last_of`` was called for a principal with no submissions."""

    code = "empty_history"

    def __init__(self, principal: str):
        super().__init__(f"no scores recorded for {principal}")
        self.principal = principal


class AccessDenied(LedgerError):
    """Decryption requested by a principal outside the handle's grant set."""

    code = "access_denied"

    def __init__(self, handle_id: str, requester: str):
        super().__init__(f"{requester} holds no grant for handle {handle_id[:16]}")
        self.handle_id = handle_id
        self.requester = requester


__all__ = ["AccessDenied", "EmptyHistory", "InvalidProof", "LedgerError"]
