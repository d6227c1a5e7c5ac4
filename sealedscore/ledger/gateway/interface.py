"""LedgerGateway protocol - how a client reaches a ledger.

Implementations: LocalLedgerGateway (in-process), HTTPLedgerGateway
(remote ledger over HTTP).
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sealedscore.ledger.models import CiphertextHandle, ExternalCiphertext, InputProof


@runtime_checkable
class LedgerGateway(Protocol):
    """Ledger entry points as seen by one connected principal."""

    ledger_id: str
    principal: str

    async def connect(self) -> None:
        """Resolve the ledger identity before first use."""
        ...

    async def submit(self, ciphertext: ExternalCiphertext, proof: InputProof) -> None:
        """Submit as the connected principal. Raises InvalidProof on rejection."""
        ...

    async def history_of(self, principal: str) -> list[CiphertextHandle]:
        ...

    async def count_of(self, principal: str) -> int:
        ...

    async def last_of(self, principal: str) -> CiphertextHandle:
        """Raises EmptyHistory when the principal has no scores."""
        ...


__all__ = ["LedgerGateway"]
