"""In-process LedgerGateway bound to a fixed principal."""

from __future__ import annotations

from sealedscore.ledger.ledger import Ledger
from sealedscore.ledger.models import CiphertextHandle, ExternalCiphertext, InputProof


class LocalLedgerGateway:
    """Calls a Ledger object directly as ``principal``.

    The principal is taken on trust: this gateway is for embedding the
    ledger in a process that already knows who the caller is.
    """

    def __init__(self, ledger: Ledger, principal: str):
        if not principal:
            raise ValueError("principal must be non-empty")
        self.ledger = ledger
        self.principal = principal

    @property
    def ledger_id(self) -> str:
        return self.ledger.ledger_id

    async def connect(self) -> None:
        return None

    async def submit(self, ciphertext: ExternalCiphertext, proof: InputProof) -> None:
        self.ledger.submit(self.principal, ciphertext, proof)

    async def history_of(self, principal: str) -> list[CiphertextHandle]:
        return list(self.ledger.history_of(principal))

    async def count_of(self, principal: str) -> int:
        return self.ledger.count_of(principal)

    async def last_of(self, principal: str) -> CiphertextHandle:
        return self.ledger.last_of(principal)


__all__ = ["LocalLedgerGateway"]
