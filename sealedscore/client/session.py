"""Client-side score submission and decryption.

Drives the flow encrypt -> submit -> confirm for one principal and later
decrypts that principal's history. Encryption and decryption run as
coroutines outside the ledger; retry policy is left to the caller.
"""

from __future__ import annotations

import asyncio

import bittensor as bt

from sealedscore.fhe.interfaces import DecryptionService, Encryptor
from sealedscore.ledger.errors import InvalidProof
from sealedscore.ledger.gateway.interface import LedgerGateway
from sealedscore.ledger.models import CiphertextHandle, ContextBinding, SubmissionTask


class ScoreClient:
    """Submits and reads back encrypted scores for the gateway's principal.

    Supports:
    - Encrypting a score bound to (ledger, principal) and submitting it
    - Confirming that the ledger appended exactly one record
    - Decrypting single handles or the whole history in parallel
    """

    def __init__(
        self,
        *,
        gateway: LedgerGateway,
        encryptor: Encryptor,
        decryptor: DecryptionService,
    ) -> None:
        self._gateway = gateway
        self._encryptor = encryptor
        self._decryptor = decryptor
        self._connected = False
        self.tasks: list[SubmissionTask] = []

    @property
    def principal(self) -> str:
        return self._gateway.principal

    async def _ensure_connected(self) -> None:
        if not self._connected:
            await self._gateway.connect()
            self._connected = True

    # -- Submission --

    async def submit_score(self, value: int) -> SubmissionTask:
        """Encrypt ``value`` and append it to this principal's history.

        Any failure after the task went ``pending`` returns it to
        ``unsubmitted`` with the error recorded, unless the ledger turns
        out to hold the handle anyway (a response lost in transit).
        Nothing is retried here.

        Raises:
            InvalidProof: the ledger rejected the input. Re-encrypt and
                submit again.
        """
        await self._ensure_connected()
        task = SubmissionTask(principal=self.principal, plaintext=value)
        self.tasks.append(task)

        binding = ContextBinding(ledger_id=self._gateway.ledger_id, principal=self.principal)
        encrypted = await self._encryptor.encrypt(value, binding)
        handle_id = encrypted.ciphertext.handle_id

        before = await self._gateway.count_of(self.principal)
        task.mark_pending()
        try:
            await self._gateway.submit(encrypted.ciphertext, encrypted.proof)
            handle = await self._confirm(before, handle_id)
        except InvalidProof as e:
            task.mark_rejected(str(e))
            bt.logging.warning({"score_client": {"event": "submit_rejected", "principal": self.principal[:16], "reason": str(e)}})
            raise
        except Exception as e:
            handle = await self._find_committed(before, handle_id)
            if handle is None:
                task.mark_rejected(f"{type(e).__name__}: {e}")
                bt.logging.warning({"score_client": {"event": "submit_failed", "principal": self.principal[:16], "error": task.error}})
                raise
            bt.logging.info({"score_client": {"event": "submit_recovered", "principal": self.principal[:16], "error": str(e)}})

        task.mark_confirmed(handle)
        bt.logging.info({"score_client": {"event": "submit_confirmed", "principal": self.principal[:16], "handle": handle.short()}})
        return task

    async def _confirm(self, count_before: int, handle_id: str) -> CiphertextHandle:
        """Locate the committed handle for our submission.

        Other sessions of the same principal may commit in between, so the
        handle is looked up by id among the records appended since
        ``count_before``.
        """
        history = await self._gateway.history_of(self.principal)
        if len(history) <= count_before:
            raise RuntimeError("ledger acknowledged submission but history did not grow")
        for handle in reversed(history[count_before:]):
            if handle.handle_id == handle_id:
                return handle
        raise RuntimeError(f"submitted handle {handle_id[:16]} not found in history")

    async def _find_committed(self, count_before: int, handle_id: str) -> CiphertextHandle | None:
        """Best-effort lookup after a failed submit. None if absent or unreachable."""
        try:
            return await self._confirm(count_before, handle_id)
        except Exception as e:
            bt.logging.debug({"score_client": {"event": "reconcile_failed", "handle": handle_id[:16], "error": str(e)}})
            return None

    # -- Reads --

    async def history(self) -> list[CiphertextHandle]:
        return await self._gateway.history_of(self.principal)

    async def count(self) -> int:
        return await self._gateway.count_of(self.principal)

    async def decrypt(self, handle: CiphertextHandle) -> int:
        """Decrypt one handle as this principal. Raises AccessDenied."""
        return await self._decryptor.decrypt(handle, self.principal)

    async def decrypt_history(self) -> list[int]:
        """Decrypt every score in submission order."""
        handles = await self.history()
        return list(await asyncio.gather(*(self.decrypt(h) for h in handles)))

    async def decrypt_latest(self) -> int:
        """Decrypt the most recent score. Raises EmptyHistory."""
        handle = await self._gateway.last_of(self.principal)
        return await self.decrypt(handle)


__all__ = ["ScoreClient"]
