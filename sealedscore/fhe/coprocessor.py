"""In-memory coprocessor for local runs and tests.

Stands in for a remote encryption service: values are held in process
memory keyed by handle id and never leave it except through a
grant-checked ``decrypt``. Input proofs are real signatures from the
coprocessor hotkey, so the ledger verifies them exactly as it would a
remote coprocessor's.
"""

from __future__ import annotations

import asyncio
import secrets
import threading
from typing import Any

import bittensor as bt

from sealedscore.ledger.grants import AccessGrantRegistry
from sealedscore.ledger.models import (
    MAX_SCORE,
    SCORE_TYPE,
    CiphertextHandle,
    ContextBinding,
    EncryptedInput,
    ExternalCiphertext,
)

from .proof import sign_input_proof


class MockCoprocessor:
    """Encryptor + DecryptionService backed by a process-local vault."""

    def __init__(
        self,
        wallet: Any,
        grants: AccessGrantRegistry,
        latency: float = 0.0,
    ):
        self.wallet = wallet
        self.grants = grants
        self.latency = latency
        self._vault: dict[str, int] = {}
        self._lock = threading.Lock()

    @property
    def signer(self) -> str:
        """SS58 address ledgers must trust to accept this coprocessor's proofs."""
        return self.wallet.hotkey.ss58_address

    async def encrypt(self, plaintext: int, binding: ContextBinding) -> EncryptedInput:
        if isinstance(plaintext, bool) or not isinstance(plaintext, int):
            raise TypeError(f"plaintext must be int, got {type(plaintext).__name__}")
        if not 0 <= plaintext <= MAX_SCORE:
            raise ValueError(f"plaintext {plaintext} outside {SCORE_TYPE} range")

        if self.latency:
            await asyncio.sleep(self.latency)

        handle_id = secrets.token_hex(32)
        with self._lock:
            self._vault[handle_id] = plaintext

        ciphertext = ExternalCiphertext(handle_id=handle_id, type_tag=SCORE_TYPE)
        proof = sign_input_proof(ciphertext, binding.ledger_id, binding.principal, self.wallet)
        bt.logging.debug({"coprocessor": {"event": "encrypted", "handle": handle_id[:16], "principal": binding.principal[:16]}})
        return EncryptedInput(ciphertext=ciphertext, proof=proof)

    async def decrypt(self, handle: CiphertextHandle, requester: str) -> int:
        if self.latency:
            await asyncio.sleep(self.latency)

        self.grants.require(handle, requester)

        with self._lock:
            value = self._vault.get(handle.handle_id)
        if value is None:
            raise LookupError(f"unknown handle {handle.short()}")
        return value


__all__ = ["MockCoprocessor"]
