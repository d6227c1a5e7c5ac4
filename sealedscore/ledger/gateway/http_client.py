"""HTTP-based LedgerGateway for remote clients.

Handles challenge-response authentication automatically, caches bearer
tokens, and maps error responses back onto ledger exceptions.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any
from urllib.parse import quote

import bittensor as bt
import httpx

from sealedscore.ledger.auth import challenge_message
from sealedscore.ledger.errors import EmptyHistory, InvalidProof
from sealedscore.ledger.models import CiphertextHandle, ExternalCiphertext, InputProof


def _scores_path(principal: str, *suffix: str) -> str:
    return "/".join(["/ledger/scores", quote(principal, safe=""), *suffix])


class HTTPLedgerGateway:
    """Client for a ledger served by LedgerHTTPServer."""

    def __init__(
        self,
        ledger_url: str,
        wallet: Any,
        ledger_id: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
    ):
        self.ledger_url = ledger_url.rstrip("/")
        self.wallet = wallet
        self.principal = wallet.hotkey.ss58_address
        self._expected_ledger_id = ledger_id
        self.ledger_id = ledger_id or ""
        self._token: str | None = None
        self._token_expires: float = 0.0
        self._client = httpx.AsyncClient(timeout=timeout)
        self._max_retries = max_retries

    async def close(self) -> None:
        await self._client.aclose()

    async def connect(self) -> None:
        """Fetch the ledger identity, refusing a ledger other than the expected one."""
        resp = await self._request("GET", "/ledger/info", auth=False)
        resp.raise_for_status()
        ledger_id = resp.json()["ledger_id"]
        if self._expected_ledger_id and ledger_id != self._expected_ledger_id:
            raise ConnectionError(
                f"ledger id mismatch: expected {self._expected_ledger_id}, got {ledger_id}"
            )
        self.ledger_id = ledger_id

    # -- Auth --

    async def _ensure_auth(self) -> str:
        """Ensure we have a valid bearer token, refreshing if needed."""
        if self._token and time.time() < self._token_expires - 60:
            return self._token

        resp = await self._client.post(
            f"{self.ledger_url}/ledger/auth/challenge",
            json={"principal": self.principal},
        )
        if resp.status_code != 200:
            raise ConnectionError(f"Auth challenge failed: {resp.status_code} {resp.text}")

        challenge = resp.json()
        nonce = challenge["nonce"]

        signature = self.wallet.hotkey.sign(challenge_message(challenge["ledger_id"], nonce))
        sig_hex = signature.hex() if isinstance(signature, bytes) else str(signature)

        resp = await self._client.post(
            f"{self.ledger_url}/ledger/auth/respond",
            json={"principal": self.principal, "nonce": nonce, "signature": sig_hex},
        )
        if resp.status_code != 200:
            raise ConnectionError(f"Auth respond failed: {resp.status_code} {resp.text}")

        self._token = resp.json()["token"]
        self._token_expires = time.time() + 3500  # ~1 hour minus buffer
        return self._token

    async def _request(
        self, method: str, path: str, *, auth: bool, json: Any = None,
    ) -> httpx.Response:
        """Request with re-auth on 401.

        Transport errors are retried for GET only. A write that fails in
        transit may already be committed, so it surfaces to the caller.
        """
        retry_transport = method == "GET"
        for attempt in range(self._max_retries):
            try:
                headers = {}
                if auth:
                    token = await self._ensure_auth()
                    headers["Authorization"] = f"Bearer {token}"
                resp = await self._client.request(
                    method, self.ledger_url + path, headers=headers, json=json,
                )
                if auth and resp.status_code == 401:
                    self._token = None  # Force re-auth
                    continue
                return resp
            except httpx.TransportError as e:
                if not retry_transport or attempt == self._max_retries - 1:
                    raise
                wait = 2 ** attempt
                bt.logging.warning({"ledger_http_client": {"retry": attempt, "wait": wait, "error": str(e)}})
                await asyncio.sleep(wait)
        raise ConnectionError("Max retries exceeded")

    # -- LedgerGateway interface --

    async def submit(self, ciphertext: ExternalCiphertext, proof: InputProof) -> None:
        resp = await self._request(
            "POST", "/ledger/scores", auth=True,
            json={
                "ciphertext": ciphertext.model_dump(mode="json"),
                "proof": proof.model_dump(mode="json"),
            },
        )
        if resp.status_code == 422:
            raise InvalidProof(resp.json().get("reason", "rejected"))
        resp.raise_for_status()

    async def history_of(self, principal: str) -> list[CiphertextHandle]:
        resp = await self._request("GET", _scores_path(principal), auth=False)
        resp.raise_for_status()
        return [CiphertextHandle(**h) for h in resp.json().get("handles", [])]

    async def count_of(self, principal: str) -> int:
        resp = await self._request("GET", _scores_path(principal, "count"), auth=False)
        resp.raise_for_status()
        return int(resp.json()["count"])

    async def last_of(self, principal: str) -> CiphertextHandle:
        resp = await self._request("GET", _scores_path(principal, "last"), auth=False)
        if resp.status_code == 404:
            raise EmptyHistory(principal)
        resp.raise_for_status()
        return CiphertextHandle(**resp.json())


__all__ = ["HTTPLedgerGateway"]
