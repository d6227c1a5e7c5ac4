"""Authenticated HTTP endpoint in front of a single Ledger.

Runs as an async task in the ledger process's event loop. Routes:
  POST /ledger/auth/challenge          - request auth challenge (nonce + ledger id)
  POST /ledger/auth/respond            - submit signed challenge for bearer token
  GET  /ledger/info                    - ledger id and counters
  POST /ledger/scores                  - submit an encrypted score (bearer)
  GET  /ledger/scores/{principal}      - list a principal's handles
  GET  /ledger/scores/{principal}/count
  GET  /ledger/scores/{principal}/last
"""

from __future__ import annotations

import asyncio

import bittensor as bt
from aiohttp import web
from pydantic import ValidationError

from sealedscore.ledger.auth import AccessPolicy
from sealedscore.ledger.errors import EmptyHistory, InvalidProof
from sealedscore.ledger.ledger import Ledger
from sealedscore.ledger.models import ExternalCiphertext, InputProof


def _pk(principal: str | None) -> str:
    """Truncate principal for log readability."""
    if not principal:
        return "none"
    return principal[:16]


class LedgerHTTPServer:
    """Lightweight async HTTP server exposing ledger reads and writes."""

    def __init__(
        self,
        ledger: Ledger,
        access_policy: AccessPolicy,
        host: str = "0.0.0.0",
        port: int = 8300,
    ):
        self.ledger = ledger
        self.access_policy = access_policy
        self.host = host
        self.port = port
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

    def _build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/ledger/auth/challenge", self._handle_challenge)
        app.router.add_post("/ledger/auth/respond", self._handle_respond)
        app.router.add_get("/ledger/info", self._handle_info)
        app.router.add_post("/ledger/scores", self._handle_submit)
        app.router.add_get("/ledger/scores/{principal}", self._handle_history)
        app.router.add_get("/ledger/scores/{principal}/count", self._handle_count)
        app.router.add_get("/ledger/scores/{principal}/last", self._handle_last)
        return app

    async def start(self) -> None:
        """Start the HTTP server."""
        self._app = self._build_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        bt.logging.info({"ledger_http": {"status": "started", "port": self.port, "ledger_id": self.ledger.ledger_id}})

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            bt.logging.info({"ledger_http": "stopped"})

    # -- Auth routes --

    async def _handle_challenge(self, request: web.Request) -> web.Response:
        """Issue a challenge nonce for a principal."""
        try:
            body = await request.json()
            principal = body.get("principal", "")
        except Exception:
            bt.logging.warning({"ledger_request": {"endpoint": "auth/challenge", "status": 400, "error": "invalid_body"}})
            return web.json_response({"error": "invalid_body"}, status=400)

        result = self.access_policy.check_eligibility(principal)
        if not result.eligible:
            bt.logging.info({"ledger_request": {"endpoint": "auth/challenge", "principal": _pk(principal), "status": 403, "reason": result.reason}})
            return web.json_response(
                {"error": "ineligible", "reason": result.reason}, status=403,
            )

        nonce = self.access_policy.issue_challenge(principal)
        bt.logging.debug({"ledger_request": {"endpoint": "auth/challenge", "principal": _pk(principal), "status": 200}})
        return web.json_response({"nonce": nonce, "ledger_id": self.ledger.ledger_id})

    async def _handle_respond(self, request: web.Request) -> web.Response:
        """Verify signed challenge and issue bearer token."""
        try:
            body = await request.json()
            principal = body.get("principal", "")
            nonce = body.get("nonce", "")
            signature = body.get("signature", "")
        except Exception:
            bt.logging.warning({"ledger_request": {"endpoint": "auth/respond", "status": 400, "error": "invalid_body"}})
            return web.json_response({"error": "invalid_body"}, status=400)

        token = self.access_policy.verify_response(principal, nonce, signature)
        if token is None:
            bt.logging.warning({"ledger_request": {"endpoint": "auth/respond", "principal": _pk(principal), "status": 403}})
            return web.json_response({"error": "auth_failed"}, status=403)

        return web.json_response({"token": token})

    def _check_auth(self, request: web.Request) -> str | None:
        """Validate bearer token from Authorization header. Returns principal or None."""
        auth = request.headers.get("Authorization", "")
        if not auth.startswith("Bearer "):
            return None
        token = auth[7:]
        return self.access_policy.validate_token(token)

    # -- Write route --

    async def _handle_submit(self, request: web.Request) -> web.Response:
        caller = self._check_auth(request)
        if caller is None:
            bt.logging.debug({"ledger_request": {"endpoint": "scores", "status": 401}})
            return web.json_response({"error": "unauthorized"}, status=401)

        if not self.access_policy.check_rate_limit(caller):
            bt.logging.warning({"ledger_request": {"endpoint": "scores", "principal": _pk(caller), "status": 429}})
            return web.json_response({"error": "rate_limited"}, status=429)

        try:
            body = await request.json()
            ciphertext = ExternalCiphertext(**body["ciphertext"])
            proof = InputProof(**body["proof"])
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            bt.logging.warning({"ledger_request": {"endpoint": "scores", "principal": _pk(caller), "status": 400, "error": str(e)[:200]}})
            return web.json_response({"error": "invalid_body"}, status=400)

        try:
            await asyncio.to_thread(self.ledger.submit, caller, ciphertext, proof)
        except InvalidProof as e:
            bt.logging.info({"ledger_request": {"endpoint": "scores", "principal": _pk(caller), "status": 422, "reason": str(e)}})
            return web.json_response({"error": e.code, "reason": str(e)}, status=422)

        self.access_policy.record_submission(caller)
        return web.json_response({
            "status": "confirmed",
            "count": self.ledger.count_of(caller),
        })

    # -- Read routes (unauthenticated) --

    async def _handle_info(self, request: web.Request) -> web.Response:
        stats = self.ledger.stats()
        return web.json_response({
            "ledger_id": self.ledger.ledger_id,
            "stats": stats.model_dump(mode="json"),
        })

    async def _handle_history(self, request: web.Request) -> web.Response:
        principal = request.match_info["principal"]
        handles = self.ledger.history_of(principal)
        return web.json_response({
            "principal": principal,
            "handles": [h.model_dump(mode="json") for h in handles],
        })

    async def _handle_count(self, request: web.Request) -> web.Response:
        principal = request.match_info["principal"]
        return web.json_response({
            "principal": principal,
            "count": self.ledger.count_of(principal),
        })

    async def _handle_last(self, request: web.Request) -> web.Response:
        principal = request.match_info["principal"]
        try:
            handle = self.ledger.last_of(principal)
        except EmptyHistory as e:
            return web.json_response({"error": e.code, "principal": principal}, status=404)
        return web.json_response(handle.model_dump(mode="json"))


__all__ = ["LedgerHTTPServer"]
