"""Principal authentication for ledger writes.

A principal proves it controls its SS58 address by signing a challenge
that names this ledger, so an answer given to one ledger cannot be replayed
against another. The bearer token it receives identifies the caller on
``POST /ledger/scores``. Accepted submissions are counted per principal
over a sliding one-hour window.
"""

from __future__ import annotations

import secrets
import time
from collections import OrderedDict, deque
from dataclasses import dataclass

import bittensor as bt

CHALLENGE_TTL = 120.0
RATE_WINDOW = 3600.0


def _pk(principal: str | None) -> str:
    """Truncate principal for log readability."""
    if not principal:
        return "none"
    return principal[:16]


def challenge_message(ledger_id: str, nonce: str) -> bytes:
    """Bytes a principal signs to answer ``nonce`` issued by ``ledger_id``."""
    return f"sealedscore-auth:{ledger_id}:{nonce}".encode()


@dataclass
class EligibilityResult:
    """Result of an eligibility check."""

    eligible: bool
    reason: str = ""


@dataclass(frozen=True)
class _Lease:
    """A nonce or token held by one principal until ``expires_at``."""

    principal: str
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class AccessPolicy:
    """Challenge-response auth and write quota for one ledger.

    Fail-closed: any verification failure = reject. All state is in memory
    and bounded: expired challenges and tokens are dropped whenever the
    policy is consulted, and quota windows are discarded once empty.
    """

    def __init__(
        self,
        ledger_id: str,
        token_ttl: int = 3600,
        rate_limit_per_hour: int = 600,
        max_tokens: int = 5000,
        max_pending_challenges: int = 10000,
        allowed_principals: set[str] | None = None,
    ):
        if not ledger_id:
            raise ValueError("ledger_id must be non-empty")
        self.ledger_id = ledger_id
        self.token_ttl = token_ttl
        self.rate_limit_per_hour = rate_limit_per_hour
        self.max_tokens = max_tokens
        self.max_pending_challenges = max_pending_challenges
        # None means any well-formed address may authenticate
        self.allowed_principals = allowed_principals

        # nonce -> lease, oldest first
        self._challenges: OrderedDict[str, _Lease] = OrderedDict()
        # token -> lease, least recently used first
        self._tokens: OrderedDict[str, _Lease] = OrderedDict()
        # principal -> timestamps of accepted submissions within RATE_WINDOW
        self._submissions: dict[str, deque[float]] = {}

    # -- Eligibility --

    def check_eligibility(self, principal: str) -> EligibilityResult:
        """Check that a principal may request a challenge.

        Requirements:
        1. Principal is a decodable SS58 address
        2. Principal is on the allowlist, when one is configured
        """
        def _reject(reason: str) -> EligibilityResult:
            bt.logging.warning({"ledger_auth": {"event": "eligibility_rejected", "principal": _pk(principal), "reason": reason}})
            return EligibilityResult(eligible=False, reason=reason)

        if not principal:
            return _reject("empty_principal")

        try:
            bt.Keypair(ss58_address=principal)
        except Exception:
            return _reject("malformed_address")

        if self.allowed_principals is not None and principal not in self.allowed_principals:
            return _reject("principal_not_allowed")

        return EligibilityResult(eligible=True)

    # -- Challenge-response --

    def _prune_challenges(self, now: float) -> None:
        while self._challenges:
            nonce, lease = next(iter(self._challenges.items()))
            if not lease.expired(now) and len(self._challenges) < self.max_pending_challenges:
                break
            del self._challenges[nonce]

    def issue_challenge(self, principal: str) -> str:
        """Open a challenge for ``principal``; sign ``challenge_message(ledger_id, nonce)``."""
        now = time.time()
        self._prune_challenges(now)
        nonce = secrets.token_hex(32)
        self._challenges[nonce] = _Lease(principal=principal, expires_at=now + CHALLENGE_TTL)
        return nonce

    def verify_response(self, principal: str, nonce: str, signature: str) -> str | None:
        """Close a challenge and issue a bearer token.

        A nonce is consumed by its first answer, right or wrong.

        Returns:
            Bearer token string on success, None on failure.
        """
        now = time.time()
        lease = self._challenges.pop(nonce, None)
        self._prune_challenges(now)

        if lease is None or lease.expired(now):
            reason = "unknown_nonce"
        elif lease.principal != principal:
            reason = "principal_mismatch"
        elif not self._signature_valid(principal, challenge_message(self.ledger_id, nonce), signature):
            reason = "bad_signature"
        else:
            reason = ""
        if reason:
            bt.logging.warning({"ledger_auth": {"event": "verify_failed", "principal": _pk(principal), "reason": reason}})
            return None

        return self._issue_token(principal, now)

    @staticmethod
    def _signature_valid(principal: str, message: bytes, signature: str) -> bool:
        try:
            return bool(bt.Keypair(ss58_address=principal).verify(message, bytes.fromhex(signature)))
        except Exception:
            return False

    # -- Tokens --

    def _issue_token(self, principal: str, now: float) -> str:
        while len(self._tokens) >= self.max_tokens:
            self._tokens.popitem(last=False)
        token = secrets.token_hex(32)
        self._tokens[token] = _Lease(principal=principal, expires_at=now + self.token_ttl)
        bt.logging.info({"ledger_auth": {"event": "token_issued", "principal": _pk(principal)}})
        return token

    def validate_token(self, token: str) -> str | None:
        """Principal the token was issued to, or None if unknown or expired."""
        lease = self._tokens.get(token)
        if lease is None:
            return None
        if lease.expired(time.time()):
            del self._tokens[token]
            return None
        self._tokens.move_to_end(token)
        return lease.principal

    # -- Write quota --

    def _window(self, principal: str, now: float) -> deque[float] | None:
        window = self._submissions.get(principal)
        if window is None:
            return None
        while window and now - window[0] >= RATE_WINDOW:
            window.popleft()
        if not window:
            del self._submissions[principal]
            return None
        return window

    def check_rate_limit(self, principal: str) -> bool:
        """True while ``principal`` has quota left for another accepted submission."""
        window = self._window(principal, time.time())
        used = len(window) if window else 0
        if used >= self.rate_limit_per_hour:
            bt.logging.warning({"ledger_auth": {"event": "rate_limited", "principal": _pk(principal), "accepted_in_window": used}})
            return False
        return True

    def record_submission(self, principal: str) -> None:
        """Charge one accepted submission against ``principal``'s quota."""
        now = time.time()
        window = self._window(principal, now)
        if window is None:
            window = self._submissions[principal] = deque()
        window.append(now)


__all__ = ["AccessPolicy", "EligibilityResult", "challenge_message"]
