"""Access grant registry: which principals may request decryption of a handle.

Grants are additive only. The ledger writes them at submission time and the
decryption service reads them; there is no API that removes one.
"""

from __future__ import annotations

import threading

import bittensor as bt

from .errors import AccessDenied
from .models import CiphertextHandle


def _pk(principal: str | None) -> str:
    """Truncate principal for log readability."""
    if not principal:
        return "none"
    return principal[:16]


class AccessGrantRegistry:
    """Thread-safe, monotonic handle -> principals relation."""

    def __init__(self) -> None:
        self._grants: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def allow(self, handle: CiphertextHandle, principal: str) -> None:
        """Grant ``principal`` decryption rights on ``handle``. Idempotent."""
        self.allow_all(handle, [principal])

    def allow_all(self, handle: CiphertextHandle, principals: list[str]) -> None:
        """Grant several principals at once, under a single lock acquisition."""
        if any(not p for p in principals):
            raise ValueError("principal must be non-empty")
        with self._lock:
            holders = self._grants.setdefault(handle.handle_id, set())
            added = [p for p in dict.fromkeys(principals) if p not in holders]
            holders.update(added)
        if added:
            bt.logging.debug({"acl": {"event": "grant", "handle": handle.short(), "principals": [_pk(p) for p in added]}})

    def is_allowed(self, handle: CiphertextHandle, principal: str) -> bool:
        with self._lock:
            return principal in self._grants.get(handle.handle_id, ())

    def grantees(self, handle: CiphertextHandle) -> frozenset[str]:
        with self._lock:
            return frozenset(self._grants.get(handle.handle_id, ()))

    def require(self, handle: CiphertextHandle, principal: str) -> None:
        """Raise AccessDenied unless ``principal`` holds a grant on ``handle``."""
        if not self.is_allowed(handle, principal):
            bt.logging.warning({"acl": {"event": "access_denied", "handle": handle.short(), "principal": _pk(principal)}})
            raise AccessDenied(handle.handle_id, principal)

    def __len__(self) -> int:
        """Total number of (handle, principal) grants."""
        with self._lock:
            return sum(len(p) for p in self._grants.values())


__all__ = ["AccessGrantRegistry"]
