"""Tests for the access grant registry."""

import secrets

import pytest

from sealedscore.ledger.errors import AccessDenied
from sealedscore.ledger.grants import AccessGrantRegistry
from sealedscore.ledger.models import CiphertextHandle


def _handle() -> CiphertextHandle:
    return CiphertextHandle(handle_id=secrets.token_hex(32))


class TestAccessGrantRegistry:

    def test_unknown_handle_has_no_grantees(self):
        registry = AccessGrantRegistry()
        h = _handle()
        assert registry.grantees(h) == frozenset()
        assert not registry.is_allowed(h, "alice")

    def test_allow_is_additive_and_idempotent(self):
        registry = AccessGrantRegistry()
        h = _handle()
        registry.allow(h, "alice")
        registry.allow(h, "alice")
        registry.allow(h, "bob")
        assert registry.grantees(h) == frozenset({"alice", "bob"})
        assert len(registry) == 2

    def test_grants_are_per_handle(self):
        registry = AccessGrantRegistry()
        h1, h2 = _handle(), _handle()
        registry.allow(h1, "alice")
        assert registry.is_allowed(h1, "alice")
        assert not registry.is_allowed(h2, "alice")

    def test_require_raises_for_non_grantee(self):
        registry = AccessGrantRegistry()
        h = _handle()
        registry.allow(h, "alice")
        registry.require(h, "alice")
        with pytest.raises(AccessDenied) as exc:
            registry.require(h, "mallory")
        assert exc.value.requester == "mallory"
        assert exc.value.handle_id == h.handle_id

    def test_allow_all(self):
        registry = AccessGrantRegistry()
        h = _handle()
        registry.allow_all(h, ["ledger", "alice"])
        assert registry.grantees(h) == frozenset({"ledger", "alice"})

    def test_empty_principal_rejected(self):
        registry = AccessGrantRegistry()
        with pytest.raises(ValueError):
            registry.allow(_handle(), "")
        with pytest.raises(ValueError):
            registry.allow_all(_handle(), ["alice", ""])

    def test_no_revocation_api(self):
        registry = AccessGrantRegistry()
        assert not hasattr(registry, "revoke")
        assert not hasattr(registry, "remove")

    def test_allow_all_logs_only_new_grants(self, monkeypatch):
        import bittensor as bt

        events = []
        monkeypatch.setattr(bt.logging, "debug", lambda msg, *a, **kw: events.append(msg))
        registry = AccessGrantRegistry()
        h = _handle()

        registry.allow_all(h, ["ledger", "alice"])
        registry.allow_all(h, ["alice"])
        registry.allow(h, "bob")

        grants = [e["acl"] for e in events if isinstance(e, dict) and "acl" in e]
        assert [g["principals"] for g in grants] == [["ledger", "alice"], ["bob"]]
        assert all(g["event"] == "grant" for g in grants)
