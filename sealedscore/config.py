"""Ledger process settings.

Defaults live on the models below. Any field can be overridden with an
environment variable named ``SEALEDSCORE_<SECTION>__<FIELD>``, e.g.
``SEALEDSCORE_HTTP__PORT=8301``. List fields take comma-separated values.
"""

from __future__ import annotations

import os
import secrets
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

ENV_PREFIX = "SEALEDSCORE_"


class LedgerSection(BaseModel):
    # Identity the ledger uses in proof bindings and its own grants
    ledger_id: str = Field(default_factory=lambda: "0x" + secrets.token_hex(20))
    trusted_signers: list[str] = Field(default_factory=list)


class HTTPSection(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(default=8300, ge=1, le=65535)


class AuthSection(BaseModel):
    token_ttl: int = Field(default=3600, gt=0)
    rate_limit_per_hour: int = Field(default=600, gt=0)
    max_tokens: int = Field(default=5000, gt=0)
    allowed_principals: list[str] | None = None


class CoprocessorSection(BaseModel):
    """Local mock coprocessor, for development only."""

    enabled: bool = False
    wallet_name: str = "sealedscore_coprocessor"
    wallet_hotkey: str = "default"
    latency: float = Field(default=0.0, ge=0.0)


class LedgerSettings(BaseModel):
    ledger: LedgerSection = Field(default_factory=LedgerSection)
    http: HTTPSection = Field(default_factory=HTTPSection)
    auth: AuthSection = Field(default_factory=AuthSection)
    coprocessor: CoprocessorSection = Field(default_factory=CoprocessorSection)


_LIST_FIELDS = {("ledger", "trusted_signers"), ("auth", "allowed_principals")}


def _env_overrides(env: Mapping[str, str]) -> dict[str, dict[str, Any]]:
    overrides: dict[str, dict[str, Any]] = {}
    for key, value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        parts = key[len(ENV_PREFIX):].lower().split("__")
        if len(parts) != 2 or not all(parts):
            continue
        section, field = parts
        if (section, field) in _LIST_FIELDS:
            overrides.setdefault(section, {})[field] = [v.strip() for v in value.split(",") if v.strip()]
        else:
            overrides.setdefault(section, {})[field] = value
    return overrides


def load_settings(env: Mapping[str, str] | None = None, **sections: dict[str, Any]) -> LedgerSettings:
    """Build settings from explicit section dicts, then env overrides on top.

    Environment variables have the highest priority.
    """
    merged: dict[str, dict[str, Any]] = {k: dict(v) for k, v in sections.items()}
    for section, values in _env_overrides(os.environ if env is None else env).items():
        merged.setdefault(section, {}).update(values)
    return LedgerSettings(**merged)


__all__ = [
    "AuthSection",
    "CoprocessorSection",
    "HTTPSection",
    "LedgerSection",
    "LedgerSettings",
    "load_settings",
]
