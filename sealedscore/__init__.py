"""Encrypted score ledger with proof-gated writes and per-ciphertext access grants."""

__version__ = "0.1.0"
