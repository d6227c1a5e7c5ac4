"""Shared fixtures: a coprocessor wallet and a ledger wired to trust it."""

import os

import pytest

from sealedscore.fhe.coprocessor import MockCoprocessor
from sealedscore.fhe.verifier import KeypairProofVerifier
from sealedscore.ledger.grants import AccessGrantRegistry
from sealedscore.ledger.ledger import Ledger

os.environ.setdefault("SEALEDSCORE_TEST_MODE", "true")

LEDGER_ID = "0x5fbdb2315678afecb367f032d93f642f64180aa3"


def make_wallet(name: str, hotkey: str):
    import bittensor as bt
    wallet = bt.Wallet(name=name, hotkey=hotkey)
    wallet.create_if_non_existent(coldkey_use_password=False, hotkey_use_password=False)
    return wallet


@pytest.fixture
def coprocessor_wallet():
    return make_wallet("test_sealedscore_coprocessor", "test_coprocessor_hk")


@pytest.fixture
def grants():
    return AccessGrantRegistry()


@pytest.fixture
def coprocessor(coprocessor_wallet, grants):
    return MockCoprocessor(wallet=coprocessor_wallet, grants=grants)


@pytest.fixture
def ledger(coprocessor, grants):
    return Ledger(
        ledger_id=LEDGER_ID,
        verifier=KeypairProofVerifier([coprocessor.signer]),
        grants=grants,
    )
