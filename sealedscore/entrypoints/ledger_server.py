"""Ledger server entrypoint.

Runs one encrypted score ledger behind its HTTP surface. Input proofs are
accepted only from the configured trusted coprocessor signers.
"""

import argparse
import asyncio
import os
import signal
import sys

import bittensor as bt
from dotenv import load_dotenv


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="sealedscore ledger server")
    bt.logging.add_args(parser)
    parser.add_argument("--ledger.id", type=str, required=False)
    parser.add_argument("--ledger.trusted_signer", action="append", default=[])
    parser.add_argument("--http.host", type=str, required=False)
    parser.add_argument("--http.port", type=int, required=False)
    parser.add_argument(
        "--coprocessor.mock",
        action="store_true",
        help="Run an in-process mock coprocessor and trust its hotkey (development only).",
    )
    return parser


def main() -> None:
    # Load .env if not in test mode
    if os.environ.get("SEALEDSCORE_TEST_MODE") != "true":
        load_dotenv()

    args = build_parser().parse_args()

    from sealedscore.config import load_settings

    # CLI values form the base layer; env vars override them
    sections: dict = {"ledger": {}, "http": {}, "coprocessor": {}}
    if getattr(args, "ledger.id", None):
        sections["ledger"]["ledger_id"] = getattr(args, "ledger.id")
    if getattr(args, "ledger.trusted_signer", None):
        sections["ledger"]["trusted_signers"] = getattr(args, "ledger.trusted_signer")
    if getattr(args, "http.host", None):
        sections["http"]["host"] = getattr(args, "http.host")
    if getattr(args, "http.port", None):
        sections["http"]["port"] = getattr(args, "http.port")
    if getattr(args, "coprocessor.mock", False):
        sections["coprocessor"]["enabled"] = True

    settings = load_settings(**sections)

    from sealedscore.fhe.verifier import KeypairProofVerifier
    from sealedscore.ledger.auth import AccessPolicy
    from sealedscore.ledger.gateway.http_server import LedgerHTTPServer
    from sealedscore.ledger.grants import AccessGrantRegistry
    from sealedscore.ledger.ledger import Ledger

    grants = AccessGrantRegistry()
    trusted = list(settings.ledger.trusted_signers)

    coprocessor = None
    if settings.coprocessor.enabled:
        from sealedscore.fhe.coprocessor import MockCoprocessor

        wallet = bt.Wallet(
            name=settings.coprocessor.wallet_name,
            hotkey=settings.coprocessor.wallet_hotkey,
        )
        wallet.create_if_non_existent(coldkey_use_password=False, hotkey_use_password=False)
        coprocessor = MockCoprocessor(
            wallet=wallet, grants=grants, latency=settings.coprocessor.latency,
        )
        trusted.append(coprocessor.signer)

    if not trusted:
        bt.logging.error("at least one trusted signer is required (SEALEDSCORE_LEDGER__TRUSTED_SIGNERS)")
        sys.exit(1)

    ledger = Ledger(
        ledger_id=settings.ledger.ledger_id,
        verifier=KeypairProofVerifier(trusted),
        grants=grants,
    )
    policy = AccessPolicy(
        ledger_id=ledger.ledger_id,
        token_ttl=settings.auth.token_ttl,
        rate_limit_per_hour=settings.auth.rate_limit_per_hour,
        max_tokens=settings.auth.max_tokens,
        allowed_principals=set(settings.auth.allowed_principals) if settings.auth.allowed_principals else None,
    )
    server = LedgerHTTPServer(
        ledger=ledger,
        access_policy=policy,
        host=settings.http.host,
        port=settings.http.port,
    )

    bt.logging.info({
        "ledger_config": {
            "ledger_id": ledger.ledger_id,
            "trusted_signers": [s[:16] for s in trusted],
            "host": settings.http.host,
            "port": settings.http.port,
            "mock_coprocessor": coprocessor is not None,
        }
    })

    loop = asyncio.new_event_loop()
    stop_event = asyncio.Event()

    def _signal_handler(sig, frame):
        bt.logging.info({"ledger_server": "shutdown_signal_received"})
        loop.call_soon_threadsafe(stop_event.set)

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    async def _serve() -> None:
        await server.start()
        try:
            await stop_event.wait()
        finally:
            await server.stop()

    try:
        loop.run_until_complete(_serve())
    except KeyboardInterrupt:
        bt.logging.info({"ledger_server": "keyboard_interrupt"})
    finally:
        loop.close()
        bt.logging.info({"ledger_server": "stopped", "stats": ledger.stats().model_dump(mode="json")})


if __name__ == "__main__":
    main()
