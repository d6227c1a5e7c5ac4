"""Input proof signing and verification using bittensor keypairs.

The coprocessor signs each encrypted input with its hotkey. The signed
payload binds the ciphertext to one ledger and one principal so a proof
cannot be replayed against another ledger or by another caller.
"""

from __future__ import annotations

from typing import Any

from sealedscore.ledger.models import ExternalCiphertext, InputProof
from sealedscore.shared.determinism import compute_hash


def _proof_signing_payload(
    ciphertext: ExternalCiphertext, ledger_id: str, principal: str,
) -> str:
    """Build the canonical string to sign."""
    return compute_hash({
        "handle_id": ciphertext.handle_id,
        "type_tag": ciphertext.type_tag,
        "ledger_id": ledger_id,
        "principal": principal,
    })


def sign_input_proof(
    ciphertext: ExternalCiphertext, ledger_id: str, principal: str, wallet: Any,
) -> InputProof:
    """Attest a ciphertext for (ledger_id, principal).

    Args:
        ciphertext: The freshly encrypted input.
        ledger_id: Identity of the ledger the input will be submitted to.
        principal: The principal that will submit it.
        wallet: Bittensor wallet with hotkey access.

    Returns:
        InputProof carrying the signer address and hex signature.
    """
    payload_hash = _proof_signing_payload(ciphertext, ledger_id, principal)
    signature = wallet.hotkey.sign(payload_hash.encode())
    sig_hex = signature.hex() if isinstance(signature, bytes) else str(signature)
    return InputProof(signer=wallet.hotkey.ss58_address, signature=sig_hex)


def verify_input_proof(
    ciphertext: ExternalCiphertext, proof: InputProof, ledger_id: str, principal: str,
) -> bool:
    """Verify a proof signature against its declared signer.

    Does not decide whether the signer is trusted; callers check that.
    Fails closed on any decoding or keypair error.
    """
    import bittensor as bt

    if not proof.signature:
        return False

    payload_hash = _proof_signing_payload(ciphertext, ledger_id, principal)
    try:
        sig_bytes = bytes.fromhex(proof.signature)
    except ValueError:
        return False

    try:
        keypair = bt.Keypair(ss58_address=proof.signer)
        return keypair.verify(payload_hash.encode(), sig_bytes)
    except Exception:
        return False


__all__ = ["sign_input_proof", "verify_input_proof"]
