"""Encryption-subsystem contracts and the local coprocessor implementation."""

from .coprocessor import MockCoprocessor
from .interfaces import DecryptionService, Encryptor, ProofVerifier
from .proof import sign_input_proof, verify_input_proof
from .verifier import KeypairProofVerifier

__all__ = [
    "DecryptionService",
    "Encryptor",
    "KeypairProofVerifier",
    "MockCoprocessor",
    "ProofVerifier",
    "sign_input_proof",
    "verify_input_proof",
]
