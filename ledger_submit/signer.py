"""
Envelope signer — the secrets boundary.

The coordinator and builder never see private keys. They hand an
unsigned envelope to a signer and get a signed one back.

Concrete implementation: Ed25519Signer (cryptography, raw Ed25519 keys).

What is signed: the raw 32 bytes of the transaction hash. Because the
hash covers only the body, signatures can be added independently and
the hash stays stable.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Protocol, runtime_checkable

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from ledger_submit.envelope import Signature, TransactionEnvelope


@runtime_checkable
class EnvelopeSigner(Protocol):
    """Interface for envelope signing.

    Properties:
        key_id: Public identifier of the signing key (safe for logging).
    """

    @property
    def key_id(self) -> str:
        """Public identifier of the signing key (safe for logging)."""
        ...

    def sign(self, envelope: TransactionEnvelope) -> TransactionEnvelope:
        """Return a copy of ``envelope`` with this signer's signature appended."""
        ...


class Ed25519Signer:
    """Signs envelopes with an Ed25519 private key.

    Args:
        private_key: The signing key. Use generate() for a fresh one.
    """

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        self._key_id = get_public_key_hex(private_key)

    @classmethod
    def generate(cls) -> Ed25519Signer:
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed_hex(cls, seed_hex: str) -> Ed25519Signer:
        """Build a signer from a 32-byte raw private key in hex."""
        return cls(Ed25519PrivateKey.from_private_bytes(bytes.fromhex(seed_hex)))

    @property
    def key_id(self) -> str:
        return self._key_id

    def sign(self, envelope: TransactionEnvelope) -> TransactionEnvelope:
        if any(sig.key_id == self._key_id for sig in envelope.signatures):
            return envelope
        signature = self._private_key.sign(bytes.fromhex(envelope.tx_hash()))
        return replace(
            envelope,
            signatures=envelope.signatures
            + (Signature(key_id=self._key_id, signature=signature.hex()),),
        )


# =========================================================================
# Key helpers
# =========================================================================


def get_public_key_hex(private_key: Ed25519PrivateKey) -> str:
    """Raw public key as hex (64 chars / 32 bytes)."""
    raw = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return raw.hex()


def public_key_from_hex(hex_string: str) -> Ed25519PublicKey:
    return Ed25519PublicKey.from_public_bytes(bytes.fromhex(hex_string))


def verify_signature(envelope: TransactionEnvelope, signature: Signature) -> bool:
    """Check one signature against the envelope hash.

    The key is taken from ``signature.key_id``. Malformed hex counts as
    an invalid signature.
    """
    try:
        public_key = public_key_from_hex(signature.key_id)
        public_key.verify(
            bytes.fromhex(signature.signature),
            bytes.fromhex(envelope.tx_hash()),
        )
    except (InvalidSignature, ValueError):
        return False
    return True


def verify_envelope(envelope: TransactionEnvelope) -> bool:
    """True if the envelope is signed and every signature verifies."""
    return envelope.is_signed and all(
        verify_signature(envelope, sig) for sig in envelope.signatures
    )
