# credledger/crypto/keys.py
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from credledger.core.encoding import hex_encode, hex_decode
from credledger.core.errors import HashDecodeError

KEY_SIZE = 32


@dataclass(frozen=True)
class VerificationKey:
    """Raw 32-byte Ed25519 public key. Public, safe to put on-chain."""
    key_bytes: bytes

    def __post_init__(self):
        if len(self.key_bytes) != KEY_SIZE:
            raise HashDecodeError(f"Verification key must be {KEY_SIZE} bytes, got {len(self.key_bytes)}")

    @classmethod
    def from_hex(cls, s: str) -> "VerificationKey":
        key = cls(hex_decode(s, KEY_SIZE))
        try:
            key._public_key()
        except ValueError as e:
            raise HashDecodeError(f"Invalid Ed25519 public key: {e}") from e
        return key

    def to_hex(self) -> str:
        return hex_encode(self.key_bytes)

    def _public_key(self) -> Ed25519PublicKey:
        return Ed25519PublicKey.from_public_bytes(self.key_bytes)

    def verify_bytes(self, signature: bytes, data: bytes) -> bool:
        """True iff `signature` is a valid Ed25519 signature of `data`. Never raises."""
        try:
            self._public_key().verify(bytes(signature), data)
            return True
        except (InvalidSignature, ValueError, TypeError):
            return False


class IssuerKeyPair:
    """
    Ed25519 signing key of an issuer.
    Local secret: lives in the store's key store, never inside chain records.
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        raw_public = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self.verification_key = VerificationKey(raw_public)

    @classmethod
    def generate(cls) -> "IssuerKeyPair":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_hex(cls, s: str) -> "IssuerKeyPair":
        seed = hex_decode(s, KEY_SIZE)
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    def private_key_hex(self) -> str:
        raw = self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return hex_encode(raw)

    def sign_bytes(self, data: bytes) -> bytes:
        return self._private_key.sign(data)

    def verify_bytes(self, signature: bytes, data: bytes) -> bool:
        return self.verification_key.verify_bytes(signature, data)

    def __repr__(self) -> str:
        return f"IssuerKeyPair(public={self.verification_key.to_hex()[:16]}…)"
