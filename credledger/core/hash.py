# credledger/core/hash.py
from dataclasses import dataclass

from credledger.core.encoding import hex_encode, hex_decode
from credledger.core.errors import HashDecodeError

HASH_SIZE = 64  # SHA-512 digest and Ed25519 signature are both 64 bytes


@dataclass(frozen=True)
class Hash:
    """Fixed 64-byte value: a SHA-512 digest or an Ed25519 signature."""
    digest: bytes

    def __post_init__(self):
        if not isinstance(self.digest, (bytes, bytearray)):
            raise HashDecodeError(f"Hash must wrap bytes, got {type(self.digest).__name__}")
        if len(self.digest) != HASH_SIZE:
            raise HashDecodeError(f"Hash must be {HASH_SIZE} bytes, got {len(self.digest)}")
        object.__setattr__(self, "digest", bytes(self.digest))

    @classmethod
    def zero(cls) -> "Hash":
        """All-zero sentinel: previous hash of the first block, placeholder on open blocks."""
        return cls(bytes(HASH_SIZE))

    @classmethod
    def from_hex(cls, s: str) -> "Hash":
        return cls(hex_decode(s, HASH_SIZE))

    def to_hex(self) -> str:
        return hex_encode(self.digest)

    def is_zero(self) -> bool:
        return self.digest == bytes(HASH_SIZE)

    def __bytes__(self) -> bytes:
        return self.digest

    def __str__(self) -> str:
        return self.to_hex()

    def __repr__(self) -> str:
        return f"Hash({self.to_hex()[:16]}…)"


ZERO_HASH = Hash.zero()
