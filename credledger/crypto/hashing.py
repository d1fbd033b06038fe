# credledger/crypto/hashing.py
import hashlib
from typing import TYPE_CHECKING, Iterable

from credledger.core.hash import Hash
from credledger.core.types import Credential, Issuer

if TYPE_CHECKING:
    from credledger.chain.assertion import SignedAssertion

REVOCATION_TAG = b"revoking"


def _feed(hasher, data: bytes) -> None:
    # 8-byte length prefix keeps adjacent fields from shifting into each other
    hasher.update(len(data).to_bytes(8, "big"))
    hasher.update(data)


def _feed_str(hasher, s: str) -> None:
    _feed(hasher, s.encode("utf-8"))


def _feed_issuer(hasher, issuer: Issuer) -> None:
    _feed_str(hasher, issuer.id)
    _feed_str(hasher, issuer.name)
    _feed(hasher, issuer.verification_key.key_bytes)


def fingerprint(credential: Credential, is_revocation: bool) -> Hash:
    """
    SHA-512 fingerprint of a credential's content.
    Issuance and revocation fingerprints of the same credential differ: the
    revocation one carries a trailing REVOCATION_TAG.
    """
    h = hashlib.sha512()
    _feed_str(h, credential.id)
    _feed_str(h, credential.attribute.name)
    _feed_str(h, credential.attribute.value)
    _feed_issuer(h, credential.issuer)
    _feed_str(h, credential.subject.id)
    _feed_str(h, credential.subject.name)
    _feed_str(h, credential.subject.surname)
    _feed_str(h, credential.valid_duration.start.isoformat())
    if credential.valid_duration.end is not None:
        _feed_str(h, credential.valid_duration.end.isoformat())
    if is_revocation:
        _feed(h, REVOCATION_TAG)
    return Hash(h.digest())


def block_hash(
    timestamp: str,
    issuances: Iterable["SignedAssertion"],
    revocations: Iterable["SignedAssertion"],
    previous_hash: Hash,
    creator: Issuer,
) -> Hash:
    """Hash over everything a block commits to. Issuances come before revocations."""
    h = hashlib.sha512()
    _feed_str(h, timestamp)
    for assertion in list(issuances) + list(revocations):
        h.update(assertion.fingerprint.digest)
        h.update(assertion.signature.digest)
    h.update(previous_hash.digest)
    _feed_issuer(h, creator)
    return Hash(h.digest())
