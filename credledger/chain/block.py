# credledger/chain/block.py
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from credledger.chain.assertion import SignedAssertion
from credledger.core.errors import BlockFinalizedError, KeyMismatchError
from credledger.core.hash import Hash
from credledger.core.types import Issuer
from credledger.crypto.hashing import block_hash
from credledger.crypto.keys import IssuerKeyPair, VerificationKey

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class Block:
    """
    Accumulates issuance and revocation assertions, then gets sealed by
    `finalize`: linked to the previous block's hash and signed by its creator.

    open ──finalize()──▶ finalized. A finalized block rejects every mutation.
    """

    def __init__(
        self,
        creator: Issuer,
        timestamp: Optional[str] = None,
        issuances: Optional[List[SignedAssertion]] = None,
        revocations: Optional[List[SignedAssertion]] = None,
        previous_hash: Optional[Hash] = None,
        hash: Optional[Hash] = None,
        signature: Optional[Hash] = None,
        finalized: bool = False,
    ):
        self.creator = creator
        self._timestamp = timestamp or utc_now()
        self._issuances = list(issuances or [])
        self._revocations = list(revocations or [])
        self._previous_hash = previous_hash or Hash.zero()
        self._hash = hash or Hash.zero()
        self._signature = signature or Hash.zero()
        self._finalized = finalized

    @classmethod
    def new(cls, creator: Issuer) -> "Block":
        return cls(creator)

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def timestamp(self) -> str:
        return self._timestamp

    @property
    def issuances(self) -> Tuple[SignedAssertion, ...]:
        return tuple(self._issuances)

    @property
    def revocations(self) -> Tuple[SignedAssertion, ...]:
        return tuple(self._revocations)

    @property
    def previous_hash(self) -> Hash:
        return self._previous_hash

    @property
    def hash(self) -> Hash:
        return self._hash

    @property
    def signature(self) -> Hash:
        return self._signature

    def add_assertion(self, assertion: SignedAssertion, is_revocation: bool) -> None:
        """Append to the revocation or issuance list. Signatures are checked at query time, not here."""
        if self._finalized:
            raise BlockFinalizedError("Cannot add assertions to a finalized block")
        if is_revocation:
            self._revocations.append(assertion)
        else:
            self._issuances.append(assertion)

    def compute_hash(self) -> Hash:
        return block_hash(
            self._timestamp,
            self._issuances,
            self._revocations,
            self._previous_hash,
            self.creator,
        )

    def finalize(self, previous_hash: Hash, signing_key: IssuerKeyPair) -> None:
        """
        Stamp, link to `previous_hash`, hash and sign. Exactly once per block;
        normally called through Blockchain.add_block.
        """
        if self._finalized:
            raise BlockFinalizedError("Block is already finalized")
        if signing_key.verification_key != self.creator.verification_key:
            raise KeyMismatchError(f"Signing key does not belong to block creator {self.creator.name}")

        self._timestamp = utc_now()
        self._previous_hash = previous_hash
        self._hash = self.compute_hash()
        self._signature = Hash(signing_key.sign_bytes(self._hash.digest))
        self._finalized = True
        logger.debug(
            "Finalized block %s (%d issued, %d revoked)",
            self._hash.to_hex()[:16], len(self._issuances), len(self._revocations),
        )

    def verify_signature(self) -> bool:
        return self.creator.verification_key.verify_bytes(self._signature.digest, self._hash.digest)

    def match_assertion(
        self,
        issuance_fingerprint: Hash,
        revocation_fingerprint: Hash,
        verification_key: VerificationKey,
    ) -> Tuple[bool, bool]:
        """
        (issued, revoked): whether this block holds an assertion with the given
        fingerprint whose signature checks out under `verification_key`.
        """
        issued = any(
            a.fingerprint == issuance_fingerprint and a.verify(verification_key)
            for a in self._issuances
        )
        revoked = any(
            a.fingerprint == revocation_fingerprint and a.verify(verification_key)
            for a in self._revocations
        )
        return issued, revoked

    def to_dict(self) -> dict:
        return {
            "timestamp": self._timestamp,
            "issuances": [a.to_dict() for a in self._issuances],
            "revocations": [a.to_dict() for a in self._revocations],
            "previous_hash": self._previous_hash.to_hex(),
            "creator": self.creator.to_dict(),
            "hash": self._hash.to_hex(),
            "signature": self._signature.to_hex(),
        }

    @classmethod
    def from_dict(cls, d: dict, finalized: bool) -> "Block":
        return cls(
            creator=Issuer.from_dict(d["creator"]),
            timestamp=d["timestamp"],
            issuances=[SignedAssertion.from_dict(a) for a in d.get("issuances", [])],
            revocations=[SignedAssertion.from_dict(a) for a in d.get("revocations", [])],
            previous_hash=Hash.from_hex(d["previous_hash"]),
            hash=Hash.from_hex(d["hash"]),
            signature=Hash.from_hex(d["signature"]),
            finalized=finalized,
        )

    @property
    def assertion_count(self) -> int:
        return len(self._issuances) + len(self._revocations)

    def __repr__(self) -> str:
        state = "finalized" if self._finalized else "open"
        return f"Block({state}, creator={self.creator.name!r}, hash={self._hash!r})"
