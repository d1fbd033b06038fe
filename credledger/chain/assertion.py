# credledger/chain/assertion.py
from dataclasses import dataclass

from credledger.core.hash import Hash
from credledger.core.types import Credential
from credledger.crypto.hashing import fingerprint
from credledger.crypto.keys import IssuerKeyPair, VerificationKey


@dataclass(frozen=True)
class SignedAssertion:
    """
    On-chain form of a credential: its fingerprint plus the issuer's signature
    over it. Checkable without the plaintext credential.
    """
    fingerprint: Hash
    signature: Hash

    @classmethod
    def sign(cls, credential: Credential, signing_key: IssuerKeyPair, is_revocation: bool) -> "SignedAssertion":
        fp = fingerprint(credential, is_revocation)
        return cls(fingerprint=fp, signature=Hash(signing_key.sign_bytes(fp.digest)))

    def verify(self, verification_key: VerificationKey) -> bool:
        return verification_key.verify_bytes(self.signature.digest, self.fingerprint.digest)

    def to_dict(self) -> dict:
        return {"fingerprint": self.fingerprint.to_hex(), "signature": self.signature.to_hex()}

    @classmethod
    def from_dict(cls, d: dict) -> "SignedAssertion":
        return cls(fingerprint=Hash.from_hex(d["fingerprint"]), signature=Hash.from_hex(d["signature"]))


def sign(credential: Credential, signing_key: IssuerKeyPair, is_revocation: bool) -> SignedAssertion:
    return SignedAssertion.sign(credential, signing_key, is_revocation)


def verify(assertion: SignedAssertion, verification_key: VerificationKey) -> bool:
    return assertion.verify(verification_key)


@dataclass(frozen=True)
class CredentialRecord:
    """
    Registry entry kept by the store: the plaintext credential plus both of its
    pre-signed assertions, ready to be added to or revoked in a block.
    """
    credential: Credential
    issuance: SignedAssertion
    revocation: SignedAssertion

    @classmethod
    def issue(cls, credential: Credential, signing_key: IssuerKeyPair) -> "CredentialRecord":
        return cls(
            credential=credential,
            issuance=SignedAssertion.sign(credential, signing_key, False),
            revocation=SignedAssertion.sign(credential, signing_key, True),
        )

    def to_dict(self) -> dict:
        return {
            "credential": self.credential.to_dict(),
            "issuance": self.issuance.to_dict(),
            "revocation": self.revocation.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "CredentialRecord":
        return cls(
            credential=Credential.from_dict(d["credential"]),
            issuance=SignedAssertion.from_dict(d["issuance"]),
            revocation=SignedAssertion.from_dict(d["revocation"]),
        )
