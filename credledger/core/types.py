# credledger/core/types.py
from dataclasses import dataclass, asdict
from datetime import date
from typing import Optional, Tuple
from uuid import uuid4

from credledger.crypto.keys import IssuerKeyPair, VerificationKey


def new_id() -> str:
    return str(uuid4())


@dataclass(frozen=True)
class Issuer:
    """Public identity of an issuer. The matching signing key is kept out-of-band."""
    id: str
    name: str
    verification_key: VerificationKey

    @classmethod
    def new(cls, name: str) -> Tuple["Issuer", IssuerKeyPair]:
        keys = IssuerKeyPair.generate()
        return cls(id=new_id(), name=name, verification_key=keys.verification_key), keys

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "verification_key": self.verification_key.to_hex()}

    @classmethod
    def from_dict(cls, d: dict) -> "Issuer":
        return cls(
            id=d["id"],
            name=d["name"],
            verification_key=VerificationKey.from_hex(d["verification_key"]),
        )

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


@dataclass(frozen=True)
class Subject:
    id: str
    name: str
    surname: str

    @classmethod
    def new(cls, name: str, surname: str) -> "Subject":
        return cls(id=new_id(), name=name, surname=surname)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "Subject":
        return cls(id=d["id"], name=d["name"], surname=d["surname"])

    def __str__(self) -> str:
        return f"{self.name} {self.surname} ({self.id})"


@dataclass(frozen=True)
class Attribute:
    """The asserted claim, e.g. ("driving-licence-category", "B")."""
    name: str
    value: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "Attribute":
        return cls(name=d["name"], value=d["value"])


@dataclass(frozen=True)
class ValidDuration:
    """
    Inclusive validity window. `end=None` means indefinite.
    The ledger records the window but does not enforce it; callers use `covers()`.
    """
    start: date
    end: Optional[date] = None

    def __post_init__(self):
        if self.end is not None and self.end < self.start:
            raise ValueError(f"Validity ends ({self.end}) before it starts ({self.start})")

    def covers(self, day: date) -> bool:
        if day < self.start:
            return False
        return self.end is None or day <= self.end

    def to_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat() if self.end else None,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ValidDuration":
        end = d.get("end")
        return cls(
            start=date.fromisoformat(d["start"]),
            end=date.fromisoformat(end) if end else None,
        )

    def __str__(self) -> str:
        return f"{self.start.isoformat()} → {self.end.isoformat() if self.end else 'indefinite'}"


@dataclass(frozen=True)
class Credential:
    """
    Full plaintext credential. Never stored on-chain: only its fingerprint
    (see credledger.crypto.hashing.fingerprint) and the issuer's signature are.
    """
    id: str
    attribute: Attribute
    issuer: Issuer
    subject: Subject
    valid_duration: ValidDuration

    @classmethod
    def new(
        cls,
        attribute: Attribute,
        issuer: Issuer,
        subject: Subject,
        valid_duration: ValidDuration,
    ) -> "Credential":
        return cls(
            id=new_id(),
            attribute=attribute,
            issuer=issuer,
            subject=subject,
            valid_duration=valid_duration,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "attribute": self.attribute.to_dict(),
            "issuer": self.issuer.to_dict(),
            "subject": self.subject.to_dict(),
            "valid_duration": self.valid_duration.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Credential":
        return cls(
            id=d["id"],
            attribute=Attribute.from_dict(d["attribute"]),
            issuer=Issuer.from_dict(d["issuer"]),
            subject=Subject.from_dict(d["subject"]),
            valid_duration=ValidDuration.from_dict(d["valid_duration"]),
        )

    def __str__(self) -> str:
        return (
            f"{self.attribute.name}={self.attribute.value} for {self.subject.name} {self.subject.surname}, "
            f"issued by {self.issuer.name}, valid {self.valid_duration}"
        )
