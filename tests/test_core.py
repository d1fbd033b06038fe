# tests/test_core.py
import pytest
from datetime import date

from credledger.core.canon import canonical_json
from credledger.core.encoding import hex_encode, hex_decode
from credledger.core.errors import HashDecodeError
from credledger.core.hash import Hash, HASH_SIZE, ZERO_HASH
from credledger.core.types import Attribute, Credential, Issuer, Subject, ValidDuration


@pytest.fixture
def sample_credential():
    issuer, _ = Issuer.new("Transport Authority")
    subject = Subject.new("Jan", "Kowalski")
    return Credential.new(
        Attribute("driving-licence-category", "B"),
        issuer,
        subject,
        ValidDuration(date(2024, 1, 1), date(2034, 1, 1)),
    )


def test_hash_hex_roundtrip():
    original = Hash(bytes(range(64)))
    encoded = original.to_hex()
    assert len(encoded) == 128
    assert encoded == encoded.lower()
    assert Hash.from_hex(encoded) == original


@pytest.mark.parametrize("bad", ["deadbeef", "00" * 63, "00" * 65, ""])
def test_hash_rejects_wrong_length(bad):
    with pytest.raises(HashDecodeError):
        Hash.from_hex(bad)


def test_hash_rejects_non_hex():
    with pytest.raises(HashDecodeError):
        Hash.from_hex("zz" * 64)


def test_hash_constructor_rejects_wrong_size():
    with pytest.raises(HashDecodeError):
        Hash(b"\x01" * 32)


def test_zero_hash_sentinel():
    assert ZERO_HASH.digest == bytes(HASH_SIZE)
    assert ZERO_HASH.is_zero()
    assert Hash.zero() == ZERO_HASH
    assert not Hash(b"\x01" * 64).is_zero()


def test_hex_decode_never_pads():
    assert hex_decode(hex_encode(b"\xab\xcd"), 2) == b"\xab\xcd"
    with pytest.raises(HashDecodeError):
        hex_decode("abcd", 3)


def test_credential_immutable(sample_credential):
    with pytest.raises(AttributeError):
        sample_credential.id = "other"


def test_credential_dict_roundtrip(sample_credential):
    d = sample_credential.to_dict()
    assert d["valid_duration"] == {"start": "2024-01-01", "end": "2034-01-01"}
    assert Credential.from_dict(d) == sample_credential


def test_issuer_record_has_no_private_key():
    issuer, keys = Issuer.new("Registry")
    d = issuer.to_dict()
    assert set(d) == {"id", "name", "verification_key"}
    assert keys.private_key_hex() not in d.values()


def test_valid_duration_covers():
    window = ValidDuration(date(2024, 1, 1), date(2024, 12, 31))
    assert window.covers(date(2024, 1, 1))
    assert window.covers(date(2024, 12, 31))
    assert not window.covers(date(2023, 12, 31))
    assert not window.covers(date(2025, 1, 1))

    indefinite = ValidDuration(date(2024, 1, 1))
    assert indefinite.covers(date(2999, 1, 1))
    assert indefinite.to_dict()["end"] is None


def test_valid_duration_rejects_reversed_window():
    with pytest.raises(ValueError):
        ValidDuration(date(2024, 2, 1), date(2024, 1, 1))


def test_canonical_json_sorting():
    messy = {"z": 1, "a": "hello", "nested": {"b": 2, "a": 1}}
    canon = canonical_json(messy).decode("utf-8")
    assert canon == '{"a":"hello","nested":{"a":1,"b":2},"z":1}'
