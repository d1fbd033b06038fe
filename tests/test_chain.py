# tests/test_chain.py
import pytest
from datetime import date

from credledger.chain.assertion import SignedAssertion
from credledger.chain.block import Block
from credledger.chain.blockchain import Blockchain
from credledger.core.errors import BlockFinalizedError, KeyMismatchError
from credledger.core.hash import Hash
from credledger.core.types import Attribute, Credential, Issuer, Subject, ValidDuration
from credledger.crypto.hashing import fingerprint


def make_credential(issuer: Issuer, value: str = "B") -> Credential:
    return Credential.new(
        Attribute("driving-licence-category", value),
        issuer,
        Subject.new("Jan", "Kowalski"),
        ValidDuration(date(2024, 1, 1)),
    )


@pytest.fixture
def authority():
    return Issuer.new("Transport Authority")


@pytest.fixture
def empty_chain():
    return Blockchain()


def test_new_block_is_open_and_zeroed(authority):
    issuer, _ = authority
    block = Block.new(issuer)
    assert not block.finalized
    assert block.issuances == ()
    assert block.revocations == ()
    assert block.previous_hash.is_zero()
    assert block.hash.is_zero()
    assert block.signature.is_zero()


def test_add_assertion_routes_by_flag(authority):
    issuer, keys = authority
    credential = make_credential(issuer)
    block = Block.new(issuer)
    block.add_assertion(SignedAssertion.sign(credential, keys, False), False)
    block.add_assertion(SignedAssertion.sign(credential, keys, True), True)
    assert len(block.issuances) == 1
    assert len(block.revocations) == 1
    assert block.assertion_count == 2


def test_finalized_block_rejects_mutation(authority, empty_chain):
    issuer, keys = authority
    block = Block.new(issuer)
    empty_chain.add_block(block, keys)

    assertion = SignedAssertion.sign(make_credential(issuer), keys, False)
    with pytest.raises(BlockFinalizedError):
        block.add_assertion(assertion, False)
    with pytest.raises(BlockFinalizedError):
        block.finalize(Hash.zero(), keys)
    with pytest.raises(BlockFinalizedError):
        empty_chain.add_block(block, keys)
    assert len(empty_chain) == 1


def test_finalize_requires_creator_key(authority, empty_chain):
    issuer, _ = authority
    _, stranger_keys = Issuer.new("Stranger")
    block = Block.new(issuer)
    with pytest.raises(KeyMismatchError):
        empty_chain.add_block(block, stranger_keys)
    assert not block.finalized
    assert len(empty_chain) == 0


def test_finalize_signs_block_hash(authority, empty_chain):
    issuer, keys = authority
    block = Block.new(issuer)
    block.add_assertion(SignedAssertion.sign(make_credential(issuer), keys, False), False)
    empty_chain.add_block(block, keys)

    assert block.finalized
    assert block.hash == block.compute_hash()
    assert block.verify_signature()


def test_chain_links_hashes(authority, empty_chain):
    issuer, keys = authority
    for _ in range(4):
        empty_chain.add_block(Block.new(issuer), keys)

    blocks = empty_chain.chain
    assert blocks[0].previous_hash == Hash.zero()
    for i in range(1, len(blocks)):
        assert blocks[i].previous_hash == blocks[i - 1].hash
    assert empty_chain.tail_hash == blocks[-1].hash


def test_chain_copy_does_not_expose_internal_list(authority, empty_chain):
    issuer, keys = authority
    empty_chain.add_block(Block.new(issuer), keys)
    empty_chain.chain.clear()
    assert len(empty_chain) == 1


def test_match_assertion_halves_are_independent(authority):
    issuer, keys = authority
    credential = make_credential(issuer)
    block = Block.new(issuer)
    block.add_assertion(SignedAssertion.sign(credential, keys, False), False)

    issue_fp = fingerprint(credential, False)
    revoke_fp = fingerprint(credential, True)
    assert block.match_assertion(issue_fp, revoke_fp, issuer.verification_key) == (True, False)

    other, _ = Issuer.new("Other")
    assert block.match_assertion(issue_fp, revoke_fp, other.verification_key) == (False, False)


def test_issued_credential_is_valid(authority, empty_chain):
    issuer, keys = authority
    credential = make_credential(issuer)
    block = Block.new(issuer)
    block.add_assertion(SignedAssertion.sign(credential, keys, False), False)
    empty_chain.add_block(block, keys)

    assert empty_chain.check_credential(credential) is True


def test_revocation_in_same_block_wins(authority, empty_chain):
    issuer, keys = authority
    credential = make_credential(issuer)
    block = Block.new(issuer)
    block.add_assertion(SignedAssertion.sign(credential, keys, False), False)
    block.add_assertion(SignedAssertion.sign(credential, keys, True), True)
    empty_chain.add_block(block, keys)

    assert empty_chain.check_credential(credential) is False


def test_revocation_in_later_block(authority, empty_chain):
    issuer, keys = authority
    credential = make_credential(issuer)
    first = Block.new(issuer)
    first.add_assertion(SignedAssertion.sign(credential, keys, False), False)
    empty_chain.add_block(first, keys)
    assert empty_chain.check_credential(credential) is True

    second = Block.new(issuer)
    second.add_assertion(SignedAssertion.sign(credential, keys, True), True)
    empty_chain.add_block(second, keys)
    assert empty_chain.check_credential(credential) is False


def test_other_credentials_revocation_does_not_interfere(authority, empty_chain):
    issuer, keys = authority
    original = make_credential(issuer, "B")
    unrelated = make_credential(issuer, "C")

    first = Block.new(issuer)
    first.add_assertion(SignedAssertion.sign(original, keys, False), False)
    empty_chain.add_block(first, keys)

    second = Block.new(issuer)
    second.add_assertion(SignedAssertion.sign(unrelated, keys, True), True)
    empty_chain.add_block(second, keys)

    assert empty_chain.check_credential(original) is True
    assert empty_chain.check_credential(unrelated) is False


def test_empty_chain_has_no_valid_credentials(authority, empty_chain):
    issuer, _ = authority
    assert empty_chain.check_credential(make_credential(issuer)) is False


def test_credential_never_added_is_not_valid(authority, empty_chain):
    issuer, keys = authority
    empty_chain.add_block(Block.new(issuer), keys)
    assert empty_chain.check_credential(make_credential(issuer)) is False


def test_revocation_without_issuance_is_authoritative(authority, empty_chain):
    issuer, keys = authority
    credential = make_credential(issuer)
    first = Block.new(issuer)
    first.add_assertion(SignedAssertion.sign(credential, keys, True), True)
    empty_chain.add_block(first, keys)

    second = Block.new(issuer)
    second.add_assertion(SignedAssertion.sign(credential, keys, False), False)
    empty_chain.add_block(second, keys)

    assert empty_chain.check_credential(credential) is False


def test_block_author_cannot_forge_for_other_issuer(authority, empty_chain):
    issuer, keys = authority
    forger, forger_keys = Issuer.new("Forger")
    credential = make_credential(issuer)

    # forger signs someone else's credential and puts it in their own block
    block = Block.new(forger)
    block.add_assertion(SignedAssertion.sign(credential, forger_keys, False), False)
    empty_chain.add_block(block, forger_keys)
    assert empty_chain.check_credential(credential) is False

    # and cannot revoke a genuinely issued one either
    genuine = Block.new(issuer)
    genuine.add_assertion(SignedAssertion.sign(credential, keys, False), False)
    empty_chain.add_block(genuine, keys)
    revoke = Block.new(forger)
    revoke.add_assertion(SignedAssertion.sign(credential, forger_keys, True), True)
    empty_chain.add_block(revoke, forger_keys)
    assert empty_chain.check_credential(credential) is True


def test_other_issuer_may_author_block(authority, empty_chain):
    issuer, keys = authority
    registrar, registrar_keys = Issuer.new("Registrar")
    credential = make_credential(issuer)

    block = Block.new(registrar)
    block.add_assertion(SignedAssertion.sign(credential, keys, False), False)
    empty_chain.add_block(block, registrar_keys)

    assert empty_chain.check_credential(credential) is True


def test_tampered_fingerprint_is_not_valid(authority, empty_chain):
    issuer, keys = authority
    credential = make_credential(issuer)
    block = Block.new(issuer)
    block.add_assertion(SignedAssertion.sign(credential, keys, False), False)
    empty_chain.add_block(block, keys)

    data = empty_chain.to_dict()
    fp = bytearray.fromhex(data["chain"][0]["issuances"][0]["fingerprint"])
    fp[10] ^= 0x01
    data["chain"][0]["issuances"][0]["fingerprint"] = fp.hex()

    reloaded = Blockchain.from_dict(data)
    assert reloaded.check_credential(credential) is False


def test_chain_dict_roundtrip_preserves_validity(authority, empty_chain):
    issuer, keys = authority
    credential = make_credential(issuer)
    block = Block.new(issuer)
    block.add_assertion(SignedAssertion.sign(credential, keys, False), False)
    empty_chain.add_block(block, keys)

    reloaded = Blockchain.from_dict(empty_chain.to_dict())
    assert reloaded.check_credential(credential) is True
    assert reloaded.chain[0].finalized
    assert reloaded.chain[0].compute_hash() == block.hash
