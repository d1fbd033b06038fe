# examples/issue_and_revoke_demo.py
"""
End-to-end demo: issue a driving licence credential, check it, revoke it,
check again, then audit the chain. Uses a throwaway JSON store.

Run:
    python examples/issue_and_revoke_demo.py
"""

import tempfile
from datetime import date

from credledger.chain.assertion import CredentialRecord
from credledger.chain.block import Block
from credledger.core.types import Attribute, Credential, Issuer, Subject, ValidDuration
from credledger.storage import create_storage
from credledger.verify.verifier import ChainAuditor


def main():
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = create_storage(f"json://{tmpdir}")
        storage.initialize()

        authority, authority_keys = Issuer.new("Transport Authority")
        storage.add_issuer(authority)
        storage.store_signing_key(authority.id, authority_keys)

        driver = Subject.new("Jan", "Kowalski")
        storage.add_subject(driver)

        licence = Credential.new(
            Attribute("driving-licence-category", "B"),
            authority,
            driver,
            ValidDuration(date(2024, 1, 1), date(2034, 1, 1)),
        )
        record = CredentialRecord.issue(licence, authority_keys)
        storage.add_credential(record)

        chain = storage.load_chain()

        block = Block.new(authority)
        block.add_assertion(record.issuance, is_revocation=False)
        chain.add_block(block, storage.load_signing_key(authority.id))
        storage.save_chain(chain)
        print(f"After issuance:   valid={chain.check_credential(licence)}")

        block = Block.new(authority)
        block.add_assertion(record.revocation, is_revocation=True)
        chain.add_block(block, storage.load_signing_key(authority.id))
        storage.save_chain(chain)
        print(f"After revocation: valid={chain.check_credential(licence)}")

        print(ChainAuditor().audit_from_storage(storage))


if __name__ == "__main__":
    main()
