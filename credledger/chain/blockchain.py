# credledger/chain/blockchain.py
import logging
from typing import Iterator, List, Optional

from credledger.chain.block import Block
from credledger.core.errors import BlockFinalizedError
from credledger.core.hash import Hash
from credledger.core.types import Credential
from credledger.crypto.hashing import fingerprint
from credledger.crypto.keys import IssuerKeyPair

logger = logging.getLogger(__name__)


class Blockchain:
    """
    Ordered, append-only sequence of finalized blocks.
    Blocks enter only through `add_block`, which links them to the current tail.
    """

    def __init__(self, blocks: Optional[List[Block]] = None):
        self._chain: List[Block] = list(blocks or [])

    @property
    def chain(self) -> List[Block]:
        """Returns copy of the chain (blocks themselves are immutable once finalized)"""
        return self._chain.copy()

    @property
    def length(self) -> int:
        return len(self._chain)

    def __len__(self) -> int:
        return len(self._chain)

    def __iter__(self) -> Iterator[Block]:
        return iter(self._chain)

    @property
    def tail_hash(self) -> Hash:
        """Hash the next block will link to: the last block's hash, or the zero sentinel."""
        if not self._chain:
            return Hash.zero()
        return self._chain[-1].hash

    def add_block(self, block: Block, signing_key: IssuerKeyPair) -> Block:
        """Finalize `block` against the current tail and append it."""
        if block.finalized:
            raise BlockFinalizedError("Block was finalized elsewhere; only open blocks can be added")
        block.finalize(self.tail_hash, signing_key)
        self._chain.append(block)
        logger.debug("Appended block #%d by %s", len(self._chain) - 1, block.creator.name)
        return block

    def check_credential(self, credential: Credential) -> bool:
        """
        True iff a verified issuance of `credential` exists and no verified
        revocation does. Assertions only count when signed by the credential's
        own issuer. A revocation anywhere in the chain wins.
        """
        issuance_fp = fingerprint(credential, False)
        revocation_fp = fingerprint(credential, True)
        key = credential.issuer.verification_key

        found = False
        for block in self._chain:
            issued, revoked = block.match_assertion(issuance_fp, revocation_fp, key)
            if revoked:
                return False
            found = found or issued
        return found

    def to_dict(self) -> dict:
        return {"chain": [b.to_dict() for b in self._chain]}

    @classmethod
    def from_dict(cls, d: dict) -> "Blockchain":
        return cls([Block.from_dict(b, finalized=True) for b in d.get("chain", [])])
