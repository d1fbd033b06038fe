# credledger/verify/verifier.py
from dataclasses import dataclass, field
from typing import List, Optional

from credledger.chain.blockchain import Blockchain
from credledger.core.errors import LedgerError
from credledger.core.hash import Hash
from credledger.storage import StorageBackend


@dataclass
class AuditFailure:
    index: int
    message: str
    category: str = "general"  # "hash_chain", "block_hash", "signature", "storage"


@dataclass
class AuditResult:
    is_valid: bool
    message: str = ""
    failures: List[AuditFailure] = field(default_factory=list)

    @property
    def first_failure(self) -> Optional[AuditFailure]:
        return self.failures[0] if self.failures else None

    def __bool__(self):
        return self.is_valid

    def __str__(self):
        if self.is_valid:
            return "Chain is valid ✓"
        lines = [f"Audit FAILED ({len(self.failures)} issues):"]
        for f in self.failures:
            lines.append(f"  • [{f.index}] {f.category}: {f.message}")
        return "\n".join(lines)


class ChainAuditor:
    """
    Offline integrity check of a whole chain: back-links, recomputed block
    hashes and block signatures. Problems are collected, never raised.

    Credential validity is a separate question, answered by
    Blockchain.check_credential.
    """

    def audit(self, chain: Blockchain) -> AuditResult:
        blocks = chain.chain
        if not blocks:
            return AuditResult(True, "Empty chain is valid")

        result = AuditResult(True)
        expected_prev = Hash.zero()

        for i, block in enumerate(blocks):
            if block.previous_hash != expected_prev:
                result.failures.append(AuditFailure(i, "previous_hash does not match previous block hash", "hash_chain"))

            if block.compute_hash() != block.hash:
                result.failures.append(AuditFailure(i, "Stored hash does not match block contents", "block_hash"))

            if not block.verify_signature():
                result.failures.append(AuditFailure(i, f"Invalid block signature for creator {block.creator.name}", "signature"))

            expected_prev = block.hash

        result.is_valid = not result.failures
        result.message = (
            f"Valid chain ({len(blocks)} blocks)" if result.is_valid
            else f"Failed with {len(result.failures)} issues"
        )
        return result

    def audit_from_storage(self, storage: StorageBackend) -> AuditResult:
        """Load the chain from storage and audit it. Load failures become a 'storage' failure."""
        try:
            chain = storage.load_chain()
        except LedgerError as e:
            return AuditResult(
                False,
                f"Failed to load chain from storage: {e}",
                [AuditFailure(-1, str(e), "storage")],
            )
        return self.audit(chain)
