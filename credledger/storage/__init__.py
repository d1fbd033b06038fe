# credledger/storage/__init__.py
"""
Storage backends for ledger state: the chain, the open block, the
issuer/subject/credential registries and the local signing-key store.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, List, Optional, TypeVar

from credledger.chain.assertion import CredentialRecord
from credledger.chain.block import Block
from credledger.chain.blockchain import Blockchain
from credledger.core.errors import ChainIntegrityError, LedgerError, StorageError
from credledger.core.hash import Hash
from credledger.core.types import Issuer, Subject
from credledger.crypto.keys import IssuerKeyPair

T = TypeVar("T")


class StorageBackend(ABC):
    """Abstract base for all persistent storage implementations."""

    @abstractmethod
    def initialize(self) -> None:
        """Create an empty ledger, discarding any existing state."""

    @abstractmethod
    def is_initialized(self) -> bool:
        pass

    @abstractmethod
    def load_chain(self) -> Blockchain:
        pass

    @abstractmethod
    def save_chain(self, chain: Blockchain) -> None:
        pass

    @abstractmethod
    def load_open_block(self) -> Optional[Block]:
        pass

    @abstractmethod
    def save_open_block(self, block: Block) -> None:
        pass

    @abstractmethod
    def clear_open_block(self) -> None:
        pass

    @abstractmethod
    def load_issuers(self) -> List[Issuer]:
        pass

    @abstractmethod
    def add_issuer(self, issuer: Issuer) -> None:
        pass

    @abstractmethod
    def load_subjects(self) -> List[Subject]:
        pass

    @abstractmethod
    def add_subject(self, subject: Subject) -> None:
        pass

    @abstractmethod
    def load_credentials(self) -> List[CredentialRecord]:
        pass

    @abstractmethod
    def add_credential(self, record: CredentialRecord) -> None:
        pass

    @abstractmethod
    def store_signing_key(self, issuer_id: str, key: IssuerKeyPair) -> None:
        pass

    @abstractmethod
    def load_signing_key(self, issuer_id: str) -> IssuerKeyPair:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def commit_block(self, chain: Blockchain) -> None:
        """
        Persist a chain whose newest block was just finalized from the open block.
        The open-block slot is cleared first so a crash cannot leave already
        chained assertions behind to be finalized a second time.
        """
        self.clear_open_block()
        self.save_chain(chain)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def parse_record(kind: str, parser: Callable[[Any], T], data: Any) -> T:
    """Run a from_dict parser, turning malformed-record errors into StorageError."""
    try:
        return parser(data)
    except LedgerError:
        raise
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise StorageError(f"Corrupt {kind} record: {e!r}") from e


def ensure_linked(chain: Blockchain) -> Blockchain:
    """Check stored back-links: block i's previous_hash must equal block i-1's hash."""
    expected = Hash.zero()
    for i, block in enumerate(chain):
        if block.previous_hash != expected:
            raise ChainIntegrityError(f"Chain broken at block {i}")
        expected = block.hash
    return chain


def ensure_extends(stored_hashes: List[str], chain: Blockchain) -> int:
    """
    Check that `chain` keeps every stored block in place: it may only add
    blocks after them. Returns how many blocks are already stored.
    """
    blocks = chain.chain
    if len(blocks) < len(stored_hashes):
        raise ChainIntegrityError(f"Refusing to drop blocks: stored {len(stored_hashes)}, given {len(blocks)}")
    for height, stored_hash in enumerate(stored_hashes):
        if blocks[height].hash.to_hex() != stored_hash:
            raise ChainIntegrityError(f"Block {height} differs from the stored block")
    return len(stored_hashes)


def create_storage(uri: str) -> StorageBackend:
    """
    sqlite://<path>  → SQLiteStorage
    json://<dir>     → JSONFileStorage
    <path>.db / .sqlite → SQLiteStorage, any other bare path → JSONFileStorage
    """
    uri = uri.strip()
    if not uri:
        raise ValueError("Empty storage URI")

    if uri.startswith("sqlite://"):
        from .sqlite import SQLiteStorage
        return SQLiteStorage(Path(uri[len("sqlite://"):]).expanduser().resolve())

    elif uri.startswith("json://"):
        from .jsonfile import JSONFileStorage
        return JSONFileStorage(Path(uri[len("json://"):]).expanduser().resolve())

    elif "://" in uri:
        raise ValueError(f"Unsupported storage URI: {uri}")

    path = Path(uri).expanduser().resolve()
    if path.suffix in (".db", ".sqlite", ".sqlite3"):
        from .sqlite import SQLiteStorage
        return SQLiteStorage(path)
    from .jsonfile import JSONFileStorage
    return JSONFileStorage(path)


from .jsonfile import JSONFileStorage
from .sqlite import SQLiteStorage

__all__ = [
    "StorageBackend",
    "create_storage",
    "ensure_extends",
    "ensure_linked",
    "parse_record",
    "JSONFileStorage",
    "SQLiteStorage",
]
