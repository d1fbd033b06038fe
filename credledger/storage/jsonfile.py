# credledger/storage/jsonfile.py
import json
import logging
import os
from pathlib import Path
from typing import Any, List, Optional

from credledger.chain.assertion import CredentialRecord
from credledger.chain.block import Block
from credledger.chain.blockchain import Blockchain
from credledger.core.errors import StorageError
from credledger.core.types import Issuer, Subject
from credledger.crypto.keys import IssuerKeyPair
from . import StorageBackend, ensure_extends, ensure_linked, parse_record

logger = logging.getLogger(__name__)

CHAIN_FILE = "blockchain.json"
BLOCK_FILE = "block.json"
ISSUERS_FILE = "issuers.json"
SUBJECTS_FILE = "subjects.json"
CREDENTIALS_FILE = "credentials.json"
KEYS_FILE = "keys.json"  # local secrets, kept apart from every public record


class JSONFileStorage(StorageBackend):
    """Ledger state as a directory of human-readable JSON files."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        return self.directory / name

    def _read(self, name: str) -> Any:
        path = self._path(name)
        if not path.exists():
            raise StorageError(f"Ledger not initialized: {path} is missing (run `credledger init`)")
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise StorageError(f"Failed to parse {path}: {e}") from e

    def _read_typed(self, name: str, expected: type) -> Any:
        data = self._read(name)
        if not isinstance(data, expected):
            raise StorageError(f"{self._path(name)} must hold a JSON {expected.__name__}, got {type(data).__name__}")
        return data

    def _write(self, name: str, data: Any) -> None:
        path = self._path(name)
        tmp = path.with_suffix(path.suffix + ".tmp")
        flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
        if name == KEYS_FILE:
            fd = os.open(tmp, flags, 0o600)
            # O_CREAT mode only applies to new files; a leftover tmp keeps its old bits
            os.fchmod(fd, 0o600)
        else:
            fd = os.open(tmp, flags, 0o666)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp, path)
        logger.debug("Wrote %s", path)

    def initialize(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._write(CHAIN_FILE, Blockchain().to_dict())
        self._write(BLOCK_FILE, None)
        self._write(ISSUERS_FILE, [])
        self._write(SUBJECTS_FILE, [])
        self._write(CREDENTIALS_FILE, [])
        self._write(KEYS_FILE, {})

    def is_initialized(self) -> bool:
        return self._path(CHAIN_FILE).exists()

    def load_chain(self) -> Blockchain:
        chain = parse_record("blockchain", Blockchain.from_dict, self._read_typed(CHAIN_FILE, dict))
        return ensure_linked(chain)

    def save_chain(self, chain: Blockchain) -> None:
        """Rewrite the chain file. Stored blocks must be a prefix of `chain`."""
        stored = self._read_typed(CHAIN_FILE, dict)
        stored_hashes = parse_record("blockchain", lambda d: [b["hash"] for b in d.get("chain", [])], stored)
        already = ensure_extends(stored_hashes, chain)
        self._write(CHAIN_FILE, chain.to_dict())
        logger.debug("Stored %d new block(s)", len(chain) - already)

    def load_open_block(self) -> Optional[Block]:
        data = self._read(BLOCK_FILE)
        if data is None:
            return None
        return parse_record("block", lambda d: Block.from_dict(d, finalized=False), data)

    def save_open_block(self, block: Block) -> None:
        if block.finalized:
            raise StorageError("Finalized blocks belong in the chain, not the open-block slot")
        self._write(BLOCK_FILE, block.to_dict())

    def clear_open_block(self) -> None:
        self._write(BLOCK_FILE, None)

    def load_issuers(self) -> List[Issuer]:
        return [parse_record("issuer", Issuer.from_dict, d) for d in self._read_typed(ISSUERS_FILE, list)]

    def add_issuer(self, issuer: Issuer) -> None:
        issuers = self._read_typed(ISSUERS_FILE, list)
        issuers.append(issuer.to_dict())
        self._write(ISSUERS_FILE, issuers)

    def load_subjects(self) -> List[Subject]:
        return [parse_record("subject", Subject.from_dict, d) for d in self._read_typed(SUBJECTS_FILE, list)]

    def add_subject(self, subject: Subject) -> None:
        subjects = self._read_typed(SUBJECTS_FILE, list)
        subjects.append(subject.to_dict())
        self._write(SUBJECTS_FILE, subjects)

    def load_credentials(self) -> List[CredentialRecord]:
        return [
            parse_record("credential", CredentialRecord.from_dict, d)
            for d in self._read_typed(CREDENTIALS_FILE, list)
        ]

    def add_credential(self, record: CredentialRecord) -> None:
        credentials = self._read_typed(CREDENTIALS_FILE, list)
        credentials.append(record.to_dict())
        self._write(CREDENTIALS_FILE, credentials)

    def store_signing_key(self, issuer_id: str, key: IssuerKeyPair) -> None:
        keys = self._read_typed(KEYS_FILE, dict)
        keys[issuer_id] = key.private_key_hex()
        self._write(KEYS_FILE, keys)

    def load_signing_key(self, issuer_id: str) -> IssuerKeyPair:
        keys = self._read_typed(KEYS_FILE, dict)
        if issuer_id not in keys:
            raise StorageError(f"No signing key stored for issuer {issuer_id}")
        return parse_record("signing key", IssuerKeyPair.from_private_hex, keys[issuer_id])

    def close(self) -> None:
        pass
