# credledger/storage/sqlite.py
import json
import logging
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from credledger.chain.assertion import CredentialRecord
from credledger.chain.block import Block
from credledger.chain.blockchain import Blockchain
from credledger.core.canon import canonical_json_str
from credledger.core.errors import StorageError
from credledger.core.types import Issuer, Subject
from credledger.crypto.keys import IssuerKeyPair
from . import StorageBackend, ensure_extends, ensure_linked, parse_record

logger = logging.getLogger(__name__)

REGISTRY_TABLES = ("issuers", "subjects", "credentials")


class SQLiteStorage(StorageBackend):
    """SQLite persistent storage for the credential ledger."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            env_path = os.environ.get("CREDLEDGER_DB_PATH")
            db_path = env_path if env_path else Path.cwd() / "credledger.db"

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = self.db_path.resolve()

        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self):
        self._conn = sqlite3.connect(str(self.db_path), isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_schema()

    def _create_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS blocks (
                height          INTEGER PRIMARY KEY,
                hash            TEXT    NOT NULL UNIQUE,
                previous_hash   TEXT    NOT NULL,
                timestamp       TEXT    NOT NULL,
                creator_id      TEXT    NOT NULL,
                canonical_json  TEXT    NOT NULL
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS open_block (
                slot            INTEGER PRIMARY KEY CHECK (slot = 0),
                canonical_json  TEXT    NOT NULL
            )
        """)
        for table in REGISTRY_TABLES:
            self.conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    position        INTEGER PRIMARY KEY AUTOINCREMENT,
                    id              TEXT    NOT NULL UNIQUE,
                    canonical_json  TEXT    NOT NULL
                )
            """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS signing_keys (
                issuer_id       TEXT    PRIMARY KEY,
                private_key_hex TEXT    NOT NULL
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS ledger_meta (
                key             TEXT    PRIMARY KEY,
                value           TEXT    NOT NULL
            )
        """)
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_creator ON blocks(creator_id)")

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Storage connection is closed")
        return self._conn

    def initialize(self) -> None:
        with self.conn:
            self.conn.execute("BEGIN")
            for table in ("blocks", "open_block", "signing_keys", "ledger_meta") + REGISTRY_TABLES:
                self.conn.execute(f"DELETE FROM {table}")
            self.conn.execute(
                "INSERT INTO ledger_meta (key, value) VALUES ('initialized_at', ?)",
                (datetime.now(timezone.utc).isoformat(timespec="seconds"),),
            )
        logger.debug("Initialized empty ledger in %s", self.db_path)

    def is_initialized(self) -> bool:
        row = self.conn.execute("SELECT 1 FROM ledger_meta WHERE key = 'initialized_at'").fetchone()
        return row is not None

    def _require_initialized(self) -> None:
        if not self.is_initialized():
            raise StorageError(f"Ledger not initialized in {self.db_path} (run `credledger init`)")

    def _load_json(self, sql: str, params: tuple = ()) -> list:
        self._require_initialized()
        rows = self.conn.execute(sql, params).fetchall()
        try:
            return [json.loads(row[0]) for row in rows]
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt JSON in {self.db_path}: {e}") from e

    def load_chain(self) -> Blockchain:
        blocks = self._load_json("SELECT canonical_json FROM blocks ORDER BY height ASC")
        chain = parse_record("blockchain", Blockchain.from_dict, {"chain": blocks})
        return ensure_linked(chain)

    def _insert_new_blocks(self, chain: Blockchain) -> int:
        """Insert blocks past the stored height. Caller owns the transaction."""
        stored = [row[0] for row in self.conn.execute("SELECT hash FROM blocks ORDER BY height ASC")]
        already = ensure_extends(stored, chain)
        blocks = chain.chain
        for height in range(already, len(blocks)):
            block = blocks[height]
            self.conn.execute("""
                INSERT INTO blocks (height, hash, previous_hash, timestamp, creator_id, canonical_json)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                height, block.hash.to_hex(), block.previous_hash.to_hex(),
                block.timestamp, block.creator.id, canonical_json_str(block.to_dict()),
            ))
        return len(blocks) - already

    def save_chain(self, chain: Blockchain) -> None:
        """Append blocks not yet stored. Stored blocks must be a prefix of `chain`."""
        self._require_initialized()
        with self.conn:
            self.conn.execute("BEGIN")
            added = self._insert_new_blocks(chain)
        logger.debug("Stored %d new block(s)", added)

    def commit_block(self, chain: Blockchain) -> None:
        """Clear the open block and append the new block in one transaction."""
        self._require_initialized()
        with self.conn:
            self.conn.execute("BEGIN")
            self.conn.execute("DELETE FROM open_block")
            added = self._insert_new_blocks(chain)
        logger.debug("Committed %d new block(s) and cleared the open block", added)

    def load_open_block(self) -> Optional[Block]:
        rows = self._load_json("SELECT canonical_json FROM open_block WHERE slot = 0")
        if not rows:
            return None
        return parse_record("block", lambda d: Block.from_dict(d, finalized=False), rows[0])

    def save_open_block(self, block: Block) -> None:
        self._require_initialized()
        if block.finalized:
            raise StorageError("Finalized blocks belong in the chain, not the open-block slot")
        self.conn.execute(
            "INSERT OR REPLACE INTO open_block (slot, canonical_json) VALUES (0, ?)",
            (canonical_json_str(block.to_dict()),),
        )

    def clear_open_block(self) -> None:
        self._require_initialized()
        self.conn.execute("DELETE FROM open_block")

    def _add_registry(self, table: str, record_id: str, data: dict) -> None:
        self._require_initialized()
        self.conn.execute(
            f"INSERT INTO {table} (id, canonical_json) VALUES (?, ?)",
            (record_id, canonical_json_str(data)),
        )

    def _load_registry(self, table: str) -> list:
        return self._load_json(f"SELECT canonical_json FROM {table} ORDER BY position ASC")

    def load_issuers(self) -> List[Issuer]:
        return [parse_record("issuer", Issuer.from_dict, d) for d in self._load_registry("issuers")]

    def add_issuer(self, issuer: Issuer) -> None:
        self._add_registry("issuers", issuer.id, issuer.to_dict())

    def load_subjects(self) -> List[Subject]:
        return [parse_record("subject", Subject.from_dict, d) for d in self._load_registry("subjects")]

    def add_subject(self, subject: Subject) -> None:
        self._add_registry("subjects", subject.id, subject.to_dict())

    def load_credentials(self) -> List[CredentialRecord]:
        return [
            parse_record("credential", CredentialRecord.from_dict, d)
            for d in self._load_registry("credentials")
        ]

    def add_credential(self, record: CredentialRecord) -> None:
        self._add_registry("credentials", record.credential.id, record.to_dict())

    def store_signing_key(self, issuer_id: str, key: IssuerKeyPair) -> None:
        self._require_initialized()
        self.conn.execute(
            "INSERT OR REPLACE INTO signing_keys (issuer_id, private_key_hex) VALUES (?, ?)",
            (issuer_id, key.private_key_hex()),
        )

    def load_signing_key(self, issuer_id: str) -> IssuerKeyPair:
        self._require_initialized()
        row = self.conn.execute(
            "SELECT private_key_hex FROM signing_keys WHERE issuer_id = ?", (issuer_id,)
        ).fetchone()
        if row is None:
            raise StorageError(f"No signing key stored for issuer {issuer_id}")
        return parse_record("signing key", IssuerKeyPair.from_private_hex, row[0])

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
