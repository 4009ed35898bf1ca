"""
Persistent Cache Stores

Key-value storage for decoded vanilla tables, keyed by
(game_version, table_name). Every record carries a SHA256 checksum of its
payload; a record whose checksum does not match (torn write, disk corruption)
is reported as CacheFreshnessError so the caller can treat it as a miss.
"""

import hashlib
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from twpatcher.errors import CacheFreshnessError

logger = logging.getLogger(__name__)

# Schema version - bump when schema changes
CACHE_SCHEMA_VERSION = 1


SCHEMA_SQL = """
-- Decoded vanilla tables, one row per (game_version, table_name)
CREATE TABLE IF NOT EXISTS reference_tables (
    game_version TEXT NOT NULL,
    table_name TEXT NOT NULL,
    fingerprint TEXT NOT NULL,              -- Signature of the vanilla packs it was built from
    payload BLOB NOT NULL,                  -- Encoded row set
    checksum TEXT NOT NULL,                 -- SHA256 of payload
    built_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (game_version, table_name)
);

CREATE TABLE IF NOT EXISTS cache_meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


def compute_checksum(payload: bytes) -> str:
    """Compute SHA256 hash of a payload."""
    return hashlib.sha256(payload).hexdigest()


@dataclass
class CacheRecord:
    """One stored table."""
    game_version: str
    table_name: str
    fingerprint: str
    payload: bytes
    checksum: str

    @classmethod
    def create(cls, game_version: str, table_name: str, fingerprint: str, payload: bytes) -> "CacheRecord":
        return cls(
            game_version=game_version,
            table_name=table_name,
            fingerprint=fingerprint,
            payload=payload,
            checksum=compute_checksum(payload),
        )

    @classmethod
    def from_row(cls, row) -> "CacheRecord":
        return cls(
            game_version=row['game_version'],
            table_name=row['table_name'],
            fingerprint=row['fingerprint'],
            payload=bytes(row['payload']),
            checksum=row['checksum'],
        )

    def verify(self) -> None:
        """Raise CacheFreshnessError if the payload does not match its checksum."""
        if compute_checksum(self.payload) != self.checksum:
            raise CacheFreshnessError(
                f"Checksum mismatch for cached table {self.game_version}/{self.table_name}"
            )


class CacheStore(ABC):
    """Durable key-value storage used by the reference cache."""

    @abstractmethod
    def get(self, game_version: str, table_name: str) -> Optional[CacheRecord]:
        """
        Fetch a record, or None if absent.

        Raises:
            CacheFreshnessError: if the stored record is corrupt or unreadable
        """

    @abstractmethod
    def put(self, record: CacheRecord) -> None:
        """Insert or replace a record."""

    @abstractmethod
    def delete(self, game_version: str, table_name: str) -> None:
        """Evict a record if present."""

    def close(self) -> None:
        pass


class MemoryCacheStore(CacheStore):
    """In-process store. Used by tests and by --no-cache runs."""

    def __init__(self):
        self._records: Dict[Tuple[str, str], CacheRecord] = {}
        self._lock = threading.Lock()
        self.puts = 0

    def get(self, game_version: str, table_name: str) -> Optional[CacheRecord]:
        with self._lock:
            record = self._records.get((game_version, table_name))
        if record is not None:
            record.verify()
        return record

    def put(self, record: CacheRecord) -> None:
        with self._lock:
            self._records[(record.game_version, record.table_name)] = record
            self.puts += 1

    def delete(self, game_version: str, table_name: str) -> None:
        with self._lock:
            self._records.pop((game_version, table_name), None)

    def keys(self) -> List[Tuple[str, str]]:
        with self._lock:
            return list(self._records)


class SqliteCacheStore(CacheStore):
    """
    SQLite-backed store.

    Uses one connection per thread, WAL journaling, and a transaction per put
    so a crash never leaves a half-written row visible.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._all_connections: List[sqlite3.Connection] = []
        self._conn_lock = threading.Lock()
        self._init_schema()

    def _connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, 'conn', None)
        if conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False, timeout=30)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            self._local.conn = conn
            with self._conn_lock:
                self._all_connections.append(conn)
        return conn

    def _init_schema(self) -> None:
        try:
            conn = self._connection()
            conn.executescript(SCHEMA_SQL)
            row = conn.execute("SELECT value FROM cache_meta WHERE key = 'schema_version'").fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO cache_meta (key, value) VALUES ('schema_version', ?)",
                    (str(CACHE_SCHEMA_VERSION),),
                )
                conn.commit()
            elif int(row['value']) != CACHE_SCHEMA_VERSION:
                logger.info(f"Cache schema changed ({row['value']} -> {CACHE_SCHEMA_VERSION}), clearing cache")
                with conn:
                    conn.execute("DELETE FROM reference_tables")
                    conn.execute(
                        "UPDATE cache_meta SET value = ? WHERE key = 'schema_version'",
                        (str(CACHE_SCHEMA_VERSION),),
                    )
        except (sqlite3.DatabaseError, OSError) as e:
            raise CacheFreshnessError(f"Cannot open reference cache at {self.db_path}: {e}") from e

    def get(self, game_version: str, table_name: str) -> Optional[CacheRecord]:
        try:
            row = self._connection().execute("""
                SELECT * FROM reference_tables
                WHERE game_version = ? AND table_name = ?
            """, (game_version, table_name)).fetchone()
        except sqlite3.DatabaseError as e:
            raise CacheFreshnessError(f"Cannot read cached table {game_version}/{table_name}: {e}") from e

        if row is None:
            return None
        record = CacheRecord.from_row(row)
        record.verify()
        return record

    def put(self, record: CacheRecord) -> None:
        conn = self._connection()
        with conn:
            conn.execute("""
                INSERT OR REPLACE INTO reference_tables
                    (game_version, table_name, fingerprint, payload, checksum)
                VALUES (?, ?, ?, ?, ?)
            """, (record.game_version, record.table_name, record.fingerprint,
                  record.payload, record.checksum))

    def delete(self, game_version: str, table_name: str) -> None:
        conn = self._connection()
        with conn:
            conn.execute(
                "DELETE FROM reference_tables WHERE game_version = ? AND table_name = ?",
                (game_version, table_name),
            )

    def close(self) -> None:
        with self._conn_lock:
            for conn in self._all_connections:
                conn.close()
            self._all_connections.clear()
        self._local = threading.local()


def open_store(db_path: Optional[Path]) -> CacheStore:
    """
    Open the configured store, falling back to memory when the file is unusable.

    A corrupt cache database is a cold start, never a fatal error.
    """
    if db_path is None:
        return MemoryCacheStore()
    try:
        return SqliteCacheStore(db_path)
    except CacheFreshnessError as e:
        logger.warning(f"{e}; continuing without a persistent cache")
        return MemoryCacheStore()
