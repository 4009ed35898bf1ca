"""
Reference Cache

Decoded vanilla tables persisted across runs. An entry is valid while the
fingerprint it was built from matches the installed vanilla packs; otherwise
it is rebuilt from the packs and the stale entry replaced.

Only one decode runs per (game_version, table_name) at a time. Other threads
asking for the same key wait for it and then read the fresh entry.
"""

import base64
import hashlib
import json
import logging
import sqlite3
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from twpatcher.db.store import CacheRecord, CacheStore
from twpatcher.errors import CacheFreshnessError
from twpatcher.pack import ArchiveHandle, LocEntry, RowSet, decode_loc, decode_table
from twpatcher.schema import SchemaProvider

logger = logging.getLogger(__name__)


# =============================================================================
# ROW SET SERIALIZATION
# =============================================================================

def _encode_value(value: Any) -> Any:
    if isinstance(value, bytes):
        return {"__blob__": base64.b64encode(value).decode("ascii")}
    return value


def _decode_value(value: Any) -> Any:
    if isinstance(value, dict) and "__blob__" in value:
        return base64.b64decode(value["__blob__"])
    return value


def encode_rows(rows: RowSet) -> bytes:
    """Serialize a row set to compact JSON bytes."""
    data = [{k: _encode_value(v) for k, v in row.items()} for row in rows]
    return json.dumps(data, separators=(',', ':')).encode('utf-8')


def decode_rows(payload: bytes) -> RowSet:
    """Deserialize a row set. Raises CacheFreshnessError on garbage."""
    try:
        data = json.loads(payload.decode('utf-8'))
    except (UnicodeDecodeError, ValueError) as e:
        raise CacheFreshnessError(f"Undecodable cache payload: {e}") from e
    if not isinstance(data, list):
        raise CacheFreshnessError("Cache payload is not a row list")
    return [{k: _decode_value(v) for k, v in row.items()} for row in data]


# =============================================================================
# VANILLA SOURCE
# =============================================================================

class VanillaSource:
    """The vanilla packs of one game install, in load order."""

    def __init__(self, game_key: str, handles: Sequence[ArchiveHandle], schemas: SchemaProvider):
        self.game_key = game_key
        self.handles = sorted(handles, key=lambda h: h.name)
        self.schemas = schemas
        self._fingerprint: Optional[str] = None

    def fingerprint(self) -> str:
        """Signature of the installed vanilla packs (names, sizes and mtimes)."""
        if self._fingerprint is None:
            h = hashlib.sha256()
            for handle in self.handles:
                try:
                    stat = handle.path.stat()
                    h.update(f"{handle.name}|{stat.st_size}|{stat.st_mtime_ns}\n".encode('utf-8'))
                except OSError:
                    h.update(f"{handle.name}|missing\n".encode('utf-8'))
            self._fingerprint = h.hexdigest()
        return self._fingerprint

    def decode_table(self, table_name: str) -> RowSet:
        """
        Decode a table across all vanilla packs.

        Later packs override earlier ones on the same key. A table no vanilla
        pack contains decodes to an empty row set.
        """
        schema = self.schemas.get(self.game_key, table_name)
        merged: Dict[Tuple[Any, ...], Dict[str, Any]] = {}
        for handle in self.handles:
            for row in decode_table(handle, table_name, schema):
                merged[schema.key_of(row)] = row
        return list(merged.values())

    def decode_loc(self) -> List[LocEntry]:
        entries: List[LocEntry] = []
        for handle in self.handles:
            entries.extend(decode_loc(handle))
        return entries

    def read_file(self, path: str) -> Optional[bytes]:
        """Highest-priority vanilla copy of a file, or None."""
        for handle in reversed(self.handles):
            if handle.has_file(path):
                return handle.read_file(path)
        return None


# =============================================================================
# REFERENCE CACHE
# =============================================================================

@dataclass
class CacheStats:
    hits: int = 0
    rebuilds: int = 0
    corrupt: int = 0


class ReferenceCache:
    """
    Build-once cache of decoded vanilla tables.

    The store is injected so tests can swap in MemoryCacheStore.
    """

    def __init__(self, store: CacheStore, source: VanillaSource):
        self.store = store
        self.source = source
        self.stats = CacheStats()
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._stats_lock = threading.Lock()

    def _lock_for(self, key: Tuple[str, str]) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _count(self, attr: str) -> None:
        with self._stats_lock:
            setattr(self.stats, attr, getattr(self.stats, attr) + 1)

    def _lookup(self, game_version: str, table_name: str, fingerprint: str) -> Optional[RowSet]:
        try:
            record = self.store.get(game_version, table_name)
            if record is None:
                return None
            if record.fingerprint != fingerprint:
                logger.debug(f"Stale cache entry for {game_version}/{table_name}")
                return None
            return decode_rows(record.payload)
        except CacheFreshnessError as e:
            self._count("corrupt")
            logger.warning(f"{e}; rebuilding from vanilla packs")
            return None

    def get_or_build(self, game_version: str, table_name: str) -> RowSet:
        """
        Get the vanilla rows of a table, decoding them only when needed.

        Raises:
            DecodeError: if the vanilla table cannot be decoded
        """
        key = (game_version, table_name)
        with self._lock_for(key):
            fingerprint = self.source.fingerprint()

            rows = self._lookup(game_version, table_name, fingerprint)
            if rows is not None:
                self._count("hits")
                return rows

            logger.debug(f"Decoding vanilla table {table_name}")
            rows = self.source.decode_table(table_name)
            self._count("rebuilds")

            record = CacheRecord.create(game_version, table_name, fingerprint, encode_rows(rows))
            try:
                self.store.delete(game_version, table_name)
                self.store.put(record)
            except sqlite3.Error as e:
                logger.warning(f"Cannot persist cache entry {game_version}/{table_name}: {e}")

            return rows
