"""
Persistent reference cache of decoded vanilla tables.
"""

from twpatcher.db.store import (
    CacheRecord,
    CacheStore,
    MemoryCacheStore,
    SqliteCacheStore,
    compute_checksum,
    open_store,
)
from twpatcher.db.cache import (
    CacheStats,
    ReferenceCache,
    VanillaSource,
    decode_rows,
    encode_rows,
)

__all__ = [
    "CacheRecord",
    "CacheStore",
    "MemoryCacheStore",
    "SqliteCacheStore",
    "compute_checksum",
    "open_store",
    "CacheStats",
    "ReferenceCache",
    "VanillaSource",
    "decode_rows",
    "encode_rows",
]
