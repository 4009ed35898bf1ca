"""
Pack container, table and loc codecs.
"""

from twpatcher.pack.models import (
    ArchiveCategory,
    Dependency,
    LocEntry,
    PackedFile,
    PackType,
    Row,
    RowSet,
)
from twpatcher.pack.codec import (
    ArchiveHandle,
    decode_loc,
    decode_table,
    encode_archive,
    encode_pack,
    list_tables,
    open_pack,
)
from twpatcher.pack.tables import (
    decode_loc_bytes,
    decode_table_bytes,
    encode_loc,
    encode_table,
)

__all__ = [
    # Models
    "ArchiveCategory",
    "Dependency",
    "LocEntry",
    "PackedFile",
    "PackType",
    "Row",
    "RowSet",
    # Container
    "ArchiveHandle",
    "open_pack",
    "list_tables",
    "decode_table",
    "decode_loc",
    "encode_pack",
    "encode_archive",
    # Tables / locs
    "encode_table",
    "decode_table_bytes",
    "encode_loc",
    "decode_loc_bytes",
]
