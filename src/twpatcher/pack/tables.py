"""
Table and Loc Binary Codecs

Tables are stored headerless apart from a magic, the definition version and
the row count; decoding needs the schema to know each column's type.

    TWDB | u32 version | u32 row_count | rows...

Column encodings (little endian):
    boolean  u8
    i32/i64  signed 4/8 bytes
    f32/f64  IEEE 754 4/8 bytes
    string   u32 byte length + UTF-8
    blob     u32 byte length + raw bytes

Loc files follow the game layout:

    FF FE "LOC" 00 | u32 version (1) | u32 entry_count |
    entries of (u16 len + UTF-16LE key, u16 len + UTF-16LE text, u8 tooltip)
"""

import struct
from typing import Any, Iterable, List, Optional, Tuple

from twpatcher.errors import CorruptArchiveError
from twpatcher.pack.models import LocEntry, Row, RowSet
from twpatcher.schema import FieldType, TableSchema

TABLE_MAGIC = b"TWDB"
LOC_MAGIC = b"\xff\xfeLOC\x00"
LOC_VERSION = 1

_FIXED_FORMATS = {
    FieldType.BOOLEAN: "<?",
    FieldType.I32: "<i",
    FieldType.I64: "<q",
    FieldType.F32: "<f",
    FieldType.F64: "<d",
}


class _Reader:
    """Bounds-checked cursor over a byte buffer."""

    def __init__(self, data: bytes, path: Optional[str] = None):
        self.data = data
        self.pos = 0
        self.path = path

    def take(self, count: int) -> bytes:
        end = self.pos + count
        if count < 0 or end > len(self.data):
            raise CorruptArchiveError(
                f"unexpected end of data at offset {self.pos} (need {count} bytes)", self.path
            )
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def unpack(self, fmt: str) -> Tuple[Any, ...]:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))

    def u16(self) -> int:
        return self.unpack("<H")[0]

    def u32(self) -> int:
        return self.unpack("<I")[0]

    def utf8(self) -> str:
        raw = self.take(self.u32())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CorruptArchiveError(f"invalid UTF-8 string at offset {self.pos}: {e}", self.path)

    def utf16(self) -> str:
        raw = self.take(self.u16() * 2)
        try:
            return raw.decode("utf-16-le")
        except UnicodeDecodeError as e:
            raise CorruptArchiveError(f"invalid UTF-16 string at offset {self.pos}: {e}", self.path)

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos


def _encode_value(field_type: FieldType, value: Any) -> bytes:
    value = field_type.coerce(value)
    fmt = _FIXED_FORMATS.get(field_type)
    if fmt is not None:
        return struct.pack(fmt, value)
    if field_type is FieldType.STRING:
        raw = value.encode("utf-8")
    else:
        raw = value
    return struct.pack("<I", len(raw)) + raw


def _decode_value(reader: _Reader, field_type: FieldType) -> Any:
    fmt = _FIXED_FORMATS.get(field_type)
    if fmt is not None:
        return reader.unpack(fmt)[0]
    if field_type is FieldType.STRING:
        return reader.utf8()
    return reader.take(reader.u32())


# =============================================================================
# TABLES
# =============================================================================

def encode_table(schema: TableSchema, rows: Iterable[Row]) -> bytes:
    """Serialize rows in schema column order."""
    rows = list(rows)
    parts = [TABLE_MAGIC, struct.pack("<II", schema.version, len(rows))]
    for row in rows:
        for f in schema.fields:
            parts.append(_encode_value(f.field_type, row.get(f.name)))
    return b"".join(parts)


def decode_table_bytes(data: bytes, schema: TableSchema, path: Optional[str] = None) -> RowSet:
    """
    Decode a table file.

    Raises:
        CorruptArchiveError: on bad magic, version mismatch or truncated data
    """
    reader = _Reader(data, path)
    if reader.take(len(TABLE_MAGIC)) != TABLE_MAGIC:
        raise CorruptArchiveError("not a table file (bad magic)", path)

    version, row_count = reader.unpack("<II")
    if version != schema.version:
        raise CorruptArchiveError(
            f"table version {version} does not match definition version {schema.version} "
            f"for '{schema.table_name}'",
            path,
        )

    rows: RowSet = []
    for _ in range(row_count):
        rows.append({f.name: _decode_value(reader, f.field_type) for f in schema.fields})

    if reader.remaining:
        raise CorruptArchiveError(f"{reader.remaining} trailing bytes after last row", path)
    return rows


# =============================================================================
# LOCS
# =============================================================================

def _encode_utf16(text: str) -> bytes:
    raw = text.encode("utf-16-le")
    return struct.pack("<H", len(raw) // 2) + raw


def encode_loc(entries: Iterable[LocEntry]) -> bytes:
    entries = list(entries)
    parts = [LOC_MAGIC, struct.pack("<II", LOC_VERSION, len(entries))]
    for entry in entries:
        parts.append(_encode_utf16(entry.key))
        parts.append(_encode_utf16(entry.text))
        parts.append(struct.pack("<?", entry.tooltip))
    return b"".join(parts)


def decode_loc_bytes(data: bytes, path: Optional[str] = None) -> List[LocEntry]:
    reader = _Reader(data, path)
    if reader.take(len(LOC_MAGIC)) != LOC_MAGIC:
        raise CorruptArchiveError("not a loc file (bad magic)", path)

    version, count = reader.unpack("<II")
    if version != LOC_VERSION:
        raise CorruptArchiveError(f"unsupported loc version {version}", path)

    entries = []
    for _ in range(count):
        key = reader.utf16()
        text = reader.utf16()
        tooltip = reader.unpack("<?")[0]
        entries.append(LocEntry(key=key, text=text, tooltip=tooltip))
    return entries
