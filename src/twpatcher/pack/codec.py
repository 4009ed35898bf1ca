"""
Pack Container Codec

Reads and writes the pack container:

    TWPK | u32 format_version | u32 pack_type | u32 timestamp |
    u32 dependency_count | u32 file_count |
    dependencies: (u8 hard, u16 len + UTF-8 name)* |
    index:        (u16 len + UTF-8 path, u32 size)* |
    payloads in index order

Opening a pack only reads the header and index. File payloads are read on
demand, so an ArchiveHandle can be shared between worker threads.
"""

import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from twpatcher.errors import CorruptArchiveError
from twpatcher.pack.models import (
    ArchiveCategory,
    Dependency,
    LocEntry,
    PackedFile,
    PackType,
    RowSet,
)
from twpatcher.pack.tables import decode_loc_bytes, decode_table_bytes, encode_loc, encode_table
from twpatcher.schema import TableSchema

logger = logging.getLogger(__name__)

PACK_MAGIC = b"TWPK"
PACK_FORMAT_VERSION = 1

_HEADER = struct.Struct("<4sIIIII")


def _read_exact(f: BinaryIO, count: int, path: str) -> bytes:
    data = f.read(count)
    if len(data) != count:
        raise CorruptArchiveError(f"truncated pack (wanted {count} bytes, got {len(data)})", path)
    return data


def _read_name(f: BinaryIO, path: str) -> str:
    (length,) = struct.unpack("<H", _read_exact(f, 2, path))
    raw = _read_exact(f, length, path)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CorruptArchiveError(f"invalid name in pack index: {e}", path)


def _encode_name(name: str) -> bytes:
    raw = name.encode("utf-8")
    if len(raw) > 0xFFFF:
        raise ValueError(f"Name too long for pack index: {name[:64]}...")
    return struct.pack("<H", len(raw)) + raw


# =============================================================================
# ARCHIVE HANDLE
# =============================================================================

@dataclass
class ArchiveHandle:
    """Read-only view of one pack on disk."""
    path: Path
    pack_type: PackType
    timestamp: int = 0
    dependencies: List[Dependency] = field(default_factory=list)
    files: Dict[str, PackedFile] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def category(self) -> ArchiveCategory:
        return self.pack_type.category

    @property
    def is_vanilla(self) -> bool:
        return self.pack_type.is_vanilla

    def paths(self) -> List[str]:
        return list(self.files)

    def has_file(self, path: str) -> bool:
        return path in self.files

    def read_file(self, path: str) -> bytes:
        """Read one file's payload."""
        entry = self.files.get(path)
        if entry is None:
            raise KeyError(f"{path} not in {self.name}")
        try:
            with open(self.path, 'rb') as f:
                f.seek(entry.offset)
                return _read_exact(f, entry.size, str(self.path))
        except OSError as e:
            raise CorruptArchiveError(f"cannot read '{path}': {e}", str(self.path)) from e

    def paths_under(self, prefix: str, suffix: str = "") -> List[str]:
        """Sorted paths below a folder prefix."""
        return sorted(p for p in self.files if p.startswith(prefix) and p.endswith(suffix))

    def table_files(self, table_name: str) -> List[str]:
        return self.paths_under(f"db/{table_name}/")

    def loc_files(self) -> List[str]:
        # Locs outside text/ are ignored by the game
        return self.paths_under("text/", ".loc")


def open_pack(path: Path) -> ArchiveHandle:
    """
    Open a pack and read its index.

    Raises:
        CorruptArchiveError: if the file is not a readable pack
    """
    path = Path(path)
    spath = str(path)
    try:
        with open(path, 'rb') as f:
            magic, version, raw_type, timestamp, dep_count, file_count = _HEADER.unpack(
                _read_exact(f, _HEADER.size, spath)
            )
            if magic != PACK_MAGIC:
                raise CorruptArchiveError("not a pack file (bad magic)", spath)
            if version != PACK_FORMAT_VERSION:
                raise CorruptArchiveError(f"unsupported pack format version {version}", spath)
            try:
                pack_type = PackType(raw_type)
            except ValueError:
                raise CorruptArchiveError(f"unknown pack type {raw_type}", spath) from None

            dependencies = []
            for _ in range(dep_count):
                (hard,) = struct.unpack("<B", _read_exact(f, 1, spath))
                dependencies.append(Dependency(name=_read_name(f, spath), hard=bool(hard)))

            index: List[Tuple[str, int]] = []
            for _ in range(file_count):
                file_path = _read_name(f, spath)
                (size,) = struct.unpack("<I", _read_exact(f, 4, spath))
                index.append((file_path, size))

            offset = f.tell()
            f.seek(0, 2)
            total = f.tell()
    except OSError as e:
        raise CorruptArchiveError(f"cannot open pack: {e}", spath) from e

    files: Dict[str, PackedFile] = {}
    for file_path, size in index:
        files[file_path] = PackedFile(path=file_path, offset=offset, size=size)
        offset += size

    if offset != total:
        raise CorruptArchiveError(f"index describes {offset} bytes but file has {total}", spath)

    return ArchiveHandle(
        path=path,
        pack_type=pack_type,
        timestamp=timestamp,
        dependencies=dependencies,
        files=files,
    )


# =============================================================================
# DECODING
# =============================================================================

def list_tables(handle: ArchiveHandle) -> Set[str]:
    """Names of all tables with at least one file in the pack."""
    tables = set()
    for path in handle.files:
        parts = path.split("/")
        if len(parts) >= 3 and parts[0] == "db":
            tables.add(parts[1])
    return tables


def decode_table(handle: ArchiveHandle, table_name: str, schema: TableSchema) -> RowSet:
    """
    Decode every file of a table in the pack, in path order.

    Rows from later files come after rows from earlier ones, so a later file
    overrides an earlier one on the same key.
    """
    rows: RowSet = []
    for path in handle.table_files(table_name):
        label = f"{handle.path}:{path}"
        rows.extend(decode_table_bytes(handle.read_file(path), schema, label))
    return rows


def decode_loc(handle: ArchiveHandle) -> List[LocEntry]:
    """Decode every loc file under text/, in path order."""
    entries: List[LocEntry] = []
    for path in handle.loc_files():
        entries.extend(decode_loc_bytes(handle.read_file(path), f"{handle.path}:{path}"))
    return entries


# =============================================================================
# ENCODING
# =============================================================================

def encode_pack(
    files: Mapping[str, bytes],
    pack_type: PackType = PackType.MOD,
    dependencies: Sequence[Dependency] = (),
    timestamp: int = 0,
) -> bytes:
    """Serialize raw files into a pack. Files are stored sorted by path."""
    ordered = sorted(files.items())
    parts = [_HEADER.pack(
        PACK_MAGIC,
        PACK_FORMAT_VERSION,
        pack_type.value,
        timestamp,
        len(dependencies),
        len(ordered),
    )]
    for dep in dependencies:
        parts.append(struct.pack("<B", 1 if dep.hard else 0))
        parts.append(_encode_name(dep.name))
    for path, data in ordered:
        parts.append(_encode_name(path))
        parts.append(struct.pack("<I", len(data)))
    parts.extend(data for _, data in ordered)
    return b"".join(parts)


def encode_archive(
    tables: Mapping[str, Tuple[TableSchema, Iterable]],
    loc: Optional[Mapping[str, Iterable[LocEntry]]] = None,
    blobs: Optional[Mapping[str, bytes]] = None,
    pack_type: PackType = PackType.MOVIE,
    dependencies: Sequence[Dependency] = (),
    table_file_name: str = "twpatcher",
) -> bytes:
    """
    Build a complete pack from decoded content.

    Args:
        tables: table_name -> (schema, rows); each becomes db/<table>/<table_file_name>
        loc: pack path -> loc entries
        blobs: pack path -> raw bytes
        pack_type: header type of the new pack
        dependencies: packs listed in the header
        table_file_name: file name used for every table file
    """
    files: Dict[str, bytes] = {}
    for table_name, (schema, rows) in tables.items():
        files[f"db/{table_name}/{table_file_name}"] = encode_table(schema, rows)
    for path, entries in (loc or {}).items():
        files[path] = encode_loc(entries)
    for path, data in (blobs or {}).items():
        files[path] = bytes(data)

    # Dates are always nullified so identical content gives identical bytes
    return encode_pack(files, pack_type=pack_type, dependencies=dependencies, timestamp=0)
