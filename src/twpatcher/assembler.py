"""
Patch Assembler

Folds every edit set into one and writes the generated pack.

Precedence, lowest to highest:

    localization -> synthesizers (in feature order) -> scripts (in file order)

The pack is written next to its final name and moved into place only once
it is complete, so a failed run never leaves a truncated pack behind.
"""

import logging
import os
import struct
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Sequence

from twpatcher.edits import EditSet
from twpatcher.errors import WriteFailure
from twpatcher.games import GameInfo
from twpatcher.pack import Dependency, PackType, encode_archive

logger = logging.getLogger(__name__)

PATCH_TABLE_FILE = "twpatcher"


def combine(
    loc_edits: Optional[EditSet],
    synth_edits: Iterable[EditSet] = (),
    script_edits: Iterable[EditSet] = (),
) -> EditSet:
    """Combine edit sets; a later set overrides an earlier one at the same key."""
    combined = EditSet(producer="patch")
    if loc_edits is not None:
        combined.update(loc_edits)
    for edits in synth_edits:
        combined.update(edits)
    for edits in script_edits:
        combined.update(edits)
    return combined


def build_pack(edits: EditSet, game: GameInfo, dependencies: Sequence[str] = ()) -> bytes:
    """Serialize an edit set into pack bytes."""
    tables = {
        name: (edits.schemas[name], list(rows.values()))
        for name, rows in sorted(edits.tables.items())
    }
    loc = {game.translated_loc_path: list(edits.loc.values())} if edits.loc else {}
    deps = [Dependency(name=name, hard=not game.soft_dependencies) for name in dependencies]
    return encode_archive(
        tables,
        loc=loc,
        blobs=edits.blobs,
        pack_type=PackType.MOVIE,
        dependencies=deps,
        table_file_name=PATCH_TABLE_FILE,
    )


def output_path(game: GameInfo, data_path: Path, custom: Optional[Path] = None) -> Path:
    if custom is not None:
        return Path(custom)
    return Path(data_path) / game.reserved_pack_name


def write_atomic(path: Path, data: bytes) -> Path:
    """
    Write bytes to path through a temp file in the same folder.

    Raises:
        WriteFailure: on any error; the temp file is removed and an existing
            file at path is left as it was
    """
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise WriteFailure(f"Cannot write {path}: {e}") from e
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError as e:
                logger.warning(f"Could not remove temp file {tmp_name}: {e}")
    return path


def write_patch(
    edits: EditSet,
    game: GameInfo,
    destination: Path,
    dependencies: Sequence[str] = (),
) -> Path:
    """
    Build and write the patch pack.

    Raises:
        WriteFailure: if the pack cannot be encoded or written
    """
    try:
        data = build_pack(edits, game, dependencies)
    except (ValueError, KeyError, TypeError, struct.error) as e:
        raise WriteFailure(f"Cannot encode patch pack: {e}") from e
    written = write_atomic(destination, data)
    logger.info(f"Wrote {written} ({len(data)} bytes): {edits.summary()}")
    return written
