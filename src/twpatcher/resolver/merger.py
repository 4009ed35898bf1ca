"""
Layered Table Merger

Merges one table across vanilla and every pack of a load order:

    vanilla (from the reference cache) -> pack 1 -> pack 2 -> ... -> pack N

A row replaces any earlier row with the same primary key; there is no
field-level merge, the highest pack's row wins whole. Rows whose tombstone
column is set delete the key instead.

The merger holds no state between calls, so merging the same table against
the same packs always produces the same result.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, NamedTuple, Optional, Sequence, Tuple

from twpatcher.db.cache import ReferenceCache
from twpatcher.errors import PatcherError
from twpatcher.pack import ArchiveHandle, Row, decode_table, encode_table
from twpatcher.schema import SchemaProvider, TableSchema

logger = logging.getLogger(__name__)

VANILLA_LAYER = "vanilla"

RowKey = Tuple[Any, ...]


class TableKey(NamedTuple):
    """Identity of a logical row across layers."""
    table_name: str
    row_key: RowKey


@dataclass
class MergedTable:
    """Winning rows of a table, in first-appearance order, with provenance."""
    table_name: str
    schema: TableSchema
    rows: Dict[RowKey, Row] = field(default_factory=dict)
    provenance: Dict[RowKey, str] = field(default_factory=dict)
    removed: Dict[RowKey, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows.values())

    def __contains__(self, row_key: object) -> bool:
        return row_key in self.rows

    def get(self, row_key: RowKey) -> Optional[Row]:
        return self.rows.get(row_key)

    def key_of(self, row: Row) -> RowKey:
        return self.schema.key_of(row)

    def table_key(self, row_key: RowKey) -> TableKey:
        return TableKey(self.table_name, row_key)

    def copy(self) -> "MergedTable":
        """Independent copy; rows can be mutated without touching the original."""
        return MergedTable(
            table_name=self.table_name,
            schema=self.schema,
            rows={k: dict(v) for k, v in self.rows.items()},
            provenance=dict(self.provenance),
            removed=dict(self.removed),
        )

    def to_bytes(self) -> bytes:
        """Binary encoding of the merged rows."""
        return encode_table(self.schema, self.rows.values())


@dataclass
class MergeResults:
    """Outcome of merging several tables."""
    tables: Dict[str, MergedTable] = field(default_factory=dict)
    failures: Dict[str, PatcherError] = field(default_factory=dict)


class TableMerger:
    """Merges tables over a load order, with vanilla as layer 0."""

    def __init__(
        self,
        game_key: str,
        schemas: SchemaProvider,
        cache: ReferenceCache,
        tombstone_column: str = "__deleted__",
    ):
        self.game_key = game_key
        self.schemas = schemas
        self.cache = cache
        self.tombstone_column = tombstone_column

    def _apply_layer(
        self,
        merged: MergedTable,
        slots: Dict[RowKey, Optional[Row]],
        rows: Iterable[Row],
        layer: str,
        tombstones: bool,
    ) -> None:
        # A removed key keeps its slot (None) so re-adding it restores its position
        for row in rows:
            key = merged.schema.key_of(row)
            if tombstones and row.get(self.tombstone_column):
                if key in slots:
                    slots[key] = None
                merged.provenance.pop(key, None)
                merged.removed[key] = layer
                continue
            merged.removed.pop(key, None)
            slots[key] = dict(row)
            merged.provenance[key] = layer

    def merge(self, table_name: str, load_order: Iterable[ArchiveHandle]) -> MergedTable:
        """
        Merge a table over the load order.

        Raises:
            UnknownSchemaError: no definition for the table
            DecodeError: vanilla or a pack's copy of the table cannot be decoded
        """
        schema = self.schemas.get(self.game_key, table_name)
        tombstones = schema.has_field(self.tombstone_column)
        merged = MergedTable(table_name=table_name, schema=schema)
        slots: Dict[RowKey, Optional[Row]] = {}

        vanilla = self.cache.get_or_build(self.game_key, table_name)
        self._apply_layer(merged, slots, vanilla, VANILLA_LAYER, tombstones)

        for handle in load_order:
            if not handle.table_files(table_name):
                continue
            self._apply_layer(merged, slots, decode_table(handle, table_name, schema), handle.name, tombstones)

        merged.rows = {key: row for key, row in slots.items() if row is not None}

        logger.debug(f"Merged {table_name}: {len(merged)} rows, {len(merged.removed)} removed")
        return merged

    def merge_many(
        self,
        table_names: Sequence[str],
        load_order: Iterable[ArchiveHandle],
        workers: int = 4,
    ) -> MergeResults:
        """
        Merge several tables in parallel.

        A table that fails is recorded in failures; the others still merge.
        Results are keyed in the order the names were given.
        """
        stack = list(load_order)
        names = list(dict.fromkeys(table_names))
        done: Dict[str, MergedTable] = {}
        failed: Dict[str, PatcherError] = {}
        results = MergeResults()

        with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
            futures = {executor.submit(self.merge, name, stack): name for name in names}
            for future in as_completed(futures):
                name = futures[future]
                try:
                    done[name] = future.result()
                except PatcherError as e:
                    logger.warning(f"Cannot merge table {name}: {e}")
                    failed[name] = e

        for name in names:
            if name in done:
                results.tables[name] = done[name]
            elif name in failed:
                results.failures[name] = failed[name]
        return results
