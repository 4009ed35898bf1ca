"""
Edit sets: the sparse output of one synthesizer, script or localization pass.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping

from twpatcher.pack import LocEntry, Row
from twpatcher.resolver.merger import MergedTable, RowKey, TableKey
from twpatcher.schema import TableSchema


@dataclass
class EditSet:
    """
    Row overwrites, loc overwrites and raw files produced by one step.

    Rows are whole rows: applying an edit replaces the merged row at its key.
    """
    producer: str
    tables: Dict[str, Dict[RowKey, Row]] = field(default_factory=dict)
    schemas: Dict[str, TableSchema] = field(default_factory=dict)
    loc: Dict[str, LocEntry] = field(default_factory=dict)
    blobs: Dict[str, bytes] = field(default_factory=dict)

    def set_row(self, schema: TableSchema, row: Row) -> TableKey:
        key = schema.key_of(row)
        self.schemas[schema.table_name] = schema
        self.tables.setdefault(schema.table_name, {})[key] = dict(row)
        return TableKey(schema.table_name, key)

    def set_loc(self, entry: LocEntry) -> None:
        self.loc[entry.key] = entry

    def set_blob(self, path: str, data: bytes) -> None:
        self.blobs[path] = bytes(data)

    def table_keys(self) -> List[TableKey]:
        return [TableKey(name, key) for name, rows in self.tables.items() for key in rows]

    def row_count(self) -> int:
        return sum(len(rows) for rows in self.tables.values())

    @property
    def is_empty(self) -> bool:
        return not self.tables and not self.loc and not self.blobs

    def update(self, other: "EditSet") -> None:
        """Apply another edit set on top of this one; other wins on collisions."""
        for name, rows in other.tables.items():
            self.schemas[name] = other.schemas[name]
            target = self.tables.setdefault(name, {})
            for key, row in rows.items():
                target[key] = dict(row)
        self.loc.update(other.loc)
        self.blobs.update(other.blobs)

    def apply_to(self, tables: Mapping[str, MergedTable]) -> Dict[str, MergedTable]:
        """
        Merged tables with these row edits on top.

        Edited tables are copied; the others are shared with the input, which
        is never mutated.
        """
        result = dict(tables)
        for name, rows in self.tables.items():
            if name not in tables:
                continue
            table = tables[name].copy()
            for key, row in rows.items():
                table.rows[key] = dict(row)
                table.provenance[key] = self.producer
            result[name] = table
        return result

    def summary(self) -> str:
        return (
            f"{self.producer}: {self.row_count()} rows in {len(self.tables)} tables, "
            f"{len(self.loc)} loc entries, {len(self.blobs)} files"
        )
