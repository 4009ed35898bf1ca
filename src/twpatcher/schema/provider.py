"""
Table Schema Provider

Column layouts and primary keys for every (game, table) pair the patcher
reads or writes. Definitions come from a YAML document shaped like:

    games:
      warhammer_3:
        land_units_tables:
          version: 1
          fields:
            - {name: key, type: string, key: true}
            - {name: num_men, type: i32}

A bundled document covers the tables used by the feature synthesizers; a
user-supplied file replaces it entirely.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from twpatcher.errors import UnknownSchemaError

logger = logging.getLogger(__name__)

BUNDLED_SCHEMA_PATH = Path(__file__).parent / "schemas.yaml"


class FieldType(Enum):
    """Binary encodings a table column may use."""
    BOOLEAN = "boolean"
    I32 = "i32"
    I64 = "i64"
    F32 = "f32"
    F64 = "f64"
    STRING = "string"
    BLOB = "blob"

    @property
    def default(self) -> Any:
        if self is FieldType.BOOLEAN:
            return False
        if self in (FieldType.I32, FieldType.I64):
            return 0
        if self in (FieldType.F32, FieldType.F64):
            return 0.0
        if self is FieldType.BLOB:
            return b""
        return ""

    def coerce(self, value: Any) -> Any:
        """Convert a loosely-typed value (script literal, YAML scalar) to this type."""
        if value is None:
            return self.default
        if self is FieldType.BOOLEAN:
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes")
            return bool(value)
        if self in (FieldType.I32, FieldType.I64):
            if isinstance(value, float):
                return int(round(value))
            return int(value)
        if self in (FieldType.F32, FieldType.F64):
            return float(value)
        if self is FieldType.BLOB:
            if isinstance(value, str):
                return value.encode("utf-8")
            return bytes(value)
        return str(value)


@dataclass(frozen=True)
class FieldDef:
    """One column of a table."""
    name: str
    field_type: FieldType
    is_key: bool = False


@dataclass
class TableSchema:
    """Layout of one table for one game."""
    table_name: str
    version: int
    fields: List[FieldDef] = field(default_factory=list)

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    @property
    def key_fields(self) -> List[str]:
        keys = [f.name for f in self.fields if f.is_key]
        # Tables without declared keys are keyed on their first column
        if not keys and self.fields:
            keys = [self.fields[0].name]
        return keys

    def has_field(self, name: str) -> bool:
        return any(f.name == name for f in self.fields)

    def field_type(self, name: str) -> FieldType:
        for f in self.fields:
            if f.name == name:
                return f.field_type
        raise KeyError(f"Table '{self.table_name}' has no column '{name}'")

    def key_of(self, row: Dict[str, Any]) -> Tuple[Any, ...]:
        """Primary key tuple of a row."""
        return tuple(row.get(name) for name in self.key_fields)

    def new_row(self, values: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Build a full row, filling unspecified columns with type defaults."""
        values = values or {}
        return {
            f.name: f.field_type.coerce(values[f.name]) if f.name in values else f.field_type.default
            for f in self.fields
        }

    @classmethod
    def from_dict(cls, table_name: str, data: Dict[str, Any]) -> "TableSchema":
        fields = []
        for raw in data.get("fields", []):
            try:
                field_type = FieldType(raw["type"])
            except (KeyError, ValueError) as e:
                raise ValueError(f"Bad field definition in '{table_name}': {raw!r}") from e
            fields.append(FieldDef(name=raw["name"], field_type=field_type, is_key=bool(raw.get("key", False))))
        return cls(table_name=table_name, version=int(data.get("version", 0)), fields=fields)


class SchemaProvider:
    """Resolves (game, table_name) to a TableSchema."""

    def __init__(self, definitions: Dict[str, Dict[str, TableSchema]]):
        self._definitions = definitions
        self._lock = threading.Lock()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchemaProvider":
        games = data.get("games", data)
        definitions: Dict[str, Dict[str, TableSchema]] = {}
        for game, tables in (games or {}).items():
            definitions[game] = {
                name: TableSchema.from_dict(name, table) for name, table in (tables or {}).items()
            }
        return cls(definitions)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "SchemaProvider":
        """Load schemas from a YAML file, or the bundled file when path is None."""
        path = path or BUNDLED_SCHEMA_PATH
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        provider = cls.from_dict(data)
        logger.debug(f"Loaded schemas for {len(provider._definitions)} games from {path}")
        return provider

    def get(self, game: str, table_name: str) -> TableSchema:
        """
        Get the schema of a table.

        Raises:
            UnknownSchemaError: if the game or table is not defined
        """
        try:
            return self._definitions[game][table_name]
        except KeyError:
            raise UnknownSchemaError(game, table_name) from None

    def has(self, game: str, table_name: str) -> bool:
        return table_name in self._definitions.get(game, {})

    def tables(self, game: str) -> List[str]:
        return sorted(self._definitions.get(game, {}))

    def register(self, game: str, schema: TableSchema) -> None:
        """Add or replace a definition at runtime."""
        with self._lock:
            self._definitions.setdefault(game, {})[schema.table_name] = schema
