"""
Table schemas: column types and primary keys per (game, table).
"""

from twpatcher.schema.provider import (
    BUNDLED_SCHEMA_PATH,
    FieldDef,
    FieldType,
    SchemaProvider,
    TableSchema,
)

__all__ = [
    "BUNDLED_SCHEMA_PATH",
    "FieldDef",
    "FieldType",
    "SchemaProvider",
    "TableSchema",
]
