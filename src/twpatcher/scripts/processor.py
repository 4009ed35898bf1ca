"""
Script Processor

Runs user SQL scripts against merged tables. Each script file gets its own
in-memory SQLite database loaded from the current table snapshot:

    MergedTable rows -> sqlite table "<name>_tables" (PRIMARY KEY = schema keys)
    statements run one by one, autocommit, no rollback
    rows read back -> diffed against the snapshot -> EditSet

A failing statement stops its file. Everything that ran before it is kept,
and the next file starts from the snapshot including those changes.
"""

import logging
import re
import sqlite3
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from twpatcher.edits import EditSet
from twpatcher.errors import DuplicateKeyError, ScriptError, ScriptSyntaxError
from twpatcher.resolver.merger import MergedTable
from twpatcher.schema import FieldType, TableSchema
from twpatcher.scripts.parser import (
    ScriptFile,
    ScriptRequest,
    read_script,
    split_statements,
    substitute_params,
)

logger = logging.getLogger(__name__)

SQLITE_TYPES = {
    FieldType.BOOLEAN: "INTEGER",
    FieldType.I32: "INTEGER",
    FieldType.I64: "INTEGER",
    FieldType.F32: "REAL",
    FieldType.F64: "REAL",
    FieldType.STRING: "TEXT",
    FieldType.BLOB: "BLOB",
}

INSERT_TARGET_RE = re.compile(
    r'^\s*(?:INSERT|REPLACE)\s+(?:OR\s+\w+\s+)?INTO\s+["`\[]?(\w+)', re.IGNORECASE
)


def _quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def create_table_sql(schema: TableSchema) -> str:
    columns = [f"{_quote(f.name)} {SQLITE_TYPES[f.field_type]}" for f in schema.fields]
    keys = ", ".join(_quote(k) for k in schema.key_fields)
    return f"CREATE TABLE {_quote(schema.table_name)} ({', '.join(columns)}, PRIMARY KEY ({keys}))"


@dataclass
class ScriptResult:
    """Outcome of one script file."""
    name: str
    edits: EditSet
    error: Optional[ScriptError] = None
    statements_run: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


class ScriptProcessor:
    """
    Executes scripts sequentially over a private copy of the merged tables.

    The tables passed in are never mutated.
    """

    def __init__(self, tables: Mapping[str, MergedTable]):
        self.tables: Dict[str, MergedTable] = {name: table.copy() for name, table in tables.items()}

    # =========================================================================
    # Database
    # =========================================================================

    def _load(self, conn: sqlite3.Connection, table_names: Iterable[str]) -> None:
        for name in table_names:
            table = self.tables[name]
            schema = table.schema
            conn.execute(create_table_sql(schema))
            placeholders = ", ".join("?" for _ in schema.fields)
            columns = ", ".join(_quote(n) for n in schema.field_names)
            conn.executemany(
                f"INSERT INTO {_quote(name)} ({columns}) VALUES ({placeholders})",
                ([row.get(n) for n in schema.field_names] for row in table),
            )

    def _collect(self, conn: sqlite3.Connection, table_names: Iterable[str], result: ScriptResult) -> None:
        """Diff every loaded table against the snapshot and record changes."""
        for name in table_names:
            table = self.tables[name]
            schema = table.schema
            columns = ", ".join(_quote(n) for n in schema.field_names)
            cursor = conn.execute(f"SELECT {columns} FROM {_quote(name)} ORDER BY rowid")

            seen = set()
            for values in cursor:
                row = {
                    f.name: f.field_type.coerce(value)
                    for f, value in zip(schema.fields, values)
                }
                key = schema.key_of(row)
                seen.add(key)
                if table.get(key) != row:
                    result.edits.set_row(schema, row)
                    table.rows[key] = row
                    table.provenance[key] = result.name

            gone = [key for key in table.rows if key not in seen]
            if gone:
                message = (
                    f"{result.name}: {len(gone)} rows deleted from {name}; "
                    f"deletions cannot be written to a patch and were ignored"
                )
                logger.warning(message)
                result.warnings.append(message)

    # =========================================================================
    # Execution
    # =========================================================================

    def _execute(self, conn: sqlite3.Connection, statement: str) -> None:
        try:
            conn.execute(statement)
        except sqlite3.IntegrityError as e:
            target = INSERT_TARGET_RE.match(statement)
            if target and "UNIQUE" in str(e).upper():
                raise DuplicateKeyError(target.group(1)) from e
            raise ScriptSyntaxError(f"{e}: {statement}") from e
        except sqlite3.Error as e:
            raise ScriptSyntaxError(f"{e}: {statement}") from e

    def run_script(self, script: ScriptFile, params: Optional[Mapping[str, str]] = None) -> ScriptResult:
        """Run one parsed script. Faults are returned in the result, not raised."""
        params = params or {}
        result = ScriptResult(name=script.name, edits=EditSet(producer=f"script:{script.name}"))

        table_names = list(dict.fromkeys(script.tables)) or sorted(self.tables)
        missing = [name for name in table_names if name not in self.tables]
        if missing:
            result.error = ScriptError(f"{script.name}: tables not available: {', '.join(missing)}")
            logger.warning(str(result.error))
            return result

        try:
            statements = split_statements(script.body)
        except ScriptError as e:
            result.error = e
            logger.warning(f"{script.name}: {e}")
            return result

        conn = sqlite3.connect(":memory:", isolation_level=None)
        try:
            self._load(conn, table_names)
            for statement in statements:
                try:
                    self._execute(conn, substitute_params(statement, params))
                except ScriptError as e:
                    result.error = e
                    logger.warning(f"{script.name}: statement {result.statements_run + 1} failed: {e}")
                    break
                result.statements_run += 1
            self._collect(conn, table_names, result)
        finally:
            conn.close()

        logger.info(
            f"Script {script.name}: {result.statements_run}/{len(statements)} statements, "
            f"{result.edits.row_count()} rows changed"
        )
        return result

    def run_file(self, request: ScriptRequest) -> ScriptResult:
        try:
            script = read_script(request.path)
        except OSError as e:
            name = str(request.path)
            error = ScriptError(f"Cannot read script {name}: {e}")
            logger.warning(str(error))
            return ScriptResult(name=name, edits=EditSet(producer=f"script:{name}"), error=error)
        except ScriptError as e:
            name = str(request.path)
            logger.warning(f"{name}: {e}")
            return ScriptResult(name=name, edits=EditSet(producer=f"script:{name}"), error=e)
        return self.run_script(script, request.params)

    def run_all(self, requests: Iterable[ScriptRequest]) -> List[ScriptResult]:
        """Run files in order; a failing file does not stop the rest."""
        return [self.run_file(request) for request in requests]


def combine_results(results: Iterable[ScriptResult]) -> EditSet:
    """Merge per-file edits; later files win."""
    combined = EditSet(producer="scripts")
    for result in results:
        combined.update(result.edits)
    return combined


def script_tables(requests: Iterable[ScriptRequest], all_tables: Iterable[str] = ()) -> List[str]:
    """
    Tables the scripts need merged before they run.

    A script without a table header works on every known table.
    """
    names: List[str] = []
    for request in requests:
        try:
            tables = read_script(request.path).tables
        except (OSError, ScriptError) as e:
            logger.warning(f"Cannot read table list from {request.path}: {e}")
            continue
        names.extend(tables or all_tables)
    return list(dict.fromkeys(names))
