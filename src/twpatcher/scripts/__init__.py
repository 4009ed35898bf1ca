"""
SQL scripts run against merged tables.
"""

from twpatcher.scripts.parser import (
    ScriptFile,
    ScriptRequest,
    parse_script_arg,
    parse_script_text,
    read_script,
    split_statements,
    substitute_params,
)
from twpatcher.scripts.processor import (
    ScriptProcessor,
    ScriptResult,
    combine_results,
    create_table_sql,
    script_tables,
)

__all__ = [
    "ScriptFile",
    "ScriptRequest",
    "parse_script_arg",
    "parse_script_text",
    "read_script",
    "split_statements",
    "substitute_params",
    "ScriptProcessor",
    "ScriptResult",
    "combine_results",
    "create_table_sql",
    "script_tables",
]
