"""
twpatcher - Total War launch-time patcher

Merges the tables and loc text of a mod load order, applies launch options,
translations and user SQL scripts, and writes the result as one pack that
loads after everything else.
"""

__version__ = "0.1.0"
__author__ = "twpatcher contributors"

from twpatcher.errors import (
    CacheFreshnessError,
    CorruptArchiveError,
    DecodeError,
    DuplicateKeyError,
    MissingParameterError,
    PatcherError,
    ResolutionError,
    ScriptError,
    ScriptSyntaxError,
    UnknownSchemaError,
    WriteFailure,
)

__all__ = [
    "__version__",
    "CacheFreshnessError",
    "CorruptArchiveError",
    "DecodeError",
    "DuplicateKeyError",
    "MissingParameterError",
    "PatcherError",
    "ResolutionError",
    "ScriptError",
    "ScriptSyntaxError",
    "UnknownSchemaError",
    "WriteFailure",
]
