"""
Error Taxonomy

Every failure the patcher reports derives from PatcherError. The exit_code
attribute is what the CLI returns when the error reaches the top level.
"""

from typing import Optional


class PatcherError(Exception):
    """Base class for all patcher failures."""
    exit_code = 1
    stage = "patcher"


class ResolutionError(PatcherError):
    """The load order cannot be built."""
    exit_code = 2
    stage = "load order"


class DecodeError(PatcherError):
    """A specific table or archive cannot be decoded."""
    exit_code = 3
    stage = "decode"


class CorruptArchiveError(DecodeError):
    """A pack, table or loc payload is malformed."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


class UnknownSchemaError(DecodeError):
    """No schema definition exists for a (game, table) pair."""

    def __init__(self, game: str, table_name: str):
        self.game = game
        self.table_name = table_name
        super().__init__(f"No schema for table '{table_name}' in game '{game}'")


class ScriptError(PatcherError):
    """Base class for script execution faults."""
    exit_code = 1
    stage = "script"


class ScriptSyntaxError(ScriptError):
    """A statement could not be parsed."""


class DuplicateKeyError(ScriptError):
    """INSERT INTO targeted a key that already exists."""

    def __init__(self, table_name: str, key=None):
        self.table_name = table_name
        self.key = key
        if key is None:
            super().__init__(f"Duplicate key in table '{table_name}'")
        else:
            super().__init__(f"Duplicate key {key!r} in table '{table_name}'")


class MissingParameterError(ScriptError):
    """A placeholder has no supplied value."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Missing value for script parameter '{name}'")


class CacheFreshnessError(PatcherError):
    """The persistent cache is corrupt or unreadable. Treated as a cold start."""
    stage = "cache"


class WriteFailure(PatcherError):
    """The final pack could not be serialized or persisted."""
    exit_code = 4
    stage = "write"
