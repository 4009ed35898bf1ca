"""
SQL Script Parsing

Scripts are plain SQL with two optional comment blocks at the top:

    -- Tables to import:
    -- land_units
    -- main_units
    -- End of tables to import.

    -- Strings to replace:
    -- UNIT_FILTER ::: SELECT key FROM land_units_tables
    --                 WHERE class = 'inf_mel'
    ------
    -- OTHER_KEY ::: replacement text
    -- End of strings to replace.

The first block names the tables the script works on (without the
``_tables`` suffix). The second defines text substitutions applied to the
body before anything runs; they are applied last-to-first so a replacement
may use keys defined above it.

Placeholders ``$0``, ``$1``... and ``$name`` are filled from the caller's
parameters, statement by statement.
"""

import csv
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from twpatcher.errors import MissingParameterError, ScriptSyntaxError

logger = logging.getLogger(__name__)

TABLES_START = "-- Tables to import:"
TABLES_END = "-- End of tables to import."
STRINGS_START = "-- Strings to replace:"
STRINGS_END = "-- End of strings to replace."
SUBQUERY_SEPARATOR = "------"
REPLACEMENT_SEPARATOR = ":::"

PLACEHOLDER_RE = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*|\d+)")
NAMED_PARAM_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)=(.*)$", re.DOTALL)


@dataclass
class ScriptFile:
    """A parsed script, ready to split into statements."""
    name: str
    body: str
    tables: List[str] = field(default_factory=list)
    replacements: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class ScriptRequest:
    """A script path plus the parameters it was invoked with."""
    path: Path
    params: Dict[str, str] = field(default_factory=dict)


def _block(text: str, start: str, end: str, name: str) -> Optional[str]:
    start_pos = text.find(start)
    end_pos = text.find(end)
    if start_pos == -1 and end_pos == -1:
        return None
    if start_pos == -1 or end_pos == -1 or end_pos < start_pos:
        raise ScriptSyntaxError(
            f"Malformed '{name}' block: '{start}' must come before '{end}' and both must be present"
        )
    return text[start_pos + len(start):end_pos]


def _table_name(raw: str) -> str:
    return raw if raw.endswith("_tables") else f"{raw}_tables"


def parse_script_text(text: str, name: str = "<script>") -> ScriptFile:
    """
    Parse header blocks and apply string replacements.

    Raises:
        ScriptSyntaxError: if a header block is malformed
    """
    text = text.replace("\r\n", "\n")
    script = ScriptFile(name=name, body=text)

    tables_block = _block(text, TABLES_START, TABLES_END, "tables to import")
    if tables_block is not None:
        for line in tables_block.split("\n"):
            entry = line.strip().lstrip("-").strip()
            if entry:
                script.tables.append(_table_name(entry))

    strings_block = _block(text, STRINGS_START, STRINGS_END, "strings to replace")
    if strings_block is not None:
        for chunk in strings_block.split(SUBQUERY_SEPARATOR):
            chunk = chunk.replace("--", "")
            if not chunk.strip():
                continue
            parts = chunk.split(REPLACEMENT_SEPARATOR)
            if len(parts) != 2:
                raise ScriptSyntaxError(f"Malformed string replacement: {chunk.strip()!r}")
            key = parts[0].strip()
            value = " ".join(line.strip() for line in parts[1].split("\n")).strip()
            script.replacements.append((key, value))

        # Drop the block itself so its keys are not replaced inside it
        start = text.find(STRINGS_START)
        end = text.find(STRINGS_END) + len(STRINGS_END)
        body = text[:start] + text[end:]
        for key, value in reversed(script.replacements):
            body = body.replace(key, value)
        script.body = body

    return script


def read_script(path: Path) -> ScriptFile:
    with open(path, 'r', encoding='utf-8-sig') as f:
        text = f.read()
    return parse_script_text(text, name=str(path).replace("\\", "/"))


def split_statements(body: str) -> List[str]:
    """Split SQL on ';' outside quotes and comments. Comments are dropped."""
    statements: List[str] = []
    current: List[str] = []
    i = 0
    n = len(body)
    quote: Optional[str] = None

    while i < n:
        ch = body[i]
        if quote:
            current.append(ch)
            if ch == quote:
                # Doubled quote is an escaped quote
                if i + 1 < n and body[i + 1] == quote:
                    current.append(body[i + 1])
                    i += 1
                else:
                    quote = None
        elif ch in ("'", '"'):
            quote = ch
            current.append(ch)
        elif body.startswith("--", i):
            newline = body.find("\n", i)
            i = n if newline == -1 else newline
            current.append("\n")
            continue
        elif body.startswith("/*", i):
            close = body.find("*/", i + 2)
            i = n if close == -1 else close + 2
            current.append(" ")
            continue
        elif ch == ";":
            statement = "".join(current).strip()
            if statement:
                statements.append(statement)
            current = []
        else:
            current.append(ch)
        i += 1

    if quote:
        raise ScriptSyntaxError("Unterminated string literal")
    tail = "".join(current).strip()
    if tail:
        statements.append(tail)
    return statements


def _quoted_spans(statement: str) -> List[Tuple[str, bool]]:
    """Split a statement into (text, is_quoted) pieces. Quotes stay in the quoted piece."""
    spans: List[Tuple[str, bool]] = []
    start = 0
    i = 0
    n = len(statement)
    while i < n:
        ch = statement[i]
        if ch not in ("'", '"'):
            i += 1
            continue
        if i > start:
            spans.append((statement[start:i], False))
        end = i + 1
        while end < n:
            if statement[end] == ch:
                if end + 1 < n and statement[end + 1] == ch:
                    end += 2
                    continue
                break
            end += 1
        spans.append((statement[i:end + 1], True))
        start = i = end + 1
    if start < n:
        spans.append((statement[start:], False))
    return spans


def substitute_params(statement: str, params: Mapping[str, str]) -> str:
    """
    Fill $0 / $name placeholders.

    Inside string literals only placeholders with a value are replaced, so
    text such as 'cost $gold' is left alone.

    Raises:
        MissingParameterError: if a placeholder outside quotes has no value
    """
    def replace(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name not in params:
            raise MissingParameterError(name)
        return str(params[name])

    def replace_known(match: "re.Match[str]") -> str:
        name = match.group(1)
        return str(params[name]) if name in params else match.group(0)

    return "".join(
        PLACEHOLDER_RE.sub(replace_known if quoted else replace, text)
        for text, quoted in _quoted_spans(statement)
    )


def parse_script_arg(value: str) -> ScriptRequest:
    """
    Parse a command line script argument: ``path;param0;param1`` or
    ``path;name=value``. Fields follow CSV quoting with ';' as delimiter.
    """
    fields = next(csv.reader([value], delimiter=';'), [])
    if not fields or not fields[0].strip():
        raise ValueError(f"Empty script path in {value!r}")

    request = ScriptRequest(path=Path(fields[0].strip()))
    position = 0
    for raw in fields[1:]:
        match = NAMED_PARAM_RE.match(raw)
        if match:
            request.params[match.group(1)] = match.group(2)
        else:
            request.params[str(position)] = raw
            position += 1
    return request
