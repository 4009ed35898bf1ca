"""
TSV loc files.

    key<TAB>text<TAB>tooltip

Lines starting with '#' and a leading "key" header row are skipped. Tabs and
newlines inside text are stored escaped as \\t and \\n.
"""

import csv
from pathlib import Path
from typing import Iterable, List

from twpatcher.pack import LocEntry

_ESCAPES = (("\\t", "\t"), ("\\n", "\n"))


def _unescape(text: str) -> str:
    for escaped, raw in _ESCAPES:
        text = text.replace(escaped, raw)
    return text


def _escape(text: str) -> str:
    for escaped, raw in _ESCAPES:
        text = text.replace(raw, escaped)
    return text


def read_loc_tsv(path: Path) -> List[LocEntry]:
    entries = []
    with open(path, 'r', encoding='utf-8-sig', newline='') as f:
        for fields in csv.reader(f, delimiter='\t', quoting=csv.QUOTE_NONE):
            if not fields or fields[0].startswith('#'):
                continue
            if fields[0] == "key" and len(entries) == 0:
                continue
            key = fields[0]
            text = _unescape(fields[1]) if len(fields) > 1 else ""
            tooltip = len(fields) > 2 and fields[2].strip().lower() in ("true", "1")
            entries.append(LocEntry(key=key, text=text, tooltip=tooltip))
    return entries


def write_loc_tsv(path: Path, entries: Iterable[LocEntry]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write("key\ttext\ttooltip\n")
        for entry in entries:
            tooltip = "true" if entry.tooltip else "false"
            f.write(f"{entry.key}\t{_escape(entry.text)}\t{tooltip}\n")
