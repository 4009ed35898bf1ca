"""
Pack data models.

Plain data shared by the codec, the resolver and the merger.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List


# A decoded table row: column name -> int / float / bool / str / bytes
Row = Dict[str, Any]
RowSet = List[Row]


class ArchiveCategory(Enum):
    """Load order a pack participates in."""
    MOVIE = "movie"
    DATA = "data"


class PackType(Enum):
    """Pack type as stored in the header. Values match the on-disk id."""
    BOOT = 0
    RELEASE = 1
    PATCH = 2
    MOD = 3
    MOVIE = 4

    @property
    def is_vanilla(self) -> bool:
        return self in (PackType.BOOT, PackType.RELEASE, PackType.PATCH)

    @property
    def category(self) -> ArchiveCategory:
        if self is PackType.MOVIE:
            return ArchiveCategory.MOVIE
        return ArchiveCategory.DATA


@dataclass(frozen=True)
class PackedFile:
    """Location of one file inside a pack."""
    path: str
    offset: int
    size: int


@dataclass(frozen=True)
class LocEntry:
    """One localised string."""
    key: str
    text: str
    tooltip: bool = False


@dataclass(frozen=True)
class Dependency:
    """A pack this pack declares it depends on."""
    name: str
    hard: bool = True
