"""
Load Order Resolution

Turns the launcher's load order file into two ordered stacks of opened packs,
one for movie packs and one for data packs. Vanilla is never part of either
stack; it is the implicit layer below both.

Load order file format (one directive per line):

    add_working_directory "D:/SteamLibrary/steamapps/workshop/content/1142710/123";
    mod "my_mod.pack";

Mods are looked up in the game's data folder first, then in each working
directory in the order they were added.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from twpatcher.errors import CorruptArchiveError, ResolutionError
from twpatcher.games import RESERVED_PACK_NAME, RESERVED_PACK_NAME_ALTERNATIVE, GameInfo
from twpatcher.pack import ArchiveCategory, ArchiveHandle, list_tables, open_pack

logger = logging.getLogger(__name__)

WORKING_DIR_RE = re.compile(r'^\s*add_working_directory\s+"([^"]*)"')
MOD_RE = re.compile(r'^\s*mod\s+"([^"]*)"')

RESERVED_NAMES = frozenset({RESERVED_PACK_NAME, RESERVED_PACK_NAME_ALTERNATIVE})


# =============================================================================
# LOAD ORDER FILE
# =============================================================================

@dataclass
class LoadOrderFile:
    """Parsed contents of a load order file."""
    working_dirs: List[Path] = field(default_factory=list)
    mods: List[str] = field(default_factory=list)


def parse_load_order(text: str) -> LoadOrderFile:
    """Parse load order directives. Unknown lines are ignored."""
    result = LoadOrderFile()
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        match = WORKING_DIR_RE.match(stripped)
        if match:
            result.working_dirs.append(Path(match.group(1).strip()))
            continue
        match = MOD_RE.match(stripped)
        if match:
            result.mods.append(match.group(1).strip())
    return result


def read_load_order_file(path: Path, game: GameInfo) -> LoadOrderFile:
    """
    Read and parse a load order file.

    Empire and Napoleon keep theirs as UTF-16 script files.

    Raises:
        ResolutionError: if the file cannot be read
    """
    encoding = "utf-16" if game.uses_utf16_load_order else "utf-8-sig"
    try:
        with open(path, 'r', encoding=encoding) as f:
            text = f.read()
    except (OSError, UnicodeError) as e:
        raise ResolutionError(f"Cannot read load order file {path}: {e}") from e
    return parse_load_order(text)


# =============================================================================
# INSTALLED CONTENT
# =============================================================================

class InstalledContent:
    """Finds pack files in the data folder and the working directories."""

    def __init__(self, search_dirs: Sequence[Path]):
        # Keep first occurrence, preserve order
        seen = set()
        self.search_dirs: List[Path] = []
        for d in search_dirs:
            key = str(d)
            if key not in seen:
                seen.add(key)
                self.search_dirs.append(Path(d))

    def locate(self, pack_name: str) -> Optional[Path]:
        for directory in self.search_dirs:
            candidate = directory / pack_name
            if candidate.is_file():
                return candidate
        return None

    def all_packs(self) -> List[Path]:
        packs = []
        for directory in self.search_dirs:
            if directory.is_dir():
                packs.extend(sorted(p for p in directory.iterdir() if p.suffix == ".pack" and p.is_file()))
        return packs


# =============================================================================
# LOAD ORDER
# =============================================================================

class LoadOrder:
    """Ordered stack of packs of one category, lowest precedence first."""

    def __init__(self, category: ArchiveCategory, archives: Optional[Sequence[ArchiveHandle]] = None):
        self.category = category
        self._archives: List[ArchiveHandle] = []
        for handle in archives or []:
            self.append(handle)

    def append(self, handle: ArchiveHandle) -> None:
        if handle.category is not self.category:
            raise ValueError(
                f"{handle.name} is a {handle.category.value} pack, not {self.category.value}"
            )
        self._archives.append(handle)

    def __iter__(self) -> Iterator[ArchiveHandle]:
        return iter(self._archives)

    def __len__(self) -> int:
        return len(self._archives)

    def __getitem__(self, index: int) -> ArchiveHandle:
        return self._archives[index]

    def __contains__(self, name: object) -> bool:
        return any(h.name == name for h in self._archives)

    def names(self) -> List[str]:
        return [h.name for h in self._archives]

    def tables(self) -> List[str]:
        """Every table name present in at least one pack, sorted."""
        names = set()
        for handle in self._archives:
            names.update(list_tables(handle))
        return sorted(names)

    def __repr__(self) -> str:
        return f"LoadOrder({self.category.value}, {self.names()})"


@dataclass
class ResolvedLoadOrder:
    """Both load orders plus the vanilla packs below them."""
    movie: LoadOrder
    data: LoadOrder
    vanilla: List[ArchiveHandle] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def by_category(self, category: ArchiveCategory) -> LoadOrder:
        return self.movie if category is ArchiveCategory.MOVIE else self.data

    def effective(self) -> List[ArchiveHandle]:
        """Stack the game reads tables from: data packs, then movie packs."""
        return list(self.data) + list(self.movie)

    def pack_names(self) -> List[str]:
        return [h.name for h in self.effective()]

    @property
    def is_empty(self) -> bool:
        return not len(self.movie) and not len(self.data)


class LoadOrderResolver:
    """Builds ResolvedLoadOrder for one game install."""

    def __init__(self, game: GameInfo, data_path: Path):
        self.game = game
        self.data_path = Path(data_path)
        self._opened: Dict[str, ArchiveHandle] = {}

    def _open(self, path: Path) -> ArchiveHandle:
        key = str(path)
        handle = self._opened.get(key)
        if handle is None:
            handle = self._opened[key] = open_pack(path)
        return handle

    def discover_vanilla(self) -> List[ArchiveHandle]:
        """Open every vanilla pack in the data folder."""
        vanilla = []
        for path in InstalledContent([self.data_path]).all_packs():
            if path.name in RESERVED_NAMES:
                continue
            try:
                handle = self._open(path)
            except CorruptArchiveError as e:
                logger.warning(f"Skipping unreadable pack in data folder: {e}")
                continue
            if handle.is_vanilla:
                vanilla.append(handle)
        return vanilla

    def resolve(self, mod_names: Sequence[str], working_dirs: Sequence[Path] = ()) -> ResolvedLoadOrder:
        """
        Resolve pack names to opened packs.

        Missing or unreadable packs are skipped with a warning.
        """
        content = InstalledContent([self.data_path, *working_dirs])
        resolved = ResolvedLoadOrder(
            movie=LoadOrder(ArchiveCategory.MOVIE),
            data=LoadOrder(ArchiveCategory.DATA),
            vanilla=self.discover_vanilla(),
        )
        vanilla_names = {h.name for h in resolved.vanilla}
        listed = set()

        def warn(message: str) -> None:
            logger.warning(message)
            resolved.warnings.append(message)

        for name in mod_names:
            if name in listed:
                continue
            listed.add(name)
            if name in RESERVED_NAMES:
                continue
            path = content.locate(name)
            if path is None:
                warn(f"Pack '{name}' not found in any working directory, skipping")
                continue
            try:
                handle = self._open(path)
            except CorruptArchiveError as e:
                warn(f"Pack '{name}' cannot be opened, skipping: {e}")
                continue
            resolved.by_category(handle.category).append(handle)

        # The game loads movie packs whether or not they are listed
        for path in content.all_packs():
            name = path.name
            if name in listed or name in vanilla_names or name in RESERVED_NAMES:
                continue
            try:
                handle = self._open(path)
            except CorruptArchiveError:
                continue
            if handle.category is ArchiveCategory.MOVIE and not handle.is_vanilla:
                listed.add(name)
                resolved.movie.append(handle)

        logger.info(
            f"Load order: {len(resolved.data)} data packs, {len(resolved.movie)} movie packs, "
            f"{len(resolved.vanilla)} vanilla packs"
        )
        return resolved

    def resolve_file(self, path: Path, require_mods: bool = False) -> ResolvedLoadOrder:
        """
        Resolve a load order file.

        Raises:
            ResolutionError: if the file is unreadable, or lists no packs while
                require_mods is set
        """
        parsed = read_load_order_file(path, self.game)
        if require_mods and not parsed.mods:
            raise ResolutionError(f"Load order file {path} lists no packs")
        return self.resolve(parsed.mods, parsed.working_dirs)
