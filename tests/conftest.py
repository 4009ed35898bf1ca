"""
Pytest configuration and shared fixtures.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from twpatcher.db import MemoryCacheStore, ReferenceCache, VanillaSource
from twpatcher.games import KEY_WARHAMMER_3, get_game
from twpatcher.pack import Dependency, PackType, encode_archive, open_pack
from twpatcher.resolver import TableMerger
from twpatcher.schema import SchemaProvider


GAME = KEY_WARHAMMER_3


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def land_unit(key, num_men=40, unit_class="inf_mel", hit_points=0, can_siege=False, damage=1.0):
    """A full land_units_tables row."""
    return {
        "key": key,
        "class": unit_class,
        "num_men": num_men,
        "bonus_hit_points": hit_points,
        "can_siege": can_siege,
        "damage_mod_flat": damage,
        "ranged_damage_mod": 0.0,
    }


def write_pack(path, schemas, tables=None, loc=None, blobs=None, pack_type=PackType.MOD,
               dependencies=(), game=GAME):
    """Write a pack with the given tables {name: rows} and return its path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded_tables = {
        name: (schemas.get(game, name), rows) for name, rows in (tables or {}).items()
    }
    data = encode_archive(
        encoded_tables,
        loc=loc,
        blobs=blobs,
        pack_type=pack_type,
        dependencies=[Dependency(d) for d in dependencies],
        table_file_name=path.stem,
    )
    path.write_bytes(data)
    return path


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def schemas():
    """Bundled table definitions."""
    return SchemaProvider.load()


@pytest.fixture
def game():
    return get_game(GAME)


@pytest.fixture
def store():
    return MemoryCacheStore()


@pytest.fixture
def data_dir(tmp_path):
    """Empty game data folder."""
    path = tmp_path / "game" / "data"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def vanilla_pack(data_dir, schemas):
    """A release pack with three land units and the trait limit variables."""
    return write_pack(
        data_dir / "data.pack",
        schemas,
        tables={
            "land_units_tables": [
                land_unit("wh_spearmen", num_men=40, damage=10.0),
                land_unit("wh_giant", num_men=1, hit_points=2000, unit_class="mon"),
                land_unit("wh_cannon", num_men=12, unit_class="art_fld", can_siege=True),
            ],
            "campaign_variables_tables": [
                {"variable_key": "max_traits", "value": 3.0, "description": ""},
                {"variable_key": "other_limit", "value": 5.0, "description": ""},
            ],
        },
        pack_type=PackType.RELEASE,
    )


@pytest.fixture
def merger_factory(schemas, store):
    """Build a TableMerger over vanilla packs, sharing the test store."""
    def factory(vanilla_paths, tombstone_column="__deleted__"):
        handles = [open_pack(p) for p in vanilla_paths]
        cache = ReferenceCache(store, VanillaSource(GAME, handles, schemas))
        return TableMerger(GAME, schemas, cache, tombstone_column)
    return factory


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo setup_logging() so handlers never outlive the test that made them."""
    yield
    root = logging.getLogger("twpatcher")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
