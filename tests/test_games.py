"""
Tests for the game registry, schemas and the error taxonomy.
"""

import pytest

from twpatcher.errors import (
    CorruptArchiveError,
    DecodeError,
    ResolutionError,
    UnknownSchemaError,
    WriteFailure,
)
from twpatcher.games import (
    TRANSLATED_LOC_PATH,
    TRANSLATED_LOC_PATH_OLD,
    game_keys,
    get_game,
)
from twpatcher.schema import FieldType, SchemaProvider


class TestGames:

    def test_registry(self):
        assert len(game_keys()) == 13
        with pytest.raises(KeyError):
            get_game("medieval_2")

    def test_loc_paths(self):
        assert get_game("warhammer_3").translated_loc_path == TRANSLATED_LOC_PATH
        assert get_game("rome_2").translated_loc_path == TRANSLATED_LOC_PATH_OLD

    def test_old_games_read_utf16_script(self):
        assert get_game("empire").uses_utf16_load_order
        assert not get_game("warhammer_3").uses_utf16_load_order


class TestSchemas:

    def test_bundled_schemas_cover_every_game(self):
        schemas = SchemaProvider.load()

        for key in game_keys():
            assert schemas.has(key, "land_units_tables"), key

    def test_unknown_table(self):
        with pytest.raises(UnknownSchemaError) as exc:
            SchemaProvider.load().get("warhammer_3", "nothing_tables")
        assert exc.value.exit_code == 3

    def test_keys_and_defaults(self):
        schema = SchemaProvider.load().get("warhammer_3", "land_units_tables")

        assert schema.key_fields == ["key"]
        assert schema.key_of({"key": "a", "num_men": 1}) == ("a",)
        assert schema.new_row({"key": "a", "num_men": "5"})["num_men"] == 5
        assert schema.new_row()["can_siege"] is False

    def test_coerce(self):
        assert FieldType.BOOLEAN.coerce("true") is True
        assert FieldType.I32.coerce(2.6) == 3
        assert FieldType.F32.coerce("1.5") == 1.5
        assert FieldType.BLOB.coerce("x") == b"x"


class TestErrors:

    def test_exit_codes(self):
        assert ResolutionError("x").exit_code == 2
        assert CorruptArchiveError("x", "a.pack").exit_code == 3
        assert WriteFailure("x").exit_code == 4

    def test_corrupt_archive_names_the_path(self):
        error = CorruptArchiveError("bad magic", "mods/a.pack")

        assert isinstance(error, DecodeError)
        assert str(error) == "mods/a.pack: bad magic"
