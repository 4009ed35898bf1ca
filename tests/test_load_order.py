"""
Tests for load order parsing and resolution.
"""

import pytest

from twpatcher.errors import ResolutionError
from twpatcher.games import RESERVED_PACK_NAME, get_game
from twpatcher.pack import PackType
from twpatcher.resolver import LoadOrderResolver, parse_load_order, read_load_order_file

from conftest import land_unit, write_pack


class TestLoadOrderFile:

    def test_parse_directives(self):
        text = '\n'.join([
            'add_working_directory "D:/workshop/123";',
            '# a comment',
            'mod "a.pack";',
            'mod "b.pack";',
            'something_else "ignored";',
        ])

        parsed = parse_load_order(text)

        assert [str(p) for p in parsed.working_dirs] == ["D:/workshop/123"]
        assert parsed.mods == ["a.pack", "b.pack"]

    def test_utf16_script_for_old_games(self, tmp_path):
        path = tmp_path / "user.empire_script.txt"
        path.write_text('mod "old.pack";\n', encoding="utf-16")

        parsed = read_load_order_file(path, get_game("empire"))

        assert parsed.mods == ["old.pack"]

    def test_utf8_with_bom(self, tmp_path, game):
        path = tmp_path / "load_order.txt"
        path.write_text('mod "new.pack";\n', encoding="utf-8-sig")

        assert read_load_order_file(path, game).mods == ["new.pack"]

    def test_missing_file(self, tmp_path, game):
        with pytest.raises(ResolutionError):
            read_load_order_file(tmp_path / "nope.txt", game)


class TestResolver:

    def test_order_and_categories(self, data_dir, schemas, vanilla_pack, game):
        workshop = data_dir.parent / "workshop"
        write_pack(data_dir / "a.pack", schemas)
        write_pack(workshop / "b.pack", schemas)
        write_pack(workshop / "m.pack", schemas, pack_type=PackType.MOVIE)

        resolved = LoadOrderResolver(game, data_dir).resolve(["b.pack", "a.pack"], [workshop])

        assert resolved.data.names() == ["b.pack", "a.pack"]
        assert resolved.movie.names() == ["m.pack"]
        assert [h.name for h in resolved.vanilla] == ["data.pack"]
        assert resolved.pack_names() == ["b.pack", "a.pack", "m.pack"]

    def test_missing_pack_is_a_warning(self, data_dir, schemas, game):
        write_pack(data_dir / "a.pack", schemas)

        resolved = LoadOrderResolver(game, data_dir).resolve(["gone.pack", "a.pack"])

        assert resolved.data.names() == ["a.pack"]
        assert any("gone.pack" in w for w in resolved.warnings)

    def test_corrupt_pack_is_a_warning(self, data_dir, schemas, game):
        (data_dir / "bad.pack").write_bytes(b"garbage")

        resolved = LoadOrderResolver(game, data_dir).resolve(["bad.pack"])

        assert resolved.is_empty
        assert len(resolved.warnings) == 1

    def test_generated_pack_is_never_an_input(self, data_dir, schemas, game):
        write_pack(data_dir / RESERVED_PACK_NAME, schemas, pack_type=PackType.MOVIE)

        resolved = LoadOrderResolver(game, data_dir).resolve([RESERVED_PACK_NAME])

        assert resolved.is_empty

    def test_duplicate_entries_load_once(self, data_dir, schemas, game):
        write_pack(data_dir / "a.pack", schemas)

        resolved = LoadOrderResolver(game, data_dir).resolve(["a.pack", "a.pack"])

        assert resolved.data.names() == ["a.pack"]

    def test_resolve_file_requiring_mods(self, data_dir, tmp_path, game):
        path = tmp_path / "empty.txt"
        path.write_text("", encoding="utf-8")

        with pytest.raises(ResolutionError):
            LoadOrderResolver(game, data_dir).resolve_file(path, require_mods=True)

    def test_tables_of_load_order(self, data_dir, schemas, game):
        write_pack(data_dir / "a.pack", schemas, tables={"land_units_tables": [land_unit("x")]})

        resolved = LoadOrderResolver(game, data_dir).resolve(["a.pack"])

        assert resolved.data.tables() == ["land_units_tables"]
