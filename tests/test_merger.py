"""
Tests for the layered table merger.
"""

import pytest

from twpatcher.errors import UnknownSchemaError
from twpatcher.pack import open_pack
from twpatcher.resolver import VANILLA_LAYER
from twpatcher.schema import TableSchema

from conftest import GAME, land_unit, write_pack


class TestOverride:

    def test_last_writer_wins_whole_row(self, merger_factory, schemas, data_dir, vanilla_pack):
        a = write_pack(data_dir / "a.pack", schemas, tables={
            "land_units_tables": [land_unit("wh_spearmen", num_men=50, damage=3.0)],
        })
        b = write_pack(data_dir / "b.pack", schemas, tables={
            "land_units_tables": [land_unit("wh_spearmen", num_men=70)],
        })
        merger = merger_factory([vanilla_pack])

        merged = merger.merge("land_units_tables", [open_pack(a), open_pack(b)])
        row = merged.get(("wh_spearmen",))

        assert row["num_men"] == 70
        # No field-level merge: a.pack's damage does not survive
        assert row["damage_mod_flat"] == 1.0
        assert merged.provenance[("wh_spearmen",)] == "b.pack"
        assert merged.provenance[("wh_giant",)] == VANILLA_LAYER

    def test_new_rows_append_in_order(self, merger_factory, schemas, data_dir, vanilla_pack):
        a = write_pack(data_dir / "a.pack", schemas, tables={
            "land_units_tables": [land_unit("mod_unit")],
        })
        merged = merger_factory([vanilla_pack]).merge("land_units_tables", [open_pack(a)])

        assert [r["key"] for r in merged] == ["wh_spearmen", "wh_giant", "wh_cannon", "mod_unit"]

    def test_packs_without_the_table_are_skipped(self, merger_factory, schemas, data_dir, vanilla_pack):
        a = write_pack(data_dir / "a.pack", schemas, blobs={"ui/x.xml": b"<x/>"})

        merged = merger_factory([vanilla_pack]).merge("land_units_tables", [open_pack(a)])

        assert len(merged) == 3

    def test_unknown_table(self, merger_factory, vanilla_pack):
        with pytest.raises(UnknownSchemaError):
            merger_factory([vanilla_pack]).merge("no_such_tables", [])


class TestTombstones:

    def test_tombstone_removes_key(self, merger_factory, schemas, data_dir):
        schema = TableSchema.from_dict("regions_tables", {
            "version": 1,
            "fields": [
                {"name": "key", "type": "string", "key": True},
                {"name": "name", "type": "string"},
                {"name": "__deleted__", "type": "boolean"},
            ],
        })
        schemas.register(GAME, schema)
        vanilla = write_pack(data_dir / "data.pack", schemas, tables={
            "regions_tables": [
                {"key": "r1", "name": "One", "__deleted__": False},
                {"key": "r2", "name": "Two", "__deleted__": False},
            ],
        })
        mod = write_pack(data_dir / "mod.pack", schemas, tables={
            "regions_tables": [{"key": "r1", "name": "", "__deleted__": True}],
        })

        merged = merger_factory([vanilla]).merge("regions_tables", [open_pack(mod)])

        assert ("r1",) not in merged
        assert merged.removed[("r1",)] == "mod.pack"
        assert [r["key"] for r in merged] == ["r2"]

    def test_readded_key_keeps_its_position(self, merger_factory, schemas, data_dir):
        schema = TableSchema.from_dict("regions_tables", {
            "version": 1,
            "fields": [
                {"name": "key", "type": "string", "key": True},
                {"name": "name", "type": "string"},
                {"name": "__deleted__", "type": "boolean"},
            ],
        })
        schemas.register(GAME, schema)
        vanilla = write_pack(data_dir / "data.pack", schemas, tables={
            "regions_tables": [
                {"key": "r1", "name": "One", "__deleted__": False},
                {"key": "r2", "name": "Two", "__deleted__": False},
            ],
        })
        remover = write_pack(data_dir / "a_remove.pack", schemas, tables={
            "regions_tables": [{"key": "r1", "name": "", "__deleted__": True}],
        })
        restorer = write_pack(data_dir / "b_restore.pack", schemas, tables={
            "regions_tables": [{"key": "r1", "name": "Back", "__deleted__": False}],
        })

        merged = merger_factory([vanilla]).merge("regions_tables", [open_pack(remover), open_pack(restorer)])

        assert [r["key"] for r in merged] == ["r1", "r2"]
        assert merged.get(("r1",))["name"] == "Back"
        assert merged.provenance[("r1",)] == "b_restore.pack"
        assert ("r1",) not in merged.removed


class TestDeterminism:

    def test_same_inputs_same_bytes(self, merger_factory, schemas, data_dir, vanilla_pack):
        packs = []
        for i in range(5):
            packs.append(write_pack(data_dir / f"mod_{i}.pack", schemas, tables={
                "land_units_tables": [land_unit("wh_spearmen", num_men=10 + i), land_unit(f"unit_{i}")],
            }))

        first = merger_factory([vanilla_pack]).merge("land_units_tables", [open_pack(p) for p in packs])
        second = merger_factory([vanilla_pack]).merge("land_units_tables", [open_pack(p) for p in packs])

        assert first.to_bytes() == second.to_bytes()
        assert first.get(("wh_spearmen",))["num_men"] == 14

    def test_merge_many_isolates_failures(self, merger_factory, vanilla_pack):
        merger = merger_factory([vanilla_pack])

        results = merger.merge_many(
            ["land_units_tables", "no_such_tables", "campaign_variables_tables"], [], workers=4,
        )

        assert list(results.tables) == ["land_units_tables", "campaign_variables_tables"]
        assert list(results.failures) == ["no_such_tables"]
        assert isinstance(results.failures["no_such_tables"], UnknownSchemaError)

    def test_merge_many_matches_serial(self, merger_factory, schemas, data_dir, vanilla_pack):
        mod = open_pack(write_pack(data_dir / "mod.pack", schemas, tables={
            "land_units_tables": [land_unit("wh_giant", num_men=2)],
            "campaign_variables_tables": [{"variable_key": "max_traits", "value": 7.0, "description": "x"}],
        }))
        merger = merger_factory([vanilla_pack])

        parallel = merger.merge_many(["land_units_tables", "campaign_variables_tables"], [mod], workers=2)

        for name in ("land_units_tables", "campaign_variables_tables"):
            assert parallel.tables[name].to_bytes() == merger.merge(name, [mod]).to_bytes()
