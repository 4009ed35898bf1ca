"""
Tests for loc merging, the clean pass and translation overlays.
"""

import json

from twpatcher.games import get_game
from twpatcher.localization import (
    LocalizationEngine,
    LocLayer,
    TranslationCorpus,
    clean_pass,
    merge_loc_layers,
    read_loc_tsv,
    write_loc_tsv,
)
from twpatcher.pack import LocEntry
from twpatcher.resolver import VANILLA_LAYER


def write_translation(root, game_key, pack_name, language, lines):
    path = root / game_key / pack_name / f"{language}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    doc = {
        "language": language,
        "pack_name": pack_name,
        "translations": {
            key: {"key": key, "value_original": "", "value_translated": text}
            for key, text in lines.items()
        },
    }
    path.write_text(json.dumps(doc), encoding="utf-8")


class TestCleanPass:

    def test_replaces_untouched_english(self):
        merged = merge_loc_layers(
            [LocEntry("k1", "Lanceros"), LocEntry("k2", "Arqueros")],
            [LocLayer("mod.pack", [LocEntry("k1", "Spearmen"), LocEntry("k2", "Better Archers")])],
        )
        english = {"k1": "Spearmen", "k2": "Archers"}
        localized = {"k1": "Lanceros", "k2": "Arqueros"}

        cleaned = clean_pass(merged, english, localized)

        assert cleaned.entries["k1"].text == "Lanceros"
        # The mod really changed k2, so its text stays
        assert cleaned.entries["k2"].text == "Better Archers"

    def test_idempotent(self):
        merged = merge_loc_layers(
            [LocEntry("k1", "Lanceros")],
            [LocLayer("mod.pack", [LocEntry("k1", "Spearmen"), LocEntry("k3", "New")])],
        )
        english = {"k1": "Spearmen"}
        localized = {"k1": "Lanceros"}

        once = clean_pass(merged, english, localized)
        twice = clean_pass(once, english, localized)

        assert once.entries == twice.entries
        assert once.provenance == twice.provenance

    def test_vanilla_keys_untouched(self):
        merged = merge_loc_layers([LocEntry("k1", "Spearmen")], [])

        cleaned = clean_pass(merged, {"k1": "Spearmen"}, {"k1": "Lanceros"})

        assert cleaned.entries["k1"].text == "Spearmen"


class TestOverlay:

    def test_translation_applies_only_to_keys_the_pack_wins(self, tmp_path):
        local = tmp_path / "local"
        write_translation(local, "warhammer_3", "a.pack", "es", {"k1": "A-es", "k2": "A2-es"})
        corpus = TranslationCorpus([local], "warhammer_3")
        engine = LocalizationEngine(get_game("warhammer_3"), corpus)

        merged = merge_loc_layers([], [
            LocLayer("a.pack", [LocEntry("k1", "A"), LocEntry("k2", "A2")]),
            LocLayer("b.pack", [LocEntry("k2", "B2")]),
        ])
        result = engine.overlay_pass(merged, ["a.pack", "b.pack"], "es")

        assert result.entries["k1"].text == "A-es"
        assert result.entries["k2"].text == "B2"

    def test_local_root_beats_remote(self, tmp_path):
        local, remote = tmp_path / "local", tmp_path / "remote"
        write_translation(local, "troy", "a.pack", "de", {"k": "lokal"})
        write_translation(remote, "troy", "a.pack", "de", {"k": "remote"})

        found = TranslationCorpus([local, remote], "troy").lookup("a.pack", "de")

        assert found.translations["k"].value_translated == "lokal"

    def test_broken_document_is_skipped(self, tmp_path):
        local, remote = tmp_path / "local", tmp_path / "remote"
        bad = local / "troy" / "a.pack" / "de.json"
        bad.parent.mkdir(parents=True)
        bad.write_text("{not json", encoding="utf-8")
        write_translation(remote, "troy", "a.pack", "de", {"k": "remote"})

        found = TranslationCorpus([local, remote], "troy").lookup("a.pack", "de")

        assert found.translations["k"].value_translated == "remote"


class TestEngine:

    def test_run_emits_mod_and_cleaned_lines(self, tmp_path):
        remote = tmp_path / "remote"
        write_loc_tsv(remote / "warhammer_3" / "vanilla_english.tsv", [
            LocEntry("k1", "Spearmen"),
            LocEntry("k_new", "Only in English"),
        ])
        engine = LocalizationEngine(get_game("warhammer_3"), TranslationCorpus([remote], "warhammer_3"))

        edits = engine.run(
            [LocEntry("k1", "Lanceros"), LocEntry("k_vanilla", "Igual")],
            [LocLayer("mod.pack", [LocEntry("k1", "Spearmen"), LocEntry("k_mod", "Mod line")])],
            "es",
        )

        assert edits.loc["k1"].text == "Lanceros"
        assert edits.loc["k_mod"].text == "Mod line"
        assert edits.loc["k_new"].text == "Only in English"
        assert "k_vanilla" not in edits.loc

    def test_vanilla_fixes_only_touch_vanilla_keys(self, tmp_path):
        remote = tmp_path / "remote"
        write_loc_tsv(remote / "warhammer_3" / "vanilla_fixes_es.tsv", [
            LocEntry("k_vanilla", "Arreglado"),
            LocEntry("k_mod", "No"),
        ])
        engine = LocalizationEngine(get_game("warhammer_3"), TranslationCorpus([remote], "warhammer_3"))
        merged = merge_loc_layers(
            [LocEntry("k_vanilla", "Roto"), LocEntry("k_mod", "Vanilla")],
            [LocLayer("mod.pack", [LocEntry("k_mod", "Mod")])],
        )

        fixed = engine.apply_vanilla_fixes(merged, "es")

        assert fixed.entries["k_vanilla"].text == "Arreglado"
        assert fixed.provenance["k_vanilla"] == VANILLA_LAYER
        assert fixed.entries["k_mod"].text == "Mod"

    def test_old_games_write_every_line(self):
        engine = LocalizationEngine(get_game("attila"))

        edits = engine.run([LocEntry("a", "A"), LocEntry("b", "B")], [], "en")

        assert sorted(edits.loc) == ["a", "b"]


class TestTsv:

    def test_escapes(self, tmp_path):
        path = tmp_path / "loc.tsv"
        entries = [LocEntry("k", "line one\nline\ttwo", tooltip=True)]

        write_loc_tsv(path, entries)

        assert read_loc_tsv(path) == entries
