"""
Tests for configuration loading and logging setup.
"""

import json
import logging

import yaml

from twpatcher.config import DEFAULT_CONFIG, PatcherConfig, write_default_config
from twpatcher.logs import setup_logging


class TestConfig:

    def test_defaults(self, tmp_path):
        config = PatcherConfig(tmp_path / "missing.yaml")

        assert config.config_path is None
        assert config.workers == DEFAULT_CONFIG["workers"]
        assert config.curve_exponent == 1.0
        assert config.tombstone_column == "__deleted__"

    def test_file_is_deep_merged(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "workers": 2,
            "unit_multiplier": {"curve_exponent": 0.75},
        }), encoding="utf-8")

        config = PatcherConfig(path)

        assert config.config_path == path
        assert config.workers == 2
        assert config.curve_exponent == 0.75
        # Sibling keys of a partially overridden section survive
        assert config.scaled_fields == DEFAULT_CONFIG["unit_multiplier"]["scaled_fields"]

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TWPATCHER_CACHE_PATH", str(tmp_path / "c.db"))
        monkeypatch.setenv("TWPATCHER_GAME_PATH", str(tmp_path / "game"))

        config = PatcherConfig(tmp_path / "missing.yaml")

        assert config.cache_path == tmp_path / "c.db"
        assert config.game_path("warhammer_3", "Total War WARHAMMER III") == tmp_path / "game"

    def test_configured_game_path(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TWPATCHER_GAME_PATH", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"game_paths": {"troy": str(tmp_path / "troy")}}), encoding="utf-8")

        assert PatcherConfig(path).game_path("troy", "Troy") == tmp_path / "troy"

    def test_invalid_yaml_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("workers: [unclosed", encoding="utf-8")

        config = PatcherConfig(path)

        assert config.config_path is None
        assert config.workers == DEFAULT_CONFIG["workers"]

    def test_write_default_config(self, tmp_path):
        path = write_default_config(tmp_path / "sub" / "config.yaml")

        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)

        assert data["workers"] == DEFAULT_CONFIG["workers"]
        assert PatcherConfig(path).config_path == path


class TestLogging:

    def test_jsonl_file(self, tmp_path):
        log_path = tmp_path / "logs" / "run.jsonl"
        logger = setup_logging(verbose=True, log_path=log_path)

        logging.getLogger("twpatcher.test").info("hello")
        for handler in logger.handlers:
            handler.flush()

        lines = log_path.read_text(encoding="utf-8").splitlines()
        record = json.loads(lines[-1])
        assert record["level"] == "INFO"
        assert record["logger"] == "twpatcher.test"
        assert record["msg"] == "hello"

        setup_logging()

    def test_setup_does_not_stack_handlers(self):
        setup_logging()
        logger = setup_logging()

        assert len(logger.handlers) == 1
