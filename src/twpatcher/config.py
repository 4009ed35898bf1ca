"""
Patcher Configuration

Loads configuration from YAML file or environment variables.
Game install paths, cache location, translation corpus roots and the tuned
constants used by the feature synthesizers all live here.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)


# Default configuration file locations (checked in order)
CONFIG_SEARCH_PATHS = [
    Path.home() / ".twpatcher" / "config.yaml",
    Path(__file__).parent / "config.yaml",
]


DEFAULT_CONFIG: Dict[str, Any] = {
    # Explicit install folder per game key. Empty means auto-detect.
    "game_paths": {},

    # Steam library roots used for auto-detection
    "steam_library_paths": [
        r"C:\Program Files (x86)\Steam",
        r"C:\Program Files\Steam",
        r"D:\Steam",
        r"D:\SteamLibrary",
        r"E:\Steam",
        r"E:\SteamLibrary",
    ],

    "cache_path": str(Path.home() / ".twpatcher" / "reference_cache.db"),
    "schema_path": None,  # None = bundled schemas.yaml
    "translations_local": str(Path.home() / ".twpatcher" / "translations_local"),
    "translations_remote": str(Path.home() / ".twpatcher" / "translations_remote"),
    "log_path": None,

    # Runtime
    "workers": 4,
    "tombstone_column": "__deleted__",

    # Unit multiplier tuning. Difficulty-dependent fields are scaled by
    # factor ** curve_exponent.
    "unit_multiplier": {
        "curve_exponent": 1.0,
        "scaled_fields": {
            "land_units_tables": ["damage_mod_flat", "ranged_damage_mod"],
        },
    },

    "trait_limit": {
        "table": "campaign_variables_tables",
        "variables": ["max_traits", "max_character_traits"],
        "value": 999,
    },

    "siege_attacker": {
        "war_machine_classes": ["art_fix", "art_fld", "art_siege", "siege_tower", "ram"],
    },
}


def _deep_update(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_update(base[key], value)
        else:
            base[key] = value


class PatcherConfig:
    """Configuration for the patcher."""

    def __init__(self, config_path: Optional[Path] = None):
        self._config: Dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)
        self._config_path: Optional[Path] = None

        self._load_config(config_path)
        self._apply_env_overrides()

    def _load_config(self, explicit_path: Optional[Path] = None) -> None:
        """Load configuration from YAML file."""
        search_paths = [explicit_path] if explicit_path else CONFIG_SEARCH_PATHS

        for config_path in search_paths:
            if config_path and config_path.exists():
                try:
                    with open(config_path, 'r', encoding='utf-8') as f:
                        user_config = yaml.safe_load(f) or {}
                except (OSError, yaml.YAMLError) as e:
                    logger.warning(f"Failed to load config from {config_path}: {e}")
                    continue
                if not isinstance(user_config, dict):
                    logger.warning(f"Ignoring config {config_path}: top level must be a mapping")
                    continue
                _deep_update(self._config, user_config)
                self._config_path = config_path
                return

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        env_mappings = {
            "TWPATCHER_CACHE_PATH": "cache_path",
            "TWPATCHER_SCHEMA_PATH": "schema_path",
            "TWPATCHER_TRANSLATIONS_LOCAL": "translations_local",
            "TWPATCHER_TRANSLATIONS_REMOTE": "translations_remote",
            "TWPATCHER_LOG_PATH": "log_path",
        }

        for env_var, config_key in env_mappings.items():
            if env_var in os.environ:
                self._config[config_key] = os.environ[env_var]

        # TWPATCHER_GAME_PATH applies to whichever game is requested
        if "TWPATCHER_GAME_PATH" in os.environ:
            self._config["game_path_override"] = os.environ["TWPATCHER_GAME_PATH"]

    @property
    def config_path(self) -> Optional[Path]:
        """Path to loaded config file, or None if using defaults."""
        return self._config_path

    def game_path(self, game_key: str, install_dir: str) -> Path:
        """Install folder of a game. Falls back to the Steam libraries."""
        override = self._config.get("game_path_override")
        if override:
            return Path(override)

        configured = self._config.get("game_paths", {}).get(game_key)
        if configured:
            return Path(configured)

        for steam_lib in self._config.get("steam_library_paths", []):
            candidate = Path(steam_lib) / "steamapps" / "common" / install_dir
            if candidate.exists():
                return candidate

        # Nothing found; return the first candidate so errors name a real path
        libs = self._config.get("steam_library_paths") or [r"C:\Program Files (x86)\Steam"]
        return Path(libs[0]) / "steamapps" / "common" / install_dir

    @property
    def cache_path(self) -> Path:
        return Path(self._config["cache_path"]).expanduser()

    @property
    def schema_path(self) -> Optional[Path]:
        value = self._config.get("schema_path")
        return Path(value).expanduser() if value else None

    @property
    def translations_local(self) -> Path:
        return Path(self._config["translations_local"]).expanduser()

    @property
    def translations_remote(self) -> Path:
        return Path(self._config["translations_remote"]).expanduser()

    @property
    def log_path(self) -> Optional[Path]:
        value = self._config.get("log_path")
        return Path(value).expanduser() if value else None

    @property
    def workers(self) -> int:
        """Worker threads for table merges and synthesizers."""
        return max(1, int(self._config.get("workers", 4)))

    @property
    def tombstone_column(self) -> str:
        return self._config.get("tombstone_column", "__deleted__")

    @property
    def curve_exponent(self) -> float:
        return float(self._config["unit_multiplier"].get("curve_exponent", 1.0))

    @property
    def scaled_fields(self) -> Dict[str, List[str]]:
        return dict(self._config["unit_multiplier"].get("scaled_fields", {}))

    @property
    def trait_limit(self) -> Dict[str, Any]:
        return dict(self._config["trait_limit"])

    @property
    def war_machine_classes(self) -> List[str]:
        return list(self._config["siege_attacker"].get("war_machine_classes", []))

    def to_dict(self) -> Dict[str, Any]:
        """Export current configuration as dict."""
        data = copy.deepcopy(self._config)
        data["config_file"] = str(self._config_path) if self._config_path else None
        return data


# Global config instance (lazy-loaded)
_config: Optional[PatcherConfig] = None


def get_config(config_path: Optional[Path] = None) -> PatcherConfig:
    """Get the global config instance, loading if needed."""
    global _config
    if _config is None or config_path is not None:
        _config = PatcherConfig(config_path)
    return _config


def write_default_config(path: Optional[Path] = None) -> Path:
    """
    Write a default configuration file.

    Returns the path where config was written.
    """
    if path is None:
        path = Path.home() / ".twpatcher" / "config.yaml"

    path.parent.mkdir(parents=True, exist_ok=True)

    header = (
        "# twpatcher configuration\n"
        "#\n"
        "# Any setting here can also be overridden via TWPATCHER_* environment variables.\n"
        "# game_paths maps a game key (e.g. warhammer_3) to its install folder.\n\n"
    )
    with open(path, 'w', encoding='utf-8') as f:
        f.write(header)
        yaml.safe_dump(DEFAULT_CONFIG, f, default_flow_style=False, sort_keys=False)

    return path
