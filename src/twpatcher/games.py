"""
Supported Games

Static per-game facts the pipeline needs: install folder, how the load order
file is stored, which packs name to use for the output, and which intro
assets exist.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple


KEY_PHARAOH_DYNASTIES = "pharaoh_dynasties"
KEY_PHARAOH = "pharaoh"
KEY_WARHAMMER_3 = "warhammer_3"
KEY_TROY = "troy"
KEY_THREE_KINGDOMS = "three_kingdoms"
KEY_WARHAMMER_2 = "warhammer_2"
KEY_WARHAMMER = "warhammer"
KEY_THRONES_OF_BRITANNIA = "thrones_of_britannia"
KEY_ATTILA = "attila"
KEY_ROME_2 = "rome_2"
KEY_SHOGUN_2 = "shogun_2"
KEY_NAPOLEON = "napoleon"
KEY_EMPIRE = "empire"

RESERVED_PACK_NAME = "zzzzzzzzzzzzzzzzzzzzrun_you_fool_thron.pack"
RESERVED_PACK_NAME_ALTERNATIVE = "!!!!!!!!!!!!!!!!!!!!!run_you_fool_thron.pack"

TRANSLATED_LOC_PATH = "text/!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!twpatcher_translated.loc"
TRANSLATED_LOC_PATH_OLD = "text/localisation.loc"

INTRO_MOVIE_KEYS = ("startup_movie_01", "startup_movie_02", "startup_movie_03")


@dataclass(frozen=True)
class GameInfo:
    """Static description of one supported game."""
    key: str
    display_name: str
    install_dir: str
    user_script: Optional[str] = None   # Old games keep the load order in a UTF-16 script file
    reverse_movie_order: bool = False   # Movie packs sort the other way round
    old_multilanguage: bool = False     # Single localisation.loc for all languages
    soft_dependencies: bool = False     # Old games crash with hard dependencies
    intro_videos: Tuple[str, ...] = ()  # Placeholders to overwrite
    intro_video_tables: Tuple[str, ...] = ()  # Tables whose startup rows get redirected
    intro_video_column: Optional[str] = None
    intro_video_append: bool = False    # Append "dummy" instead of replacing the value

    @property
    def reserved_pack_name(self) -> str:
        """File name of the generated pack, chosen to load after everything else."""
        if self.reverse_movie_order:
            return RESERVED_PACK_NAME_ALTERNATIVE
        return RESERVED_PACK_NAME

    @property
    def translated_loc_path(self) -> str:
        return TRANSLATED_LOC_PATH_OLD if self.old_multilanguage else TRANSLATED_LOC_PATH

    @property
    def uses_utf16_load_order(self) -> bool:
        return self.user_script is not None

    def data_path(self, game_path: Path) -> Path:
        return game_path / "data"


GAMES: Dict[str, GameInfo] = {}


def _register(info: GameInfo) -> GameInfo:
    GAMES[info.key] = info
    return info


_register(GameInfo(
    key=KEY_PHARAOH_DYNASTIES,
    display_name="Total War: Pharaoh Dynasties",
    install_dir="Total War PHARAOH DYNASTIES",
    intro_video_tables=("videos_tables", "campaign_videos_tables"),
    intro_video_column="video_name",
    intro_video_append=True,
))
_register(GameInfo(
    key=KEY_PHARAOH,
    display_name="Total War: Pharaoh",
    install_dir="Total War PHARAOH",
    intro_video_tables=("videos_tables", "campaign_videos_tables"),
    intro_video_column="video_name",
    intro_video_append=True,
))
_register(GameInfo(
    key=KEY_WARHAMMER_3,
    display_name="Total War: Warhammer III",
    install_dir="Total War WARHAMMER III",
    intro_videos=(
        "movies/startup_movie_01.ca_vp8",
        "movies/startup_movie_02.ca_vp8",
        "movies/startup_movie_03.ca_vp8",
    ),
))
_register(GameInfo(
    key=KEY_TROY,
    display_name="A Total War Saga: Troy",
    install_dir="Troy",
    intro_video_tables=("videos_tables",),
    intro_video_column="video_name",
))
_register(GameInfo(
    key=KEY_THREE_KINGDOMS,
    display_name="Total War: Three Kingdoms",
    install_dir="Total War THREE KINGDOMS",
    intro_videos=(
        "movies/startup_movie_01.ca_vp8",
        "movies/startup_movie_02.ca_vp8",
    ),
))
_register(GameInfo(
    key=KEY_WARHAMMER_2,
    display_name="Total War: Warhammer II",
    install_dir="Total War WARHAMMER II",
    intro_videos=(
        "movies/startup_movie_01.ca_vp8",
        "movies/startup_movie_02.ca_vp8",
        "movies/startup_movie_03.ca_vp8",
    ),
))
_register(GameInfo(
    key=KEY_WARHAMMER,
    display_name="Total War: Warhammer",
    install_dir="Total War WARHAMMER",
    intro_videos=(
        "movies/startup_movie_01.ca_vp8",
        "movies/startup_movie_02.ca_vp8",
    ),
))
_register(GameInfo(
    key=KEY_THRONES_OF_BRITANNIA,
    display_name="Total War Saga: Thrones of Britannia",
    install_dir="Total War Saga Thrones of Britannia",
    reverse_movie_order=True,
    old_multilanguage=True,
    soft_dependencies=True,
    intro_videos=("movies/intro.ca_vp8", "movies/sega_logo_sting_hd.ca_vp8"),
))
_register(GameInfo(
    key=KEY_ATTILA,
    display_name="Total War: Attila",
    install_dir="Total War Attila",
    reverse_movie_order=True,
    old_multilanguage=True,
    soft_dependencies=True,
    intro_videos=("movies/intro.ca_vp8", "movies/sega_logo_sting_hd.ca_vp8"),
))
_register(GameInfo(
    key=KEY_ROME_2,
    display_name="Total War: Rome II",
    install_dir="Total War Rome II",
    reverse_movie_order=True,
    old_multilanguage=True,
    soft_dependencies=True,
    intro_videos=("movies/intro.ca_vp8", "movies/sega_logo_sting_hd.ca_vp8"),
))
_register(GameInfo(
    key=KEY_SHOGUN_2,
    display_name="Total War: Shogun 2",
    install_dir="Total War SHOGUN 2",
    reverse_movie_order=True,
    old_multilanguage=True,
    soft_dependencies=True,
    intro_videos=("movies/intro.ca_vp8", "movies/sega_logo_sting_hd.ca_vp8"),
))
_register(GameInfo(
    key=KEY_NAPOLEON,
    display_name="Napoleon: Total War",
    install_dir="Napoleon Total War",
    user_script="user.script.txt",
    old_multilanguage=True,
    soft_dependencies=True,
    intro_videos=(
        "movies/corei7_intro.bik",
        "movies/ntw_intro.bik",
        "movies/sega_logo_sting_hd.bik",
    ),
))
_register(GameInfo(
    key=KEY_EMPIRE,
    display_name="Empire: Total War",
    install_dir="Empire Total War",
    user_script="user.empire_script.txt",
    old_multilanguage=True,
    soft_dependencies=True,
    intro_videos=(
        "movies/intro.bik",
        "movies/sega_logo_sting_hd.bik",
    ),
))


def get_game(key: str) -> GameInfo:
    """Look up a game by key. Raises KeyError for unknown games."""
    try:
        return GAMES[key]
    except KeyError:
        raise KeyError(f"Unsupported game '{key}'. Known games: {', '.join(GAMES)}") from None


def game_keys() -> List[str]:
    return list(GAMES)
