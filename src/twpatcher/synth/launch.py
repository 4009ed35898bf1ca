"""
Launch-time tweaks: intro videos, script logging and the developer UI.
"""

import logging

from twpatcher.edits import EditSet
from twpatcher.games import (
    INTRO_MOVIE_KEYS,
    KEY_PHARAOH,
    KEY_PHARAOH_DYNASTIES,
    KEY_TROY,
    KEY_WARHAMMER_2,
    KEY_WARHAMMER_3,
)
from twpatcher.synth.base import Feature, SynthContext, synthesizer
from twpatcher.synth.videos import placeholder_for

logger = logging.getLogger(__name__)

SCRIPT_DEBUG_ACTIVATOR_PATH = "script/enable_console_logging"
SCRIPT_DEBUG_ACTIVATOR_CONTENT = b"why not working?!!"

DUMMY_VIDEO = "dummy"

DEV_ONLY_TRUE = 'is_dev_only="true"'
DEV_ONLY_FALSE = 'is_dev_only="false"'


@synthesizer(
    Feature.INTRO_SKIP,
    tables=lambda game, options: game.intro_video_tables,
)
def intro_skip(ctx: SynthContext) -> EditSet:
    """
    Skip the startup movies.

    Older games get one-frame placeholder videos over their intros. Games that list
    their intros in a videos table get those rows pointed at a missing video.
    """
    game = ctx.game
    edits = EditSet(producer=Feature.INTRO_SKIP.value)

    for path in game.intro_videos:
        edits.set_blob(path, placeholder_for(path))

    for table_name in game.intro_video_tables:
        table = ctx.table(table_name)
        if table is None:
            continue
        column = game.intro_video_column or table.schema.key_fields[0]
        if not table.schema.has_field(column):
            logger.warning(f"{table_name} has no '{column}' column, cannot skip intros there")
            continue
        key_field = table.schema.key_fields[0]
        for row in table:
            if row.get(key_field) not in INTRO_MOVIE_KEYS and row.get(column) not in INTRO_MOVIE_KEYS:
                continue
            new_row = dict(row)
            if game.intro_video_append:
                new_row[column] = f"{row.get(column) or ''}{DUMMY_VIDEO}"
            else:
                new_row[column] = DUMMY_VIDEO
            edits.set_row(table.schema, new_row)

    return edits


@synthesizer(
    Feature.SCRIPT_LOGGING,
    games=(KEY_PHARAOH, KEY_PHARAOH_DYNASTIES, KEY_WARHAMMER_3, KEY_TROY, KEY_WARHAMMER_2),
)
def script_logging(ctx: SynthContext) -> EditSet:
    """The game enables script logging when this file exists."""
    edits = EditSet(producer=Feature.SCRIPT_LOGGING.value)
    edits.set_blob(SCRIPT_DEBUG_ACTIVATOR_PATH, SCRIPT_DEBUG_ACTIVATOR_CONTENT)
    return edits


def enable_dev_only_items(text: str) -> str:
    """Turn dev-only UI components into visible regular ones."""
    new_text = text.replace(DEV_ONLY_TRUE, DEV_ONLY_FALSE)

    # The first visible="false" after each is_dev_only is the component's own flag
    pos = 0
    while True:
        start = new_text.find("is_dev_only", pos)
        if start == -1:
            break
        new_text = new_text[:start] + new_text[start:].replace('visible="false"', 'visible="true"', 1)
        pos = start + 1
    return new_text


@synthesizer(Feature.DEV_UI)
def dev_ui(ctx: SynthContext) -> EditSet:
    edits = EditSet(producer=Feature.DEV_UI.value)
    for path in sorted(ctx.files):
        if not path.startswith("ui/"):
            continue
        try:
            text = ctx.files[path].decode("utf-8")
        except UnicodeDecodeError:
            continue
        if DEV_ONLY_TRUE not in text:
            continue
        edits.set_blob(path, enable_dev_only_items(text).encode("utf-8"))
    logger.info(f"Dev UI: {len(edits.blobs)} ui files patched")
    return edits
