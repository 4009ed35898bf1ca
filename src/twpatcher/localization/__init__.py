"""
Localization: loc merging, clean pass and community translation overlay.
"""

from twpatcher.localization.corpus import (
    TRANSLATIONS_REPO,
    PackTranslation,
    Translation,
    TranslationCorpus,
)
from twpatcher.localization.engine import (
    LocalizationEngine,
    LocLayer,
    MergedLoc,
    clean_pass,
    merge_loc_layers,
)
from twpatcher.localization.tsv import read_loc_tsv, write_loc_tsv

__all__ = [
    "TRANSLATIONS_REPO",
    "PackTranslation",
    "Translation",
    "TranslationCorpus",
    "LocalizationEngine",
    "LocLayer",
    "MergedLoc",
    "clean_pass",
    "merge_loc_layers",
    "read_loc_tsv",
    "write_loc_tsv",
]
