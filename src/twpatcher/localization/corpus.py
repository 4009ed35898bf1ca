"""
Community Translation Corpus

Read-only access to translation documents already on disk. Two roots are
searched: the user's local translations, then the checked-out community
repository. The first document found wins.

Layout under each root:

    <game_key>/<pack_name>/<language>.json       per-pack translations
    <game_key>/vanilla_english.tsv               vanilla English text
    <game_key>/vanilla_fixes_<language>.tsv      fixes to vanilla translations

Fetching or refreshing the repository is not done here.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from twpatcher.localization.tsv import read_loc_tsv
from twpatcher.pack import LocEntry

logger = logging.getLogger(__name__)

TRANSLATIONS_REPO = "https://github.com/Frodo45127/total_war_translation_hub"
VANILLA_LOC_NAME = "vanilla_english.tsv"
VANILLA_FIXES_PREFIX = "vanilla_fixes_"


class Translation(BaseModel):
    """
    One translated line.

    Attributes:
        key: Loc key
        value_original: English text the translation was made from
        value_translated: Translated text, empty if nobody translated it yet
        needs_retranslation: The English text changed after translating
        removed: The key no longer exists in the pack
    """
    key: str
    value_original: str = ""
    value_translated: str = ""
    needs_retranslation: bool = False
    removed: bool = False


class PackTranslation(BaseModel):
    """All translations of one pack into one language."""
    language: str
    pack_name: str
    translations: Dict[str, Translation] = Field(default_factory=dict)

    def entries(self, fallback_to_original: bool = False) -> List[LocEntry]:
        """
        Loc entries this translation contributes.

        Lines with an up-to-date translation use it. Otherwise, when
        fallback_to_original is set, the English text is used so single-file
        games still get the line.
        """
        result = []
        for tr in self.translations.values():
            if tr.removed:
                continue
            if tr.value_translated and not tr.needs_retranslation:
                result.append(LocEntry(key=tr.key, text=tr.value_translated))
            elif fallback_to_original and tr.value_original:
                result.append(LocEntry(key=tr.key, text=tr.value_original))
        return result


class TranslationCorpus:
    """Looks up translations for (pack, language) pairs of one game."""

    def __init__(self, roots: Sequence[Path], game_key: str):
        self.roots = [Path(r) for r in roots]
        self.game_key = game_key

    def _candidates(self, *parts: str) -> List[Path]:
        return [root.joinpath(self.game_key, *parts) for root in self.roots]

    def lookup(self, pack_name: str, language: str) -> Optional[PackTranslation]:
        """First valid translation document for a pack, or None."""
        for path in self._candidates(pack_name, f"{language}.json"):
            if not path.is_file():
                continue
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                return PackTranslation.model_validate(data)
            except (OSError, ValueError, ValidationError) as e:
                logger.warning(f"Ignoring unreadable translation {path}: {e}")
        return None

    def vanilla_english(self) -> Optional[List[LocEntry]]:
        """Vanilla English text, from the lowest-priority root that has it."""
        for path in reversed(self._candidates(VANILLA_LOC_NAME)):
            if path.is_file():
                return read_loc_tsv(path)
        return None

    def vanilla_fixes(self, language: str) -> List[LocEntry]:
        for path in reversed(self._candidates(f"{VANILLA_FIXES_PREFIX}{language}.tsv")):
            if path.is_file():
                return read_loc_tsv(path)
        return []
