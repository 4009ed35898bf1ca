"""
Text Localization Engine

Works on the loc text of the whole load order, merged the same way tables
are (vanilla first, each pack overriding earlier ones key by key), then:

1. Clean pass: a mod line whose text is identical to vanilla English is
   swapped for the vanilla line in the target language. Mods that ship the
   English loc for keys they never changed stop hiding the translation.
2. Overlay pass: community translations of each pack replace that pack's
   lines. A translation only applies to keys the pack actually wins.
3. Vanilla fixes fill keys still owned by vanilla.
4. Lines missing from the localized vanilla text but present in English are
   added for keys nobody else provides.

Single-file games (Empire to Thrones) get one complete localisation.loc with
the vanilla text underneath.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from twpatcher.edits import EditSet
from twpatcher.games import GameInfo
from twpatcher.localization.corpus import TranslationCorpus
from twpatcher.pack import LocEntry
from twpatcher.resolver.merger import VANILLA_LAYER

logger = logging.getLogger(__name__)

PRODUCER = "localization"


@dataclass
class LocLayer:
    """Loc entries of one pack."""
    name: str
    entries: List[LocEntry]


@dataclass
class MergedLoc:
    """Winning loc entries with the layer that contributed each."""
    entries: Dict[str, LocEntry] = field(default_factory=dict)
    provenance: Dict[str, str] = field(default_factory=dict)

    def copy(self) -> "MergedLoc":
        return MergedLoc(entries=dict(self.entries), provenance=dict(self.provenance))

    def mod_keys(self) -> List[str]:
        return [k for k, layer in self.provenance.items() if layer != VANILLA_LAYER]

    def set(self, entry: LocEntry, layer: str) -> None:
        self.entries[entry.key] = entry
        self.provenance[entry.key] = layer


def _index(entries: Optional[Iterable[LocEntry]]) -> Dict[str, str]:
    return {e.key: e.text for e in entries or ()}


def merge_loc_layers(vanilla: Iterable[LocEntry], layers: Sequence[LocLayer]) -> MergedLoc:
    """Merge loc layers, later layers winning on the same key."""
    merged = MergedLoc()
    for entry in vanilla:
        merged.set(entry, VANILLA_LAYER)
    for layer in layers:
        for entry in layer.entries:
            merged.set(entry, layer.name)
    return merged


def clean_pass(merged: MergedLoc, vanilla_english: Dict[str, str], vanilla_localized: Dict[str, str]) -> MergedLoc:
    """
    Replace mod lines identical to vanilla English with the localized vanilla line.

    Running it again on its own output changes nothing.
    """
    result = merged.copy()
    replaced = 0
    for key in merged.mod_keys():
        entry = merged.entries[key]
        english = vanilla_english.get(key)
        if english is None or entry.text != english:
            continue
        localized = vanilla_localized.get(key)
        if localized is None or localized == entry.text:
            continue
        result.entries[key] = LocEntry(key=key, text=localized, tooltip=entry.tooltip)
        replaced += 1
    logger.debug(f"Clean pass replaced {replaced} lines")
    return result


class LocalizationEngine:
    """Runs the localization passes for one game and language."""

    def __init__(self, game: GameInfo, corpus: Optional[TranslationCorpus] = None):
        self.game = game
        self.corpus = corpus

    def overlay_pass(self, merged: MergedLoc, pack_names: Sequence[str], language: str) -> MergedLoc:
        """Apply community translations, lowest pack first so higher packs win."""
        result = merged.copy()
        if self.corpus is None:
            return result

        for pack_name in pack_names:
            translation = self.corpus.lookup(pack_name, language)
            if translation is None:
                continue
            logger.info(f"  - Translation found for Pack: {pack_name}")
            for entry in translation.entries(fallback_to_original=self.game.old_multilanguage):
                owner = result.provenance.get(entry.key)
                if owner is None or owner == pack_name:
                    current = result.entries.get(entry.key)
                    tooltip = current.tooltip if current else entry.tooltip
                    result.set(LocEntry(key=entry.key, text=entry.text, tooltip=tooltip), pack_name)
        return result

    def apply_vanilla_fixes(self, merged: MergedLoc, language: str) -> MergedLoc:
        result = merged.copy()
        if self.corpus is None:
            return result
        for entry in self.corpus.vanilla_fixes(language):
            if result.provenance.get(entry.key, VANILLA_LAYER) == VANILLA_LAYER:
                result.set(entry, VANILLA_LAYER)
        return result

    def run(
        self,
        vanilla_loc: Sequence[LocEntry],
        layers: Sequence[LocLayer],
        language: str,
    ) -> EditSet:
        """
        Produce the loc edits for the load order.

        Args:
            vanilla_loc: Vanilla text in the installed (target) language
            layers: Loc entries of each data pack, lowest precedence first
            language: Target language code (e.g. "es", "de")
        """
        edits = EditSet(producer=PRODUCER)
        merged = merge_loc_layers(vanilla_loc, layers)
        vanilla_localized = _index(vanilla_loc)

        english_entries = self.corpus.vanilla_english() if self.corpus else None
        vanilla_english = _index(english_entries)
        if english_entries is None:
            logger.warning("No vanilla English reference text available, skipping clean pass")

        cleaned = clean_pass(merged, vanilla_english, vanilla_localized)
        translated = self.overlay_pass(cleaned, [layer.name for layer in layers], language)
        fixed = self.apply_vanilla_fixes(translated, language)

        if self.game.old_multilanguage:
            # The whole file replaces vanilla's, so every line is written
            for entry in fixed.entries.values():
                edits.set_loc(entry)
        else:
            for key, entry in fixed.entries.items():
                changed = vanilla_localized.get(key) != entry.text
                if fixed.provenance[key] != VANILLA_LAYER or changed:
                    edits.set_loc(entry)

            for entry in english_entries or ():
                if not entry.text or entry.key in edits.loc:
                    continue
                if not vanilla_localized.get(entry.key):
                    edits.set_loc(entry)

        logger.info(f"Localization: {len(edits.loc)} lines for language '{language}'")
        return edits
