"""
Feature Synthesizer Framework

The set of features is closed: every synthesizer is a member of Feature and
registers one pure function ``(SynthContext) -> EditSet`` together with the
games it supports and the tables it reads. Invoking a feature on a game it
does not support yields an empty EditSet.

Features that read the same tables run one after another in FEATURE_ORDER,
each seeing the edits of the ones before it; the rest run concurrently.
Outputs are always combined in FEATURE_ORDER, never in completion order.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Set, Tuple

from twpatcher.edits import EditSet
from twpatcher.games import GameInfo
from twpatcher.resolver.merger import MergedTable

logger = logging.getLogger(__name__)


class Feature(Enum):
    """Launch options that synthesize patch content."""
    INTRO_SKIP = "skip_intro_videos"
    SCRIPT_LOGGING = "enable_logging"
    TRAIT_LIMIT_REMOVAL = "remove_trait_limit"
    SIEGE_ATTACKER_REMOVAL = "remove_siege_attacker"
    UNIT_MULTIPLIER = "unit_multiplier"
    DEV_UI = "enable_dev_ui"


# Fixed combination order. Later features win on the same key.
FEATURE_ORDER: Tuple[Feature, ...] = (
    Feature.INTRO_SKIP,
    Feature.SCRIPT_LOGGING,
    Feature.TRAIT_LIMIT_REMOVAL,
    Feature.SIEGE_ATTACKER_REMOVAL,
    Feature.UNIT_MULTIPLIER,
    Feature.DEV_UI,
)


@dataclass
class SynthOptions:
    """Tuning inputs for the synthesizers, mostly from config."""
    unit_multiplier: float = 1.0
    curve_exponent: float = 1.0
    scaled_fields: Dict[str, List[str]] = field(default_factory=dict)
    trait_limit_table: str = "campaign_variables_tables"
    trait_limit_variables: List[str] = field(default_factory=lambda: ["max_traits"])
    trait_limit_value: float = 999
    war_machine_classes: List[str] = field(default_factory=list)


@dataclass
class SynthContext:
    """Read-only inputs of one synthesizer run."""
    game: GameInfo
    tables: Mapping[str, MergedTable] = field(default_factory=dict)
    files: Mapping[str, bytes] = field(default_factory=dict)
    options: SynthOptions = field(default_factory=SynthOptions)

    def table(self, name: str) -> Optional[MergedTable]:
        return self.tables.get(name)


SynthFunc = Callable[[SynthContext], EditSet]


@dataclass(frozen=True)
class Synthesizer:
    """Registered implementation of one Feature."""
    feature: Feature
    func: SynthFunc
    games: Optional[FrozenSet[str]]  # None = every game
    tables: Callable[[GameInfo, SynthOptions], Tuple[str, ...]]

    def supports(self, game: GameInfo) -> bool:
        return self.games is None or game.key in self.games

    def run(self, ctx: SynthContext) -> EditSet:
        if not self.supports(ctx.game):
            logger.debug(f"{self.feature.value} is not supported by {ctx.game.key}, skipping")
            return EditSet(producer=self.feature.value)
        return self.func(ctx)


SYNTHESIZERS: Dict[Feature, Synthesizer] = {}


def synthesizer(
    feature: Feature,
    games: Optional[Sequence[str]] = None,
    tables: Callable[[GameInfo, SynthOptions], Tuple[str, ...]] = lambda game, options: (),
) -> Callable[[SynthFunc], SynthFunc]:
    """Register the implementation of a feature."""
    def decorator(func: SynthFunc) -> SynthFunc:
        SYNTHESIZERS[feature] = Synthesizer(
            feature=feature,
            func=func,
            games=frozenset(games) if games is not None else None,
            tables=tables,
        )
        return func
    return decorator


def required_tables(features: Sequence[Feature], game: GameInfo, options: SynthOptions) -> List[str]:
    """Tables the enabled, supported features need merged."""
    names: List[str] = []
    for feature in FEATURE_ORDER:
        if feature not in features:
            continue
        synth = SYNTHESIZERS[feature]
        if synth.supports(game):
            names.extend(synth.tables(game, options))
    return list(dict.fromkeys(names))


def plan_stages(features: Sequence[Feature], game: GameInfo, options: SynthOptions) -> List[List[Feature]]:
    """
    Group enabled features into stages that can run concurrently.

    A feature goes in the stage after the last earlier feature (in
    FEATURE_ORDER) that reads one of its tables, so it sees that feature's
    edits. Features with disjoint tables share a stage.
    """
    stages: List[List[Feature]] = []
    stage_tables: List[Set[str]] = []
    for feature in FEATURE_ORDER:
        if feature not in features:
            continue
        synth = SYNTHESIZERS[feature]
        tables = set(synth.tables(game, options)) if synth.supports(game) else set()
        level = 0
        for index, seen in enumerate(stage_tables):
            if tables & seen:
                level = index + 1
        if level == len(stages):
            stages.append([])
            stage_tables.append(set())
        stages[level].append(feature)
        stage_tables[level] |= tables
    return stages


def run_synthesizers(features: Sequence[Feature], ctx: SynthContext, workers: int = 1) -> List[EditSet]:
    """
    Run the enabled features and return their edit sets in FEATURE_ORDER.

    Each stage reads the merged tables with every earlier stage's edits
    applied, so features touching the same rows build on each other.
    A synthesizer whose table failed to merge is skipped by the caller; here
    every failure propagates.
    """
    enabled = [f for f in FEATURE_ORDER if f in features]
    if not enabled:
        return []

    results: Dict[Feature, EditSet] = {}
    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        for stage in plan_stages(enabled, ctx.game, ctx.options):
            overlay = EditSet(producer="synthesizers")
            for feature in enabled:
                if feature in results:
                    overlay.update(results[feature])
            stage_ctx = replace(ctx, tables=overlay.apply_to(ctx.tables))

            futures = {feature: executor.submit(SYNTHESIZERS[feature].run, stage_ctx) for feature in stage}
            for feature in stage:
                results[feature] = futures[feature].result()

    ordered = [results[feature] for feature in enabled]
    for edits in ordered:
        logger.debug(edits.summary())
    return ordered
