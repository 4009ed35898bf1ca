"""
Patch Pipeline

One launch of the patcher, end to end:

    resolve load order
      -> reference cache + table merge (parallel, per table)
      -> localization passes
      -> feature synthesizers (parallel, combined in fixed order)
      -> SQL scripts (sequential, per file)
      -> combine edits -> write pack

Per-table and per-script failures become warnings in the report. Resolution
and write failures abort the run.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from twpatcher.assembler import combine, output_path, write_patch
from twpatcher.config import PatcherConfig, get_config
from twpatcher.db import CacheStats, CacheStore, ReferenceCache, VanillaSource, open_store
from twpatcher.edits import EditSet
from twpatcher.errors import DecodeError, PatcherError, ResolutionError
from twpatcher.games import GameInfo, get_game
from twpatcher.localization import LocalizationEngine, LocLayer, TranslationCorpus
from twpatcher.pack import decode_loc
from twpatcher.resolver import LoadOrderResolver, MergeResults, ResolvedLoadOrder, TableMerger
from twpatcher.schema import SchemaProvider
from twpatcher.scripts import ScriptProcessor, ScriptRequest, ScriptResult, parse_script_arg, script_tables
from twpatcher.synth import SYNTHESIZERS, Feature, SynthContext, SynthOptions, run_synthesizers

logger = logging.getLogger(__name__)

UI_PREFIX = "ui/"

# Features that only drop files into the patch and never read mod content
LAUNCH_ONLY_FEATURES = frozenset({Feature.INTRO_SKIP, Feature.SCRIPT_LOGGING})


class LaunchOptions(BaseModel):
    """What the user asked for on this launch."""
    game: str
    load_order_path: Optional[Path] = None
    game_path: Optional[Path] = None
    output_path: Optional[Path] = None
    skip_intro_videos: bool = False
    enable_logging: bool = False
    remove_trait_limit: bool = False
    remove_siege_attacker: bool = False
    enable_dev_ui: bool = False
    unit_multiplier: Optional[float] = Field(default=None, gt=0)
    universal_rebalancer: Optional[str] = None
    translation_language: Optional[str] = None
    sql_scripts: List[str] = Field(default_factory=list)

    def features(self) -> List[Feature]:
        flags = {
            Feature.INTRO_SKIP: self.skip_intro_videos,
            Feature.SCRIPT_LOGGING: self.enable_logging,
            Feature.TRAIT_LIMIT_REMOVAL: self.remove_trait_limit,
            Feature.SIEGE_ATTACKER_REMOVAL: self.remove_siege_attacker,
            Feature.UNIT_MULTIPLIER: self.unit_multiplier is not None and self.unit_multiplier != 1.0,
            Feature.DEV_UI: self.enable_dev_ui,
        }
        return [feature for feature, enabled in flags.items() if enabled]

    def needs_load_order(self) -> bool:
        """True when the run works on mod content, so an empty load order is an error."""
        mod_features = set(self.features()) - LAUNCH_ONLY_FEATURES
        return bool(mod_features or self.sql_scripts or self.translation_language)


@dataclass
class PipelineReport:
    """Result of a run. Warnings list every recoverable failure."""
    game: str
    output_path: Optional[Path] = None
    edits: Optional[EditSet] = None
    warnings: List[str] = field(default_factory=list)
    merge_failures: Dict[str, str] = field(default_factory=dict)
    script_results: List[ScriptResult] = field(default_factory=list)
    cache_stats: Optional[CacheStats] = None

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


def synth_options(config: PatcherConfig, options: LaunchOptions) -> SynthOptions:
    trait_limit = config.trait_limit
    return SynthOptions(
        unit_multiplier=options.unit_multiplier or 1.0,
        curve_exponent=config.curve_exponent,
        scaled_fields=config.scaled_fields,
        trait_limit_table=trait_limit.get("table", "campaign_variables_tables"),
        trait_limit_variables=list(trait_limit.get("variables", [])),
        trait_limit_value=trait_limit.get("value", 999),
        war_machine_classes=config.war_machine_classes,
    )


def resolve_load_order(
    game: GameInfo,
    data_path: Path,
    load_order_path: Optional[Path],
    require_mods: bool = False,
) -> ResolvedLoadOrder:
    """
    Raises:
        ResolutionError: if the data folder or load order file is unusable, or
            the file lists no packs while require_mods is set
    """
    if not data_path.is_dir():
        raise ResolutionError(f"Game data folder not found: {data_path}")
    resolver = LoadOrderResolver(game, data_path)
    if load_order_path is None:
        return resolver.resolve([])
    return resolver.resolve_file(load_order_path, require_mods=require_mods)


def collect_ui_files(source: VanillaSource, resolved: ResolvedLoadOrder) -> Dict[str, bytes]:
    """Winning copy of every ui file across vanilla and the load order."""
    files: Dict[str, bytes] = {}
    for handle in [*source.handles, *resolved.effective()]:
        for path in handle.paths_under(UI_PREFIX):
            files[path] = handle.read_file(path)
    return files


def run_localization(
    game: GameInfo,
    config: PatcherConfig,
    source: VanillaSource,
    resolved: ResolvedLoadOrder,
    language: str,
    report: PipelineReport,
) -> Optional[EditSet]:
    corpus = TranslationCorpus([config.translations_local, config.translations_remote], game.key)
    try:
        vanilla_loc = source.decode_loc()
    except DecodeError as e:
        report.warn(f"Cannot read vanilla loc, skipping translation: {e}")
        return None

    layers = []
    for handle in resolved.effective():
        try:
            layers.append(LocLayer(name=handle.name, entries=decode_loc(handle)))
        except DecodeError as e:
            report.warn(f"Cannot read loc of {handle.name}: {e}")
    return LocalizationEngine(game, corpus).run(vanilla_loc, layers, language)


def run_pipeline(
    options: LaunchOptions,
    config: Optional[PatcherConfig] = None,
    schemas: Optional[SchemaProvider] = None,
    store: Optional[CacheStore] = None,
) -> PipelineReport:
    """
    Build and write the patch pack for one launch.

    Raises:
        ResolutionError: unknown game or unusable load order
        WriteFailure: the pack could not be written
    """
    config = config or get_config()
    try:
        game = get_game(options.game)
    except KeyError:
        raise ResolutionError(f"Unsupported game '{options.game}'") from None

    report = PipelineReport(game=game.key)
    game_path = options.game_path or config.game_path(game.key, game.install_dir)
    data_path = game.data_path(Path(game_path))

    resolved = resolve_load_order(game, data_path, options.load_order_path, options.needs_load_order())
    report.warnings.extend(resolved.warnings)

    schemas = schemas or SchemaProvider.load(config.schema_path)
    owns_store = store is None
    store = store or open_store(config.cache_path)
    try:
        source = VanillaSource(game.key, resolved.vanilla, schemas)
        cache = ReferenceCache(store, source)
        report.cache_stats = cache.stats

        if options.universal_rebalancer:
            report.warn(f"Universal rebalancer ({options.universal_rebalancer}) is not supported, ignoring it")

        features = options.features()
        opts = synth_options(config, options)
        for feature in features:
            if not SYNTHESIZERS[feature].supports(game):
                logger.info(f"{feature.value} is not available for {game.display_name}")

        requests: List[ScriptRequest] = []
        for raw in options.sql_scripts:
            try:
                requests.append(parse_script_arg(raw))
            except ValueError as e:
                report.warn(f"Ignoring script argument: {e}")

        table_names = []
        for feature in features:
            synth = SYNTHESIZERS[feature]
            if synth.supports(game):
                table_names.extend(synth.tables(game, opts))
        table_names.extend(script_tables(requests, schemas.tables(game.key)))

        merger = TableMerger(game.key, schemas, cache, config.tombstone_column)
        merged: MergeResults = merger.merge_many(table_names, resolved.effective(), workers=config.workers)
        for name, error in merged.failures.items():
            report.merge_failures[name] = str(error)
            report.warn(f"Table {name} unavailable: {error}")

        loc_edits = None
        if options.translation_language:
            loc_edits = run_localization(game, config, source, resolved, options.translation_language, report)

        runnable = []
        for feature in features:
            synth = SYNTHESIZERS[feature]
            failed = [t for t in synth.tables(game, opts) if t in merged.failures] if synth.supports(game) else []
            if failed:
                report.warn(f"Skipping {feature.value}: tables failed to merge ({', '.join(failed)})")
                continue
            runnable.append(feature)

        files = collect_ui_files(source, resolved) if Feature.DEV_UI in runnable else {}
        ctx = SynthContext(game=game, tables=merged.tables, files=files, options=opts)
        synth_edits = run_synthesizers(runnable, ctx, workers=config.workers)

        script_edits = []
        if requests:
            # Scripts see the rows as the synthesizers left them
            synthesized = combine(None, synth_edits)
            processor = ScriptProcessor(synthesized.apply_to(merged.tables))
            for result in processor.run_all(requests):
                report.script_results.append(result)
                report.warnings.extend(result.warnings)
                if result.error is not None:
                    report.warn(f"Script {result.name} failed: {result.error}")
                script_edits.append(result.edits)

        edits = combine(loc_edits, synth_edits, script_edits)
        report.edits = edits
        destination = output_path(game, data_path, options.output_path)
        report.output_path = write_patch(edits, game, destination, resolved.pack_names())
    except PatcherError as e:
        logger.error(f"Patching failed during {e.stage}: {e}")
        raise
    finally:
        if owns_store:
            store.close()

    logger.info(f"Patch complete with {len(report.warnings)} warnings")
    return report
