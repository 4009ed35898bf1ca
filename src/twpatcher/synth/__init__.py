"""
Feature synthesizers.

Importing this package registers every Feature implementation.
"""

from twpatcher.synth.base import (
    FEATURE_ORDER,
    SYNTHESIZERS,
    Feature,
    SynthContext,
    Synthesizer,
    SynthOptions,
    plan_stages,
    required_tables,
    run_synthesizers,
)
from twpatcher.synth import launch, units  # noqa: F401  (registration)
from twpatcher.synth.launch import enable_dev_only_items
from twpatcher.synth.units import balance_curve, parse_factor

__all__ = [
    "FEATURE_ORDER",
    "SYNTHESIZERS",
    "Feature",
    "SynthContext",
    "Synthesizer",
    "SynthOptions",
    "plan_stages",
    "required_tables",
    "run_synthesizers",
    "enable_dev_only_items",
    "balance_curve",
    "parse_factor",
]
