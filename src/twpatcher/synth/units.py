"""
Unit and campaign table synthesizers.
"""

import logging
import math
from typing import Any, Dict

from twpatcher.edits import EditSet
from twpatcher.games import KEY_THREE_KINGDOMS, KEY_WARHAMMER_3
from twpatcher.synth.base import Feature, SynthContext, synthesizer

logger = logging.getLogger(__name__)

LAND_UNITS = "land_units_tables"
MAIN_UNITS = "main_units_tables"
LINK_FIELD = "land_unit"
COUNT_FIELD = "num_men"
HEALTH_FIELD = "bonus_hit_points"
CLASS_FIELD = "class"
SIEGE_FIELD = "can_siege"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _scale_count(count: int, factor: float) -> int:
    return max(1, _round_half_up(count * factor))


def parse_factor(value: Any) -> float:
    """Accept "1.5", 1.5 or 2. Raises ValueError for non-positive or junk input."""
    factor = float(value)
    if not math.isfinite(factor) or factor <= 0:
        raise ValueError(f"Unit multiplier must be a positive number, got {value!r}")
    return factor


def balance_curve(factor: float, exponent: float) -> float:
    """Scale applied to difficulty-dependent fields. The exponent is a tuned constant."""
    return factor ** exponent


@synthesizer(
    Feature.UNIT_MULTIPLIER,
    games=(KEY_WARHAMMER_3, KEY_THREE_KINGDOMS),
    tables=lambda game, options: (LAND_UNITS, MAIN_UNITS, *options.scaled_fields.keys()),
)
def unit_multiplier(ctx: SynthContext) -> EditSet:
    """
    Scale unit sizes.

    Multi-entity units get more entities; single-entity units get more
    health instead. The entity count lives in main_units_tables, each row
    linked to its land unit; land units no main unit links to fall back to
    their own count. Configured difficulty-dependent fields are scaled by
    the balance curve so relative strength stays the same.
    """
    edits = EditSet(producer=Feature.UNIT_MULTIPLIER.value)
    factor = parse_factor(ctx.options.unit_multiplier)
    curve = balance_curve(factor, ctx.options.curve_exponent)

    # land unit key -> entity count taken from its main unit
    linked_counts: Dict[Any, int] = {}
    main_units = ctx.table(MAIN_UNITS)
    if main_units is not None:
        for row in main_units:
            count = int(row.get(COUNT_FIELD) or 0)
            if row.get(LINK_FIELD):
                linked_counts[row[LINK_FIELD]] = count
            if count > 1:
                new_row = dict(row)
                new_row[COUNT_FIELD] = _scale_count(count, factor)
                edits.set_row(main_units.schema, new_row)

    land_units = ctx.table(LAND_UNITS)
    if land_units is not None:
        key_field = land_units.schema.key_fields[0]
        for row in land_units:
            new_row = dict(row)
            own_count = int(row.get(COUNT_FIELD) or 0)
            count = linked_counts.get(row.get(key_field), own_count)
            if count > 1:
                if own_count > 1:
                    new_row[COUNT_FIELD] = _scale_count(own_count, factor)
            elif land_units.schema.has_field(HEALTH_FIELD):
                new_row[HEALTH_FIELD] = _round_half_up(int(row.get(HEALTH_FIELD) or 0) * factor)
            if new_row != row:
                edits.set_row(land_units.schema, new_row)

    for table_name, field_names in ctx.options.scaled_fields.items():
        table = ctx.table(table_name)
        if table is None:
            continue
        for row in table:
            # Start from any edit already made to this row above
            current = edits.tables.get(table_name, {}).get(table.key_of(row), row)
            new_row = dict(current)
            for name in field_names:
                if name in new_row and isinstance(new_row[name], (int, float)) and not isinstance(new_row[name], bool):
                    scaled = new_row[name] * curve
                    new_row[name] = _round_half_up(scaled) if isinstance(new_row[name], int) else scaled
            if new_row != current:
                edits.set_row(table.schema, new_row)

    logger.info(f"Unit multiplier x{factor}: {edits.row_count()} rows changed")
    return edits


@synthesizer(
    Feature.TRAIT_LIMIT_REMOVAL,
    games=(KEY_WARHAMMER_3,),
    tables=lambda game, options: (options.trait_limit_table,),
)
def trait_limit_removal(ctx: SynthContext) -> EditSet:
    """Set the variables capping character traits to an effectively unlimited value."""
    edits = EditSet(producer=Feature.TRAIT_LIMIT_REMOVAL.value)
    options = ctx.options
    table = ctx.table(options.trait_limit_table)
    if table is None:
        return edits

    key_field = table.schema.key_fields[0]
    value_field = "value"
    if not table.schema.has_field(value_field):
        logger.warning(f"{options.trait_limit_table} has no 'value' column, cannot remove trait limit")
        return edits

    value_type = table.schema.field_type(value_field)
    for row in table:
        if row.get(key_field) in options.trait_limit_variables:
            new_row = dict(row)
            new_row[value_field] = value_type.coerce(options.trait_limit_value)
            edits.set_row(table.schema, new_row)
    return edits


@synthesizer(
    Feature.SIEGE_ATTACKER_REMOVAL,
    games=(KEY_WARHAMMER_3,),
    tables=lambda game, options: (LAND_UNITS,),
)
def siege_attacker_removal(ctx: SynthContext) -> EditSet:
    """Only war machines keep the ability to attack walls without siege equipment."""
    edits = EditSet(producer=Feature.SIEGE_ATTACKER_REMOVAL.value)
    table = ctx.table(LAND_UNITS)
    if table is None or not table.schema.has_field(SIEGE_FIELD):
        return edits

    war_machines = set(ctx.options.war_machine_classes)
    for row in table:
        if row.get(CLASS_FIELD) in war_machines or not row.get(SIEGE_FIELD):
            continue
        new_row = dict(row)
        new_row[SIEGE_FIELD] = False
        edits.set_row(table.schema, new_row)
    return edits
