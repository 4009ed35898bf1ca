"""
Load order resolution and layered table merging.
"""

from twpatcher.resolver.load_order import (
    InstalledContent,
    LoadOrder,
    LoadOrderFile,
    LoadOrderResolver,
    ResolvedLoadOrder,
    parse_load_order,
    read_load_order_file,
)
from twpatcher.resolver.merger import (
    VANILLA_LAYER,
    MergedTable,
    MergeResults,
    TableKey,
    TableMerger,
)

__all__ = [
    # Load order
    "InstalledContent",
    "LoadOrder",
    "LoadOrderFile",
    "LoadOrderResolver",
    "ResolvedLoadOrder",
    "parse_load_order",
    "read_load_order_file",
    # Merging
    "VANILLA_LAYER",
    "MergedTable",
    "MergeResults",
    "TableKey",
    "TableMerger",
]
