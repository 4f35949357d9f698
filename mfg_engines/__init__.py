"""
Module: mfg_engines
Responsibility:
    Package entrypoint re-exporting the pure planning calculators.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import mfg_kernel (and sibling engine modules).
    MUST NOT import mfg_modules or mfg_services.

Invariants enforced:
    - Purity: engines never read the clock; dates are passed in.
    - Decimal-only arithmetic for quantities.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from mfg_engines import LotSizer, LotSizingStrategy, NettingEngine
"""

from mfg_engines.lot_sizing import (
    LotSizer,
    LotSizingParameters,
    LotSizingStrategy,
    economic_order_quantity,
)
from mfg_engines.netting import (
    DatedQuantity,
    InventoryPosition,
    NetPeriod,
    NettingEngine,
    aggregate_gross_requirements,
)
from mfg_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "DatedQuantity",
    "InventoryPosition",
    "LotSizer",
    "LotSizingParameters",
    "LotSizingStrategy",
    "NetPeriod",
    "NettingEngine",
    "aggregate_gross_requirements",
    "compute_input_fingerprint",
    "economic_order_quantity",
    "traced_engine",
]
