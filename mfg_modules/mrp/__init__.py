"""
MRP module.

Requirement, planned order and result records of material requirements
planning, plus its configuration.  The calculation itself lives in
``mfg_services.mrp_engine``.
"""

from mfg_modules.mrp.config import MrpConfig
from mfg_modules.mrp.models import (
    DemandSource,
    DemandSourceType,
    MaterialRequirement,
    MrpResult,
    OrderType,
    PeggingRecord,
    PlannedOrder,
)

__all__ = [
    "DemandSource",
    "DemandSourceType",
    "MaterialRequirement",
    "MrpConfig",
    "MrpResult",
    "OrderType",
    "PeggingRecord",
    "PlannedOrder",
]
