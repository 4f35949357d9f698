"""
mfg_services -- Package init and public API.

Responsibility:
    Cross-module orchestration: MRP over BOMs and inventory/demand data,
    capacity planning over work centers, work orders and routings, and
    capacity resolution acting on both.

Architecture position:
    Services -- composes mfg_modules managers with mfg_engines calculators.
        mfg_services/ -> mfg_modules/, mfg_engines/, mfg_kernel/ (allowed)
        mfg_modules/  -> mfg_services/                           (FORBIDDEN)
"""

from mfg_services.capacity_planner import CapacityPlanner
from mfg_services.capacity_resolver import CapacityResolver
from mfg_services.mrp_engine import MrpEngine
from mfg_services.providers import (
    DemandDataProvider,
    InMemoryDemandProvider,
    InMemoryInventoryProvider,
    InventoryDataProvider,
)

__all__ = [
    "CapacityPlanner",
    "CapacityResolver",
    "DemandDataProvider",
    "InMemoryDemandProvider",
    "InMemoryInventoryProvider",
    "InventoryDataProvider",
    "MrpEngine",
]
