"""
Routing module.

Versioned operation sequences with lead-time, cost and capacity
requirement calculations.
"""

from mfg_modules.routing.models import (
    Operation,
    OperationRates,
    OperationType,
    Routing,
    RoutingCost,
    RoutingStatus,
    WorkCenterRequirement,
)
from mfg_modules.routing.repository import (
    InMemoryRoutingRepository,
    RoutingRepository,
    SqlRoutingRepository,
)
from mfg_modules.routing.service import RoutingManager

__all__ = [
    "InMemoryRoutingRepository",
    "Operation",
    "OperationRates",
    "OperationType",
    "Routing",
    "RoutingCost",
    "RoutingManager",
    "RoutingRepository",
    "RoutingStatus",
    "SqlRoutingRepository",
    "WorkCenterRequirement",
]
