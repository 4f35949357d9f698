"""
Capacity module.

Load, period, profile and resolution-suggestion records for finite
capacity planning, plus the rule constants.  Calculation and resolution
live in ``mfg_services.capacity_planner`` and ``mfg_services.capacity_resolver``.
"""

from mfg_modules.capacity.config import CapacityConfig
from mfg_modules.capacity.models import (
    AutoResolveResult,
    AvailabilityCheck,
    Bottleneck,
    CapacityLoad,
    CapacityPeriod,
    CapacityProfile,
    CapacityResolutionSuggestion,
    ImpactEstimate,
    LoadLevelingMove,
    LoadSourceType,
    MasterScheduleItem,
    OverloadedWorkCenter,
    ProductLoad,
    ResolutionAction,
    ResolutionContext,
    RoughCutItem,
    RoughCutLoad,
    SchedulingImpact,
)

__all__ = [
    "AutoResolveResult",
    "AvailabilityCheck",
    "Bottleneck",
    "CapacityConfig",
    "CapacityLoad",
    "CapacityPeriod",
    "CapacityProfile",
    "CapacityResolutionSuggestion",
    "ImpactEstimate",
    "LoadLevelingMove",
    "LoadSourceType",
    "MasterScheduleItem",
    "OverloadedWorkCenter",
    "ProductLoad",
    "ResolutionAction",
    "ResolutionContext",
    "RoughCutItem",
    "RoughCutLoad",
    "SchedulingImpact",
]
