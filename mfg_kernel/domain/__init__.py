"""Pure domain primitives shared by every planning module."""

from mfg_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from mfg_kernel.domain.horizon import (
    BucketSize,
    PlanningHorizon,
    PlanningZone,
    TimeBucket,
    add_months,
)

__all__ = [
    "BucketSize",
    "Clock",
    "DeterministicClock",
    "PlanningHorizon",
    "PlanningZone",
    "SystemClock",
    "TimeBucket",
    "add_months",
]
