"""
Capacity Planning Configuration Schema.

Rule constants for overload detection and resolution.
"""

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Self

from mfg_kernel.logging_config import get_logger

logger = get_logger("modules.capacity.config")

_DECIMAL_FIELDS = (
    "max_overtime_hours_per_day",
    "overtime_cost_per_hour",
    "shift_cost_per_hour",
    "split_resolution_ratio",
    "subcontract_cost_per_hour",
    "max_overtime_hours",
    "bottleneck_threshold",
)


@dataclass
class CapacityConfig:
    """
    Configuration schema for capacity planning and resolution.

        config = CapacityConfig(overtime_cost_per_hour=Decimal("90"))
    """

    # Overtime
    max_overtime_hours_per_day: Decimal = Decimal("4")
    overtime_cost_per_hour: Decimal = Decimal("75")
    max_overtime_hours: Decimal = Decimal("24")  # per applied suggestion

    # Extra shift and subcontracting estimates
    shift_cost_per_hour: Decimal = Decimal("50")
    subcontract_cost_per_hour: Decimal = Decimal("100")

    # Share of the excess a split is assumed to resolve
    split_resolution_ratio: Decimal = Decimal("0.5")

    max_reschedule_delay_days: int = 30

    # Utilization ratio at or above which a period is a bottleneck
    bottleneck_threshold: Decimal = Decimal("0.9")

    resolution_window_days: int = 30
    availability_search_days: int = 365

    def __post_init__(self):
        for name in _DECIMAL_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                setattr(self, name, Decimal(str(value)))

        if self.max_overtime_hours_per_day < 0 or self.max_overtime_hours < 0:
            raise ValueError("Overtime limits cannot be negative")
        if not (Decimal("0") < self.split_resolution_ratio <= Decimal("1")):
            raise ValueError("split_resolution_ratio must be in (0, 1]")
        if self.bottleneck_threshold <= 0:
            raise ValueError("bottleneck_threshold must be positive")
        if self.max_reschedule_delay_days < 0:
            raise ValueError("max_reschedule_delay_days cannot be negative")
        if self.resolution_window_days < 1 or self.availability_search_days < 1:
            raise ValueError("Search windows must be at least one day")

        logger.info(
            "capacity_config_initialized",
            extra={
                "max_overtime_hours_per_day": str(self.max_overtime_hours_per_day),
                "overtime_cost_per_hour": str(self.overtime_cost_per_hour),
                "max_reschedule_delay_days": self.max_reschedule_delay_days,
                "bottleneck_threshold": str(self.bottleneck_threshold),
                "resolution_window_days": self.resolution_window_days,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("capacity_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from YAML)."""
        logger.info(
            "capacity_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown capacity config keys: {sorted(unknown)}")
        return cls(**data)
