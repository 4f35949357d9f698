"""
MRP Configuration Schema.

Defines the structure and defaults for material requirements planning.
"""

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Self

from mfg_engines.lot_sizing import LotSizer, LotSizingStrategy
from mfg_kernel.logging_config import get_logger

logger = get_logger("modules.mrp.config")

_DECIMAL_FIELDS = (
    "eoq_ordering_cost",
    "eoq_holding_cost",
    "luc_ordering_cost",
    "luc_holding_cost_rate",
    "annual_demand_multiplier",
)


@dataclass
class MrpConfig:
    """
    Configuration schema for MRP runs.

        config = MrpConfig(max_explosion_level=5, default_lead_time_days=2)
    """

    # Multi-level netting stops (with a warning) below this BOM level
    max_explosion_level: int = 10

    # Substituted when the inventory provider reports a zero lead time
    default_lead_time_days: int = 1

    # Horizon length used by net_change()
    net_change_horizon_days: int = 90

    default_lot_sizing: LotSizingStrategy = LotSizingStrategy.LOT_FOR_LOT

    # Economic order quantity defaults
    eoq_ordering_cost: Decimal = Decimal("100")
    eoq_holding_cost: Decimal = Decimal("10")
    annual_demand_multiplier: Decimal = Decimal("12")

    # Least unit cost defaults
    luc_ordering_cost: Decimal = Decimal("50")
    luc_holding_cost_rate: Decimal = Decimal("0.25")

    def __post_init__(self):
        for name in _DECIMAL_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                setattr(self, name, Decimal(str(value)))
        self.default_lot_sizing = LotSizingStrategy(self.default_lot_sizing)

        if self.max_explosion_level < 1:
            raise ValueError("max_explosion_level must be at least 1")
        if self.default_lead_time_days < 1:
            raise ValueError("default_lead_time_days must be at least 1")
        if self.net_change_horizon_days < 1:
            raise ValueError("net_change_horizon_days must be at least 1")
        if self.eoq_holding_cost <= 0:
            raise ValueError("eoq_holding_cost must be positive")
        if self.eoq_ordering_cost < 0 or self.luc_ordering_cost < 0:
            raise ValueError("ordering costs cannot be negative")

        logger.info(
            "mrp_config_initialized",
            extra={
                "max_explosion_level": self.max_explosion_level,
                "default_lead_time_days": self.default_lead_time_days,
                "net_change_horizon_days": self.net_change_horizon_days,
                "default_lot_sizing": self.default_lot_sizing.value,
            },
        )

    def lot_sizer(self) -> LotSizer:
        """A LotSizer carrying this configuration's cost defaults."""
        return LotSizer(
            eoq_ordering_cost=self.eoq_ordering_cost,
            eoq_holding_cost=self.eoq_holding_cost,
            luc_ordering_cost=self.luc_ordering_cost,
            luc_holding_cost_rate=self.luc_holding_cost_rate,
            annual_demand_multiplier=self.annual_demand_multiplier,
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("mrp_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from YAML)."""
        logger.info(
            "mrp_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown MRP config keys: {sorted(unknown)}")
        return cls(**data)
