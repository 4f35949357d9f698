"""
Demand Forecasting Configuration Schema.
"""

from dataclasses import dataclass, fields
from typing import Self

from mfg_kernel.logging_config import get_logger

logger = get_logger("modules.forecasting.config")


@dataclass
class ForecastConfig:
    """
    Fallback behaviour of the demand forecaster.

    ``fallback_periods`` is the number of months of history the historical
    provider and the accuracy metrics look back over.
    """

    fallback_enabled: bool = True
    fallback_method: str = "historical_average"
    fallback_periods: int = 12
    publish_fallback_event: bool = True

    def __post_init__(self):
        if self.fallback_periods < 1:
            raise ValueError("fallback_periods must be at least 1")
        if not self.fallback_method:
            raise ValueError("fallback_method is required")

        logger.info(
            "forecast_config_initialized",
            extra={
                "fallback_enabled": self.fallback_enabled,
                "fallback_method": self.fallback_method,
                "fallback_periods": self.fallback_periods,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("forecast_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        logger.info(
            "forecast_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown forecast config keys: {sorted(unknown)}")
        return cls(**data)
