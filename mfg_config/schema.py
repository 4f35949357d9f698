"""
Planning configuration schema (``mfg_config.schema``).

``PlanningConfig`` bundles the per-module configs with the default
planning horizon shape.  Instances are built by ``mfg_config.loader``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from mfg_kernel.domain.horizon import BucketSize, PlanningHorizon
from mfg_modules.bom.config import BomConfig
from mfg_modules.capacity.config import CapacityConfig
from mfg_modules.forecasting.config import ForecastConfig
from mfg_modules.mrp.config import MrpConfig


@dataclass(frozen=True)
class HorizonSettings:
    """Shape of the horizon used when a caller gives only a start date."""

    days: int = 90
    bucket_size: BucketSize = BucketSize.WEEK
    frozen_days: int = 14
    slushy_days: int = 14

    def __post_init__(self):
        if self.days < 1:
            raise ValueError("Horizon must span at least one day")
        if not isinstance(self.bucket_size, BucketSize):
            object.__setattr__(self, "bucket_size", BucketSize(self.bucket_size))

    def horizon_from(self, start: date) -> PlanningHorizon:
        return PlanningHorizon.for_days(
            start,
            self.days,
            frozen_days=self.frozen_days,
            slushy_days=self.slushy_days,
            bucket_size=self.bucket_size,
        )


@dataclass(frozen=True)
class PlanningConfig:
    bom: BomConfig = field(default_factory=BomConfig)
    mrp: MrpConfig = field(default_factory=MrpConfig)
    capacity: CapacityConfig = field(default_factory=CapacityConfig)
    forecast: ForecastConfig = field(default_factory=ForecastConfig)
    horizon: HorizonSettings = field(default_factory=HorizonSettings)
    effective_from: date | None = None
    checksum: str = ""
