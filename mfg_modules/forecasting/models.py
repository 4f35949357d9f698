"""
Demand forecast value objects.

A ``DemandForecast`` is the quantity expected for one product over one date
window, tagged with where it came from (ML model, historical fallback or a
manual adjustment) and how far it can be trusted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

ZERO = Decimal("0")


class ForecastConfidence(str, Enum):
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"

    @property
    def score(self) -> Decimal:
        return _SCORES[self]

    @property
    def requires_review(self) -> bool:
        return self in (ForecastConfidence.VERY_LOW, ForecastConfidence.LOW)

    @property
    def safety_stock_multiplier(self) -> Decimal:
        return _SAFETY_STOCK_MULTIPLIERS[self]

    def downgraded(self) -> ForecastConfidence:
        """One step less confident; ``VERY_LOW`` stays ``VERY_LOW``."""
        order = list(ForecastConfidence)
        index = order.index(self)
        return order[max(0, index - 1)]

    @classmethod
    def from_score(cls, score: Decimal) -> ForecastConfidence:
        score = Decimal(str(score))
        if score >= Decimal("0.9"):
            return cls.VERY_HIGH
        if score >= Decimal("0.7"):
            return cls.HIGH
        if score >= Decimal("0.5"):
            return cls.MEDIUM
        if score >= Decimal("0.3"):
            return cls.LOW
        return cls.VERY_LOW


_SCORES = {
    ForecastConfidence.VERY_LOW: Decimal("0.1"),
    ForecastConfidence.LOW: Decimal("0.3"),
    ForecastConfidence.MEDIUM: Decimal("0.5"),
    ForecastConfidence.HIGH: Decimal("0.7"),
    ForecastConfidence.VERY_HIGH: Decimal("0.9"),
}

_SAFETY_STOCK_MULTIPLIERS = {
    ForecastConfidence.VERY_LOW: Decimal("2.0"),
    ForecastConfidence.LOW: Decimal("1.5"),
    ForecastConfidence.MEDIUM: Decimal("1.25"),
    ForecastConfidence.HIGH: Decimal("1.1"),
    ForecastConfidence.VERY_HIGH: Decimal("1.0"),
}


class ForecastSource(str, Enum):
    ML = "ml"
    HISTORICAL = "historical"
    MANUAL = "manual"


@dataclass(frozen=True)
class DemandForecast:
    """
    Forecast quantity for ``product_id`` over ``[start_date, end_date)``.

    ``period_breakdown`` maps a period label (e.g. ``"2026-03"``) to the
    quantity expected in that sub-period.
    """

    product_id: str
    start_date: date
    end_date: date
    quantity: Decimal
    confidence: ForecastConfidence
    source: ForecastSource
    model_version: str | None = None
    lower_bound: Decimal | None = None
    upper_bound: Decimal | None = None
    period_breakdown: dict[str, Decimal] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    calculated_at: datetime | None = None

    def __post_init__(self):
        if self.quantity < 0:
            raise ValueError("Forecast quantity cannot be negative")
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        if (
            self.lower_bound is not None
            and self.upper_bound is not None
            and self.lower_bound > self.upper_bound
        ):
            raise ValueError("Lower bound cannot exceed upper bound")

    @property
    def is_ml_based(self) -> bool:
        return self.source == ForecastSource.ML

    @property
    def is_fallback(self) -> bool:
        return self.source == ForecastSource.HISTORICAL

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence.score >= Decimal("0.7")

    @property
    def needs_review(self) -> bool:
        return self.confidence.requires_review

    @property
    def horizon_days(self) -> int:
        return (self.end_date - self.start_date).days

    @property
    def confidence_range(self) -> Decimal | None:
        if self.lower_bound is None or self.upper_bound is None:
            return None
        return self.upper_bound - self.lower_bound

    @property
    def daily_average(self) -> Decimal:
        return self.quantity / self.horizon_days

    @property
    def weekly_average(self) -> Decimal:
        return self.daily_average * 7

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "quantity": str(self.quantity),
            "confidence": self.confidence.value,
            "confidence_score": str(self.confidence.score),
            "source": self.source.value,
            "model_version": self.model_version,
            "lower_bound": str(self.lower_bound) if self.lower_bound is not None else None,
            "upper_bound": str(self.upper_bound) if self.upper_bound is not None else None,
            "period_breakdown": (
                {k: str(v) for k, v in self.period_breakdown.items()}
                if self.period_breakdown is not None
                else None
            ),
            "metadata": dict(self.metadata),
            "calculated_at": self.calculated_at.isoformat() if self.calculated_at else None,
            "needs_review": self.needs_review,
        }


@dataclass(frozen=True)
class HistoricalDemand:
    """Actual demand in one past period, with the forecast made for it if known."""

    period_start: date
    quantity: Decimal
    forecasted: Decimal | None = None


@dataclass(frozen=True)
class ForecastAccuracy:
    """MAPE (percent), RMSE and bias (forecast minus actual) over a history."""

    mape: Decimal = ZERO
    rmse: Decimal = ZERO
    bias: Decimal = ZERO
    periods: int = 0

    @property
    def accuracy(self) -> Decimal:
        return max(ZERO, Decimal("100") - self.mape)
