"""
Forecast provider contracts.

``ForecastProvider`` is the primary (typically ML-backed) source;
``HistoricalForecastProvider`` is the fallback built on recorded actual
demand.  ``InMemoryDemandHistory`` implements the fallback contract with a
simple historical average and serves tests and embedding callers.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Protocol, runtime_checkable

from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.domain.horizon import PlanningHorizon, add_months
from mfg_modules.forecasting.models import (
    DemandForecast,
    ForecastConfidence,
    ForecastSource,
    HistoricalDemand,
)

ZERO = Decimal("0")


@runtime_checkable
class ForecastProvider(Protocol):
    def generate_forecast(self, product_id: str, horizon: PlanningHorizon) -> DemandForecast:
        ...

    def model_confidence(self, product_id: str) -> ForecastConfidence:
        ...

    def is_healthy(self) -> bool:
        ...


@runtime_checkable
class HistoricalForecastProvider(Protocol):
    def generate_from_history(
        self, product_id: str, horizon: PlanningHorizon,
    ) -> DemandForecast:
        ...

    def historical_confidence(self, product_id: str) -> ForecastConfidence:
        ...

    def historical_demand(
        self, product_id: str, start_date: date, end_date: date,
    ) -> list[HistoricalDemand]:
        """Recorded periods with ``start_date <= period_start < end_date``."""
        ...

    def record_actual_demand(
        self, product_id: str, period_start: date, quantity: Decimal,
    ) -> None:
        ...


class InMemoryDemandHistory:
    """
    Monthly demand history with a historical-average forecast.

    The forecast for a horizon is the mean monthly quantity over the most
    recent ``lookback_periods`` recorded months, scaled to the horizon's
    length in days (30-day months).
    """

    def __init__(self, lookback_periods: int = 12, clock: Clock | None = None):
        self._history: dict[str, dict[date, HistoricalDemand]] = defaultdict(dict)
        self._lookback = lookback_periods
        self._clock = clock or SystemClock()

    def record_actual_demand(
        self, product_id: str, period_start: date, quantity: Decimal,
    ) -> None:
        existing = self._history[product_id].get(period_start)
        self._history[product_id][period_start] = HistoricalDemand(
            period_start=period_start,
            quantity=quantity,
            forecasted=existing.forecasted if existing else None,
        )

    def record_forecast(
        self, product_id: str, period_start: date, forecasted: Decimal,
    ) -> None:
        existing = self._history[product_id].get(period_start)
        self._history[product_id][period_start] = HistoricalDemand(
            period_start=period_start,
            quantity=existing.quantity if existing else ZERO,
            forecasted=forecasted,
        )

    def historical_demand(
        self, product_id: str, start_date: date, end_date: date,
    ) -> list[HistoricalDemand]:
        return sorted(
            (
                h for h in self._history.get(product_id, {}).values()
                if start_date <= h.period_start < end_date
            ),
            key=lambda h: h.period_start,
        )

    def historical_confidence(self, product_id: str) -> ForecastConfidence:
        count = len(self._history.get(product_id, {}))
        if count >= 12:
            return ForecastConfidence.MEDIUM
        if count >= 3:
            return ForecastConfidence.LOW
        return ForecastConfidence.VERY_LOW

    def generate_from_history(
        self, product_id: str, horizon: PlanningHorizon,
    ) -> DemandForecast:
        end = horizon.start_date
        start = add_months(end, -self._lookback)
        history = self.historical_demand(product_id, start, end)
        if not history:
            raise LookupError(f"No demand history for {product_id}")

        monthly_average = sum((h.quantity for h in history), ZERO) / len(history)
        quantity = monthly_average * horizon.total_days / 30
        return DemandForecast(
            product_id=product_id,
            start_date=horizon.start_date,
            end_date=horizon.end_date,
            quantity=quantity,
            confidence=self.historical_confidence(product_id),
            source=ForecastSource.HISTORICAL,
            metadata={"method": "historical_average", "periods": len(history)},
            calculated_at=self._clock.now(),
        )

    def __len__(self) -> int:
        return sum(len(v) for v in self._history.values())
