"""
DemandForecaster -- forecast chain with historical fallback.

Responsibility
--------------
Produce a ``DemandForecast`` for a product and date window by asking the
ML provider first and the historical provider second.  Also offers manual
adjustment of a forecast and accuracy metrics against recorded actuals.

Architecture position
---------------------
**Modules layer** -- depends on the provider contracts in
``forecasting.providers`` only.  Feeds forecast demand into
``mfg_services`` demand providers.

Invariants enforced
-------------------
* Provider order is fixed: ML, then historical.  A provider failure is
  logged and the next provider tried.
* A manual adjustment always lowers confidence by one step and marks the
  forecast ``manual``.

Failure modes
-------------
* ``ForecastUnavailableError`` when no configured provider produces a forecast.
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any

from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.domain.horizon import PlanningHorizon, add_months
from mfg_kernel.exceptions import ForecastUnavailableError
from mfg_kernel.logging_config import get_logger
from mfg_modules.forecasting.config import ForecastConfig
from mfg_modules.forecasting.models import (
    DemandForecast,
    ForecastAccuracy,
    ForecastConfidence,
    ForecastSource,
    HistoricalDemand,
)
from mfg_modules.forecasting.providers import ForecastProvider, HistoricalForecastProvider

logger = get_logger("modules.forecasting.service")

ZERO = Decimal("0")
_TWO_PLACES = Decimal("0.01")


class DemandForecaster:
    """
    Demand forecasting with graceful degradation.

    Contract:
        ``forecast`` returns the first forecast a provider produces.
    Guarantees:
        Every provider failure is logged with the product id; a historical
        forecast served after an ML failure logs ``forecast_fallback_used``.
    Non-goals:
        Training or hosting forecasting models.
    """

    def __init__(
        self,
        ml_provider: ForecastProvider | None = None,
        fallback_provider: HistoricalForecastProvider | None = None,
        config: ForecastConfig | None = None,
        clock: Clock | None = None,
    ):
        self._ml = ml_provider
        self._fallback = fallback_provider
        self._config = config or ForecastConfig()
        self._clock = clock or SystemClock()

    # =========================================================================
    # Forecasting
    # =========================================================================

    def forecast(self, product_id: str, start_date: date, end_date: date) -> DemandForecast:
        horizon = PlanningHorizon(start_date=start_date, end_date=end_date)
        ml_failed = False

        if self._ml is not None:
            try:
                result = self._ml.generate_forecast(product_id, horizon)
            except Exception as exc:
                ml_failed = True
                logger.warning(
                    "ml_forecast_failed",
                    extra={"product_id": product_id, "error": str(exc)},
                )
            else:
                logger.info(
                    "ml_forecast_generated",
                    extra={
                        "product_id": product_id,
                        "horizon_days": horizon.total_days,
                        "confidence": result.confidence.value,
                    },
                )
                return result

        if self._fallback is not None and self._config.fallback_enabled:
            try:
                result = self._fallback.generate_from_history(product_id, horizon)
            except Exception as exc:
                logger.error(
                    "fallback_forecast_failed",
                    extra={"product_id": product_id, "error": str(exc)},
                )
            else:
                logger.info(
                    "historical_forecast_generated",
                    extra={
                        "product_id": product_id,
                        "horizon_days": horizon.total_days,
                        "confidence": result.confidence.value,
                    },
                )
                if ml_failed and self._config.publish_fallback_event:
                    logger.warning(
                        "forecast_fallback_used",
                        extra={
                            "product_id": product_id,
                            "method": self._config.fallback_method,
                        },
                    )
                return result

        raise ForecastUnavailableError(product_id)

    def forecast_multiple(
        self, product_ids: list[str], start_date: date, end_date: date,
    ) -> dict[str, DemandForecast]:
        """Forecast each product; products with no forecast are left out."""
        forecasts: dict[str, DemandForecast] = {}
        failed: list[str] = []
        for product_id in product_ids:
            try:
                forecasts[product_id] = self.forecast(product_id, start_date, end_date)
            except ForecastUnavailableError:
                failed.append(product_id)

        if failed:
            logger.warning(
                "forecasts_partially_failed",
                extra={
                    "requested": len(product_ids),
                    "succeeded": len(forecasts),
                    "failed": len(failed),
                    "failed_products": failed,
                },
            )
        return forecasts

    def confidence_level(self, product_id: str) -> ForecastConfidence:
        if self._ml is None and self._fallback is None:
            return ForecastConfidence.VERY_LOW

        if self._ml is not None:
            try:
                return self._ml.model_confidence(product_id)
            except Exception as exc:
                logger.debug(
                    "ml_confidence_unavailable",
                    extra={"product_id": product_id, "error": str(exc)},
                )

        if self._fallback is not None:
            try:
                return self._fallback.historical_confidence(product_id)
            except Exception as exc:
                logger.debug(
                    "historical_confidence_unavailable",
                    extra={"product_id": product_id, "error": str(exc)},
                )

        return ForecastConfidence.LOW

    def is_ml_available(self) -> bool:
        if self._ml is None:
            return False
        try:
            return bool(self._ml.is_healthy())
        except Exception as exc:
            logger.warning("ml_health_check_failed", extra={"error": str(exc)})
            return False

    def historical_demand(
        self, product_id: str, start_date: date, end_date: date,
    ) -> list[HistoricalDemand]:
        if self._fallback is None:
            return []
        return self._fallback.historical_demand(product_id, start_date, end_date)

    def record_actual(self, product_id: str, period_start: date, quantity: Decimal) -> None:
        if self._fallback is not None:
            self._fallback.record_actual_demand(product_id, period_start, quantity)
        logger.info(
            "actual_demand_recorded",
            extra={
                "product_id": product_id,
                "period_start": period_start.isoformat(),
                "quantity": str(quantity),
            },
        )

    # =========================================================================
    # Adjustment and accuracy
    # =========================================================================

    def adjust_forecast(
        self, forecast: DemandForecast, adjustments: dict[str, dict[str, Any]],
    ) -> DemandForecast:
        """
        Apply per-period adjustments to ``forecast.period_breakdown``.

        Each adjustment is one of ``{"quantity": q}`` (replace),
        ``{"multiplier": m}`` or ``{"delta": d}``.  Periods absent from the
        breakdown are ignored.  The total becomes the sum of the adjusted
        breakdown; a forecast without a breakdown keeps its total.
        """
        breakdown = dict(forecast.period_breakdown or {})
        notes = list(forecast.metadata.get("notes", []))
        notes.append("Manually adjusted")

        for period, adjustment in adjustments.items():
            if period not in breakdown:
                continue
            original = breakdown[period]
            if "quantity" in adjustment:
                adjusted = Decimal(str(adjustment["quantity"]))
            elif "multiplier" in adjustment:
                adjusted = original * Decimal(str(adjustment["multiplier"]))
            elif "delta" in adjustment:
                adjusted = original + Decimal(str(adjustment["delta"]))
            else:
                raise ValueError(f"Unknown adjustment for period {period}: {adjustment}")
            breakdown[period] = max(ZERO, adjusted)
            notes.append(f"Period {period}: adjusted from {original} to {breakdown[period]}")

        total = sum(breakdown.values(), ZERO) if breakdown else forecast.quantity
        adjusted_forecast = replace(
            forecast,
            quantity=total,
            period_breakdown=breakdown or forecast.period_breakdown,
            confidence=forecast.confidence.downgraded(),
            source=ForecastSource.MANUAL,
            metadata={**forecast.metadata, "notes": notes},
            calculated_at=self._clock.now(),
        )
        logger.info(
            "forecast_adjusted",
            extra={
                "product_id": forecast.product_id,
                "original_quantity": str(forecast.quantity),
                "adjusted_quantity": str(total),
                "confidence": adjusted_forecast.confidence.value,
            },
        )
        return adjusted_forecast

    def accuracy_metrics(self, product_id: str, periods: int | None = None) -> ForecastAccuracy:
        """
        MAPE, RMSE and bias over the last ``periods`` months of history.

        A period with no recorded forecast counts as perfectly forecast.
        Periods with zero actual demand are excluded from MAPE and RMSE but
        still contribute to bias.
        """
        periods = periods or self._config.fallback_periods
        if self._fallback is None:
            return ForecastAccuracy()

        end = self._clock.today()
        history = self._fallback.historical_demand(product_id, add_months(end, -periods), end)
        if not history:
            return ForecastAccuracy()

        total_actual = ZERO
        total_forecast = ZERO
        abs_pct_error = ZERO
        squared_error = ZERO
        count = 0
        for point in history:
            forecasted = point.forecasted if point.forecasted is not None else point.quantity
            total_actual += point.quantity
            total_forecast += forecasted
            if point.quantity > 0:
                error = forecasted - point.quantity
                abs_pct_error += abs(error / point.quantity)
                squared_error += error * error
                count += 1

        mape = abs_pct_error / count * 100 if count else ZERO
        rmse = Decimal(str(math.sqrt(squared_error / count))) if count else ZERO
        return ForecastAccuracy(
            mape=mape.quantize(_TWO_PLACES),
            rmse=rmse.quantize(_TWO_PLACES),
            bias=(total_forecast - total_actual).quantize(_TWO_PLACES),
            periods=len(history),
        )
