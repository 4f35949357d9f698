"""
Tests for DemandForecaster.

The ML provider is a test double; the historical fallback is the real
in-memory demand history.
"""

from datetime import date
from decimal import Decimal

import pytest

from mfg_kernel.domain.horizon import add_months
from mfg_kernel.exceptions import ForecastUnavailableError
from mfg_modules.forecasting import (
    DemandForecast,
    DemandForecaster,
    ForecastConfidence,
    ForecastConfig,
    ForecastSource,
    InMemoryDemandHistory,
)

JAN_START = date(2024, 1, 1)
JAN_END = date(2024, 1, 31)


class FakeMlProvider:
    def __init__(self, quantity=Decimal("120"), fail=False):
        self.quantity = quantity
        self.fail = fail
        self.calls = 0

    def generate_forecast(self, product_id, horizon):
        self.calls += 1
        if self.fail:
            raise RuntimeError("model server unreachable")
        return DemandForecast(
            product_id=product_id,
            start_date=horizon.start_date,
            end_date=horizon.end_date,
            quantity=self.quantity,
            confidence=ForecastConfidence.HIGH,
            source=ForecastSource.ML,
            model_version="v7",
        )

    def model_confidence(self, product_id):
        if self.fail:
            raise RuntimeError("model server unreachable")
        return ForecastConfidence.VERY_HIGH

    def is_healthy(self):
        if self.fail:
            raise RuntimeError("model server unreachable")
        return True


@pytest.fixture
def history(clock):
    history = InMemoryDemandHistory(clock=clock)
    for month in range(1, 13):
        history.record_actual_demand("BIKE", date(2023, month, 1), Decimal("100"))
    return history


class TestConfidence:
    @pytest.mark.parametrize(
        "score, expected",
        [
            (Decimal("0.95"), ForecastConfidence.VERY_HIGH),
            (Decimal("0.7"), ForecastConfidence.HIGH),
            (Decimal("0.5"), ForecastConfidence.MEDIUM),
            (Decimal("0.3"), ForecastConfidence.LOW),
            (Decimal("0.1"), ForecastConfidence.VERY_LOW),
        ],
    )
    def test_from_score(self, score, expected):
        assert ForecastConfidence.from_score(score) is expected

    def test_downgrade_floors_at_very_low(self):
        assert ForecastConfidence.HIGH.downgraded() is ForecastConfidence.MEDIUM
        assert ForecastConfidence.VERY_LOW.downgraded() is ForecastConfidence.VERY_LOW

    def test_review_and_safety_stock(self):
        assert ForecastConfidence.LOW.requires_review
        assert not ForecastConfidence.MEDIUM.requires_review
        assert ForecastConfidence.VERY_LOW.safety_stock_multiplier == Decimal("2.0")


class TestDemandForecast:
    def test_averages(self):
        forecast = DemandForecast(
            "BIKE", JAN_START, date(2024, 1, 15), Decimal("140"),
            ForecastConfidence.MEDIUM, ForecastSource.HISTORICAL,
        )
        assert forecast.horizon_days == 14
        assert forecast.daily_average == Decimal("10")
        assert forecast.weekly_average == Decimal("70")
        assert forecast.is_fallback

    def test_bounds_validated(self):
        with pytest.raises(ValueError):
            DemandForecast(
                "BIKE", JAN_START, JAN_END, Decimal("10"),
                ForecastConfidence.LOW, ForecastSource.ML,
                lower_bound=Decimal("20"), upper_bound=Decimal("5"),
            )


class TestForecast:
    def test_ml_forecast_preferred(self, history, clock):
        ml = FakeMlProvider()
        forecaster = DemandForecaster(ml, history, clock=clock)
        forecast = forecaster.forecast("BIKE", JAN_START, JAN_END)
        assert forecast.is_ml_based
        assert forecast.quantity == Decimal("120")
        assert forecaster.confidence_level("BIKE") is ForecastConfidence.VERY_HIGH
        assert forecaster.is_ml_available()

    def test_historical_average(self, history, clock):
        forecaster = DemandForecaster(fallback_provider=history, clock=clock)
        forecast = forecaster.forecast("BIKE", JAN_START, JAN_END)
        assert forecast.quantity == Decimal("100")
        assert forecast.confidence is ForecastConfidence.MEDIUM
        assert forecast.metadata["periods"] == 12

    def test_ml_failure_falls_back(self, history, clock, captured_logs):
        forecaster = DemandForecaster(FakeMlProvider(fail=True), history, clock=clock)
        forecast = forecaster.forecast("BIKE", JAN_START, JAN_END)

        assert forecast.is_fallback
        messages = [r["message"] for r in captured_logs()]
        assert "ml_forecast_failed" in messages
        assert "forecast_fallback_used" in messages
        assert not forecaster.is_ml_available()
        assert forecaster.confidence_level("BIKE") is ForecastConfidence.MEDIUM

    def test_fallback_disabled(self, history, clock):
        forecaster = DemandForecaster(
            FakeMlProvider(fail=True), history,
            config=ForecastConfig(fallback_enabled=False), clock=clock,
        )
        with pytest.raises(ForecastUnavailableError):
            forecaster.forecast("BIKE", JAN_START, JAN_END)

    def test_no_providers(self, clock):
        forecaster = DemandForecaster(clock=clock)
        with pytest.raises(ForecastUnavailableError) as exc_info:
            forecaster.forecast("BIKE", JAN_START, JAN_END)
        assert exc_info.value.subject_id == "BIKE"
        assert forecaster.confidence_level("BIKE") is ForecastConfidence.VERY_LOW
        assert not forecaster.is_ml_available()

    def test_forecast_multiple_skips_unavailable(self, history, clock):
        forecaster = DemandForecaster(fallback_provider=history, clock=clock)
        forecasts = forecaster.forecast_multiple(["BIKE", "TRIKE"], JAN_START, JAN_END)
        assert list(forecasts) == ["BIKE"]


class TestHistory:
    def test_record_actual(self, clock):
        history = InMemoryDemandHistory(clock=clock)
        forecaster = DemandForecaster(fallback_provider=history, clock=clock)
        forecaster.record_actual("BIKE", date(2023, 12, 1), Decimal("80"))

        points = forecaster.historical_demand("BIKE", date(2023, 1, 1), JAN_START)
        assert [(p.period_start, p.quantity) for p in points] == [
            (date(2023, 12, 1), Decimal("80")),
        ]
        assert history.historical_confidence("BIKE") is ForecastConfidence.VERY_LOW

    def test_forecast_kept_when_actual_recorded(self, clock):
        history = InMemoryDemandHistory(clock=clock)
        history.record_forecast("BIKE", date(2023, 12, 1), Decimal("90"))
        history.record_actual_demand("BIKE", date(2023, 12, 1), Decimal("100"))
        point = history.historical_demand("BIKE", date(2023, 12, 1), JAN_START)[0]
        assert point.forecasted == Decimal("90")
        assert point.quantity == Decimal("100")

    def test_no_history_without_fallback(self, clock):
        forecaster = DemandForecaster(clock=clock)
        assert forecaster.historical_demand("BIKE", date(2023, 1, 1), JAN_START) == []


class TestAdjustment:
    def _forecast(self):
        return DemandForecast(
            "BIKE", JAN_START, JAN_END, Decimal("100"),
            ForecastConfidence.HIGH, ForecastSource.ML,
            period_breakdown={"2024-W01": Decimal("60"), "2024-W02": Decimal("40")},
        )

    def test_multiplier_and_delta(self, clock):
        forecaster = DemandForecaster(clock=clock)
        adjusted = forecaster.adjust_forecast(
            self._forecast(),
            {
                "2024-W01": {"multiplier": "1.5"},
                "2024-W02": {"delta": "-50"},
                "2024-W09": {"quantity": "500"},
            },
        )
        assert adjusted.period_breakdown == {
            "2024-W01": Decimal("90"),
            "2024-W02": Decimal("0"),
        }
        assert adjusted.quantity == Decimal("90")
        assert adjusted.confidence is ForecastConfidence.MEDIUM
        assert adjusted.source is ForecastSource.MANUAL
        assert adjusted.metadata["notes"][0] == "Manually adjusted"

    def test_quantity_override(self, clock):
        forecaster = DemandForecaster(clock=clock)
        adjusted = forecaster.adjust_forecast(self._forecast(), {"2024-W02": {"quantity": 10}})
        assert adjusted.quantity == Decimal("70")

    def test_unknown_adjustment_rejected(self, clock):
        forecaster = DemandForecaster(clock=clock)
        with pytest.raises(ValueError):
            forecaster.adjust_forecast(self._forecast(), {"2024-W01": {"scale": 2}})


class TestAccuracy:
    def test_metrics(self, clock):
        history = InMemoryDemandHistory(clock=clock)
        for month, forecasted in ((11, "110"), (12, "90")):
            period = date(2023, month, 1)
            history.record_actual_demand("BIKE", period, Decimal("100"))
            history.record_forecast("BIKE", period, Decimal(forecasted))

        metrics = DemandForecaster(fallback_provider=history, clock=clock).accuracy_metrics(
            "BIKE", periods=2,
        )
        assert metrics.mape == Decimal("10.00")
        assert metrics.rmse == Decimal("10.00")
        assert metrics.bias == Decimal("0.00")
        assert metrics.accuracy == Decimal("90.00")
        assert metrics.periods == 2

    def test_window_excludes_older_history(self, clock):
        history = InMemoryDemandHistory(clock=clock)
        history.record_actual_demand("BIKE", add_months(JAN_START, -6), Decimal("100"))
        history.record_forecast("BIKE", add_months(JAN_START, -6), Decimal("50"))
        metrics = DemandForecaster(fallback_provider=history, clock=clock).accuracy_metrics(
            "BIKE", periods=3,
        )
        assert metrics.periods == 0

    def test_zero_actuals_only_affect_bias(self, clock):
        history = InMemoryDemandHistory(clock=clock)
        history.record_forecast("BIKE", date(2023, 12, 1), Decimal("5"))
        metrics = DemandForecaster(fallback_provider=history, clock=clock).accuracy_metrics(
            "BIKE", periods=1,
        )
        assert metrics.mape == Decimal("0.00")
        assert metrics.bias == Decimal("5.00")
