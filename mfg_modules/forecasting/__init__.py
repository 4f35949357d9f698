"""
Forecasting module: demand forecasts with ML-first, history-second sourcing.
"""

from mfg_modules.forecasting.config import ForecastConfig
from mfg_modules.forecasting.models import (
    DemandForecast,
    ForecastAccuracy,
    ForecastConfidence,
    ForecastSource,
    HistoricalDemand,
)
from mfg_modules.forecasting.providers import (
    ForecastProvider,
    HistoricalForecastProvider,
    InMemoryDemandHistory,
)
from mfg_modules.forecasting.service import DemandForecaster

__all__ = [
    "DemandForecast",
    "DemandForecaster",
    "ForecastAccuracy",
    "ForecastConfidence",
    "ForecastConfig",
    "ForecastProvider",
    "ForecastSource",
    "HistoricalDemand",
    "HistoricalForecastProvider",
    "InMemoryDemandHistory",
]
