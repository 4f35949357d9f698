"""
Inventory and demand data provider contracts.

The MRP engine and capacity planner read stock and demand only through
these protocols.  The in-memory implementations hold plain dicts and serve
tests and embedding callers; production callers adapt their inventory and
order-management systems to the same methods.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Protocol, runtime_checkable

from mfg_engines.netting import DatedQuantity
from mfg_kernel.domain.horizon import PlanningHorizon
from mfg_kernel.logging_config import get_logger
from mfg_modules.forecasting.models import DemandForecast
from mfg_modules.mrp.models import DemandSource, DemandSourceType, PlannedOrder

logger = get_logger("services.providers")

ZERO = Decimal("0")


@runtime_checkable
class InventoryDataProvider(Protocol):
    def on_hand_quantity(self, product_id: str) -> Decimal:
        ...

    def safety_stock(self, product_id: str) -> Decimal:
        ...

    def scheduled_receipts(self, product_id: str, through_date: date) -> list[DatedQuantity]:
        """Open receipts due on or before ``through_date``."""
        ...

    def lead_time_days(self, product_id: str) -> int:
        ...


@runtime_checkable
class DemandDataProvider(Protocol):
    def independent_demand(self, product_id: str, horizon: PlanningHorizon) -> list[DemandSource]:
        """Sales-order and forecast demand due inside the horizon."""
        ...

    def dependent_demand(self, product_id: str, horizon: PlanningHorizon) -> list[DemandSource]:
        """Demand from work orders consuming the product, inside the horizon."""
        ...

    def demand_sources(self, product_id: str, on_date: date) -> list[DemandSource]:
        ...

    def master_scheduled_products(self, horizon: PlanningHorizon) -> list[str]:
        ...

    def save_planned_order(self, order: PlannedOrder) -> None:
        ...

    def delete_planned_orders(self, product_id: str, horizon: PlanningHorizon) -> int:
        ...

    def planned_orders(self, horizon: PlanningHorizon) -> list[PlannedOrder]:
        """Stored planned orders whose start date falls inside the horizon."""
        ...


class InMemoryInventoryProvider:
    """Per-product stock figures held in dicts; unknown products have none."""

    def __init__(self) -> None:
        self._on_hand: dict[str, Decimal] = {}
        self._safety_stock: dict[str, Decimal] = {}
        self._lead_times: dict[str, int] = {}
        self._receipts: dict[str, list[DatedQuantity]] = defaultdict(list)

    def set_item(
        self,
        product_id: str,
        on_hand: Decimal = ZERO,
        safety_stock: Decimal = ZERO,
        lead_time_days: int = 0,
    ) -> None:
        self._on_hand[product_id] = on_hand
        self._safety_stock[product_id] = safety_stock
        self._lead_times[product_id] = lead_time_days

    def add_receipt(self, product_id: str, due_date: date, quantity: Decimal) -> None:
        self._receipts[product_id].append(DatedQuantity(due_date, quantity))

    def on_hand_quantity(self, product_id: str) -> Decimal:
        return self._on_hand.get(product_id, ZERO)

    def safety_stock(self, product_id: str) -> Decimal:
        return self._safety_stock.get(product_id, ZERO)

    def scheduled_receipts(self, product_id: str, through_date: date) -> list[DatedQuantity]:
        return sorted(
            (r for r in self._receipts.get(product_id, []) if r.due_date <= through_date),
            key=lambda r: r.due_date,
        )

    def lead_time_days(self, product_id: str) -> int:
        return self._lead_times.get(product_id, 0)


class InMemoryDemandProvider:
    """
    Demand lines and stored planned orders held in memory.

    Master-scheduled products are those with independent demand inside the
    horizon, in the order their demand was first added.
    """

    def __init__(self) -> None:
        self._independent: dict[str, list[DemandSource]] = defaultdict(list)
        self._dependent: dict[str, list[DemandSource]] = defaultdict(list)
        self._planned_orders: list[PlannedOrder] = []

    def add_demand(self, product_id: str, source: DemandSource) -> None:
        if source.source_type == DemandSourceType.WORK_ORDER:
            self._dependent[product_id].append(source)
        else:
            self._independent[product_id].append(source)

    def add_forecast(self, forecast: DemandForecast) -> DemandSource:
        """Record a forecast as independent demand due on its start date."""
        source = DemandSource(
            source_type=DemandSourceType.FORECAST,
            source_id=f"forecast:{forecast.product_id}:{forecast.start_date.isoformat()}",
            quantity=forecast.quantity,
            due_date=forecast.start_date,
        )
        self.add_demand(forecast.product_id, source)
        logger.debug(
            "forecast_demand_added",
            extra={"product_id": forecast.product_id, "quantity": str(forecast.quantity)},
        )
        return source

    def independent_demand(self, product_id: str, horizon: PlanningHorizon) -> list[DemandSource]:
        return [d for d in self._independent.get(product_id, []) if horizon.contains(d.due_date)]

    def dependent_demand(self, product_id: str, horizon: PlanningHorizon) -> list[DemandSource]:
        return [d for d in self._dependent.get(product_id, []) if horizon.contains(d.due_date)]

    def demand_sources(self, product_id: str, on_date: date) -> list[DemandSource]:
        return [
            d
            for d in self._independent.get(product_id, []) + self._dependent.get(product_id, [])
            if d.due_date == on_date
        ]

    def master_scheduled_products(self, horizon: PlanningHorizon) -> list[str]:
        return [
            product_id
            for product_id, demand in self._independent.items()
            if any(horizon.contains(d.due_date) for d in demand)
        ]

    def save_planned_order(self, order: PlannedOrder) -> None:
        self._planned_orders.append(order)

    def delete_planned_orders(self, product_id: str, horizon: PlanningHorizon) -> int:
        before = len(self._planned_orders)
        self._planned_orders = [
            o for o in self._planned_orders
            if not (o.product_id == product_id and horizon.contains(o.start_date))
        ]
        return before - len(self._planned_orders)

    def planned_orders(self, horizon: PlanningHorizon) -> list[PlannedOrder]:
        return [o for o in self._planned_orders if horizon.contains(o.start_date)]
