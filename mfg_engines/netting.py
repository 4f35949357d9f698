"""
mfg_engines.netting -- Gross-to-net requirement calculation.

Responsibility:
    Merge demand into a dated gross-requirement schedule and run the
    time-phased netting loop for one product: available stock, net
    requirement, offset order date, lot-sized order quantity and the
    projected inventory carried into the next date.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Consumed by
    ``mfg_services.mrp_engine.MrpEngine``, which supplies inventory data
    and turns ``NetPeriod`` rows into MaterialRequirement / PlannedOrder.

Invariants enforced:
    - available = projected on-hand + receipts due before the date
      - safety stock.
    - net = max(0, gross - available).
    - order date = required date - lead time, never before horizon start
      (``order_date_clipped`` marks the adjustment).
    - Each scheduled receipt is credited once, on the first requirement
      date after it arrives.
    - Lot-sizing excess (order qty - net) is added back to projected stock.
    - Identical inputs produce identical outputs.

Failure modes:
    - ValueError from LotSizer on invalid lot-sizing parameters.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from decimal import Decimal

from mfg_engines.lot_sizing import LotSizer, LotSizingParameters, LotSizingStrategy
from mfg_engines.tracer import traced_engine

ZERO = Decimal("0")


@dataclass(frozen=True)
class DatedQuantity:
    """A quantity due on a date (demand line or scheduled receipt)."""

    due_date: date
    quantity: Decimal


@dataclass(frozen=True)
class InventoryPosition:
    """
    Projected stock of one product while netting walks forward in time.

    ``pending_receipts`` holds scheduled receipts not yet credited.
    """

    on_hand: Decimal
    safety_stock: Decimal = ZERO
    pending_receipts: tuple[DatedQuantity, ...] = field(default_factory=tuple)

    def receipts_before(self, day: date) -> Decimal:
        return sum(
            (r.quantity for r in self.pending_receipts if r.due_date < day), ZERO,
        )


@dataclass(frozen=True)
class NetPeriod:
    """Outcome of netting one requirement date."""

    required_date: date
    gross_requirement: Decimal
    net_requirement: Decimal
    order_date: date
    on_hand: Decimal
    scheduled_receipts: Decimal
    safety_stock: Decimal
    order_quantity: Decimal
    order_date_clipped: bool = False

    @property
    def needs_order(self) -> bool:
        return self.net_requirement > 0

    @property
    def lot_sizing_excess(self) -> Decimal:
        return self.order_quantity - self.net_requirement


def aggregate_gross_requirements(
    *demand_streams: Iterable[DatedQuantity],
) -> list[DatedQuantity]:
    """Sum all demand lines per date and return them in ascending date order."""
    totals: dict[date, Decimal] = {}
    for stream in demand_streams:
        for demand in stream:
            totals[demand.due_date] = totals.get(demand.due_date, ZERO) + demand.quantity
    return [DatedQuantity(d, totals[d]) for d in sorted(totals)]


class NettingEngine:
    """
    Pure netting calculator for a single product.

    Contract:
        ``net_period`` nets one date and returns the new position;
        ``net_schedule`` folds ``net_period`` over an ascending gross
        schedule.

    Non-goals:
        Does not decide order type or explode BOMs (service concerns).
    """

    def __init__(self, lot_sizer: LotSizer | None = None):
        self.lot_sizer = lot_sizer or LotSizer()

    def net_period(
        self,
        position: InventoryPosition,
        required_date: date,
        gross_requirement: Decimal,
        lead_time_days: int,
        horizon_start: date,
        strategy: LotSizingStrategy = LotSizingStrategy.LOT_FOR_LOT,
        parameters: LotSizingParameters | None = None,
    ) -> tuple[NetPeriod, InventoryPosition]:
        receipts = position.receipts_before(required_date)
        available = position.on_hand + receipts - position.safety_stock
        net = max(ZERO, gross_requirement - available)

        order_date = required_date - timedelta(days=lead_time_days)
        clipped = order_date < horizon_start
        if clipped:
            order_date = horizon_start

        order_quantity = ZERO
        if net > 0:
            order_quantity = self.lot_sizer.size(
                net_requirement=net, strategy=strategy, parameters=parameters,
            )

        period = NetPeriod(
            required_date=required_date,
            gross_requirement=gross_requirement,
            net_requirement=net,
            order_date=order_date,
            on_hand=position.on_hand,
            scheduled_receipts=receipts,
            safety_stock=position.safety_stock,
            order_quantity=order_quantity,
            order_date_clipped=clipped,
        )

        # Projected stock net of the reserve; the lot overshoot offsets later dates.
        projected = max(ZERO, available - gross_requirement)
        if net > 0:
            projected += order_quantity - net
        new_position = replace(
            position,
            on_hand=projected,
            pending_receipts=tuple(
                r for r in position.pending_receipts if r.due_date >= required_date
            ),
        )
        return period, new_position

    @traced_engine("netting", "1.0", fingerprint_fields=("gross_schedule", "lead_time_days", "strategy"))
    def net_schedule(
        self,
        position: InventoryPosition,
        gross_schedule: list[DatedQuantity],
        lead_time_days: int,
        horizon_start: date,
        strategy: LotSizingStrategy = LotSizingStrategy.LOT_FOR_LOT,
        parameters: LotSizingParameters | None = None,
    ) -> tuple[list[NetPeriod], InventoryPosition]:
        periods: list[NetPeriod] = []
        for demand in sorted(gross_schedule, key=lambda d: d.due_date):
            period, position = self.net_period(
                position,
                demand.due_date,
                demand.quantity,
                lead_time_days,
                horizon_start,
                strategy,
                parameters,
            )
            periods.append(period)
        return periods, position
