"""
MrpEngine -- time-phased material requirements planning.

Responsibility
--------------
Turn the demand for a product over a planning horizon into netted,
lot-sized planned orders, then walk down the product structure netting
the dependent demand of every manufactured order, level by level.

Architecture position
---------------------
**Services layer** -- orchestrates ``BomManager`` (structure and order
type), the inventory and demand providers (stock and demand) and the pure
``NettingEngine`` (gross-to-net arithmetic).  Planned orders feed
``CapacityPlanner``.

Invariants enforced
-------------------
* Requirement dates are netted in ascending order; projected stock is
  carried from one date to the next and lot-sizing excess is added back.
* A component's projected stock is carried across levels, so its on-hand
  quantity is consumed once per run.
* Order type is ``manufacturing`` exactly when the product has an
  effective BOM at the horizon start.
* Netting stops (with a warning, not an error) below
  ``MrpConfig.max_explosion_level``.

Failure modes
-------------
* None raised.  Every exception during a calculation is logged and
  captured in ``MrpResult.errors``; requirements and orders computed
  before the failure are kept.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from mfg_engines.lot_sizing import LotSizingParameters, LotSizingStrategy
from mfg_engines.netting import (
    DatedQuantity,
    InventoryPosition,
    NetPeriod,
    NettingEngine,
    aggregate_gross_requirements,
)
from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.domain.horizon import PlanningHorizon
from mfg_kernel.exceptions import CalculationError
from mfg_kernel.logging_config import LogContext, get_logger
from mfg_modules.bom.service import BomManager
from mfg_modules.mrp.config import MrpConfig
from mfg_modules.mrp.models import (
    MaterialRequirement,
    MrpResult,
    OrderType,
    PeggingRecord,
    PlannedOrder,
)
from mfg_services.providers import DemandDataProvider, InventoryDataProvider

logger = get_logger("services.mrp_engine")

ZERO = Decimal("0")


@dataclass
class _MrpRun:
    """Mutable accumulators of one calculation; frozen into an MrpResult."""

    product_id: str
    horizon: PlanningHorizon
    strategy: LotSizingStrategy
    parameters: LotSizingParameters | None
    requirements: list[MaterialRequirement] = field(default_factory=list)
    orders: list[PlannedOrder] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    positions: dict[str, InventoryPosition] = field(default_factory=dict)
    order_types: dict[str, OrderType] = field(default_factory=dict)


class MrpEngine:
    """
    Material requirements planning over the provider contracts.

    Contract:
        ``calculate`` always returns an ``MrpResult``; diagnostics are in
        its ``warnings`` and ``errors``.
    Guarantees:
        Identical provider data yields identical requirements and orders
        (planned-order ids aside).
    Non-goals:
        Persisting results.  ``regenerate`` hands orders to the demand
        provider; everything else is computation only.
    """

    def __init__(
        self,
        bom_manager: BomManager,
        inventory: InventoryDataProvider,
        demand: DemandDataProvider,
        config: MrpConfig | None = None,
        netting: NettingEngine | None = None,
        clock: Clock | None = None,
    ):
        self._boms = bom_manager
        self._inventory = inventory
        self._demand = demand
        self._config = config or MrpConfig()
        self._netting = netting or NettingEngine(self._config.lot_sizer())
        self._clock = clock or SystemClock()

    # =========================================================================
    # Calculation
    # =========================================================================

    def calculate(
        self,
        product_id: str,
        horizon: PlanningHorizon,
        lot_sizing: LotSizingStrategy | None = None,
        parameters: LotSizingParameters | None = None,
    ) -> MrpResult:
        run = _MrpRun(
            product_id=product_id,
            horizon=horizon,
            strategy=LotSizingStrategy(lot_sizing or self._config.default_lot_sizing),
            parameters=parameters,
        )

        with LogContext.bind(plan_run_id=str(uuid4())):
            logger.info(
                "mrp_calculation_started",
                extra={
                    "product_id": product_id,
                    "horizon_start": horizon.start_date.isoformat(),
                    "horizon_end": horizon.end_date.isoformat(),
                    "lot_sizing": run.strategy.value,
                },
            )
            try:
                top_orders = self._net_product(
                    run, product_id, self._gross_requirements(product_id, horizon), level=0,
                )
                self._explode(run, top_orders)
            except CalculationError as exc:
                logger.error(
                    "mrp_calculation_failed",
                    extra={"product_id": product_id, "errors": list(exc.errors)},
                    exc_info=True,
                )
                run.errors.extend(exc.errors)
            except Exception as exc:
                logger.error(
                    "mrp_calculation_failed",
                    extra={"product_id": product_id, "error": str(exc)},
                    exc_info=True,
                )
                run.errors.append(f"Calculation error: {exc}")

            result = MrpResult(
                product_id=product_id,
                planned_orders=tuple(run.orders),
                material_requirements=tuple(run.requirements),
                warnings=tuple(run.warnings),
                errors=tuple(run.errors),
                calculated_at=self._clock.now(),
                parameters={
                    "horizon": horizon.to_dict(),
                    "lot_sizing": run.strategy.value,
                    "lot_sizing_parameters": parameters.to_dict() if parameters else {},
                },
            )
            logger.info(
                "mrp_calculation_completed",
                extra={
                    "product_id": product_id,
                    "planned_orders": len(result.planned_orders),
                    "requirements": len(result.material_requirements),
                    "warnings": len(result.warnings),
                    "errors": len(result.errors),
                },
            )
        return result

    def calculate_multiple(
        self,
        product_ids: list[str],
        horizon: PlanningHorizon,
        lot_sizing: LotSizingStrategy | None = None,
        parameters: LotSizingParameters | None = None,
    ) -> dict[str, MrpResult]:
        return {
            product_id: self.calculate(product_id, horizon, lot_sizing, parameters)
            for product_id in product_ids
        }

    def regenerate(
        self,
        horizon: PlanningHorizon,
        product_ids: list[str] | None = None,
        delete_existing: bool = True,
    ) -> dict[str, MrpResult]:
        """
        Recalculate every master-scheduled product (or ``product_ids``) and
        store the resulting planned orders through the demand provider.

        With ``delete_existing`` the stored orders of every product a run
        plans are replaced, each product cleared once per regeneration.
        """
        if product_ids is None:
            product_ids = self._demand.master_scheduled_products(horizon)

        results: dict[str, MrpResult] = {}
        cleared: set[str] = set()
        for product_id in product_ids:
            result = self.calculate(product_id, horizon)
            if delete_existing:
                planned = [product_id] + [o.product_id for o in result.planned_orders]
                for stale_id in dict.fromkeys(planned):
                    if stale_id in cleared:
                        continue
                    cleared.add(stale_id)
                    deleted = self._demand.delete_planned_orders(stale_id, horizon)
                    logger.debug(
                        "mrp_planned_orders_deleted",
                        extra={"product_id": stale_id, "count": deleted},
                    )
            for order in result.planned_orders:
                self._demand.save_planned_order(order)
            results[product_id] = result

        logger.info(
            "mrp_regeneration_completed",
            extra={
                "products": len(results),
                "planned_orders": sum(len(r.planned_orders) for r in results.values()),
                "failed": [p for p, r in results.items() if r.has_errors],
            },
        )
        return results

    def net_change(
        self, product_id: str, quantity_change: Decimal, effective_date: date,
    ) -> MrpResult:
        """
        Replan one product after a demand change.

        The change itself must already be visible through the demand
        provider; it is recorded in the result parameters for traceability.
        """
        horizon = PlanningHorizon(
            start_date=effective_date,
            end_date=effective_date + timedelta(days=self._config.net_change_horizon_days),
        )
        logger.info(
            "mrp_net_change_started",
            extra={
                "product_id": product_id,
                "quantity_change": str(quantity_change),
                "effective_date": effective_date.isoformat(),
            },
        )
        result = self.calculate(product_id, horizon)
        return replace(
            result,
            parameters={**result.parameters, "quantity_change": str(quantity_change)},
        )

    def pegging(self, product_id: str, on_date: date) -> list[PeggingRecord]:
        """
        Demand sources behind ``product_id`` on ``on_date``: its own, then
        those of every parent assembly whose effective BOM uses it.
        """
        records = [
            PeggingRecord(
                product_id=product_id,
                demand_date=on_date,
                source_type=source.source_type.value,
                source_id=source.source_id,
                quantity=source.quantity,
            )
            for source in self._demand.demand_sources(product_id, on_date)
        ]

        seen_parents: set[str] = set()
        for parent_bom in self._boms.where_used(product_id, as_of=on_date):
            if parent_bom.product_id in seen_parents:
                continue
            seen_parents.add(parent_bom.product_id)
            for source in self._demand.demand_sources(parent_bom.product_id, on_date):
                records.append(
                    PeggingRecord(
                        product_id=product_id,
                        demand_date=on_date,
                        source_type=f"derived_from_{source.source_type.value}",
                        source_id=source.source_id,
                        quantity=source.quantity,
                        parent_product_id=parent_bom.product_id,
                    )
                )
        return records

    # =========================================================================
    # Internals
    # =========================================================================

    def _gross_requirements(self, product_id: str, horizon: PlanningHorizon) -> list[DatedQuantity]:
        independent = self._demand.independent_demand(product_id, horizon)
        dependent = self._demand.dependent_demand(product_id, horizon)
        return aggregate_gross_requirements(
            (DatedQuantity(d.due_date, d.quantity) for d in independent),
            (DatedQuantity(d.due_date, d.quantity) for d in dependent),
        )

    def _net_product(
        self,
        run: _MrpRun,
        product_id: str,
        gross: list[DatedQuantity],
        level: int,
        parent_product_id: str | None = None,
    ) -> list[PlannedOrder]:
        if not gross:
            return []

        position = run.positions.get(product_id) or self._initial_position(product_id, run.horizon)
        lead_time = self._lead_time(run, product_id)
        order_type = self._order_type(run, product_id)

        periods, run.positions[product_id] = self._netting.net_schedule(
            position=position,
            gross_schedule=gross,
            lead_time_days=lead_time,
            horizon_start=run.horizon.start_date,
            strategy=run.strategy,
            parameters=run.parameters,
        )

        orders: list[PlannedOrder] = []
        for period in periods:
            if period.order_date_clipped:
                run.warnings.append(
                    f"Order date for '{product_id}' on {period.required_date.isoformat()} "
                    "adjusted to horizon start"
                )
            run.requirements.append(
                self._requirement(product_id, period, level, parent_product_id)
            )
            if period.needs_order:
                order = PlannedOrder(
                    product_id=product_id,
                    quantity=period.order_quantity,
                    start_date=period.order_date,
                    due_date=period.required_date,
                    order_type=order_type,
                    level=level,
                    lot_sizing_strategy=run.strategy,
                    original_requirement=period.net_requirement,
                    parent_product_id=parent_product_id,
                )
                run.orders.append(order)
                orders.append(order)
        return orders

    def _explode(self, run: _MrpRun, top_orders: list[PlannedOrder]) -> None:
        """Net dependent demand level by level beneath manufactured orders."""
        parents = [o for o in top_orders if o.is_manufacturing]
        level = 1
        while parents:
            if level > self._config.max_explosion_level:
                products = sorted({o.product_id for o in parents})
                run.warnings.append(
                    f"Maximum BOM explosion level ({self._config.max_explosion_level}) "
                    f"reached for {', '.join(products)}"
                )
                logger.warning(
                    "mrp_max_explosion_level_reached",
                    extra={"product_id": run.product_id, "level": level, "parents": products},
                )
                return

            demand: dict[str, list[DatedQuantity]] = {}
            first_parent: dict[str, str] = {}
            for order in parents:
                bom = self._boms.get_effective(order.product_id, order.start_date)
                if bom is None:
                    run.warnings.append(
                        f"No effective BOM for '{order.product_id}' on "
                        f"{order.start_date.isoformat()}; components not planned"
                    )
                    continue
                for component in self._boms.explode(
                    bom.id, order.quantity, as_of=order.start_date, max_depth=1,
                ):
                    demand.setdefault(component.product_id, []).append(
                        DatedQuantity(order.start_date, component.quantity)
                    )
                    first_parent.setdefault(component.product_id, order.product_id)

            next_parents: list[PlannedOrder] = []
            for component_id, lines in demand.items():
                orders = self._net_product(
                    run,
                    component_id,
                    aggregate_gross_requirements(lines),
                    level=level,
                    parent_product_id=first_parent[component_id],
                )
                next_parents.extend(o for o in orders if o.is_manufacturing)

            logger.debug(
                "mrp_level_netted",
                extra={"level": level, "components": len(demand), "orders": len(next_parents)},
            )
            parents = next_parents
            level += 1

    def _initial_position(self, product_id: str, horizon: PlanningHorizon) -> InventoryPosition:
        on_hand = self._inventory.on_hand_quantity(product_id)
        safety_stock = self._inventory.safety_stock(product_id)
        problems = []
        if on_hand < 0:
            problems.append(f"Negative on-hand quantity {on_hand} for '{product_id}'")
        if safety_stock < 0:
            problems.append(f"Negative safety stock {safety_stock} for '{product_id}'")
        if problems:
            raise CalculationError(product_id, problems)

        receipts = self._inventory.scheduled_receipts(product_id, horizon.end_date)
        return InventoryPosition(
            on_hand=on_hand,
            safety_stock=safety_stock,
            pending_receipts=tuple(sorted(receipts, key=lambda r: r.due_date)),
        )

    def _lead_time(self, run: _MrpRun, product_id: str) -> int:
        lead_time = self._inventory.lead_time_days(product_id)
        if lead_time < 0:
            raise CalculationError(product_id, [f"Negative lead time {lead_time} for '{product_id}'"])
        if lead_time == 0:
            lead_time = self._config.default_lead_time_days
            run.warnings.append(
                f"Using default lead time of {lead_time} day(s) for product '{product_id}'"
            )
            logger.warning(
                "mrp_default_lead_time_used",
                extra={"product_id": product_id, "lead_time_days": lead_time},
            )
        return lead_time

    def _order_type(self, run: _MrpRun, product_id: str) -> OrderType:
        if product_id not in run.order_types:
            run.order_types[product_id] = (
                OrderType.MANUFACTURING
                if self._boms.has_effective_bom(product_id, run.horizon.start_date)
                else OrderType.PURCHASE
            )
        return run.order_types[product_id]

    @staticmethod
    def _requirement(
        product_id: str, period: NetPeriod, level: int, parent_product_id: str | None,
    ) -> MaterialRequirement:
        return MaterialRequirement(
            product_id=product_id,
            gross_requirement=period.gross_requirement,
            net_requirement=period.net_requirement,
            required_date=period.required_date,
            order_date=period.order_date,
            on_hand=period.on_hand,
            scheduled_receipts=period.scheduled_receipts,
            safety_stock=period.safety_stock,
            level=level,
            parent_product_id=parent_product_id,
        )
