"""
CapacityPlanner -- finite capacity profiles and overload resolution.

Responsibility
--------------
Compare what each work center can do (its calendar, via
``WorkCenterManager``) with what is asked of it: firm load from work orders
and planned load derived from MRP planned orders through their routings.
Detect overloads and bottlenecks and propose ranked resolutions.  Rough-cut
planning loads a master schedule straight from routings.

Architecture position
---------------------
**Services layer** -- reads ``WorkCenterManager``, ``WorkOrderManager``,
``RoutingManager`` and the demand provider's stored planned orders.  Its
suggestions are acted on by ``CapacityResolver``.

Invariants enforced
-------------------
* A profile's periods are the horizon's buckets, half-open.
* Firm load is planned setup + run hours of operation lines on the work
  center, for orders in a load-bearing status, dated at planned start.
* Planned-order load is derived at calculation time from the routing
  effective on the order's start date; purchased items carry no load.
* Suggestions are sorted by priority; generation never applies anything.

Failure modes
-------------
* ``WorkCenterNotFoundError`` for an unknown work center id.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.domain.horizon import PlanningHorizon
from mfg_kernel.exceptions import RoutingNotFoundError
from mfg_kernel.logging_config import LogContext, get_logger
from mfg_modules.capacity.config import CapacityConfig
from mfg_modules.capacity.models import (
    AvailabilityCheck,
    Bottleneck,
    CapacityLoad,
    CapacityPeriod,
    CapacityProfile,
    CapacityResolutionSuggestion,
    LoadLevelingMove,
    LoadSourceType,
    MasterScheduleItem,
    OverloadedWorkCenter,
    ProductLoad,
    RoughCutItem,
    RoughCutLoad,
)
from mfg_modules.mrp.models import PlannedOrder
from mfg_modules.routing.service import RoutingManager
from mfg_modules.work_center.models import WorkCenter
from mfg_modules.work_center.service import WorkCenterManager
from mfg_modules.work_order.service import WorkOrderManager
from mfg_services.providers import DemandDataProvider

logger = get_logger("services.capacity_planner")

ZERO = Decimal("0")


class CapacityPlanner:
    """
    Capacity profiles, overload detection and resolution suggestions.

    Contract:
        Every method taking ``planned_orders`` uses exactly those orders as
        planned load; when omitted, the orders stored through the demand
        provider for the horizon are used.
    Guarantees:
        ``profile.is_overloaded == (loaded > available)`` and
        ``profile.excess_load == max(0, loaded - available)``.
    Non-goals:
        Sequencing operations within a period (finite scheduling).
    """

    def __init__(
        self,
        work_center_manager: WorkCenterManager,
        work_order_manager: WorkOrderManager,
        routing_manager: RoutingManager,
        demand: DemandDataProvider | None = None,
        config: CapacityConfig | None = None,
        clock: Clock | None = None,
    ):
        self._work_centers = work_center_manager
        self._work_orders = work_order_manager
        self._routings = routing_manager
        self._demand = demand
        self._config = config or CapacityConfig()
        self._clock = clock or SystemClock()

    # =========================================================================
    # Profiles
    # =========================================================================

    def calculate_load(
        self,
        work_center_id: UUID,
        horizon: PlanningHorizon,
        planned_orders: list[PlannedOrder] | None = None,
    ) -> CapacityProfile:
        self._work_centers.find_by_id(work_center_id)
        loads = self._loads(
            work_center_id, horizon.start_date, horizon.end_date, planned_orders, horizon,
        )

        periods: list[CapacityPeriod] = []
        for bucket in horizon.buckets():
            period = CapacityPeriod(
                period_start=bucket.start,
                period_end=bucket.end,
                available_hours=self._work_centers.available_hours_for_period(
                    work_center_id, bucket.start, bucket.end,
                ),
            )
            for load in loads:
                if bucket.contains(load.load_date):
                    period = period.with_additional_load(load)
            periods.append(period)

        profile = CapacityProfile(
            work_center_id=work_center_id,
            horizon=horizon,
            periods=tuple(periods),
            total_available_capacity=sum((p.available_hours for p in periods), ZERO),
            total_loaded_capacity=sum((p.loaded_hours for p in periods), ZERO),
            calculated_at=self._clock.now(),
        )
        logger.debug(
            "capacity_profile_calculated",
            extra={
                "work_center_id": str(work_center_id),
                "periods": len(periods),
                "available_hours": str(profile.total_available_capacity),
                "loaded_hours": str(profile.total_loaded_capacity),
                "overloaded": profile.is_overloaded,
            },
        )
        return profile

    capacity_profile = calculate_load

    def all_capacity_profiles(
        self,
        horizon: PlanningHorizon,
        planned_orders: list[PlannedOrder] | None = None,
    ) -> dict[UUID, CapacityProfile]:
        """Profiles of every active work center."""
        planned_orders = self._planned_orders(horizon, planned_orders)
        return {
            wc.id: self.calculate_load(wc.id, horizon, planned_orders)
            for wc in self._work_centers.find_active()
        }

    def overloaded_work_centers(
        self,
        horizon: PlanningHorizon,
        planned_orders: list[PlannedOrder] | None = None,
    ) -> list[OverloadedWorkCenter]:
        """Overloaded active work centers, largest excess first."""
        planned_orders = self._planned_orders(horizon, planned_orders)
        overloaded = []
        for wc in self._work_centers.find_active():
            profile = self.calculate_load(wc.id, horizon, planned_orders)
            if profile.is_overloaded:
                overloaded.append(OverloadedWorkCenter(wc.id, wc.code, profile))
        overloaded.sort(key=lambda o: o.excess_hours, reverse=True)

        if overloaded:
            logger.warning(
                "capacity_overloads_detected",
                extra={
                    "count": len(overloaded),
                    "work_centers": [o.work_center_code for o in overloaded],
                },
            )
        return overloaded

    def identify_bottlenecks(
        self,
        horizon: PlanningHorizon,
        threshold: Decimal | None = None,
        planned_orders: list[PlannedOrder] | None = None,
    ) -> list[Bottleneck]:
        """
        Periods whose utilization ratio is at or above ``threshold``.

        A period with load but no available hours counts as fully utilized.
        """
        threshold = threshold if threshold is not None else self._config.bottleneck_threshold
        bottlenecks = []
        for wc_id, profile in self.all_capacity_profiles(horizon, planned_orders).items():
            for period in profile.periods:
                ratio = period.utilization / 100
                if period.loaded_hours > 0 and ratio >= threshold:
                    bottlenecks.append(
                        Bottleneck(
                            work_center_id=wc_id,
                            period_start=period.period_start,
                            utilization=ratio,
                            overload=period.excess_hours,
                        )
                    )
        return bottlenecks

    # =========================================================================
    # Rough-cut capacity
    # =========================================================================

    def load_for_product(
        self,
        product_id: str,
        quantity: Decimal,
        horizon: PlanningHorizon,
        as_of: date | None = None,
        planned_orders: list[PlannedOrder] | None = None,
    ) -> dict[UUID, ProductLoad]:
        """
        What ``quantity`` more of ``product_id`` would do to every active work center.

        Additional hours are the routing's setup and run hours on each
        work center (zero where the routing does not visit it), taken from
        the routing effective on ``as_of`` (default: horizon start).
        Returns an empty mapping when the product has no effective routing.
        """
        as_of = as_of or horizon.start_date
        try:
            requirements = self._routings.calculate_capacity_requirement(
                product_id, quantity, as_of,
            )
        except RoutingNotFoundError:
            logger.debug(
                "product_load_without_routing",
                extra={"product_id": product_id, "as_of": as_of.isoformat()},
            )
            return {}

        hours = {r.work_center_id: r.total_hours for r in requirements}
        planned_orders = self._planned_orders(horizon, planned_orders)
        return {
            wc.id: ProductLoad(
                work_center_id=wc.id,
                profile=self.calculate_load(wc.id, horizon, planned_orders),
                additional_hours=hours.get(wc.id, ZERO),
            )
            for wc in self._work_centers.find_active()
        }

    def rough_cut_capacity_plan(
        self,
        master_schedule: list[MasterScheduleItem],
        horizon: PlanningHorizon,
    ) -> dict[UUID, RoughCutLoad]:
        """
        Load a master schedule onto the active work centers.

        Each item contributes its routing hours (routing effective on the
        item's due date) to every work center the routing visits.  Only the
        master schedule is loaded; firm work orders and planned orders are
        not.  Items due outside the horizon, and items without a routing,
        are skipped.
        """
        plan: dict[UUID, RoughCutLoad] = {
            wc.id: RoughCutLoad(
                work_center_id=wc.id,
                available_hours=self._work_centers.available_hours_for_period(
                    wc.id, horizon.start_date, horizon.end_date,
                ),
            )
            for wc in self._work_centers.find_active()
        }

        for item in master_schedule:
            if not horizon.contains(item.due_date):
                logger.debug(
                    "master_schedule_item_outside_horizon",
                    extra={"product_id": item.product_id, "due_date": item.due_date.isoformat()},
                )
                continue
            try:
                requirements = self._routings.calculate_capacity_requirement(
                    item.product_id, item.quantity, item.due_date,
                )
            except RoutingNotFoundError:
                logger.debug(
                    "product_load_without_routing",
                    extra={"product_id": item.product_id, "as_of": item.due_date.isoformat()},
                )
                continue
            for requirement in requirements:
                load = plan.get(requirement.work_center_id)
                if load is None:
                    continue
                plan[requirement.work_center_id] = load.with_item(
                    RoughCutItem(
                        product_id=item.product_id,
                        quantity=item.quantity,
                        due_date=item.due_date,
                        hours=requirement.total_hours,
                    )
                )

        overloaded = [str(wc_id) for wc_id, load in plan.items() if load.is_overloaded]
        logger.info(
            "rough_cut_capacity_planned",
            extra={
                "items": len(master_schedule),
                "work_centers": len(plan),
                "overloaded_work_centers": overloaded,
            },
        )
        return plan

    # =========================================================================
    # Resolution suggestions
    # =========================================================================

    def suggest_resolutions(
        self,
        work_center_id: UUID,
        horizon: PlanningHorizon,
        planned_orders: list[PlannedOrder] | None = None,
    ) -> list[CapacityResolutionSuggestion]:
        with LogContext.bind(work_center_id=str(work_center_id)):
            return self._suggest_resolutions(work_center_id, horizon, planned_orders)

    def _suggest_resolutions(
        self,
        work_center_id: UUID,
        horizon: PlanningHorizon,
        planned_orders: list[PlannedOrder] | None,
    ) -> list[CapacityResolutionSuggestion]:
        planned_orders = self._planned_orders(horizon, planned_orders)
        profile = self.calculate_load(work_center_id, horizon, planned_orders)
        if not profile.is_overloaded:
            return []

        work_center = self._work_centers.find_by_id(work_center_id)
        excess = profile.excess_load
        working_days = horizon.total_days * work_center.days_per_week // 7
        max_overtime = self._config.max_overtime_hours_per_day * working_days

        suggestions: list[CapacityResolutionSuggestion] = []

        alternate = self._work_centers.get_alternate(work_center_id)
        if alternate is not None:
            spare = self.calculate_load(alternate.id, horizon, planned_orders).available_capacity
            if spare > 0:
                hours = min(excess, spare)
                suggestions.append(
                    CapacityResolutionSuggestion.alternative_work_center(
                        work_center_id,
                        alternate.id,
                        hours,
                        additional_cost=_rate_differential(work_center, alternate) * hours,
                        start_date=horizon.start_date,
                    )
                )

        overtime_hours = min(excess, max_overtime)
        if overtime_hours > 0:
            suggestions.append(
                CapacityResolutionSuggestion.overtime(
                    work_center_id,
                    overtime_hours,
                    self._config.overtime_cost_per_hour,
                    horizon.start_date,
                )
            )

        for overloaded in profile.overloaded_periods:
            target = next(
                (
                    p for p in profile.periods
                    if p.period_start > overloaded.period_start and not p.is_overloaded
                ),
                None,
            )
            if target is None:
                continue
            hours = min(overloaded.excess_hours, target.remaining_hours)
            if hours > 0:
                suggestions.append(
                    CapacityResolutionSuggestion.reschedule(
                        work_center_id, overloaded.period_start, target.period_start, hours,
                    )
                )

        suggestions.append(
            CapacityResolutionSuggestion.split(
                work_center_id, excess * self._config.split_resolution_ratio,
            )
        )

        shift_hours = work_center.daily_capacity * working_days
        if shift_hours > 0 and excess > max_overtime:
            suggestions.append(
                CapacityResolutionSuggestion.add_shift(
                    work_center_id, shift_hours, self._config.shift_cost_per_hour,
                )
            )

        suggestions.sort(key=lambda s: s.priority)
        logger.info(
            "capacity_resolutions_suggested",
            extra={
                "work_center_id": str(work_center_id),
                "excess_hours": str(excess),
                "suggestions": [s.action.value for s in suggestions],
            },
        )
        return suggestions

    # =========================================================================
    # Availability
    # =========================================================================

    def check_availability(
        self,
        product_id: str,
        quantity: Decimal,
        on_date: date,
        planned_orders: list[PlannedOrder] | None = None,
    ) -> AvailabilityCheck:
        """
        Whether every work center on the product's routing has hours left
        on ``on_date``.  A product without a routing is never constrained.
        """
        try:
            requirements = self._routings.calculate_capacity_requirement(
                product_id, quantity, on_date,
            )
        except RoutingNotFoundError:
            logger.debug("capacity_check_without_routing", extra={"product_id": product_id})
            return AvailabilityCheck(available=True)

        next_day = on_date + timedelta(days=1)
        constrained: list[UUID] = []
        for requirement in requirements:
            wc_id = requirement.work_center_id
            if not self._work_centers.find_by_id(wc_id).is_active:
                constrained.append(wc_id)
                continue
            available = self._work_centers.available_hours(wc_id, on_date)
            loaded = sum(
                (load.hours for load in self._loads(wc_id, on_date, next_day, planned_orders)), ZERO,
            )
            if available - loaded <= 0:
                constrained.append(wc_id)

        return AvailabilityCheck(
            available=not constrained, constrained_work_center_ids=tuple(constrained),
        )

    def find_earliest_available(
        self,
        product_id: str,
        quantity: Decimal,
        desired_date: date,
        planned_orders: list[PlannedOrder] | None = None,
    ) -> date:
        """
        First date from ``desired_date`` on with no constrained work center.

        Gives up after ``availability_search_days`` and returns the date at
        the end of the search window.
        """
        search_days = self._config.availability_search_days
        for offset in range(search_days):
            candidate = desired_date + timedelta(days=offset)
            if self.check_availability(product_id, quantity, candidate, planned_orders).available:
                return candidate

        logger.warning(
            "capacity_no_slot_found",
            extra={
                "product_id": product_id,
                "desired_date": desired_date.isoformat(),
                "search_days": search_days,
            },
        )
        return desired_date + timedelta(days=search_days)

    def level_load(
        self,
        orders: list[PlannedOrder],
        planned_orders: list[PlannedOrder] | None = None,
    ) -> list[LoadLevelingMove]:
        """Moves for every order whose start date lacks capacity."""
        moves = []
        for order in orders:
            check = self.check_availability(
                order.product_id, order.quantity, order.start_date, planned_orders,
            )
            if check.available:
                continue
            new_date = self.find_earliest_available(
                order.product_id, order.quantity, order.start_date, planned_orders,
            )
            if new_date > order.start_date:
                moves.append(
                    LoadLevelingMove(order.id, order.product_id, order.start_date, new_date)
                )
        return moves

    def calculate_requirements(self, planned_orders: list[PlannedOrder]) -> list[CapacityLoad]:
        """Capacity loads of planned orders on every work center of their routings."""
        loads: list[CapacityLoad] = []
        for order in planned_orders:
            loads.extend(self._planned_order_loads(order))
        return loads

    # =========================================================================
    # Internals
    # =========================================================================

    def _planned_orders(
        self, horizon: PlanningHorizon, planned_orders: list[PlannedOrder] | None,
    ) -> list[PlannedOrder]:
        if planned_orders is not None:
            return planned_orders
        if self._demand is None:
            return []
        return self._demand.planned_orders(horizon)

    def _loads(
        self,
        work_center_id: UUID,
        start: date,
        end: date,
        planned_orders: list[PlannedOrder] | None,
        horizon: PlanningHorizon | None = None,
    ) -> list[CapacityLoad]:
        """Firm and planned loads on the work center dated in ``[start, end)``."""
        loads: list[CapacityLoad] = []
        for order in self._work_orders.find_by_work_center_and_date_range(
            work_center_id, start, end,
        ):
            for line in order.operation_lines:
                if line.work_center_id != work_center_id:
                    continue
                loads.append(
                    CapacityLoad(
                        source_id=order.id,
                        source_type=LoadSourceType.WORK_ORDER,
                        work_center_id=work_center_id,
                        setup_hours=line.planned_setup_hours,
                        run_hours=line.planned_run_hours,
                        load_date=order.planned_start_date,
                        operation_number=line.operation_number,
                        product_id=order.product_id,
                        quantity=order.quantity,
                    )
                )

        horizon = horizon or PlanningHorizon(start_date=start, end_date=end)
        for order in self._planned_orders(horizon, planned_orders):
            if not (start <= order.start_date < end):
                continue
            loads.extend(
                load for load in self._planned_order_loads(order)
                if load.work_center_id == work_center_id
            )
        return loads

    def _planned_order_loads(self, order: PlannedOrder) -> list[CapacityLoad]:
        if not order.is_manufacturing:
            return []
        try:
            requirements = self._routings.calculate_capacity_requirement(
                order.product_id, order.quantity, order.start_date,
            )
        except RoutingNotFoundError:
            logger.debug(
                "planned_order_without_routing",
                extra={"product_id": order.product_id, "order_id": str(order.id)},
            )
            return []

        return [
            CapacityLoad(
                source_id=order.id,
                source_type=LoadSourceType.PLANNED_ORDER,
                work_center_id=r.work_center_id,
                setup_hours=r.setup_hours,
                run_hours=r.run_hours,
                load_date=order.start_date,
                operation_number=r.operation_numbers[0] if r.operation_numbers else None,
                product_id=order.product_id,
                quantity=order.quantity,
            )
            for r in requirements
        ]


def _rate_differential(work_center: WorkCenter, alternate: WorkCenter) -> Decimal:
    """Extra cost per hour of the alternate; zero when either rate is unknown."""
    if work_center.cost_per_hour is None or alternate.cost_per_hour is None:
        return ZERO
    return max(ZERO, alternate.cost_per_hour - work_center.cost_per_hour)
