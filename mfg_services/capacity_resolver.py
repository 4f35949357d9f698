"""
CapacityResolver -- validate and apply capacity resolution suggestions.

Responsibility
--------------
Act on the suggestions produced by ``CapacityPlanner``: check their
preconditions, apply the ones the caller is allowed to apply, and resolve
an overloaded work center automatically with the safe subset.

Architecture position
---------------------
**Services layer** -- side effects go through ``WorkOrderManager``
(reschedule, reassign, cancel) and ``WorkCenterManager`` (overtime).
Split, subcontract and add-shift need procurement or HR workflows outside
this package; their handlers record intent and report non-application.

Invariants enforced
-------------------
* A suggestion requiring approval is never applied without
  ``context.approved``; one that cannot auto-apply is never applied
  without ``context.force_apply``.
* ``auto_resolve`` only applies suggestions that can auto-apply and need
  no approval, and returns exactly those that were applied.
* Moving firm load never moves more hours than the suggestion resolves.
* ``validate_suggestion`` never raises; it returns every violation.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.domain.horizon import PlanningHorizon
from mfg_kernel.exceptions import ManufacturingError, WorkOrderNotFoundError
from mfg_kernel.logging_config import LogContext, get_logger
from mfg_modules.capacity.config import CapacityConfig
from mfg_modules.capacity.models import (
    AutoResolveResult,
    CapacityResolutionSuggestion,
    ImpactEstimate,
    ResolutionAction,
    ResolutionContext,
    SchedulingImpact,
)
from mfg_modules.mrp.models import PlannedOrder
from mfg_modules.work_center.service import WorkCenterManager
from mfg_modules.work_order.models import WorkOrder, WorkOrderStatus
from mfg_modules.work_order.service import WorkOrderManager
from mfg_services.capacity_planner import CapacityPlanner

logger = get_logger("services.capacity_resolver")

ZERO = Decimal("0")

CANCEL_REASON = "Capacity constraint resolution"

_MOVABLE = (WorkOrderStatus.PLANNED, WorkOrderStatus.RELEASED)

_QUALITY_IMPACT = {
    ResolutionAction.OVERTIME: "Potential quality degradation due to overtime",
    ResolutionAction.SUBCONTRACT: "Quality depends on subcontractor",
    ResolutionAction.SPLIT: "Minimal impact",
}

_SUBCONTRACT_COST_SHARES = {
    "setup": Decimal("0.2"),
    "processing": Decimal("0.7"),
    "logistics": Decimal("0.1"),
}


class CapacityResolver:
    """
    Applies capacity resolutions under an explicit caller context.

    Contract:
        ``apply_suggestion`` returns True only when the resolution took
        effect.  Refusals (approval, auto-apply, missing targets) return
        False and are logged.
    Guarantees:
        Workflow errors from the managers are logged and reported as
        non-application; they never escape ``apply_suggestion``.
    Non-goals:
        Creating purchase orders for subcontracting or staffing shifts.
    """

    def __init__(
        self,
        planner: CapacityPlanner,
        work_center_manager: WorkCenterManager,
        work_order_manager: WorkOrderManager,
        config: CapacityConfig | None = None,
        clock: Clock | None = None,
    ):
        self._planner = planner
        self._work_centers = work_center_manager
        self._work_orders = work_order_manager
        self._config = config or CapacityConfig()
        self._clock = clock or SystemClock()
        self._handlers: dict[
            ResolutionAction,
            Callable[[CapacityResolutionSuggestion, ResolutionContext], bool],
        ] = {
            ResolutionAction.RESCHEDULE: self._apply_reschedule,
            ResolutionAction.ALTERNATIVE_WORK_CENTER: self._apply_alternative_work_center,
            ResolutionAction.OVERTIME: self._apply_overtime,
            ResolutionAction.SPLIT: self._apply_split,
            ResolutionAction.SUBCONTRACT: self._apply_subcontract,
            ResolutionAction.ADD_SHIFT: self._apply_add_shift,
            ResolutionAction.CANCEL: self._apply_cancel,
            ResolutionAction.MANUAL: self._apply_manual,
        }

    # =========================================================================
    # Suggestions
    # =========================================================================

    def get_suggestions(
        self,
        work_center_id: UUID,
        on_date: date,
        planned_orders: list[PlannedOrder] | None = None,
    ) -> list[CapacityResolutionSuggestion]:
        """Ranked suggestions over the resolution window starting ``on_date``."""
        return self._planner.suggest_resolutions(
            work_center_id, self._window(on_date), planned_orders,
        )

    def suggest_subcontracting(
        self, work_center_id: UUID, overload_hours: Decimal,
    ) -> list[CapacityResolutionSuggestion]:
        return [
            CapacityResolutionSuggestion.subcontract(
                work_center_id, overload_hours, self._config.subcontract_cost_per_hour,
            )
        ]

    # =========================================================================
    # Application
    # =========================================================================

    def apply_suggestion(
        self,
        suggestion: CapacityResolutionSuggestion,
        context: ResolutionContext | None = None,
    ) -> bool:
        context = context or ResolutionContext()
        work_center_id = str(suggestion.work_center_id) if suggestion.work_center_id else None
        with LogContext.bind(work_center_id=work_center_id):
            return self._apply_suggestion(suggestion, context)

    def _apply_suggestion(
        self,
        suggestion: CapacityResolutionSuggestion,
        context: ResolutionContext,
    ) -> bool:
        if suggestion.requires_approval and not context.approved:
            logger.info(
                "capacity_resolution_requires_approval",
                extra={"action": suggestion.action.value, "description": suggestion.description},
            )
            return False

        if not suggestion.can_auto_apply and not context.force_apply:
            logger.info(
                "capacity_resolution_not_auto_applicable",
                extra={"action": suggestion.action.value, "description": suggestion.description},
            )
            return False

        try:
            applied = self._handlers[suggestion.action](suggestion, context)
        except ManufacturingError as exc:
            logger.error(
                "capacity_resolution_failed",
                extra={"action": suggestion.action.value, "error": str(exc)},
                exc_info=True,
            )
            return False

        if applied:
            logger.info(
                "capacity_resolution_applied",
                extra={
                    "action": suggestion.action.value,
                    "resolves_hours": str(suggestion.resolves_hours),
                },
            )
        return applied

    def auto_resolve(
        self,
        work_center_id: UUID,
        on_date: date,
        simulate: bool = False,
        planned_orders: list[PlannedOrder] | None = None,
    ) -> AutoResolveResult:
        """
        Apply safe suggestions in priority order until the excess is gone.

        With ``simulate`` nothing is applied; the result lists the
        suggestions that would be attempted.
        """
        horizon = self._window(on_date)
        remaining = self._planner.calculate_load(
            work_center_id, horizon, planned_orders,
        ).excess_load
        suggestions = self._planner.suggest_resolutions(work_center_id, horizon, planned_orders)

        applied: list[CapacityResolutionSuggestion] = []
        for suggestion in suggestions:
            if remaining <= 0:
                break
            if not suggestion.can_auto_apply or suggestion.requires_approval:
                continue
            if simulate or self.apply_suggestion(suggestion):
                applied.append(suggestion)
                remaining -= suggestion.resolves_hours
                logger.info(
                    "capacity_auto_resolution_step",
                    extra={
                        "action": suggestion.action.value,
                        "resolves_hours": str(suggestion.resolves_hours),
                        "remaining_excess": str(max(ZERO, remaining)),
                        "simulated": simulate,
                    },
                )

        return AutoResolveResult(
            resolved=remaining <= 0,
            applied=tuple(applied),
            remaining_excess=max(ZERO, remaining),
            simulated=simulate,
        )

    # =========================================================================
    # Validation and impact
    # =========================================================================

    def validate_suggestion(
        self,
        suggestion: CapacityResolutionSuggestion,
        context: ResolutionContext | None = None,
    ) -> list[str]:
        context = context or ResolutionContext()
        errors: list[str] = []
        action = suggestion.action

        if action == ResolutionAction.RESCHEDULE:
            if suggestion.suggested_date is None:
                errors.append("New schedule date is required for reschedule action")
            if suggestion.days_delayed > self._config.max_reschedule_delay_days:
                errors.append(
                    "Reschedule delay exceeds maximum allowed "
                    f"({self._config.max_reschedule_delay_days} days)"
                )

        elif action == ResolutionAction.ALTERNATIVE_WORK_CENTER:
            if suggestion.target_resource_id is None:
                errors.append("Alternative work center ID is required")
            elif not self._work_centers.exists(suggestion.target_resource_id):
                errors.append("Alternative work center not found")

        elif action == ResolutionAction.OVERTIME:
            hours = Decimal(str(suggestion.parameters.get("overtime_hours", suggestion.resolves_hours)))
            if hours > self._config.max_overtime_hours:
                errors.append(
                    f"Overtime hours exceed maximum ({self._config.max_overtime_hours} hours)"
                )
            if (
                context.max_overtime_budget is not None
                and suggestion.estimated_cost > context.max_overtime_budget
            ):
                errors.append("Overtime cost exceeds budget")

        elif action == ResolutionAction.SPLIT:
            if suggestion.resolves_hours < 1:
                errors.append("Split must resolve at least 1 hour")

        elif action == ResolutionAction.SUBCONTRACT:
            if not context.subcontractor_id:
                errors.append("Subcontractor ID is required")

        elif action == ResolutionAction.ADD_SHIFT:
            if not context.management_approval:
                errors.append("Management approval required for adding shifts")

        elif action == ResolutionAction.CANCEL:
            work_order_id = context.work_order_id or suggestion.target_resource_id
            if work_order_id is None:
                errors.append("Work order ID is required for cancellation")
            else:
                try:
                    order = self._work_orders.find_by_id(work_order_id)
                except WorkOrderNotFoundError:
                    errors.append("Work order not found")
                else:
                    if not order.status.can_cancel:
                        errors.append("Work order cannot be cancelled in current status")

        if errors:
            logger.info(
                "capacity_suggestion_invalid",
                extra={"action": action.value, "errors": errors},
            )
        return errors

    def estimate_impact(
        self,
        suggestion: CapacityResolutionSuggestion,
        context: ResolutionContext | None = None,
    ) -> ImpactEstimate:
        context = context or ResolutionContext()
        days = suggestion.days_delayed
        if days > 7:
            cascade_risk = "high"
        elif days > 3:
            cascade_risk = "medium"
        else:
            cascade_risk = "low"

        return ImpactEstimate(
            hours_resolved=suggestion.resolves_hours,
            estimated_cost=suggestion.estimated_cost,
            days_delayed=days,
            affected_work_order_ids=context.affected_work_order_ids,
            quality_impact=_QUALITY_IMPACT.get(suggestion.action, "None"),
            cost_breakdown=self._cost_breakdown(suggestion),
            scheduling_impact=SchedulingImpact(
                days_delayed=days,
                affected_orders=len(context.affected_work_order_ids),
                cascade_risk=cascade_risk,
            ),
        )

    def _cost_breakdown(self, suggestion: CapacityResolutionSuggestion) -> dict[str, Decimal]:
        if suggestion.action == ResolutionAction.OVERTIME:
            hours = Decimal(str(suggestion.parameters.get("overtime_hours", suggestion.resolves_hours)))
            rate = Decimal(
                str(suggestion.parameters.get("cost_per_hour", self._config.overtime_cost_per_hour))
            )
            return {"overtime_hours": hours, "hourly_rate": rate, "total_cost": hours * rate}
        if suggestion.action == ResolutionAction.SUBCONTRACT:
            breakdown = {"estimated_cost": suggestion.estimated_cost}
            for part, share in _SUBCONTRACT_COST_SHARES.items():
                breakdown[part] = suggestion.estimated_cost * share
            return breakdown
        return {"estimated_cost": suggestion.estimated_cost}

    # =========================================================================
    # Handlers
    # =========================================================================

    def _apply_reschedule(
        self, suggestion: CapacityResolutionSuggestion, context: ResolutionContext,
    ) -> bool:
        new_date = suggestion.suggested_date
        if new_date is None or suggestion.work_center_id is None:
            logger.warning("capacity_reschedule_missing_target")
            return False

        from_date = suggestion.parameters.get("from_date") or self._clock.today()
        orders = self._select_orders(
            suggestion.work_center_id, from_date, new_date, suggestion.resolves_hours, context,
        )
        if not orders:
            logger.warning(
                "capacity_reschedule_no_movable_orders",
                extra={"work_center_id": str(suggestion.work_center_id)},
            )
            return False

        for order in orders:
            shift = new_date - order.planned_start_date
            self._work_orders.reschedule(order.id, new_date, order.planned_end_date + shift)
        return True

    def _apply_alternative_work_center(
        self, suggestion: CapacityResolutionSuggestion, context: ResolutionContext,
    ) -> bool:
        alternate_id = suggestion.target_resource_id
        if alternate_id is None or suggestion.work_center_id is None:
            logger.warning("capacity_alternate_missing_target")
            return False

        start = suggestion.suggested_date or self._clock.today()
        end = start + timedelta(days=self._config.resolution_window_days)
        orders = self._select_orders(
            suggestion.work_center_id, start, end, suggestion.resolves_hours, context,
        )
        if not orders:
            logger.warning(
                "capacity_alternate_no_movable_orders",
                extra={"work_center_id": str(suggestion.work_center_id)},
            )
            return False

        for order in orders:
            self._work_orders.reassign_work_center(
                order.id, suggestion.work_center_id, alternate_id,
            )
        return True

    def _apply_overtime(
        self, suggestion: CapacityResolutionSuggestion, context: ResolutionContext,
    ) -> bool:
        """Spread the overtime over working days, at most the daily limit each."""
        if suggestion.work_center_id is None:
            logger.warning("capacity_overtime_missing_work_center")
            return False

        remaining = Decimal(str(suggestion.parameters.get("overtime_hours", suggestion.resolves_hours)))
        start = suggestion.suggested_date or self._clock.today()
        days = self._work_centers.working_days(
            suggestion.work_center_id,
            start,
            start + timedelta(days=self._config.resolution_window_days),
        )
        for day in days:
            if remaining <= 0:
                break
            hours = min(remaining, self._config.max_overtime_hours_per_day)
            self._work_centers.schedule_overtime(
                suggestion.work_center_id, day, hours, reason="Capacity resolution",
            )
            remaining -= hours

        if remaining > 0:
            logger.warning(
                "capacity_overtime_partially_scheduled",
                extra={
                    "work_center_id": str(suggestion.work_center_id),
                    "unscheduled_hours": str(remaining),
                },
            )
        return bool(days)

    def _apply_split(self, suggestion, context) -> bool:
        logger.info(
            "capacity_split_flagged_for_manual_handling",
            extra={"description": suggestion.description},
        )
        return False

    def _apply_subcontract(self, suggestion, context) -> bool:
        logger.info(
            "capacity_subcontract_flagged_for_procurement",
            extra={
                "description": suggestion.description,
                "subcontractor_id": context.subcontractor_id,
            },
        )
        return False

    def _apply_add_shift(self, suggestion, context) -> bool:
        logger.info(
            "capacity_add_shift_flagged_for_approval",
            extra={"description": suggestion.description},
        )
        return False

    def _apply_cancel(
        self, suggestion: CapacityResolutionSuggestion, context: ResolutionContext,
    ) -> bool:
        work_order_id = context.work_order_id or suggestion.target_resource_id
        if work_order_id is None:
            return False
        self._work_orders.cancel(work_order_id, CANCEL_REASON)
        return True

    def _apply_manual(self, suggestion, context) -> bool:
        logger.info(
            "capacity_manual_resolution_recorded",
            extra={"description": suggestion.description},
        )
        return True

    # =========================================================================
    # Internals
    # =========================================================================

    def _window(self, on_date: date) -> PlanningHorizon:
        return PlanningHorizon.for_days(on_date, self._config.resolution_window_days)

    def _select_orders(
        self,
        work_center_id: UUID,
        start: date,
        end: date,
        hours_limit: Decimal,
        context: ResolutionContext,
    ) -> list[WorkOrder]:
        """
        Movable orders loading the work center, latest start first, whose
        combined hours there stay within ``hours_limit``.
        """
        if context.work_order_id is not None:
            return [self._work_orders.find_by_id(context.work_order_id)]

        candidates = sorted(
            self._work_orders.find_by_work_center_and_date_range(
                work_center_id, start, end, _MOVABLE,
            ),
            key=lambda o: (o.planned_start_date, o.number),
            reverse=True,
        )
        selected: list[WorkOrder] = []
        moved = ZERO
        for order in candidates:
            hours = order.hours_at(work_center_id)
            if hours <= 0 or moved + hours > hours_limit:
                continue
            selected.append(order)
            moved += hours
        return selected
