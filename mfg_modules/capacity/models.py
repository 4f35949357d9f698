"""
Capacity Planning Domain Models (``mfg_modules.capacity.models``).

Responsibility
--------------
Immutable records of capacity planning: load allocations, per-bucket
periods, the per-work-center profile over a horizon and the ranked
resolution suggestions that remove an overload.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by
``mfg_services.capacity_planner.CapacityPlanner`` and acted on by
``mfg_services.capacity_resolver.CapacityResolver``.

Invariants enforced
-------------------
* Hours are ``Decimal`` and never negative.
* A profile is overloaded exactly when total loaded > total available, and
  its excess load is ``max(0, loaded - available)``.
* A suggestion's priority is >= 1; lower means more preferred.  Priority
  orders presentation only; ``requires_approval`` and ``can_auto_apply``
  decide what may be applied.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from mfg_kernel.domain.horizon import PlanningHorizon

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class LoadSourceType(str, Enum):
    WORK_ORDER = "work_order"
    PLANNED_ORDER = "planned_order"


class ResolutionAction(str, Enum):
    """Kinds of capacity resolution, each with a default priority."""

    ALTERNATIVE_WORK_CENTER = "alternative_work_center"
    OVERTIME = "overtime"
    RESCHEDULE = "reschedule"
    SPLIT = "split"
    SUBCONTRACT = "subcontract"
    ADD_SHIFT = "add_shift"
    CANCEL = "cancel"
    MANUAL = "manual"

    @property
    def default_priority(self) -> int:
        return _DEFAULT_PRIORITY[self]

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").capitalize()


_DEFAULT_PRIORITY = {
    ResolutionAction.ALTERNATIVE_WORK_CENTER: 1,
    ResolutionAction.OVERTIME: 2,
    ResolutionAction.RESCHEDULE: 3,
    ResolutionAction.SPLIT: 4,
    ResolutionAction.SUBCONTRACT: 5,
    ResolutionAction.ADD_SHIFT: 6,
    ResolutionAction.CANCEL: 7,
    ResolutionAction.MANUAL: 8,
}


# =============================================================================
# Loads, periods and profiles
# =============================================================================

@dataclass(frozen=True)
class CapacityLoad:
    """Hours a work order or planned order puts on a work center."""

    source_id: UUID
    source_type: LoadSourceType
    work_center_id: UUID
    setup_hours: Decimal
    run_hours: Decimal
    load_date: date
    operation_number: int | None = None
    product_id: str | None = None
    quantity: Decimal | None = None

    def __post_init__(self):
        if self.setup_hours < 0 or self.run_hours < 0:
            raise ValueError("Load hours cannot be negative")

    @property
    def hours(self) -> Decimal:
        return self.setup_hours + self.run_hours

    @property
    def is_firm(self) -> bool:
        return self.source_type == LoadSourceType.WORK_ORDER


@dataclass(frozen=True)
class CapacityPeriod:
    """Available versus loaded hours in one ``[period_start, period_end)`` bucket."""

    period_start: date
    period_end: date
    available_hours: Decimal = ZERO
    loaded_hours: Decimal = ZERO
    loads: tuple[CapacityLoad, ...] = ()

    def __post_init__(self):
        if self.period_end <= self.period_start:
            raise ValueError("Period end must be after period start")
        if self.available_hours < 0 or self.loaded_hours < 0:
            raise ValueError("Hours cannot be negative")

    @property
    def utilization(self) -> Decimal:
        """Loaded over available, as a percentage."""
        if self.available_hours <= 0:
            return HUNDRED if self.loaded_hours > 0 else ZERO
        return self.loaded_hours / self.available_hours * HUNDRED

    @property
    def is_overloaded(self) -> bool:
        return self.loaded_hours > self.available_hours

    @property
    def remaining_hours(self) -> Decimal:
        return max(ZERO, self.available_hours - self.loaded_hours)

    @property
    def excess_hours(self) -> Decimal:
        return max(ZERO, self.loaded_hours - self.available_hours)

    @property
    def duration_days(self) -> int:
        return (self.period_end - self.period_start).days

    @property
    def label(self) -> str:
        if self.duration_days <= 1:
            return self.period_start.isoformat()
        if self.duration_days <= 7:
            year, week, _ = self.period_start.isocalendar()
            return f"{year}-W{week:02d}"
        return self.period_start.strftime("%Y-%m")

    def has_capacity(self, required_hours: Decimal = ZERO) -> bool:
        return self.remaining_hours >= required_hours

    def with_loaded_hours(self, hours: Decimal) -> CapacityPeriod:
        return replace(self, loaded_hours=hours)

    def with_additional_load(self, load: CapacityLoad) -> CapacityPeriod:
        return replace(
            self,
            loaded_hours=self.loaded_hours + load.hours,
            loads=self.loads + (load,),
        )


@dataclass(frozen=True)
class CapacityProfile:
    """A work center's capacity across every bucket of a horizon."""

    work_center_id: UUID
    horizon: PlanningHorizon
    periods: tuple[CapacityPeriod, ...]
    total_available_capacity: Decimal
    total_loaded_capacity: Decimal
    calculated_at: datetime | None = None

    @property
    def is_overloaded(self) -> bool:
        return self.total_loaded_capacity > self.total_available_capacity

    @property
    def excess_load(self) -> Decimal:
        return max(ZERO, self.total_loaded_capacity - self.total_available_capacity)

    @property
    def available_capacity(self) -> Decimal:
        """Unused hours over the whole horizon."""
        return max(ZERO, self.total_available_capacity - self.total_loaded_capacity)

    @property
    def utilization(self) -> Decimal:
        if self.total_available_capacity <= 0:
            return HUNDRED if self.total_loaded_capacity > 0 else ZERO
        return self.total_loaded_capacity / self.total_available_capacity * HUNDRED

    @property
    def overloaded_periods(self) -> tuple[CapacityPeriod, ...]:
        return tuple(p for p in self.periods if p.is_overloaded)

    @property
    def peak_period(self) -> CapacityPeriod | None:
        if not self.periods:
            return None
        return max(self.periods, key=lambda p: p.utilization)

    def period_for(self, day: date) -> CapacityPeriod | None:
        for period in self.periods:
            if period.period_start <= day < period.period_end:
                return period
        return None


@dataclass(frozen=True)
class OverloadedWorkCenter:
    work_center_id: UUID
    work_center_code: str
    profile: CapacityProfile

    @property
    def excess_hours(self) -> Decimal:
        return self.profile.excess_load

    @property
    def utilization(self) -> Decimal:
        return self.profile.utilization

    @property
    def overloaded_period_count(self) -> int:
        return len(self.profile.overloaded_periods)


@dataclass(frozen=True)
class Bottleneck:
    """A period whose utilization (as a ratio) reached the bottleneck threshold."""

    work_center_id: UUID
    period_start: date
    utilization: Decimal
    overload: Decimal


@dataclass(frozen=True)
class AvailabilityCheck:
    available: bool
    constrained_work_center_ids: tuple[UUID, ...] = ()


# =============================================================================
# Rough-cut capacity
# =============================================================================

@dataclass(frozen=True)
class MasterScheduleItem:
    """One line of a master production schedule."""

    product_id: str
    quantity: Decimal
    due_date: date

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"Scheduled quantity must be positive, got {self.quantity}")


@dataclass(frozen=True)
class ProductLoad:
    """The effect of adding one product's routing hours to a work center's profile."""

    work_center_id: UUID
    profile: CapacityProfile
    additional_hours: Decimal

    @property
    def new_total_load(self) -> Decimal:
        return self.profile.total_loaded_capacity + self.additional_hours

    @property
    def new_utilization(self) -> Decimal:
        available = self.profile.total_available_capacity
        if available <= 0:
            return HUNDRED if self.new_total_load > 0 else ZERO
        return self.new_total_load / available * HUNDRED

    @property
    def is_overloaded(self) -> bool:
        return self.new_total_load > self.profile.total_available_capacity


@dataclass(frozen=True)
class RoughCutItem:
    product_id: str
    quantity: Decimal
    due_date: date
    hours: Decimal


@dataclass(frozen=True)
class RoughCutLoad:
    """Master-schedule hours on one work center against its horizon capacity."""

    work_center_id: UUID
    available_hours: Decimal
    items: tuple[RoughCutItem, ...] = ()

    @property
    def total_load(self) -> Decimal:
        return sum((item.hours for item in self.items), ZERO)

    @property
    def utilization(self) -> Decimal:
        if self.available_hours <= 0:
            return HUNDRED if self.total_load > 0 else ZERO
        return self.total_load / self.available_hours * HUNDRED

    @property
    def is_overloaded(self) -> bool:
        return self.total_load > self.available_hours

    def with_item(self, item: RoughCutItem) -> RoughCutLoad:
        return replace(self, items=self.items + (item,))


# =============================================================================
# Resolution suggestions
# =============================================================================

@dataclass(frozen=True)
class CapacityResolutionSuggestion:
    """
    One proposed way of removing (part of) an overload.

    ``lead_time_impact`` is in days; positive values delay delivery.
    ``work_center_id`` names the overloaded work center the suggestion was
    generated for; ``target_resource_id`` the alternate work center, work
    order or subcontractor it acts on.
    """

    action: ResolutionAction
    description: str
    resolves_hours: Decimal
    priority: int = 0
    estimated_cost: Decimal = ZERO
    lead_time_impact: int = 0
    requires_approval: bool = False
    can_auto_apply: bool = False
    parameters: dict[str, Any] = field(default_factory=dict)
    work_center_id: UUID | None = None
    target_resource_id: UUID | None = None
    suggested_date: date | None = None
    reason: str | None = None

    def __post_init__(self):
        if self.priority == 0:
            object.__setattr__(self, "priority", self.action.default_priority)
        if self.resolves_hours < 0:
            raise ValueError("Resolved hours cannot be negative")
        if self.priority < 1:
            raise ValueError("Priority must be at least 1")

    @property
    def days_delayed(self) -> int:
        return max(0, self.lead_time_impact)

    @property
    def cost_per_hour(self) -> Decimal:
        if self.resolves_hours <= 0:
            return self.estimated_cost
        return self.estimated_cost / self.resolves_hours

    @property
    def improves_delivery(self) -> bool:
        return self.lead_time_impact < 0

    def fully_resolves(self, constraint_hours: Decimal) -> bool:
        return self.resolves_hours >= constraint_hours

    def effectiveness(self, constraint_hours: Decimal) -> Decimal:
        """Share of ``constraint_hours`` resolved, as a percentage capped at 100."""
        if constraint_hours <= 0:
            return HUNDRED
        return min(HUNDRED, self.resolves_hours / constraint_hours * HUNDRED)

    def is_low_cost(self, threshold: Decimal = Decimal("100")) -> bool:
        return self.estimated_cost <= threshold

    def has_higher_priority_than(self, other: CapacityResolutionSuggestion) -> bool:
        return self.priority < other.priority

    def with_priority(self, priority: int) -> CapacityResolutionSuggestion:
        return replace(self, priority=priority)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "action_label": self.action.label,
            "description": self.description,
            "resolves_hours": str(self.resolves_hours),
            "priority": self.priority,
            "estimated_cost": str(self.estimated_cost),
            "lead_time_impact": self.lead_time_impact,
            "requires_approval": self.requires_approval,
            "can_auto_apply": self.can_auto_apply,
            "parameters": {k: str(v) for k, v in self.parameters.items()},
            "work_center_id": str(self.work_center_id) if self.work_center_id else None,
            "target_resource_id": (
                str(self.target_resource_id) if self.target_resource_id else None
            ),
            "suggested_date": self.suggested_date.isoformat() if self.suggested_date else None,
            "reason": self.reason,
            "cost_per_hour": str(self.cost_per_hour),
        }

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def alternative_work_center(
        cls,
        work_center_id: UUID,
        alternative_work_center_id: UUID,
        resolves_hours: Decimal,
        additional_cost: Decimal = ZERO,
        start_date: date | None = None,
    ) -> CapacityResolutionSuggestion:
        return cls(
            action=ResolutionAction.ALTERNATIVE_WORK_CENTER,
            description=f"Route to alternative work center {alternative_work_center_id}",
            resolves_hours=resolves_hours,
            estimated_cost=additional_cost,
            can_auto_apply=True,
            work_center_id=work_center_id,
            target_resource_id=alternative_work_center_id,
            suggested_date=start_date,
            reason="Alternative work center has available capacity",
        )

    @classmethod
    def overtime(
        cls,
        work_center_id: UUID,
        overtime_hours: Decimal,
        cost_per_hour: Decimal,
        start_date: date | None = None,
    ) -> CapacityResolutionSuggestion:
        return cls(
            action=ResolutionAction.OVERTIME,
            description=f"Add {overtime_hours} hours of overtime",
            resolves_hours=overtime_hours,
            estimated_cost=overtime_hours * cost_per_hour,
            can_auto_apply=False,
            parameters={"overtime_hours": overtime_hours, "cost_per_hour": cost_per_hour},
            work_center_id=work_center_id,
            suggested_date=start_date,
            reason="Overtime can accommodate additional load",
        )

    @classmethod
    def reschedule(
        cls,
        work_center_id: UUID,
        from_date: date,
        new_date: date,
        resolves_hours: Decimal,
    ) -> CapacityResolutionSuggestion:
        days_delayed = (new_date - from_date).days
        return cls(
            action=ResolutionAction.RESCHEDULE,
            description=f"Reschedule to {new_date.isoformat()} ({days_delayed} days later)",
            resolves_hours=resolves_hours,
            lead_time_impact=days_delayed,
            can_auto_apply=True,
            parameters={"days_delayed": days_delayed, "from_date": from_date},
            work_center_id=work_center_id,
            suggested_date=new_date,
            reason=f"Capacity available on {new_date.isoformat()}",
        )

    @classmethod
    def split(
        cls, work_center_id: UUID, resolves_hours: Decimal,
    ) -> CapacityResolutionSuggestion:
        return cls(
            action=ResolutionAction.SPLIT,
            description="Split large operations across multiple periods",
            resolves_hours=resolves_hours,
            requires_approval=True,
            can_auto_apply=False,
            work_center_id=work_center_id,
            reason="Splitting operations allows parallel processing",
        )

    @classmethod
    def add_shift(
        cls,
        work_center_id: UUID,
        shift_hours: Decimal,
        cost_per_hour: Decimal,
    ) -> CapacityResolutionSuggestion:
        return cls(
            action=ResolutionAction.ADD_SHIFT,
            description=f"Add additional shift (adds {shift_hours} hours)",
            resolves_hours=shift_hours,
            estimated_cost=shift_hours * cost_per_hour,
            requires_approval=True,
            can_auto_apply=False,
            parameters={"shift_hours": shift_hours},
            work_center_id=work_center_id,
            reason="Additional shift can fully resolve capacity shortage",
        )

    @classmethod
    def subcontract(
        cls,
        work_center_id: UUID,
        hours: Decimal,
        cost_per_hour: Decimal,
    ) -> CapacityResolutionSuggestion:
        return cls(
            action=ResolutionAction.SUBCONTRACT,
            description=f"Subcontract {hours} hours of work",
            resolves_hours=hours,
            estimated_cost=hours * cost_per_hour,
            requires_approval=True,
            can_auto_apply=False,
            work_center_id=work_center_id,
            reason="Subcontracting can fully resolve capacity shortage",
        )

    @classmethod
    def cancel(
        cls, work_order_id: UUID, resolves_hours: Decimal,
    ) -> CapacityResolutionSuggestion:
        return cls(
            action=ResolutionAction.CANCEL,
            description=f"Cancel work order {work_order_id}",
            resolves_hours=resolves_hours,
            requires_approval=True,
            can_auto_apply=False,
            target_resource_id=work_order_id,
            reason="Releases the capacity held by the order",
        )


# =============================================================================
# Resolver inputs and outputs
# =============================================================================

@dataclass(frozen=True)
class ResolutionContext:
    """
    Caller context for applying or validating a suggestion.

    ``approved`` satisfies ``requires_approval``; ``force_apply`` overrides
    ``can_auto_apply = False``.
    """

    approved: bool = False
    force_apply: bool = False
    work_order_id: UUID | None = None
    subcontractor_id: str | None = None
    max_overtime_budget: Decimal | None = None
    management_approval: bool = False
    affected_work_order_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class AutoResolveResult:
    resolved: bool
    applied: tuple[CapacityResolutionSuggestion, ...]
    remaining_excess: Decimal
    simulated: bool = False


@dataclass(frozen=True)
class SchedulingImpact:
    days_delayed: int
    affected_orders: int
    cascade_risk: str  # "low", "medium", "high"


@dataclass(frozen=True)
class ImpactEstimate:
    hours_resolved: Decimal
    estimated_cost: Decimal
    days_delayed: int
    affected_work_order_ids: tuple[UUID, ...]
    quality_impact: str
    cost_breakdown: dict[str, Decimal]
    scheduling_impact: SchedulingImpact


@dataclass(frozen=True)
class LoadLevelingMove:
    """Proposal to move a planned order to the earliest date with capacity."""

    order_id: UUID
    product_id: str
    original_date: date
    suggested_date: date

    @property
    def days_delayed(self) -> int:
        return (self.suggested_date - self.original_date).days
