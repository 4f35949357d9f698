"""
Work Center Manager (``mfg_modules.work_center.service``).

Responsibility
--------------
Master data for production resources and the calendar arithmetic the
capacity planner builds on: theoretical daily/weekly capacity, available
hours per date and per period, and utilization.

Architecture position
---------------------
**Modules layer** -- written against ``WorkCenterRepository``.  Consumed
by ``CapacityPlanner`` (availability, alternates) and by
``RoutingManager.calculate_cost`` through ``operation_rates``.

Invariants enforced
-------------------
* Available hours on a date are zero on a closure; otherwise the
  theoretical ``hours_per_day x efficiency x capacity_units`` on working
  days (zero on other days) plus any overtime scheduled for that date.
* Periods are half-open: ``[start, end)``.
* A work center has at most one alternate and it must exist.

Failure modes
-------------
* ``WorkCenterNotFoundError`` for unknown ids, codes or alternates.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from mfg_kernel.exceptions import WorkCenterNotFoundError
from mfg_kernel.logging_config import get_logger
from mfg_modules.routing.models import OperationRates
from mfg_modules.work_center.models import (
    WorkCenter,
    WorkCenterClosure,
    WorkCenterOvertime,
    WorkCenterType,
)
from mfg_modules.work_center.repository import WorkCenterRepository

logger = get_logger("modules.work_center.service")


class WorkCenterManager:
    """Work center master data and availability calendar."""

    def __init__(self, repository: WorkCenterRepository):
        self._repository = repository

    # =========================================================================
    # Master data
    # =========================================================================

    def create(
        self,
        code: str,
        name: str,
        work_center_type: WorkCenterType = WorkCenterType.MACHINE,
        hours_per_day: Decimal = Decimal("8"),
        days_per_week: int = 5,
        efficiency: Decimal = Decimal("1"),
        capacity_units: int = 1,
        cost_per_hour: Decimal | None = None,
        labor_cost_per_hour: Decimal | None = None,
    ) -> WorkCenter:
        if self._repository.find_by_code(code) is not None:
            raise ValueError(f"Work center code already exists: {code}")
        work_center = WorkCenter(
            code=code,
            name=name,
            work_center_type=work_center_type,
            hours_per_day=hours_per_day,
            days_per_week=days_per_week,
            efficiency=efficiency,
            capacity_units=capacity_units,
            cost_per_hour=cost_per_hour,
            labor_cost_per_hour=labor_cost_per_hour,
        )
        self._repository.add(work_center)
        logger.info(
            "work_center_created",
            extra={
                "work_center_id": str(work_center.id),
                "code": code,
                "daily_capacity": str(work_center.daily_capacity),
            },
        )
        return work_center

    def find_by_id(self, work_center_id: UUID) -> WorkCenter:
        work_center = self._repository.get(work_center_id)
        if work_center is None:
            raise WorkCenterNotFoundError(work_center_id=str(work_center_id))
        return work_center

    def find_by_code(self, code: str) -> WorkCenter:
        work_center = self._repository.find_by_code(code)
        if work_center is None:
            raise WorkCenterNotFoundError(code=code)
        return work_center

    def find_by_type(self, work_center_type: WorkCenterType) -> list[WorkCenter]:
        return self._repository.find_by_type(work_center_type)

    def find_active(self) -> list[WorkCenter]:
        return self._repository.find_active()

    def exists(self, work_center_id: UUID) -> bool:
        return self._repository.get(work_center_id) is not None

    def update(self, work_center: WorkCenter) -> WorkCenter:
        self.find_by_id(work_center.id)
        self._repository.update(work_center)
        logger.info("work_center_updated", extra={"work_center_id": str(work_center.id)})
        return work_center

    def activate(self, work_center_id: UUID) -> WorkCenter:
        return self._set_active(work_center_id, True)

    def deactivate(self, work_center_id: UUID) -> WorkCenter:
        return self._set_active(work_center_id, False)

    def _set_active(self, work_center_id: UUID, active: bool) -> WorkCenter:
        result = replace(self.find_by_id(work_center_id), is_active=active)
        self._repository.update(result)
        logger.info(
            "work_center_activated" if active else "work_center_deactivated",
            extra={"work_center_id": str(work_center_id)},
        )
        return result

    # =========================================================================
    # Alternates
    # =========================================================================

    def set_alternate(self, work_center_id: UUID, alternate_id: UUID | None) -> WorkCenter:
        work_center = self.find_by_id(work_center_id)
        if alternate_id is not None:
            self.find_by_id(alternate_id)
        result = replace(work_center, alternate_work_center_id=alternate_id)
        self._repository.update(result)
        logger.info(
            "work_center_alternate_set",
            extra={
                "work_center_id": str(work_center_id),
                "alternate_work_center_id": str(alternate_id) if alternate_id else None,
            },
        )
        return result

    def get_alternate(self, work_center_id: UUID) -> WorkCenter | None:
        """The configured alternate, if it still exists and is active."""
        work_center = self.find_by_id(work_center_id)
        if work_center.alternate_work_center_id is None:
            return None
        alternate = self._repository.get(work_center.alternate_work_center_id)
        if alternate is None or not alternate.is_active:
            return None
        return alternate

    # =========================================================================
    # Calendar and capacity
    # =========================================================================

    def add_closure(self, work_center_id: UUID, closure_date: date, reason: str = "") -> None:
        self.find_by_id(work_center_id)
        self._repository.add_closure(WorkCenterClosure(work_center_id, closure_date, reason))
        logger.info(
            "work_center_closure_added",
            extra={
                "work_center_id": str(work_center_id),
                "closure_date": closure_date.isoformat(),
                "reason": reason,
            },
        )

    def remove_closure(self, work_center_id: UUID, closure_date: date) -> None:
        self.find_by_id(work_center_id)
        self._repository.remove_closure(work_center_id, closure_date)

    def schedule_overtime(
        self,
        work_center_id: UUID,
        day: date,
        hours: Decimal,
        reason: str = "",
    ) -> WorkCenterOvertime:
        """Add ``hours`` of overtime on ``day``; repeated calls accumulate."""
        self.find_by_id(work_center_id)
        existing = self.overtime_hours(work_center_id, day)
        entry = WorkCenterOvertime(work_center_id, day, existing + hours, reason)
        self._repository.save_overtime(entry)
        logger.info(
            "work_center_overtime_scheduled",
            extra={
                "work_center_id": str(work_center_id),
                "date": day.isoformat(),
                "hours": str(hours),
                "total_hours": str(entry.hours),
            },
        )
        return entry

    def overtime_hours(self, work_center_id: UUID, day: date) -> Decimal:
        return sum(
            (o.hours for o in self._repository.overtime(work_center_id, day, day)),
            Decimal("0"),
        )

    def calculate_daily_capacity(self, work_center_id: UUID) -> Decimal:
        return self.find_by_id(work_center_id).daily_capacity

    def calculate_weekly_capacity(self, work_center_id: UUID) -> Decimal:
        return self.find_by_id(work_center_id).weekly_capacity

    def available_hours(self, work_center_id: UUID, day: date) -> Decimal:
        return self.available_hours_for_period(work_center_id, day, day + timedelta(days=1))

    def available_hours_for_period(
        self, work_center_id: UUID, start: date, end: date,
    ) -> Decimal:
        """Sum of available hours over ``[start, end)``."""
        work_center = self.find_by_id(work_center_id)
        if end <= start:
            return Decimal("0")
        last = end - timedelta(days=1)
        closed = {c.closure_date for c in self._repository.closures(work_center_id, start, last)}
        extra: dict[date, Decimal] = {}
        for entry in self._repository.overtime(work_center_id, start, last):
            extra[entry.overtime_date] = extra.get(entry.overtime_date, Decimal("0")) + entry.hours

        total = Decimal("0")
        day = start
        while day < end:
            if day not in closed:
                if work_center.is_working_day(day):
                    total += work_center.daily_capacity
                total += extra.get(day, Decimal("0"))
            day += timedelta(days=1)
        return total

    def working_days(self, work_center_id: UUID, start: date, end: date) -> list[date]:
        """Working, non-closed days in ``[start, end)``."""
        work_center = self.find_by_id(work_center_id)
        if end <= start:
            return []
        closed = {
            c.closure_date
            for c in self._repository.closures(work_center_id, start, end - timedelta(days=1))
        }
        days: list[date] = []
        day = start
        while day < end:
            if work_center.is_working_day(day) and day not in closed:
                days.append(day)
            day += timedelta(days=1)
        return days

    def period_utilization(
        self,
        work_center_id: UUID,
        start: date,
        end: date,
        loaded_hours: Decimal,
    ) -> Decimal:
        """Loaded over available for ``[start, end)``; zero when nothing is available."""
        available = self.available_hours_for_period(work_center_id, start, end)
        if available == 0:
            return Decimal("0")
        return loaded_hours / available

    def operation_rates(self, work_center_id: UUID) -> OperationRates | None:
        """Rate lookup for ``RoutingManager.calculate_cost``."""
        work_center = self._repository.get(work_center_id)
        if work_center is None:
            return None
        return OperationRates(
            labor_per_hour=work_center.labor_cost_per_hour,
            machine_per_hour=work_center.cost_per_hour,
        )
