"""
Work Center Domain Models.

Production resources with a weekly working pattern, an efficiency ratio
and a single optional fallback (alternate) work center.  Closures take a
whole calendar day out of the pattern; overtime entries add hours to a day.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4


class WorkCenterType(str, Enum):
    MACHINE = "machine"
    LABOR = "labor"
    ASSEMBLY = "assembly"
    INSPECTION = "inspection"
    PACKAGING = "packaging"


@dataclass(frozen=True)
class WorkCenter:
    """
    A production resource.

    ``efficiency`` is a ratio (1 = 100%).  Working days are the first
    ``days_per_week`` ISO weekdays, Monday first.
    """

    code: str
    name: str
    work_center_type: WorkCenterType = WorkCenterType.MACHINE
    hours_per_day: Decimal = Decimal("8")
    days_per_week: int = 5
    efficiency: Decimal = Decimal("1")
    capacity_units: int = 1
    cost_per_hour: Decimal | None = None
    labor_cost_per_hour: Decimal | None = None
    alternate_work_center_id: UUID | None = None
    is_active: bool = True
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self):
        if not self.code:
            raise ValueError("Work center requires a code")
        if not (Decimal("0") < self.hours_per_day <= Decimal("24")):
            raise ValueError(f"hours_per_day must be in (0, 24], got {self.hours_per_day}")
        if not (1 <= self.days_per_week <= 7):
            raise ValueError(f"days_per_week must be in [1, 7], got {self.days_per_week}")
        if self.efficiency <= 0:
            raise ValueError("Efficiency must be positive")
        if self.capacity_units < 1:
            raise ValueError("Capacity units must be at least 1")
        if self.alternate_work_center_id == self.id:
            raise ValueError("A work center cannot be its own alternate")

    @property
    def daily_capacity(self) -> Decimal:
        return self.hours_per_day * self.efficiency * self.capacity_units

    @property
    def weekly_capacity(self) -> Decimal:
        return self.daily_capacity * self.days_per_week

    def is_working_day(self, day: date) -> bool:
        return day.isoweekday() <= self.days_per_week


@dataclass(frozen=True)
class WorkCenterClosure:
    """A calendar day on which the work center has no capacity."""

    work_center_id: UUID
    closure_date: date
    reason: str = ""


@dataclass(frozen=True)
class WorkCenterOvertime:
    """Extra hours scheduled on one calendar day, on top of the normal pattern."""

    work_center_id: UUID
    overtime_date: date
    hours: Decimal
    reason: str = ""

    def __post_init__(self):
        if self.hours <= 0:
            raise ValueError(f"Overtime hours must be positive, got {self.hours}")
