"""
Work Order Domain Models (``mfg_modules.work_order.models``).

Responsibility
--------------
Immutable work order header, its interleaved material/operation lines and
the read-side records (progress, variance, shortages) derived from them.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  The legal
status transitions live in ``work_order.workflows``; the status predicates
here (``can_cancel`` and friends) are pure functions of the status value.

Invariants enforced
-------------------
* Ordered quantity > 0; completed and scrap quantities >= 0.
* Material lines carry a product id; operation lines carry an operation
  number and work center.
* ``previous_status`` is set exactly while the order is on hold.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

HUNDRED = Decimal("100")


class WorkOrderStatus(str, Enum):
    """Work order lifecycle states."""

    PLANNED = "planned"
    RELEASED = "released"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CLOSED = "closed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkOrderStatus.CLOSED, WorkOrderStatus.CANCELLED)

    @property
    def can_cancel(self) -> bool:
        return self in (
            WorkOrderStatus.PLANNED,
            WorkOrderStatus.RELEASED,
            WorkOrderStatus.ON_HOLD,
        )

    @property
    def can_modify(self) -> bool:
        return self in (WorkOrderStatus.PLANNED, WorkOrderStatus.ON_HOLD)

    @property
    def can_reschedule(self) -> bool:
        return self in (
            WorkOrderStatus.PLANNED,
            WorkOrderStatus.RELEASED,
            WorkOrderStatus.ON_HOLD,
        )

    @property
    def can_issue_material(self) -> bool:
        return self in (WorkOrderStatus.RELEASED, WorkOrderStatus.IN_PROGRESS)

    @property
    def is_load_bearing(self) -> bool:
        """Statuses whose operations count against work center capacity."""
        return self in (
            WorkOrderStatus.PLANNED,
            WorkOrderStatus.RELEASED,
            WorkOrderStatus.IN_PROGRESS,
        )


class LineType(str, Enum):
    MATERIAL = "material"
    OPERATION = "operation"


@dataclass(frozen=True)
class WorkOrderLine:
    """
    One material requirement or one routing operation of a work order.

    For operation lines ``issued_quantity`` is the quantity reported
    complete at that operation.
    """

    line_number: int
    line_type: LineType
    product_id: str | None = None
    planned_quantity: Decimal = Decimal("0")
    issued_quantity: Decimal = Decimal("0")
    uom: str | None = None
    operation_number: int | None = None
    work_center_id: UUID | None = None
    planned_setup_hours: Decimal = Decimal("0")
    planned_run_hours: Decimal = Decimal("0")
    actual_setup_hours: Decimal = Decimal("0")
    actual_run_hours: Decimal = Decimal("0")
    scrap_quantity: Decimal = Decimal("0")
    lot_number: str | None = None
    notes: str | None = None

    def __post_init__(self):
        if self.line_type == LineType.MATERIAL and not self.product_id:
            raise ValueError("Material lines require a product id")
        if self.line_type == LineType.OPERATION and (
            self.operation_number is None or self.work_center_id is None
        ):
            raise ValueError("Operation lines require an operation number and work center")

    @property
    def is_material(self) -> bool:
        return self.line_type == LineType.MATERIAL

    @property
    def is_operation(self) -> bool:
        return self.line_type == LineType.OPERATION

    @property
    def planned_hours(self) -> Decimal:
        return self.planned_setup_hours + self.planned_run_hours

    @property
    def actual_hours(self) -> Decimal:
        return self.actual_setup_hours + self.actual_run_hours

    @property
    def remaining_quantity(self) -> Decimal:
        return max(Decimal("0"), self.planned_quantity - self.issued_quantity)

    @property
    def completion_percentage(self) -> Decimal:
        if self.planned_quantity <= 0:
            return HUNDRED
        return min(HUNDRED, self.issued_quantity / self.planned_quantity * HUNDRED)

    @property
    def is_complete(self) -> bool:
        return self.issued_quantity >= self.planned_quantity

    @property
    def labor_efficiency(self) -> Decimal | None:
        """Planned over actual hours as a percentage; None before any actuals."""
        if not self.is_operation or self.actual_hours <= 0:
            return None
        return self.planned_hours / self.actual_hours * HUNDRED

    def with_issued_quantity(self, quantity: Decimal) -> WorkOrderLine:
        return replace(self, issued_quantity=quantity)

    def with_actual_hours(self, setup_hours: Decimal, run_hours: Decimal) -> WorkOrderLine:
        return replace(self, actual_setup_hours=setup_hours, actual_run_hours=run_hours)

    def with_work_center(self, work_center_id: UUID) -> WorkOrderLine:
        return replace(self, work_center_id=work_center_id)


@dataclass(frozen=True)
class WorkOrder:
    """A manufacturing order executing a plan for one product."""

    number: str
    product_id: str
    quantity: Decimal
    planned_start_date: date
    planned_end_date: date
    status: WorkOrderStatus = WorkOrderStatus.PLANNED
    lines: tuple[WorkOrderLine, ...] = ()
    completed_quantity: Decimal = Decimal("0")
    scrap_quantity: Decimal = Decimal("0")
    actual_start_date: date | None = None
    actual_end_date: date | None = None
    parent_work_order_id: UUID | None = None
    sales_order_id: str | None = None
    source_reference: str | None = None
    hold_reason: str | None = None
    previous_status: WorkOrderStatus | None = None
    cancellation_reason: str | None = None
    released_at: datetime | None = None
    closed_at: datetime | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"Work order quantity must be positive, got {self.quantity}")
        if self.completed_quantity < 0 or self.scrap_quantity < 0:
            raise ValueError("Completed and scrap quantities cannot be negative")
        if self.planned_end_date < self.planned_start_date:
            raise ValueError("Planned end date is before planned start date")

    @property
    def material_lines(self) -> tuple[WorkOrderLine, ...]:
        return tuple(line for line in self.lines if line.is_material)

    @property
    def operation_lines(self) -> tuple[WorkOrderLine, ...]:
        return tuple(line for line in self.lines if line.is_operation)

    @property
    def remaining_quantity(self) -> Decimal:
        return max(Decimal("0"), self.quantity - self.completed_quantity)

    def line(self, line_number: int) -> WorkOrderLine | None:
        for candidate in self.lines:
            if candidate.line_number == line_number:
                return candidate
        return None

    def operation_line(self, operation_number: int) -> WorkOrderLine | None:
        for candidate in self.operation_lines:
            if candidate.operation_number == operation_number:
                return candidate
        return None

    def hours_at(self, work_center_id: UUID) -> Decimal:
        """Planned setup plus run hours of the operation lines at a work center."""
        return sum(
            (
                line.planned_hours for line in self.operation_lines
                if line.work_center_id == work_center_id
            ),
            Decimal("0"),
        )


@dataclass(frozen=True)
class OperationCompletion:
    """A shop-floor report against one operation of a work order."""

    operation_number: int
    quantity_completed: Decimal
    scrap_quantity: Decimal = Decimal("0")
    setup_hours: Decimal = Decimal("0")
    run_hours: Decimal = Decimal("0")

    def __post_init__(self):
        if self.quantity_completed < 0 or self.scrap_quantity < 0:
            raise ValueError("Reported quantities cannot be negative")
        if self.setup_hours < 0 or self.run_hours < 0:
            raise ValueError("Reported hours cannot be negative")


@dataclass(frozen=True)
class WorkOrderVariance:
    """Actual minus planned; material in units, labor in hours."""

    material: Decimal
    labor: Decimal
    overhead: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.material + self.labor + self.overhead


@dataclass(frozen=True)
class WorkOrderProgress:
    completed_operations: int
    total_operations: int
    produced_quantity: Decimal
    planned_quantity: Decimal
    scrap_quantity: Decimal

    @property
    def percent_complete(self) -> Decimal:
        if self.planned_quantity <= 0:
            return Decimal("0")
        return self.produced_quantity / self.planned_quantity * HUNDRED


@dataclass(frozen=True)
class OperationProgress:
    operation_number: int
    work_center_id: UUID
    planned_quantity: Decimal
    completed_quantity: Decimal
    completion_percentage: Decimal
    planned_hours: Decimal
    actual_hours: Decimal
    labor_efficiency: Decimal | None
    is_complete: bool


@dataclass(frozen=True)
class MaterialShortage:
    product_id: str
    line_number: int
    planned_quantity: Decimal
    issued_quantity: Decimal
    remaining_quantity: Decimal
    uom: str | None = None
