"""
Routing Domain Models (``mfg_modules.routing.models``).

Responsibility
--------------
Immutable routing header and operation value objects plus the lead-time,
cost and capacity-requirement result records.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* Times are minutes and ``Decimal``; none may be negative.
* Overlap percentage lies in [0, 100].
* Subcontracted operations name their subcontractor.
* ``Routing.operations`` is kept sorted by operation number.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from mfg_kernel.logging_config import get_logger

logger = get_logger("modules.routing.models")

MINUTES_PER_HOUR = Decimal("60")


class RoutingStatus(str, Enum):
    """Lifecycle of a routing version."""

    DRAFT = "draft"
    RELEASED = "released"
    OBSOLETE = "obsolete"


class OperationType(str, Enum):
    PRODUCTION = "production"
    SETUP = "setup"
    INSPECTION = "inspection"
    SUBCONTRACT = "subcontract"
    MOVE = "move"

    @property
    def consumes_capacity(self) -> bool:
        """Subcontract and move steps do not load an in-house work center."""
        return self not in (OperationType.SUBCONTRACT, OperationType.MOVE)


@dataclass(frozen=True)
class Operation:
    """One step of a routing, executed at a work center."""

    operation_number: int
    work_center_id: UUID
    description: str = ""
    operation_type: OperationType = OperationType.PRODUCTION
    setup_time_minutes: Decimal = Decimal("0")
    run_time_minutes: Decimal = Decimal("0")
    queue_time_minutes: Decimal = Decimal("0")
    move_time_minutes: Decimal = Decimal("0")
    resource_count: int = 1
    overlap_percentage: Decimal = Decimal("0")
    effective_from: date | None = None
    effective_to: date | None = None
    subcontractor_id: str | None = None
    subcontract_cost: Decimal | None = None
    notes: str | None = None

    def __post_init__(self):
        if self.operation_number < 1:
            raise ValueError("Operation number must be positive")
        times = (
            self.setup_time_minutes,
            self.run_time_minutes,
            self.queue_time_minutes,
            self.move_time_minutes,
        )
        if any(t < 0 for t in times):
            raise ValueError("Time values cannot be negative")
        if self.resource_count < 1:
            raise ValueError("Resource count must be at least 1")
        if not (Decimal("0") <= self.overlap_percentage <= Decimal("100")):
            raise ValueError("Overlap percentage must be between 0 and 100")
        if self.operation_type == OperationType.SUBCONTRACT and self.subcontractor_id is None:
            logger.warning(
                "operation_missing_subcontractor",
                extra={"operation_number": self.operation_number},
            )
            raise ValueError("Subcontracted operations require a subcontractor id")

    @property
    def is_subcontracted(self) -> bool:
        return self.operation_type == OperationType.SUBCONTRACT

    def total_time_minutes(self, quantity: Decimal) -> Decimal:
        """Elapsed minutes for ``quantity`` units: setup + run x qty + queue + move."""
        return (
            self.setup_time_minutes
            + self.run_time_minutes * quantity
            + self.queue_time_minutes
            + self.move_time_minutes
        )

    def setup_hours(self) -> Decimal:
        return self.setup_time_minutes / MINUTES_PER_HOUR

    def run_hours(self, quantity: Decimal) -> Decimal:
        return self.run_time_minutes * quantity / MINUTES_PER_HOUR

    def capacity_hours(self, quantity: Decimal) -> Decimal:
        """Work-center hours consumed; zero for subcontract and move steps."""
        if not self.operation_type.consumes_capacity:
            return Decimal("0")
        return self.setup_hours() + self.run_hours(quantity)

    def is_effective_at(self, as_of: date) -> bool:
        if self.effective_from is not None and as_of < self.effective_from:
            return False
        if self.effective_to is not None and as_of > self.effective_to:
            return False
        return True

    def with_work_center(self, work_center_id: UUID) -> Operation:
        return replace(self, work_center_id=work_center_id)

    def with_times(
        self,
        setup_time_minutes: Decimal,
        run_time_minutes: Decimal,
    ) -> Operation:
        return replace(
            self,
            setup_time_minutes=setup_time_minutes,
            run_time_minutes=run_time_minutes,
        )


@dataclass(frozen=True)
class Routing:
    """A versioned operation sequence for one product."""

    product_id: str
    version: str = "1.0"
    operations: tuple[Operation, ...] = ()
    status: RoutingStatus = RoutingStatus.DRAFT
    effective_from: date | None = None
    effective_to: date | None = None
    previous_version_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self):
        if not self.product_id:
            raise ValueError("Routing requires a product id")
        numbers = [op.operation_number for op in self.operations]
        if len(numbers) != len(set(numbers)):
            raise ValueError("Operation numbers must be unique within a routing")
        ordered = tuple(sorted(self.operations, key=lambda op: op.operation_number))
        if ordered != self.operations:
            object.__setattr__(self, "operations", ordered)

    @property
    def is_draft(self) -> bool:
        return self.status == RoutingStatus.DRAFT

    def is_effective_at(self, as_of: date) -> bool:
        if self.status != RoutingStatus.RELEASED:
            return False
        if self.effective_from is not None and as_of < self.effective_from:
            return False
        if self.effective_to is not None and as_of > self.effective_to:
            return False
        return True

    def effective_operations(self, as_of: date) -> tuple[Operation, ...]:
        return tuple(op for op in self.operations if op.is_effective_at(as_of))

    def operation(self, operation_number: int) -> Operation | None:
        for op in self.operations:
            if op.operation_number == operation_number:
                return op
        return None


def select_effective(routings: list[Routing], as_of: date) -> Routing | None:
    candidates = [r for r in routings if r.is_effective_at(as_of)]
    if not candidates:
        return None
    return max(candidates, key=lambda r: (r.effective_from or date.min, r.version))


@dataclass(frozen=True)
class OperationRates:
    """Hourly rates of a work center; either may be unknown."""

    labor_per_hour: Decimal | None = None
    machine_per_hour: Decimal | None = None


@dataclass(frozen=True)
class RoutingCost:
    """
    Routing cost for a quantity.

    ``subcontract_cost`` is always authoritative.  ``labor_cost`` and
    ``machine_cost`` are None unless every capacity-consuming operation had
    a rate; ``missing_rates`` lists the work centers that lacked one.
    """

    quantity: Decimal
    subcontract_cost: Decimal
    labor_cost: Decimal | None = None
    machine_cost: Decimal | None = None
    missing_rates: tuple[UUID, ...] = ()

    @property
    def is_complete(self) -> bool:
        return self.labor_cost is not None and self.machine_cost is not None

    @property
    def known_total(self) -> Decimal:
        return (
            self.subcontract_cost
            + (self.labor_cost or Decimal("0"))
            + (self.machine_cost or Decimal("0"))
        )


@dataclass(frozen=True)
class WorkCenterRequirement:
    """Hours a routing places on one work center for a quantity."""

    work_center_id: UUID
    setup_hours: Decimal
    run_hours: Decimal
    operation_numbers: tuple[int, ...]

    @property
    def total_hours(self) -> Decimal:
        return self.setup_hours + self.run_hours
