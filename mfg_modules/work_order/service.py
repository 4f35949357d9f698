"""
Work Order Manager (``mfg_modules.work_order.service``).

Responsibility
--------------
Creation, lifecycle transitions and shop-floor reporting of production
work orders, plus the read-side analytics (progress, variance, shortages).

Architecture position
---------------------
**Modules layer** -- consumes ``BomManager`` and ``RoutingManager`` to
generate lines and is the side-effect target of ``CapacityResolver``
(reschedule, reassignment, cancel).

Invariants enforced
-------------------
* Every status change is looked up in ``WORK_ORDER_WORKFLOW``; anything
  not declared raises ``InvalidStatusTransitionError`` naming the attempted
  action and the current status.
* ``complete`` moves to COMPLETED exactly when the cumulative completed
  quantity reaches the ordered quantity, never before.
* The ordered quantity never drops below the completed quantity.
* Material lines are numbered from 1; operation lines from 100.

Failure modes
-------------
* ``WorkOrderNotFoundError`` / ``WorkOrderLineNotFoundError`` for lookups.
* ``InvalidQuantityError`` for non-positive reports or quantity changes
  below what is already completed.
"""

from __future__ import annotations

import functools
from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.exceptions import (
    InvalidQuantityError,
    InvalidStatusTransitionError,
    WorkOrderLineNotFoundError,
    WorkOrderNotFoundError,
)
from mfg_kernel.logging_config import LogContext, get_logger
from mfg_modules.bom.service import BomManager
from mfg_modules.routing.service import RoutingManager
from mfg_modules.work_order.models import (
    LineType,
    MaterialShortage,
    OperationCompletion,
    OperationProgress,
    WorkOrder,
    WorkOrderLine,
    WorkOrderProgress,
    WorkOrderStatus,
    WorkOrderVariance,
)
from mfg_modules.work_order.repository import WorkOrderRepository
from mfg_modules.work_order.workflows import find_transition

logger = get_logger("modules.work_order.service")

FIRST_MATERIAL_LINE = 1
FIRST_OPERATION_LINE = 100

_LOAD_BEARING = tuple(s for s in WorkOrderStatus if s.is_load_bearing)


def _bound_to_order(method):
    """Stamp ``work_order_id`` on every record logged while ``method`` runs."""

    @functools.wraps(method)
    def wrapper(self, work_order_id, *args, **kwargs):
        with LogContext.bind(work_order_id=str(work_order_id)):
            return method(self, work_order_id, *args, **kwargs)

    return wrapper


class WorkOrderManager:
    """
    Executes work orders through their lifecycle.

    Contract
    --------
    * Every mutating method reads the current order, builds a new immutable
      value and writes it back through the repository before returning it.

    Guarantees
    ----------
    * Line generation uses the BOM and routing effective on the clock's
      today; a product without either simply gets no lines of that kind.

    Non-goals
    ---------
    * Does NOT post inventory movements for issues or output.
    * Does NOT cost variances in currency (units and hours only).
    """

    def __init__(
        self,
        repository: WorkOrderRepository,
        bom_manager: BomManager,
        routing_manager: RoutingManager,
        clock: Clock | None = None,
    ):
        self._repository = repository
        self._boms = bom_manager
        self._routings = routing_manager
        self._clock = clock or SystemClock()

    # =========================================================================
    # Creation and lookup
    # =========================================================================

    def create(
        self,
        product_id: str,
        quantity: Decimal,
        planned_start_date: date,
        planned_end_date: date,
        number: str | None = None,
        parent_work_order_id: UUID | None = None,
        sales_order_id: str | None = None,
        source_reference: str | None = None,
    ) -> WorkOrder:
        if quantity <= 0:
            raise InvalidQuantityError("new", str(quantity), "quantity must be positive")
        order_id = uuid4()
        order = WorkOrder(
            id=order_id,
            number=number or f"WO-{order_id.hex[:8].upper()}",
            product_id=product_id,
            quantity=quantity,
            planned_start_date=planned_start_date,
            planned_end_date=planned_end_date,
            lines=self._generate_lines(product_id, quantity),
            parent_work_order_id=parent_work_order_id,
            sales_order_id=sales_order_id,
            source_reference=source_reference,
        )
        self._repository.add(order)
        logger.info(
            "work_order_created",
            extra={
                "work_order_id": str(order.id),
                "number": order.number,
                "product_id": product_id,
                "quantity": str(quantity),
                "material_lines": len(order.material_lines),
                "operation_lines": len(order.operation_lines),
            },
        )
        return order

    def find_by_id(self, work_order_id: UUID) -> WorkOrder:
        order = self._repository.get(work_order_id)
        if order is None:
            raise WorkOrderNotFoundError(work_order_id=str(work_order_id))
        return order

    def find_by_number(self, number: str) -> WorkOrder:
        order = self._repository.find_by_number(number)
        if order is None:
            raise WorkOrderNotFoundError(number=number)
        return order

    def find_by_status(
        self, status: WorkOrderStatus, product_id: str | None = None,
    ) -> list[WorkOrder]:
        return self._repository.find_by_status(status, product_id)

    def find_by_date_range(
        self, start: date, end: date, status: WorkOrderStatus | None = None,
    ) -> list[WorkOrder]:
        return self._repository.find_by_date_range(start, end, status)

    def find_by_work_center_and_date_range(
        self,
        work_center_id: UUID,
        start: date,
        end: date,
        statuses: tuple[WorkOrderStatus, ...] | None = None,
    ) -> list[WorkOrder]:
        """Orders loading ``work_center_id`` in [start, end); load-bearing statuses by default."""
        return self._repository.find_by_work_center_and_date_range(
            work_center_id, start, end, statuses or _LOAD_BEARING,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @_bound_to_order
    def release(self, work_order_id: UUID) -> WorkOrder:
        order = self.find_by_id(work_order_id)
        self._require_transition(order, "release")
        return self._save(
            replace(order, status=WorkOrderStatus.RELEASED, released_at=self._clock.now()),
            "work_order_released",
        )

    @_bound_to_order
    def start(self, work_order_id: UUID, actual_start_date: date | None = None) -> WorkOrder:
        order = self.find_by_id(work_order_id)
        self._require_transition(order, "start")
        return self._save(
            replace(
                order,
                status=WorkOrderStatus.IN_PROGRESS,
                actual_start_date=actual_start_date or self._clock.today(),
            ),
            "work_order_started",
        )

    @_bound_to_order
    def complete(
        self,
        work_order_id: UUID,
        quantity: Decimal,
        scrap_quantity: Decimal = Decimal("0"),
    ) -> WorkOrder:
        """
        Report finished output.

        Accumulates completed and scrap quantities; the order becomes
        COMPLETED once the completed total reaches the ordered quantity.
        """
        order = self.find_by_id(work_order_id)
        self._require_transition(order, "complete")
        if quantity < 0 or scrap_quantity < 0 or (quantity == 0 and scrap_quantity == 0):
            raise InvalidQuantityError(
                str(order.id), str(quantity), "reported output must be positive",
            )

        completed = order.completed_quantity + quantity
        updated = replace(
            order,
            completed_quantity=completed,
            scrap_quantity=order.scrap_quantity + scrap_quantity,
        )
        if completed >= order.quantity:
            updated = replace(
                updated,
                status=WorkOrderStatus.COMPLETED,
                actual_end_date=self._clock.today(),
            )
            return self._save(updated, "work_order_completed")
        return self._save(updated, "work_order_output_reported")

    @_bound_to_order
    def close(self, work_order_id: UUID) -> WorkOrder:
        order = self.find_by_id(work_order_id)
        self._require_transition(order, "close")
        return self._save(
            replace(
                order,
                status=WorkOrderStatus.CLOSED,
                closed_at=self._clock.now(),
                actual_end_date=order.actual_end_date or self._clock.today(),
            ),
            "work_order_closed",
        )

    @_bound_to_order
    def cancel(self, work_order_id: UUID, reason: str) -> WorkOrder:
        order = self.find_by_id(work_order_id)
        if not order.status.can_cancel:
            raise InvalidStatusTransitionError(str(order.id), order.status.value, "cancel")
        self._require_transition(order, "cancel")
        return self._save(
            replace(
                order,
                status=WorkOrderStatus.CANCELLED,
                cancellation_reason=reason,
                hold_reason=None,
                previous_status=None,
            ),
            "work_order_cancelled",
        )

    @_bound_to_order
    def put_on_hold(self, work_order_id: UUID, reason: str) -> WorkOrder:
        order = self.find_by_id(work_order_id)
        self._require_transition(order, "hold")
        return self._save(
            replace(
                order,
                status=WorkOrderStatus.ON_HOLD,
                hold_reason=reason,
                previous_status=order.status,
            ),
            "work_order_on_hold",
        )

    @_bound_to_order
    def resume(self, work_order_id: UUID) -> WorkOrder:
        """Return an on-hold order to the status it had before the hold."""
        order = self.find_by_id(work_order_id)
        target = order.previous_status or WorkOrderStatus.RELEASED
        self._require_transition(order, "resume", target)
        return self._save(
            replace(order, status=target, hold_reason=None, previous_status=None),
            "work_order_resumed",
        )

    # =========================================================================
    # Shop-floor reporting
    # =========================================================================

    @_bound_to_order
    def issue_material(
        self,
        work_order_id: UUID,
        line_number: int,
        quantity: Decimal,
        lot_number: str | None = None,
    ) -> WorkOrder:
        order = self.find_by_id(work_order_id)
        if not order.status.can_issue_material:
            raise InvalidStatusTransitionError(
                str(order.id), order.status.value, "issue_material",
            )
        if quantity <= 0:
            raise InvalidQuantityError(str(order.id), str(quantity), "issue must be positive")

        line = order.line(line_number)
        if line is None or not line.is_material:
            raise WorkOrderLineNotFoundError(str(order.id), f"material line {line_number}")

        issued = line.with_issued_quantity(line.issued_quantity + quantity)
        if lot_number is not None:
            issued = replace(issued, lot_number=lot_number)
        return self._save(self._with_line(order, issued), "work_order_material_issued")

    @_bound_to_order
    def report_material_consumption(
        self,
        work_order_id: UUID,
        product_id: str,
        quantity: Decimal,
        lot_number: str | None = None,
    ) -> WorkOrder:
        """Record consumption against the first material line for ``product_id``."""
        order = self.find_by_id(work_order_id)
        if not order.status.can_issue_material:
            raise InvalidStatusTransitionError(
                str(order.id), order.status.value, "report_material_consumption",
            )
        for line in order.material_lines:
            if line.product_id == product_id:
                return self.issue_material(order.id, line.line_number, quantity, lot_number)
        raise WorkOrderLineNotFoundError(str(order.id), f"material {product_id}")

    @_bound_to_order
    def report_operation(
        self, work_order_id: UUID, completion: OperationCompletion,
    ) -> WorkOrder:
        """
        Report progress at one operation.

        The first report against a released order starts it.  Only the
        operation line changes; finished output is reported via ``complete``.
        """
        order = self.find_by_id(work_order_id)
        if order.status not in (WorkOrderStatus.RELEASED, WorkOrderStatus.IN_PROGRESS):
            raise InvalidStatusTransitionError(
                str(order.id), order.status.value, "report_operation",
            )
        line = order.operation_line(completion.operation_number)
        if line is None:
            raise WorkOrderLineNotFoundError(
                str(order.id), f"operation {completion.operation_number}",
            )

        if order.status == WorkOrderStatus.RELEASED:
            self._require_transition(order, "start")
            order = replace(
                order,
                status=WorkOrderStatus.IN_PROGRESS,
                actual_start_date=self._clock.today(),
            )
            logger.info(
                "work_order_auto_started",
                extra={"work_order_id": str(order.id), "operation": completion.operation_number},
            )

        reported = replace(
            line.with_actual_hours(
                line.actual_setup_hours + completion.setup_hours,
                line.actual_run_hours + completion.run_hours,
            ),
            issued_quantity=line.issued_quantity + completion.quantity_completed,
            scrap_quantity=line.scrap_quantity + completion.scrap_quantity,
        )
        return self._save(self._with_line(order, reported), "work_order_operation_reported")

    # =========================================================================
    # Planning changes
    # =========================================================================

    @_bound_to_order
    def reschedule(
        self, work_order_id: UUID, new_start_date: date, new_end_date: date,
    ) -> WorkOrder:
        order = self.find_by_id(work_order_id)
        if not order.status.can_reschedule:
            raise InvalidStatusTransitionError(str(order.id), order.status.value, "reschedule")
        if new_end_date < new_start_date:
            raise ValueError("New end date is before new start date")
        return self._save(
            replace(order, planned_start_date=new_start_date, planned_end_date=new_end_date),
            "work_order_rescheduled",
        )

    @_bound_to_order
    def change_quantity(self, work_order_id: UUID, new_quantity: Decimal) -> WorkOrder:
        """Change the ordered quantity and regenerate every line at the new quantity."""
        order = self.find_by_id(work_order_id)
        if not order.status.can_modify:
            raise InvalidStatusTransitionError(
                str(order.id), order.status.value, "change_quantity",
            )
        return self._requantify(order, new_quantity)

    @_bound_to_order
    def split(self, work_order_id: UUID, split_quantity: Decimal) -> WorkOrder:
        """Move ``split_quantity`` to a new order; returns the new order."""
        order = self.find_by_id(work_order_id)
        if order.status not in (WorkOrderStatus.PLANNED, WorkOrderStatus.RELEASED):
            raise InvalidStatusTransitionError(str(order.id), order.status.value, "split")
        if split_quantity <= 0 or split_quantity >= order.quantity:
            raise InvalidQuantityError(
                str(order.id), str(split_quantity),
                "split quantity must be positive and below the ordered quantity",
            )

        remaining = order.quantity - split_quantity
        self._requantify(order, remaining)
        child = self.create(
            order.product_id,
            split_quantity,
            order.planned_start_date,
            order.planned_end_date,
            parent_work_order_id=order.parent_work_order_id,
            sales_order_id=order.sales_order_id,
            source_reference=f"split:{order.number}",
        )
        logger.info(
            "work_order_split",
            extra={
                "work_order_id": str(order.id),
                "new_work_order_id": str(child.id),
                "split_quantity": str(split_quantity),
                "remaining_quantity": str(remaining),
            },
        )
        return child

    @_bound_to_order
    def reassign_work_center(
        self, work_order_id: UUID, from_work_center_id: UUID, to_work_center_id: UUID,
    ) -> WorkOrder:
        """Point every operation line at ``from_work_center_id`` to another work center."""
        order = self.find_by_id(work_order_id)
        if not order.status.can_reschedule:
            raise InvalidStatusTransitionError(
                str(order.id), order.status.value, "reassign_work_center",
            )
        moved = [
            line.with_work_center(to_work_center_id)
            for line in order.operation_lines
            if line.work_center_id == from_work_center_id
        ]
        if not moved:
            raise WorkOrderLineNotFoundError(
                str(order.id), f"work center {from_work_center_id}",
            )
        for line in moved:
            order = self._with_line(order, line)
        return self._save(order, "work_order_work_center_reassigned")

    # =========================================================================
    # Analytics
    # =========================================================================

    def calculate_variance(self, work_order_id: UUID) -> WorkOrderVariance:
        order = self.find_by_id(work_order_id)
        zero = Decimal("0")
        planned_material = sum((line.planned_quantity for line in order.material_lines), zero)
        actual_material = sum((line.issued_quantity for line in order.material_lines), zero)
        planned_labor = sum((line.planned_hours for line in order.operation_lines), zero)
        actual_labor = sum((line.actual_hours for line in order.operation_lines), zero)
        return WorkOrderVariance(
            material=actual_material - planned_material,
            labor=actual_labor - planned_labor,
        )

    def progress(self, work_order_id: UUID) -> WorkOrderProgress:
        order = self.find_by_id(work_order_id)
        operations = order.operation_lines
        return WorkOrderProgress(
            completed_operations=sum(1 for line in operations if line.is_complete),
            total_operations=len(operations),
            produced_quantity=order.completed_quantity,
            planned_quantity=order.quantity,
            scrap_quantity=order.scrap_quantity,
        )

    def operation_progress(self, work_order_id: UUID) -> list[OperationProgress]:
        order = self.find_by_id(work_order_id)
        return [
            OperationProgress(
                operation_number=line.operation_number,
                work_center_id=line.work_center_id,
                planned_quantity=line.planned_quantity,
                completed_quantity=line.issued_quantity,
                completion_percentage=line.completion_percentage,
                planned_hours=line.planned_hours,
                actual_hours=line.actual_hours,
                labor_efficiency=line.labor_efficiency,
                is_complete=line.is_complete,
            )
            for line in order.operation_lines
        ]

    def material_shortages(self, work_order_id: UUID) -> list[MaterialShortage]:
        order = self.find_by_id(work_order_id)
        return [
            MaterialShortage(
                product_id=line.product_id,
                line_number=line.line_number,
                planned_quantity=line.planned_quantity,
                issued_quantity=line.issued_quantity,
                remaining_quantity=line.remaining_quantity,
                uom=line.uom,
            )
            for line in order.material_lines
            if line.remaining_quantity > 0
        ]

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_transition(
        self,
        order: WorkOrder,
        action: str,
        target: WorkOrderStatus | None = None,
    ) -> None:
        if find_transition(order.status, action, target) is None:
            logger.warning(
                "work_order_transition_rejected",
                extra={
                    "work_order_id": str(order.id),
                    "status": order.status.value,
                    "action": action,
                },
            )
            raise InvalidStatusTransitionError(str(order.id), order.status.value, action)

    def _requantify(self, order: WorkOrder, new_quantity: Decimal) -> WorkOrder:
        if new_quantity <= 0:
            raise InvalidQuantityError(str(order.id), str(new_quantity), "quantity must be positive")
        if new_quantity < order.completed_quantity:
            raise InvalidQuantityError(
                str(order.id), str(new_quantity),
                f"below completed quantity {order.completed_quantity}",
            )
        updated = replace(
            order,
            quantity=new_quantity,
            lines=self._generate_lines(order.product_id, new_quantity),
        )
        return self._save(updated, "work_order_quantity_changed")

    def _generate_lines(self, product_id: str, quantity: Decimal) -> tuple[WorkOrderLine, ...]:
        today = self._clock.today()
        lines: list[WorkOrderLine] = []

        bom = self._boms.get_effective(product_id, today)
        if bom is None:
            logger.debug("work_order_no_bom", extra={"product_id": product_id})
        else:
            for number, bom_line in enumerate(bom.effective_lines(today), FIRST_MATERIAL_LINE):
                lines.append(WorkOrderLine(
                    line_number=number,
                    line_type=LineType.MATERIAL,
                    product_id=bom_line.product_id,
                    planned_quantity=bom_line.quantity_with_scrap * quantity,
                    uom=bom_line.uom,
                    operation_number=bom_line.operation_number,
                ))

        routing = self._routings.get_effective(product_id, today)
        if routing is None:
            logger.debug("work_order_no_routing", extra={"product_id": product_id})
        else:
            for number, op in enumerate(routing.effective_operations(today), FIRST_OPERATION_LINE):
                lines.append(WorkOrderLine(
                    line_number=number,
                    line_type=LineType.OPERATION,
                    planned_quantity=quantity,
                    operation_number=op.operation_number,
                    work_center_id=op.work_center_id,
                    planned_setup_hours=op.setup_hours(),
                    planned_run_hours=op.run_hours(quantity),
                ))
        return tuple(lines)

    @staticmethod
    def _with_line(order: WorkOrder, new_line: WorkOrderLine) -> WorkOrder:
        return replace(
            order,
            lines=tuple(
                new_line if line.line_number == new_line.line_number else line
                for line in order.lines
            ),
        )

    def _save(self, order: WorkOrder, event: str) -> WorkOrder:
        self._repository.update(order)
        logger.info(
            event,
            extra={
                "work_order_id": str(order.id),
                "number": order.number,
                "status": order.status.value,
            },
        )
        return order
