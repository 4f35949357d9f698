"""
Tests for WorkOrderManager.

BIKE uses the released two-wheel BOM and a routing of two operations at
CNC; ten bikes plan 0.5 h setup + 1 h run at op 10 and 2 h run at op 20.
"""

from datetime import date
from decimal import Decimal
from itertools import product

import pytest

from mfg_kernel.exceptions import (
    InvalidQuantityError,
    InvalidStatusTransitionError,
    WorkOrderLineNotFoundError,
    WorkOrderNotFoundError,
)
from mfg_kernel.logging_config import LogContext
from mfg_modules.routing import Operation
from mfg_modules.work_order import (
    WORK_ORDER_WORKFLOW,
    OperationCompletion,
    WorkOrderStatus,
    allowed_actions,
    find_transition,
)

START = date(2024, 1, 8)
END = date(2024, 1, 12)


@pytest.fixture
def bike_routing(routing_manager, cnc):
    routing = routing_manager.create(
        "BIKE",
        operations=[
            Operation(10, cnc.id, setup_time_minutes=Decimal("30"), run_time_minutes=Decimal("6")),
            Operation(20, cnc.id, run_time_minutes=Decimal("12")),
        ],
    )
    return routing_manager.release(routing.id)


@pytest.fixture
def order(work_order_manager, released_bike, bike_routing):
    return work_order_manager.create("BIKE", Decimal("10"), START, END)


class TestWorkflow:
    def test_declared_transitions(self):
        assert find_transition(WorkOrderStatus.PLANNED, "release").to_state is WorkOrderStatus.RELEASED
        assert find_transition(WorkOrderStatus.PLANNED, "start") is None
        assert find_transition(
            WorkOrderStatus.ON_HOLD, "resume", WorkOrderStatus.IN_PROGRESS,
        ) is not None

    def test_allowed_actions(self):
        assert allowed_actions(WorkOrderStatus.PLANNED) == ("release", "cancel")
        assert allowed_actions(WorkOrderStatus.CLOSED) == ()


# Steps that bring a fresh PLANNED order into each status
PATH_TO = {
    WorkOrderStatus.PLANNED: (),
    WorkOrderStatus.RELEASED: ("release",),
    WorkOrderStatus.IN_PROGRESS: ("release", "start"),
    WorkOrderStatus.ON_HOLD: ("release", "hold"),
    WorkOrderStatus.COMPLETED: ("release", "start", "complete_all"),
    WorkOrderStatus.CLOSED: ("release", "start", "complete_all", "close"),
    WorkOrderStatus.CANCELLED: ("cancel",),
}

ACTIONS = ("release", "start", "complete", "close", "hold", "resume", "cancel")

DECLARED = {(t.from_state, t.action) for t in WORK_ORDER_WORKFLOW.transitions}


def _perform(manager, order, action):
    calls = {
        "release": lambda: manager.release(order.id),
        "start": lambda: manager.start(order.id),
        "complete": lambda: manager.complete(order.id, Decimal("1")),
        "complete_all": lambda: manager.complete(order.id, order.quantity),
        "close": lambda: manager.close(order.id),
        "hold": lambda: manager.put_on_hold(order.id, "waiting on parts"),
        "resume": lambda: manager.resume(order.id),
        "cancel": lambda: manager.cancel(order.id, "customer cancelled"),
    }
    return calls[action]()


class TestTransitionMatrix:
    @pytest.fixture
    def order_in(self, work_order_manager, order):
        def _drive(status):
            for step in PATH_TO[status]:
                _perform(work_order_manager, order, step)
            current = work_order_manager.find_by_id(order.id)
            assert current.status is status
            return current
        return _drive

    @pytest.mark.parametrize(
        "status,action",
        [pair for pair in product(WorkOrderStatus, ACTIONS) if pair not in DECLARED],
    )
    def test_undeclared_transition_rejected(self, work_order_manager, order_in, status, action):
        current = order_in(status)
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            _perform(work_order_manager, current, action)
        assert exc_info.value.current_status == status.value
        assert exc_info.value.attempted == action
        assert work_order_manager.find_by_id(current.id).status is status

    @pytest.mark.parametrize(
        "status,action", sorted(DECLARED, key=lambda pair: (pair[0].value, pair[1])),
    )
    def test_declared_transition_accepted(self, work_order_manager, order_in, status, action):
        targets = {
            t.to_state for t in WORK_ORDER_WORKFLOW.transitions
            if t.from_state is status and t.action == action
        }
        if action == "complete":
            # Partial output keeps the order in progress
            targets.add(status)
        current = order_in(status)
        _perform(work_order_manager, current, action)
        assert work_order_manager.find_by_id(current.id).status in targets


class TestLogContext:
    def test_lifecycle_records_carry_order_id(self, work_order_manager, order, captured_logs):
        work_order_manager.release(order.id)
        with pytest.raises(InvalidStatusTransitionError):
            work_order_manager.resume(order.id)

        records = {r["message"]: r for r in captured_logs()}
        assert records["work_order_released"]["work_order_id"] == str(order.id)
        assert records["work_order_transition_rejected"]["work_order_id"] == str(order.id)

    def test_context_restored_after_call(self, work_order_manager, order):
        work_order_manager.release(order.id)
        assert "work_order_id" not in LogContext.get_all()


class TestCreation:
    def test_lines_generated_from_bom_and_routing(self, order):
        assert order.status is WorkOrderStatus.PLANNED
        assert order.number.startswith("WO-")

        materials = order.material_lines
        assert [(l.line_number, l.product_id, l.planned_quantity) for l in materials] == [
            (1, "WHEEL", Decimal("20")),
            (2, "FRAME", Decimal("10")),
        ]
        operations = order.operation_lines
        assert [(l.line_number, l.operation_number) for l in operations] == [(100, 10), (101, 20)]
        assert operations[0].planned_setup_hours == Decimal("0.5")
        assert operations[0].planned_run_hours == Decimal("1")
        assert operations[1].planned_run_hours == Decimal("2")

    def test_purchased_product_has_no_lines(self, work_order_manager):
        order = work_order_manager.create("BOLT", Decimal("5"), START, END, number="WO-BOLT")
        assert order.lines == ()
        assert work_order_manager.find_by_number("WO-BOLT").id == order.id

    def test_non_positive_quantity_rejected(self, work_order_manager):
        with pytest.raises(InvalidQuantityError):
            work_order_manager.create("BIKE", Decimal("0"), START, END)

    def test_end_before_start_rejected(self, work_order_manager):
        with pytest.raises(ValueError):
            work_order_manager.create("BIKE", Decimal("1"), END, START)

    def test_unknown_number(self, work_order_manager):
        with pytest.raises(WorkOrderNotFoundError):
            work_order_manager.find_by_number("WO-MISSING")

    def test_hours_at_work_center(self, order, cnc):
        assert order.hours_at(cnc.id) == Decimal("3.5")


class TestLifecycle:
    def test_start_requires_release(self, work_order_manager, order):
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            work_order_manager.start(order.id)
        assert exc_info.value.current_status == "planned"
        assert exc_info.value.attempted == "start"

    def test_partial_then_full_completion(self, work_order_manager, order, clock):
        work_order_manager.release(order.id)
        work_order_manager.start(order.id)

        partial = work_order_manager.complete(order.id, Decimal("4"), Decimal("1"))
        assert partial.status is WorkOrderStatus.IN_PROGRESS
        assert partial.remaining_quantity == Decimal("6")

        done = work_order_manager.complete(order.id, Decimal("6"))
        assert done.status is WorkOrderStatus.COMPLETED
        assert done.completed_quantity == Decimal("10")
        assert done.scrap_quantity == Decimal("1")
        assert done.actual_end_date == clock.today()

        closed = work_order_manager.close(order.id)
        assert closed.status is WorkOrderStatus.CLOSED
        assert closed.status.is_terminal

    def test_zero_output_rejected(self, work_order_manager, order):
        work_order_manager.release(order.id)
        work_order_manager.start(order.id)
        with pytest.raises(InvalidQuantityError):
            work_order_manager.complete(order.id, Decimal("0"))

    def test_hold_and_resume_restore_status(self, work_order_manager, order):
        work_order_manager.release(order.id)
        work_order_manager.start(order.id)
        held = work_order_manager.put_on_hold(order.id, "Tool broken")
        assert held.status is WorkOrderStatus.ON_HOLD
        assert held.hold_reason == "Tool broken"

        resumed = work_order_manager.resume(order.id)
        assert resumed.status is WorkOrderStatus.IN_PROGRESS
        assert resumed.hold_reason is None

    def test_cancel_planned(self, work_order_manager, order):
        cancelled = work_order_manager.cancel(order.id, "Demand dropped")
        assert cancelled.status is WorkOrderStatus.CANCELLED
        assert cancelled.cancellation_reason == "Demand dropped"

    def test_cancel_in_progress_rejected(self, work_order_manager, order):
        work_order_manager.release(order.id)
        work_order_manager.start(order.id)
        with pytest.raises(InvalidStatusTransitionError):
            work_order_manager.cancel(order.id, "Too late")

    def test_find_by_status(self, work_order_manager, order):
        work_order_manager.release(order.id)
        released = work_order_manager.find_by_status(WorkOrderStatus.RELEASED)
        assert [o.id for o in released] == [order.id]
        assert work_order_manager.find_by_status(WorkOrderStatus.PLANNED) == []


class TestShopFloorReporting:
    def test_issue_requires_release(self, work_order_manager, order):
        with pytest.raises(InvalidStatusTransitionError):
            work_order_manager.issue_material(order.id, 1, Decimal("5"))

    def test_issue_and_shortages(self, work_order_manager, order):
        work_order_manager.release(order.id)
        updated = work_order_manager.issue_material(order.id, 1, Decimal("15"), lot_number="L-1")
        assert updated.line(1).issued_quantity == Decimal("15")
        assert updated.line(1).lot_number == "L-1"

        work_order_manager.report_material_consumption(order.id, "FRAME", Decimal("10"))
        shortages = work_order_manager.material_shortages(order.id)
        assert [(s.product_id, s.remaining_quantity) for s in shortages] == [
            ("WHEEL", Decimal("5")),
        ]

    def test_issue_against_operation_line_rejected(self, work_order_manager, order):
        work_order_manager.release(order.id)
        with pytest.raises(WorkOrderLineNotFoundError):
            work_order_manager.issue_material(order.id, 100, Decimal("1"))

    def test_report_operation_auto_starts(self, work_order_manager, order, clock):
        work_order_manager.release(order.id)
        updated = work_order_manager.report_operation(
            order.id,
            OperationCompletion(
                10, Decimal("10"), setup_hours=Decimal("0.5"), run_hours=Decimal("1.5"),
            ),
        )
        assert updated.status is WorkOrderStatus.IN_PROGRESS
        assert updated.actual_start_date == clock.today()
        line = updated.operation_line(10)
        assert line.issued_quantity == Decimal("10")
        assert line.actual_hours == Decimal("2.0")
        # Output is reported separately
        assert updated.completed_quantity == Decimal("0")

    def test_report_unknown_operation(self, work_order_manager, order):
        work_order_manager.release(order.id)
        with pytest.raises(WorkOrderLineNotFoundError):
            work_order_manager.report_operation(order.id, OperationCompletion(99, Decimal("1")))

    def test_progress_and_variance(self, work_order_manager, order):
        work_order_manager.release(order.id)
        work_order_manager.issue_material(order.id, 1, Decimal("22"))
        work_order_manager.issue_material(order.id, 2, Decimal("10"))
        work_order_manager.report_operation(
            order.id,
            OperationCompletion(10, Decimal("10"), setup_hours=Decimal("0.5"), run_hours=Decimal("2")),
        )
        work_order_manager.complete(order.id, Decimal("5"))

        variance = work_order_manager.calculate_variance(order.id)
        assert variance.material == Decimal("2")
        # 2.5 h actual against 3.5 h planned
        assert variance.labor == Decimal("-1.0")

        progress = work_order_manager.progress(order.id)
        assert progress.completed_operations == 1
        assert progress.total_operations == 2
        assert progress.percent_complete == Decimal("50")

        by_operation = {p.operation_number: p for p in work_order_manager.operation_progress(order.id)}
        assert by_operation[10].is_complete
        assert by_operation[10].labor_efficiency == Decimal("60")
        assert by_operation[20].labor_efficiency is None


class TestPlanningChanges:
    def test_change_quantity_regenerates_lines(self, work_order_manager, order):
        updated = work_order_manager.change_quantity(order.id, Decimal("4"))
        assert updated.quantity == Decimal("4")
        assert updated.line(1).planned_quantity == Decimal("8")
        assert updated.operation_line(20).planned_run_hours == Decimal("0.8")

    def test_change_quantity_after_release_rejected(self, work_order_manager, order):
        work_order_manager.release(order.id)
        with pytest.raises(InvalidStatusTransitionError):
            work_order_manager.change_quantity(order.id, Decimal("4"))

    def test_split(self, work_order_manager, order):
        child = work_order_manager.split(order.id, Decimal("4"))
        source = work_order_manager.find_by_id(order.id)

        assert source.quantity == Decimal("6")
        assert child.quantity == Decimal("4")
        assert child.source_reference == f"split:{order.number}"
        assert child.planned_start_date == order.planned_start_date
        assert child.line(1).planned_quantity == Decimal("8")

    def test_split_records_name_each_order(self, work_order_manager, order, captured_logs):
        child = work_order_manager.split(order.id, Decimal("4"))
        logs = captured_logs()

        created = [r for r in logs if r["message"] == "work_order_created"]
        assert [r["work_order_id"] for r in created] == [str(child.id)]
        parent_events = ("work_order_quantity_changed", "work_order_split")
        assert {
            r["work_order_id"] for r in logs if r["message"] in parent_events
        } == {str(order.id)}

    @pytest.mark.parametrize("quantity", [Decimal("0"), Decimal("10"), Decimal("11")])
    def test_split_quantity_bounds(self, work_order_manager, order, quantity):
        with pytest.raises(InvalidQuantityError):
            work_order_manager.split(order.id, quantity)

    def test_reschedule(self, work_order_manager, order):
        moved = work_order_manager.reschedule(order.id, date(2024, 1, 15), date(2024, 1, 19))
        assert moved.planned_start_date == date(2024, 1, 15)
        with pytest.raises(ValueError):
            work_order_manager.reschedule(order.id, date(2024, 1, 19), date(2024, 1, 15))

    def test_reassign_work_center(self, work_order_manager, order, cnc, cnc_alternate):
        moved = work_order_manager.reassign_work_center(order.id, cnc.id, cnc_alternate.id)
        assert {l.work_center_id for l in moved.operation_lines} == {cnc_alternate.id}
        assert moved.hours_at(cnc.id) == Decimal("0")
        with pytest.raises(WorkOrderLineNotFoundError):
            work_order_manager.reassign_work_center(order.id, cnc.id, cnc_alternate.id)

    def test_load_lookup_by_work_center(self, work_order_manager, order, cnc):
        found = work_order_manager.find_by_work_center_and_date_range(
            cnc.id, date(2024, 1, 1), date(2024, 2, 1),
        )
        assert [o.id for o in found] == [order.id]
        work_order_manager.cancel(order.id, "No longer needed")
        assert work_order_manager.find_by_work_center_and_date_range(
            cnc.id, date(2024, 1, 1), date(2024, 2, 1),
        ) == []
