"""
SQL repository round-trips against in-memory SQLite.

The managers are wired to the SQL repositories exactly as production
callers wire them, so these tests cover both the ORM mapping and the
query methods the services rely on.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from mfg_kernel.domain.clock import DeterministicClock
from mfg_modules.bom import BomLine, BomManager, BomStatus, SqlBomRepository
from mfg_modules.routing import (
    Operation,
    OperationType,
    RoutingManager,
    RoutingStatus,
    SqlRoutingRepository,
)
from mfg_modules.work_center import (
    SqlWorkCenterRepository,
    WorkCenter,
    WorkCenterClosure,
    WorkCenterManager,
    WorkCenterOvertime,
    WorkCenterType,
)
from mfg_modules.work_order import (
    LineType,
    SqlWorkOrderRepository,
    WorkOrderManager,
    WorkOrderStatus,
)

TODAY = date(2024, 1, 1)


@pytest.fixture
def clock():
    return DeterministicClock.on(TODAY)


@pytest.fixture
def boms(session, clock):
    return BomManager(SqlBomRepository(session), clock)


@pytest.fixture
def routings(session, clock):
    return RoutingManager(SqlRoutingRepository(session), clock)


@pytest.fixture
def work_centers(session):
    return WorkCenterManager(SqlWorkCenterRepository(session))


@pytest.fixture
def work_orders(session, boms, routings, clock):
    return WorkOrderManager(SqlWorkOrderRepository(session), boms, routings, clock)


@pytest.fixture
def cnc(work_centers):
    return work_centers.create("CNC", "CNC mill", cost_per_hour=Decimal("50"))


# =============================================================================
# BOM
# =============================================================================


class TestSqlBomRepository:

    def test_round_trip_preserves_lines(self, session):
        repo = SqlBomRepository(session)
        manager = BomManager(repo, DeterministicClock.on(TODAY))
        bom = manager.create(
            "BIKE",
            lines=[
                BomLine("WHEEL", Decimal("2"), scrap_percentage=Decimal("20")),
                BomLine("FRAME", Decimal("1"), notes="welded"),
            ],
        )
        session.expire_all()

        stored = repo.get(bom.id)
        assert stored == bom
        assert [line.line_number for line in stored.lines] == [10, 20]
        assert stored.lines[0].quantity_with_scrap == Decimal("2.5")

    def test_get_missing_returns_none(self, session):
        assert SqlBomRepository(session).get(uuid4()) is None

    def test_release_updates_status_and_dates(self, boms):
        bom = boms.create("BIKE", lines=[BomLine("WHEEL", Decimal("2"))])
        boms.release(bom.id)

        stored = boms.find_by_id(bom.id)
        assert stored.status == BomStatus.RELEASED
        assert stored.effective_from == TODAY
        assert boms.find_by_product_id("BIKE").id == bom.id

    def test_versions_are_ordered_and_superseded(self, boms):
        v1 = boms.release(boms.create("BIKE", lines=[BomLine("WHEEL", Decimal("2"))]).id)
        v2 = boms.create_version(v1.id, "2.0")
        boms.release(v2.id, effective_from=date(2024, 2, 1))

        versions = boms.find_all_versions("BIKE")
        assert [b.version for b in versions] == ["1.0", "2.0"]
        assert versions[0].effective_to == date(2024, 1, 31)
        assert boms.find_by_product_id("BIKE", date(2024, 1, 15)).id == v1.id
        assert boms.find_by_product_id("BIKE", date(2024, 2, 15)).id == v2.id

    def test_line_edits_replace_stored_lines(self, boms):
        bom = boms.create("BIKE", lines=[BomLine("WHEEL", Decimal("2"))])
        boms.add_line(bom.id, BomLine("FRAME", Decimal("1")))
        boms.remove_line(bom.id, 10)

        stored = boms.find_by_id(bom.id)
        assert [(line.line_number, line.product_id) for line in stored.lines] == [(20, "FRAME")]

    def test_where_used_skips_obsolete(self, session, boms):
        bike = boms.release(boms.create("BIKE", lines=[BomLine("WHEEL", Decimal("2"))]).id)
        trike = boms.release(boms.create("TRIKE", lines=[BomLine("WHEEL", Decimal("3"))]).id)
        boms.obsolete(trike.id)

        used_in = SqlBomRepository(session).find_where_used("WHEEL")
        assert [b.id for b in used_in] == [bike.id]


# =============================================================================
# Routing
# =============================================================================


class TestSqlRoutingRepository:

    def test_round_trip_preserves_operations(self, session, routings, cnc):
        routing = routings.create(
            "PART",
            operations=[
                Operation(20, cnc.id, "Finish", run_time_minutes=Decimal("15")),
                Operation(
                    10,
                    cnc.id,
                    "Rough",
                    setup_time_minutes=Decimal("30"),
                    run_time_minutes=Decimal("45"),
                ),
            ],
        )
        session.expire_all()

        stored = SqlRoutingRepository(session).get(routing.id)
        assert stored == routing
        assert [op.operation_number for op in stored.operations] == [10, 20]
        assert stored.operations[0].setup_time_minutes == Decimal("30")

    def test_subcontract_fields_survive(self, session, routings, cnc):
        routing = routings.create(
            "PART",
            operations=[
                Operation(
                    10,
                    cnc.id,
                    operation_type=OperationType.SUBCONTRACT,
                    subcontractor_id="ACME",
                    subcontract_cost=Decimal("2.50"),
                ),
            ],
        )
        session.expire_all()

        op = routings.find_by_id(routing.id).operations[0]
        assert op.operation_type == OperationType.SUBCONTRACT
        assert op.subcontractor_id == "ACME"
        assert op.subcontract_cost == Decimal("2.50")

    def test_release_and_effective_lookup(self, routings, cnc):
        routing = routings.create("PART", operations=[Operation(10, cnc.id)])
        routings.release(routing.id)

        assert routings.find_by_id(routing.id).status == RoutingStatus.RELEASED
        assert routings.find_by_product_id("PART").id == routing.id

    def test_operations_by_work_center(self, session, routings, work_centers, cnc):
        lathe = work_centers.create("LATHE", "Lathe")
        routing = routings.create(
            "PART",
            operations=[Operation(10, cnc.id), Operation(20, lathe.id)],
        )
        routings.release(routing.id)

        found = SqlRoutingRepository(session).find_operations_by_work_center(cnc.id, TODAY)
        assert [(r.product_id, op.operation_number) for r, op in found] == [("PART", 10)]

    def test_draft_routings_are_not_in_effect(self, session, routings, cnc):
        routings.create("PART", operations=[Operation(10, cnc.id)])

        repo = SqlRoutingRepository(session)
        assert repo.find_operations_by_work_center(cnc.id, TODAY) == []


# =============================================================================
# Work center
# =============================================================================


class TestSqlWorkCenterRepository:

    def test_round_trip(self, session):
        repo = SqlWorkCenterRepository(session)
        work_center = WorkCenter(
            code="ASSY",
            name="Assembly line",
            work_center_type=WorkCenterType.LABOR,
            hours_per_day=Decimal("7.5"),
            days_per_week=6,
            efficiency=Decimal("0.9"),
            capacity_units=3,
            labor_cost_per_hour=Decimal("22"),
        )
        repo.add(work_center)
        session.expire_all()

        assert repo.get(work_center.id) == work_center
        assert repo.find_by_code("ASSY") == work_center
        assert repo.find_by_code("NOPE") is None

    def test_find_by_type_and_active(self, work_centers, session):
        cnc = work_centers.create("CNC", "CNC mill")
        paint = work_centers.create("PAINT", "Paint booth", work_center_type=WorkCenterType.LABOR)
        work_centers.deactivate(cnc.id)

        repo = SqlWorkCenterRepository(session)
        assert [wc.code for wc in repo.find_by_type(WorkCenterType.LABOR)] == ["PAINT"]
        assert [wc.id for wc in repo.find_active()] == [paint.id]

    def test_alternate_link_persists(self, work_centers, cnc):
        backup = work_centers.create("CNC2", "Backup CNC mill")
        work_centers.set_alternate(cnc.id, backup.id)

        assert work_centers.get_alternate(cnc.id).id == backup.id

    def test_closures_in_range(self, session, cnc):
        repo = SqlWorkCenterRepository(session)
        repo.add_closure(WorkCenterClosure(cnc.id, date(2024, 1, 3), "maintenance"))
        repo.add_closure(WorkCenterClosure(cnc.id, date(2024, 1, 20)))

        found = repo.closures(cnc.id, date(2024, 1, 1), date(2024, 1, 7))
        assert [(c.closure_date, c.reason) for c in found] == [(date(2024, 1, 3), "maintenance")]

    def test_closure_on_same_day_is_replaced(self, session, cnc):
        repo = SqlWorkCenterRepository(session)
        repo.add_closure(WorkCenterClosure(cnc.id, date(2024, 1, 3), "first"))
        repo.add_closure(WorkCenterClosure(cnc.id, date(2024, 1, 3), "second"))

        found = repo.closures(cnc.id, date(2024, 1, 3), date(2024, 1, 3))
        assert [c.reason for c in found] == ["second"]

    def test_remove_closure(self, session, cnc):
        repo = SqlWorkCenterRepository(session)
        repo.add_closure(WorkCenterClosure(cnc.id, date(2024, 1, 3)))
        repo.remove_closure(cnc.id, date(2024, 1, 3))

        assert repo.closures(cnc.id, date(2024, 1, 1), date(2024, 1, 31)) == []

    def test_overtime_saved_per_day(self, session, cnc):
        repo = SqlWorkCenterRepository(session)
        repo.save_overtime(WorkCenterOvertime(cnc.id, date(2024, 1, 6), Decimal("4")))
        repo.save_overtime(WorkCenterOvertime(cnc.id, date(2024, 1, 6), Decimal("6")))

        found = repo.overtime(cnc.id, date(2024, 1, 1), date(2024, 1, 7))
        assert [(o.overtime_date, o.hours) for o in found] == [(date(2024, 1, 6), Decimal("6"))]

    def test_calendar_through_manager(self, work_centers, cnc):
        work_centers.add_closure(cnc.id, date(2024, 1, 3))
        work_centers.schedule_overtime(cnc.id, date(2024, 1, 6), Decimal("2"))
        work_centers.schedule_overtime(cnc.id, date(2024, 1, 6), Decimal("1.5"))

        # Mon-Fri at 8 h minus Wednesday, plus Saturday overtime
        hours = work_centers.available_hours_for_period(cnc.id, date(2024, 1, 1), date(2024, 1, 8))
        assert hours == Decimal("35.5")


# =============================================================================
# Work order
# =============================================================================


@pytest.fixture
def bike_order(boms, routings, work_orders, cnc):
    boms.release(boms.create(
        "BIKE",
        lines=[BomLine("WHEEL", Decimal("2")), BomLine("FRAME", Decimal("1"))],
    ).id)
    routings.release(routings.create(
        "BIKE",
        operations=[Operation(10, cnc.id, "Assemble", run_time_minutes=Decimal("60"))],
    ).id)
    return work_orders.create(
        "BIKE", Decimal("10"), date(2024, 1, 8), date(2024, 1, 12), number="WO-1",
    )


class TestSqlWorkOrderRepository:

    def test_round_trip_with_generated_lines(self, session, bike_order, cnc):
        session.expire_all()

        stored = SqlWorkOrderRepository(session).get(bike_order.id)
        assert stored == bike_order
        materials = {line.product_id: line.planned_quantity for line in stored.material_lines}
        assert materials == {"WHEEL": Decimal("20"), "FRAME": Decimal("10")}
        (operation,) = stored.operation_lines
        assert operation.line_type == LineType.OPERATION
        assert operation.work_center_id == cnc.id
        assert operation.planned_run_hours == Decimal("10")

    def test_find_by_number(self, session, bike_order):
        repo = SqlWorkOrderRepository(session)
        assert repo.find_by_number("WO-1").id == bike_order.id
        assert repo.find_by_number("WO-404") is None

    def test_status_change_persists(self, session, work_orders, bike_order):
        work_orders.release(bike_order.id)
        session.expire_all()

        repo = SqlWorkOrderRepository(session)
        stored = repo.get(bike_order.id)
        assert stored.status == WorkOrderStatus.RELEASED
        assert stored.released_at is not None
        assert [o.id for o in repo.find_by_status(WorkOrderStatus.RELEASED)] == [bike_order.id]
        assert repo.find_by_status(WorkOrderStatus.RELEASED, product_id="TRIKE") == []

    def test_line_updates_persist(self, session, work_orders, bike_order):
        work_orders.release(bike_order.id)
        wheel_line = next(l for l in bike_order.material_lines if l.product_id == "WHEEL")
        work_orders.issue_material(bike_order.id, wheel_line.line_number, Decimal("8"), "LOT-7")
        session.expire_all()

        stored = SqlWorkOrderRepository(session).get(bike_order.id)
        issued = stored.line(wheel_line.line_number)
        assert issued.issued_quantity == Decimal("8")
        assert issued.lot_number == "LOT-7"
        assert len(stored.lines) == len(bike_order.lines)

    def test_date_range_is_half_open(self, session, bike_order):
        repo = SqlWorkOrderRepository(session)
        assert [o.id for o in repo.find_by_date_range(date(2024, 1, 8), date(2024, 1, 9))] == [
            bike_order.id
        ]
        assert repo.find_by_date_range(date(2024, 1, 1), date(2024, 1, 8)) == []
        assert repo.find_by_date_range(
            date(2024, 1, 1), date(2024, 2, 1), status=WorkOrderStatus.RELEASED,
        ) == []

    def test_find_by_work_center_filters_status(self, session, work_orders, bike_order, cnc):
        repo = SqlWorkOrderRepository(session)
        window = (date(2024, 1, 1), date(2024, 2, 1))

        found = repo.find_by_work_center_and_date_range(
            cnc.id, *window, statuses=[WorkOrderStatus.PLANNED],
        )
        assert [o.id for o in found] == [bike_order.id]

        work_orders.cancel(bike_order.id, "customer cancelled")
        found = repo.find_by_work_center_and_date_range(
            cnc.id, *window, statuses=[WorkOrderStatus.PLANNED, WorkOrderStatus.RELEASED],
        )
        assert found == []

    def test_split_child_is_stored(self, session, work_orders, bike_order):
        child = work_orders.split(bike_order.id, Decimal("4"))

        repo = SqlWorkOrderRepository(session)
        assert repo.get(bike_order.id).quantity == Decimal("6")
        stored_child = repo.get(child.id)
        assert stored_child.quantity == Decimal("4")
        assert stored_child.parent_work_order_id == bike_order.id
