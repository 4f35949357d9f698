"""
Tests for MrpEngine.

BIKE = 2 x WHEEL + 1 x FRAME.  BIKE: 10 on hand, safety stock 2, lead
time 5 days; a sales order for 15 is due on 2024-01-20.
"""

from datetime import date
from decimal import Decimal

import pytest

from mfg_engines.lot_sizing import LotSizingParameters, LotSizingStrategy
from mfg_kernel.domain.horizon import PlanningHorizon
from mfg_modules.bom import BomLine
from mfg_modules.mrp import DemandSource, DemandSourceType, MrpConfig, OrderType
from mfg_services import MrpEngine

DUE = date(2024, 1, 20)


def _sales_order(demand, product_id="BIKE", quantity="15", due=DUE, source_id="SO-1"):
    demand.add_demand(
        product_id,
        DemandSource(DemandSourceType.SALES_ORDER, source_id, Decimal(quantity), due),
    )


@pytest.fixture
def horizon():
    return PlanningHorizon.for_days(date(2024, 1, 1), 60)


@pytest.fixture
def bike_plan(released_bike, inventory, demand):
    inventory.set_item("BIKE", on_hand=Decimal("10"), safety_stock=Decimal("2"), lead_time_days=5)
    inventory.set_item("WHEEL", lead_time_days=3)
    inventory.set_item("FRAME", lead_time_days=4)
    _sales_order(demand)
    return released_bike


class TestCalculate:
    def test_top_level_order(self, mrp_engine, bike_plan, horizon):
        result = mrp_engine.calculate("BIKE", horizon)

        assert result.is_successful
        assert not result.has_warnings
        bike_orders = [o for o in result.planned_orders if o.product_id == "BIKE"]
        assert len(bike_orders) == 1
        order = bike_orders[0]
        assert order.order_type is OrderType.MANUFACTURING
        assert order.quantity == Decimal("7")
        assert order.start_date == date(2024, 1, 15)
        assert order.due_date == DUE
        assert order.level == 0

    def test_components_planned_from_parent_start(self, mrp_engine, bike_plan, horizon):
        result = mrp_engine.calculate("BIKE", horizon)

        wheel = [o for o in result.planned_orders if o.product_id == "WHEEL"][0]
        assert wheel.order_type is OrderType.PURCHASE
        assert wheel.quantity == Decimal("14")
        assert wheel.due_date == date(2024, 1, 15)
        assert wheel.start_date == date(2024, 1, 12)
        assert wheel.level == 1
        assert wheel.parent_product_id == "BIKE"

        requirements = result.requirements_by_product()
        assert requirements["WHEEL"][0].gross_requirement == Decimal("14")
        assert requirements["FRAME"][0].gross_requirement == Decimal("7")
        assert len(result.purchase_orders) == 2

    def test_no_demand_no_orders(self, mrp_engine, released_bike, horizon):
        result = mrp_engine.calculate("BIKE", horizon)
        assert result.is_successful
        assert result.planned_orders == ()
        assert result.material_requirements == ()

    def test_default_lead_time_warning(self, mrp_engine, released_bike, inventory, demand, horizon):
        inventory.set_item("BIKE", lead_time_days=0)
        inventory.set_item("WHEEL", lead_time_days=2)
        inventory.set_item("FRAME", lead_time_days=2)
        _sales_order(demand)

        result = mrp_engine.calculate("BIKE", horizon)
        assert result.warnings == ("Using default lead time of 1 day(s) for product 'BIKE'",)
        bike = result.planned_orders[0]
        assert bike.start_date == date(2024, 1, 19)

    def test_order_date_clipped_to_horizon(self, mrp_engine, released_bike, inventory, demand, horizon):
        inventory.set_item("BIKE", lead_time_days=10)
        inventory.set_item("WHEEL", lead_time_days=2)
        inventory.set_item("FRAME", lead_time_days=2)
        _sales_order(demand, due=date(2024, 1, 5))

        result = mrp_engine.calculate("BIKE", horizon)
        assert result.planned_orders[0].start_date == date(2024, 1, 1)
        assert any("adjusted to horizon start" in w for w in result.warnings)

    def test_negative_on_hand_is_an_error(self, mrp_engine, released_bike, inventory, demand, horizon):
        inventory.set_item("BIKE", on_hand=Decimal("-5"), lead_time_days=5)
        _sales_order(demand)

        result = mrp_engine.calculate("BIKE", horizon)
        assert not result.is_successful
        assert result.errors == ("Negative on-hand quantity -5 for 'BIKE'",)
        assert result.planned_orders == ()

    def test_scheduled_receipt_reduces_order(self, mrp_engine, bike_plan, inventory, horizon):
        inventory.add_receipt("BIKE", date(2024, 1, 10), Decimal("5"))
        result = mrp_engine.calculate("BIKE", horizon)
        bike = [o for o in result.planned_orders if o.product_id == "BIKE"][0]
        assert bike.quantity == Decimal("2")

    def test_fixed_order_quantity(self, mrp_engine, bike_plan, horizon):
        result = mrp_engine.calculate(
            "BIKE",
            horizon,
            lot_sizing=LotSizingStrategy.FIXED_ORDER_QUANTITY,
            parameters=LotSizingParameters(fixed_quantity=Decimal("50")),
        )
        bike = [o for o in result.planned_orders if o.product_id == "BIKE"][0]
        assert bike.quantity == Decimal("50")
        assert bike.lot_sizing_excess == Decimal("43")
        wheel = [o for o in result.planned_orders if o.product_id == "WHEEL"][0]
        assert wheel.quantity == Decimal("100")
        assert result.parameters["lot_sizing"] == "fixed_order_quantity"
        assert result.parameters["lot_sizing_parameters"] == {"fixed_quantity": Decimal("50")}

    def test_identical_inputs_identical_plan(self, mrp_engine, bike_plan, horizon):
        first = mrp_engine.calculate("BIKE", horizon)
        second = mrp_engine.calculate("BIKE", horizon)
        assert first.material_requirements == second.material_requirements
        assert [o.to_dict() | {"id": None} for o in first.planned_orders] == [
            o.to_dict() | {"id": None} for o in second.planned_orders
        ]

    def test_logs_run_id(self, mrp_engine, bike_plan, horizon, captured_logs):
        mrp_engine.calculate("BIKE", horizon)
        records = [r for r in captured_logs() if r["message"].startswith("mrp_calculation")]
        assert [r["message"] for r in records] == [
            "mrp_calculation_started",
            "mrp_calculation_completed",
        ]
        assert records[0]["plan_run_id"] == records[1]["plan_run_id"]


class TestMultiLevel:
    def test_explosion_level_limit(self, bom_manager, inventory, demand, clock, bike_plan, horizon):
        wheel = bom_manager.create("WHEEL", lines=[BomLine("SPOKE", Decimal("36"))])
        bom_manager.release(wheel.id)
        engine = MrpEngine(
            bom_manager, inventory, demand, config=MrpConfig(max_explosion_level=1), clock=clock,
        )

        result = engine.calculate("BIKE", horizon)
        assert "Maximum BOM explosion level (1) reached for WHEEL" in result.warnings
        assert "SPOKE" not in {o.product_id for o in result.planned_orders}

    def test_three_levels(self, mrp_engine, bom_manager, inventory, bike_plan, horizon):
        wheel = bom_manager.create("WHEEL", lines=[BomLine("SPOKE", Decimal("36"))])
        bom_manager.release(wheel.id)
        inventory.set_item("SPOKE", lead_time_days=7)

        result = mrp_engine.calculate("BIKE", horizon)
        spoke = [o for o in result.planned_orders if o.product_id == "SPOKE"][0]
        assert spoke.quantity == Decimal("504")
        assert spoke.level == 2
        assert spoke.parent_product_id == "WHEEL"
        assert spoke.due_date == date(2024, 1, 12)
        assert spoke.start_date == date(2024, 1, 5)

    def test_shared_component_netted_once(self, mrp_engine, bom_manager, inventory, demand, horizon):
        frame = bom_manager.create("FRAME", lines=[BomLine("BOLT", Decimal("3"))])
        bom_manager.release(frame.id)
        cart = bom_manager.create(
            "CART", lines=[BomLine("BOLT", Decimal("4")), BomLine("FRAME", Decimal("1"))],
        )
        bom_manager.release(cart.id)
        inventory.set_item("CART", lead_time_days=2)
        inventory.set_item("FRAME", lead_time_days=2)
        inventory.set_item("BOLT", on_hand=Decimal("10"), lead_time_days=1)
        _sales_order(demand, product_id="CART", quantity="2")

        result = mrp_engine.calculate("CART", horizon)
        bolts = result.requirements_by_product()["BOLT"]
        # 8 bolts for the cart, then 6 for the frames; 10 on hand
        assert [r.gross_requirement for r in bolts] == [Decimal("8"), Decimal("6")]
        assert sum(r.net_requirement for r in bolts) == Decimal("4")


class TestRegenerationAndPegging:
    def test_regenerate_replaces_stored_orders(self, mrp_engine, bike_plan, demand, horizon):
        first = mrp_engine.regenerate(horizon)
        stored = len(demand.planned_orders(horizon))
        assert list(first) == ["BIKE"]
        assert stored == len(first["BIKE"].planned_orders) == 3

        mrp_engine.regenerate(horizon)
        assert len(demand.planned_orders(horizon)) == stored

    def test_regenerate_keeps_existing_when_asked(self, mrp_engine, bike_plan, demand, horizon):
        mrp_engine.regenerate(horizon)
        mrp_engine.regenerate(horizon, delete_existing=False)
        assert len(demand.planned_orders(horizon)) == 6

    def test_net_change_records_quantity(self, mrp_engine, bike_plan, demand):
        _sales_order(demand, quantity="5", source_id="SO-2")
        result = mrp_engine.net_change("BIKE", Decimal("5"), date(2024, 1, 1))
        assert result.parameters["quantity_change"] == "5"
        bike = [o for o in result.planned_orders if o.product_id == "BIKE"][0]
        assert bike.quantity == Decimal("12")

    def test_calculate_multiple(self, mrp_engine, bike_plan, horizon):
        results = mrp_engine.calculate_multiple(["BIKE", "WHEEL"], horizon)
        assert set(results) == {"BIKE", "WHEEL"}
        assert results["WHEEL"].planned_orders == ()

    def test_pegging(self, mrp_engine, bike_plan, demand):
        _sales_order(demand, product_id="WHEEL", quantity="4", source_id="SO-SPARES")

        records = mrp_engine.pegging("WHEEL", DUE)
        assert [(r.source_type, r.source_id, r.parent_product_id) for r in records] == [
            ("sales_order", "SO-SPARES", None),
            ("derived_from_sales_order", "SO-1", "BIKE"),
        ]
        assert records[1].is_derived
