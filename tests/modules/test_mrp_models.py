"""Tests for MRP result records and MrpConfig."""

from datetime import date
from decimal import Decimal

import pytest

from mfg_engines.lot_sizing import LotSizingStrategy
from mfg_modules.mrp import (
    MaterialRequirement,
    MrpConfig,
    MrpResult,
    OrderType,
    PeggingRecord,
    PlannedOrder,
)


def _order(product_id="BIKE", quantity="10", start=date(2024, 1, 10), order_type=OrderType.MANUFACTURING):
    return PlannedOrder(
        product_id=product_id,
        quantity=Decimal(quantity),
        start_date=start,
        due_date=date(2024, 1, 15),
        order_type=order_type,
        original_requirement=Decimal("7"),
    )


class TestMaterialRequirement:
    def test_derived_values(self):
        requirement = MaterialRequirement(
            product_id="BIKE",
            gross_requirement=Decimal("15"),
            net_requirement=Decimal("7"),
            required_date=date(2024, 1, 20),
            order_date=date(2024, 1, 15),
            on_hand=Decimal("10"),
            safety_stock=Decimal("2"),
        )
        assert requirement.has_shortage
        assert requirement.available == Decimal("8")
        assert requirement.lead_time_days == 5
        assert requirement.to_dict()["net_requirement"] == "7"

    def test_negative_requirement_rejected(self):
        with pytest.raises(ValueError):
            MaterialRequirement(
                "BIKE", Decimal("-1"), Decimal("0"),
                date(2024, 1, 2), date(2024, 1, 1), Decimal("0"),
            )


class TestPlannedOrder:
    def test_lot_sizing_excess(self):
        order = _order(quantity="10")
        assert order.lot_sizing_excess == Decimal("3")
        assert order.lead_time_days == 5
        assert order.is_manufacturing and not order.is_purchase

    def test_quantity_below_requirement_rejected(self):
        with pytest.raises(ValueError):
            _order(quantity="5")

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValueError):
            _order(quantity="0")

    def test_to_dict(self):
        data = _order().to_dict()
        assert data["order_type"] == "manufacturing"
        assert data["lot_sizing_strategy"] == "lot_for_lot"
        assert data["start_date"] == "2024-01-10"


class TestMrpResult:
    def test_summary(self):
        result = MrpResult(
            product_id="BIKE",
            planned_orders=(
                _order(),
                _order("WHEEL", "14", date(2024, 1, 8), OrderType.PURCHASE),
            ),
            warnings=("careful",),
        )
        assert result.is_successful
        assert result.has_warnings
        assert len(result.manufacturing_orders) == 1
        assert len(result.purchase_orders) == 1
        assert result.total_planned_quantity == Decimal("24")
        assert list(result.orders_by_date()) == [date(2024, 1, 8), date(2024, 1, 10)]

        summary = result.to_dict()["summary"]
        assert summary["planned_order_count"] == 2
        assert summary["purchase_order_count"] == 1

    def test_errors_mark_failure(self):
        result = MrpResult(product_id="BIKE", errors=("boom",))
        assert not result.is_successful
        assert result.has_errors


class TestPeggingRecord:
    def test_derived_flag(self):
        direct = PeggingRecord("BIKE", date(2024, 1, 20), "sales_order", "SO-1", Decimal("15"))
        derived = PeggingRecord(
            "WHEEL", date(2024, 1, 20), "derived_from_sales_order", "SO-1",
            Decimal("30"), parent_product_id="BIKE",
        )
        assert not direct.is_derived
        assert derived.is_derived


class TestMrpConfig:
    def test_defaults(self):
        config = MrpConfig.with_defaults()
        assert config.max_explosion_level == 10
        assert config.default_lead_time_days == 1
        assert config.default_lot_sizing is LotSizingStrategy.LOT_FOR_LOT

    def test_from_dict_coerces_values(self):
        config = MrpConfig.from_dict(
            {"default_lot_sizing": "economic_order_quantity", "eoq_ordering_cost": "200"},
        )
        assert config.default_lot_sizing is LotSizingStrategy.ECONOMIC_ORDER_QUANTITY
        assert config.eoq_ordering_cost == Decimal("200")

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ValueError, match="Unknown MRP config keys"):
            MrpConfig.from_dict({"explosion_depth": 3})

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_explosion_level": 0},
            {"default_lead_time_days": 0},
            {"eoq_holding_cost": Decimal("0")},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            MrpConfig(**kwargs)

    def test_lot_sizer_carries_costs(self):
        sizer = MrpConfig(eoq_ordering_cost=Decimal("120")).lot_sizer()
        assert sizer.eoq_ordering_cost == Decimal("120")
