"""
MRP Domain Models (``mfg_modules.mrp.models``).

Responsibility
--------------
Result records of a material requirements planning run: dated material
requirements, lot-sized planned orders, the run envelope (``MrpResult``)
and pegging records tracing demand to its sources.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Produced by
``mfg_services.mrp_engine.MrpEngine``; planned orders are consumed by the
capacity planner and the demand provider's persistence hooks.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Requirements are non-negative; the net requirement may exceed the gross
  one when on-hand stock is below safety stock.
* A planned order's quantity is never below its original net requirement.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from mfg_engines.lot_sizing import LotSizingStrategy

ZERO = Decimal("0")


class OrderType(str, Enum):
    """Supply type, decided by whether the product has an effective BOM."""

    MANUFACTURING = "manufacturing"
    PURCHASE = "purchase"


class DemandSourceType(str, Enum):
    SALES_ORDER = "sales_order"
    FORECAST = "forecast"
    WORK_ORDER = "work_order"
    PLANNED_ORDER = "planned_order"
    MANUAL = "manual"


@dataclass(frozen=True)
class DemandSource:
    """One demand line as reported by the demand provider."""

    source_type: DemandSourceType
    source_id: str
    quantity: Decimal
    due_date: date


@dataclass(frozen=True)
class MaterialRequirement:
    """Snapshot of one netting step for one product, date and BOM level."""

    product_id: str
    gross_requirement: Decimal
    net_requirement: Decimal
    required_date: date
    order_date: date
    on_hand: Decimal
    scheduled_receipts: Decimal = ZERO
    safety_stock: Decimal = ZERO
    level: int = 0
    parent_product_id: str | None = None

    def __post_init__(self):
        if self.gross_requirement < 0 or self.net_requirement < 0:
            raise ValueError("Requirements cannot be negative")
        if self.level < 0:
            raise ValueError("BOM level cannot be negative")

    @property
    def has_shortage(self) -> bool:
        return self.net_requirement > 0

    @property
    def available(self) -> Decimal:
        return self.on_hand + self.scheduled_receipts - self.safety_stock

    @property
    def lead_time_days(self) -> int:
        return (self.required_date - self.order_date).days

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "gross_requirement": str(self.gross_requirement),
            "net_requirement": str(self.net_requirement),
            "required_date": self.required_date.isoformat(),
            "order_date": self.order_date.isoformat(),
            "on_hand": str(self.on_hand),
            "scheduled_receipts": str(self.scheduled_receipts),
            "safety_stock": str(self.safety_stock),
            "level": self.level,
            "parent_product_id": self.parent_product_id,
        }


@dataclass(frozen=True)
class PlannedOrder:
    """A recommended supply order produced by MRP."""

    product_id: str
    quantity: Decimal
    start_date: date
    due_date: date
    order_type: OrderType
    level: int = 0
    lot_sizing_strategy: LotSizingStrategy = LotSizingStrategy.LOT_FOR_LOT
    original_requirement: Decimal = ZERO
    parent_product_id: str | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"Planned order quantity must be positive, got {self.quantity}")
        if self.quantity < self.original_requirement:
            raise ValueError("Planned order quantity is below its net requirement")

    @property
    def is_manufacturing(self) -> bool:
        return self.order_type == OrderType.MANUFACTURING

    @property
    def is_purchase(self) -> bool:
        return self.order_type == OrderType.PURCHASE

    @property
    def lot_sizing_excess(self) -> Decimal:
        return self.quantity - self.original_requirement

    @property
    def lead_time_days(self) -> int:
        return (self.due_date - self.start_date).days

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "product_id": self.product_id,
            "quantity": str(self.quantity),
            "start_date": self.start_date.isoformat(),
            "due_date": self.due_date.isoformat(),
            "order_type": self.order_type.value,
            "level": self.level,
            "lot_sizing_strategy": self.lot_sizing_strategy.value,
            "original_requirement": str(self.original_requirement),
            "parent_product_id": self.parent_product_id,
        }


@dataclass(frozen=True)
class MrpResult:
    """
    Outcome of one MRP calculation.

    A result with ``errors`` still carries every requirement and order
    computed before the failure.
    """

    product_id: str
    planned_orders: tuple[PlannedOrder, ...] = ()
    material_requirements: tuple[MaterialRequirement, ...] = ()
    warnings: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()
    calculated_at: datetime | None = None
    parameters: dict[str, Any] = field(default_factory=dict)

    @property
    def is_successful(self) -> bool:
        return not self.errors

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def manufacturing_orders(self) -> tuple[PlannedOrder, ...]:
        return tuple(o for o in self.planned_orders if o.is_manufacturing)

    @property
    def purchase_orders(self) -> tuple[PlannedOrder, ...]:
        return tuple(o for o in self.planned_orders if o.is_purchase)

    @property
    def total_planned_quantity(self) -> Decimal:
        return sum((o.quantity for o in self.planned_orders), ZERO)

    @property
    def total_net_requirement(self) -> Decimal:
        return sum((r.net_requirement for r in self.material_requirements), ZERO)

    def requirements_by_product(self) -> dict[str, list[MaterialRequirement]]:
        grouped: dict[str, list[MaterialRequirement]] = {}
        for requirement in self.material_requirements:
            grouped.setdefault(requirement.product_id, []).append(requirement)
        return grouped

    def orders_by_date(self) -> dict[date, list[PlannedOrder]]:
        """Planned orders grouped by start date, ascending."""
        grouped: dict[date, list[PlannedOrder]] = {}
        for order in sorted(self.planned_orders, key=lambda o: o.start_date):
            grouped.setdefault(order.start_date, []).append(order)
        return grouped

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "planned_orders": [o.to_dict() for o in self.planned_orders],
            "material_requirements": [r.to_dict() for r in self.material_requirements],
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "calculated_at": self.calculated_at.isoformat() if self.calculated_at else None,
            "parameters": self.parameters,
            "summary": {
                "is_successful": self.is_successful,
                "planned_order_count": len(self.planned_orders),
                "manufacturing_order_count": len(self.manufacturing_orders),
                "purchase_order_count": len(self.purchase_orders),
                "total_planned_quantity": str(self.total_planned_quantity),
                "total_net_requirement": str(self.total_net_requirement),
            },
        }


@dataclass(frozen=True)
class PeggingRecord:
    """
    Links demand for a product on a date to the source that created it.

    Derived records (demand of a parent assembly) carry
    ``source_type = "derived_from_<type>"`` and the parent product id.
    """

    product_id: str
    demand_date: date
    source_type: str
    source_id: str
    quantity: Decimal
    parent_product_id: str | None = None

    @property
    def is_derived(self) -> bool:
        return self.parent_product_id is not None
