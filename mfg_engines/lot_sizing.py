"""
mfg_engines.lot_sizing -- Convert a net requirement into an order quantity.

Responsibility:
    Implements the closed set of lot-sizing policies used by MRP:
    lot-for-lot, fixed order quantity, economic order quantity, period
    order quantity and least unit cost.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Lot-for-lot returns exactly the net requirement.
    - Every other policy returns a quantity >= the net requirement.
    - Decimal arithmetic only; square roots use ``Decimal.sqrt()``.

Failure modes:
    - ValueError for a negative net requirement, a non-positive EOQ holding
      cost, or a period count below 1.

Usage:
    sizer = LotSizer()
    qty = sizer.size(
        net_requirement=Decimal("50"),
        strategy=LotSizingStrategy.ECONOMIC_ORDER_QUANTITY,
        parameters=LotSizingParameters(
            annual_demand=Decimal("1200"),
            ordering_cost=Decimal("100"),
            holding_cost=Decimal("10"),
        ),
    )
    # qty ~= 154.919
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from mfg_engines.tracer import traced_engine
from mfg_kernel.logging_config import get_logger

logger = get_logger("engines.lot_sizing")


class LotSizingStrategy(str, Enum):
    """Lot-sizing policy selected per MRP run."""

    LOT_FOR_LOT = "lot_for_lot"
    FIXED_ORDER_QUANTITY = "fixed_order_quantity"
    ECONOMIC_ORDER_QUANTITY = "economic_order_quantity"
    PERIOD_ORDER_QUANTITY = "period_order_quantity"
    LEAST_UNIT_COST = "least_unit_cost"


@dataclass(frozen=True)
class LotSizingParameters:
    """
    Optional per-run policy inputs.  ``None`` means "use the sizer default".

    ``annual_demand`` defaults to net requirement x annual multiplier;
    ``fixed_quantity`` defaults to the net requirement itself.
    """

    fixed_quantity: Decimal | None = None
    annual_demand: Decimal | None = None
    ordering_cost: Decimal | None = None
    holding_cost: Decimal | None = None
    holding_cost_rate: Decimal | None = None
    periods: int | None = None

    def to_dict(self) -> dict:
        return {k: v for k, v in self.__dict__.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict) -> LotSizingParameters:
        def dec(key: str) -> Decimal | None:
            value = data.get(key)
            return None if value is None else Decimal(str(value))

        periods = data.get("periods")
        return cls(
            fixed_quantity=dec("fixed_quantity"),
            annual_demand=dec("annual_demand"),
            ordering_cost=dec("ordering_cost"),
            holding_cost=dec("holding_cost"),
            holding_cost_rate=dec("holding_cost_rate"),
            periods=None if periods is None else int(periods),
        )


class LotSizer:
    """
    Pure lot-sizing calculator.

    Contract:
        ``size(net_requirement, strategy, parameters)`` returns the order
        quantity.  Defaults for missing parameters are fixed at construction
        (normally from ``MrpConfig``).

    Guarantees:
        - EOQ = sqrt(2 x annual_demand x ordering_cost / holding_cost),
          order max(net, EOQ).
        - LUC uses a holding-cost *rate*; a non-positive rate degrades to
          lot-for-lot.
        - POQ = net x periods.
    """

    def __init__(
        self,
        eoq_ordering_cost: Decimal = Decimal("100"),
        eoq_holding_cost: Decimal = Decimal("10"),
        luc_ordering_cost: Decimal = Decimal("50"),
        luc_holding_cost_rate: Decimal = Decimal("0.25"),
        annual_demand_multiplier: Decimal = Decimal("12"),
    ):
        self.eoq_ordering_cost = eoq_ordering_cost
        self.eoq_holding_cost = eoq_holding_cost
        self.luc_ordering_cost = luc_ordering_cost
        self.luc_holding_cost_rate = luc_holding_cost_rate
        self.annual_demand_multiplier = annual_demand_multiplier

    @traced_engine("lot_sizing", "1.0", fingerprint_fields=("net_requirement", "strategy", "parameters"))
    def size(
        self,
        net_requirement: Decimal,
        strategy: LotSizingStrategy = LotSizingStrategy.LOT_FOR_LOT,
        parameters: LotSizingParameters | None = None,
    ) -> Decimal:
        if net_requirement < 0:
            raise ValueError(f"Net requirement cannot be negative: {net_requirement}")
        params = parameters or LotSizingParameters()
        strategy = LotSizingStrategy(strategy)

        if strategy is LotSizingStrategy.LOT_FOR_LOT:
            return net_requirement

        if strategy is LotSizingStrategy.FIXED_ORDER_QUANTITY:
            fixed = params.fixed_quantity if params.fixed_quantity is not None else net_requirement
            return max(net_requirement, fixed)

        if strategy is LotSizingStrategy.ECONOMIC_ORDER_QUANTITY:
            annual_demand = (
                params.annual_demand
                if params.annual_demand is not None
                else net_requirement * self.annual_demand_multiplier
            )
            ordering_cost = _or(params.ordering_cost, self.eoq_ordering_cost)
            holding_cost = _or(params.holding_cost, self.eoq_holding_cost)
            return max(
                net_requirement,
                economic_order_quantity(annual_demand, ordering_cost, holding_cost),
            )

        if strategy is LotSizingStrategy.PERIOD_ORDER_QUANTITY:
            periods = params.periods if params.periods is not None else 1
            if periods < 1:
                raise ValueError(f"Period order quantity needs periods >= 1, got {periods}")
            return net_requirement * periods

        # LEAST_UNIT_COST
        rate = _or(params.holding_cost_rate, self.luc_holding_cost_rate)
        if rate <= 0:
            logger.debug(
                "luc_non_positive_rate",
                extra={"holding_cost_rate": str(rate)},
            )
            return net_requirement
        ordering_cost = _or(params.ordering_cost, self.luc_ordering_cost)
        annual_demand = net_requirement * self.annual_demand_multiplier
        luc = (Decimal("2") * annual_demand * ordering_cost / rate).sqrt()
        return max(net_requirement, luc)


def economic_order_quantity(
    annual_demand: Decimal, ordering_cost: Decimal, holding_cost: Decimal,
) -> Decimal:
    """sqrt(2DS/H)."""
    if holding_cost <= 0:
        raise ValueError(f"Holding cost must be positive, got {holding_cost}")
    if annual_demand < 0 or ordering_cost < 0:
        raise ValueError("Annual demand and ordering cost cannot be negative")
    return (Decimal("2") * annual_demand * ordering_cost / holding_cost).sqrt()


def _or(value: Decimal | None, default: Decimal) -> Decimal:
    return default if value is None else value
