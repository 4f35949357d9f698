"""
Pytest fixtures for the manufacturing planning test suite.

Provides:
- A deterministic clock fixed on Monday 2024-01-01
- In-memory repositories and fully wired managers and services
- Captured structured log records

Everything here runs in memory; the SQL repositories are exercised in
tests/db with an in-memory SQLite database.
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from mfg_kernel.domain.clock import DeterministicClock
from mfg_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from mfg_modules.bom import BomLine, BomManager, InMemoryBomRepository
from mfg_modules.capacity import CapacityConfig
from mfg_modules.mrp import MrpConfig
from mfg_modules.routing import InMemoryRoutingRepository, Operation, RoutingManager
from mfg_modules.work_center import InMemoryWorkCenterRepository, WorkCenterManager
from mfg_modules.work_order import InMemoryWorkOrderRepository, WorkOrderManager
from mfg_services import (
    CapacityPlanner,
    CapacityResolver,
    InMemoryDemandProvider,
    InMemoryInventoryProvider,
    MrpEngine,
)

# Monday
TODAY = date(2024, 1, 1)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture mfg_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, forecaster):
            forecaster.forecast(...)
            logs = captured_logs()
            assert any(r["message"] == "forecast_fallback_used" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("mfg_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock.on(TODAY)


# =============================================================================
# Managers
# =============================================================================


@pytest.fixture
def bom_manager(clock):
    return BomManager(InMemoryBomRepository(), clock)


@pytest.fixture
def routing_manager(clock):
    return RoutingManager(InMemoryRoutingRepository(), clock)


@pytest.fixture
def work_center_manager():
    return WorkCenterManager(InMemoryWorkCenterRepository())


@pytest.fixture
def work_order_manager(bom_manager, routing_manager, clock):
    return WorkOrderManager(InMemoryWorkOrderRepository(), bom_manager, routing_manager, clock)


# =============================================================================
# Providers and services
# =============================================================================


@pytest.fixture
def inventory():
    return InMemoryInventoryProvider()


@pytest.fixture
def demand():
    return InMemoryDemandProvider()


@pytest.fixture
def mrp_engine(bom_manager, inventory, demand, clock):
    return MrpEngine(bom_manager, inventory, demand, config=MrpConfig(), clock=clock)


@pytest.fixture
def capacity_planner(work_center_manager, work_order_manager, routing_manager, demand, clock):
    return CapacityPlanner(
        work_center_manager,
        work_order_manager,
        routing_manager,
        demand=demand,
        config=CapacityConfig(),
        clock=clock,
    )


@pytest.fixture
def capacity_resolver(capacity_planner, work_center_manager, work_order_manager, clock):
    return CapacityResolver(
        capacity_planner,
        work_center_manager,
        work_order_manager,
        config=CapacityConfig(),
        clock=clock,
    )


# =============================================================================
# Master data
# =============================================================================


@pytest.fixture
def released_bike(bom_manager):
    """BIKE = 2 x WHEEL + 1 x FRAME, released today; components are purchased."""
    bom = bom_manager.create(
        "BIKE",
        lines=[
            BomLine("WHEEL", Decimal("2")),
            BomLine("FRAME", Decimal("1")),
        ],
    )
    return bom_manager.release(bom.id)


@pytest.fixture
def cnc(work_center_manager):
    """8 h/day, Monday to Friday, 50/h machine and 20/h labor."""
    return work_center_manager.create(
        "CNC",
        "CNC mill",
        cost_per_hour=Decimal("50"),
        labor_cost_per_hour=Decimal("20"),
    )


@pytest.fixture
def cnc_alternate(work_center_manager, cnc):
    alternate = work_center_manager.create(
        "CNC2",
        "Backup CNC mill",
        cost_per_hour=Decimal("60"),
        labor_cost_per_hour=Decimal("20"),
    )
    work_center_manager.set_alternate(cnc.id, alternate.id)
    return alternate


@pytest.fixture
def part_routing(routing_manager, cnc):
    """PART: one operation at CNC, one hour per unit, no setup."""
    routing = routing_manager.create(
        "PART",
        operations=[
            Operation(
                operation_number=10,
                work_center_id=cnc.id,
                description="Mill",
                run_time_minutes=Decimal("60"),
            ),
        ],
    )
    return routing_manager.release(routing.id)
