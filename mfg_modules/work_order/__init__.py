"""
Work Order module.

Execution of production orders through a declared state machine, with
material issue, operation reporting and progress analytics.
"""

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
from mfg_modules.work_order.repository import (
    InMemoryWorkOrderRepository,
    SqlWorkOrderRepository,
    WorkOrderRepository,
)
from mfg_modules.work_order.service import WorkOrderManager
from mfg_modules.work_order.workflows import WORK_ORDER_WORKFLOW, allowed_actions, find_transition

__all__ = [
    "InMemoryWorkOrderRepository",
    "LineType",
    "MaterialShortage",
    "OperationCompletion",
    "OperationProgress",
    "SqlWorkOrderRepository",
    "WORK_ORDER_WORKFLOW",
    "WorkOrder",
    "WorkOrderLine",
    "WorkOrderManager",
    "WorkOrderProgress",
    "WorkOrderRepository",
    "WorkOrderStatus",
    "WorkOrderVariance",
    "allowed_actions",
    "find_transition",
]
