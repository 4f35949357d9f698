"""
Work Order Workflows.

State machine for work order execution.  ``WORK_ORDER_WORKFLOW`` is the
single source of legal transitions; ``WorkOrderManager`` consults it
through ``find_transition`` before every status change.
"""

from dataclasses import dataclass

from mfg_kernel.logging_config import get_logger
from mfg_modules.work_order.models import WorkOrderStatus

logger = get_logger("modules.work_order.workflows")


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: WorkOrderStatus
    to_state: WorkOrderStatus
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: WorkOrderStatus
    states: tuple[WorkOrderStatus, ...]
    transitions: tuple[Transition, ...]


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

ORDERED_QUANTITY_REACHED = Guard(
    name="ordered_quantity_reached",
    description="Cumulative completed quantity has reached the ordered quantity",
)

PREVIOUS_STATUS_RECORDED = Guard(
    name="previous_status_recorded",
    description="Resume returns to the status held before the hold",
)

CANCELLABLE = Guard(
    name="cancellable",
    description="Status satisfies WorkOrderStatus.can_cancel",
)


# -----------------------------------------------------------------------------
# Work Order Workflow
# -----------------------------------------------------------------------------

_S = WorkOrderStatus

WORK_ORDER_WORKFLOW = Workflow(
    name="mfg_work_order",
    description="Manufacturing work order lifecycle",
    initial_state=_S.PLANNED,
    states=tuple(_S),
    transitions=(
        Transition(_S.PLANNED, _S.RELEASED, action="release"),
        Transition(_S.RELEASED, _S.IN_PROGRESS, action="start"),
        Transition(_S.IN_PROGRESS, _S.COMPLETED, action="complete", guard=ORDERED_QUANTITY_REACHED),
        Transition(_S.COMPLETED, _S.CLOSED, action="close"),
        Transition(_S.IN_PROGRESS, _S.CLOSED, action="close"),
        Transition(_S.RELEASED, _S.ON_HOLD, action="hold"),
        Transition(_S.IN_PROGRESS, _S.ON_HOLD, action="hold"),
        Transition(_S.ON_HOLD, _S.RELEASED, action="resume", guard=PREVIOUS_STATUS_RECORDED),
        Transition(_S.ON_HOLD, _S.IN_PROGRESS, action="resume", guard=PREVIOUS_STATUS_RECORDED),
        Transition(_S.PLANNED, _S.CANCELLED, action="cancel", guard=CANCELLABLE),
        Transition(_S.RELEASED, _S.CANCELLED, action="cancel", guard=CANCELLABLE),
        Transition(_S.ON_HOLD, _S.CANCELLED, action="cancel", guard=CANCELLABLE),
    ),
)

logger.info(
    "work_order_workflow_registered",
    extra={
        "workflow_name": WORK_ORDER_WORKFLOW.name,
        "state_count": len(WORK_ORDER_WORKFLOW.states),
        "transition_count": len(WORK_ORDER_WORKFLOW.transitions),
        "initial_state": WORK_ORDER_WORKFLOW.initial_state.value,
    },
)


def find_transition(
    current: WorkOrderStatus,
    action: str,
    target: WorkOrderStatus | None = None,
) -> Transition | None:
    """The declared transition for ``action`` out of ``current`` (and into ``target``)."""
    for transition in WORK_ORDER_WORKFLOW.transitions:
        if transition.from_state != current or transition.action != action:
            continue
        if target is not None and transition.to_state != target:
            continue
        return transition
    return None


def allowed_actions(current: WorkOrderStatus) -> tuple[str, ...]:
    seen: list[str] = []
    for transition in WORK_ORDER_WORKFLOW.transitions:
        if transition.from_state == current and transition.action not in seen:
            seen.append(transition.action)
    return tuple(seen)
