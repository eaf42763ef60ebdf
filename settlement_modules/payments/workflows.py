"""
Payment Request Workflow.

State machine for the payment request lifecycle.  ``deleted`` is a terminal
pseudo-state: the row is removed, so no stored request ever carries it.
"""

from dataclasses import dataclass

from settlement_kernel.logging_config import get_logger

logger = get_logger("modules.payments.workflows")


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    writes_through: bool = False  # updates the source record in the same transaction


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]


def find_transition(workflow: Workflow, from_state: str, action: str) -> Transition | None:
    """Return the transition for ``action`` out of ``from_state``, if any."""
    for transition in workflow.transitions:
        if transition.from_state == from_state and transition.action == action:
            return transition
    return None


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

PAYMENT_DATE_SET = Guard(
    name="payment_date_set",
    description="A calendar payment date is supplied",
)

SOURCE_FIELD_WRITABLE = Guard(
    name="source_field_writable",
    description="The matching source payment-date field accepts the write",
)

logger.info(
    "payment_workflow_guards_defined",
    extra={
        "guards": [
            PAYMENT_DATE_SET.name,
            SOURCE_FIELD_WRITABLE.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Payment Request Workflow
# -----------------------------------------------------------------------------

PAYMENT_REQUEST_WORKFLOW = Workflow(
    name="payment_request",
    description="Payment request lifecycle",
    initial_state="requested",
    states=(
        "requested",
        "completed",
        "deleted",
    ),
    transitions=(
        Transition("requested", "completed", action="complete", guard=PAYMENT_DATE_SET, writes_through=True),
        Transition("completed", "requested", action="revert", guard=SOURCE_FIELD_WRITABLE, writes_through=True),
        Transition("requested", "requested", action="update_memo"),
        Transition("requested", "deleted", action="delete"),
    ),
)

logger.info(
    "payment_request_workflow_registered",
    extra={
        "workflow_name": PAYMENT_REQUEST_WORKFLOW.name,
        "state_count": len(PAYMENT_REQUEST_WORKFLOW.states),
        "transition_count": len(PAYMENT_REQUEST_WORKFLOW.transitions),
        "initial_state": PAYMENT_REQUEST_WORKFLOW.initial_state,
    },
)
