"""
Order workflow rules for the laundry orders service.

An order moves through eight physical stages, from drop-off at a pressing to
delivery back to the client. Each role may only move an order across the part
of the route it is physically responsible for:

    pressing  CREATED -> COLLECTED              (SUPERVISOR)
    plant     COLLECTED -> ... -> DISPATCHED    (PLANT_OPERATOR)
    pressing  DISPATCHED -> READY -> DELIVERED  (SUPERVISOR)

ADMIN may advance any order by exactly one stage. Nothing leaves DELIVERED.

Everything here is pure: no database access, no request state.
"""
from enum import Enum
from typing import Dict, Optional, Tuple

from .exceptions import TransitionError


class OrderStatus(str, Enum):
    """Order stages, declared in canonical order."""
    CREATED = "CREATED"
    COLLECTED = "COLLECTED"
    RECEIVED_AT_PLANT = "RECEIVED_AT_PLANT"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    DISPATCHED = "DISPATCHED"
    READY = "READY"
    DELIVERED = "DELIVERED"


class Role(str, Enum):
    """Staff roles carried in the access token."""
    ADMIN = "ADMIN"
    SUPERVISOR = "SUPERVISOR"
    PLANT_OPERATOR = "PLANT_OPERATOR"


STATUS_SEQUENCE: Tuple[OrderStatus, ...] = tuple(OrderStatus)

TERMINAL_STATUS = OrderStatus.DELIVERED

# The one stage that carries side-band data (the receiving plant)
PLANT_ASSIGNMENT_STATUS = OrderStatus.RECEIVED_AT_PLANT


def _admin_transitions() -> Dict[OrderStatus, OrderStatus]:
    return {
        current: following
        for current, following in zip(STATUS_SEQUENCE, STATUS_SEQUENCE[1:])
    }


TRANSITIONS: Dict[Role, Dict[OrderStatus, OrderStatus]] = {
    Role.ADMIN: _admin_transitions(),
    Role.SUPERVISOR: {
        OrderStatus.CREATED: OrderStatus.COLLECTED,
        OrderStatus.DISPATCHED: OrderStatus.READY,
        OrderStatus.READY: OrderStatus.DELIVERED,
    },
    Role.PLANT_OPERATOR: {
        OrderStatus.COLLECTED: OrderStatus.RECEIVED_AT_PLANT,
        OrderStatus.RECEIVED_AT_PLANT: OrderStatus.PROCESSING,
        OrderStatus.PROCESSING: OrderStatus.PROCESSED,
        OrderStatus.PROCESSED: OrderStatus.DISPATCHED,
    },
}


def status_index(status) -> int:
    """Position of a status in the canonical sequence (0 to 7)."""
    return STATUS_SEQUENCE.index(OrderStatus(status))


def is_terminal(status) -> bool:
    return OrderStatus(status) == TERMINAL_STATUS


def next_status(current, role) -> Optional[OrderStatus]:
    """
    Return the only status `role` may move an order at `current` to.

    Args:
        current: Current order status (enum member or its string value)
        role: Acting role (enum member or its string value)

    Returns:
        The permitted next status, or None when the role cannot act on the order
    """
    try:
        role = Role(role)
    except ValueError:
        return None
    return TRANSITIONS[role].get(OrderStatus(current))


def check_transition(current, target, role) -> OrderStatus:
    """
    Validate that `role` may move an order from `current` to `target`.

    Skips, regressions and same-status requests are all rejected.

    Returns:
        The target status as an enum member

    Raises:
        TransitionError: if `target` is not the permitted next status
    """
    current = OrderStatus(current)
    allowed = next_status(current, role)
    try:
        target = OrderStatus(target)
    except ValueError:
        raise TransitionError(current.value, allowed, f"Unknown status: {target}")
    if allowed is None or target != allowed:
        raise TransitionError(current.value, allowed)
    return target
