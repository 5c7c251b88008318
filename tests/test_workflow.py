import pytest

from laundry_orders.exceptions import TransitionError
from laundry_orders.workflow import (
    STATUS_SEQUENCE, OrderStatus, Role, check_transition, is_terminal, next_status,
    status_index,
)


def test_sequence_has_eight_stages_in_order():
    assert [s.value for s in STATUS_SEQUENCE] == [
        "CREATED", "COLLECTED", "RECEIVED_AT_PLANT", "PROCESSING",
        "PROCESSED", "DISPATCHED", "READY", "DELIVERED",
    ]
    assert status_index("CREATED") == 0
    assert status_index(OrderStatus.DELIVERED) == 7


def test_admin_reaches_delivered_in_seven_steps():
    current = OrderStatus.CREATED
    steps = 0
    while next_status(current, Role.ADMIN) is not None:
        following = next_status(current, Role.ADMIN)
        assert status_index(following) == status_index(current) + 1
        current = following
        steps += 1
    assert current == OrderStatus.DELIVERED
    assert steps == 7
    assert is_terminal(current)


@pytest.mark.parametrize("current,expected", [
    ("CREATED", "COLLECTED"),
    ("COLLECTED", None),
    ("RECEIVED_AT_PLANT", None),
    ("PROCESSING", None),
    ("PROCESSED", None),
    ("DISPATCHED", "READY"),
    ("READY", "DELIVERED"),
    ("DELIVERED", None),
])
def test_supervisor_transitions(current, expected):
    result = next_status(current, Role.SUPERVISOR)
    assert (result.value if result else None) == expected


@pytest.mark.parametrize("current,expected", [
    ("CREATED", None),
    ("COLLECTED", "RECEIVED_AT_PLANT"),
    ("RECEIVED_AT_PLANT", "PROCESSING"),
    ("PROCESSING", "PROCESSED"),
    ("PROCESSED", "DISPATCHED"),
    ("DISPATCHED", None),
    ("READY", None),
    ("DELIVERED", None),
])
def test_plant_operator_transitions(current, expected):
    result = next_status(current, "PLANT_OPERATOR")
    assert (result.value if result else None) == expected


def test_supervisor_and_operator_partition_the_route():
    supervisor_moves = {s for s in STATUS_SEQUENCE if next_status(s, Role.SUPERVISOR)}
    operator_moves = {s for s in STATUS_SEQUENCE if next_status(s, Role.PLANT_OPERATOR)}
    assert supervisor_moves.isdisjoint(operator_moves)
    assert supervisor_moves | operator_moves == set(STATUS_SEQUENCE) - {OrderStatus.DELIVERED}


def test_unknown_role_has_no_transition():
    assert next_status("CREATED", "DRIVER") is None


def test_check_transition_accepts_the_next_step():
    assert check_transition("CREATED", "COLLECTED", Role.SUPERVISOR) == OrderStatus.COLLECTED


@pytest.mark.parametrize("current,target", [
    ("CREATED", "RECEIVED_AT_PLANT"),  # skip
    ("READY", "DISPATCHED"),           # regression
    ("READY", "READY"),                # no-op
])
def test_check_transition_rejects_anything_else(current, target):
    with pytest.raises(TransitionError) as exc_info:
        check_transition(current, target, Role.SUPERVISOR)
    assert exc_info.value.current_status == current
    assert exc_info.value.allowed_status == next_status(current, Role.SUPERVISOR).value


def test_check_transition_reports_no_allowed_status():
    with pytest.raises(TransitionError) as exc_info:
        check_transition("DELIVERED", "READY", Role.ADMIN)
    assert exc_info.value.allowed_status is None
    assert "No valid transition" in exc_info.value.message


def test_check_transition_rejects_unknown_status():
    with pytest.raises(TransitionError) as exc_info:
        check_transition("CREATED", "LOST", Role.ADMIN)
    assert exc_info.value.allowed_status == "COLLECTED"
