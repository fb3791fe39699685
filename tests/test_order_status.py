import pytest

from services.order_service.models import OrderStatus
from shared.errors import ValidationError

ALL_STATUSES = ["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"]


@pytest.mark.parametrize("raw", ALL_STATUSES)
def test_parse_accepts_every_status(raw):
    assert OrderStatus.parse(raw).value == raw


def test_parse_is_lenient_about_case_and_spaces():
    assert OrderStatus.parse(" Shipped ") is OrderStatus.SHIPPED


@pytest.mark.parametrize("raw", ["refunded", "", None, 3])
def test_parse_rejects_unknown_values(raw):
    with pytest.raises(ValidationError) as exc_info:
        OrderStatus.parse(raw)
    assert exc_info.value.errors[0]["field"] == "status"


def test_forward_path():
    path = [
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
    ]
    for current, target in zip(path, path[1:]):
        assert current.can_transition_to(target)
        assert not target.can_transition_to(current)


def test_skipping_steps_is_not_a_transition():
    assert not OrderStatus.PENDING.can_transition_to(OrderStatus.SHIPPED)


@pytest.mark.parametrize("status", ["pending", "confirmed", "processing", "shipped"])
def test_open_orders_can_be_cancelled(status):
    assert OrderStatus(status).can_transition_to(OrderStatus.CANCELLED)


def test_terminal_states():
    assert not OrderStatus.DELIVERED.can_transition_to(OrderStatus.CANCELLED)
    assert not OrderStatus.CANCELLED.can_transition_to(OrderStatus.PENDING)
    assert OrderStatus.CANCELLED.can_transition_to(OrderStatus.CANCELLED)
