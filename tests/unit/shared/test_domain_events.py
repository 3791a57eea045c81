"""Unit tests for domain events: registration, payloads, aggregate collection."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from modules.orders.constants import OrderStatus
from modules.orders.events import CartItemAdded, OrderConfirmed, OrderStatusChanged
from modules.orders.models import Order
from shared.domain.events import DomainEvent

pytestmark = pytest.mark.unit


def test_order_registers_and_clears_domain_events():
    order = Order(customer_id=uuid4(), status=OrderStatus.PENDING)

    assert order.domain_events == []

    event = OrderStatusChanged(
        aggregate_id=order.id, old_status="PENDING", new_status="PROCESSING"
    )
    order.add_domain_event(event)

    assert order.domain_events == [event]
    assert event.event_name == "OrderStatusChanged"

    order.clear_domain_events()
    assert order.domain_events == []


def test_subclasses_are_registered_by_name():
    assert DomainEvent.registry["OrderConfirmed"] is OrderConfirmed
    assert DomainEvent.registry["CartItemAdded"] is CartItemAdded


def test_payload_is_json_safe():
    event = OrderConfirmed(
        aggregate_id=uuid4(), customer_id=uuid4(), total_amount=Decimal("12.50")
    )

    payload = event.to_payload()

    assert payload["total_amount"] == "12.50"
    assert payload["customer_id"] == str(event.customer_id)
    assert payload["event_name"] == "OrderConfirmed"
    assert isinstance(payload["occurred_on"], str)


def test_from_payload_restores_types():
    event = OrderConfirmed(
        aggregate_id=uuid4(), customer_id=uuid4(), total_amount=Decimal("12.50")
    )

    restored = DomainEvent.from_payload("OrderConfirmed", event.to_payload())

    assert restored == event
    assert isinstance(restored.aggregate_id, UUID)
    assert isinstance(restored.occurred_on, datetime)
    assert isinstance(restored.total_amount, Decimal)


def test_from_payload_unknown_event():
    with pytest.raises(LookupError, match="Unknown domain event"):
        DomainEvent.from_payload("OrderTeleported", {})


def test_events_are_immutable():
    event = CartItemAdded(
        aggregate_id=uuid4(), customer_id=uuid4(), product_id=uuid4(), quantity=1
    )
    with pytest.raises(AttributeError):
        event.quantity = 2
