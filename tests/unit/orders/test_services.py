"""Unit tests for OrderService.

Covers:
- Cart accumulation without stock reservation.
- Confirmation with reservation and history recording.
- Employee orders opened directly in a fulfilment status.
- Line edits on carts and on confirmed orders (reserve / release the
  difference).
- Order deletion releasing exactly what the lines hold.
- Queries and total recomputation.
- Ownership checks on line operations.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from django.db import IntegrityError

from modules.core.exceptions import RecordStoreError
from modules.orders.constants import OrderStatus
from modules.orders.dtos import AddOrderLineDTO, AddToCartDTO
from modules.orders.exceptions import (
    EmptyCart,
    InsufficientStock,
    InvalidStateTransition,
    OrderLineNotFound,
    OrderNotFound,
    ProductNotFound,
)
from modules.core.models import OutboxEvent
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.products.exceptions import ReservationInvariantViolation

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def add(order_service, customer_id):
    """``add(product, quantity)`` puts units in the default customer's cart."""

    def _add(product, quantity, customer=None):
        return order_service.add_to_cart(
            AddToCartDTO(
                customer_id=customer or customer_id,
                product_id=product.id,
                quantity=quantity,
            )
        )

    return _add


@pytest.fixture()
def confirmed_order(order_service, add, customer_id, product):
    add(product, 2)
    return order_service.confirm(customer_id)


def _line(order, product):
    return order.items.get(product=product)


# ===========================================================================
# Cart
# ===========================================================================


class TestGetOrCreateCart:
    def test_creates_empty_cart(self, order_service, customer_id):
        cart = order_service.get_or_create_cart(customer_id)
        assert cart.status == OrderStatus.CART
        assert cart.customer_id == customer_id
        assert cart.total_amount == Decimal("0.00")

    def test_returns_existing_cart(self, order_service, customer_id):
        first = order_service.get_or_create_cart(customer_id)
        assert order_service.get_or_create_cart(customer_id).id == first.id
        assert Order.objects.filter(customer_id=customer_id).count() == 1


class TestAddToCart:
    def test_creates_cart_and_line_without_touching_stock(self, add, product, stock):
        cart = add(product, 3)

        assert cart.status == OrderStatus.CART
        line = _line(cart, product)
        assert line.quantity == 3
        assert line.reserved_quantity == 0
        assert line.subtotal == Decimal("30.00")
        assert cart.total_amount == Decimal("30.00")
        assert stock(product) == 5

    def test_accumulates_on_same_line(self, add, product):
        add(product, 2)
        cart = add(product, 1)
        assert cart.items.count() == 1
        assert _line(cart, product).quantity == 3
        assert cart.total_amount == Decimal("30.00")

    def test_total_sums_lines(self, add, make_product):
        pen = make_product(name="Pen", price="1.25", stock=10)
        pad = make_product(name="Pad", price="3.00", stock=10)
        add(pen, 4)
        cart = add(pad, 2)
        assert cart.total_amount == Decimal("11.00")

    def test_insufficient_stock_counts_existing_line(self, add, product):
        add(product, 4)
        with pytest.raises(InsufficientStock) as exc_info:
            add(product, 2)
        assert exc_info.value.requested == 6
        assert exc_info.value.available == 5
        assert exc_info.value.product_id == product.id

    def test_failed_add_leaves_cart_untouched(self, order_service, add, product, customer_id):
        add(product, 4)
        with pytest.raises(InsufficientStock):
            add(product, 2)
        cart = order_service.get_cart(customer_id)
        assert _line(cart, product).quantity == 4

    def test_unknown_product(self, order_service, customer_id):
        with pytest.raises(ProductNotFound):
            order_service.add_to_cart(
                AddToCartDTO(customer_id=customer_id, product_id=uuid4(), quantity=1)
            )
        assert not Order.objects.filter(customer_id=customer_id).exists()

    def test_unit_price_follows_current_price(self, add, product):
        add(product, 1)
        product.price = Decimal("12.00")
        product.save()
        cart = add(product, 1)
        line = _line(cart, product)
        assert line.unit_price == Decimal("12.00")
        assert line.subtotal == Decimal("24.00")


# ===========================================================================
# Confirm
# ===========================================================================


class TestConfirm:
    def test_reserves_stock_and_moves_to_pending(self, confirmed_order, product, stock):
        assert confirmed_order.status == OrderStatus.PENDING
        assert confirmed_order.confirmed_at is not None
        assert confirmed_order.total_amount == Decimal("20.00")
        assert _line(confirmed_order, product).reserved_quantity == 2
        assert stock(product) == 3

    def test_records_history(self, confirmed_order):
        history = OrderStatusHistory.objects.get(order=confirmed_order)
        assert history.old_status == OrderStatus.CART
        assert history.new_status == OrderStatus.PENDING

    def test_next_add_opens_a_new_cart(self, confirmed_order, add, product, customer_id):
        cart = add(product, 1)
        assert cart.id != confirmed_order.id
        assert cart.status == OrderStatus.CART

    def test_notes_are_kept(self, order_service, add, product, customer_id):
        add(product, 1)
        order = order_service.confirm(customer_id, notes="Leave at the door")
        assert order.notes == "Leave at the door"

    def test_without_cart(self, order_service, customer_id):
        with pytest.raises(EmptyCart):
            order_service.confirm(customer_id)

    def test_empty_cart(self, order_service, customer_id):
        order_service.get_or_create_cart(customer_id)
        with pytest.raises(EmptyCart):
            order_service.confirm(customer_id)

    def test_cannot_confirm_twice(self, confirmed_order, order_service, customer_id, product, stock):
        with pytest.raises(EmptyCart):
            order_service.confirm(customer_id)
        assert stock(product) == 3

    def test_insufficient_stock_names_product(self, order_service, add, product, customer_id):
        add(product, 5)
        product.stock_quantity = 1
        product.save()

        with pytest.raises(InsufficientStock) as exc_info:
            order_service.confirm(customer_id)

        assert exc_info.value.product_name == "Widget"
        assert exc_info.value.requested == 5
        assert exc_info.value.available == 1
        assert "Widget" in str(exc_info.value)


# ===========================================================================
# Employee orders
# ===========================================================================


class TestCreateOrder:
    def test_opens_empty_pending_order(self, order_service, customer_id):
        order = order_service.create_order(customer_id, notes="Phone order")

        assert order.status == OrderStatus.PENDING
        assert order.customer_id == customer_id
        assert order.confirmed_at is not None
        assert order.total_amount == Decimal("0.00")
        assert order.items.count() == 0

    def test_records_history_and_event(self, order_service, customer_id):
        order = order_service.create_order(customer_id, status=OrderStatus.PROCESSING)

        entry = OrderStatusHistory.objects.get(order=order)
        assert entry.old_status is None
        assert entry.new_status == OrderStatus.PROCESSING
        assert entry.notes == "Order created"
        event = OutboxEvent.objects.get(aggregate_id=str(order.id), event_type="OrderCreated")
        assert event.payload["status"] == OrderStatus.PROCESSING

    def test_does_not_touch_the_cart(self, order_service, add, product, customer_id):
        cart = add(product, 1)
        order = order_service.create_order(customer_id)

        assert order.id != cart.id
        assert order_service.get_cart(customer_id).id == cart.id

    @pytest.mark.parametrize("status", [OrderStatus.CART, "LOST"])
    def test_rejects_non_fulfilment_status(self, order_service, customer_id, status):
        with pytest.raises(ValueError):
            order_service.create_order(customer_id, status=status)
        assert not Order.objects.exists()

    def test_add_line_reserves_immediately(self, order_service, customer_id, product, stock):
        order = order_service.create_order(customer_id)

        order = order_service.add_line(
            AddOrderLineDTO(order_id=order.id, product_id=product.id, quantity=3)
        )

        line = _line(order, product)
        assert line.reserved_quantity == 3
        assert order.total_amount == Decimal("30.00")
        assert stock(product) == 2

    def test_add_line_beyond_stock_is_rejected(self, order_service, customer_id, product, stock):
        order = order_service.create_order(customer_id)

        with pytest.raises(InsufficientStock):
            order_service.add_line(
                AddOrderLineDTO(order_id=order.id, product_id=product.id, quantity=6)
            )
        assert stock(product) == 5

    def test_delete_releases_reserved_stock(self, order_service, customer_id, product, stock):
        order = order_service.create_order(customer_id)
        order_service.add_line(
            AddOrderLineDTO(order_id=order.id, product_id=product.id, quantity=4)
        )
        assert stock(product) == 1

        order_service.delete_order(order.id)

        assert stock(product) == 5
        assert not Order.objects.filter(id=order.id).exists()


# ===========================================================================
# Line edits
# ===========================================================================


class TestUpdateQuantity:
    def test_cart_update_checks_stock_only(self, order_service, add, product, stock):
        cart = add(product, 1)
        line = _line(cart, product)

        cart = order_service.update_quantity(cart.id, line.id, 5)

        assert _line(cart, product).quantity == 5
        assert cart.total_amount == Decimal("50.00")
        assert stock(product) == 5

    def test_cart_update_beyond_stock(self, order_service, add, product):
        cart = add(product, 1)
        with pytest.raises(InsufficientStock) as exc_info:
            order_service.update_quantity(cart.id, _line(cart, product).id, 6)
        assert exc_info.value.requested == 6

    def test_zero_removes_line(self, order_service, add, product):
        cart = add(product, 2)
        cart = order_service.update_quantity(cart.id, _line(cart, product).id, 0)
        assert cart.items.count() == 0
        assert cart.total_amount == Decimal("0.00")

    def test_negative_quantity(self, order_service, add, product):
        cart = add(product, 2)
        with pytest.raises(ValueError):
            order_service.update_quantity(cart.id, _line(cart, product).id, -1)

    def test_increase_on_confirmed_order_reserves_difference(
        self, order_service, confirmed_order, product, stock
    ):
        line = _line(confirmed_order, product)
        order = order_service.update_quantity(confirmed_order.id, line.id, 5)

        line = _line(order, product)
        assert (line.quantity, line.reserved_quantity) == (5, 5)
        assert stock(product) == 0
        assert order.total_amount == Decimal("50.00")

    def test_increase_beyond_stock_on_confirmed_order(
        self, order_service, confirmed_order, product, stock
    ):
        line = _line(confirmed_order, product)
        with pytest.raises(InsufficientStock) as exc_info:
            order_service.update_quantity(confirmed_order.id, line.id, 6)
        assert exc_info.value.requested == 4
        assert exc_info.value.available == 3
        assert stock(product) == 3
        assert _line(confirmed_order, product).quantity == 2

    def test_decrease_on_confirmed_order_releases_difference(
        self, order_service, confirmed_order, product, stock
    ):
        line = _line(confirmed_order, product)
        order = order_service.update_quantity(confirmed_order.id, line.id, 1)
        assert _line(order, product).reserved_quantity == 1
        assert stock(product) == 4

    def test_unknown_line(self, order_service, add, product):
        cart = add(product, 1)
        with pytest.raises(OrderLineNotFound):
            order_service.update_quantity(cart.id, uuid4(), 2)

    def test_unknown_order(self, order_service):
        with pytest.raises(OrderNotFound):
            order_service.update_quantity(uuid4(), uuid4(), 2)

    def test_other_customers_order_is_not_found(self, order_service, add, product):
        cart = add(product, 1)
        with pytest.raises(OrderNotFound):
            order_service.update_quantity(
                cart.id, _line(cart, product).id, 2, customer_id=uuid4()
            )

    def test_owner_may_edit(self, order_service, add, product, customer_id):
        cart = add(product, 1)
        cart = order_service.update_quantity(
            cart.id, _line(cart, product).id, 2, customer_id=customer_id
        )
        assert _line(cart, product).quantity == 2


class TestRemoveLine:
    def test_remove_cart_line_no_stock_effect(self, order_service, add, product, stock):
        cart = add(product, 2)
        cart = order_service.remove_line(cart.id, _line(cart, product).id)
        assert cart.items.count() == 0
        assert stock(product) == 5

    def test_remove_confirmed_line_releases_reservation(
        self, order_service, confirmed_order, product, stock
    ):
        order = order_service.remove_line(
            confirmed_order.id, _line(confirmed_order, product).id
        )
        assert order.items.count() == 0
        assert order.total_amount == Decimal("0.00")
        assert order.status == OrderStatus.PENDING
        assert stock(product) == 5

    def test_unknown_line(self, order_service, confirmed_order):
        with pytest.raises(OrderLineNotFound):
            order_service.remove_line(confirmed_order.id, uuid4())


class TestAddLine:
    def test_on_cart_behaves_like_add_to_cart(self, order_service, add, make_product, product, stock):
        cart = add(product, 1)
        pen = make_product(name="Pen", price="2.00", stock=3)

        cart = order_service.add_line(
            AddOrderLineDTO(order_id=cart.id, product_id=pen.id, quantity=3)
        )

        assert _line(cart, pen).reserved_quantity == 0
        assert cart.total_amount == Decimal("16.00")
        assert stock(pen) == 3

    def test_on_confirmed_order_reserves_immediately(
        self, order_service, confirmed_order, make_product, stock
    ):
        pen = make_product(name="Pen", price="2.00", stock=3)

        order = order_service.add_line(
            AddOrderLineDTO(order_id=confirmed_order.id, product_id=pen.id, quantity=2)
        )

        line = _line(order, pen)
        assert (line.quantity, line.reserved_quantity) == (2, 2)
        assert stock(pen) == 1
        assert order.total_amount == Decimal("24.00")

    def test_existing_line_on_confirmed_order(
        self, order_service, confirmed_order, product, stock
    ):
        order = order_service.add_line(
            AddOrderLineDTO(order_id=confirmed_order.id, product_id=product.id, quantity=3)
        )
        line = _line(order, product)
        assert (line.quantity, line.reserved_quantity) == (5, 5)
        assert stock(product) == 0

    def test_failed_reservation_creates_no_line(
        self, order_service, confirmed_order, make_product, stock
    ):
        pen = make_product(name="Pen", price="2.00", stock=1)
        with pytest.raises(InsufficientStock) as exc_info:
            order_service.add_line(
                AddOrderLineDTO(order_id=confirmed_order.id, product_id=pen.id, quantity=2)
            )
        assert exc_info.value.available == 1
        assert not OrderItem.objects.filter(product=pen).exists()
        assert stock(pen) == 1

    def test_unknown_order(self, order_service, product):
        with pytest.raises(OrderNotFound):
            order_service.add_line(
                AddOrderLineDTO(order_id=uuid4(), product_id=product.id, quantity=1)
            )

    def test_unknown_product(self, order_service, confirmed_order):
        with pytest.raises(ProductNotFound):
            order_service.add_line(
                AddOrderLineDTO(order_id=confirmed_order.id, product_id=uuid4(), quantity=1)
            )

    def test_delivered_order_is_read_only(
        self, order_service, confirmed_order, product, stock
    ):
        order_service.change_state(confirmed_order.id, OrderStatus.DELIVERED)
        with pytest.raises(InvalidStateTransition):
            order_service.add_line(
                AddOrderLineDTO(order_id=confirmed_order.id, product_id=product.id, quantity=1)
            )
        with pytest.raises(InvalidStateTransition):
            order_service.remove_line(
                confirmed_order.id, _line(confirmed_order, product).id
            )
        assert stock(product) == 3


# ===========================================================================
# Delete
# ===========================================================================


class TestDeleteOrder:
    def test_confirmed_order_releases_reservations(
        self, order_service, confirmed_order, product, stock
    ):
        order_service.delete_order(confirmed_order.id)
        assert not Order.objects.filter(id=confirmed_order.id).exists()
        assert stock(product) == 5

    def test_cart_releases_nothing(self, order_service, add, product, stock):
        cart = add(product, 3)
        order_service.delete_order(cart.id)
        assert not Order.objects.filter(id=cart.id).exists()
        assert stock(product) == 5

    def test_releases_edited_quantities_exactly(
        self, order_service, confirmed_order, make_product, product, stock
    ):
        pen = make_product(name="Pen", price="2.00", stock=3)
        order_service.add_line(
            AddOrderLineDTO(order_id=confirmed_order.id, product_id=pen.id, quantity=3)
        )
        order_service.update_quantity(
            confirmed_order.id, _line(confirmed_order, product).id, 1
        )

        order_service.delete_order(confirmed_order.id)

        assert stock(product) == 5
        assert stock(pen) == 3

    def test_unknown_order(self, order_service):
        with pytest.raises(OrderNotFound):
            order_service.delete_order(uuid4())

    def test_cart_line_holding_stock_is_invariant_violation(
        self, order_service, add, product
    ):
        cart = add(product, 2)
        OrderItem.objects.filter(order=cart).update(reserved_quantity=1)
        with pytest.raises(ReservationInvariantViolation):
            order_service.delete_order(cart.id)
        assert Order.objects.filter(id=cart.id).exists()


# ===========================================================================
# Queries
# ===========================================================================


class TestQueries:
    def test_get_order(self, order_service, confirmed_order):
        assert order_service.get_order(confirmed_order.id) == confirmed_order

    def test_get_unknown_order(self, order_service):
        with pytest.raises(OrderNotFound):
            order_service.get_order(uuid4())

    def test_get_cart_never_creates(self, order_service, customer_id):
        assert order_service.get_cart(customer_id) is None
        assert not Order.objects.exists()

    def test_list_orders_for_customer(self, order_service, confirmed_order, add, product, customer_id):
        add(product, 1)
        assert order_service.list_orders_for_customer(customer_id) == [confirmed_order]
        assert len(order_service.list_orders_for_customer(customer_id, include_cart=True)) == 2

    def test_list_orders_with_filters(self, order_service, confirmed_order, add, product):
        add(product, 1, customer=uuid4())
        assert order_service.list_orders({"status": OrderStatus.PENDING}) == [confirmed_order]
        assert len(order_service.list_orders()) == 2

    def test_search_orders(self, order_service, confirmed_order, add, product):
        add(product, 1, customer=uuid4())
        assert order_service.search_orders({"include_carts": False}) == [confirmed_order]
        assert order_service.search_orders({"status": [OrderStatus.CART]}) != []
        with pytest.raises(ValueError):
            order_service.search_orders({"status": ["LOST"]})

    def test_recompute_total_is_idempotent(self, order_service, confirmed_order):
        Order.objects.filter(id=confirmed_order.id).update(total_amount=Decimal("999"))
        assert order_service.recompute_total(confirmed_order.id) == Decimal("20.00")
        assert order_service.recompute_total(confirmed_order.id) == Decimal("20.00")
        confirmed_order.refresh_from_db()
        assert confirmed_order.total_amount == Decimal("20.00")


def test_store_failure_rolls_back_and_is_translated(order_service, order_repo, add, product, customer_id, stock):
    add(product, 2)
    with patch.object(
        order_repo, "add_history", side_effect=IntegrityError("history insert failed")
    ):
        with pytest.raises(RecordStoreError):
            order_service.confirm(customer_id)

    assert stock(product) == 5
    assert order_service.get_cart(customer_id) is not None
