"""Order service layer (Use Cases).

Orchestrates the order lifecycle: cart accumulation, confirmation with
stock reservation, employee line edits, status changes and deletion with
stock restoration.  Every command is one ``transaction.atomic`` unit of
work: the stock movements, the line mutations and the order row either
all commit or none do.

Stock rules:
- A ``CART`` holds nothing.  Adding to it only checks live stock.
- ``confirm`` reserves every line through the Stock Ledger, all or
  nothing.  Each line remembers what it holds in ``reserved_quantity``.
- Edits on a confirmed order reserve/release the exact difference.
- Deleting an order releases exactly what its lines hold (nothing for a
  cart).
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.core.exceptions import translate_store_errors
from modules.orders.constants import (
    DEFAULT_STATE_TRANSITIONS,
    RESERVING_STATES,
    OrderStatus,
)
from modules.orders.events import (
    CartItemAdded,
    OrderConfirmed,
    OrderCreated,
    OrderDeleted,
    OrderLineChanged,
    OrderStatusChanged,
)
from modules.orders.exceptions import (
    EmptyCart,
    InsufficientStock,
    InvalidStateTransition,
    OrderLineNotFound,
    OrderNotFound,
    ProductNotFound,
)
from modules.orders.models import Order, OrderItem
from modules.orders.totals import calculate_total
from modules.products.exceptions import ReservationInvariantViolation
from modules.products.ledger import StockLedger

if TYPE_CHECKING:
    from modules.orders.dtos import AddOrderLineDTO, AddToCartDTO
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.models import Product
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class OrderService:
    """Application service for Order use-cases.

    Receives repositories via constructor injection (DIP).  The allowed
    status transitions come from ``settings.ORDER_STATE_TRANSITIONS``
    unless *transitions* is given explicitly.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
        stock_ledger: Optional[StockLedger] = None,
        transitions: Optional[Dict[str, set[str]]] = None,
    ) -> None:
        self._order_repo = order_repository
        self._product_repo = product_repository
        self._ledger = stock_ledger or StockLedger(product_repository)
        if transitions is None:
            transitions = getattr(
                settings, "ORDER_STATE_TRANSITIONS", DEFAULT_STATE_TRANSITIONS
            )
        self._transitions = transitions

    # ------------------------------------------------------------------
    # Cart commands
    # ------------------------------------------------------------------

    @translate_store_errors
    @transaction.atomic
    def get_or_create_cart(self, customer_id: UUID) -> Order:
        """Return the customer's open cart, creating an empty one if needed."""
        cart, _ = self._order_repo.get_or_create_cart(customer_id)
        return self._order_repo.get_by_id(str(cart.id)) or cart

    @translate_store_errors
    @transaction.atomic
    def add_to_cart(self, dto: AddToCartDTO) -> Order:
        """Add ``dto.quantity`` units of a product to the customer's cart.

        Stock is only checked, not reserved: the line total
        (already in cart + requested) must not exceed live stock.

        Raises:
            ProductNotFound: the product does not exist.
            InsufficientStock: stock is below the resulting line quantity.
        """
        log = logger.bind(
            customer_id=str(dto.customer_id),
            product_id=str(dto.product_id),
            quantity=dto.quantity,
        )
        cart, _ = self._order_repo.get_or_create_cart(dto.customer_id)
        cart = self._order_repo.get_for_update(str(cart.id))
        product = self._get_product(dto.product_id)

        item = self._order_repo.get_line_for_product(cart, product.id)
        existing = item.quantity if item else 0
        self._set_line_quantity(cart, product, item, existing + dto.quantity)

        cart.add_domain_event(
            CartItemAdded(
                aggregate_id=cart.id,
                customer_id=dto.customer_id,
                product_id=product.id,
                quantity=dto.quantity,
            )
        )
        self._recompute_total(cart)
        log.info("cart.item_added", order_id=str(cart.id), line_quantity=existing + dto.quantity)
        return self._order_repo.get_by_id(str(cart.id))

    @translate_store_errors
    @transaction.atomic
    def confirm(self, customer_id: UUID, notes: str = "") -> Order:
        """Turn the customer's cart into a ``PENDING`` order.

        Lines are reserved in product-id order to avoid deadlocks between
        concurrent confirmations.  If any reservation fails the whole
        transaction rolls back: no stock moves and the cart stays a cart.

        Raises:
            EmptyCart: no cart, or a cart without lines.
            InsufficientStock: a line exceeds the live stock of its product.
        """
        log = logger.bind(customer_id=str(customer_id))

        cart = self._order_repo.get_cart(customer_id, for_update=True)
        if cart is None:
            raise EmptyCart(customer_id)
        lines = self._order_repo.get_lines(cart)
        if not lines:
            raise EmptyCart(customer_id)

        log = log.bind(order_id=str(cart.id))
        log.info("order.confirmation_started", line_count=len(lines))

        for item in lines:
            try:
                self._ledger.reserve(item.product_id, item.quantity)
            except InsufficientStock as exc:
                log.warning(
                    "order.confirmation_rejected",
                    product_id=str(item.product_id),
                    requested=item.quantity,
                    available=exc.available,
                )
                raise InsufficientStock(
                    item.product_id,
                    requested=item.quantity,
                    available=exc.available,
                    product_name=item.product.name,
                ) from exc
            item.hold(item.quantity)
            self._order_repo.save_line(item)

        old_status = cart.status
        cart.status = OrderStatus.PENDING
        cart.confirmed_at = timezone.now()
        if notes:
            cart.notes = notes
        cart.total_amount = calculate_total(lines)
        cart.add_domain_event(
            OrderConfirmed(
                aggregate_id=cart.id,
                customer_id=customer_id,
                total_amount=cart.total_amount,
            )
        )
        self._order_repo.save(cart)
        self._order_repo.add_history(
            order_id=cart.id,
            status=OrderStatus.PENDING,
            notes=notes or "Order confirmed",
            old_status=old_status,
        )

        log.info("order.confirmed", total_amount=str(cart.total_amount))
        return self._order_repo.get_by_id(str(cart.id))

    # ------------------------------------------------------------------
    # Employee orders
    # ------------------------------------------------------------------

    @translate_store_errors
    @transaction.atomic
    def create_order(
        self,
        customer_id: UUID,
        status: str = OrderStatus.PENDING,
        notes: str = "",
    ) -> Order:
        """Employee opens an empty order for *customer_id* in *status*.

        The order skips the cart: it starts in a reserving status, so lines
        added with ``add_line`` take their units from stock immediately.

        Raises:
            ValueError: *status* is not a fulfilment status.
        """
        if status not in RESERVING_STATES:
            raise ValueError(
                f"Orders are opened in one of {sorted(RESERVING_STATES)}, got {status!r}."
            )

        order = Order(
            customer_id=customer_id,
            status=status,
            notes=notes,
            confirmed_at=timezone.now(),
        )
        order.add_domain_event(
            OrderCreated(aggregate_id=order.id, customer_id=customer_id, status=status)
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            status=status,
            notes=notes or "Order created",
        )
        logger.info(
            "order.created",
            order_id=str(order.id),
            customer_id=str(customer_id),
            status=status,
        )
        return self._order_repo.get_by_id(str(order.id))

    # ------------------------------------------------------------------
    # Line commands (carts and confirmed orders)
    # ------------------------------------------------------------------

    @translate_store_errors
    @transaction.atomic
    def add_line(self, dto: AddOrderLineDTO) -> Order:
        """Employee adds ``dto.quantity`` units of a product to an order.

        On a cart this behaves like ``add_to_cart``.  On a confirmed order
        the units are reserved immediately, together with the line change.

        Raises:
            OrderNotFound, ProductNotFound, InsufficientStock,
            InvalidStateTransition: the order is delivered.
        """
        order = self._lock_order(dto.order_id)
        self._ensure_lines_editable(order)
        product = self._get_product(dto.product_id)

        item = self._order_repo.get_line_for_product(order, product.id)
        new_quantity = (item.quantity if item else 0) + dto.quantity
        self._set_line_quantity(order, product, item, new_quantity)

        order.add_domain_event(
            OrderLineChanged(
                aggregate_id=order.id, product_id=product.id, quantity=new_quantity
            )
        )
        self._recompute_total(order)
        logger.info(
            "order.line_added",
            order_id=str(order.id),
            product_id=str(product.id),
            quantity=dto.quantity,
            status=order.status,
        )
        return self._order_repo.get_by_id(str(order.id))

    @translate_store_errors
    @transaction.atomic
    def update_quantity(
        self,
        order_id: UUID,
        line_id: UUID,
        quantity: int,
        customer_id: Optional[UUID] = None,
    ) -> Order:
        """Set a line's quantity; ``0`` removes the line.

        When *customer_id* is given the order must belong to that customer.

        Raises:
            OrderNotFound, OrderLineNotFound, InsufficientStock,
            InvalidStateTransition: the order is delivered.
        """
        if quantity < 0:
            raise ValueError("Quantity cannot be negative.")

        order = self._lock_order(order_id, customer_id)
        self._ensure_lines_editable(order)
        item = self._get_line(order, line_id)

        self._set_line_quantity(order, item.product, item, quantity)

        order.add_domain_event(
            OrderLineChanged(
                aggregate_id=order.id, product_id=item.product_id, quantity=quantity
            )
        )
        self._recompute_total(order)
        logger.info(
            "order.line_quantity_updated",
            order_id=str(order.id),
            line_id=str(line_id),
            quantity=quantity,
        )
        return self._order_repo.get_by_id(str(order.id))

    @translate_store_errors
    @transaction.atomic
    def remove_line(
        self,
        order_id: UUID,
        line_id: UUID,
        customer_id: Optional[UUID] = None,
    ) -> Order:
        """Delete a line; a confirmed order gets the line's units back in stock.

        Raises:
            OrderNotFound, OrderLineNotFound,
            InvalidStateTransition: the order is delivered.
        """
        order = self._lock_order(order_id, customer_id)
        self._ensure_lines_editable(order)
        item = self._get_line(order, line_id)

        self._set_line_quantity(order, item.product, item, 0)

        order.add_domain_event(
            OrderLineChanged(aggregate_id=order.id, product_id=item.product_id, quantity=0)
        )
        self._recompute_total(order)
        logger.info("order.line_removed", order_id=str(order.id), line_id=str(line_id))
        return self._order_repo.get_by_id(str(order.id))

    # ------------------------------------------------------------------
    # Order commands
    # ------------------------------------------------------------------

    @translate_store_errors
    @transaction.atomic
    def change_state(self, order_id: UUID, new_status: str, notes: str = "") -> Order:
        """Move a confirmed order to *new_status*.  No stock effect.

        Carts only leave ``CART`` through ``confirm``, whatever the
        configured transition table says.

        Raises:
            OrderNotFound: order does not exist.
            InvalidStateTransition: *new_status* is not an allowed target.
        """
        order = self._lock_order(order_id)
        log = logger.bind(
            order_id=str(order_id),
            current_status=order.status,
            new_status=new_status,
        )

        if order.is_cart or new_status == OrderStatus.CART:
            log.warning("order.invalid_transition")
            raise InvalidStateTransition(
                order.status,
                new_status,
                "Carts leave the CART status only through confirmation.",
            )
        if not order.can_transition_to(new_status, self._transitions):
            log.warning("order.invalid_transition")
            raise InvalidStateTransition(order.status, new_status)

        old_status = order.status
        order.status = new_status
        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id, old_status=old_status, new_status=new_status
            )
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            status=new_status,
            notes=notes,
            old_status=old_status,
        )

        log.info("order.status_updated")
        return self._order_repo.get_by_id(str(order_id))

    @translate_store_errors
    @transaction.atomic
    def delete_order(self, order_id: UUID) -> None:
        """Delete an order and give back exactly the stock its lines hold.

        Raises:
            OrderNotFound: order does not exist.
            ReservationInvariantViolation: a cart line claims reserved stock.
        """
        order = self._lock_order(order_id)
        log = logger.bind(order_id=str(order_id), status=order.status)

        released = 0
        for item in self._order_repo.get_lines(order):
            if not item.reserved_quantity:
                continue
            if not order.holds_reservations:
                raise ReservationInvariantViolation(
                    f"Line {item.id} of cart {order.id} holds "
                    f"{item.reserved_quantity} reserved units."
                )
            released += self._release_line(item, item.reserved_quantity)

        order.add_domain_event(
            OrderDeleted(
                aggregate_id=order.id,
                customer_id=order.customer_id,
                released_units=released,
            )
        )
        self._order_repo.delete_order(order)
        log.info("order.deleted", released_units=released)

    @translate_store_errors
    @transaction.atomic
    def recompute_total(self, order_id: UUID) -> Decimal:
        """Re-derive and store the order total from its lines."""
        order = self._lock_order(order_id)
        return self._recompute_total(order)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @translate_store_errors
    def get_order(self, order_id: UUID | str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(order_id)
        return order

    @translate_store_errors
    def get_cart(self, customer_id: UUID) -> Optional[Order]:
        """The customer's open cart, or ``None``.  Never creates one."""
        cart = self._order_repo.get_cart(customer_id)
        if cart is None:
            return None
        return self._order_repo.get_by_id(str(cart.id))

    @translate_store_errors
    def list_orders_for_customer(
        self, customer_id: UUID, include_cart: bool = False
    ) -> List[Order]:
        """A customer's orders, most recently confirmed first."""
        return self._order_repo.list_for_customer(customer_id, include_cart)

    @translate_store_errors
    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """Return a list of orders, optionally filtered."""
        return self._order_repo.list(filters)

    @translate_store_errors
    def search_orders(self, params: Dict[str, Any]) -> List[Order]:
        """Orders matching ``OrderFilter`` parameters (status, customer, dates, totals).

        Raises ``ValueError`` for malformed parameters.
        """
        return self._order_repo.search(params)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_product(self, product_id: UUID) -> Product:
        product = self._product_repo.get_by_id(str(product_id))
        if not product:
            raise ProductNotFound(product_id)
        return product

    def _lock_order(self, order_id: UUID, customer_id: Optional[UUID] = None) -> Order:
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(order_id)
        if customer_id is not None and order.customer_id != customer_id:
            logger.warning(
                "order.foreign_customer",
                order_id=str(order_id),
                customer_id=str(customer_id),
            )
            raise OrderNotFound(order_id)
        return order

    def _get_line(self, order: Order, line_id: UUID) -> OrderItem:
        item = self._order_repo.get_line(order, str(line_id))
        if not item:
            raise OrderLineNotFound(order.id, line_id)
        return item

    @staticmethod
    def _ensure_lines_editable(order: Order) -> None:
        if order.is_terminal:
            raise InvalidStateTransition(
                order.status,
                order.status,
                f"Order {order.id} is {order.status}; its lines can no longer change.",
            )

    def _set_line_quantity(
        self,
        order: Order,
        product: Product,
        item: Optional[OrderItem],
        quantity: int,
    ) -> Optional[OrderItem]:
        """Bring the line for *product* to *quantity*, moving stock as needed.

        Returns the saved line, or ``None`` when *quantity* is 0.
        """
        if order.holds_reservations:
            held = item.reserved_quantity if item else 0
            if quantity > held:
                self._ledger.reserve(product.id, quantity - held)
            elif quantity < held:
                self._release_line(item, held - quantity)
        elif quantity > product.stock_quantity:
            raise InsufficientStock(
                product.id,
                requested=quantity,
                available=product.stock_quantity,
                product_name=product.name,
            )

        if quantity == 0:
            if item is not None:
                self._order_repo.delete_line(item)
            return None

        if item is None:
            item = OrderItem(order=order, product=product, quantity=quantity)
        item.quantity = quantity
        item.unit_price = product.price
        if order.holds_reservations:
            item.reserved_quantity = quantity
        return self._order_repo.save_line(item)

    def _release_line(self, item: OrderItem, quantity: int) -> int:
        item.unhold(quantity)
        self._ledger.release(item.product_id, quantity)
        return quantity

    def _recompute_total(self, order: Order) -> Decimal:
        order.total_amount = calculate_total(self._order_repo.get_lines(order))
        self._order_repo.save(order)
        return order.total_amount
