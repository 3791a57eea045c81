"""Order, OrderItem, and OrderStatusHistory models.

Business rules implemented:
- A customer has at most one order in ``CART`` status (conditional
  unique constraint, so concurrent get-or-create cannot duplicate it).
- An order owns its lines (CASCADE); a line only references its product
  (PROTECT), so products in use cannot be deleted.
- One line per product per order; quantity is always >= 1.
- ``unit_price`` is the product price at the line's last mutation and
  ``subtotal`` is always ``quantity * unit_price`` (calculated on save).
- ``reserved_quantity`` records the stock each line currently holds:
  0 while the order is a cart, equal to ``quantity`` once confirmed.
- Each status change generates a history record.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel
from modules.orders.constants import (
    DEFAULT_STATE_TRANSITIONS,
    RESERVING_STATES,
    TERMINAL_STATES,
    OrderStatus,
)
from modules.products.exceptions import ReservationInvariantViolation
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root; a customer's cart is an Order in ``CART`` status.

    ``customer_id`` is an opaque identifier resolved by the identity layer.
    ``total_amount`` is derived from the lines and rewritten after every
    line mutation; it is never the source of truth.
    """

    customer_id: models.UUIDField = models.UUIDField(db_index=True)
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.CART,
    )
    total_amount: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    notes: models.TextField = models.TextField(blank=True, default="")
    confirmed_at: models.DateTimeField = models.DateTimeField(
        null=True, blank=True, default=None
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["customer_id"],
                condition=models.Q(status=OrderStatus.CART),
                name="orders_one_cart_per_customer",
            ),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_cart(self) -> bool:
        return self.status == OrderStatus.CART

    @property
    def holds_reservations(self) -> bool:
        """``True`` once confirmed: every line's units are taken from stock."""
        return self.status in RESERVING_STATES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def can_transition_to(
        self,
        new_status: str,
        transitions: dict[str, set[str]] | None = None,
    ) -> bool:
        """Check whether *new_status* is an allowed target of the current status."""
        table = DEFAULT_STATE_TRANSITIONS if transitions is None else transitions
        return new_status in table.get(self.status, set())

    def __str__(self) -> str:
        return f"Order {self.id} ({self.status})"


class OrderItem(BaseModel):
    """Line item linking an Order to a Product."""

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product: models.ForeignKey = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
    )
    subtotal: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        editable=False,
    )
    reserved_quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=0,
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(reserved_quantity__lte=models.F("quantity")),
                name="order_items_reserved_within_quantity",
            ),
            models.UniqueConstraint(
                fields=["order", "product"],
                name="order_items_one_line_per_product",
            ),
        ]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    # ------------------------------------------------------------------
    # Reservation bookkeeping
    # ------------------------------------------------------------------

    def hold(self, quantity: int) -> None:
        """Record *quantity* more units reserved for this line."""
        self.reserved_quantity += quantity

    def unhold(self, quantity: int) -> None:
        """Record *quantity* units given back to stock.

        Raises:
            ReservationInvariantViolation: the line holds fewer units.
        """
        if quantity > self.reserved_quantity:
            raise ReservationInvariantViolation(
                f"Line {self.id} holds {self.reserved_quantity} units, "
                f"cannot release {quantity}."
            )
        self.reserved_quantity -= quantity

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if self.unit_price is None:
            unit_price = getattr(self.product, "price", None)
            if unit_price is None:
                raise ValidationError({"unit_price": "Product price is required."})
            self.unit_price = unit_price
        self.subtotal = self.quantity * self.unit_price
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "subtotal" not in update_fields:
            kwargs["update_fields"] = list(update_fields) + ["subtotal"]
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product} x{self.quantity} (${self.subtotal})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    Records are immutable and go away only together with their order.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    notes: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["order", "-created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} : {self.old_status} -> {self.new_status}"
