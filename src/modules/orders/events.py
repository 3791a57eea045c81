"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from shared.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class CartItemAdded(DomainEvent):
    """Raised when a product is added to a customer's cart."""

    customer_id: UUID
    product_id: UUID
    quantity: int


@dataclass(frozen=True, kw_only=True)
class OrderCreated(DomainEvent):
    """Raised when an employee opens an order directly, outside the cart flow."""

    customer_id: UUID
    status: str


@dataclass(frozen=True, kw_only=True)
class OrderConfirmed(DomainEvent):
    """Raised when a cart becomes a PENDING order and its stock is reserved."""

    customer_id: UUID
    total_amount: Decimal


@dataclass(frozen=True, kw_only=True)
class OrderLineChanged(DomainEvent):
    """Raised when a line of an order is created, resized or removed.

    ``quantity`` is the line's new quantity; 0 means the line was removed.
    """

    product_id: UUID
    quantity: int


@dataclass(frozen=True, kw_only=True)
class OrderStatusChanged(DomainEvent):
    """Raised when an order status changes."""

    old_status: str
    new_status: str


@dataclass(frozen=True, kw_only=True)
class OrderDeleted(DomainEvent):
    """Raised when an order is deleted; ``released_units`` went back to stock."""

    customer_id: UUID
    released_units: int
