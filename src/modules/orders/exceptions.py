"""Order domain exceptions.

Raised by the Service Layer when business rules reject an operation.
They are expected outcomes: the web layer catches them (or their common
base ``DomainError``) and turns them into user-facing messages.

``ProductNotFound`` and ``InsufficientStock`` come from the catalog /
stock ledger and are re-exported here so callers of the order core import
the whole taxonomy from one place.
"""

from __future__ import annotations

from uuid import UUID

from modules.products.exceptions import InsufficientStock, ProductNotFound
from shared.domain.exceptions import DomainError

__all__ = [
    "EmptyCart",
    "InsufficientStock",
    "InvalidStateTransition",
    "OrderDomainError",
    "OrderLineNotFound",
    "OrderNotFound",
    "ProductNotFound",
]


class OrderDomainError(DomainError):
    """Base class for order lifecycle errors."""


class OrderNotFound(OrderDomainError):
    """The requested order does not exist (or belongs to another customer)."""

    def __init__(self, order_id: UUID | str) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found.")


class OrderLineNotFound(OrderDomainError):
    """The order has no line with the given ID."""

    def __init__(self, order_id: UUID | str, line_id: UUID | str) -> None:
        self.order_id = order_id
        self.line_id = line_id
        super().__init__(f"Order {order_id} has no line {line_id}.")


class EmptyCart(OrderDomainError):
    """Confirm was requested for a customer with no cart lines."""

    def __init__(self, customer_id: UUID | str) -> None:
        self.customer_id = customer_id
        super().__init__(f"Customer {customer_id} has no products in the cart.")


class InvalidStateTransition(OrderDomainError):
    """The requested status change (or edit) is not allowed in the current status."""

    def __init__(self, current: str, requested: str, message: str = "") -> None:
        self.current = current
        self.requested = requested
        super().__init__(message or f"Cannot transition from {current} to {requested}.")
