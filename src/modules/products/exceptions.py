"""Catalog and stock exceptions.

``ProductNotFound`` and ``InsufficientStock`` are shared with the order
core: the Stock Ledger raises them and ``modules.orders.exceptions``
re-exports them as part of the order error taxonomy.
"""

from __future__ import annotations

from uuid import UUID

from shared.domain.exceptions import DomainError


class CatalogError(DomainError):
    """Base class for expected, recoverable catalog outcomes."""


class ProductNotFound(CatalogError):
    """The requested product does not exist."""

    def __init__(self, product_id: UUID | str) -> None:
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found.")


class ProductInUse(CatalogError):
    """The product is referenced by at least one order line."""

    def __init__(self, product_id: UUID | str) -> None:
        self.product_id = product_id
        super().__init__(
            f"Product {product_id} is used by existing orders and cannot be deleted."
        )


class InsufficientStock(CatalogError):
    """Not enough stock to cover the requested quantity."""

    def __init__(
        self,
        product_id: UUID | str,
        requested: int,
        available: int,
        product_name: str = "",
    ) -> None:
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.product_name = product_name
        label = product_name or str(product_id)
        super().__init__(
            f"Insufficient stock for {label}: requested {requested}, "
            f"available {available}."
        )


class ReservationInvariantViolation(RuntimeError):
    """Reservation bookkeeping is inconsistent.

    Raised when stock would be released beyond what a line holds, or when
    a reservation targets a product that no longer exists.  Never caught
    by the core: it means there is a bug, not a user error.
    """
