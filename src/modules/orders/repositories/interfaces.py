"""Order repository interface.

Extends ``IRepository[Order]`` with the methods the order lifecycle
needs: per-customer cart look-ups, row locking, line persistence and
status history tracking.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderItem, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The Order aggregate includes OrderItem children and
    OrderStatusHistory records.  Mutations must be atomic.
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with prefetched lines and status history."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order holding a row-level lock until commit."""

    @abstractmethod
    def get_or_create_cart(self, customer_id: UUID) -> Tuple[Order, bool]:
        """Return the customer's cart, creating it atomically if missing."""

    @abstractmethod
    def get_cart(self, customer_id: UUID, for_update: bool = False) -> Optional[Order]:
        """Return the customer's cart, if any."""

    @abstractmethod
    def list_for_customer(
        self, customer_id: UUID, include_cart: bool = False
    ) -> List[Order]:
        """Orders of one customer, newest first."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters."""

    @abstractmethod
    def search(self, params: Dict[str, Any]) -> List[Order]:
        """List orders matching ``OrderFilter`` parameters."""

    @abstractmethod
    def delete_order(self, order: Order) -> None:
        """Delete an order with its lines, recording its pending events."""

    # ------------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------------

    @abstractmethod
    def get_line(self, order: Order, line_id: str) -> Optional[OrderItem]:
        """Line *line_id* of *order*, or ``None``."""

    @abstractmethod
    def get_line_for_product(self, order: Order, product_id: UUID) -> Optional[OrderItem]:
        """The line of *order* referencing *product_id*, or ``None``."""

    @abstractmethod
    def get_lines(self, order: Order) -> List[OrderItem]:
        """All lines of *order* in product-id order (lock-friendly)."""

    @abstractmethod
    def save_line(self, item: OrderItem) -> OrderItem:
        """Persist (create or update) a line."""

    @abstractmethod
    def delete_line(self, item: OrderItem) -> None:
        """Remove a line."""

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""
