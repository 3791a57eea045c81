"""Product repository interface.

Extends ``IRepository[Product]`` with the primitives the Stock Ledger
needs: an atomic conditional decrement and an atomic increment.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def search(self, params: Dict[str, Any]) -> List[Product]:
        """List products matching ``ProductFilter`` parameters."""

    @abstractmethod
    def save_fields(self, entity: Product, fields: List[str]) -> Product:
        """Write only *fields* of *entity*; every other column keeps its stored value."""

    @abstractmethod
    def get_stock(self, id: str) -> Optional[int]:
        """Current stock of a product, ``None`` if it does not exist."""

    @abstractmethod
    def decrement_stock_if_available(self, id: str, quantity: int) -> bool:
        """Atomically subtract *quantity* when at least that much is in stock.

        Returns ``False`` (and changes nothing) when stock is short or the
        product does not exist.
        """

    @abstractmethod
    def increment_stock(self, id: str, quantity: int) -> bool:
        """Atomically add *quantity*.  ``False`` if the product does not exist."""

    @abstractmethod
    def is_referenced_by_orders(self, id: str) -> bool:
        """Whether any order line references the product."""
