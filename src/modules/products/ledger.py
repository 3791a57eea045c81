"""Stock Ledger: the only code allowed to change ``Product.stock_quantity``.

``reserve`` is a compare-and-decrement executed by the database in one
statement (``UPDATE ... WHERE stock_quantity >= n``), so two concurrent
reservations can never both pass the check and overdraw the product.
The row stays locked until the surrounding transaction ends, which
serializes reserve/release per product.

The ledger does not know which line a reservation belongs to.  Callers
track reserved quantities themselves and must only release what they
reserved.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from modules.products.exceptions import (
    InsufficientStock,
    ProductNotFound,
    ReservationInvariantViolation,
)

if TYPE_CHECKING:
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class StockLedger:
    """Atomic reserve/release of product stock."""

    def __init__(self, product_repository: IProductRepository) -> None:
        self._product_repo = product_repository

    def reserve(self, product_id: UUID | str, quantity: int) -> int:
        """Take *quantity* units out of stock and return what remains.

        Raises:
            InsufficientStock: fewer than *quantity* units are available.
            ReservationInvariantViolation: the product does not exist.
        """
        _require_positive(quantity)
        log = logger.bind(product_id=str(product_id), quantity=quantity)

        if self._product_repo.decrement_stock_if_available(str(product_id), quantity):
            remaining = self._product_repo.get_stock(str(product_id))
            log.info("stock.reserved", remaining=remaining)
            return remaining

        available = self._product_repo.get_stock(str(product_id))
        if available is None:
            log.error("stock.reserve_missing_product")
            raise ReservationInvariantViolation(
                f"Cannot reserve stock of missing product {product_id}."
            )
        log.info("stock.reservation_rejected", available=available)
        raise InsufficientStock(product_id, requested=quantity, available=available)

    def release(self, product_id: UUID | str, quantity: int) -> int:
        """Give back *quantity* previously reserved units; return new stock."""
        _require_positive(quantity)
        if not self._product_repo.increment_stock(str(product_id), quantity):
            logger.error(
                "stock.release_missing_product",
                product_id=str(product_id),
                quantity=quantity,
            )
            raise ReservationInvariantViolation(
                f"Cannot release stock to missing product {product_id}."
            )
        restored = self._product_repo.get_stock(str(product_id))
        logger.info(
            "stock.released",
            product_id=str(product_id),
            quantity=quantity,
            restored_stock=restored,
        )
        return restored

    def restock(self, product_id: UUID | str, quantity: int) -> int:
        """Register an inbound receipt of *quantity* units.

        Unlike ``release`` this is not the reversal of a reservation.

        Raises:
            ProductNotFound: the product does not exist.
        """
        _require_positive(quantity)
        if not self._product_repo.increment_stock(str(product_id), quantity):
            raise ProductNotFound(product_id)
        stock = self._product_repo.get_stock(str(product_id))
        logger.info(
            "stock.restocked",
            product_id=str(product_id),
            quantity=quantity,
            stock=stock,
        )
        return stock


def _require_positive(quantity: int) -> None:
    if quantity <= 0:
        raise ValueError(f"Stock movements must be positive, got {quantity}.")
