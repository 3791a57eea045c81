"""Catalog service layer (Use Cases).

Read access for the order core plus the product maintenance use-cases
(create, update, delete).  Stock is never written here, see
``modules.products.ledger.StockLedger``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

import structlog
from django.db import transaction
from django.db.models import ProtectedError

from modules.core.exceptions import translate_store_errors
from modules.products.dtos import ProductFilterDTO
from modules.products.exceptions import ProductInUse, ProductNotFound
from modules.products.models import Product

if TYPE_CHECKING:
    from modules.products.dtos import CreateProductDTO, UpdateProductDTO
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class CatalogService:
    """Application service for the product catalog.

    Receives an ``IProductRepository`` via constructor injection (DIP).
    """

    def __init__(self, repository: IProductRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @translate_store_errors
    def get_product(self, product_id: UUID | str) -> Product:
        """Retrieve a single product by ID.

        Raises:
            ProductNotFound: if the product does not exist.
        """
        product = self._repo.get_by_id(str(product_id))
        if not product:
            raise ProductNotFound(product_id)
        return product

    @translate_store_errors
    def list_products(self, criteria: Optional[ProductFilterDTO] = None) -> List[Product]:
        """Return products matching *criteria*, ordered by name."""
        criteria = criteria or ProductFilterDTO()
        return self._repo.search(criteria.as_query_params())

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @translate_store_errors
    @transaction.atomic
    def create_product(self, dto: CreateProductDTO) -> Product:
        product = Product(
            name=dto.name,
            description=dto.description,
            price=dto.price,
            stock_quantity=dto.stock_quantity,
        )
        product = self._repo.save(product)
        logger.info("product.created", product_id=str(product.id))
        return product

    @translate_store_errors
    @transaction.atomic
    def update_product(self, product_id: UUID | str, dto: UpdateProductDTO) -> Product:
        """Update name, description and/or price.

        A price change only affects lines mutated afterwards; existing
        subtotals are never recomputed retroactively.  Only the supplied
        fields are written, so concurrent reservations on the same row
        are kept.

        Raises:
            ProductNotFound: if the product does not exist.
        """
        product = self._repo.get_by_id(str(product_id))
        if not product:
            raise ProductNotFound(product_id)

        changed = []
        for field in ("name", "description", "price"):
            value = getattr(dto, field)
            if value is not None:
                setattr(product, field, value)
                changed.append(field)
        if not changed:
            return product

        self._repo.save_fields(product, changed)
        logger.info("product.updated", product_id=str(product_id), fields=changed)
        return self._repo.get_by_id(str(product_id))

    @translate_store_errors
    @transaction.atomic
    def delete_product(self, product_id: UUID | str) -> None:
        """Delete a product that no order line references.

        Raises:
            ProductNotFound: if the product does not exist.
            ProductInUse: if any order (cart included) references it.
        """
        if not self._repo.get_by_id(str(product_id)):
            raise ProductNotFound(product_id)
        if self._repo.is_referenced_by_orders(str(product_id)):
            logger.warning("product.delete_rejected", product_id=str(product_id))
            raise ProductInUse(product_id)
        try:
            self._repo.delete(str(product_id))
        except ProtectedError as exc:
            raise ProductInUse(product_id) from exc
