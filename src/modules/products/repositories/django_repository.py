"""Django ORM implementation of the Product repository.

Satisfies ``IProductRepository`` using Django's QuerySet API.
Error handling follows the Null Object pattern: look-ups return ``None``
instead of raising; the Service Layer decides how to translate a missing
entity into a domain error.

Stock writes are single ``UPDATE`` statements built with ``F()``
expressions, so the check and the write cannot be separated by a
concurrent transaction.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from modules.products.filters import ProductFilter
from modules.products.models import Product
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        """Retrieve a product by primary key.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return Product.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        """List products with optional Django ORM look-ups.

        Examples of valid filters::

            {"stock_quantity__gt": 0}
            {"name__icontains": "widget"}
        """
        queryset = Product.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def search(self, params: Dict[str, Any]) -> List[Product]:
        filterset = ProductFilter(data=params, queryset=Product.objects.all())
        if not filterset.is_valid():
            raise ValueError(f"Invalid product filters: {dict(filterset.errors)}")
        return list(filterset.qs)

    @transaction.atomic
    def save(self, entity: Product) -> Product:
        """Persist (create or update) a product."""
        entity.save()
        logger.info("product.saved", product_id=str(entity.id))
        return entity

    def save_fields(self, entity: Product, fields: List[str]) -> Product:
        entity.save(update_fields=fields)
        logger.info("product.saved", product_id=str(entity.id), fields=fields)
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Delete a product by ID.

        Returns ``False`` if no product exists with the given ID.  Raises
        ``django.db.models.ProtectedError`` if order lines reference it.
        """
        product = self.get_by_id(id)
        if not product:
            return False
        product.delete()
        logger.info("product.deleted", product_id=str(id))
        return True

    # ------------------------------------------------------------------
    # Stock primitives (used by StockLedger only)
    # ------------------------------------------------------------------

    def get_stock(self, id: str) -> Optional[int]:
        return (
            Product.objects.filter(id=id)
            .values_list("stock_quantity", flat=True)
            .first()
        )

    def decrement_stock_if_available(self, id: str, quantity: int) -> bool:
        updated = Product.objects.filter(id=id, stock_quantity__gte=quantity).update(
            stock_quantity=F("stock_quantity") - quantity,
            updated_at=timezone.now(),
        )
        return updated == 1

    def increment_stock(self, id: str, quantity: int) -> bool:
        updated = Product.objects.filter(id=id).update(
            stock_quantity=F("stock_quantity") + quantity,
            updated_at=timezone.now(),
        )
        return updated == 1

    def is_referenced_by_orders(self, id: str) -> bool:
        from modules.orders.models import OrderItem

        return OrderItem.objects.filter(product_id=id).exists()
