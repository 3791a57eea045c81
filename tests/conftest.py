from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.ledger import StockLedger
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.services import CatalogService


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_product():
    """Factory creating products straight in the database."""

    def _make(name="Test Product", price="10.00", stock=10, description=""):
        return Product.objects.create(
            name=name,
            description=description,
            price=Decimal(price),
            stock_quantity=stock,
        )

    return _make


@pytest.fixture()
def product(make_product):
    return make_product(name="Widget", price="10.00", stock=5)


def stock_of(product: Product) -> int:
    product.refresh_from_db()
    return product.stock_quantity


@pytest.fixture()
def stock():
    """``stock(product)`` reads the live stock counter."""
    return stock_of


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture()
def product_repo():
    return ProductDjangoRepository()


@pytest.fixture()
def order_repo():
    return OrderDjangoRepository()


@pytest.fixture()
def ledger(product_repo):
    return StockLedger(product_repo)


@pytest.fixture()
def catalog_service(product_repo):
    return CatalogService(product_repo)


@pytest.fixture()
def order_service(order_repo, product_repo, ledger):
    return OrderService(
        order_repository=order_repo,
        product_repository=product_repo,
        stock_ledger=ledger,
    )


@pytest.fixture()
def customer_id():
    return uuid4()
