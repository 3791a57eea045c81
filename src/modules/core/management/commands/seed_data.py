from __future__ import annotations

import random
import uuid
from decimal import Decimal

from django.core.management.base import BaseCommand

from modules.orders.constants import FULFILMENT_SEQUENCE
from modules.orders.dtos import AddToCartDTO
from modules.orders.exceptions import InsufficientStock
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.dtos import CreateProductDTO
from modules.products.models import Product
from modules.products.repositories import ProductDjangoRepository
from modules.products.services import CatalogService

CATALOG = [
    ("Monitor 27\"", "Electronics", Decimal("1299.90")),
    ("Mechanical Keyboard", "Electronics", Decimal("399.90")),
    ("Gaming Mouse", "Electronics", Decimal("249.90")),
    ("Notebook 14\"", "Electronics", Decimal("3999.00")),
    ("Headset", "Electronics", Decimal("299.90")),
    ("Office Desk", "Furniture", Decimal("899.00")),
    ("Ergonomic Chair", "Furniture", Decimal("1499.00")),
    ("Bookcase", "Furniture", Decimal("699.00")),
    ("A4 Paper", "Office", Decimal("29.90")),
    ("Blue Pen", "Office", Decimal("4.90")),
    ("Notebook", "Office", Decimal("19.90")),
    ("Stapler", "Office", Decimal("39.90")),
]


class Command(BaseCommand):
    help = "Seed database with a catalog and a few orders for development."

    def add_arguments(self, parser):
        parser.add_argument("--customers", type=int, default=5)
        parser.add_argument("--seed", type=int, default=42)

    def handle(self, *args, **options):
        random.seed(options["seed"])
        self.stdout.write("Seeding development data...")

        product_repo = ProductDjangoRepository()
        catalog = CatalogService(product_repo)
        orders = OrderService(OrderDjangoRepository(), product_repo)

        products = self._seed_products(catalog)
        orders_created = self._seed_orders(orders, products, options["customers"])

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"products={len(products)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_products(self, catalog: CatalogService) -> list[Product]:
        self.stdout.write("Creating products...")
        products: list[Product] = []
        for name, category, price in CATALOG:
            existing = Product.objects.filter(name=name).first()
            if existing:
                products.append(existing)
                continue
            products.append(
                catalog.create_product(
                    CreateProductDTO(
                        name=name,
                        description=category,
                        price=price,
                        stock_quantity=random.randint(10, 200),
                    )
                )
            )
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_orders(
        self, orders: OrderService, products: list[Product], customers: int
    ) -> int:
        self.stdout.write("Creating orders...")
        if not products:
            self.stdout.write(self.style.WARNING("Skipping orders (no products)."))
            return 0

        orders_created = 0
        for _ in range(customers):
            customer_id = uuid.uuid4()
            try:
                for product in random.sample(products, k=min(3, len(products))):
                    orders.add_to_cart(
                        AddToCartDTO(
                            customer_id=customer_id,
                            product_id=product.id,
                            quantity=random.randint(1, 3),
                        )
                    )
                order = orders.confirm(customer_id, notes="Seed order")
            except InsufficientStock as exc:
                self.stdout.write(self.style.WARNING(f"Skipped order: {exc}"))
                continue
            target = random.choice(FULFILMENT_SEQUENCE)
            if target != order.status:
                orders.change_state(order.id, target, notes="Seed progression")
            orders_created += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return orders_created
