"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.  Domain
events collected on the aggregate are written to the transactional
outbox in the same transaction as the aggregate itself.

Concurrency control uses ``select_for_update()`` on the order row; stock
rows are handled by the Stock Ledger.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from modules.core.models import OutboxEvent
from modules.orders.constants import OUTBOX_TOPIC, OrderStatus
from modules.orders.filters import OrderFilter
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    def _queryset(self):
        return Order.objects.prefetch_related("items__product", "status_history")

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded lines and history.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return self._queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_cart(self, customer_id: UUID, for_update: bool = False) -> Optional[Order]:
        queryset = Order.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        return queryset.filter(customer_id=customer_id, status=OrderStatus.CART).first()

    def get_or_create_cart(self, customer_id: UUID) -> Tuple[Order, bool]:
        """Atomic get-or-create backed by ``orders_one_cart_per_customer``.

        ``get_or_create`` retries the look-up when a concurrent insert wins
        the race and the unique constraint rejects ours.
        """
        order, created = Order.objects.get_or_create(
            customer_id=customer_id,
            status=OrderStatus.CART,
        )
        if created:
            logger.info(
                "order.cart_created",
                order_id=str(order.id),
                customer_id=str(customer_id),
            )
        return order, created

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters and eager-loaded relations.

        Supported filter keys are Django look-ups, e.g.:
        - ``status``
        - ``customer_id``
        - ``created_at__range``
        """
        queryset = self._queryset()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def search(self, params: Dict[str, Any]) -> List[Order]:
        filterset = OrderFilter(data=params, queryset=self._queryset())
        if not filterset.is_valid():
            raise ValueError(f"Invalid order filters: {dict(filterset.errors)}")
        return list(filterset.qs)

    def list_for_customer(
        self, customer_id: UUID, include_cart: bool = False
    ) -> List[Order]:
        queryset = self._queryset().filter(customer_id=customer_id)
        if not include_cart:
            queryset = queryset.exclude(status=OrderStatus.CART)
        return list(queryset.order_by("-confirmed_at", "-created_at"))

    # ------------------------------------------------------------------
    # Save / Delete (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist (create or update) an order and flush its events."""
        entity.save()
        event_count = self._flush_events(entity)
        logger.info("order.saved", order_id=str(entity.id), event_count=event_count)
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        order = self.get_by_id(id)
        if not order:
            return False
        self.delete_order(order)
        return True

    @transaction.atomic
    def delete_order(self, order: Order) -> None:
        """Hard-delete *order*; lines and history go with it (CASCADE)."""
        order_id = order.id
        self._flush_events(order)
        order.delete()
        logger.info("order.deleted", order_id=str(order_id))

    # ------------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------------

    def get_line(self, order: Order, line_id: str) -> Optional[OrderItem]:
        try:
            return (
                OrderItem.objects.select_related("product")
                .filter(order=order, id=line_id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_line_for_product(self, order: Order, product_id: UUID) -> Optional[OrderItem]:
        return (
            OrderItem.objects.select_related("product")
            .filter(order=order, product_id=product_id)
            .first()
        )

    def get_lines(self, order: Order) -> List[OrderItem]:
        return list(
            OrderItem.objects.select_related("product")
            .filter(order=order)
            .order_by("product_id")
        )

    def save_line(self, item: OrderItem) -> OrderItem:
        item.save()
        return item

    def delete_line(self, item: OrderItem) -> None:
        item.delete()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=status,
            notes=notes,
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=status,
        )
        return history

    # ------------------------------------------------------------------
    # Outbox
    # ------------------------------------------------------------------

    @staticmethod
    def _flush_events(entity: Order) -> int:
        events = entity.domain_events
        for event in events:
            OutboxEvent.objects.create(
                event_type=event.event_name,
                aggregate_id=str(event.aggregate_id),
                payload=event.to_payload(),
                topic=OUTBOX_TOPIC,
            )
        entity.clear_domain_events()
        return len(events)
