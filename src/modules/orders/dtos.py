"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
DTOs are immutable (``frozen=True``).

- ``AddToCartDTO``: customer adds a product to the open cart.
- ``AddOrderLineDTO``: employee adds a product to an existing order.
- ``OrderLineOutputDTO``: output for a single line.
- ``StatusHistoryDTO``: output for a status history record.
- ``OrderOutputDTO``: output with lines and history.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderItem, OrderStatusHistory


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class _QuantityDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class AddToCartDTO(_QuantityDTO):
    """Immutable DTO for add-to-cart requests.

    ``customer_id`` is resolved by the identity layer; the unit price is
    looked up from the catalog by the Service Layer.
    """

    customer_id: UUID


class AddOrderLineDTO(_QuantityDTO):
    """Immutable DTO for an employee adding a product to an order."""

    order_id: UUID


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderLineOutputDTO(BaseModel):
    """Immutable DTO for a single order line."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    product_id: UUID
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    reserved_quantity: int

    @classmethod
    def from_entity(cls, item: OrderItem) -> OrderLineOutputDTO:
        return cls(
            id=item.id,
            product_id=item.product_id,
            product_name=item.product.name,  # type: ignore[attr-defined]
            quantity=item.quantity,
            unit_price=item.unit_price,
            subtotal=item.subtotal,
            reserved_quantity=item.reserved_quantity,
        )


class StatusHistoryDTO(BaseModel):
    """Immutable DTO for order status history records."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    old_status: Optional[str]
    new_status: str
    notes: str
    created_at: datetime

    @classmethod
    def from_entity(cls, history: OrderStatusHistory) -> StatusHistoryDTO:
        return cls(
            id=history.id,
            old_status=history.old_status,
            new_status=history.new_status,
            notes=history.notes,
            created_at=history.created_at,
        )


class OrderOutputDTO(BaseModel):
    """Immutable DTO for order responses."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    customer_id: UUID
    status: str
    total_amount: Decimal
    notes: str
    created_at: datetime
    updated_at: datetime
    confirmed_at: Optional[datetime]
    lines: List[OrderLineOutputDTO]
    history: List[StatusHistoryDTO]

    @classmethod
    def from_entity(cls, order: Order) -> OrderOutputDTO:
        """Build an output DTO from an Order model instance.

        Assumes ``items`` and ``status_history`` are prefetched.
        """
        return cls(
            id=order.id,
            customer_id=order.customer_id,
            status=order.status,
            total_amount=order.total_amount,
            notes=order.notes,
            created_at=order.created_at,
            updated_at=order.updated_at,
            confirmed_at=order.confirmed_at,
            lines=[OrderLineOutputDTO.from_entity(item) for item in order.items.all()],
            history=[StatusHistoryDTO.from_entity(h) for h in order.status_history.all()],
        )
