"""Order domain constants.

Defines status choices and the default transition table of the order
state machine.  The table is only a default: deployments override it with
the ``ORDER_STATE_TRANSITIONS`` setting.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    CART = "CART", "Cart"
    PENDING = "PENDING", "Pending"
    PROCESSING = "PROCESSING", "Processing"
    SHIPPED = "SHIPPED", "Shipped"
    DELIVERED = "DELIVERED", "Delivered"


# Fulfilment sequence; CART leaves it only through Confirm.
FULFILMENT_SEQUENCE: tuple[str, ...] = (
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)

# Any later stage is accepted, skipping stages included.
DEFAULT_STATE_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.CART: set(),
    **{
        status: set(FULFILMENT_SEQUENCE[index + 1 :])
        for index, status in enumerate(FULFILMENT_SEQUENCE)
    },
}

TERMINAL_STATES: set[str] = {OrderStatus.DELIVERED}

# Orders whose lines hold live stock reservations.
RESERVING_STATES: set[str] = set(FULFILMENT_SEQUENCE)

OUTBOX_TOPIC = "orders"
