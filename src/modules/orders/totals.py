"""Order total derivation."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Protocol

ZERO = Decimal("0.00")


class HasSubtotal(Protocol):
    subtotal: Decimal


def calculate_total(lines: Iterable[HasSubtotal]) -> Decimal:
    """Sum of line subtotals; ``0.00`` for an order without lines.

    Pure: depends only on the subtotals passed in, so calling it twice on
    the same lines yields the same value.
    """
    return sum((line.subtotal for line in lines), ZERO)
