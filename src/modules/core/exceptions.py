"""Infrastructure-level exceptions shared by every module.

Domain modules raise their own business exceptions (see
``modules.orders.exceptions``).  Anything that goes wrong *below* the
domain (lost connections, constraint violations, deadlocks) reaches the
caller as a single ``RecordStoreError`` so it can choose its own retry
policy.  The core never retries.
"""

from __future__ import annotations

import functools
from typing import Any, Callable, TypeVar

import structlog
from django.db import DatabaseError

logger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class RecordStoreError(Exception):
    """The record store failed to complete a read or write."""


def translate_store_errors(func: F) -> F:
    """Re-raise ``DatabaseError`` from *func* as ``RecordStoreError``.

    Must wrap the ``transaction.atomic`` decorator (not the other way
    round) so the transaction is already rolled back when the caller sees
    the error.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except DatabaseError as exc:
            logger.error(
                "record_store.failure",
                operation=func.__qualname__,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise RecordStoreError(str(exc)) from exc

    return wrapper  # type: ignore[return-value]
