"""Generic repository contract shared by every aggregate.

Services receive an ``IRepository`` implementation through their
constructor and never touch the ORM directly; the Django implementations
live next to each module's models.  Every mutating method is expected to
run inside the caller's transaction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union
from uuid import UUID

T = TypeVar("T")

EntityId = Union[str, UUID]


class IRepository(ABC, Generic[T]):
    """Persistence port for one aggregate root ``T``."""

    @abstractmethod
    def get_by_id(self, id: EntityId) -> Optional[T]:
        """The aggregate stored under *id*, or ``None``."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[T]: ...

    @abstractmethod
    def save(self, entity: T) -> T:
        """Insert or update *entity*, flushing any pending domain events."""

    @abstractmethod
    def delete(self, id: EntityId) -> bool:
        """Hard-delete the aggregate.  ``False`` when nothing matched."""
