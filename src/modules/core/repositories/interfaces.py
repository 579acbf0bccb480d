"""Generic repository interface (Dependency Inversion Principle).

Provides ``IRepository[T]``, the base abstract class that the domain
repository interfaces extend.  Services depend on this abstraction and
receive concrete implementations through their constructors, which keeps
them testable with ``MagicMock`` stand-ins.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Iterable, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base generic repository contract.

    Type parameter ``T`` is the record managed by the repository
    (``Order``, ``Customer``, ``Product``).
    """

    @abstractmethod
    def get_by_id(self, id: Any) -> Optional[T]:
        """Retrieve a record by primary key, or ``None`` if missing."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> Iterable[T]:
        """List records, optionally narrowed by field lookups."""
