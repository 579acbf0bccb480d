"""Customer repository interface.

Extends ``IRepository[Customer]`` with the session-store operations:
profile lookup by auth user, profile update and cart persistence.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.customers.dtos import CartItem
    from modules.customers.models import Customer


class ICustomerRepository(IRepository["Customer"]):
    """Repository contract for customer profiles."""

    @abstractmethod
    def get_by_user_id(self, user_id: Any) -> Optional[Customer]:
        """Retrieve the live profile owned by an auth user."""

    @abstractmethod
    def save(self, entity: Customer) -> Customer:
        """Persist (create or update) a profile."""

    @abstractmethod
    def update_fields(self, id: Any, changes: Dict[str, Any]) -> Customer:
        """Write only *changes* and return the refreshed profile."""

    @abstractmethod
    def save_cart(self, id: Any, items: Sequence[CartItem]) -> None:
        """Replace the saved cart of a profile."""
