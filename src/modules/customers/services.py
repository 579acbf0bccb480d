"""Customer service layer (Use Cases).

Acts as the Customer/Session Store for the order engine: resolves the
acting user into an explicit ``SessionContext``, edits the profile and
persists the saved cart.  Persistence is delegated to the injected
``ICustomerRepository``; postal-code lookups to an ``IAddressLookup``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import structlog

from modules.customers.cart import add_to_cart, change_cart_quantity, remove_from_cart
from modules.customers.dtos import ADDRESS_FIELDS, CartItem, SessionContext
from modules.customers.exceptions import (
    CartItemNotFound,
    CustomerAlreadyExists,
    CustomerNotFound,
)
from modules.customers.models import Customer, CustomerRole

if TYPE_CHECKING:
    from uuid import UUID

    from modules.customers.address_lookup import IAddressLookup
    from modules.customers.dtos import ResolvedAddress, UpdateProfileDTO
    from modules.customers.repositories.interfaces import ICustomerRepository

logger = structlog.get_logger(__name__)


class CustomerService:
    """Application service for profile, session and cart use-cases.

    Receives its collaborators via constructor injection (DIP).
    """

    def __init__(
        self,
        repository: ICustomerRepository,
        address_lookup: Optional[IAddressLookup] = None,
    ) -> None:
        self._repo = repository
        self._address_lookup = address_lookup

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def get_current_customer(self, user: Any) -> Optional[Customer]:
        """Profile of an authenticated user, or ``None`` for anonymous users."""
        if user is None or not getattr(user, "is_authenticated", False):
            return None
        return self._repo.get_by_user_id(user.pk)

    def register_profile(self, user: Any, name: str = "", phone: str = "") -> Customer:
        """Create the profile of *user*. Superusers become admins.

        Raises:
            CustomerAlreadyExists: if the user already owns a profile.
        """
        if self._repo.get_by_user_id(user.pk):
            raise CustomerAlreadyExists(f"User {user.pk} already has a profile.")
        customer = Customer(
            user=user,
            name=name or user.get_full_name() or user.get_username(),
            email=getattr(user, "email", "") or "",
            phone=phone,
            role=CustomerRole.ADMIN if user.is_superuser else CustomerRole.CUSTOMER,
        )
        customer = self._repo.save(customer)
        logger.info(
            "customer.registered", customer_id=str(customer.id), role=customer.role
        )
        return customer

    def resolve_session(self, user: Any) -> SessionContext:
        """Build the explicit session context for *user*, registering a
        profile on first use.

        Raises:
            CustomerNotFound: for anonymous users.
        """
        if user is None or not getattr(user, "is_authenticated", False):
            raise CustomerNotFound("Anonymous users have no profile.")
        customer = self._repo.get_by_user_id(user.pk) or self.register_profile(user)
        return SessionContext.from_entity(customer)

    def get_customer(self, id: Any) -> Customer:
        """Raises ``CustomerNotFound`` if the profile does not exist."""
        customer = self._repo.get_by_id(id)
        if not customer:
            raise CustomerNotFound(f"Customer {id} not found.")
        return customer

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def update_profile(self, id: Any, dto: UpdateProfileDTO) -> Customer:
        """Write the supplied profile fields only.

        A postal-code change fills city/street/district from the address
        lookup when the caller left them blank.
        """
        customer = self.get_customer(id)
        changes: Dict[str, Any] = {}
        for field in ("name", "phone", "document", "birth_date"):
            value = getattr(dto, field)
            if value is not None:
                changes[field] = value

        if dto.address is not None:
            supplied = dto.address.model_dump(exclude_none=True)
            changes.update(supplied)
            new_cep = supplied.get("postal_code")
            if new_cep and new_cep != customer.postal_code:
                changes.update(self.autofill_address(new_cep, supplied))

        if not changes:
            return customer
        return self._repo.update_fields(customer.id, changes)

    def autofill_address(
        self, postal_code: str, supplied: Dict[str, Any]
    ) -> Dict[str, str]:
        """City/street/district from the lookup for fields not in *supplied*."""
        resolved = self.lookup_address(postal_code)
        if resolved is None:
            return {}
        filled: Dict[str, str] = {}
        for field in ("city", "street", "district"):
            value = getattr(resolved, field)
            if value and not supplied.get(field):
                filled[field] = value
        return filled

    def lookup_address(self, postal_code: str) -> Optional[ResolvedAddress]:
        if self._address_lookup is None:
            return None
        return self._address_lookup.resolve(postal_code)

    @staticmethod
    def profile_address(customer: Customer) -> Dict[str, str]:
        return {field: getattr(customer, field) for field in ADDRESS_FIELDS}

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    def get_cart(self, id: Any) -> List[CartItem]:
        customer = self.get_customer(id)
        return [CartItem(**item) for item in customer.saved_cart or []]

    def save_cart(self, id: Any, items: Sequence[CartItem]) -> List[CartItem]:
        items = list(items)
        self._repo.save_cart(id, items)
        return items

    def clear_cart(self, id: Any) -> None:
        self._repo.save_cart(id, [])

    def add_cart_item(self, id: Any, item: CartItem) -> List[CartItem]:
        return self.save_cart(id, add_to_cart(self.get_cart(id), item))

    def remove_cart_item(self, id: Any, product_id: UUID) -> List[CartItem]:
        cart = self.get_cart(id)
        if not any(item.product_id == product_id for item in cart):
            raise CartItemNotFound(f"Product {product_id} is not in the cart.")
        return self.save_cart(id, remove_from_cart(cart, product_id))

    def change_cart_item_quantity(
        self, id: Any, product_id: UUID, delta: int
    ) -> List[CartItem]:
        cart = self.get_cart(id)
        if not any(item.product_id == product_id for item in cart):
            raise CartItemNotFound(f"Product {product_id} is not in the cart.")
        return self.save_cart(id, change_cart_quantity(cart, product_id, delta))
