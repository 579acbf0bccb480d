"""Customer DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CartItem``: one entry of a saved cart.
- ``Address``: the six address fields shared by profiles and orders.
- ``SessionContext``: the acting user, passed explicitly into every
  engine call instead of being read from ambient state.
- ``UpdateProfileDTO`` / ``CustomerOutputDTO``: profile edits and output.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from validate_docbr import CPF

if TYPE_CHECKING:
    from modules.customers.models import Customer

ADDRESS_FIELDS = ("postal_code", "city", "street", "number", "district", "complement")


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------


class CartItem(BaseModel):
    """A product placed in the cart.

    ``name``/``unit_price``/``image`` are display copies taken when the
    product was added; checkout re-reads them from the catalog.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int = Field(default=1, ge=1)
    note: str = ""
    name: str = ""
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    image: str = ""


# ---------------------------------------------------------------------------
# Address
# ---------------------------------------------------------------------------


class Address(BaseModel):
    """Address fields; ``None`` means "not supplied" when layering sources."""

    model_config = ConfigDict(frozen=True)

    postal_code: Optional[str] = None
    city: Optional[str] = None
    street: Optional[str] = None
    number: Optional[str] = None
    district: Optional[str] = None
    complement: Optional[str] = None

    @field_validator("postal_code", mode="before")
    @classmethod
    def sanitize_postal_code(cls, v):
        if isinstance(v, str):
            return re.sub(r"\D", "", v)
        return v


class ResolvedAddress(BaseModel):
    """Answer of the postal-code lookup."""

    model_config = ConfigDict(frozen=True)

    postal_code: str
    city: str = ""
    street: str = ""
    district: str = ""
    state: str = ""


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class SessionContext(BaseModel):
    """Explicit acting-user context handed to checkout and authorization."""

    model_config = ConfigDict(frozen=True)

    customer_id: UUID
    role: str
    name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_vendor(self) -> bool:
        return self.role == "vendor"

    @property
    def is_staff(self) -> bool:
        return self.role in ("admin", "vendor")

    @classmethod
    def from_entity(cls, customer: Customer) -> SessionContext:
        return cls(customer_id=customer.id, role=customer.role, name=customer.name)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class UpdateProfileDTO(BaseModel):
    """Partial profile update; only supplied fields are written."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    phone: Optional[str] = None
    document: Optional[str] = None
    birth_date: Optional[date] = None
    address: Optional[Address] = None

    @field_validator("document", mode="before")
    @classmethod
    def validate_document(cls, v):
        if v is None or v == "":
            return v
        digits = re.sub(r"\D", "", str(v))
        if not CPF().validate(digits):
            raise ValueError("Invalid CPF number.")
        return digits


class CustomerOutputDTO(BaseModel):
    """Profile as returned by the API; the CPF is masked (``***1234``)."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    email: str
    phone: str
    role: str
    document: str
    birth_date: Optional[date]
    address: Address
    saved_cart: list[CartItem]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def mask_document(raw_document: str) -> str:
        if not raw_document:
            return ""
        return f"***{raw_document[-4:]}"

    @classmethod
    def from_entity(cls, customer: Customer) -> CustomerOutputDTO:
        return cls(
            id=customer.id,
            name=customer.name,
            email=customer.email,
            phone=customer.phone,
            role=customer.role,
            document=cls.mask_document(customer.document),
            birth_date=customer.birth_date,
            address=Address(
                **{field: getattr(customer, field) for field in ADDRESS_FIELDS}
            ),
            saved_cart=[CartItem(**item) for item in customer.saved_cart or []],
            is_active=customer.is_active,
            created_at=customer.created_at,
            updated_at=customer.updated_at,
        )
