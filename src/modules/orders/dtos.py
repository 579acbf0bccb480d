"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``LineItem``: a product snapshot embedded in an order.
- ``ItemSelection``: a staff item-list edit (product, quantity, note).
- ``HistoryEntry``: one status-history record.
- ``CheckoutOptions`` / ``AddressOverride`` / ``EndCustomer``: checkout input.
- ``UpdateFinancialsDTO``: staff edit of discount, shipping cost and method.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from validate_docbr import CPF

from modules.customers.dtos import Address
from modules.orders.constants import ShippingMethod, ShippingTarget

# ---------------------------------------------------------------------------
# Order parts
# ---------------------------------------------------------------------------


class LineItem(BaseModel):
    """Catalog product frozen into an order.

    ``quantity`` never reaches 0 while the item is present; removal
    deletes the entry instead.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    name: str
    unit_price: Decimal = Field(ge=0)
    image: str = ""
    note: str = ""
    quantity: int = Field(default=1, ge=1)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class ItemSelection(BaseModel):
    """A product and quantity chosen by staff when rewriting an order's items.

    Name, price and image are never taken from the caller; they come from the
    line already in the order or from the catalog.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int = Field(default=1, ge=1)
    note: str = ""


class HistoryEntry(BaseModel):
    """Audit record produced by a valid status transition."""

    model_config = ConfigDict(frozen=True)

    status: str
    timestamp: datetime
    old_status: Optional[str] = None
    actor_id: Optional[UUID] = None
    notes: str = ""


class OrderTotals(BaseModel):
    """Calculator output; ``total`` is never negative."""

    model_config = ConfigDict(frozen=True)

    subtotal: Decimal
    invoice_fee: Decimal
    insurance_fee: Decimal
    total: Decimal


# ---------------------------------------------------------------------------
# Checkout input
# ---------------------------------------------------------------------------


class EndCustomer(BaseModel):
    """Recipient of a dropshipping order.

    CPF and birth date replace the buyer's in the order snapshot; the
    buyer's phone stays the contact number.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    document: Optional[str] = None
    birth_date: Optional[date] = None
    address: Address = Address()

    @field_validator("document", mode="before")
    @classmethod
    def validate_document(cls, v):
        if v is None or v == "":
            return v
        digits = re.sub(r"\D", "", str(v))
        if not CPF().validate(digits):
            raise ValueError("Invalid CPF number.")
        return digits


class CheckoutOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    wants_invoice: bool = False
    wants_insurance: bool = False
    shipping_method: Optional[ShippingMethod] = None
    shipping_target: ShippingTarget = ShippingTarget.BUYER
    end_customer: Optional[EndCustomer] = None


class AddressOverride(BaseModel):
    """Staff-supplied snapshot fields; ``customer_id`` selects the customer
    the order is placed for.  ``None`` fields fall back to the profile."""

    model_config = ConfigDict(frozen=True)

    customer_id: Optional[UUID] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    document: Optional[str] = None
    birth_date: Optional[date] = None
    address: Address = Address()


# ---------------------------------------------------------------------------
# Edits
# ---------------------------------------------------------------------------


class UpdateFinancialsDTO(BaseModel):
    """All fields optional; only supplied ones are written."""

    model_config = ConfigDict(frozen=True)

    discount: Optional[Decimal] = Field(default=None, ge=0)
    shipping_cost: Optional[Decimal] = Field(default=None, ge=0)
    shipping_method: Optional[ShippingMethod] = None
