"""Product DTOs for the Service Layer.

``ProductSnapshot`` is what checkout freezes into an order line item:
identifier, name, unit price and image at the moment of purchase.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from modules.products.models import Product


class ProductSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    name: str
    unit_price: Decimal
    image: str = ""
    available: bool = True

    @classmethod
    def from_entity(cls, product: Product) -> ProductSnapshot:
        return cls(
            product_id=product.id,
            name=product.name,
            unit_price=product.price,
            image=product.image,
            available=product.available,
        )
