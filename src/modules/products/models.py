"""Catalog product.

Business rules implemented:
- Price is a non-negative currency amount.
- ``available=False`` products are listed but cannot be checked out.
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel); orders
  keep their own snapshot of name, price and image.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)


class Product(SoftDeleteModel):
    """Catalog entry read by checkout to snapshot line items."""

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    image = models.CharField(max_length=500, blank=True, default="")
    category = models.CharField(max_length=120, blank=True, default="", db_index=True)
    available = models.BooleanField(default=True)
    is_promo = models.BooleanField(default=False)

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["available"], name="products_available_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name="products_price_non_negative",
            ),
        ]

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        super().save(*args, **kwargs)
        if is_new:
            logger.info(
                "product_created",
                product_id=str(self.id),
                name=self.name,
                category=self.category,
            )

    def __str__(self) -> str:
        return f"{self.name} (R$ {self.price})"
