"""Django ORM implementation of the Product repository.

Satisfies ``IProductRepository`` using Django's QuerySet API.
Error handling follows the Null Object pattern: methods return ``None``
instead of raising; the Service Layer decides how to translate a missing
entity into an API response.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from django.core.exceptions import ValidationError
from django.db import models

from modules.products.models import Product
from modules.products.repositories.interfaces import IProductRepository


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: Any) -> Optional[Product]:
        """Retrieve a live product by primary key.

        Returns ``None`` for non-existent, retired or invalid IDs.
        """
        try:
            return Product.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> models.QuerySet:
        """List live products with optional Django ORM look-ups, e.g.
        ``{"category": "bolos", "available": True}``."""
        queryset = Product.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return queryset
