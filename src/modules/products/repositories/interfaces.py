"""Product repository interface.

Read-only contract of the catalog store: lookup by id and filtered
listing (see ``IRepository``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(IRepository["Product"]):
    """Repository contract for catalog products."""
