"""Django ORM implementation of the Customer repository.

Satisfies ``ICustomerRepository`` using Django's QuerySet API.
Missing records come back as ``None`` (the Service Layer decides how to
translate that); database errors are raised as ``PersistenceFailure``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from modules.core.exceptions import PersistenceFailure
from modules.customers.dtos import CartItem
from modules.customers.models import Customer
from modules.customers.repositories.interfaces import ICustomerRepository

logger = structlog.get_logger(__name__)


class CustomerDjangoRepository(ICustomerRepository):
    """Concrete Customer repository backed by Django ORM."""

    def get_by_id(self, id: Any) -> Optional[Customer]:
        """Retrieve a live profile by primary key.

        Returns ``None`` for non-existent or invalid IDs (e.g. malformed UUID).
        """
        try:
            return Customer.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_user_id(self, user_id: Any) -> Optional[Customer]:
        return Customer.objects.alive().filter(user_id=user_id).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Customer]:
        """List live profiles with optional Django ORM look-ups, e.g.
        ``{"role": "vendor"}``."""
        queryset = Customer.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def save(self, entity: Customer) -> Customer:
        is_new = entity._state.adding
        try:
            with transaction.atomic():
                entity.save()
        except DatabaseError as exc:
            logger.error("customer.save_failed", error=str(exc))
            raise PersistenceFailure(str(exc)) from exc
        logger.info("customer.saved", customer_id=str(entity.id), is_new=is_new)
        return entity

    def update_fields(self, id: Any, changes: Dict[str, Any]) -> Customer:
        try:
            with transaction.atomic():
                Customer.objects.filter(pk=id).update(
                    **changes, updated_at=timezone.now()
                )
                customer = Customer.objects.get(pk=id)
        except DatabaseError as exc:
            logger.error("customer.update_failed", customer_id=str(id), error=str(exc))
            raise PersistenceFailure(str(exc)) from exc
        logger.info("customer.updated", customer_id=str(id), fields=sorted(changes))
        return customer

    def save_cart(self, id: Any, items: Sequence[CartItem]) -> None:
        payload = [item.model_dump(mode="json") for item in items]
        try:
            Customer.objects.filter(pk=id).update(
                saved_cart=payload, updated_at=timezone.now()
            )
        except DatabaseError as exc:
            logger.error(
                "customer.cart_save_failed", customer_id=str(id), error=str(exc)
            )
            raise PersistenceFailure(str(exc)) from exc
        logger.info("customer.cart_saved", customer_id=str(id), items=len(payload))
