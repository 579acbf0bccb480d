"""Customer profile: role, contact data, default address and saved cart.

Business rules implemented:
- Each authenticated user owns at most one profile (``user`` one-to-one).
- ``role`` decides staff capabilities: ``vendor`` and ``admin`` are staff.
- ``document`` (CPF) is optional, stored as digits and validated with
  *validate-docbr* when present.
- ``saved_cart`` persists the cart between sessions as a list of
  cart item dicts (see ``modules.customers.cart``).
- Soft delete via ``deleted_at``; orders keep pointing at retired profiles.
"""

from __future__ import annotations

import re

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from validate_docbr import CPF

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)


class CustomerRole(models.TextChoices):
    CUSTOMER = "customer", "Cliente"
    VENDOR = "vendor", "Vendedor"
    ADMIN = "admin", "Administrador"


STAFF_ROLES = frozenset({CustomerRole.VENDOR, CustomerRole.ADMIN})


class Customer(SoftDeleteModel):
    """Shop profile attached to an auth user.

    The address fields are the defaults copied into an order snapshot at
    checkout; later edits here never touch existing orders.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="customer_profile",
        null=True,
        blank=True,
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(max_length=254, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")
    role = models.CharField(
        max_length=10,
        choices=CustomerRole.choices,
        default=CustomerRole.CUSTOMER,
    )
    document = models.CharField(max_length=11, blank=True, default="")
    birth_date = models.DateField(null=True, blank=True)

    postal_code = models.CharField(max_length=9, blank=True, default="")
    city = models.CharField(max_length=120, blank=True, default="")
    street = models.CharField(max_length=255, blank=True, default="")
    number = models.CharField(max_length=20, blank=True, default="")
    district = models.CharField(max_length=120, blank=True, default="")
    complement = models.CharField(max_length=255, blank=True, default="")

    saved_cart = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "customers"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["-created_at"], name="customers_created_idx"),
            models.Index(fields=["role"], name="customers_role_idx"),
        ]

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    @property
    def is_staff_member(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == CustomerRole.ADMIN

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _sanitize_document(value: str) -> str:
        return re.sub(r"\D", "", value)

    def clean(self) -> None:
        super().clean()
        if not self.document:
            return
        self.document = self._sanitize_document(self.document)
        if not CPF().validate(self.document):
            logger.warning(
                "customer.invalid_document",
                document_suffix=self.document[-4:],
            )
            raise ValidationError({"document": "Invalid CPF number."})

    def save(self, *args, **kwargs) -> None:
        if self.document:
            self.document = self._sanitize_document(self.document)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.name} ({self.get_role_display()})"
