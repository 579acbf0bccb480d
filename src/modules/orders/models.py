"""Order and OrderStatusHistory models.

Business rules implemented:
- Line items are embedded (``items`` JSON list of product snapshots) and
  the customer/address fields are copied by value at checkout.
- ``total`` is always derived by ``modules.orders.pricing``; it is never
  accepted from a caller.
- ``delivered_at`` is set once, on entering ``entregue``.
- Each status change appends one ``OrderStatusHistory`` row; rows are
  never edited or reordered.
- Order number auto-generated as human-readable identifier.
- Customer FK uses PROTECT to preserve financial history.
- Deletion is a hard delete offered to admins only.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

import structlog
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    ORDER_NUMBER_MAX_RETRIES,
    OrderStatus,
    ShippingMethod,
    ShippingTarget,
)
from modules.orders.dtos import LineItem, OrderTotals
from modules.orders.pricing import compute_totals
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)

MONEY = {"max_digits": 12, "decimal_places": 2, "default": Decimal("0.00")}


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``order_number`` is a human-readable identifier auto-generated on first
    save (format: ``ORD-YYYYMMDD-XXXXXX``).  The UUIDv7 ``id`` is used for
    all internal references and API lookups.

    ``seller`` is set only when a staff member placed the order on a
    customer's behalf.
    """

    order_number = models.CharField(max_length=20, unique=True, editable=False)
    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    seller = models.ForeignKey(
        "customers.Customer",
        on_delete=models.SET_NULL,
        related_name="sold_orders",
        null=True,
        blank=True,
    )

    # Customer snapshot
    customer_name = models.CharField(max_length=255)
    customer_phone = models.CharField(max_length=20, blank=True, default="")
    customer_document = models.CharField(max_length=11, blank=True, default="")
    customer_birth_date = models.DateField(null=True, blank=True)
    postal_code = models.CharField(max_length=9, blank=True, default="")
    city = models.CharField(max_length=120, blank=True, default="")
    street = models.CharField(max_length=255, blank=True, default="")
    number = models.CharField(max_length=20, blank=True, default="")
    district = models.CharField(max_length=120, blank=True, default="")
    complement = models.CharField(max_length=255, blank=True, default="")
    shipping_target = models.CharField(
        max_length=20,
        choices=ShippingTarget.choices,
        default=ShippingTarget.BUYER,
    )

    # Commercial fields
    items = models.JSONField(default=list)
    discount = models.DecimalField(**MONEY)
    shipping_cost = models.DecimalField(**MONEY)
    shipping_method = models.CharField(
        max_length=20,
        choices=ShippingMethod.choices,
        blank=True,
        default="",
    )
    wants_invoice = models.BooleanField(default=False)
    wants_insurance = models.BooleanField(default=False)
    total = models.DecimalField(**MONEY)

    # Lifecycle
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.QUOTE,
    )
    delivered_at = models.DateTimeField(null=True, blank=True)
    tracking_code = models.CharField(max_length=255, blank=True, default="")
    invoice_document = models.CharField(max_length=500, blank=True, default="")

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total__gte=0),
                name="orders_total_non_negative",
            ),
        ]

    # ------------------------------------------------------------------
    # Money
    # ------------------------------------------------------------------

    @property
    def line_items(self) -> list[LineItem]:
        return [LineItem(**item) for item in self.items or []]

    @property
    def totals(self) -> OrderTotals:
        return compute_totals(
            self.line_items,
            self.discount,
            self.shipping_cost,
            self.wants_invoice,
            self.wants_insurance,
        )

    @property
    def tracking_url(self) -> str:
        code = (self.tracking_code or "").strip()
        return code if code.startswith(("http://", "https://")) else ""

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for _ in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    The first row of every order records the initial ``orcamento`` status
    (``old_status`` is ``None``).  Rows are inserted, never updated, so two
    concurrent transitions both keep their entries.  ``actor`` is nullable:
    ``None`` means the customer's own checkout or the system.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status = models.CharField(max_length=20, choices=OrderStatus.choices)
    timestamp = models.DateTimeField(default=timezone.now)
    actor = models.ForeignKey(
        "customers.Customer",
        on_delete=models.SET_NULL,
        related_name="+",
        null=True,
        blank=True,
    )
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["timestamp", "id"]
        indexes = [
            models.Index(
                fields=["order", "timestamp"],
                name="osh_order_timestamp_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order} : {self.old_status} -> {self.new_status}"
