"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.  ``total`` is output-only everywhere.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.customers.serializers import AddressSerializer
from modules.orders.constants import OrderStatus, ShippingMethod, ShippingTarget
from modules.orders.models import Order, OrderStatusHistory

MONEY = {"max_digits": 12, "decimal_places": 2, "min_value": 0}

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class ItemSelectionSerializer(serializers.Serializer):
    """Product and quantity only; names and prices come from the catalog."""

    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, default=1)
    note = serializers.CharField(required=False, allow_blank=True, default="")


class EndCustomerSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    document = serializers.CharField(required=False, allow_blank=True, max_length=14)
    birth_date = serializers.DateField(required=False, allow_null=True)
    address = AddressSerializer(required=False)


class AddressOverrideSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=20)
    document = serializers.CharField(required=False, allow_blank=True, max_length=14)
    birth_date = serializers.DateField(required=False, allow_null=True)
    address = AddressSerializer(required=False)


class CheckoutSerializer(serializers.Serializer):
    """``items`` defaults to the acting user's saved cart when omitted."""

    items = ItemSelectionSerializer(many=True, required=False)
    wants_invoice = serializers.BooleanField(required=False, default=False)
    wants_insurance = serializers.BooleanField(required=False, default=False)
    shipping_method = serializers.ChoiceField(
        choices=ShippingMethod.choices, required=False, allow_null=True
    )
    shipping_target = serializers.ChoiceField(
        choices=ShippingTarget.choices, required=False, default=ShippingTarget.BUYER
    )
    end_customer = EndCustomerSerializer(required=False, allow_null=True)
    address_override = AddressOverrideSerializer(required=False, allow_null=True)


class NotesSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class TransitionSerializer(NotesSerializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)


class DispatchSerializer(NotesSerializer):
    tracking_code = serializers.CharField(
        required=False, allow_blank=True, max_length=255, default=""
    )


class ItemsSerializer(serializers.Serializer):
    items = ItemSelectionSerializer(many=True, allow_empty=True)


class AddItemSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, default=1)
    note = serializers.CharField(required=False, allow_blank=True, default="")


class RemoveItemSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()


class ItemQuantitySerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    delta = serializers.IntegerField()


class FinancialsSerializer(serializers.Serializer):
    discount = serializers.DecimalField(required=False, **MONEY)
    shipping_cost = serializers.DecimalField(required=False, **MONEY)
    shipping_method = serializers.ChoiceField(
        choices=ShippingMethod.choices, required=False
    )


class FeesSerializer(serializers.Serializer):
    wants_invoice = serializers.BooleanField(
        required=False, allow_null=True, default=None
    )
    wants_insurance = serializers.BooleanField(
        required=False, allow_null=True, default=None
    )


class TrackingSerializer(serializers.Serializer):
    tracking_code = serializers.CharField(allow_blank=True, max_length=255)


class InvoiceSerializer(serializers.Serializer):
    invoice_document = serializers.CharField(max_length=500)


class OrderQuerySerializer(serializers.Serializer):
    status = serializers.CharField(required=False, default="all")
    q = serializers.CharField(required=False, allow_blank=True, default="")
    grouped = serializers.BooleanField(required=False, default=False)


class MessageQuerySerializer(serializers.Serializer):
    kind = serializers.ChoiceField(
        choices=["status", "contact", "tracking"], required=False, default="status"
    )


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class StatusHistorySerializer(serializers.ModelSerializer):
    """Read serializer for order status history records."""

    actor_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "old_status",
            "new_status",
            "timestamp",
            "actor_id",
            "notes",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer with the fee breakdown and the full history."""

    customer_id = serializers.UUIDField(read_only=True)
    seller_id = serializers.UUIDField(read_only=True, allow_null=True)
    status_label = serializers.CharField(source="get_status_display", read_only=True)
    subtotal = serializers.SerializerMethodField()
    invoice_fee = serializers.SerializerMethodField()
    insurance_fee = serializers.SerializerMethodField()
    tracking_url = serializers.CharField(read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "seller_id",
            "customer_name",
            "customer_phone",
            "customer_birth_date",
            "postal_code",
            "city",
            "street",
            "number",
            "district",
            "complement",
            "shipping_target",
            "items",
            "subtotal",
            "discount",
            "shipping_cost",
            "shipping_method",
            "wants_invoice",
            "invoice_fee",
            "wants_insurance",
            "insurance_fee",
            "total",
            "status",
            "status_label",
            "delivered_at",
            "tracking_code",
            "tracking_url",
            "invoice_document",
            "created_at",
            "updated_at",
            "status_history",
        ]
        read_only_fields = fields

    def get_subtotal(self, obj: Order) -> str:
        return str(obj.totals.subtotal)

    def get_invoice_fee(self, obj: Order) -> str:
        return str(obj.totals.invoice_fee)

    def get_insurance_fee(self, obj: Order) -> str:
        return str(obj.totals.insurance_fee)


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order lists (no history)."""

    customer_id = serializers.UUIDField(read_only=True)
    seller_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "seller_id",
            "customer_name",
            "customer_phone",
            "city",
            "items",
            "total",
            "status",
            "shipping_method",
            "tracking_code",
            "created_at",
        ]
        read_only_fields = fields
