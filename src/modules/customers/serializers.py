"""Customer DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
It handles HTTP-level concerns: request parsing and response rendering.
Business logic lives in the Service Layer, which receives Pydantic DTOs
from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.customers.dtos import CustomerOutputDTO
from modules.customers.models import Customer

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class AddressSerializer(serializers.Serializer):
    postal_code = serializers.CharField(required=False, allow_blank=True, max_length=9)
    city = serializers.CharField(required=False, allow_blank=True, max_length=120)
    street = serializers.CharField(required=False, allow_blank=True, max_length=255)
    number = serializers.CharField(required=False, allow_blank=True, max_length=20)
    district = serializers.CharField(required=False, allow_blank=True, max_length=120)
    complement = serializers.CharField(
        required=False, allow_blank=True, max_length=255
    )


class UpdateProfileSerializer(serializers.Serializer):
    """Validates ``PATCH /me/``; every field is optional."""

    name = serializers.CharField(required=False, max_length=255)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=20)
    document = serializers.CharField(required=False, allow_blank=True, max_length=14)
    birth_date = serializers.DateField(required=False, allow_null=True)
    address = AddressSerializer(required=False)


class CartItemSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, default=1)
    note = serializers.CharField(required=False, allow_blank=True, default="")
    name = serializers.CharField(required=False, allow_blank=True, default="")
    unit_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, default=0
    )
    image = serializers.CharField(required=False, allow_blank=True, default="")


class CartSerializer(serializers.Serializer):
    items = CartItemSerializer(many=True)


class CartProductSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()


class CartQuantitySerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    delta = serializers.IntegerField()


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class CustomerSerializer(serializers.ModelSerializer):
    """Read serializer for a profile; the CPF is masked."""

    document = serializers.SerializerMethodField()

    class Meta:
        model = Customer
        fields = [
            "id",
            "name",
            "email",
            "phone",
            "role",
            "document",
            "birth_date",
            "postal_code",
            "city",
            "street",
            "number",
            "district",
            "complement",
            "saved_cart",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_document(self, obj: Customer) -> str:
        return CustomerOutputDTO.mask_document(obj.document)
