"""Product DRF serializers (read-only catalog)."""

from __future__ import annotations

from rest_framework import serializers

from modules.products.models import Product


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "description",
            "price",
            "image",
            "category",
            "available",
            "is_promo",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
