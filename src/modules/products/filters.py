import django_filters

from modules.products.models import Product


class ProductFilter(django_filters.FilterSet):
    name = django_filters.CharFilter(field_name="name", lookup_expr="icontains")
    category = django_filters.CharFilter(field_name="category", lookup_expr="iexact")
    min_price = django_filters.NumberFilter(field_name="price", lookup_expr="gte")
    max_price = django_filters.NumberFilter(field_name="price", lookup_expr="lte")
    available = django_filters.BooleanFilter(field_name="available")
    promo = django_filters.BooleanFilter(field_name="is_promo")

    class Meta:
        model = Product
        fields = ["name", "category", "min_price", "max_price", "available", "promo"]
