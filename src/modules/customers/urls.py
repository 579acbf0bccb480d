"""Customer URL configuration."""

from __future__ import annotations

from django.urls import path
from rest_framework.routers import SimpleRouter

from modules.customers.views import AddressLookupViewSet, ProfileViewSet

router = SimpleRouter(trailing_slash=True)
router.register("addresses", AddressLookupViewSet, basename="address")

urlpatterns = [
    path(
        "me/",
        ProfileViewSet.as_view({"get": "retrieve", "patch": "partial_update"}),
        name="me",
    ),
    path(
        "me/cart/",
        ProfileViewSet.as_view({"get": "cart", "put": "replace_cart"}),
        name="me-cart",
    ),
    path(
        "me/cart/add/",
        ProfileViewSet.as_view({"post": "add_item"}),
        name="me-cart-add",
    ),
    path(
        "me/cart/remove/",
        ProfileViewSet.as_view({"post": "remove_item"}),
        name="me-cart-remove",
    ),
    path(
        "me/cart/quantity/",
        ProfileViewSet.as_view({"post": "change_quantity"}),
        name="me-cart-quantity",
    ),
    *router.urls,
]
