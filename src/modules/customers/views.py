"""Customer API views.

Exposes the ``CustomerService`` (profile, saved cart and postal-code
lookup) via HTTP using DRF ViewSets.  Domain exceptions are caught and
translated into appropriate HTTP status codes.
"""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.exceptions import PersistenceFailure
from modules.customers.address_lookup import ViaCepAddressLookup
from modules.customers.cart import cart_subtotal
from modules.customers.dtos import Address, CartItem, UpdateProfileDTO
from modules.customers.exceptions import CartItemNotFound, CustomerNotFound
from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.customers.serializers import (
    CartItemSerializer,
    CartProductSerializer,
    CartQuantitySerializer,
    CartSerializer,
    CustomerSerializer,
    UpdateProfileSerializer,
)
from modules.customers.services import CustomerService


def build_customer_service() -> CustomerService:
    return CustomerService(
        repository=CustomerDjangoRepository(),
        address_lookup=ViaCepAddressLookup(),
    )


def _unavailable(exc: PersistenceFailure) -> Response:
    return Response(
        {"detail": str(exc)},
        status=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


class ProfileViewSet(GenericViewSet):
    """``/me/`` and ``/me/cart/``: the authenticated user's own profile."""

    serializer_class = CustomerSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_customer_service()

    def _customer_id(self, request: Request):
        return self._service.resolve_session(request.user).customer_id

    def _cart_response(self, items) -> Response:
        return Response(
            {
                "items": [item.model_dump(mode="json") for item in items],
                "subtotal": str(cart_subtotal(items)),
            }
        )

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def retrieve(self, request: Request) -> Response:
        """GET /api/v1/me/"""
        customer = self._service.get_customer(self._customer_id(request))
        return Response(CustomerSerializer(customer).data)

    def partial_update(self, request: Request) -> Response:
        """PATCH /api/v1/me/

        Changing ``address.postal_code`` fills blank city/street/district
        from the postal-code lookup.
        """
        serializer = UpdateProfileSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        address = data.pop("address", None)

        try:
            dto = UpdateProfileDTO(
                **data,
                address=Address(**address) if address is not None else None,
            )
        except PydanticValidationError as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            customer = self._service.update_profile(self._customer_id(request), dto)
        except CustomerNotFound:
            return Response(
                {"detail": "Customer not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        except PersistenceFailure as exc:
            return _unavailable(exc)
        return Response(CustomerSerializer(customer).data)

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    def cart(self, request: Request) -> Response:
        """GET /api/v1/me/cart/"""
        return self._cart_response(self._service.get_cart(self._customer_id(request)))

    def replace_cart(self, request: Request) -> Response:
        """PUT /api/v1/me/cart/"""
        serializer = CartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        items = [CartItem(**item) for item in serializer.validated_data["items"]]
        try:
            items = self._service.save_cart(self._customer_id(request), items)
        except PersistenceFailure as exc:
            return _unavailable(exc)
        return self._cart_response(items)

    def add_item(self, request: Request) -> Response:
        """POST /api/v1/me/cart/add/"""
        serializer = CartItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            items = self._service.add_cart_item(
                self._customer_id(request), CartItem(**serializer.validated_data)
            )
        except PersistenceFailure as exc:
            return _unavailable(exc)
        return self._cart_response(items)

    def remove_item(self, request: Request) -> Response:
        """POST /api/v1/me/cart/remove/"""
        serializer = CartProductSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            items = self._service.remove_cart_item(
                self._customer_id(request), serializer.validated_data["product_id"]
            )
        except CartItemNotFound as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        except PersistenceFailure as exc:
            return _unavailable(exc)
        return self._cart_response(items)

    def change_quantity(self, request: Request) -> Response:
        """POST /api/v1/me/cart/quantity/"""
        serializer = CartQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            items = self._service.change_cart_item_quantity(
                self._customer_id(request), data["product_id"], data["delta"]
            )
        except CartItemNotFound as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        except PersistenceFailure as exc:
            return _unavailable(exc)
        return self._cart_response(items)


class AddressLookupViewSet(GenericViewSet):
    """GET /api/v1/addresses/{postal_code}/"""

    lookup_field = "postal_code"
    lookup_value_regex = r"[0-9-]+"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_customer_service()

    def retrieve(self, request: Request, postal_code: str | None = None) -> Response:
        resolved = self._service.lookup_address(postal_code or "")
        if resolved is None:
            return Response(
                {"detail": "Postal code not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(resolved.model_dump())
