"""Order API views.

Exposes ``CheckoutService`` and ``OrderService`` via HTTP using a DRF
ViewSet.  Domain exceptions are caught and translated into HTTP status
codes; the view never swallows generic exceptions.
"""

from __future__ import annotations

from typing import Any, Callable

import structlog
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.exceptions import PersistenceFailure
from modules.customers.address_lookup import ViaCepAddressLookup
from modules.customers.dtos import Address, CartItem, SessionContext
from modules.customers.exceptions import CustomerNotFound
from modules.customers.serializers import AddressSerializer
from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.customers.services import CustomerService
from modules.orders.checkout import CheckoutService
from modules.orders.dtos import (
    AddressOverride,
    CheckoutOptions,
    EndCustomer,
    ItemSelection,
    UpdateFinancialsDTO,
)
from modules.orders.exceptions import (
    BelowMinimumOrder,
    EmptyCart,
    InvalidTransition,
    LineItemNotFound,
    OrderAccessDenied,
    OrderLocked,
    OrderNotFound,
)
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    AddItemSerializer,
    CheckoutSerializer,
    DispatchSerializer,
    FeesSerializer,
    FinancialsSerializer,
    InvoiceSerializer,
    ItemQuantitySerializer,
    ItemsSerializer,
    MessageQuerySerializer,
    NotesSerializer,
    OrderListSerializer,
    OrderQuerySerializer,
    OrderSerializer,
    RemoveItemSerializer,
    StatusHistorySerializer,
    TrackingSerializer,
    TransitionSerializer,
)
from modules.orders.services import OrderService
from modules.products.exceptions import ProductNotFound, ProductUnavailable
from modules.products.repositories.django_repository import ProductDjangoRepository

logger = structlog.get_logger(__name__)

ERROR_STATUS = {
    OrderNotFound: status.HTTP_404_NOT_FOUND,
    CustomerNotFound: status.HTTP_404_NOT_FOUND,
    ProductNotFound: status.HTTP_404_NOT_FOUND,
    LineItemNotFound: status.HTTP_404_NOT_FOUND,
    InvalidTransition: status.HTTP_400_BAD_REQUEST,
    ProductUnavailable: status.HTTP_422_UNPROCESSABLE_ENTITY,
    OrderAccessDenied: status.HTTP_403_FORBIDDEN,
    OrderLocked: status.HTTP_409_CONFLICT,
    EmptyCart: status.HTTP_422_UNPROCESSABLE_ENTITY,
    BelowMinimumOrder: status.HTTP_422_UNPROCESSABLE_ENTITY,
}
DOMAIN_ERRORS = tuple(ERROR_STATUS)


def _error_response(exc: Exception) -> Response:
    code = next(
        (ERROR_STATUS[klass] for klass in type(exc).__mro__ if klass in ERROR_STATUS),
        status.HTTP_400_BAD_REQUEST,
    )
    return Response({"detail": str(exc)}, status=code)


def _address(data: Any) -> Address:
    return Address(**data) if data else Address()


class OrderViewSet(GenericViewSet):
    """ViewSet for order checkout, staff actions and queries.

    Does **not** extend ``ModelViewSet``; all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.none()
    serializer_class = OrderSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        order_repository = OrderDjangoRepository()
        customer_repository = CustomerDjangoRepository()
        product_repository = ProductDjangoRepository()
        self._customers = CustomerService(repository=customer_repository)
        self._service = OrderService(
            order_repository=order_repository,
            product_repository=product_repository,
            address_lookup=ViaCepAddressLookup(),
        )
        self._checkout = CheckoutService(
            order_repository=order_repository,
            customer_repository=customer_repository,
            product_repository=product_repository,
        )

    def get_throttles(self) -> list[BaseThrottle]:
        """Pick the throttle scope for the current action."""
        throttle_scope: str | None
        if self.action == "checkout":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _session(self, request: Request) -> SessionContext:
        return self._customers.resolve_session(request.user)

    def _run(
        self,
        call: Callable[[], Any],
        success_status: int = status.HTTP_200_OK,
    ) -> Response:
        """Execute a service call and render the order or the mapped error."""
        try:
            order = call()
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except PersistenceFailure as exc:
            body: dict[str, Any] = {"detail": str(exc)}
            if exc.last_known is not None:
                body["last_known"] = OrderSerializer(exc.last_known).data
            return Response(body, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        if order is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response(OrderSerializer(order).data, status=success_status)

    def _validated(self, serializer_class, request: Request) -> dict:
        serializer = serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    # ------------------------------------------------------------------
    # List / Retrieve / Destroy
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/?status=all|active|<status>&q=<text>&grouped=true

        ``all`` (default) hides cancelled orders.  Vendors only see orders
        attributed to them; customers only their own.
        """
        query = OrderQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        session = self._session(request)
        try:
            orders = self._service.list_orders(session, params["status"], params["q"])
        except PersistenceFailure as exc:
            return Response(
                {"detail": str(exc)}, status=status.HTTP_503_SERVICE_UNAVAILABLE
            )

        if params["grouped"]:
            groups = self._service.group_orders(orders)
            return Response(
                {
                    "today": OrderListSerializer(groups.today, many=True).data,
                    "yesterday": OrderListSerializer(groups.yesterday, many=True).data,
                    "older": OrderListSerializer(groups.older, many=True).data,
                }
            )
        return Response(OrderListSerializer(orders, many=True).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        session = self._session(request)
        return self._run(lambda: self._service.get_order_for(session, pk))

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/orders/{pk}/ (admin only, irreversible)"""
        session = self._session(request)
        return self._run(lambda: self._service.delete_order(session, pk))

    @action(detail=True, methods=["get"])
    def history(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/history/"""
        session = self._session(request)
        try:
            entries = self._service.get_history(session, pk)
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)
        return Response(StatusHistorySerializer(entries, many=True).data)

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    @action(detail=False, methods=["post"])
    def checkout(self, request: Request) -> Response:
        """POST /api/v1/orders/checkout/

        Returns 201 with the new order.  On 503 the cart is left intact and
        the request can be retried.
        """
        data = self._validated(CheckoutSerializer, request)
        session = self._session(request)

        try:
            if "items" in data:
                cart = [CartItem(**item) for item in data["items"]]
            else:
                cart = self._customers.get_cart(session.customer_id)

            end_customer = data.get("end_customer")
            options = CheckoutOptions(
                wants_invoice=data["wants_invoice"],
                wants_insurance=data["wants_insurance"],
                shipping_method=data.get("shipping_method") or None,
                shipping_target=data["shipping_target"],
                end_customer=(
                    EndCustomer(
                        name=end_customer["name"],
                        document=end_customer.get("document"),
                        birth_date=end_customer.get("birth_date"),
                        address=_address(end_customer.get("address")),
                    )
                    if end_customer
                    else None
                ),
            )
            override_data = data.get("address_override")
            override = None
            if override_data:
                override_data = dict(override_data)
                address = _address(override_data.pop("address", None))
                override = AddressOverride(**override_data, address=address)
        except PydanticValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return self._run(
            lambda: self._checkout.convert(cart, session, options, override),
            success_status=status.HTTP_201_CREATED,
        )

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def transition(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/transition/ ``{"status": ..., "notes": ...}``"""
        data = self._validated(TransitionSerializer, request)
        session = self._session(request)
        return self._run(
            lambda: self._service.change_status(
                session, pk, data["status"], data["notes"]
            )
        )

    @action(detail=True, methods=["post"])
    def finalize(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/finalize/"""
        data = self._validated(NotesSerializer, request)
        session = self._session(request)
        return self._run(
            lambda: self._service.finalize_sale(session, pk, data["notes"])
        )

    @action(detail=True, methods=["post"], url_path="confirm-payment")
    def confirm_payment(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/confirm-payment/ (admin only)"""
        data = self._validated(NotesSerializer, request)
        session = self._session(request)
        return self._run(
            lambda: self._service.confirm_payment(session, pk, data["notes"])
        )

    @action(detail=True, methods=["post"], url_path="dispatch")
    def ship(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/dispatch/ ``{"tracking_code": ...}``"""
        data = self._validated(DispatchSerializer, request)
        session = self._session(request)
        return self._run(
            lambda: self._service.dispatch(
                session, pk, data["tracking_code"] or None, data["notes"]
            )
        )

    @action(detail=True, methods=["post"])
    def deliver(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/deliver/"""
        data = self._validated(NotesSerializer, request)
        session = self._session(request)
        return self._run(
            lambda: self._service.mark_delivered(session, pk, data["notes"])
        )

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/"""
        data = self._validated(NotesSerializer, request)
        session = self._session(request)
        return self._run(lambda: self._service.cancel(session, pk, data["notes"]))

    @action(detail=True, methods=["post"], url_path="return")
    def register_return(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/return/"""
        data = self._validated(NotesSerializer, request)
        session = self._session(request)
        return self._run(
            lambda: self._service.register_return(session, pk, data["notes"])
        )

    # ------------------------------------------------------------------
    # Field edits
    # ------------------------------------------------------------------

    @action(detail=True, methods=["patch"])
    def items(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/items/ replaces the item list."""
        data = self._validated(ItemsSerializer, request)
        session = self._session(request)
        items = [ItemSelection(**item) for item in data["items"]]
        return self._run(lambda: self._service.update_items(session, pk, items))

    @action(detail=True, methods=["post"], url_path="items/add")
    def add_item(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/items/add/"""
        data = self._validated(AddItemSerializer, request)
        session = self._session(request)
        return self._run(
            lambda: self._service.add_item(
                session, pk, data["product_id"], data["quantity"], data["note"]
            )
        )

    @action(detail=True, methods=["post"], url_path="items/remove")
    def remove_item(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/items/remove/"""
        data = self._validated(RemoveItemSerializer, request)
        session = self._session(request)
        return self._run(
            lambda: self._service.remove_item(session, pk, data["product_id"])
        )

    @action(detail=True, methods=["post"], url_path="items/quantity")
    def change_item_quantity(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/items/quantity/ ``{"product_id", "delta"}``"""
        data = self._validated(ItemQuantitySerializer, request)
        session = self._session(request)
        return self._run(
            lambda: self._service.change_item_quantity(
                session, pk, data["product_id"], data["delta"]
            )
        )

    @action(detail=True, methods=["patch"])
    def financials(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/financials/"""
        data = self._validated(FinancialsSerializer, request)
        session = self._session(request)
        dto = UpdateFinancialsDTO(**data)
        return self._run(lambda: self._service.update_financials(session, pk, dto))

    @action(detail=True, methods=["patch"])
    def fees(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/fees/"""
        data = self._validated(FeesSerializer, request)
        session = self._session(request)
        return self._run(
            lambda: self._service.toggle_fees(
                session, pk, data["wants_invoice"], data["wants_insurance"]
            )
        )

    @action(detail=True, methods=["patch"])
    def address(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/address/"""
        data = self._validated(AddressSerializer, request)
        session = self._session(request)
        address = Address(**data)
        return self._run(lambda: self._service.update_address(session, pk, address))

    @action(detail=True, methods=["patch"])
    def tracking(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/tracking/ (only while in transit)"""
        data = self._validated(TrackingSerializer, request)
        session = self._session(request)
        return self._run(
            lambda: self._service.update_tracking_code(
                session, pk, data["tracking_code"]
            )
        )

    @action(detail=True, methods=["patch"])
    def invoice(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/invoice/"""
        data = self._validated(InvoiceSerializer, request)
        session = self._session(request)
        return self._run(
            lambda: self._service.attach_invoice(
                session, pk, data["invoice_document"]
            )
        )

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    @action(detail=True, methods=["get"])
    def whatsapp(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/whatsapp/?kind=status|contact|tracking"""
        query = MessageQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        session = self._session(request)
        try:
            link = self._service.message_link(session, pk, query.validated_data["kind"])
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)
        if link is None:
            return Response(
                {"detail": "Order has no tracking code."},
                status=status.HTTP_409_CONFLICT,
            )
        return Response({"url": link})
