"""Checkout converter: cart + session + options -> new ``orcamento`` order.

The customer snapshot is layered per field, lowest to highest priority:
blank defaults, the target customer's profile, the end customer (when
shipping to one), and finally a staff-supplied override.  Blank values
never override, except that an end customer's CPF and birth date are
never inherited from the buyer.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

import structlog
from django.utils import timezone

from modules.core.exceptions import PersistenceFailure
from modules.customers.dtos import ADDRESS_FIELDS
from modules.customers.exceptions import CustomerNotFound
from modules.orders.constants import MIN_ORDER_VALUE, OrderStatus, ShippingTarget
from modules.orders.dtos import HistoryEntry, LineItem
from modules.orders.events import OrderCreated
from modules.orders.exceptions import BelowMinimumOrder, EmptyCart, OrderAccessDenied
from modules.orders.models import Order
from modules.orders.pricing import compute_subtotal, compute_total
from modules.products.services import ProductService

if TYPE_CHECKING:
    from datetime import datetime

    from modules.customers.dtos import CartItem, SessionContext
    from modules.customers.models import Customer
    from modules.customers.repositories.interfaces import ICustomerRepository
    from modules.orders.dtos import AddressOverride, CheckoutOptions
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)

SNAPSHOT_DEFAULTS: Dict[str, Any] = {
    "customer_name": "",
    "customer_phone": "",
    "customer_document": "",
    "customer_birth_date": None,
    **{field: "" for field in ADDRESS_FIELDS},
}


def _present(value: Any) -> bool:
    return value is not None and value != ""


def _layer(snapshot: Dict[str, Any], values: Dict[str, Any]) -> None:
    for key, value in values.items():
        if _present(value):
            snapshot[key] = value


def resolve_customer_snapshot(
    profile: Any,
    options: CheckoutOptions,
    override: Optional[AddressOverride] = None,
) -> Dict[str, Any]:
    """Order snapshot fields for *profile*, see module docstring."""
    snapshot = dict(SNAPSHOT_DEFAULTS)
    _layer(
        snapshot,
        {
            "customer_name": profile.name,
            "customer_phone": profile.phone,
            "customer_document": profile.document,
            "customer_birth_date": profile.birth_date,
            **{field: getattr(profile, field) for field in ADDRESS_FIELDS},
        },
    )

    end_customer = options.end_customer
    if options.shipping_target == ShippingTarget.END_CUSTOMER and end_customer:
        snapshot["customer_name"] = (
            f"{snapshot['customer_name']} (PARA: {end_customer.name})"
        )
        # The recipient's identity never falls back to the buyer's.
        snapshot["customer_document"] = ""
        snapshot["customer_birth_date"] = None
        _layer(
            snapshot,
            {
                "customer_document": end_customer.document,
                "customer_birth_date": end_customer.birth_date,
                **end_customer.address.model_dump(),
            },
        )

    if override is not None:
        _layer(
            snapshot,
            {
                "customer_name": override.name,
                "customer_phone": override.phone,
                "customer_document": override.document,
                "customer_birth_date": override.birth_date,
                **override.address.model_dump(),
            },
        )
    return snapshot


class CheckoutService:
    """Turns a cart into a persisted order in its initial state.

    Receives repositories via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        customer_repository: ICustomerRepository,
        product_repository: IProductRepository,
        minimum_order_value: Decimal = MIN_ORDER_VALUE,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._order_repo = order_repository
        self._customer_repo = customer_repository
        self._products = ProductService(product_repository)
        self._minimum_order_value = minimum_order_value
        self._clock = clock

    def convert(
        self,
        cart: Sequence[CartItem],
        session: SessionContext,
        options: CheckoutOptions,
        address_override: Optional[AddressOverride] = None,
    ) -> Order:
        """Create an ``orcamento`` order and clear the acting user's cart.

        Discount and shipping cost start at zero (staff assign them later).
        The cart is cleared only after the order was stored.

        Raises:
            EmptyCart: *cart* has no items; nothing is written.
            CustomerNotFound: the acting or target customer does not exist.
            OrderAccessDenied: a non-staff user ordered for someone else.
            ProductNotFound / ProductUnavailable: a cart product cannot be sold.
            BelowMinimumOrder: non-staff subtotal below the shop minimum.
            PersistenceFailure: the order could not be stored; the cart is
                left untouched.
        """
        log = logger.bind(actor_id=str(session.customer_id), role=session.role)

        if not cart:
            log.info("checkout.empty_cart")
            raise EmptyCart("Cannot check out an empty cart.")

        customer = self._resolve_customer(session, address_override)
        items = self._snapshot_items(cart)

        subtotal = compute_subtotal(items)
        if not session.is_staff and subtotal < self._minimum_order_value:
            log.info("checkout.below_minimum", subtotal=str(subtotal))
            raise BelowMinimumOrder(subtotal, self._minimum_order_value)

        on_behalf = session.is_staff and customer.id != session.customer_id
        now = self._clock()
        order = Order(
            customer_id=customer.id,
            seller_id=session.customer_id if on_behalf else None,
            shipping_target=options.shipping_target,
            items=[item.to_json() for item in items],
            discount=Decimal("0.00"),
            shipping_cost=Decimal("0.00"),
            shipping_method=options.shipping_method or "",
            wants_invoice=options.wants_invoice,
            wants_insurance=options.wants_insurance,
            total=compute_total(
                items,
                wants_invoice=options.wants_invoice,
                wants_insurance=options.wants_insurance,
            ),
            status=OrderStatus.QUOTE,
            created_at=now,
            **resolve_customer_snapshot(customer, options, address_override),
        )
        order.add_domain_event(OrderCreated(aggregate_id=order.id))
        entry = HistoryEntry(
            status=OrderStatus.QUOTE,
            timestamp=now,
            actor_id=session.customer_id,
            notes="Order created",
        )

        try:
            order = self._order_repo.create(order, entry)
        except PersistenceFailure:
            log.error("checkout.persistence_failed", item_count=len(items))
            raise

        self._clear_cart(session, log)
        log.info(
            "checkout.completed",
            order_id=str(order.id),
            customer_id=str(customer.id),
            on_behalf=on_behalf,
        )
        return order

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_customer(
        self, session: SessionContext, override: Optional[AddressOverride]
    ) -> Customer:
        target_id = session.customer_id
        if override is not None and override.customer_id is not None:
            if override.customer_id != session.customer_id and not session.is_staff:
                raise OrderAccessDenied("Only staff can order for another customer.")
            target_id = override.customer_id

        customer = self._customer_repo.get_by_id(target_id)
        if not customer:
            raise CustomerNotFound(f"Customer {target_id} not found.")
        return customer

    def _snapshot_items(self, cart: Sequence[CartItem]) -> List[LineItem]:
        items: List[LineItem] = []
        for cart_item in cart:
            product = self._products.snapshot(cart_item.product_id)
            items.append(
                LineItem(
                    product_id=product.product_id,
                    name=product.name,
                    unit_price=product.unit_price,
                    image=product.image,
                    note=cart_item.note,
                    quantity=cart_item.quantity,
                )
            )
        return items

    def _clear_cart(self, session: SessionContext, log) -> None:
        # The order already exists; a cart that failed to clear stays visible.
        try:
            self._customer_repo.save_cart(session.customer_id, [])
        except PersistenceFailure as exc:
            log.warning("checkout.cart_clear_failed", error=str(exc))
