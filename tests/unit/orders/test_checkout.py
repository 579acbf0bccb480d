"""Unit tests for the checkout converter with mocked repositories."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from modules.core.exceptions import PersistenceFailure
from modules.customers.dtos import Address, CartItem, SessionContext
from modules.customers.exceptions import CustomerNotFound
from modules.customers.models import Customer, CustomerRole
from modules.orders.checkout import CheckoutService, resolve_customer_snapshot
from modules.orders.constants import OrderStatus, ShippingTarget
from modules.orders.dtos import AddressOverride, CheckoutOptions, EndCustomer
from modules.orders.events import OrderCreated
from modules.orders.exceptions import BelowMinimumOrder, EmptyCart, OrderAccessDenied
from modules.products.exceptions import ProductNotFound, ProductUnavailable
from modules.products.models import Product

pytestmark = pytest.mark.unit

NOW = datetime(2024, 5, 10, 14, 30, tzinfo=timezone.utc)


@pytest.fixture()
def profile() -> Customer:
    return Customer(
        name="Maria Souza",
        phone="11987654321",
        document="59860184275",
        birth_date=date(1990, 4, 1),
        postal_code="01310100",
        city="São Paulo",
        street="Avenida Paulista",
        number="1000",
        district="Bela Vista",
    )


@pytest.fixture()
def shirt() -> Product:
    return Product(name="Camiseta", price=Decimal("35.00"), image="camiseta.png")


@pytest.fixture()
def repos(profile, shirt):
    order_repo = MagicMock()
    order_repo.create.side_effect = lambda order, entry: order
    customer_repo = MagicMock()
    customer_repo.get_by_id.side_effect = lambda id: (
        profile if id == profile.id else None
    )
    product_repo = MagicMock()
    product_repo.get_by_id.side_effect = lambda id: shirt if id == shirt.id else None
    return order_repo, customer_repo, product_repo


@pytest.fixture()
def service(repos):
    order_repo, customer_repo, product_repo = repos
    return CheckoutService(
        order_repository=order_repo,
        customer_repository=customer_repo,
        product_repository=product_repo,
        minimum_order_value=Decimal("20.00"),
        clock=lambda: NOW,
    )


def _session(customer: Customer, role: str = CustomerRole.CUSTOMER) -> SessionContext:
    return SessionContext(customer_id=customer.id, role=role, name=customer.name)


class TestConvert:
    def test_creates_quote_order_and_clears_cart(self, service, repos, profile, shirt):
        order_repo, customer_repo, _ = repos
        cart = [CartItem(product_id=shirt.id, quantity=2, note="tamanho M")]

        order = service.convert(
            cart, _session(profile), CheckoutOptions(wants_invoice=True)
        )

        assert order.status == OrderStatus.QUOTE
        assert order.customer_id == profile.id
        assert order.seller_id is None
        assert order.total == Decimal("74.20")
        assert order.discount == Decimal("0.00")
        assert order.items == [
            {
                "product_id": str(shirt.id),
                "name": "Camiseta",
                "unit_price": "35.00",
                "image": "camiseta.png",
                "note": "tamanho M",
                "quantity": 2,
            }
        ]
        assert order.customer_name == "Maria Souza"
        assert order.city == "São Paulo"
        assert order.created_at == NOW

        entry = order_repo.create.call_args.args[1]
        assert entry.status == OrderStatus.QUOTE
        assert entry.old_status is None
        assert [type(e) for e in order.domain_events] == [OrderCreated]
        customer_repo.save_cart.assert_called_once_with(profile.id, [])

    def test_empty_cart_writes_nothing(self, service, repos, profile):
        order_repo, customer_repo, _ = repos

        with pytest.raises(EmptyCart):
            service.convert([], _session(profile), CheckoutOptions())

        order_repo.create.assert_not_called()
        customer_repo.save_cart.assert_not_called()

    def test_persistence_failure_leaves_cart_untouched(
        self, service, repos, profile, shirt
    ):
        order_repo, customer_repo, _ = repos
        order_repo.create.side_effect = PersistenceFailure("database is down")

        with pytest.raises(PersistenceFailure):
            service.convert(
                [CartItem(product_id=shirt.id)], _session(profile), CheckoutOptions()
            )

        customer_repo.save_cart.assert_not_called()

    def test_cart_clear_failure_still_returns_order(
        self, service, repos, profile, shirt
    ):
        _, customer_repo, _ = repos
        customer_repo.save_cart.side_effect = PersistenceFailure("timeout")

        order = service.convert(
            [CartItem(product_id=shirt.id)], _session(profile), CheckoutOptions()
        )

        assert order.status == OrderStatus.QUOTE

    def test_below_minimum_rejected_for_customers(self, service, repos, profile):
        cheap = Product(name="Adesivo", price=Decimal("5.00"))
        repos[2].get_by_id.side_effect = lambda id: cheap

        with pytest.raises(BelowMinimumOrder) as exc_info:
            service.convert(
                [CartItem(product_id=cheap.id)], _session(profile), CheckoutOptions()
            )

        assert exc_info.value.subtotal == Decimal("5.00")

    def test_staff_bypass_minimum(self, service, repos, profile):
        cheap = Product(name="Adesivo", price=Decimal("5.00"))
        repos[2].get_by_id.side_effect = lambda id: cheap

        order = service.convert(
            [CartItem(product_id=cheap.id)],
            _session(profile, CustomerRole.ADMIN),
            CheckoutOptions(),
        )

        assert order.total == Decimal("5.00")

    def test_unknown_product(self, service, profile):
        with pytest.raises(ProductNotFound):
            service.convert(
                [CartItem(product_id=Product().id)], _session(profile), CheckoutOptions()
            )

    def test_unavailable_product(self, service, profile, shirt):
        shirt.available = False
        with pytest.raises(ProductUnavailable):
            service.convert(
                [CartItem(product_id=shirt.id)], _session(profile), CheckoutOptions()
            )

    def test_prices_come_from_catalog_not_cart(self, service, profile, shirt):
        cart = [CartItem(product_id=shirt.id, unit_price=Decimal("1.00"), quantity=1)]
        order = service.convert(cart, _session(profile), CheckoutOptions())
        assert order.total == Decimal("35.00")


class TestOnBehalfCheckout:
    def test_vendor_ordering_for_customer_is_attributed_seller(
        self, service, repos, profile, shirt
    ):
        _, customer_repo, _ = repos
        vendor = Customer(name="Carlos Vendas", role=CustomerRole.VENDOR)
        session = _session(vendor, CustomerRole.VENDOR)

        order = service.convert(
            [CartItem(product_id=shirt.id)],
            session,
            CheckoutOptions(),
            AddressOverride(customer_id=profile.id),
        )

        assert order.customer_id == profile.id
        assert order.seller_id == vendor.id
        # The acting vendor's cart is the one cleared.
        customer_repo.save_cart.assert_called_once_with(vendor.id, [])

    def test_customer_cannot_order_for_someone_else(self, service, profile, shirt):
        other = Customer(name="Outra Pessoa")
        with pytest.raises(OrderAccessDenied):
            service.convert(
                [CartItem(product_id=shirt.id)],
                _session(other),
                CheckoutOptions(),
                AddressOverride(customer_id=profile.id),
            )

    def test_unknown_target_customer(self, service, shirt):
        admin = Customer(name="Gerente", role=CustomerRole.ADMIN)
        with pytest.raises(CustomerNotFound):
            service.convert(
                [CartItem(product_id=shirt.id)],
                _session(admin, CustomerRole.ADMIN),
                CheckoutOptions(),
                AddressOverride(customer_id=Customer().id),
            )


class TestResolveCustomerSnapshot:
    def test_override_wins_per_field(self, profile):
        override = AddressOverride(address=Address(street="Rua Augusta"))

        snapshot = resolve_customer_snapshot(profile, CheckoutOptions(), override)

        assert snapshot["street"] == "Rua Augusta"
        assert snapshot["city"] == "São Paulo"
        assert snapshot["customer_name"] == "Maria Souza"

    def test_blank_override_values_do_not_erase_profile(self, profile):
        override = AddressOverride(name="", address=Address(city=""))

        snapshot = resolve_customer_snapshot(profile, CheckoutOptions(), override)

        assert snapshot["customer_name"] == "Maria Souza"
        assert snapshot["city"] == "São Paulo"

    def test_missing_profile_fields_fall_back_to_blank_defaults(self):
        bare = Customer(name="Sem Endereço")
        snapshot = resolve_customer_snapshot(bare, CheckoutOptions())
        assert snapshot["street"] == ""
        assert snapshot["customer_birth_date"] is None

    def test_end_customer_shipping(self, profile):
        options = CheckoutOptions(
            shipping_target=ShippingTarget.END_CUSTOMER,
            end_customer=EndCustomer(
                name="João Lima", address=Address(city="Campinas", street="Rua B")
            ),
        )

        snapshot = resolve_customer_snapshot(profile, options)

        assert snapshot["customer_name"] == "Maria Souza (PARA: João Lima)"
        assert snapshot["customer_phone"] == "11987654321"
        assert snapshot["city"] == "Campinas"
        assert snapshot["district"] == "Bela Vista"

    def test_end_customer_identity_replaces_buyer(self, profile):
        options = CheckoutOptions(
            shipping_target=ShippingTarget.END_CUSTOMER,
            end_customer=EndCustomer(
                name="João Lima",
                document="529.982.247-25",
                birth_date=date(1985, 7, 20),
            ),
        )

        snapshot = resolve_customer_snapshot(profile, options)

        assert snapshot["customer_document"] == "52998224725"
        assert snapshot["customer_birth_date"] == date(1985, 7, 20)

    def test_end_customer_never_inherits_buyer_document(self, profile):
        options = CheckoutOptions(
            shipping_target=ShippingTarget.END_CUSTOMER,
            end_customer=EndCustomer(name="João Lima"),
        )

        snapshot = resolve_customer_snapshot(profile, options)

        assert snapshot["customer_document"] == ""
        assert snapshot["customer_birth_date"] is None

    def test_end_customer_document_must_be_a_valid_cpf(self):
        with pytest.raises(ValidationError):
            EndCustomer(name="João Lima", document="111.111.111-11")
