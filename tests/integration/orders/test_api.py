"""Integration tests for the order endpoints.

Covers:
- Checkout 201 from the saved cart or explicit items; 422 business errors.
- Staff checkout on a customer's behalf (seller attribution).
- Listing scoped by role, status filter, search and date grouping.
- The full status lifecycle and its role checks.
- Field edits recomputing ``total`` and terminal-state locks.
- 503 with the last known order when a write fails.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest

from modules.core.exceptions import PersistenceFailure
from modules.customers.models import Customer
from modules.orders.constants import OrderStatus
from modules.orders.models import Order, OrderStatusHistory
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.products.models import Product

pytestmark = pytest.mark.integration

ORDERS_URL = "/api/v1/orders/"
CHECKOUT_URL = "/api/v1/orders/checkout/"


def _url(order_id, action: str = "") -> str:
    return f"{ORDERS_URL}{order_id}/{action + '/' if action else ''}"


@pytest.fixture()
def buyer_client(buyer, client_for):
    return client_for(buyer)


@pytest.fixture()
def admin_client(admin_profile, client_for):
    return client_for(admin_profile)


@pytest.fixture()
def vendor_client(vendor, client_for):
    return client_for(vendor)


@pytest.fixture()
def buyer_order(buyer_client, product):
    """A ``orcamento`` order placed by the buyer: 2 x 35.00."""
    response = buyer_client.post(
        CHECKOUT_URL,
        {"items": [{"product_id": str(product.id), "quantity": 2}]},
        format="json",
    )
    assert response.status_code == 201, response.data
    return Order.objects.get(pk=response.data["id"])


@pytest.fixture()
def vendor_order(vendor_client, buyer, product):
    """An order the vendor placed for the buyer (vendor is the seller)."""
    response = vendor_client.post(
        CHECKOUT_URL,
        {
            "items": [{"product_id": str(product.id), "quantity": 1}],
            "address_override": {"customer_id": str(buyer.id)},
        },
        format="json",
    )
    assert response.status_code == 201, response.data
    return Order.objects.get(pk=response.data["id"])


def _set_status(order: Order, status: str) -> Order:
    Order.objects.filter(pk=order.pk).update(status=status)
    order.refresh_from_db()
    return order


# ===========================================================================
# Checkout
# ===========================================================================


class TestCheckout:
    def test_unauthenticated_returns_401(self, api_client):
        response = api_client.post(CHECKOUT_URL, {}, format="json")
        assert response.status_code == 401

    def test_checkout_from_saved_cart(self, buyer, buyer_client, product):
        buyer_client.post(
            "/api/v1/me/cart/add/",
            {"product_id": str(product.id), "quantity": 2, "note": "tamanho M"},
            format="json",
        )

        response = buyer_client.post(
            CHECKOUT_URL, {"wants_invoice": True}, format="json"
        )

        assert response.status_code == 201
        data = response.data
        assert data["status"] == OrderStatus.QUOTE
        assert data["subtotal"] == "70.00"
        assert data["invoice_fee"] == "4.20"
        assert data["total"] == "74.20"
        assert data["items"][0]["note"] == "tamanho M"
        assert data["customer_name"] == "Maria Souza"
        assert data["street"] == "Avenida Paulista"
        assert data["seller_id"] is None
        assert [h["new_status"] for h in data["status_history"]] == [OrderStatus.QUOTE]
        buyer.refresh_from_db()
        assert buyer.saved_cart == []

    def test_total_is_never_taken_from_the_request(self, buyer_client, product):
        response = buyer_client.post(
            CHECKOUT_URL,
            {"items": [{"product_id": str(product.id)}], "total": "0.01"},
            format="json",
        )
        assert response.data["total"] == "35.00"

    def test_empty_cart_returns_422(self, buyer_client):
        response = buyer_client.post(CHECKOUT_URL, {}, format="json")
        assert response.status_code == 422
        assert not Order.objects.exists()

    def test_below_minimum_returns_422(self, buyer_client):
        sticker = Product.objects.create(name="Adesivo", price=Decimal("5.00"))
        response = buyer_client.post(
            CHECKOUT_URL,
            {"items": [{"product_id": str(sticker.id)}]},
            format="json",
        )
        assert response.status_code == 422

    def test_unavailable_product_returns_422(self, buyer_client, unavailable_product):
        response = buyer_client.post(
            CHECKOUT_URL,
            {"items": [{"product_id": str(unavailable_product.id)}]},
            format="json",
        )
        assert response.status_code == 422

    def test_unknown_product_returns_404(self, buyer_client):
        response = buyer_client.post(
            CHECKOUT_URL, {"items": [{"product_id": str(uuid4())}]}, format="json"
        )
        assert response.status_code == 404

    def test_vendor_checkout_on_behalf_of_customer(self, vendor, buyer, vendor_order):
        assert vendor_order.customer_id == buyer.id
        assert vendor_order.seller_id == vendor.id
        assert vendor_order.customer_name == "Maria Souza"

    def test_staff_override_wins_per_field(self, admin_client, buyer, product):
        response = admin_client.post(
            CHECKOUT_URL,
            {
                "items": [{"product_id": str(product.id)}],
                "address_override": {
                    "customer_id": str(buyer.id),
                    "phone": "21900001111",
                    "address": {"street": "Rua Augusta"},
                },
            },
            format="json",
        )

        assert response.status_code == 201
        assert response.data["street"] == "Rua Augusta"
        assert response.data["city"] == "São Paulo"
        assert response.data["customer_phone"] == "21900001111"

    def test_end_customer_shipping(self, buyer_client, product):
        response = buyer_client.post(
            CHECKOUT_URL,
            {
                "items": [{"product_id": str(product.id)}],
                "shipping_target": "end_customer",
                "end_customer": {
                    "name": "João Lima",
                    "document": "529.982.247-25",
                    "birth_date": "1985-07-20",
                    "address": {"city": "Campinas"},
                },
            },
            format="json",
        )

        assert response.status_code == 201
        assert response.data["customer_birth_date"] == "1985-07-20"
        order = Order.objects.get(pk=response.data["id"])
        assert order.customer_document == "52998224725"
        assert response.data["customer_name"] == "Maria Souza (PARA: João Lima)"
        assert response.data["city"] == "Campinas"

    def test_end_customer_invalid_cpf_returns_400(self, buyer_client, product):
        response = buyer_client.post(
            CHECKOUT_URL,
            {
                "items": [{"product_id": str(product.id)}],
                "shipping_target": "end_customer",
                "end_customer": {"name": "João Lima", "document": "111.111.111-11"},
            },
            format="json",
        )

        assert response.status_code == 400
        assert not Order.objects.exists()

    def test_customer_cannot_order_for_someone_else(
        self, buyer_client, vendor, product
    ):
        response = buyer_client.post(
            CHECKOUT_URL,
            {
                "items": [{"product_id": str(product.id)}],
                "address_override": {"customer_id": str(vendor.id)},
            },
            format="json",
        )
        assert response.status_code == 403

    def test_persistence_failure_returns_503_and_keeps_cart(
        self, buyer, buyer_client, product
    ):
        buyer_client.post(
            "/api/v1/me/cart/add/", {"product_id": str(product.id)}, format="json"
        )

        with patch.object(
            OrderDjangoRepository, "create", side_effect=PersistenceFailure("down")
        ):
            response = buyer_client.post(CHECKOUT_URL, {}, format="json")

        assert response.status_code == 503
        buyer.refresh_from_db()
        assert len(buyer.saved_cart) == 1


# ===========================================================================
# Queries
# ===========================================================================


class TestOrderQueries:
    def test_customer_lists_only_own_orders(
        self, buyer_client, buyer_order, profile_factory, client_for
    ):
        stranger = profile_factory("estranho")

        assert len(buyer_client.get(ORDERS_URL).data) == 1
        assert client_for(stranger).get(ORDERS_URL).data == []

    def test_vendor_lists_only_attributed_orders(
        self, vendor_client, buyer_order, vendor_order
    ):
        response = vendor_client.get(ORDERS_URL)
        assert [o["id"] for o in response.data] == [str(vendor_order.id)]

    def test_default_listing_hides_cancelled(
        self, admin_client, buyer_order, vendor_order
    ):
        _set_status(buyer_order, OrderStatus.CANCELLED)

        assert len(admin_client.get(ORDERS_URL).data) == 1
        cancelled = admin_client.get(ORDERS_URL, {"status": "cancelado"}).data
        assert [o["id"] for o in cancelled] == [str(buyer_order.id)]

    def test_search(self, admin_client, buyer_order):
        assert len(admin_client.get(ORDERS_URL, {"q": "camiseta"}).data) == 1
        assert admin_client.get(ORDERS_URL, {"q": "inexistente"}).data == []

    def test_grouped_listing(self, admin_client, buyer_order):
        response = admin_client.get(ORDERS_URL, {"grouped": "true"})
        assert [o["id"] for o in response.data["today"]] == [str(buyer_order.id)]
        assert response.data["yesterday"] == []

    def test_retrieve_own_order(self, buyer_client, buyer_order):
        response = buyer_client.get(_url(buyer_order.id))
        assert response.status_code == 200
        assert response.data["order_number"] == buyer_order.order_number

    def test_retrieve_other_customers_order_is_forbidden(
        self, buyer_order, profile_factory, client_for
    ):
        stranger = client_for(profile_factory("estranho"))
        assert stranger.get(_url(buyer_order.id)).status_code == 403

    def test_retrieve_missing_returns_404(self, admin_client):
        assert admin_client.get(_url(uuid4())).status_code == 404


# ===========================================================================
# Status lifecycle
# ===========================================================================


class TestLifecycle:
    def test_full_forward_path(self, admin_client, buyer_order):
        assert admin_client.post(_url(buyer_order.id, "finalize")).status_code == 200
        assert (
            admin_client.post(_url(buyer_order.id, "confirm-payment")).status_code
            == 200
        )
        response = admin_client.post(
            _url(buyer_order.id, "dispatch"), {"tracking_code": "BR123"}, format="json"
        )
        assert response.data["tracking_code"] == "BR123"

        response = admin_client.post(_url(buyer_order.id, "deliver"))
        assert response.status_code == 200
        assert response.data["status"] == OrderStatus.DELIVERED
        assert response.data["delivered_at"] is not None

        history = admin_client.get(_url(buyer_order.id, "history")).data
        assert [h["new_status"] for h in history] == [
            OrderStatus.QUOTE,
            OrderStatus.AWAITING_PAYMENT,
            OrderStatus.PREPARING,
            OrderStatus.IN_TRANSIT,
            OrderStatus.DELIVERED,
        ]

    def test_second_delivery_rejected(self, admin_client, buyer_order):
        _set_status(buyer_order, OrderStatus.IN_TRANSIT)
        admin_client.post(_url(buyer_order.id, "deliver"))

        response = admin_client.post(_url(buyer_order.id, "deliver"))

        assert response.status_code == 400
        assert OrderStatusHistory.objects.filter(order=buyer_order).count() == 2

    def test_illegal_jump_rejected(self, admin_client, buyer_order):
        response = admin_client.post(
            _url(buyer_order.id, "transition"), {"status": "entregue"}, format="json"
        )

        assert response.status_code == 400
        buyer_order.refresh_from_db()
        assert buyer_order.status == OrderStatus.QUOTE

    def test_generic_transition_with_notes(self, admin_client, buyer_order):
        response = admin_client.post(
            _url(buyer_order.id, "transition"),
            {"status": "realizado", "notes": "cliente confirmou"},
            format="json",
        )

        assert response.status_code == 200
        assert response.data["status"] == OrderStatus.FINALIZED
        assert response.data["status_history"][-1]["notes"] == "cliente confirmou"

    def test_customer_cannot_change_status(self, buyer_client, buyer_order):
        response = buyer_client.post(_url(buyer_order.id, "cancel"))
        assert response.status_code == 403

    def test_vendor_advances_attributed_order(self, vendor_client, vendor_order):
        response = vendor_client.post(_url(vendor_order.id, "finalize"))
        assert response.status_code == 200

    def test_vendor_cannot_confirm_payment(self, vendor_client, vendor_order):
        _set_status(vendor_order, OrderStatus.AWAITING_PAYMENT)
        response = vendor_client.post(_url(vendor_order.id, "confirm-payment"))
        assert response.status_code == 403

    def test_other_vendor_is_rejected(self, other_vendor, client_for, vendor_order):
        response = client_for(other_vendor).post(_url(vendor_order.id, "cancel"))
        assert response.status_code == 403

    def test_register_return(self, admin_client, buyer_order):
        response = admin_client.post(_url(buyer_order.id, "return"))
        assert response.data["status"] == OrderStatus.RETURNED


# ===========================================================================
# Edits
# ===========================================================================


class TestEdits:
    def test_financials_recompute_total(self, admin_client, buyer_order):
        response = admin_client.patch(
            _url(buyer_order.id, "financials"),
            {
                "discount": "10.00",
                "shipping_cost": "15.00",
                "shipping_method": "Motoboy",
            },
            format="json",
        )

        assert response.status_code == 200
        assert response.data["total"] == "75.00"
        assert response.data["shipping_method"] == "Motoboy"

    def test_pickup_zeroes_shipping(self, admin_client, buyer_order):
        response = admin_client.patch(
            _url(buyer_order.id, "financials"),
            {"shipping_cost": "15.00", "shipping_method": "Retirada"},
            format="json",
        )
        assert response.data["shipping_cost"] == "0.00"
        assert response.data["total"] == "70.00"

    def test_fees(self, admin_client, buyer_order):
        response = admin_client.patch(
            _url(buyer_order.id, "fees"),
            {"wants_invoice": True, "wants_insurance": True},
            format="json",
        )
        assert response.data["total"] == "76.30"

    def test_item_editing(self, admin_client, buyer_order, product, second_product):
        response = admin_client.post(
            _url(buyer_order.id, "items/add"),
            {"product_id": str(second_product.id)},
            format="json",
        )
        assert response.data["total"] == "119.90"

        response = admin_client.post(
            _url(buyer_order.id, "items/quantity"),
            {"product_id": str(product.id), "delta": -1},
            format="json",
        )
        assert response.data["total"] == "84.90"

        response = admin_client.post(
            _url(buyer_order.id, "items/remove"),
            {"product_id": str(second_product.id)},
            format="json",
        )
        assert response.data["total"] == "35.00"
        assert response.data["status"] == OrderStatus.QUOTE

    def test_replace_items_uses_catalog_prices(
        self, admin_client, buyer_order, product, second_product
    ):
        Product.objects.filter(pk=product.pk).update(price=Decimal("99.00"))

        response = admin_client.patch(
            _url(buyer_order.id, "items"),
            {
                "items": [
                    {
                        "product_id": str(product.id),
                        "name": "Camiseta Personalizada",
                        "unit_price": "0.01",
                        "quantity": 3,
                    },
                    {"product_id": str(second_product.id)},
                ]
            },
            format="json",
        )

        assert response.status_code == 200
        names = [item["name"] for item in response.data["items"]]
        assert names == ["Camiseta Básica", "Boné Aba Reta"]
        # existing line keeps 35.00 from checkout; new line priced by the catalog
        assert response.data["total"] == "154.90"

    def test_replace_items_rejects_unknown_product(self, admin_client, buyer_order):
        response = admin_client.patch(
            _url(buyer_order.id, "items"),
            {"items": [{"product_id": str(uuid4()), "quantity": 1}]},
            format="json",
        )

        assert response.status_code == 404
        buyer_order.refresh_from_db()
        assert buyer_order.total == Decimal("70.00")

    @pytest.mark.parametrize("status", [OrderStatus.PREPARING, OrderStatus.IN_TRANSIT])
    def test_commercial_edit_locked_once_paid(self, admin_client, buyer_order, status):
        _set_status(buyer_order, status)

        response = admin_client.patch(
            _url(buyer_order.id, "financials"), {"discount": "60.00"}, format="json"
        )

        assert response.status_code == 409
        buyer_order.refresh_from_db()
        assert buyer_order.total == Decimal("70.00")

    def test_commercial_edit_locked_after_delivery(self, admin_client, buyer_order):
        _set_status(buyer_order, OrderStatus.DELIVERED)
        response = admin_client.patch(
            _url(buyer_order.id, "financials"), {"discount": "5.00"}, format="json"
        )
        assert response.status_code == 409

    def test_address_edit(self, admin_client, buyer_order):
        with patch(
            "modules.customers.address_lookup.ViaCepAddressLookup.resolve",
            return_value=None,
        ):
            response = admin_client.patch(
                _url(buyer_order.id, "address"),
                {"postal_code": "13010-000", "city": "Campinas"},
                format="json",
            )
        assert response.status_code == 200
        assert response.data["postal_code"] == "13010000"
        assert response.data["city"] == "Campinas"
        assert response.data["street"] == "Avenida Paulista"

    def test_tracking_code_only_while_in_transit(self, admin_client, buyer_order):
        response = admin_client.patch(
            _url(buyer_order.id, "tracking"), {"tracking_code": "BR1"}, format="json"
        )
        assert response.status_code == 409

        _set_status(buyer_order, OrderStatus.IN_TRANSIT)
        response = admin_client.patch(
            _url(buyer_order.id, "tracking"),
            {"tracking_code": "https://rastreio.example/BR1"},
            format="json",
        )
        assert response.data["tracking_url"] == "https://rastreio.example/BR1"

    def test_attach_invoice(self, admin_client, buyer_order):
        _set_status(buyer_order, OrderStatus.PREPARING)
        response = admin_client.patch(
            _url(buyer_order.id, "invoice"),
            {"invoice_document": "notas/nf-0001.pdf"},
            format="json",
        )
        assert response.data["invoice_document"] == "notas/nf-0001.pdf"

    def test_write_failure_returns_last_known_order(self, admin_client, buyer_order):
        with patch.object(
            OrderDjangoRepository, "merge", side_effect=PersistenceFailure("down")
        ):
            response = admin_client.patch(
                _url(buyer_order.id, "financials"), {"discount": "5.00"}, format="json"
            )

        assert response.status_code == 503
        assert response.data["last_known"]["discount"] == "0.00"
        buyer_order.refresh_from_db()
        assert buyer_order.discount == Decimal("0.00")


# ===========================================================================
# Messaging and deletion
# ===========================================================================


class TestMessagingAndDelete:
    def test_whatsapp_status_link(self, admin_client, buyer_order):
        response = admin_client.get(_url(buyer_order.id, "whatsapp"))
        assert response.status_code == 200
        assert response.data["url"].startswith("https://wa.me/5511987654321?text=")

    def test_tracking_link_without_code_returns_409(self, admin_client, buyer_order):
        response = admin_client.get(
            _url(buyer_order.id, "whatsapp"), {"kind": "tracking"}
        )
        assert response.status_code == 409

    def test_admin_deletes_order(self, admin_client, buyer_order):
        response = admin_client.delete(_url(buyer_order.id))
        assert response.status_code == 204
        assert not Order.objects.filter(pk=buyer_order.pk).exists()
        assert Customer.objects.filter(pk=buyer_order.customer_id).exists()

    def test_vendor_cannot_delete(self, vendor_client, vendor_order):
        response = vendor_client.delete(_url(vendor_order.id))
        assert response.status_code == 403
        assert Order.objects.filter(pk=vendor_order.pk).exists()
