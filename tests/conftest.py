from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from modules.customers.models import Customer, CustomerRole
from modules.products.models import Product

User = get_user_model()


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


def make_profile(username: str, role: str = CustomerRole.CUSTOMER, **fields) -> Customer:
    user = User.objects.create_user(username=username, password="testpass123")
    return Customer.objects.create(
        user=user,
        name=fields.pop("name", username.title()),
        role=role,
        **fields,
    )


@pytest.fixture()
def profile_factory():
    return make_profile


@pytest.fixture()
def buyer():
    return make_profile(
        "maria",
        name="Maria Souza",
        phone="(11) 98765-4321",
        postal_code="01310100",
        city="São Paulo",
        street="Avenida Paulista",
        number="1000",
        district="Bela Vista",
    )


@pytest.fixture()
def vendor():
    return make_profile("vendedor", role=CustomerRole.VENDOR, name="Carlos Vendas")


@pytest.fixture()
def other_vendor():
    return make_profile("vendedora", role=CustomerRole.VENDOR, name="Ana Vendas")


@pytest.fixture()
def admin_profile():
    return make_profile("gerente", role=CustomerRole.ADMIN, name="Gerente Loja")


@pytest.fixture()
def client_for():
    """Factory: APIClient force-authenticated as the profile's user."""

    def build(profile: Customer) -> APIClient:
        client = APIClient()
        client.force_authenticate(user=profile.user)
        return client

    return build


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.fixture()
def product():
    return Product.objects.create(
        name="Camiseta Básica",
        price=Decimal("35.00"),
        image="https://cdn.example.com/camiseta.png",
        category="roupas",
    )


@pytest.fixture()
def second_product():
    return Product.objects.create(
        name="Boné Aba Reta",
        price=Decimal("49.90"),
        category="acessorios",
    )


@pytest.fixture()
def unavailable_product():
    return Product.objects.create(
        name="Jaqueta Esgotada",
        price=Decimal("199.00"),
        available=False,
    )
