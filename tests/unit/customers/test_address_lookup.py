"""Unit tests for the ViaCEP postal-code lookup (no network)."""

from __future__ import annotations

import httpx
import pytest

from modules.customers.address_lookup import ViaCepAddressLookup, normalize_postal_code

pytestmark = pytest.mark.unit

BASE_URL = "https://viacep.example/ws"

VIACEP_BODY = {
    "cep": "01310-100",
    "logradouro": "Avenida Paulista",
    "bairro": "Bela Vista",
    "localidade": "São Paulo",
    "uf": "SP",
}


def _lookup(handler) -> ViaCepAddressLookup:
    return ViaCepAddressLookup(base_url=BASE_URL, transport=httpx.MockTransport(handler))


class TestViaCepAddressLookup:
    def test_resolves_known_postal_code(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json=VIACEP_BODY)

        resolved = _lookup(handler).resolve("01310-100")

        assert seen == ["/ws/01310100/json/"]
        assert resolved.postal_code == "01310100"
        assert resolved.city == "São Paulo"
        assert resolved.street == "Avenida Paulista"
        assert resolved.district == "Bela Vista"
        assert resolved.state == "SP"

    def test_unknown_postal_code_returns_none(self):
        lookup = _lookup(lambda request: httpx.Response(200, json={"erro": True}))
        assert lookup.resolve("99999999") is None

    def test_malformed_postal_code_skips_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        assert _lookup(handler).resolve("123") is None

    def test_http_error_returns_none(self):
        lookup = _lookup(lambda request: httpx.Response(500))
        assert lookup.resolve("01310100") is None

    def test_network_error_returns_none(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        assert _lookup(handler).resolve("01310100") is None

    def test_non_json_body_returns_none(self):
        lookup = _lookup(lambda request: httpx.Response(200, text="<html>"))
        assert lookup.resolve("01310100") is None


def test_normalize_postal_code():
    assert normalize_postal_code("01310-100") == "01310100"
    assert normalize_postal_code("") == ""
