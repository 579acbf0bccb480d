"""Unit tests for the pure cart helpers."""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from modules.customers.cart import (
    add_to_cart,
    cart_subtotal,
    change_cart_quantity,
    remove_from_cart,
)
from modules.customers.dtos import CartItem

pytestmark = pytest.mark.unit


@pytest.fixture()
def shirt() -> CartItem:
    return CartItem(
        product_id=uuid4(), name="Camiseta", unit_price=Decimal("35.00"), quantity=2
    )


class TestAddToCart:
    def test_appends_new_product(self, shirt):
        cart = add_to_cart([], shirt)
        assert cart == [shirt]

    def test_merges_quantity_for_same_product(self, shirt):
        cart = add_to_cart([shirt], shirt.model_copy(update={"quantity": 3}))
        assert len(cart) == 1
        assert cart[0].quantity == 5

    def test_new_note_replaces_old_one(self, shirt):
        stored = shirt.model_copy(update={"note": "tamanho M"})
        cart = add_to_cart([stored], shirt.model_copy(update={"note": "tamanho G"}))
        assert cart[0].note == "tamanho G"

    def test_blank_note_keeps_old_one(self, shirt):
        stored = shirt.model_copy(update={"note": "tamanho M"})
        cart = add_to_cart([stored], shirt)
        assert cart[0].note == "tamanho M"

    def test_input_cart_is_not_mutated(self, shirt):
        original = [shirt]
        add_to_cart(original, shirt)
        assert original[0].quantity == 2


class TestChangeQuantity:
    def test_shifts_quantity(self, shirt):
        cart = change_cart_quantity([shirt], shirt.product_id, 1)
        assert cart[0].quantity == 3

    def test_ignores_change_below_one(self, shirt):
        cart = change_cart_quantity([shirt], shirt.product_id, -2)
        assert cart[0].quantity == 2

    def test_remove_deletes_entry(self, shirt):
        assert remove_from_cart([shirt], shirt.product_id) == []


class TestCartSubtotal:
    def test_subtotal(self, shirt):
        other = CartItem(product_id=uuid4(), unit_price=Decimal("9.90"), quantity=1)
        assert cart_subtotal([shirt, other]) == Decimal("79.90")
