"""Unit tests for order role checks."""

from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest

from modules.customers.dtos import SessionContext
from modules.orders import permissions
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import OrderAccessDenied

pytestmark = pytest.mark.unit


def _session(role: str) -> SessionContext:
    return SessionContext(customer_id=uuid4(), role=role)


def _order(seller_id=None, customer_id=None, status=OrderStatus.QUOTE):
    return SimpleNamespace(
        seller_id=seller_id, customer_id=customer_id or uuid4(), status=status
    )


class TestOrderPermissions:
    def test_admin_manages_any_order(self):
        assert permissions.can_manage(_session("admin"), _order())

    def test_vendor_manages_attributed_order(self):
        session = _session("vendor")
        assert permissions.can_manage(session, _order(seller_id=session.customer_id))

    def test_vendor_cannot_edit_other_vendors_order(self):
        vendor_a = _session("vendor")
        order = _order(seller_id=uuid4())

        with pytest.raises(OrderAccessDenied):
            permissions.ensure_can_transition(vendor_a, order, OrderStatus.CANCELLED)

    def test_customer_cannot_edit_own_order(self):
        session = _session("customer")
        order = _order(customer_id=session.customer_id)

        with pytest.raises(OrderAccessDenied):
            permissions.ensure_can_edit(session, order)

    def test_customer_can_view_own_order(self):
        session = _session("customer")
        permissions.ensure_can_view(session, _order(customer_id=session.customer_id))

    def test_customer_cannot_view_other_order(self):
        with pytest.raises(OrderAccessDenied):
            permissions.ensure_can_view(_session("customer"), _order())

    def test_only_admin_confirms_payment(self):
        vendor = _session("vendor")
        order = _order(seller_id=vendor.customer_id, status=OrderStatus.AWAITING_PAYMENT)

        with pytest.raises(OrderAccessDenied):
            permissions.ensure_can_transition(vendor, order, OrderStatus.PREPARING)

        permissions.ensure_can_transition(
            _session("admin"), order, OrderStatus.PREPARING
        )

    def test_only_admin_deletes(self):
        with pytest.raises(OrderAccessDenied):
            permissions.ensure_can_delete(_session("vendor"))
        permissions.ensure_can_delete(_session("admin"))
