"""Order service layer (Use Cases): the concurrent mutation coordinator.

Every mutation follows the same discipline, with no locking:

1. fetch the latest stored order;
2. check the acting user's role (``permissions``) and the status rules;
3. compute a ``changes`` dict for that single intent without touching
   the fetched copy;
4. recompute ``total`` from the post-merge items/discount/shipping/fees
   whenever a commercial field changes (``total`` is never caller input);
5. ``merge`` only those fields, appending history as a new row.

A failed write raises ``PersistenceFailure`` carrying the copy read in
step 1, so callers can revert an unsaved edit to the last known value.
"""

from __future__ import annotations

from datetime import datetime
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
)
from zoneinfo import ZoneInfo

import structlog
from django.conf import settings
from django.utils import timezone

from modules.core.exceptions import PersistenceFailure
from modules.orders import messaging, permissions, projections
from modules.orders.constants import (
    COMMERCIAL_LOCKED_STATES,
    INVOICE_ATTACHABLE_STATES,
    OrderStatus,
    ShippingMethod,
)
from modules.orders.dtos import ItemSelection, LineItem
from modules.orders.events import OrderStatusChanged, OrderUpdated
from modules.orders.exceptions import (
    LineItemNotFound,
    OrderAccessDenied,
    OrderLocked,
    OrderNotFound,
)
from modules.orders.pricing import compute_total
from modules.orders.state_machine import apply_transition
from modules.products.services import ProductService

if TYPE_CHECKING:
    from uuid import UUID

    from modules.customers.address_lookup import IAddressLookup
    from modules.customers.dtos import Address, SessionContext
    from modules.orders.dtos import HistoryEntry, UpdateFinancialsDTO
    from modules.orders.models import Order, OrderStatusHistory
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.repositories.interfaces import IProductRepository
    from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)

COMMERCIAL_FIELDS = (
    "items",
    "discount",
    "shipping_cost",
    "wants_invoice",
    "wants_insurance",
)


class OrderService:
    """Application service for order queries, transitions and edits.

    Receives its collaborators via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: Optional[IProductRepository] = None,
        address_lookup: Optional[IAddressLookup] = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._order_repo = order_repository
        self._products = (
            ProductService(product_repository) if product_repository else None
        )
        self._address_lookup = address_lookup
        self._clock = clock

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: Any) -> Order:
        """Raises ``OrderNotFound`` if the order does not exist."""
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def get_order_for(self, session: SessionContext, order_id: Any) -> Order:
        order = self.get_order(order_id)
        permissions.ensure_can_view(session, order)
        return order

    def get_history(
        self, session: SessionContext, order_id: Any
    ) -> List[OrderStatusHistory]:
        self.get_order_for(session, order_id)
        return self._order_repo.get_history(order_id)

    def list_orders(
        self,
        session: SessionContext,
        status: str = projections.STATUS_ALL,
        term: Optional[str] = None,
    ) -> List[Order]:
        return projections.project(self._order_repo.list(), session, status, term)

    def group_orders(
        self,
        orders: Iterable[Order],
        now: Optional[datetime] = None,
        tz_name: Optional[str] = None,
    ) -> projections.DateGroups:
        tz = ZoneInfo(tz_name or settings.TIME_ZONE)
        return projections.group_by_date(orders, now or self._clock(), tz)

    def message_link(
        self, session: SessionContext, order_id: Any, kind: str = "status"
    ) -> Optional[str]:
        order = self.get_order(order_id)
        permissions.ensure_can_edit(session, order)
        return messaging.build_link(order, kind)

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def change_status(
        self,
        session: SessionContext,
        order_id: Any,
        target: str,
        notes: str = "",
        extra_changes: Optional[Dict[str, Any]] = None,
    ) -> Order:
        """Move the order into *target* and append one history entry.

        Raises:
            OrderNotFound: the order does not exist.
            OrderAccessDenied: the acting user may not change this order.
            InvalidTransition: illegal move; nothing is written.
            PersistenceFailure: the write failed; status is unchanged.
        """
        latest = self.get_order(order_id)
        permissions.ensure_can_transition(session, latest, target)

        log = logger.bind(
            order_id=str(latest.id),
            actor_id=str(session.customer_id),
            current_status=latest.status,
            new_status=target,
        )
        transition = apply_transition(
            latest, target, self._clock(), actor_id=session.customer_id, notes=notes
        )
        changes = {**transition.changes, **(extra_changes or {})}
        events = [
            OrderStatusChanged(
                aggregate_id=latest.id, old_status=latest.status, new_status=target
            )
        ]
        order = self._merge(latest, changes, transition.entry, events)
        log.info("order.status_updated")
        return order

    def finalize_sale(
        self, session: SessionContext, order_id: Any, notes: str = ""
    ) -> Order:
        """``orcamento``/``realizado`` -> ``pagamento_pendente``."""
        return self.change_status(
            session, order_id, OrderStatus.AWAITING_PAYMENT, notes
        )

    def confirm_payment(
        self, session: SessionContext, order_id: Any, notes: str = ""
    ) -> Order:
        """``pagamento_pendente`` -> ``preparacao``; admin only."""
        if not session.is_admin:
            raise OrderAccessDenied("Only an admin can confirm payment.")
        return self.change_status(session, order_id, OrderStatus.PREPARING, notes)

    def dispatch(
        self,
        session: SessionContext,
        order_id: Any,
        tracking_code: Optional[str] = None,
        notes: str = "",
    ) -> Order:
        """``preparacao`` -> ``transporte``, optionally saving a tracking code."""
        extra = {"tracking_code": tracking_code.strip()} if tracking_code else None
        return self.change_status(
            session, order_id, OrderStatus.IN_TRANSIT, notes, extra_changes=extra
        )

    def mark_delivered(
        self, session: SessionContext, order_id: Any, notes: str = ""
    ) -> Order:
        """``transporte`` -> ``entregue``; sets ``delivered_at`` once."""
        return self.change_status(session, order_id, OrderStatus.DELIVERED, notes)

    def cancel(self, session: SessionContext, order_id: Any, notes: str = "") -> Order:
        return self.change_status(session, order_id, OrderStatus.CANCELLED, notes)

    def register_return(
        self, session: SessionContext, order_id: Any, notes: str = ""
    ) -> Order:
        return self.change_status(session, order_id, OrderStatus.RETURNED, notes)

    # ------------------------------------------------------------------
    # Commercial edits
    # ------------------------------------------------------------------

    def update_items(
        self,
        session: SessionContext,
        order_id: Any,
        selections: Sequence[ItemSelection],
    ) -> Order:
        """Replace the whole item list. An empty list is accepted.

        Lines already in the order keep their snapshot; new products are
        snapshotted from the catalog.  Repeated products are merged.

        Raises:
            ProductNotFound / ProductUnavailable: a new product cannot be sold.
        """

        def build(latest: Order) -> Dict[str, Any]:
            current = {item.product_id: item for item in latest.line_items}
            items: Dict[UUID, LineItem] = {}
            for selection in selections:
                if selection.product_id in items:
                    line = items[selection.product_id]
                    items[selection.product_id] = line.model_copy(
                        update={"quantity": line.quantity + selection.quantity}
                    )
                    continue
                line = current.get(selection.product_id) or self._catalog_line(
                    selection.product_id
                )
                items[selection.product_id] = line.model_copy(
                    update={
                        "quantity": selection.quantity,
                        "note": selection.note or line.note,
                    }
                )
            return {"items": [item.to_json() for item in items.values()]}

        return self._commercial_edit(session, order_id, build)

    def add_item(
        self,
        session: SessionContext,
        order_id: Any,
        product_id: UUID,
        quantity: int = 1,
        note: str = "",
    ) -> Order:
        """Add a catalog product, merging quantity into an existing line."""
        new_line = self._catalog_line(product_id).model_copy(
            update={"quantity": quantity, "note": note}
        )

        def build(latest: Order) -> Dict[str, Any]:
            items = latest.line_items
            for index, item in enumerate(items):
                if item.product_id == new_line.product_id:
                    items[index] = item.model_copy(
                        update={
                            "quantity": item.quantity + quantity,
                            "note": note or item.note,
                        }
                    )
                    break
            else:
                items.append(new_line)
            return {"items": [item.to_json() for item in items]}

        return self._commercial_edit(session, order_id, build)

    def remove_item(
        self, session: SessionContext, order_id: Any, product_id: UUID
    ) -> Order:
        def build(latest: Order) -> Dict[str, Any]:
            items = latest.line_items
            remaining = [item for item in items if item.product_id != product_id]
            if len(remaining) == len(items):
                raise LineItemNotFound(f"Product {product_id} is not in this order.")
            return {"items": [item.to_json() for item in remaining]}

        return self._commercial_edit(session, order_id, build)

    def change_item_quantity(
        self, session: SessionContext, order_id: Any, product_id: UUID, delta: int
    ) -> Order:
        """Shift one line's quantity by *delta*, never below 1."""

        def build(latest: Order) -> Dict[str, Any]:
            items = latest.line_items
            for index, item in enumerate(items):
                if item.product_id == product_id:
                    items[index] = item.model_copy(
                        update={"quantity": max(1, item.quantity + delta)}
                    )
                    break
            else:
                raise LineItemNotFound(f"Product {product_id} is not in this order.")
            return {"items": [item.to_json() for item in items]}

        return self._commercial_edit(session, order_id, build)

    def update_financials(
        self, session: SessionContext, order_id: Any, dto: UpdateFinancialsDTO
    ) -> Order:
        """Set discount, shipping cost and/or shipping method.

        Store pickup (``Retirada``) always forces the shipping cost to 0.
        """

        def build(latest: Order) -> Dict[str, Any]:
            changes: Dict[str, Any] = {}
            if dto.discount is not None:
                changes["discount"] = dto.discount
            if dto.shipping_cost is not None:
                changes["shipping_cost"] = dto.shipping_cost
            if dto.shipping_method is not None:
                changes["shipping_method"] = dto.shipping_method
            method = changes.get("shipping_method", latest.shipping_method)
            if method == ShippingMethod.PICKUP:
                changes["shipping_cost"] = 0
            return changes

        return self._commercial_edit(session, order_id, build)

    def toggle_fees(
        self,
        session: SessionContext,
        order_id: Any,
        wants_invoice: Optional[bool] = None,
        wants_insurance: Optional[bool] = None,
    ) -> Order:
        def build(latest: Order) -> Dict[str, Any]:
            changes: Dict[str, Any] = {}
            if wants_invoice is not None:
                changes["wants_invoice"] = wants_invoice
            if wants_insurance is not None:
                changes["wants_insurance"] = wants_insurance
            return changes

        return self._commercial_edit(session, order_id, build)

    # ------------------------------------------------------------------
    # Other edits
    # ------------------------------------------------------------------

    def update_address(
        self, session: SessionContext, order_id: Any, address: Address
    ) -> Order:
        """Edit the shipping address snapshot.

        A postal-code change fills blank city/street/district from the
        address lookup, best effort.  Locked together with the commercial
        fields once the order is paid.
        """
        latest = self._fetch_editable(session, order_id)
        if latest.status in COMMERCIAL_LOCKED_STATES:
            raise OrderLocked(f"Address is frozen once the order is '{latest.status}'.")

        changes: Dict[str, Any] = address.model_dump(exclude_none=True)
        new_cep = changes.get("postal_code")
        if new_cep and new_cep != latest.postal_code and self._address_lookup:
            resolved = self._address_lookup.resolve(new_cep)
            if resolved is not None:
                for field in ("city", "street", "district"):
                    value = getattr(resolved, field)
                    if value and not changes.get(field):
                        changes[field] = value

        return self._edit(latest, changes)

    def update_tracking_code(
        self, session: SessionContext, order_id: Any, code: str
    ) -> Order:
        """Only allowed while the order is in transit."""
        latest = self._fetch_editable(session, order_id)
        if latest.status != OrderStatus.IN_TRANSIT:
            raise OrderLocked("Tracking code can only be edited while in transit.")
        return self._edit(latest, {"tracking_code": (code or "").strip()})

    def attach_invoice(
        self, session: SessionContext, order_id: Any, document: str
    ) -> Order:
        """Attach the invoice document reference from ``preparacao`` onward."""
        latest = self._fetch_editable(session, order_id)
        if latest.status not in INVOICE_ATTACHABLE_STATES:
            raise OrderLocked(
                f"Invoice cannot be attached while the order is '{latest.status}'."
            )
        return self._edit(latest, {"invoice_document": document})

    def delete_order(self, session: SessionContext, order_id: Any) -> None:
        """Irreversible hard delete; admin only."""
        permissions.ensure_can_delete(session)
        if not self._order_repo.delete(order_id):
            raise OrderNotFound(f"Order {order_id} not found.")
        logger.info(
            "order.deleted_by_admin",
            order_id=str(order_id),
            actor_id=str(session.customer_id),
        )

    # ------------------------------------------------------------------
    # Coordinator internals
    # ------------------------------------------------------------------

    def _catalog_line(self, product_id: UUID) -> LineItem:
        if self._products is None:
            raise RuntimeError("OrderService was built without a product repository.")
        snapshot = self._products.snapshot(product_id)
        return LineItem(
            product_id=snapshot.product_id,
            name=snapshot.name,
            unit_price=snapshot.unit_price,
            image=snapshot.image,
        )

    def _fetch_editable(self, session: SessionContext, order_id: Any) -> Order:
        latest = self.get_order(order_id)
        permissions.ensure_can_edit(session, latest)
        return latest

    def _commercial_edit(
        self,
        session: SessionContext,
        order_id: Any,
        build: Callable[[Order], Dict[str, Any]],
    ) -> Order:
        latest = self._fetch_editable(session, order_id)
        if latest.status in COMMERCIAL_LOCKED_STATES:
            raise OrderLocked(
                f"Commercial fields are frozen once the order is '{latest.status}'."
            )
        changes = build(latest)
        if not changes:
            return latest

        merged = {field: getattr(latest, field) for field in COMMERCIAL_FIELDS}
        merged.update({k: v for k, v in changes.items() if k in COMMERCIAL_FIELDS})
        changes["total"] = compute_total(
            merged["items"],
            merged["discount"],
            merged["shipping_cost"],
            merged["wants_invoice"],
            merged["wants_insurance"],
        )
        return self._edit(latest, changes)

    def _edit(self, latest: Order, changes: Dict[str, Any]) -> Order:
        if not changes:
            return latest
        events = [
            OrderUpdated(
                aggregate_id=latest.id, changed_fields=",".join(sorted(changes))
            )
        ]
        return self._merge(latest, changes, None, events)

    def _merge(
        self,
        latest: Order,
        changes: Dict[str, Any],
        entry: Optional[HistoryEntry],
        events: Sequence[DomainEvent],
    ) -> Order:
        try:
            return self._order_repo.merge(latest.id, changes, entry, events)
        except PersistenceFailure as exc:
            logger.error(
                "order.write_failed",
                order_id=str(latest.id),
                fields=sorted(changes),
                error=str(exc),
            )
            raise PersistenceFailure(str(exc), last_known=latest) from exc
