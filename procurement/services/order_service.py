"""Purchase order and change order access.

Purchase orders and change orders share one lifecycle and differ only in
the tables and column names they use; :data:`ORDER_KINDS` records those
differences so the rest of the code can treat both uniformly.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..exceptions import MissingParameterError, OrderNotFoundError, StoreQueryError
from .store import STORE_ERRORS, error_message, fetch, fetch_one
from .supabase_cache import corporation_cache
from .supabase_client import require_client

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("Draft", "Approved", "Partially_Received", "Completed", "Rejected")
COMPLETED = "Completed"
PARTIALLY_RECEIVED = "Partially_Received"


@dataclass(frozen=True)
class OrderKind:
    name: str
    code: str
    label: str
    table: str
    items_table: str
    parent_field: str
    quantity_field: str
    unit_price_field: str
    invoice_type: str
    total_key: str


PURCHASE_ORDER = OrderKind(
    name="purchase_order",
    code="po",
    label="Purchase order",
    table="purchase_order_forms",
    items_table="purchase_order_items_list",
    parent_field="purchase_order_uuid",
    quantity_field="po_quantity",
    unit_price_field="po_unit_price",
    invoice_type="AGAINST_PO",
    total_key="total_po_amount",
)

CHANGE_ORDER = OrderKind(
    name="change_order",
    code="co",
    label="Change order",
    table="change_orders",
    items_table="change_order_items_list",
    parent_field="change_order_uuid",
    quantity_field="co_quantity",
    unit_price_field="co_unit_price",
    invoice_type="AGAINST_CO",
    total_key="total_co_amount",
)

ORDER_KINDS: Dict[str, OrderKind] = {
    PURCHASE_ORDER.name: PURCHASE_ORDER,
    CHANGE_ORDER.name: CHANGE_ORDER,
}


def order_kind(name: Optional[str]) -> OrderKind:
    """Return the kind for ``name``; anything but ``change_order`` is a PO."""
    return CHANGE_ORDER if name == CHANGE_ORDER.name else PURCHASE_ORDER


def _load_orders(kind: OrderKind, corporation_uuid: str) -> List[Dict[str, Any]]:
    client = require_client()
    return fetch(
        client.table(kind.table)
        .select("*")
        .eq("corporation_uuid", corporation_uuid)
        .eq("is_active", True)
        .order("entry_date", desc=True),
        f"{kind.label.lower()}s",
    )


purchase_orders_cache = corporation_cache(
    "purchase_orders", lambda corp: _load_orders(PURCHASE_ORDER, corp)
)
change_orders_cache = corporation_cache(
    "change_orders", lambda corp: _load_orders(CHANGE_ORDER, corp)
)

_CACHES = {
    PURCHASE_ORDER.name: purchase_orders_cache,
    CHANGE_ORDER.name: change_orders_cache,
}


def list_orders(
    kind: OrderKind,
    corporation_uuid: str,
    project_uuid: Optional[str] = None,
    force: bool = False,
) -> List[Dict[str, Any]]:
    """Return active orders for a corporation, optionally for one project."""
    if not corporation_uuid:
        raise MissingParameterError("corporation_uuid is required")
    orders = _CACHES[kind.name].get(corporation_uuid, force=force)
    if project_uuid:
        orders = [o for o in orders if o.get("project_uuid") == project_uuid]
    return orders


def get_order(kind: OrderKind, order_uuid: str) -> Dict[str, Any]:
    if not order_uuid:
        raise MissingParameterError(f"{kind.parent_field} is required")
    client = require_client()
    order = fetch_one(
        client.table(kind.table).select("*").eq("uuid", order_uuid).maybe_single(),
        kind.label.lower(),
    )
    if order is None:
        raise OrderNotFoundError(f"{kind.label} not found")
    return order


def get_order_items(kind: OrderKind, order_uuid: str) -> List[Dict[str, Any]]:
    """Return the active line items of one order in display order."""
    client = require_client()
    return fetch(
        client.table(kind.items_table)
        .select("*")
        .eq(kind.parent_field, order_uuid)
        .eq("is_active", True)
        .order("order_index"),
        f"{kind.label.lower()} items",
    )


def set_order_status(kind: OrderKind, order_uuid: str, status: str) -> None:
    """Write ``status`` to one order and invalidate its corporation's list."""
    client = require_client()
    try:
        resp = client.table(kind.table).update({"status": status}).eq("uuid", order_uuid).execute()
    except STORE_ERRORS as exc:
        raise StoreQueryError(
            f"Failed to update {kind.label} status to {status}: {error_message(exc)}"
        ) from exc
    for row in getattr(resp, "data", None) or []:
        corporation_uuid = row.get("corporation_uuid")
        if corporation_uuid:
            _CACHES[kind.name].invalidate(corporation_uuid)
