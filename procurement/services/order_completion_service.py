"""Automatic status transitions of purchase orders and change orders.

An order is *fulfilled* once no line item has a remaining shortfall, where
``shortfall = ordered - received - returned``. Saving a return note runs
:func:`complete_order_if_fulfilled`; saving a receipt note as an open order
runs :func:`mark_partially_received`. Neither ever raises: they are side
effects of a note save and must not block it.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional

from .note_common import RECEIPT_NOTE, RETURN_NOTE, NoteKind, flatten_note_item, is_active_item
from .order_service import COMPLETED, PARTIALLY_RECEIVED, OrderKind, order_kind, set_order_status
from .store import ZERO, fetch, item_key, to_decimal
from .supabase_client import require_client

logger = logging.getLogger(__name__)

TAG = "StockReturnNotes"


def _sum_by_item(rows: Iterable[Mapping[str, Any]], quantity_field: str) -> Dict[str, Decimal]:
    totals: Dict[str, Decimal] = {}
    for row in rows:
        if not row.get("item_uuid"):
            continue
        key = item_key(row["item_uuid"])
        totals[key] = totals.get(key, ZERO) + to_decimal(row.get(quantity_field))
    return totals


def compute_shortfalls(
    items: Iterable[Mapping[str, Any]],
    receipts: Iterable[Mapping[str, Any]],
    returns: Iterable[Mapping[str, Any]],
    quantity_field: str,
) -> Dict[str, Decimal]:
    """Return ``{item key: ordered - received - returned}`` per line item."""
    received = _sum_by_item(receipts, RECEIPT_NOTE.quantity_field)
    returned = _sum_by_item(returns, RETURN_NOTE.quantity_field)
    shortfalls: Dict[str, Decimal] = {}
    for item in items:
        if not item.get("uuid"):
            continue
        key = item_key(item["uuid"])
        shortfalls[key] = (
            to_decimal(item.get(quantity_field))
            - received.get(key, ZERO)
            - returned.get(key, ZERO)
        )
    return shortfalls


def is_fully_received(shortfalls: Mapping[str, Decimal]) -> bool:
    """True when there is at least one item and none is still short."""
    return bool(shortfalls) and all(value <= 0 for value in shortfalls.values())


def _active_note_items(note: NoteKind, kind: OrderKind, order_uuid: str):
    client = require_client()
    data = fetch(
        client.table(note.items_table)
        .select(f"item_uuid, {note.quantity_field}, is_active, {note.table}!inner(is_active)")
        .eq(kind.parent_field, order_uuid)
        .eq("is_active", True),
        f"{note.items_table} for completion check",
    )
    return [row for row in (flatten_note_item(note, r) for r in data) if is_active_item(note, row)]


def complete_order_if_fulfilled(kind_name: Optional[str], order_uuid: Optional[str]) -> bool:
    """Mark the order ``Completed`` when every line item is fulfilled.

    Returns ``True`` when the status write was issued. Failures are logged
    and reported as ``False``.
    """
    if not order_uuid:
        return False
    kind = order_kind(kind_name)
    try:
        client = require_client()
        items = fetch(
            client.table(kind.items_table)
            .select(f"uuid, {kind.quantity_field}")
            .eq(kind.parent_field, order_uuid)
            .eq("is_active", True),
            f"{kind.label.lower()} items for completion check",
        )
        if not items:
            return False
        receipts = _active_note_items(RECEIPT_NOTE, kind, order_uuid)
        returns = _active_note_items(RETURN_NOTE, kind, order_uuid)

        shortfalls = compute_shortfalls(items, receipts, returns, kind.quantity_field)
        if not is_fully_received(shortfalls):
            return False
        set_order_status(kind, order_uuid, COMPLETED)
    except Exception as exc:  # pylint: disable=broad-except
        logger.error("[%s] Error checking %s completion: %s", TAG, kind.label.lower(), exc)
        return False
    logger.info("[%s] %s %s marked %s", TAG, kind.label, order_uuid, COMPLETED)
    return True


def mark_partially_received(kind_name: Optional[str], order_uuid: Optional[str], tag: str = "StockReceiptNotes") -> bool:
    """Set the order to ``Partially_Received``; failures are only logged."""
    if not order_uuid:
        return False
    kind = order_kind(kind_name)
    try:
        set_order_status(kind, order_uuid, PARTIALLY_RECEIVED)
    except Exception as exc:  # pylint: disable=broad-except
        logger.error("[%s] Failed to update %s status to %s: %s", tag, kind.label.lower(), PARTIALLY_RECEIVED, exc)
        return False
    return True
