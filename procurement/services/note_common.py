"""Pieces shared by receipt notes and return notes.

Both note types live in a header table plus an items table, are numbered
per corporation (``GRN-<n>`` / ``RTN-<n>``) and are soft-deleted by
flipping ``is_active``. :class:`NoteKind` records the column names that
differ between the two so the read and write paths are written once.
"""

from __future__ import annotations

import logging
import math
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..exceptions import MissingParameterError, NoteNotFoundError, StoreQueryError
from .schema_capabilities import capabilities
from .store import STORE_ERRORS, error_message, fetch, fetch_one, item_key, next_number, rows
from .supabase_cache import CorporationCache, corporation_cache
from .supabase_client import require_client

logger = logging.getLogger(__name__)

NIL_UUID = "00000000-0000-0000-0000-000000000000"
DEFAULT_PAGE_SIZE = 100
NUMBER_SCAN_LIMIT = 200
PURCHASE_ORDER_TYPE = "purchase_order"
CHANGE_ORDER_TYPE = "change_order"
ITEM_TYPES = (PURCHASE_ORDER_TYPE, CHANGE_ORDER_TYPE)


@dataclass(frozen=True)
class NoteKind:
    tag: str
    label: str
    table: str
    items_table: str
    items_field: str
    note_field: str
    number_field: str
    number_prefix: str
    type_field: str
    quantity_field: str
    total_field: str
    amount_field: str
    person_field: str
    # The first status is the default.
    statuses: Tuple[str, str]
    number_width: int = 0

    @property
    def flat_prefix(self) -> str:
        """Prefix of the parent columns copied onto each flattened item."""
        return self.note_field[: -len("_uuid")]


RECEIPT_NOTE = NoteKind(
    tag="StockReceiptNotes",
    label="Stock receipt note",
    table="stock_receipt_notes",
    items_table="receipt_note_items",
    items_field="receipt_items",
    note_field="receipt_note_uuid",
    number_field="grn_number",
    number_prefix="GRN",
    type_field="receipt_type",
    quantity_field="received_quantity",
    total_field="received_total",
    amount_field="total_received_amount",
    person_field="received_by",
    statuses=("Shipment", "Received"),
    number_width=6,
)

RETURN_NOTE = NoteKind(
    tag="StockReturnNotes",
    label="Stock return note",
    table="stock_return_notes",
    items_table="return_note_items",
    items_field="return_items",
    note_field="return_note_uuid",
    number_field="return_number",
    number_prefix="RTN",
    type_field="return_type",
    quantity_field="return_quantity",
    total_field="return_total",
    amount_field="total_return_amount",
    person_field="returned_by",
    statuses=("Waiting", "Returned"),
)

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_SECONDS_Z = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def ensure_corporation_uuid(value: Any) -> str:
    if not value or not isinstance(value, str):
        raise MissingParameterError("corporation_uuid is required")
    return value


def normalize_timestamp(value: Any) -> Optional[str]:
    """Return an ISO-8601 UTC timestamp string for a submitted date value.

    Plain dates become midnight UTC and second-precision ``Z`` timestamps
    gain milliseconds; other strings pass through trimmed.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    text = str(value).strip()
    if not text:
        return None
    if _DATE_ONLY.match(text):
        return f"{text}T00:00:00.000Z"
    if _SECONDS_Z.match(text):
        return f"{text[:19]}.000Z"
    return text


def normalize_status(kind: NoteKind, value: Any) -> str:
    wanted = str(value or "").strip().lower()
    for status in kind.statuses:
        if status.lower() == wanted:
            return status
    return kind.statuses[0]


def parse_amount(value: Any) -> Optional[float]:
    """Parse an optional numeric field; blanks and garbage become ``None``."""
    if value is None or value == "":
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(result) else result


def order_source(
    kind: NoteKind, body: Mapping[str, Any], existing: Optional[Mapping[str, Any]] = None
) -> Tuple[str, Optional[str], Optional[str]]:
    """Return ``(item_type, purchase_order_uuid, change_order_uuid)`` for a note.

    Change-order notes written by older clients carry the order UUID in
    ``purchase_order_uuid``; it is accepted as the change order.
    """
    existing = existing or {}
    raw_type = body.get(kind.type_field, existing.get(kind.type_field))
    if raw_type != CHANGE_ORDER_TYPE:
        po_uuid = body.get("purchase_order_uuid") or existing.get("purchase_order_uuid") or None
        return PURCHASE_ORDER_TYPE, po_uuid, None
    co_uuid = (
        body.get("change_order_uuid")
        or body.get("purchase_order_uuid")
        or existing.get("change_order_uuid")
        or existing.get("purchase_order_uuid")
        or None
    )
    return CHANGE_ORDER_TYPE, None, co_uuid


def _load_notes(kind: NoteKind, corporation_uuid: str) -> List[Dict[str, Any]]:
    client = require_client()
    return fetch(
        client.table(kind.table)
        .select("*")
        .eq("corporation_uuid", corporation_uuid)
        .eq("is_active", True)
        .order("entry_date", desc=True)
        .order("created_at", desc=True),
        kind.label.lower() + "s",
    )


_NOTE_CACHES: Dict[str, CorporationCache] = {
    kind.table: corporation_cache(kind.table, lambda corp, kind=kind: _load_notes(kind, corp))
    for kind in (RECEIPT_NOTE, RETURN_NOTE)
}


def invalidate_notes(kind: NoteKind, corporation_uuid: Optional[str]) -> None:
    if corporation_uuid:
        _NOTE_CACHES[kind.table].invalidate(corporation_uuid)


def next_note_number(kind: NoteKind, corporation_uuid: str) -> str:
    """Return ``<PREFIX>-<max + 1>`` over the corporation's recent notes.

    Receipt numbers are zero-padded to six digits, return numbers are not.
    """
    client = require_client()
    recent = fetch(
        client.table(kind.table)
        .select(kind.number_field)
        .eq("corporation_uuid", corporation_uuid)
        .order("created_at", desc=True)
        .limit(NUMBER_SCAN_LIMIT),
        f"{kind.number_field} values",
    )
    return next_number((row.get(kind.number_field) for row in recent), kind.number_prefix, kind.number_width)


def ensure_unique_number(
    kind: NoteKind,
    corporation_uuid: str,
    requested: Optional[str],
    current_uuid: Optional[str] = None,
) -> str:
    """Keep ``requested`` when no other note uses it, else allocate the next."""
    if requested:
        client = require_client()
        conflicts = fetch(
            client.table(kind.table)
            .select("uuid")
            .eq("corporation_uuid", corporation_uuid)
            .eq(kind.number_field, requested)
            .neq("uuid", current_uuid or NIL_UUID)
            .limit(1),
            kind.number_field.replace("_", " "),
        )
        if not conflicts:
            return requested
    return next_note_number(kind, corporation_uuid)


def get_note(kind: NoteKind, note_uuid: str) -> Dict[str, Any]:
    client = require_client()
    note = fetch_one(
        client.table(kind.table).select("*").eq("uuid", note_uuid).maybe_single(),
        kind.label,
    )
    if not note:
        raise NoteNotFoundError(f"{kind.label} {note_uuid} not found")
    return note


def list_notes(
    kind: NoteKind,
    corporation_uuid: Any,
    *,
    project_uuid: Optional[str] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    force: bool = False,
) -> Dict[str, Any]:
    """Return one page of the corporation's active notes plus pagination info."""
    corporation_uuid = ensure_corporation_uuid(corporation_uuid)
    page = max(page, 1)
    page_size = max(page_size, 1)

    notes = _NOTE_CACHES[kind.table].get(corporation_uuid, force=force)
    if project_uuid:
        notes = [n for n in notes if n.get("project_uuid") == project_uuid]

    total = len(notes)
    total_pages = math.ceil(total / page_size)
    offset = (page - 1) * page_size
    return {
        "data": notes[offset : offset + page_size],
        "pagination": {
            "page": page,
            "pageSize": page_size,
            "totalRecords": total,
            "totalPages": total_pages,
            "hasMore": page < total_pages,
        },
    }


def list_note_items(
    kind: NoteKind,
    *,
    corporation_uuid: Optional[str] = None,
    project_uuid: Optional[str] = None,
    note_uuid: Optional[str] = None,
    item_type: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Return active note items flattened with their parent note's fields.

    Items whose parent note is inactive are dropped here even though the
    query already asks for active rows only.
    """
    client = require_client()
    query = client.table(kind.items_table).select(
        f"*, {kind.table}!inner(uuid, status, entry_date, updated_at, "
        f"{kind.type_field}, reference_number, is_active)"
    )
    if corporation_uuid:
        query = query.eq("corporation_uuid", corporation_uuid)
    query = query.eq("is_active", True)
    if project_uuid:
        query = query.eq("project_uuid", project_uuid)
    if note_uuid:
        query = query.eq(kind.note_field, note_uuid)
    if item_type in ITEM_TYPES:
        query = query.eq("item_type", item_type)

    try:
        data = rows(query.execute())
    except STORE_ERRORS as exc:
        logger.error("[%s] GET items error: %s", kind.tag, error_message(exc))
        raise StoreQueryError(f"Database error: {error_message(exc)}") from exc

    return [item for item in (flatten_note_item(kind, row) for row in data) if is_active_item(kind, item)]


def flatten_note_item(kind: NoteKind, row: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy the joined parent note's fields onto the item row."""
    parent = row.get(kind.table) or {}
    prefix = kind.flat_prefix
    item = {k: v for k, v in row.items() if k != kind.table}
    item[f"{prefix}_status"] = parent.get("status")
    item[f"{prefix}_entry_date"] = parent.get("entry_date")
    item[f"{prefix}_updated_at"] = parent.get("updated_at")
    item[f"{prefix}_reference_number"] = parent.get("reference_number")
    item[f"{prefix}_is_active"] = parent.get("is_active")
    item[kind.type_field] = parent.get(kind.type_field)
    return item


def is_active_item(kind: NoteKind, item: Mapping[str, Any]) -> bool:
    """False when the item or its parent note has been soft-deleted."""
    return item.get("is_active") is not False and item.get(f"{kind.flat_prefix}_is_active") is not False


def build_note_payload(
    kind: NoteKind,
    body: Mapping[str, Any],
    existing: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Translate a request body into the columns written to the note table.

    On create (no ``existing``) every column is set. On update only columns
    present in ``body`` are written, falling back to the stored values for
    the order references, entry date and status.
    """
    item_type, po_uuid, co_uuid = order_source(kind, body, existing)
    payload: Dict[str, Any] = {
        kind.type_field: item_type,
        "purchase_order_uuid": po_uuid,
        "change_order_uuid": co_uuid,
    }

    if existing is None:
        payload.update(
            {
                "project_uuid": body.get("project_uuid") or None,
                "location_uuid": body.get("location_uuid") or None,
                "entry_date": normalize_timestamp(body.get("entry_date")),
                "reference_number": body.get("reference_number") or None,
                kind.person_field: body.get(kind.person_field) or None,
                "notes": body.get("notes") or None,
                "status": normalize_status(kind, body.get("status")),
                kind.amount_field: parse_amount(body.get(kind.amount_field)),
                "metadata": body.get("metadata") if isinstance(body.get("metadata"), Mapping) else {},
                "is_active": body.get("is_active") if isinstance(body.get("is_active"), bool) else True,
            }
        )
        if kind is RETURN_NOTE:
            breakdown = body.get("financial_breakdown")
            payload["financial_breakdown"] = breakdown if isinstance(breakdown, Mapping) else {}
        return payload

    payload["project_uuid"] = body.get("project_uuid", existing.get("project_uuid"))
    payload["location_uuid"] = body.get("location_uuid", existing.get("location_uuid"))
    payload["entry_date"] = normalize_timestamp(body.get("entry_date", existing.get("entry_date")))
    payload["status"] = normalize_status(kind, body.get("status", existing.get("status")))
    for column in ("reference_number", kind.person_field, "notes"):
        if column in body:
            payload[column] = body[column] or None
    if kind.amount_field in body:
        payload[kind.amount_field] = parse_amount(body[kind.amount_field])
    if "metadata" in body:
        payload["metadata"] = body["metadata"] if isinstance(body["metadata"], Mapping) else {}
    if "financial_breakdown" in body and kind is RETURN_NOTE:
        breakdown = body["financial_breakdown"]
        payload["financial_breakdown"] = breakdown if isinstance(breakdown, Mapping) else {}
    if "is_active" in body:
        payload["is_active"] = bool(body["is_active"])
    return payload


def write_note(
    kind: NoteKind,
    payload: Mapping[str, Any],
    *,
    note_uuid: Optional[str] = None,
    optional_columns: Sequence[str] = (),
) -> Dict[str, Any]:
    """Insert a note (``note_uuid`` is None) or update one; returns the row."""
    client = require_client()
    action = "create" if note_uuid is None else "update"

    def write(data: Dict[str, Any]) -> List[Dict[str, Any]]:
        if note_uuid is None:
            return rows(client.table(kind.table).insert([data]).execute())
        return rows(client.table(kind.table).update(data).eq("uuid", note_uuid).execute())

    try:
        data = capabilities.write(kind.table, payload, optional_columns, write, kind.tag)
    except STORE_ERRORS as exc:
        logger.error("[%s] %s error: %s", kind.tag, "POST" if note_uuid is None else "PUT", error_message(exc))
        raise StoreQueryError(
            f"Failed to {action} {kind.label.lower()}: {error_message(exc)}"
        ) from exc
    if not data:
        if note_uuid is not None:
            raise NoteNotFoundError(f"{kind.label} {note_uuid} not found")
        raise StoreQueryError(f"Failed to {action} {kind.label.lower()}: no row returned")
    return data[0]


def usable_items(kind: NoteKind, items: Any) -> List[Mapping[str, Any]]:
    """Submitted items that identify a line item and carry a quantity."""
    if not isinstance(items, list):
        return []
    return [
        item
        for item in items
        if isinstance(item, Mapping)
        and (item.get("uuid") or item.get("base_item_uuid"))
        and item.get(kind.quantity_field) not in (None, "")
    ]


def save_note_items(kind: NoteKind, note: Mapping[str, Any], items: Iterable[Mapping[str, Any]]) -> int:
    """Upsert a note's items, matching stored rows by line-item UUID.

    Line-item UUIDs are compared case-insensitively so a resubmitted item
    updates its stored row instead of adding a duplicate. Returns the
    number of rows written.
    """
    items = list(items)
    if not items:
        return 0
    client = require_client()
    stored = fetch(
        client.table(kind.items_table).select("uuid, item_uuid").eq(kind.note_field, note["uuid"]),
        kind.items_table,
    )
    stored_by_item = {item_key(r["item_uuid"]): r["uuid"] for r in stored if r.get("item_uuid")}

    item_type = note.get(kind.type_field) or PURCHASE_ORDER_TYPE
    now = utc_now_iso()
    payload = []
    for item in items:
        line_uuid = item.get("uuid") or item.get("base_item_uuid")
        stored_uuid = stored_by_item.get(item_key(line_uuid))
        row = {
            "uuid": stored_uuid or str(uuid.uuid4()),
            kind.note_field: note["uuid"],
            "corporation_uuid": note.get("corporation_uuid"),
            "project_uuid": note.get("project_uuid"),
            "purchase_order_uuid": note.get("purchase_order_uuid") if item_type == PURCHASE_ORDER_TYPE else None,
            "change_order_uuid": note.get("change_order_uuid") if item_type == CHANGE_ORDER_TYPE else None,
            "item_type": item_type,
            "item_uuid": line_uuid,
            "cost_code_uuid": item.get("cost_code_uuid") or None,
            kind.quantity_field: parse_amount(item.get(kind.quantity_field)),
            kind.total_field: parse_amount(item.get(kind.total_field)),
            "is_active": True,
        }
        if stored_uuid:
            row["updated_at"] = now
        payload.append(row)

    try:
        client.table(kind.items_table).upsert(payload, on_conflict="uuid").execute()
    except STORE_ERRORS as exc:
        raise StoreQueryError(
            f"Failed to save {kind.label.lower()} items: {error_message(exc)}"
        ) from exc
    return len(payload)


def clear_note_items(kind: NoteKind, note_uuid: str) -> None:
    client = require_client()
    try:
        client.table(kind.items_table).delete().eq(kind.note_field, note_uuid).execute()
    except STORE_ERRORS as exc:
        raise StoreQueryError(
            f"Failed to clear {kind.items_table}: {error_message(exc)}"
        ) from exc


def soft_delete_note(kind: NoteKind, note_uuid: Any) -> Dict[str, Any]:
    """Flag a note and its items inactive; returns the updated note."""
    if not note_uuid or not isinstance(note_uuid, str):
        raise MissingParameterError("uuid query parameter is required")
    client = require_client()
    try:
        resp = client.table(kind.table).update({"is_active": False}).eq("uuid", note_uuid).execute()
    except STORE_ERRORS as exc:
        logger.error("[%s] DELETE error: %s", kind.tag, error_message(exc))
        raise StoreQueryError(
            f"Failed to delete {kind.label.lower()}: {error_message(exc)}"
        ) from exc
    data = rows(resp)
    if not data:
        raise NoteNotFoundError(f"{kind.label} {note_uuid} not found")

    try:
        client.table(kind.items_table).update({"is_active": False}).eq(kind.note_field, note_uuid).execute()
    except STORE_ERRORS as exc:
        logger.error("[%s] Failed to soft-delete %s: %s", kind.tag, kind.items_table, error_message(exc))
    invalidate_notes(kind, data[0].get("corporation_uuid"))
    return data[0]
