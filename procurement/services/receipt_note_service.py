"""Stock receipt notes (GRNs): goods received against a PO or CO."""

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional

from ..exceptions import InvalidPayloadError, MissingParameterError, StoreQueryError
from .note_common import (
    DEFAULT_PAGE_SIZE,
    RECEIPT_NOTE,
    build_note_payload,
    clear_note_items,
    ensure_corporation_uuid,
    ensure_unique_number,
    get_note,
    invalidate_notes,
    list_note_items,
    list_notes,
    save_note_items,
    soft_delete_note,
    usable_items,
    write_note,
)
from .order_completion_service import mark_partially_received

logger = logging.getLogger(__name__)

# Columns some deployments do not have yet.
OPTIONAL_COLUMNS = ("vendor_uuid",)


def list_receipt_notes(
    corporation_uuid: Any,
    project_uuid: Optional[str] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Dict[str, Any]:
    return list_notes(RECEIPT_NOTE, corporation_uuid, project_uuid=project_uuid, page=page, page_size=page_size)


def get_receipt_note(note_uuid: str) -> Dict[str, Any]:
    return get_note(RECEIPT_NOTE, note_uuid)


def list_receipt_note_items(**filters: Any) -> List[Dict[str, Any]]:
    """Active receipt items flattened with ``receipt_note_*`` parent fields."""
    return list_note_items(RECEIPT_NOTE, **filters)


def _save_items(note: Mapping[str, Any], body: Mapping[str, Any]) -> None:
    items = body.get(RECEIPT_NOTE.items_field)
    try:
        if isinstance(items, list) and items:
            save_note_items(RECEIPT_NOTE, note, usable_items(RECEIPT_NOTE, items))
        elif RECEIPT_NOTE.items_field in body and not items:
            clear_note_items(RECEIPT_NOTE, note["uuid"])
    except StoreQueryError as exc:
        logger.error("[%s] Failed to save receipt_note_items: %s", RECEIPT_NOTE.tag, exc.detail)


def _after_save(note: Mapping[str, Any], body: Mapping[str, Any]) -> None:
    _save_items(note, body)
    if body.get("save_as_open_po") is True:
        mark_partially_received(
            note.get(RECEIPT_NOTE.type_field),
            note.get("change_order_uuid") or note.get("purchase_order_uuid"),
            tag=RECEIPT_NOTE.tag,
        )
    invalidate_notes(RECEIPT_NOTE, note.get("corporation_uuid"))


def create_receipt_note(body: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Create a receipt note and its items.

    ``save_as_open_po`` moves the order to ``Partially_Received``. Item and
    order-status failures are logged; the created note is still returned.
    """
    if not body:
        raise InvalidPayloadError("Request body is required")
    corporation_uuid = ensure_corporation_uuid(body.get("corporation_uuid"))

    payload = build_note_payload(RECEIPT_NOTE, body)
    payload["uuid"] = body["uuid"] if isinstance(body.get("uuid"), str) and body["uuid"] else str(uuid.uuid4())
    payload["corporation_uuid"] = corporation_uuid
    payload[RECEIPT_NOTE.number_field] = ensure_unique_number(
        RECEIPT_NOTE, corporation_uuid, body.get(RECEIPT_NOTE.number_field)
    )
    if body.get("vendor_uuid"):
        payload["vendor_uuid"] = body["vendor_uuid"]

    note = write_note(RECEIPT_NOTE, payload, optional_columns=OPTIONAL_COLUMNS)
    _after_save(note, body)
    return note


def update_receipt_note(body: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Update a receipt note; an empty or null item list clears its items."""
    if not body:
        raise InvalidPayloadError("Request body is required")
    note_uuid = body.get("uuid")
    if not note_uuid:
        raise MissingParameterError("uuid is required for update")

    existing = get_receipt_note(note_uuid)
    payload = build_note_payload(RECEIPT_NOTE, body, existing)
    payload[RECEIPT_NOTE.number_field] = ensure_unique_number(
        RECEIPT_NOTE,
        existing["corporation_uuid"],
        body.get(RECEIPT_NOTE.number_field, existing.get(RECEIPT_NOTE.number_field)),
        note_uuid,
    )
    if "vendor_uuid" in body:
        payload["vendor_uuid"] = body["vendor_uuid"] or None

    note = write_note(RECEIPT_NOTE, payload, note_uuid=note_uuid, optional_columns=OPTIONAL_COLUMNS)
    _after_save(note, body)
    return note


def delete_receipt_note(note_uuid: Any) -> Dict[str, Any]:
    return soft_delete_note(RECEIPT_NOTE, note_uuid)
