"""Stock return notes: goods sent back to the vendor of a PO or CO.

Saving a return note may fulfil its order, so every create and update ends
with a completion check of the referenced purchase order or change order.
"""

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional

from ..exceptions import InvalidPayloadError, MissingParameterError, StoreQueryError
from .note_common import (
    DEFAULT_PAGE_SIZE,
    RETURN_NOTE,
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
from .order_completion_service import complete_order_if_fulfilled

logger = logging.getLogger(__name__)


def list_return_notes(
    corporation_uuid: Any,
    project_uuid: Optional[str] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Dict[str, Any]:
    return list_notes(RETURN_NOTE, corporation_uuid, project_uuid=project_uuid, page=page, page_size=page_size)


def get_return_note(note_uuid: str) -> Dict[str, Any]:
    return get_note(RETURN_NOTE, note_uuid)


def list_return_note_items(**filters: Any) -> List[Dict[str, Any]]:
    return list_note_items(RETURN_NOTE, **filters)


def _after_save(note: Mapping[str, Any], body: Mapping[str, Any]) -> None:
    items = body.get(RETURN_NOTE.items_field)
    try:
        if isinstance(items, list) and items:
            save_note_items(RETURN_NOTE, note, usable_items(RETURN_NOTE, items))
        elif RETURN_NOTE.items_field in body and not items:
            clear_note_items(RETURN_NOTE, note["uuid"])
    except StoreQueryError as exc:
        logger.error("[%s] Failed to save return_note_items: %s", RETURN_NOTE.tag, exc.detail)

    complete_order_if_fulfilled(
        note.get(RETURN_NOTE.type_field),
        note.get("change_order_uuid") or note.get("purchase_order_uuid"),
    )
    invalidate_notes(RETURN_NOTE, note.get("corporation_uuid"))


def create_return_note(body: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Create a return note, save its items and run the completion check."""
    if not body:
        raise InvalidPayloadError("Request body is required")
    corporation_uuid = ensure_corporation_uuid(body.get("corporation_uuid"))

    payload = build_note_payload(RETURN_NOTE, body)
    payload["uuid"] = body["uuid"] if isinstance(body.get("uuid"), str) and body["uuid"] else str(uuid.uuid4())
    payload["corporation_uuid"] = corporation_uuid
    payload[RETURN_NOTE.number_field] = ensure_unique_number(
        RETURN_NOTE, corporation_uuid, body.get(RETURN_NOTE.number_field)
    )

    note = write_note(RETURN_NOTE, payload)
    _after_save(note, body)
    return note


def update_return_note(body: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Update a return note; ``return_items`` of ``None`` or ``[]`` clears items."""
    if not body:
        raise InvalidPayloadError("Request body is required")
    note_uuid = body.get("uuid")
    if not note_uuid:
        raise MissingParameterError("uuid is required for update")

    existing = get_return_note(note_uuid)
    payload = build_note_payload(RETURN_NOTE, body, existing)
    payload[RETURN_NOTE.number_field] = ensure_unique_number(
        RETURN_NOTE,
        existing["corporation_uuid"],
        body.get(RETURN_NOTE.number_field, existing.get(RETURN_NOTE.number_field)),
        note_uuid,
    )

    note = write_note(RETURN_NOTE, payload, note_uuid=note_uuid)
    _after_save(note, body)
    return note


def delete_return_note(note_uuid: Any) -> Dict[str, Any]:
    return soft_delete_note(RETURN_NOTE, note_uuid)
