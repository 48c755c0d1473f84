import logging

import pytest

from procurement.exceptions import InvalidPayloadError, MissingParameterError, NoteNotFoundError
from procurement.services import receipt_note_service as service

CORP = "corp-1"


def _body(**overrides):
    body = {
        "corporation_uuid": CORP,
        "project_uuid": "proj-1",
        "purchase_order_uuid": "po-1",
        "receipt_type": "purchase_order",
        "entry_date": "2024-03-01",
        "status": "received",
        "receipt_items": [
            {"uuid": "LINE-1", "received_quantity": "5", "received_total": "50"},
            {"uuid": "line-2"},
        ],
    }
    body.update(overrides)
    return body


def _items(fake):
    return fake.tables.get("receipt_note_items", [])


def test_create_numbers_and_normalises_note(fake_supabase):
    note = service.create_receipt_note(_body())

    assert note["grn_number"] == "GRN-000001"
    assert note["status"] == "Received"
    assert note["entry_date"] == "2024-03-01T00:00:00.000Z"
    assert note["purchase_order_uuid"] == "po-1"
    assert note["change_order_uuid"] is None
    assert note["is_active"] is True


def test_create_continues_corporation_numbering(fake_supabase):
    fake_supabase.seed(
        "stock_receipt_notes",
        {"uuid": "old-1", "corporation_uuid": CORP, "grn_number": "GRN-000007"},
        {"uuid": "old-2", "corporation_uuid": "corp-2", "grn_number": "GRN-000050"},
    )

    assert service.create_receipt_note(_body())["grn_number"] == "GRN-000008"
    assert service.create_receipt_note(_body(grn_number="GRN-000007"))["grn_number"] == "GRN-000009"
    assert service.create_receipt_note(_body(grn_number="GRN-000100"))["grn_number"] == "GRN-000100"


def test_create_with_number_already_duplicated_in_store(fake_supabase):
    fake_supabase.seed(
        "stock_receipt_notes",
        {"uuid": "old-1", "corporation_uuid": CORP, "grn_number": "GRN-000003"},
        {"uuid": "old-2", "corporation_uuid": CORP, "grn_number": "GRN-000003"},
    )

    note = service.create_receipt_note(_body(grn_number="GRN-000003"))

    assert note["grn_number"] == "GRN-000004"


def test_create_saves_only_usable_items(fake_supabase):
    note = service.create_receipt_note(_body())

    items = _items(fake_supabase)
    assert len(items) == 1
    assert items[0]["receipt_note_uuid"] == note["uuid"]
    assert items[0]["item_uuid"] == "LINE-1"
    assert items[0]["received_quantity"] == 5.0
    assert items[0]["purchase_order_uuid"] == "po-1"
    assert items[0]["corporation_uuid"] == CORP


def test_resubmitted_item_updates_stored_row(fake_supabase):
    note = service.create_receipt_note(_body())
    stored_uuid = _items(fake_supabase)[0]["uuid"]

    service.update_receipt_note(
        {"uuid": note["uuid"], "receipt_items": [{"uuid": "line-1", "received_quantity": 7}]}
    )

    items = _items(fake_supabase)
    assert len(items) == 1
    assert items[0]["uuid"] == stored_uuid
    assert items[0]["received_quantity"] == 7.0


def test_empty_item_list_clears_items(fake_supabase):
    note = service.create_receipt_note(_body())

    service.update_receipt_note({"uuid": note["uuid"], "receipt_items": []})

    assert _items(fake_supabase) == []


def test_update_keeps_unsent_fields(fake_supabase):
    note = service.create_receipt_note(_body(reference_number="INV-7"))

    updated = service.update_receipt_note({"uuid": note["uuid"], "status": "shipment"})

    assert updated["status"] == "Shipment"
    assert updated["reference_number"] == "INV-7"
    assert updated["grn_number"] == note["grn_number"]
    assert len(_items(fake_supabase)) == 1


def test_vendor_uuid_dropped_when_column_missing(fake_supabase, caplog):
    fake_supabase.missing_columns["stock_receipt_notes"] = {"vendor_uuid"}
    caplog.set_level(logging.WARNING)

    note = service.create_receipt_note(_body(vendor_uuid="v-1"))

    assert "vendor_uuid" not in note
    assert "[StockReceiptNotes] vendor_uuid column not found in schema" in caplog.text


def test_vendor_uuid_written_when_supported(fake_supabase):
    note = service.create_receipt_note(_body(vendor_uuid="v-1"))
    assert note["vendor_uuid"] == "v-1"


def test_save_as_open_po_marks_order_partially_received(fake_supabase):
    fake_supabase.seed("purchase_order_forms", {"uuid": "po-1", "corporation_uuid": CORP, "status": "Approved"})

    service.create_receipt_note(_body(save_as_open_po=True))

    assert fake_supabase.tables["purchase_order_forms"][0]["status"] == "Partially_Received"


def test_order_status_failure_does_not_block_save(fake_supabase, caplog):
    fake_supabase.fail("purchase_order_forms", action="update", message="row locked")

    note = service.create_receipt_note(_body(save_as_open_po=True))

    assert note["grn_number"] == "GRN-000001"
    assert "Failed to update purchase order status to Partially_Received" in caplog.text


def test_item_failure_does_not_block_save(fake_supabase, caplog):
    fake_supabase.fail("receipt_note_items", action="upsert", message="bad item")

    note = service.create_receipt_note(_body())

    assert note["uuid"]
    assert "Failed to save receipt_note_items" in caplog.text


def test_create_validation(fake_supabase):
    with pytest.raises(InvalidPayloadError):
        service.create_receipt_note({})
    with pytest.raises(MissingParameterError) as exc:
        service.create_receipt_note(_body(corporation_uuid=None))
    assert str(exc.value.detail) == "corporation_uuid is required"


def test_update_validation(fake_supabase):
    with pytest.raises(MissingParameterError) as exc:
        service.update_receipt_note({"status": "Received"})
    assert str(exc.value.detail) == "uuid is required for update"
    with pytest.raises(NoteNotFoundError):
        service.update_receipt_note({"uuid": "missing"})


def test_list_paginates_newest_first(fake_supabase):
    fake_supabase.seed(
        "stock_receipt_notes",
        *[
            {"uuid": f"n-{day}", "corporation_uuid": CORP, "project_uuid": "proj-1", "entry_date": f"2024-03-0{day}", "is_active": True}
            for day in (1, 2, 3)
        ],
        {"uuid": "n-gone", "corporation_uuid": CORP, "entry_date": "2024-03-09", "is_active": False},
    )

    first = service.list_receipt_notes(CORP, page=1, page_size=2)
    second = service.list_receipt_notes(CORP, page=2, page_size=2)

    assert [n["uuid"] for n in first["data"]] == ["n-3", "n-2"]
    assert first["pagination"] == {"page": 1, "pageSize": 2, "totalRecords": 3, "totalPages": 2, "hasMore": True}
    assert [n["uuid"] for n in second["data"]] == ["n-1"]
    assert second["pagination"]["hasMore"] is False


def test_list_sees_new_note_after_create(fake_supabase):
    assert service.list_receipt_notes(CORP)["data"] == []

    note = service.create_receipt_note(_body())

    assert [n["uuid"] for n in service.list_receipt_notes(CORP)["data"]] == [note["uuid"]]


def test_list_requires_corporation(fake_supabase):
    with pytest.raises(MissingParameterError):
        service.list_receipt_notes(None)


def test_items_are_flattened_with_note_fields(fake_supabase):
    note = service.create_receipt_note(_body(reference_number="INV-1"))

    items = service.list_receipt_note_items(corporation_uuid=CORP, note_uuid=note["uuid"])

    assert len(items) == 1
    assert items[0]["receipt_note_status"] == "Received"
    assert items[0]["receipt_note_reference_number"] == "INV-1"
    assert items[0]["receipt_type"] == "purchase_order"
    assert "stock_receipt_notes" not in items[0]


def test_delete_soft_deletes_note_and_items(fake_supabase):
    note = service.create_receipt_note(_body())

    deleted = service.delete_receipt_note(note["uuid"])

    assert deleted["is_active"] is False
    assert all(item["is_active"] is False for item in _items(fake_supabase))
    assert service.list_receipt_note_items(corporation_uuid=CORP) == []


def test_delete_validation(fake_supabase):
    with pytest.raises(MissingParameterError) as exc:
        service.delete_receipt_note(None)
    assert str(exc.value.detail) == "uuid query parameter is required"
    with pytest.raises(NoteNotFoundError):
        service.delete_receipt_note("missing")
