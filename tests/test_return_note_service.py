import pytest

from procurement.exceptions import NoteNotFoundError
from procurement.services import return_note_service as service

CORP = "corp-1"


@pytest.fixture
def received_order(fake_supabase):
    """PO line of 10 units, 8 of them already received."""
    fake_supabase.seed(
        "purchase_order_forms", {"uuid": "po-1", "corporation_uuid": CORP, "status": "Partially_Received"}
    )
    fake_supabase.seed(
        "purchase_order_items_list",
        {"uuid": "line-1", "purchase_order_uuid": "po-1", "po_quantity": 10, "is_active": True},
    )
    fake_supabase.seed("stock_receipt_notes", {"uuid": "grn-1", "is_active": True})
    fake_supabase.seed(
        "receipt_note_items",
        {
            "uuid": "ri-1",
            "receipt_note_uuid": "grn-1",
            "purchase_order_uuid": "po-1",
            "item_uuid": "line-1",
            "received_quantity": 8,
            "is_active": True,
        },
    )
    return fake_supabase


def _body(quantity=2, **overrides):
    body = {
        "corporation_uuid": CORP,
        "project_uuid": "proj-1",
        "purchase_order_uuid": "po-1",
        "return_type": "purchase_order",
        "return_items": [{"uuid": "line-1", "return_quantity": quantity}],
    }
    body.update(overrides)
    return body


def _order_status(fake):
    return fake.tables["purchase_order_forms"][0]["status"]


def test_return_numbers_are_unpadded(fake_supabase):
    fake_supabase.seed(
        "stock_return_notes",
        {"uuid": "r-9", "corporation_uuid": CORP, "return_number": "RTN-9"},
        {"uuid": "r-10", "corporation_uuid": CORP, "return_number": "RTN-10"},
    )

    note = service.create_return_note(_body())

    assert note["return_number"] == "RTN-11"


def test_status_normalisation(fake_supabase):
    assert service.create_return_note(_body(status="RETURNED"))["status"] == "Returned"
    assert service.create_return_note(_body(status="bogus"))["status"] == "Waiting"
    assert service.create_return_note(_body(status=None))["status"] == "Waiting"


def test_return_that_fulfils_order_completes_it(received_order):
    service.create_return_note(_body(quantity=2))

    assert _order_status(received_order) == "Completed"


def test_partial_return_leaves_order_open(received_order):
    service.create_return_note(_body(quantity=1))

    assert _order_status(received_order) == "Partially_Received"
    assert received_order.calls_to("purchase_order_forms", "update") == []


def test_update_reruns_completion_check(received_order):
    note = service.create_return_note(_body(quantity=1))

    service.update_return_note({"uuid": note["uuid"], "return_items": [{"uuid": "LINE-1", "return_quantity": 2}]})

    assert len(received_order.tables["return_note_items"]) == 1
    assert _order_status(received_order) == "Completed"


def test_completion_failure_does_not_block_save(received_order, caplog):
    received_order.fail("purchase_order_items_list", message="connection reset")

    note = service.create_return_note(_body())

    assert note["return_number"] == "RTN-1"
    assert _order_status(received_order) == "Partially_Received"
    assert "[StockReturnNotes] Error checking purchase order completion" in caplog.text


def test_change_order_uuid_accepted_in_purchase_order_field(fake_supabase):
    note = service.create_return_note(
        _body(return_type="change_order", purchase_order_uuid="co-1", return_items=[])
    )

    assert note["return_type"] == "change_order"
    assert note["change_order_uuid"] == "co-1"
    assert note["purchase_order_uuid"] is None


def test_change_order_return_completes_change_order(fake_supabase):
    fake_supabase.seed("change_orders", {"uuid": "co-1", "corporation_uuid": CORP, "status": "Approved"})
    fake_supabase.seed(
        "change_order_items_list",
        {"uuid": "co-line", "change_order_uuid": "co-1", "co_quantity": 3, "is_active": True},
    )

    service.create_return_note(
        _body(
            return_type="change_order",
            purchase_order_uuid=None,
            change_order_uuid="co-1",
            return_items=[{"uuid": "co-line", "return_quantity": 3}],
        )
    )

    assert fake_supabase.tables["change_orders"][0]["status"] == "Completed"
    saved = fake_supabase.tables["return_note_items"][0]
    assert saved["change_order_uuid"] == "co-1"
    assert saved["purchase_order_uuid"] is None


def test_financial_breakdown_stored_as_object(fake_supabase):
    note = service.create_return_note(_body(financial_breakdown="not an object"))
    assert note["financial_breakdown"] == {}


def test_null_items_clear_stored_items(fake_supabase):
    note = service.create_return_note(_body())

    service.update_return_note({"uuid": note["uuid"], "return_items": None})

    assert fake_supabase.tables["return_note_items"] == []


def test_items_listing_filters_by_type(fake_supabase):
    service.create_return_note(_body())

    assert len(service.list_return_note_items(corporation_uuid=CORP, item_type="purchase_order")) == 1
    assert service.list_return_note_items(corporation_uuid=CORP, item_type="change_order") == []
    item = service.list_return_note_items(corporation_uuid=CORP)[0]
    assert item["return_note_status"] == "Waiting"
    assert item["return_type"] == "purchase_order"


def test_get_missing_note(fake_supabase):
    with pytest.raises(NoteNotFoundError) as exc:
        service.get_return_note("r-404")
    assert str(exc.value.detail) == "Stock return note r-404 not found"
