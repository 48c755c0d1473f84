import pytest

from procurement.exceptions import MissingParameterError, StoreQueryError
from procurement.services.order_service import (
    CHANGE_ORDER,
    PURCHASE_ORDER,
    get_order_items,
    list_orders,
    order_kind,
    set_order_status,
)


def test_order_kind_defaults_to_purchase_order():
    assert order_kind("change_order") is CHANGE_ORDER
    assert order_kind("purchase_order") is PURCHASE_ORDER
    assert order_kind(None) is PURCHASE_ORDER


def test_list_orders_filters_project_and_inactive(fake_supabase):
    fake_supabase.seed(
        "purchase_order_forms",
        {"uuid": "po-1", "corporation_uuid": "corp-1", "project_uuid": "proj-1", "entry_date": "2024-01-01", "is_active": True},
        {"uuid": "po-2", "corporation_uuid": "corp-1", "project_uuid": "proj-2", "entry_date": "2024-01-03", "is_active": True},
        {"uuid": "po-3", "corporation_uuid": "corp-1", "project_uuid": "proj-1", "entry_date": "2024-01-02", "is_active": False},
    )

    assert [o["uuid"] for o in list_orders(PURCHASE_ORDER, "corp-1")] == ["po-2", "po-1"]
    assert [o["uuid"] for o in list_orders(PURCHASE_ORDER, "corp-1", "proj-1")] == ["po-1"]
    assert len(fake_supabase.calls_to("purchase_order_forms")) == 1


def test_list_orders_requires_corporation(fake_supabase):
    with pytest.raises(MissingParameterError):
        list_orders(CHANGE_ORDER, "")


def test_status_change_invalidates_order_list(fake_supabase):
    fake_supabase.seed(
        "change_orders",
        {"uuid": "co-1", "corporation_uuid": "corp-1", "status": "Approved", "is_active": True},
    )
    assert list_orders(CHANGE_ORDER, "corp-1")[0]["status"] == "Approved"

    set_order_status(CHANGE_ORDER, "co-1", "Completed")

    assert list_orders(CHANGE_ORDER, "corp-1")[0]["status"] == "Completed"


def test_status_change_failure_raises(fake_supabase):
    fake_supabase.fail("purchase_order_forms", action="update", message="denied")

    with pytest.raises(StoreQueryError) as exc:
        set_order_status(PURCHASE_ORDER, "po-1", "Completed")
    assert str(exc.value.detail) == "Failed to update Purchase order status to Completed: denied"


def test_order_items_in_display_order(fake_supabase):
    fake_supabase.seed(
        "purchase_order_items_list",
        {"uuid": "b", "purchase_order_uuid": "po-1", "order_index": 2, "is_active": True},
        {"uuid": "a", "purchase_order_uuid": "po-1", "order_index": 1, "is_active": True},
        {"uuid": "c", "purchase_order_uuid": "po-1", "order_index": 0, "is_active": False},
    )

    assert [i["uuid"] for i in get_order_items(PURCHASE_ORDER, "po-1")] == ["a", "b"]
