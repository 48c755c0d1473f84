import logging

import pytest
from postgrest.exceptions import APIError

from procurement.services.schema_capabilities import capabilities, is_missing_column_error


def _insert(fake, table):
    def write(data):
        return fake.table(table).insert([data]).execute().data

    return write


def test_missing_column_codes():
    assert is_missing_column_error(APIError({"message": "x", "code": "PGRST204"}))
    assert is_missing_column_error(APIError({"message": "x", "code": "42703"}))
    assert not is_missing_column_error(APIError({"message": "x", "code": "23505"}))


def test_supports_probes_once(fake_supabase):
    fake_supabase.missing_columns["stock_receipt_notes"] = {"vendor_uuid"}

    assert capabilities.supports("stock_receipt_notes", "vendor_uuid") is False
    assert capabilities.supports("stock_receipt_notes", "vendor_uuid") is False
    assert capabilities.supports("stock_receipt_notes", "grn_number") is True
    assert len(fake_supabase.calls_to("stock_receipt_notes")) == 2


def test_unrelated_probe_failure_is_not_remembered(fake_supabase):
    fake_supabase.fail("stock_receipt_notes", message="timeout", code="57014")

    assert capabilities.supports("stock_receipt_notes", "vendor_uuid") is True
    assert capabilities.supports("stock_receipt_notes", "vendor_uuid") is True
    assert len(fake_supabase.calls_to("stock_receipt_notes")) == 2


def test_strip_unsupported_logs_warning(fake_supabase, caplog):
    fake_supabase.missing_columns["stock_receipt_notes"] = {"vendor_uuid"}
    caplog.set_level(logging.WARNING)

    payload = capabilities.strip_unsupported(
        "stock_receipt_notes", {"uuid": "n-1", "vendor_uuid": "v-1"}, ("vendor_uuid",), "StockReceiptNotes"
    )

    assert payload == {"uuid": "n-1"}
    assert "[StockReceiptNotes] vendor_uuid column not found in schema, writing without it" in caplog.text


def test_write_keeps_supported_columns(fake_supabase):
    written = capabilities.write(
        "stock_receipt_notes",
        {"uuid": "n-1", "vendor_uuid": "v-1"},
        ("vendor_uuid",),
        _insert(fake_supabase, "stock_receipt_notes"),
        "StockReceiptNotes",
    )
    assert written[0]["vendor_uuid"] == "v-1"


def test_write_retries_when_column_disappears(fake_supabase, caplog):
    assert capabilities.supports("stock_receipt_notes", "vendor_uuid") is True
    # Column dropped after the answer was cached.
    fake_supabase.missing_columns["stock_receipt_notes"] = {"vendor_uuid"}

    written = capabilities.write(
        "stock_receipt_notes",
        {"uuid": "n-1", "vendor_uuid": "v-1"},
        ("vendor_uuid",),
        _insert(fake_supabase, "stock_receipt_notes"),
        "StockReceiptNotes",
    )

    assert "vendor_uuid" not in written[0]
    assert len(fake_supabase.calls_to("stock_receipt_notes", "insert")) == 2
    assert "vendor_uuid column not found in schema, retrying without it" in caplog.text
    assert capabilities.supports("stock_receipt_notes", "vendor_uuid") is False


def test_write_reraises_other_errors(fake_supabase):
    fake_supabase.fail("stock_receipt_notes", action="insert", message="duplicate key", code="23505")

    with pytest.raises(APIError):
        capabilities.write(
            "stock_receipt_notes",
            {"uuid": "n-1", "vendor_uuid": "v-1"},
            ("vendor_uuid",),
            _insert(fake_supabase, "stock_receipt_notes"),
            "StockReceiptNotes",
        )
    assert len(fake_supabase.calls_to("stock_receipt_notes", "insert")) == 1
