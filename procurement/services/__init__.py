"""Service layer for the procurement app."""

from . import (
    financial_breakdown,
    invoice_summary_service,
    lookup_service,
    note_common,
    order_completion_service,
    order_service,
    po_stock_report_service,
    project_service,
    receipt_note_service,
    return_note_service,
    schema_capabilities,
    stock_report_service,
    store,
    supabase_cache,
    supabase_client,
)

__all__ = [
    "financial_breakdown",
    "invoice_summary_service",
    "lookup_service",
    "note_common",
    "order_completion_service",
    "order_service",
    "po_stock_report_service",
    "project_service",
    "receipt_note_service",
    "return_note_service",
    "schema_capabilities",
    "stock_report_service",
    "store",
    "supabase_cache",
    "supabase_client",
]
