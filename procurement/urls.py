"""API routes for the procurement app."""

from django.urls import path

from .views import (
    ChangeOrderInvoiceSummaryView,
    POWiseStockReportView,
    ProjectsView,
    PurchaseOrderInvoiceSummaryView,
    ReceiptNoteItemsView,
    ReturnNoteItemsView,
    StockReceiptNotesView,
    StockReportView,
    StockReturnNotesView,
)

urlpatterns = [
    path("reports/stock-report/", StockReportView.as_view(), name="stock_report"),
    path("reports/po-wise-stock-report/", POWiseStockReportView.as_view(), name="po_wise_stock_report"),
    path(
        "purchase-orders/invoice-summary/",
        PurchaseOrderInvoiceSummaryView.as_view(),
        name="purchase_order_invoice_summary",
    ),
    path(
        "change-orders/invoice-summary/",
        ChangeOrderInvoiceSummaryView.as_view(),
        name="change_order_invoice_summary",
    ),
    path("receipt-note-items/", ReceiptNoteItemsView.as_view(), name="receipt_note_items"),
    path("return-note-items/", ReturnNoteItemsView.as_view(), name="return_note_items"),
    path("stock-receipt-notes/", StockReceiptNotesView.as_view(), name="stock_receipt_notes"),
    path("stock-return-notes/", StockReturnNotesView.as_view(), name="stock_return_notes"),
    path("projects/", ProjectsView.as_view(), name="projects"),
]
