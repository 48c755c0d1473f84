"""REST endpoints of the procurement API."""

from .invoice_summary import ChangeOrderInvoiceSummaryView, PurchaseOrderInvoiceSummaryView
from .notes import (
    ReceiptNoteItemsView,
    ReturnNoteItemsView,
    StockReceiptNotesView,
    StockReturnNotesView,
)
from .projects import ProjectsView
from .reports import POWiseStockReportView, StockReportView

__all__ = [
    "ChangeOrderInvoiceSummaryView",
    "POWiseStockReportView",
    "ProjectsView",
    "PurchaseOrderInvoiceSummaryView",
    "ReceiptNoteItemsView",
    "ReturnNoteItemsView",
    "StockReceiptNotesView",
    "StockReportView",
    "StockReturnNotesView",
]
