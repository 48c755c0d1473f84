from rest_framework.response import Response
from rest_framework.views import APIView

from ..serializers import InvoiceSummarySerializer
from ..services.invoice_summary_service import invoice_summary
from ..services.order_service import CHANGE_ORDER, PURCHASE_ORDER
from .params import query_param


class InvoiceSummaryView(APIView):
    """Totals of paid invoices against one order.

    Query params:
        <order>_uuid: required.
        currentInvoiceUuid: also count advances adjusted against this invoice.
    """

    order_kind = PURCHASE_ORDER

    def get(self, request):
        summary = invoice_summary(
            self.order_kind.name,
            query_param(request, self.order_kind.parent_field),
            query_param(request, "currentInvoiceUuid"),
        )
        return Response({"data": InvoiceSummarySerializer(summary).data})


class PurchaseOrderInvoiceSummaryView(InvoiceSummaryView):
    order_kind = PURCHASE_ORDER


class ChangeOrderInvoiceSummaryView(InvoiceSummaryView):
    order_kind = CHANGE_ORDER
