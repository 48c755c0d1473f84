from rest_framework.response import Response
from rest_framework.views import APIView

from ..exceptions import MissingParameterError, StoreQueryError
from ..serializers import (
    PO_STOCK_TOTAL_FIELDS,
    STOCK_REPORT_TOTAL_FIELDS,
    POStockGroupSerializer,
    StockReportItemSerializer,
    row_totals,
)
from ..services.po_stock_report_service import build_po_wise_stock_report
from ..services.stock_report_service import generate_stock_report
from .params import query_param


def _report_scope(request):
    corporation_uuid = query_param(request, "corporation_uuid")
    project_uuid = query_param(request, "project_uuid")
    if not corporation_uuid or not project_uuid:
        raise MissingParameterError("Corporation UUID and Project UUID are required")
    return corporation_uuid, project_uuid


class StockReportView(APIView):
    """Per-project stock levels aggregated by project item.

    Query params:
        corporation_uuid, project_uuid: both required.
    """

    def get(self, request):
        corporation_uuid, project_uuid = _report_scope(request)
        report, error = generate_stock_report(corporation_uuid, project_uuid)
        if report is None:
            raise StoreQueryError(f"Failed to generate stock report: {error}")
        rows = StockReportItemSerializer(report.items, many=True).data
        return Response({"data": rows, "totals": row_totals(rows, STOCK_REPORT_TOTAL_FIELDS)})


class POWiseStockReportView(APIView):
    """Stock received per purchase-order line, grouped by purchase order."""

    def get(self, request):
        corporation_uuid, project_uuid = _report_scope(request)
        report = build_po_wise_stock_report(corporation_uuid, project_uuid)
        body = {"data": POStockGroupSerializer(report.data, many=True).data}
        if report.totals is not None:
            lines = [item for group in body["data"] for item in group["items"]]
            body["totals"] = row_totals(lines, PO_STOCK_TOTAL_FIELDS)
        return Response(body)
