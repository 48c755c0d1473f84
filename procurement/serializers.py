from decimal import Decimal

from rest_framework import serializers

STOCK_REPORT_TOTAL_FIELDS = ("currentStock", "totalValue", "reorderLevel", "inShipment", "returnedQty")
PO_STOCK_TOTAL_FIELDS = ("orderedQuantity", "receivedQuantity", "returnedQuantity", "totalValue")


def row_totals(rows, fields):
    """Sum the serialized float values of ``rows`` so the JSON totals equal the JSON rows."""
    return {name: sum((row[name] for row in rows), 0.0) for name in fields}


class StockReportItemSerializer(serializers.Serializer):
    """One aggregated project-item row of the stock report."""

    itemCode = serializers.CharField(source="item_code")
    itemName = serializers.CharField(source="item_name")
    description = serializers.CharField()
    vendorSource = serializers.CharField(source="vendor_source")
    costCode = serializers.CharField(source="cost_code")
    currentStock = serializers.FloatField(source="current_stock")
    unitCost = serializers.FloatField(source="unit_cost")
    uom = serializers.CharField()
    totalValue = serializers.FloatField(source="total_value")
    reorderLevel = serializers.FloatField(source="reorder_level")
    inShipment = serializers.FloatField(source="in_shipment")
    returnedQty = serializers.FloatField(source="returned_qty")
    lastPurchaseDate = serializers.CharField(source="last_purchase_date", allow_null=True)
    lastStockUpdateDate = serializers.CharField(source="last_stock_update_date", allow_null=True)


class POStockItemSerializer(serializers.Serializer):
    """One purchase-order line of the PO-wise stock report."""

    itemCode = serializers.CharField(source="item_code")
    itemName = serializers.CharField(source="item_name")
    description = serializers.CharField()
    vendorSource = serializers.CharField(source="vendor_source")
    costCode = serializers.CharField(source="cost_code")
    poNumber = serializers.CharField(source="po_number")
    poDate = serializers.CharField(source="po_date")
    orderedQuantity = serializers.FloatField(source="ordered_quantity")
    receivedQuantity = serializers.FloatField(source="received_quantity")
    returnedQuantity = serializers.FloatField(source="returned_quantity")
    invoiceNumber = serializers.CharField(source="invoice_number")
    invoiceDate = serializers.CharField(source="invoice_date")
    status = serializers.CharField()
    unitCost = serializers.FloatField(source="unit_cost")
    uom = serializers.CharField()
    totalValue = serializers.FloatField(source="total_value")


class POStockGroupSerializer(serializers.Serializer):
    uuid = serializers.CharField()
    po_number = serializers.CharField()
    po_date = serializers.CharField()
    vendor_uuid = serializers.CharField(allow_null=True)
    vendor_name = serializers.CharField()
    items = POStockItemSerializer(many=True)

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data["totals"] = row_totals(data["items"], PO_STOCK_TOTAL_FIELDS)
        return data


class InvoiceSummarySerializer(serializers.BaseSerializer):
    """Invoice summary keyed by order kind (``total_po_value`` / ``total_co_value``)."""

    def to_representation(self, instance):
        return {
            key: float(value) if isinstance(value, Decimal) else value
            for key, value in instance.as_dict().items()
        }
