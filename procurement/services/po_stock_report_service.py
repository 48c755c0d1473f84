"""Stock report grouped by purchase order.

Only material purchase orders that have reached the receiving stage are
reported: active, status Approved / Completed / Partially_Received, and not
of type ``LABOR``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from ..exceptions import MissingParameterError, StoreQueryError
from .lookup_service import (
    cost_code_labels,
    get_cost_code_configurations,
    get_preferred_items,
    get_vendors,
    vendor_names,
)
from .note_common import PURCHASE_ORDER_TYPE, RECEIPT_NOTE, RETURN_NOTE, NoteKind
from .order_service import PURCHASE_ORDER
from .stock_report_service import fallback_code
from .store import ZERO, fetch, gather, item_key, parse_timestamp, to_decimal
from .supabase_client import require_client

logger = logging.getLogger(__name__)

TAG = "POWiseStockReport"
REPORTED_STATUSES = ("Approved", "Completed", "Partially_Received")
LABOR = "LABOR"
NA = "NA"
MULTIPLE = "Multiple"


@dataclass
class POStockTotals:
    ordered_quantity: Decimal = ZERO
    received_quantity: Decimal = ZERO
    returned_quantity: Decimal = ZERO
    total_value: Decimal = ZERO

    def add(self, other: "POStockTotals") -> None:
        self.ordered_quantity += other.ordered_quantity
        self.received_quantity += other.received_quantity
        self.returned_quantity += other.returned_quantity
        self.total_value += other.total_value


@dataclass
class POStockItem:
    item_code: str
    item_name: str
    description: str
    vendor_source: str
    cost_code: str
    po_number: str
    po_date: str
    ordered_quantity: Decimal
    received_quantity: Decimal
    returned_quantity: Decimal
    invoice_number: str
    invoice_date: str
    status: str
    unit_cost: Decimal
    uom: str
    total_value: Decimal


@dataclass
class POStockGroup:
    uuid: str
    po_number: str
    po_date: str
    vendor_uuid: Optional[str]
    vendor_name: str
    items: List[POStockItem] = field(default_factory=list)
    totals: POStockTotals = field(default_factory=POStockTotals)


@dataclass
class POStockReport:
    data: List[POStockGroup] = field(default_factory=list)
    totals: Optional[POStockTotals] = None


def is_material_order(order: Mapping[str, Any]) -> bool:
    po_type = str(order.get("po_type") or order.get("po_type_uuid") or "").upper()
    return po_type != LABOR


def _reportable_orders(corporation_uuid: str, project_uuid: str):
    """Read the project's reportable orders straight from the store, bypassing the order cache."""
    client = require_client()
    return fetch(
        client.table(PURCHASE_ORDER.table)
        .select("*")
        .eq("corporation_uuid", corporation_uuid)
        .eq("project_uuid", project_uuid)
        .eq("is_active", True)
        .in_("status", list(REPORTED_STATUSES))
        .order("entry_date", desc=True),
        "purchase orders",
    )


def _note_items_for(kind: NoteKind, corporation_uuid: str, project_uuid: str, line_uuids: List[str]):
    client = require_client()
    return fetch(
        client.table(kind.items_table)
        .select(f"*, {kind.table}!inner(uuid, status, entry_date, reference_number, updated_at, is_active)")
        .eq("corporation_uuid", corporation_uuid)
        .eq("project_uuid", project_uuid)
        .eq("item_type", PURCHASE_ORDER_TYPE)
        .in_("item_uuid", line_uuids)
        .eq("is_active", True),
        kind.items_table.replace("_", " "),
    )


def _group_by_line(kind: NoteKind, rows: List[Mapping[str, Any]]) -> Dict[str, List[Mapping[str, Any]]]:
    grouped: Dict[str, List[Mapping[str, Any]]] = {}
    for row in rows:
        note = row.get(kind.table) or {}
        if note.get("is_active") is False or row.get("is_active") is False:
            continue
        if row.get("item_uuid"):
            grouped.setdefault(item_key(row["item_uuid"]), []).append(row)
    return grouped


def _invoice_date(value: Any) -> Optional[str]:
    """UTC calendar date of a note's entry timestamp."""
    parsed = parse_timestamp(value)
    return parsed.astimezone(timezone.utc).date().isoformat() if parsed else None


def summarize_receipts(receipts: List[Mapping[str, Any]]) -> Dict[str, Any]:
    """Received total, status and invoice reference for one PO line.

    Any ``Received`` note makes the line ``Received``; otherwise receipts
    mean ``In Shipment`` and no receipts mean ``Pending``. Distinct invoice
    numbers collapse to ``Multiple`` and distinct dates to the latest one.
    """
    received = ZERO
    statuses = set()
    numbers = set()
    dates = set()
    for receipt in receipts:
        note = receipt.get(RECEIPT_NOTE.table) or {}
        received += to_decimal(receipt.get("received_quantity"))
        is_received = str(note.get("status") or "").strip().lower() == "received"
        statuses.add("Received" if is_received else "In Shipment")
        if note.get("reference_number"):
            numbers.add(note["reference_number"])
        date = _invoice_date(note.get("entry_date"))
        if date:
            dates.add(date)

    if "Received" in statuses:
        status = "Received"
    elif statuses:
        status = "In Shipment"
    else:
        status = "Pending"

    if len(numbers) == 1:
        invoice_number = next(iter(numbers))
    else:
        invoice_number = MULTIPLE if numbers else NA

    return {
        "received": received,
        "status": status,
        "invoice_number": invoice_number,
        "invoice_date": max(dates) if dates else NA,
    }


def build_po_wise_stock_report(corporation_uuid: Optional[str], project_uuid: Optional[str]) -> POStockReport:
    """Return the report, or an empty one when no reportable PO has items.

    Order, line and note-item reads raise ``StoreQueryError``; vendor,
    cost-code and catalog lookups degrade to empty maps.
    """
    if not corporation_uuid or not project_uuid:
        raise MissingParameterError("Corporation UUID and Project UUID are required")

    orders = [order for order in _reportable_orders(corporation_uuid, project_uuid) if is_material_order(order)]
    if not orders:
        return POStockReport()

    client = require_client()
    lines = fetch(
        client.table(PURCHASE_ORDER.items_table)
        .select("*")
        .in_(PURCHASE_ORDER.parent_field, [o["uuid"] for o in orders])
        .eq("is_active", True)
        .order("order_index"),
        "purchase order items",
    )
    if not lines:
        return POStockReport()

    line_uuids = [line["uuid"] for line in lines]
    receipts = _group_by_line(RECEIPT_NOTE, _note_items_for(RECEIPT_NOTE, corporation_uuid, project_uuid, line_uuids))
    returns = _group_by_line(RETURN_NOTE, _note_items_for(RETURN_NOTE, corporation_uuid, project_uuid, line_uuids))

    lookups = gather(
        {"vendors": lambda: get_vendors(corporation_uuid), "cost codes": lambda: get_cost_code_configurations(corporation_uuid)},
        defaults={"vendors": [], "cost codes": []},
        tag=TAG,
    )
    vendors = vendor_names(lookups["vendors"])
    cost_codes = cost_code_labels(lookups["cost codes"])
    try:
        preferred = get_preferred_items(cost_codes.keys())
    except StoreQueryError as exc:
        logger.warning("[%s] %s", TAG, exc.detail)
        preferred = []
    catalog = {item_key(p["uuid"]): p for p in preferred if p.get("uuid")}

    lines_by_order: Dict[str, List[Mapping[str, Any]]] = {}
    for line in lines:
        lines_by_order.setdefault(line.get(PURCHASE_ORDER.parent_field), []).append(line)
    positions = {id(line): index for index, line in enumerate(lines, start=1)}

    report = POStockReport(totals=POStockTotals())
    for order in orders:
        vendor_uuid = order.get("vendor_uuid")
        vendor_name = (vendors.get(vendor_uuid) or "N/A") if vendor_uuid else "N/A"
        group = POStockGroup(
            uuid=order["uuid"],
            po_number=order.get("po_number") or "",
            po_date=order.get("entry_date") or "",
            vendor_uuid=vendor_uuid,
            vendor_name=vendor_name,
        )
        for line in lines_by_order.get(order["uuid"], []):
            key = item_key(line["uuid"])
            summary = summarize_receipts(receipts.get(key, []))
            returned = sum((to_decimal(r.get("return_quantity")) for r in returns.get(key, [])), ZERO)
            project_item = catalog.get(item_key(line["item_uuid"])) if line.get("item_uuid") else None
            project_item = project_item or {}
            unit_cost = to_decimal(line.get("unit_price") or line.get("po_unit_price"))
            item = POStockItem(
                item_code=str(project_item.get("item_sequence") or line.get("model_number") or "")
                or fallback_code(positions[id(line)]),
                item_name=line.get("item_name") or line.get("model_number") or "N/A",
                description=line.get("description") or "",
                vendor_source=vendor_name,
                cost_code=cost_codes.get(line.get("cost_code_uuid"), "") if line.get("cost_code_uuid") else "",
                po_number=group.po_number,
                po_date=group.po_date,
                ordered_quantity=to_decimal(line.get("quantity") or line.get(PURCHASE_ORDER.quantity_field)),
                received_quantity=summary["received"],
                returned_quantity=returned,
                invoice_number=summary["invoice_number"],
                invoice_date=summary["invoice_date"],
                status=summary["status"],
                unit_cost=unit_cost,
                uom=project_item.get("unit") or line.get("unit") or line.get("unit_label") or "",
                total_value=summary["received"] * unit_cost,
            )
            group.items.append(item)
            group.totals.add(
                POStockTotals(item.ordered_quantity, item.received_quantity, item.returned_quantity, item.total_value)
            )
        report.data.append(group)
        report.totals.add(group.totals)
    return report
