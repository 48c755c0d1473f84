"""Per-project stock report.

Receipt-note items are folded into one row per *project item* (the catalog
item a PO/CO line refers to), so the same material received through several
orders appears once. Returned quantities are accumulated the same way and
attached to the matching row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .lookup_service import (
    cost_code_labels,
    get_cost_code_configurations,
    get_preferred_items,
    get_vendors,
    vendor_names,
)
from .note_common import (
    CHANGE_ORDER_TYPE,
    PURCHASE_ORDER_TYPE,
    RECEIPT_NOTE,
    RETURN_NOTE,
    is_active_item,
    list_note_items,
)
from .order_service import CHANGE_ORDER, PURCHASE_ORDER, get_order, get_order_items
from .store import ZERO, gather, item_key, parse_timestamp, to_decimal

logger = logging.getLogger(__name__)

TAG = "StockReport"
MULTIPLE = "Multiple"
NOT_AVAILABLE = "N/A"
FALLBACK_CODE_PREFIX = "ITM"


@dataclass
class StockReportItem:
    item_code: str
    item_name: str
    description: str
    vendor_source: str
    cost_code: str
    uom: str
    current_stock: Decimal = ZERO
    in_shipment: Decimal = ZERO
    returned_qty: Decimal = ZERO
    unit_cost: Decimal = ZERO
    total_value: Decimal = ZERO
    reorder_level: Decimal = ZERO
    last_purchase_date: Optional[str] = None
    last_stock_update_date: Optional[str] = None


@dataclass
class StockReportTotals:
    current_stock: Decimal = ZERO
    total_value: Decimal = ZERO
    reorder_level: Decimal = ZERO
    in_shipment: Decimal = ZERO
    returned_qty: Decimal = ZERO


@dataclass
class StockReport:
    items: List[StockReportItem] = field(default_factory=list)
    totals: StockReportTotals = field(default_factory=StockReportTotals)


def is_fallback_code(code: Optional[str]) -> bool:
    return bool(code) and code.startswith(FALLBACK_CODE_PREFIX) and code[len(FALLBACK_CODE_PREFIX):].isdigit()


def fallback_code(position: int) -> str:
    """``ITM`` followed by ``position`` zero-padded to three digits."""
    return f"{FALLBACK_CODE_PREFIX}{position:03d}"


def _is_later(candidate: Any, current: Any) -> bool:
    if not current:
        return True
    new, old = parse_timestamp(candidate), parse_timestamp(current)
    if new is None or old is None:
        return str(candidate) > str(current)
    return new > old


def compute_totals(items: List[StockReportItem]) -> StockReportTotals:
    totals = StockReportTotals()
    for item in items:
        totals.current_stock += item.current_stock
        totals.total_value += item.total_value
        totals.reorder_level += item.reorder_level
        totals.in_shipment += item.in_shipment
        totals.returned_qty += item.returned_qty
    return totals


class StockReportGenerator:
    """Builds :class:`StockReport` objects for one project at a time.

    ``loading`` is true while a report is being generated and ``error``
    holds the message of the last failed run.
    """

    def __init__(self) -> None:
        self.loading = False
        self.error: Optional[str] = None

    def generate(self, corporation_uuid: Optional[str], project_uuid: Optional[str]) -> Optional[StockReport]:
        if not corporation_uuid or not project_uuid:
            self.error = "Corporation and project are required"
            return None

        self.loading = True
        self.error = None
        try:
            return self._build(corporation_uuid, project_uuid)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("[%s] Failed to generate stock report", TAG)
            self.error = str(exc) or "Failed to generate stock report"
            return None
        finally:
            self.loading = False

    # -- data gathering -----------------------------------------------------

    def _build(self, corporation_uuid: str, project_uuid: str) -> StockReport:
        base = gather(
            {
                "receipt note items": lambda: list_note_items(
                    RECEIPT_NOTE, corporation_uuid=corporation_uuid, project_uuid=project_uuid
                ),
                "return note items": lambda: list_note_items(
                    RETURN_NOTE, corporation_uuid=corporation_uuid, project_uuid=project_uuid
                ),
                "vendors": lambda: get_vendors(corporation_uuid),
                "cost codes": lambda: get_cost_code_configurations(corporation_uuid),
            },
            defaults={"receipt note items": [], "return note items": [], "vendors": [], "cost codes": []},
            tag=TAG,
        )

        receipts = [r for r in base["receipt note items"] if is_active_item(RECEIPT_NOTE, r)]
        returns = [r for r in base["return note items"] if is_active_item(RETURN_NOTE, r)]
        vendors = vendor_names(base["vendors"])
        cost_codes = cost_code_labels(base["cost codes"])

        po_uuids = _order_uuids(receipts + returns, PURCHASE_ORDER_TYPE)
        co_uuids = _order_uuids(receipts + returns, CHANGE_ORDER_TYPE)
        cost_code_uuids = [cc.get("uuid") for cc in base["cost codes"]]

        tasks: Dict[str, Any] = {"project items": lambda: get_preferred_items(cost_code_uuids)}
        defaults: Dict[str, Any] = {"project items": []}
        for kind, uuids in ((PURCHASE_ORDER, po_uuids), (CHANGE_ORDER, co_uuids)):
            for order_uuid in uuids:
                items_task = f"{kind.name} items {order_uuid}"
                form_task = f"{kind.name} {order_uuid}"
                tasks[items_task] = lambda kind=kind, order_uuid=order_uuid: get_order_items(kind, order_uuid)
                tasks[form_task] = lambda kind=kind, order_uuid=order_uuid: get_order(kind, order_uuid)
                defaults[items_task] = []
                defaults[form_task] = None
        fetched = gather(tasks, defaults, tag=TAG)

        order_items: Dict[Tuple[str, str], Dict[str, Mapping[str, Any]]] = {}
        order_vendors: Dict[Tuple[str, str], Optional[str]] = {}
        for kind, uuids in ((PURCHASE_ORDER, po_uuids), (CHANGE_ORDER, co_uuids)):
            for order_uuid in uuids:
                items = fetched.get(f"{kind.name} items {order_uuid}") or []
                order_items[(kind.name, order_uuid)] = {
                    item_key(i["uuid"]): i for i in items if i.get("uuid")
                }
                form = fetched.get(f"{kind.name} {order_uuid}") or {}
                order_vendors[(kind.name, order_uuid)] = form.get("vendor_uuid") or None

        catalog = {
            item_key(p["uuid"]): p for p in fetched.get("project items") or [] if p.get("uuid")
        }

        folder = _ReceiptFolder(order_items, order_vendors, vendors, cost_codes, catalog)
        folder.add_returns(returns)
        for receipt in receipts:
            folder.add_receipt(receipt)

        items = sorted(folder.rows.values(), key=lambda row: row.item_code or "")
        return StockReport(items=items, totals=compute_totals(items))


def _order_uuids(rows: List[Mapping[str, Any]], item_type: str) -> List[str]:
    field_name = "purchase_order_uuid" if item_type == PURCHASE_ORDER_TYPE else "change_order_uuid"
    seen: Dict[str, None] = {}
    for row in rows:
        if row.get("item_type") == item_type and row.get(field_name):
            seen.setdefault(row[field_name], None)
    return list(seen)


def _order_ref(row: Mapping[str, Any]) -> Optional[Tuple[str, str]]:
    if row.get("item_type") == PURCHASE_ORDER_TYPE and row.get("purchase_order_uuid"):
        return PURCHASE_ORDER.name, row["purchase_order_uuid"]
    if row.get("item_type") == CHANGE_ORDER_TYPE and row.get("change_order_uuid"):
        return CHANGE_ORDER.name, row["change_order_uuid"]
    return None


class _ReceiptFolder:
    """Accumulates receipt rows into one :class:`StockReportItem` per project item."""

    def __init__(self, order_items, order_vendors, vendors, cost_codes, catalog):
        self.order_items = order_items
        self.order_vendors = order_vendors
        self.vendors = vendors
        self.cost_codes = cost_codes
        self.catalog = catalog
        self.returned: Dict[str, Decimal] = {}
        self.rows: Dict[str, StockReportItem] = {}

    def _line_item(self, row: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        ref = _order_ref(row)
        if ref is None or not row.get("item_uuid"):
            return None
        return self.order_items.get(ref, {}).get(item_key(row["item_uuid"]))

    def _project_key(self, row: Mapping[str, Any], line: Mapping[str, Any]) -> Optional[str]:
        project_item_uuid = line.get("item_uuid") or row.get("item_uuid")
        return item_key(project_item_uuid) if project_item_uuid else None

    def _vendor(self, row: Mapping[str, Any]) -> str:
        ref = _order_ref(row)
        vendor_uuid = self.order_vendors.get(ref) if ref else None
        if not vendor_uuid:
            return MULTIPLE
        return self.vendors.get(vendor_uuid) or NOT_AVAILABLE

    def _cost_code(self, row: Mapping[str, Any]) -> str:
        cost_code_uuid = row.get("cost_code_uuid")
        return self.cost_codes.get(cost_code_uuid, "") if cost_code_uuid else ""

    def add_returns(self, returns: List[Mapping[str, Any]]) -> None:
        for row in returns:
            line = self._line_item(row)
            if line is None:
                continue
            key = self._project_key(row, line)
            if key is None:
                continue
            self.returned[key] = self.returned.get(key, ZERO) + to_decimal(row.get("return_quantity"))

    def add_receipt(self, row: Mapping[str, Any]) -> None:
        line = self._line_item(row)
        if line is None:
            logger.warning(
                "[%s] Item details not found for item_uuid %s (%s)", TAG, row.get("item_uuid"), row.get("item_type")
            )
            return
        key = self._project_key(row, line)
        if key is None:
            logger.warning("[%s] Item without project item uuid skipped: %s", TAG, row.get("uuid"))
            return

        quantity = to_decimal(row.get("received_quantity"))
        unit_price = to_decimal(line.get("unit_price") or line.get("po_unit_price") or line.get("co_unit_price"))
        value = to_decimal(row.get("received_total")) or quantity * unit_price

        uom = line.get("uom") or line.get("unit") or line.get("unit_label") or ""
        sequence = line.get("item_sequence") or None
        project_item = self.catalog.get(key)
        if project_item:
            uom = uom or project_item.get("unit") or ""
            sequence = sequence or project_item.get("item_sequence") or None
        if sequence is not None:
            sequence = str(sequence)

        status = str(row.get("receipt_note_status") or "Received").strip().lower()
        in_shipment = quantity if status == "shipment" else ZERO
        current_stock = quantity if status == "received" else ZERO
        vendor = self._vendor(row)
        cost_code = self._cost_code(row)
        entry_date = row.get("receipt_note_entry_date")

        existing = self.rows.get(key)
        if existing is None:
            existing = StockReportItem(
                item_code=sequence or str(line.get("model_number") or "") or fallback_code(len(self.rows) + 1),
                item_name=line.get("item_name") or line.get("model_number") or NOT_AVAILABLE,
                description=line.get("description") or "",
                vendor_source=vendor,
                cost_code=cost_code,
                uom=uom,
                last_purchase_date=entry_date or None,
                last_stock_update_date=entry_date or row.get("receipt_note_updated_at") or None,
            )
            self.rows[key] = existing
        else:
            if (
                existing.vendor_source
                and existing.vendor_source not in (MULTIPLE, vendor)
                and vendor not in (MULTIPLE, NOT_AVAILABLE)
            ):
                existing.vendor_source = MULTIPLE
            elif not existing.vendor_source or existing.vendor_source == NOT_AVAILABLE:
                existing.vendor_source = vendor
            if not existing.cost_code and cost_code:
                existing.cost_code = cost_code
            if uom and not existing.uom:
                existing.uom = uom
            if sequence and (not existing.item_code or is_fallback_code(existing.item_code)):
                existing.item_code = sequence
            if entry_date:
                if _is_later(entry_date, existing.last_purchase_date):
                    existing.last_purchase_date = entry_date
                if _is_later(entry_date, existing.last_stock_update_date):
                    existing.last_stock_update_date = entry_date

        existing.current_stock += current_stock
        existing.in_shipment += in_shipment
        existing.total_value += value
        existing.returned_qty = self.returned.get(key, ZERO)
        held = existing.current_stock + existing.in_shipment
        if held > 0:
            existing.unit_cost = existing.total_value / held
        elif existing.unit_cost == ZERO:
            existing.unit_cost = unit_price


def generate_stock_report(corporation_uuid: Optional[str], project_uuid: Optional[str]) -> Tuple[Optional[StockReport], Optional[str]]:
    """Return ``(report, error)`` for one project."""
    generator = StockReportGenerator()
    report = generator.generate(corporation_uuid, project_uuid)
    return report, generator.error
