"""How much of a purchase order or change order is still to be invoiced."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional

from ..exceptions import MissingParameterError
from .financial_breakdown import parse_financial_breakdown
from .order_service import OrderKind, get_order, order_kind
from .store import ZERO, fetch, gather, to_decimal
from .supabase_client import require_client

logger = logging.getLogger(__name__)

TAG = "InvoiceSummary"
ADVANCE_PAYMENT = "AGAINST_ADVANCE_PAYMENT"
PAID = "Paid"
ADJUSTED_AGAINST = "adjusted_against_vendor_invoice_uuid"


@dataclass(frozen=True)
class InvoiceSummary:
    kind: OrderKind
    order_uuid: str
    total_value: Decimal
    advance_paid: Decimal
    invoiced_value: Decimal

    @property
    def balance_to_be_invoiced(self) -> Decimal:
        """Remaining value; negative when the order is over-invoiced."""
        return self.total_value - self.advance_paid - self.invoiced_value

    def as_dict(self) -> Dict[str, Any]:
        return {
            self.kind.parent_field: self.order_uuid,
            f"total_{self.kind.code}_value": self.total_value,
            "advance_paid": self.advance_paid,
            "invoiced_value": self.invoiced_value,
            "balance_to_be_invoiced": self.balance_to_be_invoiced,
        }


def _paid_invoices(kind: OrderKind, order_uuid: str, invoice_type: str, columns: str):
    client = require_client()
    return (
        client.table("vendor_invoices")
        .select(columns)
        .eq(kind.parent_field, order_uuid)
        .eq("invoice_type", invoice_type)
        .eq("status", PAID)
        .eq("is_active", True)
    )


def amount_without_tax(invoice: Mapping[str, Any]) -> Decimal:
    breakdown = parse_financial_breakdown(invoice.get("financial_breakdown"))
    return to_decimal(invoice.get("amount")) - breakdown.tax_total()


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def invoice_summary(
    kind_name: Optional[str],
    order_uuid: Optional[str],
    current_invoice_uuid: Optional[str] = None,
) -> InvoiceSummary:
    """Summarise paid invoices against one order.

    Advance payments count net of tax. Those not yet adjusted against any
    invoice always count; those adjusted against ``current_invoice_uuid``
    count only when it is given. Invoice read failures are logged and count
    as zero.
    """
    kind = order_kind(kind_name)
    if not order_uuid:
        raise MissingParameterError(f"{kind.parent_field} is required")

    order = get_order(kind, order_uuid)
    total_value = parse_financial_breakdown(order.get("financial_breakdown")).total_amount(kind.total_key)

    columns = "uuid, amount, financial_breakdown"
    tasks = {
        "unadjusted advance payments": lambda: fetch(
            _paid_invoices(kind, order_uuid, ADVANCE_PAYMENT, columns).is_(ADJUSTED_AGAINST, "null"),
            "advance payment invoices",
        ),
        "invoices": lambda: fetch(
            _paid_invoices(kind, order_uuid, kind.invoice_type, "uuid, amount"),
            "invoices",
        ),
    }
    if current_invoice_uuid:
        tasks["advance payments adjusted against current invoice"] = lambda: fetch(
            _paid_invoices(kind, order_uuid, ADVANCE_PAYMENT, columns).eq(ADJUSTED_AGAINST, current_invoice_uuid),
            "advance payment invoices",
        )
    results = gather(tasks, defaults={name: [] for name in tasks}, tag=TAG)

    advances = list(results["unadjusted advance payments"])
    advances += results.get("advance payments adjusted against current invoice") or []

    return InvoiceSummary(
        kind=kind,
        order_uuid=order_uuid,
        total_value=total_value,
        advance_paid=_sum(amount_without_tax(inv) for inv in advances),
        invoiced_value=_sum(to_decimal(inv.get("amount")) for inv in results["invoices"]),
    )
