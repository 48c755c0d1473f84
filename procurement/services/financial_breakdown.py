"""Parsing of the ``financial_breakdown`` JSON column.

The column is stored either as a JSON-encoded string or as a native JSON
object. :func:`parse_financial_breakdown` resolves both shapes once so the
rest of the code only ever sees a :class:`FinancialBreakdown`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Literal, Mapping

from .store import ZERO, to_decimal

logger = logging.getLogger(__name__)

BreakdownSource = Literal["json", "object", "empty"]


@dataclass(frozen=True)
class FinancialBreakdown:
    totals: Dict[str, Any] = field(default_factory=dict)
    sales_taxes: Dict[str, Any] | None = None
    source: BreakdownSource = "empty"

    def total_amount(self, *keys: str) -> Decimal:
        """Return the first non-zero amount among ``keys`` in ``totals``.

        ``totalAmount`` and ``total`` are always tried after ``keys``.
        """
        for key in (*keys, "totalAmount", "total"):
            amount = to_decimal(self.totals.get(key))
            if amount:
                return amount
        return ZERO

    def tax_total(self) -> Decimal:
        """Sum of sales taxes, falling back to ``totals.tax_total``."""
        if self.sales_taxes:
            tax1 = self.sales_taxes.get("sales_tax_1") or self.sales_taxes.get("salesTax1") or {}
            tax2 = self.sales_taxes.get("sales_tax_2") or self.sales_taxes.get("salesTax2") or {}
            return _amount(tax1) + _amount(tax2)
        return to_decimal(self.totals.get("tax_total") or self.totals.get("taxTotal"))


def _amount(entry: Any) -> Decimal:
    if isinstance(entry, Mapping):
        return to_decimal(entry.get("amount"))
    return ZERO


def parse_financial_breakdown(raw: Any) -> FinancialBreakdown:
    """Return a :class:`FinancialBreakdown` for a stored column value.

    Strings are decoded as JSON; mappings are used as-is. Anything else,
    including undecodable strings, yields an empty breakdown. Breakdowns
    without a nested ``totals`` object are read as flattened totals.
    """
    source: BreakdownSource
    if isinstance(raw, str):
        if not raw.strip():
            return FinancialBreakdown()
        try:
            data = json.loads(raw)
        except ValueError:
            logger.error("Error parsing financial_breakdown: %r", raw[:80])
            return FinancialBreakdown()
        source = "json"
    elif isinstance(raw, Mapping):
        data = raw
        source = "object"
    else:
        return FinancialBreakdown()

    if not isinstance(data, Mapping):
        return FinancialBreakdown()

    totals = data.get("totals")
    if not isinstance(totals, Mapping):
        totals = data
    sales_taxes = data.get("sales_taxes")
    return FinancialBreakdown(
        totals=dict(totals),
        sales_taxes=dict(sales_taxes) if isinstance(sales_taxes, Mapping) else None,
        source=source,
    )
