import json
from decimal import Decimal

from procurement.services.financial_breakdown import parse_financial_breakdown


def test_json_string_and_object_give_same_total():
    raw = {"totals": {"total_po_amount": 20000, "totalAmount": 1}}

    from_object = parse_financial_breakdown(raw)
    from_string = parse_financial_breakdown(json.dumps(raw))

    assert from_object.source == "object"
    assert from_string.source == "json"
    assert from_object.total_amount("total_po_amount") == Decimal("20000")
    assert from_string.total_amount("total_po_amount") == Decimal("20000")


def test_flattened_totals_fall_back_to_generic_keys():
    breakdown = parse_financial_breakdown({"totalAmount": "150.50"})
    assert breakdown.total_amount("total_co_amount") == Decimal("150.50")

    breakdown = parse_financial_breakdown('{"total": 75}')
    assert breakdown.total_amount("total_po_amount") == Decimal("75")


def test_sales_taxes_are_summed():
    breakdown = parse_financial_breakdown(
        {
            "totals": {"tax_total": 999},
            "sales_taxes": {"sales_tax_1": {"amount": 10}, "sales_tax_2": {"amount": "5.5"}},
        }
    )
    assert breakdown.tax_total() == Decimal("15.5")


def test_tax_total_without_sales_taxes_uses_totals():
    breakdown = parse_financial_breakdown({"totals": {"tax_total": "12"}})
    assert breakdown.tax_total() == Decimal("12")


def test_unparseable_values_yield_empty_breakdown(caplog):
    for raw in (None, "", "not json", 42, "[1, 2]"):
        breakdown = parse_financial_breakdown(raw)
        assert breakdown.source == "empty"
        assert breakdown.total_amount("total_po_amount") == 0
        assert breakdown.tax_total() == 0
    assert "Error parsing financial_breakdown" in caplog.text
