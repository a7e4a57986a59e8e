"""
Unit tests for derived quantities, validation and spreadsheet rows.
"""
import datetime as dt

import pytest

from receipt_extraction_pipeline.core.config import ServiceConfig
from receipt_extraction_pipeline.core.models import ReceiptLineItem, ReceiptRecord
from receipt_extraction_pipeline.core.normalizer import (
    SHEET_HEADERS,
    canonical_category,
    format_for_spreadsheet,
    group_by_category,
    item_count,
    normalize_record,
    total_quantity,
    total_without_tax,
    validate_record,
)

JAN_1 = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)


def complete_record(**overrides) -> ReceiptRecord:
    values = dict(store_name="Acme", total_amount=12.0, currency="USD", receipt_date=JAN_1)
    values.update(overrides)
    return ReceiptRecord(**values)


# =====================================================================
# Derived quantities
# =====================================================================
class TestTotalWithoutTax:
    @pytest.mark.parametrize("subtotal, tax, total, expected", [
        (10.0, 2.0, 12.0, 10.0),
        (0.0, 2.0, 12.0, 10.0),
        (0.0, 0.0, 12.0, 12.0),
    ])
    def test_fallbacks(self, subtotal, tax, total, expected):
        record = ReceiptRecord(subtotal_amount=subtotal, tax_amount=tax, total_amount=total)
        assert total_without_tax(record) == expected


class TestItemAggregates:
    def test_count_and_quantity(self):
        record = ReceiptRecord(items=[
            ReceiptLineItem(name="Milk", quantity=2),
            ReceiptLineItem(name="Cheese", quantity=0.35),
            ReceiptLineItem(name="", quantity=1),
        ])
        assert item_count(record) == 3
        assert total_quantity(record) == pytest.approx(3.35)

    def test_group_by_category(self):
        milk = ReceiptLineItem(name="Milk", category="dairy")
        cheese = ReceiptLineItem(name="Cheese", category="dairy")
        bag = ReceiptLineItem(name="Bag")
        groups = group_by_category(ReceiptRecord(items=[milk, bag, cheese]))
        assert groups == {"dairy": [milk, cheese], "Uncategorized": [bag]}

    def test_empty_record(self):
        assert item_count(ReceiptRecord()) == 0
        assert total_quantity(ReceiptRecord()) == 0
        assert group_by_category(ReceiptRecord()) == {}


# =====================================================================
# Validation
# =====================================================================
class TestValidateRecord:
    def test_complete_record(self):
        assert validate_record(complete_record()) == []

    def test_missing_everything(self):
        errors = validate_record(ReceiptRecord())
        assert errors == [
            "store name is required",
            "total amount must be positive",
            "currency is required",
            "receipt date is required",
        ]

    def test_subtotal_and_tax_within_tolerance(self):
        assert validate_record(complete_record(subtotal_amount=10.0, tax_amount=2.04)) == []

    def test_subtotal_and_tax_mismatch(self):
        errors = validate_record(complete_record(subtotal_amount=10.0, tax_amount=1.0))
        assert len(errors) == 1
        assert errors[0].startswith("total calculation mismatch")

    def test_tip_and_discount_counted(self):
        record = complete_record(total_amount=13.0, subtotal_amount=11.0, tax_amount=1.0,
                                 tip_amount=2.0, discount_amount=1.0)
        assert validate_record(record) == []

    def test_no_subtotal_skips_arithmetic(self):
        assert validate_record(complete_record(tax_amount=5.0)) == []


# =====================================================================
# Normalization
# =====================================================================
class TestNormalizeRecord:
    def test_category_canonicalized(self):
        assert canonical_category("food & groceries") == "Food & Groceries"
        assert canonical_category("medical") == "Medical"
        assert canonical_category("TRANSPORTATION") == "Transportation"
        assert canonical_category("Groceries and stuff") == ""
        assert canonical_category("") == ""

    def test_defaults_enforced(self):
        record = ReceiptRecord(
            store_name="  Acme  ",
            currency="",
            expense_category="Space travel",
            confidence_level=1.7,
            items=[ReceiptLineItem(name=" Coffee ", category=" drinks ")],
        )
        normalized = normalize_record(record, ServiceConfig(default_currency="EUR"))
        assert normalized.store_name == "Acme"
        assert normalized.currency == "EUR"
        assert normalized.expense_category == ""
        assert normalized.confidence_level == 1.0
        assert normalized.items[0].name == "Coffee"
        assert normalized.items[0].category == "drinks"
        assert record.store_name == "  Acme  "

    def test_currency_uppercased(self):
        assert normalize_record(ReceiptRecord(currency="usd")).currency == "USD"

    def test_negative_confidence_clamped(self):
        assert normalize_record(ReceiptRecord(confidence_level=-0.2)).confidence_level == 0.0


# =====================================================================
# Spreadsheet row
# =====================================================================
class TestFormatForSpreadsheet:
    def test_numeric_total(self):
        row = format_for_spreadsheet(ReceiptRecord(total_amount=1250.50))
        assert row[3] == 1250.50
        assert isinstance(row[3], float)

    def test_zero_total_is_blank(self):
        assert format_for_spreadsheet(ReceiptRecord(total_amount=0))[3] == ""

    def test_none_record(self):
        assert format_for_spreadsheet(None, "https://link", "memo") == [
            "", "", "", "", 0, "", "", "https://link", "memo"]

    def test_items_summary_skips_empty_names(self):
        record = ReceiptRecord(items=[
            ReceiptLineItem(name="Coffee"),
            ReceiptLineItem(name=""),
            ReceiptLineItem(name="Water"),
        ])
        row = format_for_spreadsheet(record)
        assert row[4] == 3
        assert row[5] == "Coffee, Water"

    def test_only_unnamed_items(self):
        row = format_for_spreadsheet(ReceiptRecord(items=[ReceiptLineItem(name="")]))
        assert row[4] == 1
        assert row[5] == ""

    def test_sentinels(self):
        row = format_for_spreadsheet(ReceiptRecord())
        assert row[0] == ""
        assert row[1] == "uncategorized"
        assert row[6] == "unknown"

    def test_full_row(self):
        record = complete_record(expense_category="Medical", payment_method="CASH",
                                 items=[ReceiptLineItem(name="Aspirin")])
        row = format_for_spreadsheet(record, "https://link", "reimburse")
        assert row == ["2024-01-01", "Medical", "Acme", 12.0, 1, "Aspirin", "CASH",
                       "https://link", "reimburse"]
        assert len(row) == len(SHEET_HEADERS)
