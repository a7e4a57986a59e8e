"""
Derived quantities, completeness checks and spreadsheet projection for receipts.
"""

import logging
from collections import defaultdict
from dataclasses import replace
from typing import Dict, List, Optional, Union

from .config import ServiceConfig
from .models import ReceiptLineItem, ReceiptRecord
from .prompts import ExpenseCategory

logger = logging.getLogger(__name__)

UNCATEGORIZED_ITEMS = "Uncategorized"
UNCATEGORIZED = "uncategorized"
UNKNOWN_PAYMENT = "unknown"

# Allowed gap between subtotal + tax (+ tip - discount) and the total
CALCULATION_TOLERANCE = 0.05

# Column order expected by the spreadsheet consumer
SHEET_HEADERS = [
    "Date",
    "Category",
    "Store",
    "Total",
    "Item Count",
    "Items",
    "Payment Method",
    "Receipt Link",
    "Memo",
]

Cell = Union[str, int, float]


def total_without_tax(record: ReceiptRecord) -> float:
    """Subtotal if reported, else total minus tax, else the total."""
    if record.subtotal_amount > 0:
        return record.subtotal_amount
    if record.tax_amount > 0:
        return record.total_amount - record.tax_amount
    return record.total_amount


def item_count(record: ReceiptRecord) -> int:
    return len(record.items)


def total_quantity(record: ReceiptRecord) -> float:
    return sum(item.quantity for item in record.items)


def group_by_category(record: ReceiptRecord) -> Dict[str, List[ReceiptLineItem]]:
    """Group items by their category; items without one go under "Uncategorized"."""
    groups = defaultdict(list)
    for item in record.items:
        groups[item.category or UNCATEGORIZED_ITEMS].append(item)
    return dict(groups)


def canonical_category(category: str) -> str:
    """Map a category to its ExpenseCategory value, or "" if it is not one of them."""
    category = (category or "").strip()
    if not category:
        return ""
    category_lower = category.lower()
    for member in ExpenseCategory:
        if member.value.lower() == category_lower or member.name.lower() == category_lower:
            return member.value
    return ""


def validate_record(record: ReceiptRecord) -> List[str]:
    """
    Check a record for completeness.

    Returns:
        List of problems; empty when the record is complete
    """
    errors = []

    if not record.store_name:
        errors.append("store name is required")
    if record.total_amount <= 0:
        errors.append("total amount must be positive")
    if not record.currency:
        errors.append("currency is required")
    if record.receipt_date is None:
        errors.append("receipt date is required")

    # Only checked when the receipt reports a subtotal
    if record.subtotal_amount > 0:
        calculated = (record.subtotal_amount + record.tax_amount
                      + record.tip_amount - record.discount_amount)
        if abs(calculated - record.total_amount) > CALCULATION_TOLERANCE:
            errors.append(
                f"total calculation mismatch: subtotal({record.subtotal_amount:.2f}) + "
                f"tax({record.tax_amount:.2f}) + tip({record.tip_amount:.2f}) - "
                f"discount({record.discount_amount:.2f}) != total({record.total_amount:.2f})")

    if errors:
        logger.warning("Receipt validation completed with %d errors: %s", len(errors), "; ".join(errors))
    return errors


def normalize_record(record: ReceiptRecord, config: Optional[ServiceConfig] = None) -> ReceiptRecord:
    """
    Enforce default values on an extracted record.

    Strips text fields, restricts the expense category to the closed set,
    fills a missing currency from the config and clamps the confidence to
    [0, 1]. Returns a new record.
    """
    currency = record.currency.strip().upper()
    if not currency and config is not None:
        currency = config.default_currency

    items = [
        replace(item, name=item.name.strip(), category=item.category.strip())
        for item in record.items
    ]

    return replace(
        record,
        store_name=record.store_name.strip(),
        currency=currency,
        payment_method=record.payment_method.strip(),
        expense_category=canonical_category(record.expense_category),
        items=items,
        confidence_level=min(max(record.confidence_level, 0.0), 1.0),
    )


def format_for_spreadsheet(record: Optional[ReceiptRecord], link: str = "", memo: str = "") -> List[Cell]:
    """
    Project a record into the 9-column spreadsheet row.

    Columns: date, category, store, total, item count, items, payment method,
    link, memo. The total is a number when positive and "" otherwise so that
    sheet formulas over the column only see numbers or blanks.
    """
    date = ""
    category = ""
    store_name = ""
    total_amount: Cell = ""
    count = 0
    items_summary = ""
    payment_method = ""

    if record is not None:
        if record.receipt_date is not None:
            date = record.receipt_date.strftime("%Y-%m-%d")
        category = record.expense_category or UNCATEGORIZED
        store_name = record.store_name
        if record.total_amount > 0:
            total_amount = record.total_amount
        count = len(record.items)
        items_summary = ", ".join(item.name for item in record.items if item.name)
        payment_method = record.payment_method or UNKNOWN_PAYMENT

    return [
        date,
        category,
        store_name,
        total_amount,
        count,
        items_summary,
        payment_method,
        link,
        memo,
    ]
