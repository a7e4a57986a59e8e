"""
Data models for receipt extraction.
"""

import datetime as dt
import json
import math
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Optional

from .utils import normalize_amount


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_float(value: Any, name: str) -> float:
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"{name}: expected a number, got {value!r}")
    amount = None
    if isinstance(value, (int, float)):
        try:
            amount = float(value)
        except OverflowError:
            raise ValueError(f"{name}: number out of range") from None
    elif isinstance(value, str):
        amount = normalize_amount(value)
    if amount is not None:
        if not math.isfinite(amount):
            raise ValueError(f"{name}: number out of range")
        return amount
    raise ValueError(f"{name}: expected a number, got {value!r}")


def _parse_datetime(value: Any) -> Optional[dt.datetime]:
    """Parse an ISO 8601 timestamp; None or empty means no date."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"receipt_date: expected an ISO 8601 string, got {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return dt.datetime.fromisoformat(text)
    except ValueError as e:
        raise ValueError(f"receipt_date: invalid timestamp {value!r}") from e


def _format_datetime(value: Optional[dt.datetime]) -> Optional[str]:
    if value is None:
        return None
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


@dataclass
class ReceiptLineItem:
    """A single line of a receipt. Quantity may be fractional (e.g. weight)."""
    name: str = ""
    quantity: float = 0.0
    unit_price: float = 0.0
    total_price: float = 0.0
    category: str = ""
    sku: str = ""
    discount: float = 0.0
    tax_amount: float = 0.0
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReceiptLineItem":
        if not isinstance(data, dict):
            raise ValueError(f"items: expected an object, got {data!r}")
        return cls(
            name=_as_str(data.get("name")),
            quantity=_as_float(data.get("quantity"), "quantity"),
            unit_price=_as_float(data.get("unit_price"), "unit_price"),
            total_price=_as_float(data.get("total_price"), "total_price"),
            category=_as_str(data.get("category")),
            sku=_as_str(data.get("sku")),
            discount=_as_float(data.get("discount"), "discount"),
            tax_amount=_as_float(data.get("tax_amount"), "tax_amount"),
            description=_as_str(data.get("description")),
        )


_STRING_FIELDS = (
    "store_name", "currency", "store_address", "store_phone", "payment_method",
    "card_last_digits", "receipt_number", "transaction_id", "cashier_name",
    "register_number", "expense_category", "notes", "raw_text",
)
_AMOUNT_FIELDS = (
    "total_amount", "tax_amount", "subtotal_amount", "discount_amount", "tip_amount",
    "confidence_level",
)


@dataclass
class ReceiptRecord:
    """
    Structured receipt as returned by the vision endpoint.

    total_amount is authoritative. subtotal_amount and tax_amount are advisory
    and are 0.0 when the receipt does not show them. A receipt_date of None
    means no date was found.
    """
    store_name: str = ""
    receipt_date: Optional[dt.datetime] = None
    total_amount: float = 0.0
    currency: str = ""
    items: List[ReceiptLineItem] = field(default_factory=list)

    store_address: str = ""
    store_phone: str = ""
    tax_amount: float = 0.0
    subtotal_amount: float = 0.0
    discount_amount: float = 0.0
    tip_amount: float = 0.0

    payment_method: str = ""
    card_last_digits: str = ""

    receipt_number: str = ""
    transaction_id: str = ""
    cashier_name: str = ""
    register_number: str = ""

    expense_category: str = ""

    notes: str = ""
    custom_fields: Dict[str, str] = field(default_factory=dict)
    raw_text: str = ""
    confidence_level: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        data = asdict(self)
        data["receipt_date"] = _format_datetime(self.receipt_date)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReceiptRecord":
        """
        Build a record from decoded JSON.

        Missing or null fields take their zero value. Raises ValueError when a
        present field has the wrong shape.
        """
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")

        kwargs: Dict[str, Any] = {name: _as_str(data.get(name)) for name in _STRING_FIELDS}
        kwargs.update({name: _as_float(data.get(name), name) for name in _AMOUNT_FIELDS})
        kwargs["receipt_date"] = _parse_datetime(data.get("receipt_date"))

        items = data.get("items") or []
        if not isinstance(items, list):
            raise ValueError(f"items: expected a list, got {items!r}")
        kwargs["items"] = [ReceiptLineItem.from_dict(item) for item in items]

        custom_fields = data.get("custom_fields") or {}
        if not isinstance(custom_fields, dict):
            raise ValueError(f"custom_fields: expected an object, got {custom_fields!r}")
        kwargs["custom_fields"] = {str(k): _as_str(v) for k, v in custom_fields.items()}

        return cls(**kwargs)

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)

    @classmethod
    def from_json(cls, text: str) -> "ReceiptRecord":
        return cls.from_dict(json.loads(text))

    def summary(self) -> str:
        """One-line description for logs."""
        date = self.receipt_date.strftime("%Y-%m-%d") if self.receipt_date else ""
        return (f"{self.store_name} | {date} | {len(self.items)} items | "
                f"Total: {self.total_amount:.2f} {self.currency}")


@dataclass
class ExtractionRequest:
    """Image source plus optional hints for one extraction."""
    image_data: str = ""  # base64, with or without a data URI header
    image_url: str = ""
    expected_currency: str = ""
    expected_language: str = ""
    store_hint: str = ""

    @classmethod
    def from_hints(cls, hints: Optional[Dict[str, str]] = None, **kwargs) -> "ExtractionRequest":
        """Build a request from a hints mapping with keys currency, language, store."""
        hints = hints or {}
        return cls(
            expected_currency=hints.get("currency", ""),
            expected_language=hints.get("language", ""),
            store_hint=hints.get("store", ""),
            **kwargs,
        )


@dataclass
class ExtractionOutcome:
    """Result of one extraction. raw_text is kept on failure for diagnostics."""
    success: bool
    data: Optional[ReceiptRecord] = None
    error: str = ""
    raw_text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data.to_dict() if self.data else None,
            "error": self.error,
            "raw_text": self.raw_text,
        }

    @classmethod
    def failure(cls, error: str, raw_text: str = "") -> "ExtractionOutcome":
        return cls(success=False, error=error, raw_text=raw_text)
