"""
Prompt construction for receipt extraction.
"""

from enum import Enum

from .config import ServiceConfig
from .models import ExtractionRequest


class ExpenseCategory(str, Enum):
    """Closed set of household-budget categories a receipt is classified into."""
    FOOD = "Food & Groceries"
    TRANSPORTATION = "Transportation"
    HOUSEHOLD = "Household Items"
    MEDICAL = "Medical"
    LEISURE = "Culture/Leisure"
    EDUCATION = "Education"
    COMMUNICATION = "Communication"
    OTHER = "Other"


CATEGORY_GUIDE = {
    ExpenseCategory.FOOD: "restaurants, supermarkets, convenience stores, cafes",
    ExpenseCategory.TRANSPORTATION: "gas stations, tolls, parking, public transport",
    ExpenseCategory.HOUSEHOLD: "home supplies, cleaning products, furniture",
    ExpenseCategory.MEDICAL: "pharmacies, hospitals, clinics",
    ExpenseCategory.LEISURE: "movies, books, entertainment, sports",
    ExpenseCategory.EDUCATION: "books, courses, supplies",
    ExpenseCategory.COMMUNICATION: "phone bills, internet",
    ExpenseCategory.OTHER: "anything else",
}

RESPONSE_SHAPE = """{
  "store_name": "string",
  "receipt_date": "2024-01-01T12:00:00Z",
  "total_amount": 0.0,
  "currency": "USD",
  "items": [
    {
      "name": "string",
      "quantity": 1.0,
      "unit_price": 0.0,
      "total_price": 0.0,
      "category": "string",
      "sku": "string",
      "discount": 0.0,
      "tax_amount": 0.0,
      "description": "string"
    }
  ],
  "store_address": "string",
  "store_phone": "string",
  "tax_amount": 0.0,
  "subtotal_amount": 0.0,
  "discount_amount": 0.0,
  "tip_amount": 0.0,
  "payment_method": "string",
  "card_last_digits": "string",
  "receipt_number": "string",
  "transaction_id": "string",
  "cashier_name": "string",
  "register_number": "string",
  "expense_category": "Food & Groceries",
  "notes": "string",
  "confidence_level": 0.95
}"""


def build_extraction_prompt(request: ExtractionRequest, config: ServiceConfig) -> str:
    """
    Render the extraction instructions for the vision endpoint.

    Args:
        request: Extraction request; its currency/language override the config
        config: Service configuration providing default currency and language

    Returns:
        Prompt text
    """
    currency = request.expected_currency or config.default_currency
    language = request.expected_language or config.default_language

    categories = "\n".join(
        f'   - "{category.value}" - {CATEGORY_GUIDE[category]}' for category in ExpenseCategory
    )

    prompt = f"""You are an expert at extracting structured data from receipt images. Analyze this receipt image and extract all available information in JSON format.

Instructions:
1. Extract the receipt date and convert it to ISO 8601 format (YYYY-MM-DDTHH:MM:SSZ)
2. Extract all items with their names, quantities, unit prices, and total prices
3. Identify the store name, address, and phone number if visible
4. Extract the total amount, currency, tax, subtotal, discounts, and tips
5. Look for payment method, card last digits, receipt number, transaction ID, cashier name, register number
6. Extract any other relevant information you can find
7. If the currency is not visible, assume: {currency}
8. The receipt may be in: {language} (or other languages - detect automatically)
9. Be precise with numbers and dates
10. If information is unclear or not visible, omit that field or set it to null

11. Classify the receipt into ONE expense category for household budget tracking:
{categories}

Return ONLY a valid JSON object matching this structure:
{RESPONSE_SHAPE}

Do not include any markdown formatting, explanations, or text outside the JSON object."""

    if request.store_hint:
        prompt += f"\n\nAdditional context: This receipt is likely from {request.store_hint}"

    return prompt
