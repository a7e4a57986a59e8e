"""
Receipt Extraction Pipeline

Turns a photographed receipt into a normalized, spreadsheet-ready record
using a vision-capable chat-completions endpoint.
"""

__version__ = "1.0.0"
__author__ = "Receipt Extraction Pipeline Contributors"

from receipt_extraction_pipeline.core.models import ExtractionOutcome, ReceiptLineItem, ReceiptRecord
from receipt_extraction_pipeline.core.processor import ReceiptProcessor

__all__ = ["ExtractionOutcome", "ReceiptLineItem", "ReceiptRecord", "ReceiptProcessor"]
