"""
Exception types raised by the extraction pipeline.
"""

from typing import Optional


class ReceiptPipelineError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(ReceiptPipelineError, ValueError):
    """Raised when the service cannot be configured (e.g. no API key)."""


class ImageValidationError(ReceiptPipelineError):
    """An image failed a precondition check before any network call."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class ExtractionError(ReceiptPipelineError):
    """
    Base for failures while talking to the vision endpoint.

    raw_text holds whatever text the endpoint returned, so it can be logged
    even when the call failed.
    """

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class TransportError(ExtractionError):
    """The endpoint could not be reached."""


class ExtractionTimeoutError(TransportError):
    """The endpoint did not answer before the deadline."""


class ExtractionCancelledError(TransportError):
    """The caller cancelled the extraction."""


class APIError(ExtractionError):
    """The endpoint answered with an error status or refused the request."""

    def __init__(self, message: str, status_code: Optional[int] = None, raw_text: str = ""):
        super().__init__(message, raw_text=raw_text)
        self.status_code = status_code


class ParseError(ExtractionError):
    """The endpoint's answer could not be decoded into a receipt."""
