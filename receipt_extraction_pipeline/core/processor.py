"""
Main receipt extraction orchestration.
"""

import logging
import threading
from typing import Dict, Optional

import openai

from .config import ServiceConfig, merge_config
from .errors import ConfigurationError, ExtractionError, ImageValidationError
from .images import describe_size, detect_mime_type, identify_format, validate_base64, validate_image
from .llm import ExtractionClient
from .models import ExtractionOutcome, ExtractionRequest
from .normalizer import format_for_spreadsheet, normalize_record
from .prompts import build_extraction_prompt
from .sheets import SheetSink
from .utils import encode_image_to_base64, is_data_uri, is_remote_url, prepare_image_data_uri

logger = logging.getLogger(__name__)


class ReceiptProcessor:
    """Runs validate -> prompt -> extract -> normalize for one receipt at a time."""

    def __init__(self, config: Optional[ServiceConfig] = None,
                 client: Optional[openai.OpenAI] = None):
        """
        Initialize receipt processor.

        Args:
            config: Service configuration; unset fields get built-in defaults
            client: Preconfigured OpenAI client (optional)

        Raises:
            ConfigurationError: no API key in config or OPENAI_API_KEY
        """
        self._config = (config or ServiceConfig()).with_defaults()
        if not self._config.api_key:
            raise ConfigurationError(
                "OpenAI API key is required. Set OPENAI_API_KEY environment variable or provide it in config")
        self._client = client
        self.extraction_client = ExtractionClient(self._config, client=client)

    @property
    def config(self) -> ServiceConfig:
        return self._config

    def update_config(self, patch: ServiceConfig) -> ServiceConfig:
        """Replace the config with current merged with patch; returns the new config."""
        self._config = merge_config(self._config, patch)
        if self._client is None:
            # rebuilt lazily with the new key / base URL / timeout
            self.extraction_client = ExtractionClient(self._config)
        else:
            self.extraction_client.config = self._config
        return self._config

    def extract(self, request: ExtractionRequest,
                timeout: Optional[float] = None,
                cancel: Optional[threading.Event] = None) -> ExtractionOutcome:
        """
        Extract a receipt from the image referenced by request.

        Never raises for validation, transport, API or parse failures; they
        are reported through an unsuccessful outcome.
        """
        if not request.image_data and not request.image_url:
            return ExtractionOutcome.failure("either image_data or image_url must be provided")

        image_url = request.image_url
        if not image_url:
            if is_data_uri(request.image_data):
                image_url = request.image_data
            else:
                mime_type = detect_mime_type(request.image_data)
                image_url = prepare_image_data_uri(request.image_data, mime_type)

        prompt = build_extraction_prompt(request, self._config)

        try:
            record, raw_text = self.extraction_client.extract(image_url, prompt,
                                                              timeout=timeout, cancel=cancel)
        except ExtractionError as e:
            logger.error("Failed to extract receipt data: %s", e)
            return ExtractionOutcome.failure(str(e), raw_text=e.raw_text)

        record.raw_text = raw_text
        record = normalize_record(record, self._config)
        logger.info("Receipt extraction successful - %s", record.summary())
        return ExtractionOutcome(success=True, data=record, raw_text=raw_text)

    def extract_from_base64(self, b64_image: str, hints: Optional[Dict[str, str]] = None,
                            timeout: Optional[float] = None,
                            cancel: Optional[threading.Event] = None) -> ExtractionOutcome:
        """Validate and extract base64 image data (raw or data URI)."""
        try:
            validate_base64(b64_image)
        except ImageValidationError as e:
            logger.warning("Image validation failed: %s", e)
            return ExtractionOutcome.failure(str(e))
        request = ExtractionRequest.from_hints(hints, image_data=b64_image)
        return self.extract(request, timeout=timeout, cancel=cancel)

    def extract_from_url(self, image_url: str, hints: Optional[Dict[str, str]] = None,
                         timeout: Optional[float] = None,
                         cancel: Optional[threading.Event] = None) -> ExtractionOutcome:
        """Extract from a remote image URL the endpoint can fetch itself."""
        request = ExtractionRequest.from_hints(hints, image_url=image_url)
        return self.extract(request, timeout=timeout, cancel=cancel)

    def extract_from_bytes(self, image_bytes: bytes, hints: Optional[Dict[str, str]] = None,
                           timeout: Optional[float] = None,
                           cancel: Optional[threading.Event] = None) -> ExtractionOutcome:
        """Validate raw image bytes, then extract."""
        try:
            validate_image(image_bytes)
        except ImageValidationError as e:
            logger.warning("Image validation failed: %s (format=%s, %s)",
                           e, identify_format(image_bytes), describe_size(image_bytes))
            return ExtractionOutcome.failure(str(e))

        logger.info("Image validation passed: Format=%s, %s",
                    identify_format(image_bytes), describe_size(image_bytes))
        return self.extract_from_base64(encode_image_to_base64(image_bytes), hints,
                                        timeout=timeout, cancel=cancel)

    def extract_from_source(self, source: str, hints: Optional[Dict[str, str]] = None,
                            timeout: Optional[float] = None,
                            cancel: Optional[threading.Event] = None) -> ExtractionOutcome:
        """Route an http(s) URL or base64 string to the matching extraction path."""
        if is_remote_url(source):
            return self.extract_from_url(source, hints, timeout=timeout, cancel=cancel)
        return self.extract_from_base64(source, hints, timeout=timeout, cancel=cancel)

    def process_image(self, image_bytes: bytes, link: str = "", memo: str = "",
                      sink: Optional[SheetSink] = None,
                      hints: Optional[Dict[str, str]] = None,
                      timeout: Optional[float] = None,
                      cancel: Optional[threading.Event] = None) -> ExtractionOutcome:
        """
        Extract a receipt and append its row to sink.

        A failing sink is logged and does not change the outcome, since the
        extraction itself already succeeded.
        """
        outcome = self.extract_from_bytes(image_bytes, hints, timeout=timeout, cancel=cancel)
        if not outcome.success or sink is None:
            return outcome

        row = format_for_spreadsheet(outcome.data, link, memo)
        try:
            sink.append_row(row)
        except Exception:
            logger.exception("Failed to add receipt to spreadsheet")
        return outcome
