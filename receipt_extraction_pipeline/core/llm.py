"""
Receipt extraction through an OpenAI-compatible vision chat endpoint.
"""

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple

import openai
from openai.types.chat import ChatCompletion

from .config import ServiceConfig
from .errors import (APIError, ExtractionCancelledError, ExtractionTimeoutError,
                     ParseError, TransportError)
from .models import ReceiptRecord

logger = logging.getLogger(__name__)

IMAGE_DETAIL = "high"
CANCEL_POLL_INTERVAL = 0.05


def _strip_code_fence(text: str) -> str:
    """Extract JSON from a markdown code block if the model added one."""
    if not text.startswith("```"):
        return text
    json_lines = []
    in_code = False
    for line in text.split("\n"):
        if line.startswith("```"):
            in_code = not in_code
            continue
        if in_code:
            json_lines.append(line)
    return "\n".join(json_lines)


def _api_error_message(error: openai.APIStatusError) -> str:
    body = error.body
    if isinstance(body, dict) and body.get("message"):
        return f"OpenAI API error: {body['message']}"
    return f"OpenAI API returned status {error.status_code}: {error.response.text}"


def parse_receipt_content(content: str) -> ReceiptRecord:
    """
    Decode the message content of a completion into a ReceiptRecord.

    Raises:
        ParseError: content is not a JSON object matching the receipt schema
    """
    try:
        data = json.loads(_strip_code_fence(content.strip()))
        return ReceiptRecord.from_dict(data)
    except ValueError as e:
        raise ParseError(f"failed to parse receipt data: {e}", raw_text=content) from e


class ExtractionClient:
    """Sends one receipt image plus prompt to the vision endpoint."""

    def __init__(self, config: ServiceConfig, client: Optional[openai.OpenAI] = None):
        """
        Args:
            config: Service configuration (defaults already applied)
            client: Preconfigured OpenAI client; created lazily from config if omitted
        """
        self.config = config
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> openai.OpenAI:
        """Get or create the OpenAI client (lazy initialization)."""
        if self._client is None:
            self._client = openai.OpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url or None,
                timeout=self.config.timeout,
                max_retries=0,
            )
        return self._client

    def build_messages(self, image_url: str, prompt: str) -> list:
        return [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": image_url, "detail": IMAGE_DETAIL}},
                ],
            }
        ]

    def _abandon(self, client: openai.OpenAI) -> None:
        """Close an owned client so its in-flight socket is torn down."""
        if self._owns_client and self._client is client:
            self._client = None
            client.close()

    def _dispatch(self, cancel: Optional[threading.Event], **params):
        """
        Run the completion call, returning early if cancel is set mid-flight.

        The call runs on a worker thread while the caller waits on cancel. An
        owned client is closed on cancellation and rebuilt on the next call;
        an injected client's connection goes back to its pool when the
        abandoned call completes.
        """
        client = self.client
        if cancel is None:
            return client.chat.completions.create(**params)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="vision-call")
        try:
            future = executor.submit(client.chat.completions.create, **params)
            while not future.done():
                if cancel.wait(CANCEL_POLL_INTERVAL):
                    future.cancel()
                    logger.warning("Vision call cancelled while in flight")
                    self._abandon(client)
                    raise ExtractionCancelledError("extraction cancelled during request")
            return future.result()
        finally:
            executor.shutdown(wait=False)

    def extract(self, image_url: str, prompt: str,
                timeout: Optional[float] = None,
                cancel: Optional[threading.Event] = None) -> Tuple[ReceiptRecord, str]:
        """
        Extract a receipt from an image.

        Args:
            image_url: Data URI or absolute URL of an already validated image
            prompt: Extraction instructions
            timeout: Deadline in seconds for this call (defaults to config.timeout)
            cancel: Event the caller sets to abandon the extraction

        Returns:
            Tuple of (record, raw response text)

        Raises:
            ExtractionCancelledError: cancel was set before or during the call
            ExtractionTimeoutError: the endpoint did not answer in time
            TransportError: the endpoint could not be reached
            APIError: error status, refusal, or no choices
            ParseError: the answer is not a receipt JSON object
        """
        if cancel is not None and cancel.is_set():
            raise ExtractionCancelledError("extraction cancelled before request")

        model = self.config.vision_model
        logger.info("Calling vision endpoint - model: %s", model)

        try:
            response = self._dispatch(
                cancel,
                model=model,
                messages=self.build_messages(image_url, prompt),
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                response_format={"type": "json_object"},
                timeout=timeout if timeout is not None else self.config.timeout,
            )
        except openai.APITimeoutError as e:
            raise ExtractionTimeoutError(f"OpenAI API request timed out: {e}") from e
        except openai.APIConnectionError as e:
            raise TransportError(f"failed to call OpenAI API: {e}") from e
        except openai.APIStatusError as e:
            logger.error("Vision endpoint returned status %s", e.status_code)
            raise APIError(_api_error_message(e), status_code=e.status_code,
                           raw_text=e.response.text) from e
        except openai.APIResponseValidationError as e:
            raise ParseError(f"failed to parse response: {e}",
                             raw_text=e.response.text) from e

        if cancel is not None and cancel.is_set():
            raise ExtractionCancelledError("extraction cancelled during request")

        # a 200 body that is not JSON comes back from the SDK as plain text
        if not isinstance(response, ChatCompletion):
            raise ParseError("failed to parse response: endpoint did not return a chat completion",
                             raw_text=str(response))

        if response.usage is not None:
            logger.info("Vision call successful - promptTokens: %s, completionTokens: %s, totalTokens: %s",
                        response.usage.prompt_tokens, response.usage.completion_tokens,
                        response.usage.total_tokens)

        if not response.choices:
            raise APIError("no choices returned from API")

        message = response.choices[0].message
        if getattr(message, "refusal", None):
            raise APIError(f"request refused: {message.refusal}")

        content = message.content or ""
        record = parse_receipt_content(content)

        logger.info("Receipt data extracted - store: %s, total: %.2f, items: %d",
                    record.store_name, record.total_amount, len(record.items))
        return record, content
