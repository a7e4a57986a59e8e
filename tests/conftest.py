"""
Shared pytest fixtures: sample images and a fake vision endpoint behind a real OpenAI client.
"""
import json

import httpx
import openai
import pytest

from receipt_extraction_pipeline.core.config import ServiceConfig
from receipt_extraction_pipeline.core.processor import ReceiptProcessor

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"

ACME_RECEIPT = {
    "store_name": "Acme",
    "total_amount": 42.0,
    "currency": "USD",
    "receipt_date": "2024-01-01T00:00:00Z",
}


def completion_body(content, refusal=None):
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-4o",
        "choices": [
            {
                "index": 0,
                "finish_reason": "stop",
                "message": {"role": "assistant", "content": content, "refusal": refusal},
            }
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
    }


class FakeEndpoint:
    """Records requests and answers them with a queued handler."""

    def __init__(self):
        self.requests = []
        self.handler = lambda request: httpx.Response(200, json=completion_body(json.dumps(ACME_RECEIPT)))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def respond_with_content(self, content):
        self.handler = lambda request: httpx.Response(200, json=completion_body(content))

    @property
    def last_payload(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture()
def png_bytes():
    return PNG_MAGIC + b"\x00" * (13 * 1024)


@pytest.fixture()
def endpoint():
    return FakeEndpoint()


@pytest.fixture()
def openai_client(endpoint):
    http_client = httpx.Client(transport=httpx.MockTransport(endpoint))
    client = openai.OpenAI(
        api_key="test-key",
        base_url="https://vision.test/v1",
        http_client=http_client,
        max_retries=0,
    )
    yield client
    client.close()


@pytest.fixture()
def config():
    return ServiceConfig(api_key="test-key")


@pytest.fixture()
def processor(config, openai_client):
    return ReceiptProcessor(config, client=openai_client)
