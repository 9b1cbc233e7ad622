"""
Test fixtures for HTTP stubbing of the text-generation service.

This module provides:
- OpenAI-compatible completion envelopes
- httpx MockTransports that record the requests they served
- Sample statement content
"""

import json
from typing import Callable

import httpx

BASE_URL = "https://llm.test"
COMPLETIONS_URL = f"{BASE_URL}/chat/completions"

SAMPLE_ROWS = [
    "2024-01-05, 42.10 USD, STARBUCKS",
    "2024-01-06, -15.00 USD, REFUND ACME",
]

SAMPLE_PDF_TEXT = """ACME BANK  Statement period 01/01/2024 - 31/01/2024
03 Jan  05 Jan  UBER TRIP          23.40
07 Jan  08 Jan  AMAZON MKTPLACE    12.99 CR
Closing balance 1,204.11
"""


def completion_envelope(content, model: str = "sonar") -> dict:
    """Build an OpenAI-compatible chat completion body."""
    return {
        "id": "cmpl-test",
        "model": model,
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5},
    }


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def recording(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording)

    def json_bodies(self) -> list[dict]:
        """Decoded JSON bodies of all served requests."""
        return [json.loads(r.content) for r in self.requests]


def content_transport(*contents) -> RecordingTransport:
    """Transport answering successive requests with the given contents.

    The last content is repeated once the others are used up.
    """
    queue = list(contents)

    def handler(request: httpx.Request) -> httpx.Response:
        content = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(200, json=completion_envelope(content))

    return RecordingTransport(handler)


def expenses_transport(*expense_lists) -> RecordingTransport:
    """Transport answering with ``{"expenses": [...]}`` JSON strings."""
    return content_transport(*(json.dumps({"expenses": e}) for e in expense_lists))


def status_transport(status: int, body: str = "") -> RecordingTransport:
    """Transport answering every request with ``status``."""
    return RecordingTransport(lambda request: httpx.Response(status, text=body))
