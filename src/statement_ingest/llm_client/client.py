"""
Chat-completions client for the external text-generation service.

Treats the service as an untrusted, best-effort oracle: one attempt per
call, no retry, no backoff, and every failure surfaced as a typed error.

Privacy constraints:
- Never log prompts, payloads, or response bodies
- Diagnostics are limited to status code, byte length, and a short
  content fingerprint
- The API key never appears in logs or error messages
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import LLMConfig

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 12


class LLMError(Exception):
    """Base exception for text-generation service errors."""

    pass


class ConfigurationError(LLMError):
    """Required credential or service identifier is missing."""

    pass


class UpstreamError(LLMError):
    """The service could not be reached or answered with a non-success status.

    ``response_body`` keeps the raw body for diagnosis and is never part
    of the message.
    """

    def __init__(
        self,
        status_code: int | None,
        message: str,
        response_body: str | None = None,
    ):
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        if status_code is None:
            super().__init__(f"Upstream request failed: {message}")
        else:
            super().__init__(f"Upstream API error {status_code}: {message}")


class MalformedResponseError(LLMError):
    """A successful response whose content is not valid structured data."""

    def __init__(self, message: str, byte_length: int = 0, fingerprint: str | None = None):
        self.byte_length = byte_length
        self.fingerprint = fingerprint
        super().__init__(message)


class ExtractionCancelledError(LLMError):
    """The caller cancelled the run; partial results were discarded."""

    pass


def fingerprint(text: str) -> str:
    """Short SHA-256 fingerprint used for tracing without content."""
    return hashlib.sha256(text.encode()).hexdigest()[:FINGERPRINT_LENGTH]


@dataclass
class ChatCompletion:
    """Content returned by one chat-completions call."""

    content: Any  # str, or an already-decoded JSON value
    model: str
    byte_length: int
    usage: dict | None = None


class ChatCompletionClient:
    """Client for an OpenAI-compatible ``/chat/completions`` endpoint.

    Usage:
        with ChatCompletionClient(config.llm) as client:
            completion = client.complete(payload)
    """

    def __init__(
        self,
        config: LLMConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: LLM configuration (credentials, model, endpoint).
            transport: Optional httpx transport (used by tests).

        Raises:
            ConfigurationError: If the API key or endpoint is missing.
        """
        if not config.has_credentials:
            raise ConfigurationError("Missing API key for the text-generation service")
        if not config.base_url:
            raise ConfigurationError("Missing base URL for the text-generation service")

        self.config = config

        if config.timeout_seconds is None:
            timeout = httpx.Timeout(None)
        else:
            timeout = httpx.Timeout(float(config.timeout_seconds), connect=10.0)

        self._client = httpx.Client(
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {config.api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> ChatCompletionClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _trace(self, msg: str, *args: object) -> None:
        if self.config.debug_logging:
            logger.info(msg, *args)
        else:
            logger.debug(msg, *args)

    def complete(self, payload: dict) -> ChatCompletion:
        """Send one chat-completions request.

        Args:
            payload: Request body (model, messages, temperature, ...).

        Returns:
            ChatCompletion with the first choice's message content.

        Raises:
            UpstreamError: Transport failure or non-2xx status.
            MalformedResponseError: 2xx response without readable content.
        """
        messages_blob = json.dumps(payload.get("messages", []), sort_keys=True)
        prompt_hash = fingerprint(messages_blob)
        self._trace(
            "Calling model %s (prompt %s, %d bytes)",
            payload.get("model", self.config.model),
            prompt_hash,
            len(messages_blob.encode()),
        )

        try:
            response = self._client.post(self.config.completions_url, json=payload)
        except httpx.RequestError as e:
            logger.error("Request to text-generation service failed: %s (prompt %s)", type(e).__name__, prompt_hash)
            raise UpstreamError(None, type(e).__name__) from e

        byte_length = len(response.content)

        if not response.is_success:
            logger.error(
                "Text-generation service returned %d (%d bytes, prompt %s)",
                response.status_code,
                byte_length,
                prompt_hash,
            )
            raise UpstreamError(
                response.status_code,
                response.reason_phrase or "non-success status",
                response_body=response.text,
            )

        try:
            envelope = response.json()
        except ValueError:
            logger.error("Response envelope is not JSON (%d bytes, prompt %s)", byte_length, prompt_hash)
            raise MalformedResponseError(
                "Response envelope is not JSON", byte_length=byte_length, fingerprint=prompt_hash
            )

        content = _first_message_content(envelope)
        if content is None:
            logger.error("Response has no message content (%d bytes, prompt %s)", byte_length, prompt_hash)
            raise MalformedResponseError(
                "Response has no message content", byte_length=byte_length, fingerprint=prompt_hash
            )

        self._trace("Model returned %d bytes (prompt %s)", byte_length, prompt_hash)
        return ChatCompletion(
            content=content,
            model=str(envelope.get("model") or payload.get("model") or self.config.model),
            byte_length=byte_length,
            usage=envelope.get("usage") if isinstance(envelope.get("usage"), dict) else None,
        )


def _first_message_content(envelope: object) -> Any:
    """Return ``choices[0].message.content`` or None if absent."""
    if not isinstance(envelope, dict):
        return None
    choices = envelope.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    return message.get("content")
