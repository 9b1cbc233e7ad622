"""
Text-generation service client.

Provides:
- One-shot chat completions against an OpenAI-compatible endpoint
- Typed failures (configuration, upstream, malformed response)
- Fingerprint-only diagnostics

Treats service errors as loud failures; never retries on its own.
"""

from .client import (
    ChatCompletion,
    ChatCompletionClient,
    ConfigurationError,
    ExtractionCancelledError,
    LLMError,
    MalformedResponseError,
    UpstreamError,
    fingerprint,
)

__all__ = [
    "ChatCompletion",
    "ChatCompletionClient",
    "ConfigurationError",
    "ExtractionCancelledError",
    "LLMError",
    "MalformedResponseError",
    "UpstreamError",
    "fingerprint",
]
