"""
Duplicate candidate detection over already stored transactions.

The text-generation service judges similarity; this module only enforces
the closed-world constraint: the result is always intersected with the
identifiers that were sent. An identifier the service invents can never
be reported as a duplicate.

Response shapes are modeled as a small variant:
- StructuredResult: ids read from JSON (a list, ``duplicate_ids``, or
  ``groups[].duplicate_ids`` minus the group's ``original_id``)
- FreeformResult: any other text, tokenized on whitespace and commas

Ambiguous or unreadable content degrades to an empty result.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Sequence, Union

from ..config import Config
from ..llm_client import ChatCompletionClient, ConfigurationError, MalformedResponseError
from ..schemas import DuplicateQuery, DuplicateResult, ExistingTransaction
from .prompts import DuplicatePrompt
from .validation import strip_code_fence

logger = logging.getLogger(__name__)

DUPLICATE_TEMPERATURE = 0.1

_TOKEN_SPLIT_RE = re.compile(r"[\s,]+")
_TOKEN_STRIP = "\"'`[]{}()"


@dataclass(frozen=True)
class StructuredResult:
    """Identifiers read from a JSON response."""

    ids: tuple[str, ...]


@dataclass(frozen=True)
class FreeformResult:
    """Unstructured text response."""

    text: str


DuplicateResponse = Union[StructuredResult, FreeformResult]


def _as_id(value: object) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (str, int)):
        text = str(value).strip()
        return text or None
    return None


def _ids_from(values: object) -> list[str]:
    if not isinstance(values, list):
        return []
    return [i for i in (_as_id(v) for v in values) if i is not None]


def _structured_ids(document: Any) -> tuple[str, ...]:
    if isinstance(document, list):
        return tuple(_ids_from(document))

    ids: list[str] = _ids_from(document.get("duplicate_ids"))
    groups = document.get("groups")
    if isinstance(groups, list):
        for group in groups:
            if not isinstance(group, dict):
                continue
            original = _as_id(group.get("original_id"))
            ids.extend(i for i in _ids_from(group.get("duplicate_ids")) if i != original)
    return tuple(ids)


def interpret_response(content: Any) -> DuplicateResponse:
    """Classify message content as structured or freeform."""
    if isinstance(content, (dict, list)):
        return StructuredResult(_structured_ids(content))
    if not isinstance(content, str):
        return FreeformResult("")

    text = strip_code_fence(content)
    try:
        document = json.loads(text)
    except json.JSONDecodeError:
        return FreeformResult(text)
    if isinstance(document, (dict, list)):
        return StructuredResult(_structured_ids(document))
    return FreeformResult(text)


def tokenize_ids(text: str) -> list[str]:
    """Split freeform text into candidate identifiers."""
    tokens = (token.strip(_TOKEN_STRIP) for token in _TOKEN_SPLIT_RE.split(text))
    return [token for token in tokens if token]


def resolve_duplicate_ids(response: DuplicateResponse, query: DuplicateQuery) -> DuplicateResult:
    """Normalize either response shape into a closed-world result."""
    if isinstance(response, StructuredResult):
        proposed: Iterable[str] = response.ids
    else:
        proposed = tokenize_ids(response.text)

    known = query.known_ids
    proposed = set(proposed)
    unknown = proposed - known
    if unknown:
        logger.debug("Discarded %d unknown identifiers from duplicate response", len(unknown))
    return DuplicateResult.from_ids(proposed & known, query)


class DuplicateDetector:
    """Asks the service which stored transactions are redundant copies."""

    def __init__(self, config: Config, client: ChatCompletionClient | None = None) -> None:
        self.config = config
        self._client = client
        self._prompt = DuplicatePrompt()

    def _get_client(self) -> ChatCompletionClient:
        if self._client is None:
            self._client = ChatCompletionClient(self.config.llm)
        return self._client

    def build_payload(self, query: DuplicateQuery) -> dict:
        """Render the request body; no schema is requested here."""
        return {
            "model": self.config.llm.model,
            "messages": [
                {"role": "user", "content": self._prompt.format_user_message(query.candidates)},
            ],
            "temperature": DUPLICATE_TEMPERATURE,
        }

    def detect(self, candidates: Sequence[ExistingTransaction]) -> DuplicateResult:
        """Return identifiers of likely duplicates among ``candidates``.

        Raises:
            ConfigurationError: API key missing.
            UpstreamError: Service unreachable or non-2xx.
        """
        if not self.config.llm.has_credentials:
            raise ConfigurationError("Missing API key for the text-generation service")

        query = DuplicateQuery(candidates=tuple(candidates))
        if len(query.known_ids) < 2:
            return DuplicateResult()

        client = self._get_client()
        try:
            completion = client.complete(self.build_payload(query))
        except MalformedResponseError as e:
            logger.warning("Unreadable duplicate response, treating as no duplicates: %s", e)
            return DuplicateResult()

        result = resolve_duplicate_ids(interpret_response(completion.content), query)
        logger.info(
            "Duplicate check flagged %d of %d transactions",
            len(result.ids),
            len(query.candidates),
        )
        return result
