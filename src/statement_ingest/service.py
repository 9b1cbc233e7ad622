"""Ingestion service: the two caller entry points.

Wires extraction and duplicate detection from one explicit Config and
shares a single HTTP client between them. Every call is request-scoped;
the service holds no state between calls besides that client.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .config import Config
from .extraction import DuplicateDetector, StatementExtractor
from .extraction.extractor import CancelCheck
from .llm_client import ChatCompletionClient, ConfigurationError
from .schemas import (
    DuplicateResult,
    ExistingTransaction,
    ExtractionResult,
    RawStatementInput,
)

logger = logging.getLogger(__name__)


class StatementIngestionService:
    """Statement extraction and duplicate detection.

    Usage:
        with StatementIngestionService(config) as service:
            result = service.parse_rows(rows)
            dupes = service.detect_duplicates(stored)
    """

    def __init__(self, config: Config, client: ChatCompletionClient | None = None) -> None:
        """Initialize the service.

        Args:
            config: Application configuration.
            client: Optional pre-built client (shared by both entry points).
        """
        self.config = config
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> ChatCompletionClient:
        if not self.config.llm.has_credentials:
            raise ConfigurationError("Missing API key for the text-generation service")
        if self._client is None:
            self._client = ChatCompletionClient(self.config.llm)
        return self._client

    def close(self) -> None:
        """Close the client if this service created it."""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> StatementIngestionService:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def parse_statement(
        self,
        raw: RawStatementInput,
        cancel_check: CancelCheck | None = None,
    ) -> ExtractionResult:
        """Extract expenses from decoded statement content."""
        if self.config.extraction.disable_external:
            return StatementExtractor(self.config).extract_locally(raw, cancel_check=cancel_check)
        extractor = StatementExtractor(self.config, client=self._get_client())
        return extractor.extract(raw, cancel_check=cancel_check)

    def parse_rows(
        self,
        rows: Sequence[str | Sequence[object]],
        cancel_check: CancelCheck | None = None,
    ) -> ExtractionResult:
        """Extract expenses from spreadsheet rows."""
        return self.parse_statement(RawStatementInput.from_rows(rows), cancel_check)

    def parse_text(self, text: str, cancel_check: CancelCheck | None = None) -> ExtractionResult:
        """Extract expenses from PDF-extracted text."""
        return self.parse_statement(RawStatementInput.from_text(text), cancel_check)

    def detect_duplicates(
        self,
        candidates: Sequence[ExistingTransaction | dict],
    ) -> DuplicateResult:
        """Flag redundant copies among stored transactions.

        Args:
            candidates: Stored transactions (dataclasses or plain dicts).

        Returns:
            DuplicateResult restricted to the given identifiers.

        Raises:
            ConfigurationError: No API key, or external calls are disabled.
        """
        if self.config.extraction.disable_external:
            raise ConfigurationError("Duplicate detection needs the text-generation service, which is disabled")
        records = [
            c if isinstance(c, ExistingTransaction) else ExistingTransaction.from_dict(c)
            for c in candidates
        ]
        detector = DuplicateDetector(self.config, client=self._get_client())
        return detector.detect(records)
