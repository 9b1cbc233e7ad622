"""
Schema-constrained statement extractor.

Pipeline (strictly linear, one outbound request per chunk):
    normalize → redact → compose → request → decode → validate → reconcile

Guarantees:
- Missing credentials fail before any work (ConfigurationError), unless
  external calls are disabled and the local parser is used instead
- Upstream failures and malformed content are raised, never turned into
  an empty success
- Results are all-or-nothing: a failing chunk or a cancellation discards
  everything gathered so far
"""

from __future__ import annotations

import logging
from typing import Callable

from ..config import Config
from ..llm_client import (
    ChatCompletionClient,
    ConfigurationError,
    ExtractionCancelledError,
)
from ..schemas import ExtractionRequest, ExtractionResult, ParsedTransaction, RawStatementInput
from .chunking import split_for_requests
from .local_parser import LocalStatementParser
from .normalizer import NormalizedStatement, normalize_input
from .prompts import StatementPrompt
from .reconciliation import exclude_payment_receipts, reconcile
from .redaction import Redactor
from .validation import decode_content, extract_elements, validate_elements

logger = logging.getLogger(__name__)

CancelCheck = Callable[[], bool]


class StatementExtractor:
    """Extracts validated expenses from statement input."""

    def __init__(self, config: Config, client: ChatCompletionClient | None = None) -> None:
        """Initialize the extractor.

        Args:
            config: Application configuration.
            client: Optional pre-built client; created lazily otherwise.
        """
        self.config = config
        self._client = client
        self._prompt = StatementPrompt()
        self._redactor = Redactor(config.privacy)
        self._local = LocalStatementParser(infer_sign_from_text=config.extraction.infer_sign_from_text)

    def _get_client(self) -> ChatCompletionClient:
        if self._client is None:
            self._client = ChatCompletionClient(self.config.llm)
        return self._client

    def normalize(self, raw: RawStatementInput) -> NormalizedStatement:
        """Normalize (and redact) raw input."""
        redact = self._redactor.redact if self._redactor.enabled else None
        return normalize_input(raw, redact=redact)

    def compose_requests(self, normalized: NormalizedStatement) -> list[ExtractionRequest]:
        """Compose one request per chunk; no I/O."""
        if normalized.is_empty:
            return []
        chunks = split_for_requests(
            normalized.body,
            threshold=self.config.extraction.chunk_threshold,
            chunk_size=self.config.extraction.chunk_size,
        )
        return [self._prompt.compose(normalized.content_type, chunk) for chunk in chunks]

    def extract(
        self,
        raw: RawStatementInput,
        cancel_check: CancelCheck | None = None,
    ) -> ExtractionResult:
        """Extract expenses from a statement.

        Args:
            raw: Decoded statement content.
            cancel_check: Optional callable returning True to cancel.

        Returns:
            ExtractionResult with reconciled expenses in source order.

        Raises:
            ConfigurationError: API key missing while external calls are enabled.
            UpstreamError: Service unreachable or non-2xx.
            MalformedResponseError: Response content violates the contract.
            ExtractionCancelledError: cancel_check reported cancellation.
        """
        if self.config.extraction.disable_external:
            return self.extract_locally(raw, cancel_check)

        if not self.config.llm.has_credentials:
            raise ConfigurationError("Missing API key for the text-generation service")

        normalized = self.normalize(raw)
        requests = self.compose_requests(normalized)
        if not requests:
            logger.debug("Empty %s input, nothing to extract", normalized.content_type.value)
            return ExtractionResult()

        client = self._get_client()
        collected: list[ParsedTransaction] = []
        rejected = 0

        for position, request in enumerate(requests, start=1):
            _check_cancelled(cancel_check)
            completion = client.complete(request.to_payload(self.config.llm.model))
            _check_cancelled(cancel_check)

            document = decode_content(completion.content)
            report = validate_elements(
                extract_elements(document),
                infer_sign_from_text=self.config.extraction.infer_sign_from_text,
            )
            collected.extend(report.accepted)
            rejected += report.rejected
            logger.debug(
                "Chunk %d/%d: %d accepted, %d rejected",
                position,
                len(requests),
                len(report.accepted),
                report.rejected,
            )

        return self._finish(collected, normalized, rejected, len(requests))

    def extract_locally(
        self,
        raw: RawStatementInput,
        cancel_check: CancelCheck | None = None,
    ) -> ExtractionResult:
        """Extract expenses with the offline pattern parser.

        Makes no outbound request and needs no credentials. The result is
        reconciled like model output.
        """
        _check_cancelled(cancel_check)
        normalized = self.normalize(raw)
        if normalized.is_empty:
            logger.debug("Empty %s input, nothing to extract", normalized.content_type.value)
            return ExtractionResult()

        collected = self._local.parse(raw)
        _check_cancelled(cancel_check)
        return self._finish(collected, normalized, 0, 0)

    def _finish(
        self,
        collected: list[ParsedTransaction],
        normalized: NormalizedStatement,
        rejected: int,
        request_count: int,
    ) -> ExtractionResult:
        recon = reconcile(collected, normalized.content_type, normalized.line_count)
        expenses = recon.kept
        rejected += recon.dropped

        if self.config.extraction.exclude_payment_receipts:
            expenses, receipts = exclude_payment_receipts(expenses)
            if receipts:
                logger.debug("Excluded %d card payment receipts", receipts)

        logger.info(
            "Extracted %d expenses from %s input (%d rejected, %d requests)",
            len(expenses),
            normalized.content_type.value,
            rejected,
            request_count,
        )
        return ExtractionResult(expenses=expenses, rejected_count=rejected, request_count=request_count)


def _check_cancelled(cancel_check: CancelCheck | None) -> None:
    if cancel_check is not None and cancel_check():
        logger.info("Extraction cancelled, discarding partial results")
        raise ExtractionCancelledError("Extraction cancelled by caller")
