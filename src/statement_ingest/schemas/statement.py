"""
Canonical statement ingestion objects (SSOT).

These are THE request-scoped models that flow through the pipeline:
raw input → numbered lines → extraction request → parsed transactions,
plus the duplicate query/result pair used by the duplicate detector.

Wire field names are snake_case and match the JSON exchanged with the
text-generation service and returned to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Sequence


class ContentType(str, Enum):
    """Kind of statement content being ingested."""

    SPREADSHEET = "spreadsheet"
    PDF = "pdf"


CellValue = Any


@dataclass(frozen=True)
class RawStatementInput:
    """
    Decoded statement content handed over by the file parser.

    Exactly one of ``rows`` (spreadsheet) or ``text`` (PDF) is set.
    A row may be a plain string or a sequence of cells.
    """

    content_type: ContentType
    rows: tuple[str | tuple[CellValue, ...], ...] | None = None
    text: str | None = None

    @classmethod
    def from_rows(cls, rows: Sequence[str | Sequence[CellValue]]) -> RawStatementInput:
        """Build spreadsheet input from row strings or cell sequences."""
        frozen = tuple(r if isinstance(r, str) else tuple(r) for r in rows)
        return cls(content_type=ContentType.SPREADSHEET, rows=frozen)

    @classmethod
    def from_text(cls, text: str) -> RawStatementInput:
        """Build PDF input from extracted free text."""
        return cls(content_type=ContentType.PDF, text=text)


@dataclass(frozen=True)
class NumberedLine:
    """One spreadsheet record with its stable 1-based position."""

    index: int
    text: str

    def render(self) -> str:
        """Render as it is embedded in the prompt."""
        return f"{self.index}. {self.text}"


@dataclass(frozen=True)
class ExtractionRequest:
    """
    Fully composed extraction request.

    Determined only by content type and input; never cached. The schema
    takes part in equality but not in the hash.
    """

    content_type: ContentType
    system_instruction: str
    user_instruction: str
    schema: dict = field(hash=False)
    schema_name: str = "expenses_schema"

    def to_payload(self, model: str) -> dict:
        """Render the chat-completions request body for ``model``."""
        return {
            "model": model,
            "messages": [
                {"role": "system", "content": self.system_instruction},
                {"role": "user", "content": self.user_instruction},
            ],
            "temperature": 0,
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": self.schema_name, "schema": self.schema},
            },
        }


@dataclass
class ParsedTransaction:
    """
    A validated expense extracted from a statement.

    Amount sign: purchases positive, refunds/credits negative.
    Optional fields are None internally and omitted on the wire.
    """

    amount: Decimal
    currency: str  # ISO 4217, e.g. "USD"
    occurred_on: str  # ISO format YYYY-MM-DD
    merchant: str | None = None
    payment_method: str | None = None
    note: str | None = None
    category: str | None = None
    line_index: int | None = None  # spreadsheet mode only

    def to_dict(self) -> dict:
        """Convert to the wire representation, omitting unknown fields."""
        data: dict[str, Any] = {
            "amount": float(self.amount),
            "currency": self.currency,
            "occurred_on": self.occurred_on,
        }
        for key in ("merchant", "payment_method", "note", "category", "line_index"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class ExtractionResult:
    """Outcome of one statement extraction."""

    expenses: list[ParsedTransaction] = field(default_factory=list)
    # Elements rejected by schema validation or reconciliation
    rejected_count: int = 0
    request_count: int = 0

    def to_dict(self) -> dict:
        """Convert to the shape returned to callers."""
        return {"expenses": [e.to_dict() for e in self.expenses]}


@dataclass(frozen=True)
class ExistingTransaction:
    """An already persisted transaction offered to the duplicate check."""

    id: str
    amount: Decimal
    currency: str
    occurred_on: str
    category: str
    merchant: str | None = None
    note: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ExistingTransaction:
        """Build from a stored record; ``id`` is coerced to str.

        Raises:
            KeyError: A required field is missing.
            ValueError: The amount is not a number.
        """
        try:
            amount = Decimal(str(data["amount"]))
        except InvalidOperation:
            raise ValueError(f"Invalid amount for transaction {data['id']!r}")
        return cls(
            id=str(data["id"]),
            amount=amount,
            currency=data["currency"],
            occurred_on=data["occurred_on"],
            category=data.get("category") or "",
            merchant=data.get("merchant") or None,
            note=data.get("note") or None,
        )


@dataclass(frozen=True)
class DuplicateQuery:
    """Candidates for the duplicate check."""

    candidates: tuple[ExistingTransaction, ...]

    @property
    def known_ids(self) -> frozenset[str]:
        """Identifier set every result is restricted to."""
        return frozenset(c.id for c in self.candidates)


@dataclass(frozen=True)
class DuplicateResult:
    """
    Identifiers flagged as redundant copies.

    Always a subset of the query's identifiers; ``ordered_ids`` follows
    candidate order so the surfaced list is deterministic.
    """

    ids: frozenset[str] = frozenset()
    ordered_ids: tuple[str, ...] = ()

    @classmethod
    def from_ids(cls, ids: set[str] | frozenset[str], query: DuplicateQuery) -> DuplicateResult:
        """Build a result ordered by candidate position."""
        ordered: list[str] = []
        for candidate in query.candidates:
            if candidate.id in ids and candidate.id not in ordered:
                ordered.append(candidate.id)
        return cls(ids=frozenset(ordered), ordered_ids=tuple(ordered))

    def to_dict(self) -> dict:
        """Convert to the shape returned to callers."""
        return {"duplicate_ids": list(self.ordered_ids)}
