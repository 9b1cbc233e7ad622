"""
Response decoding and element validation for extraction results.

Every element is checked against the ``expenses_schema`` contract before
it is accepted. Elements that violate it are dropped and counted; nothing
is defaulted or repaired beyond amount/currency coercion.

Document-level problems (non-JSON content, a non-object top level, or an
``expenses`` field that is not an array) raise MalformedResponseError.
An absent ``expenses`` field is a valid empty extraction.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from ..llm_client import MalformedResponseError
from ..schemas import (
    ALLOWED_FIELDS,
    DIRECTION_VALUES,
    EXPENSES_FIELD,
    OPTIONAL_STRING_FIELDS,
    ParsedTransaction,
)
from .signs import normalize_sign, parse_amount

logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)
_ISO_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")

# Longest symbols first so "C$" wins over "$"
CURRENCY_SYMBOLS = {
    "C$": "CAD",
    "A$": "AUD",
    "US$": "USD",
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "₹": "INR",
    "¥": "JPY",
}


def strip_code_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence, if any."""
    text = text.strip()
    match = _CODE_FENCE_RE.match(text)
    return match.group(1) if match else text


def decode_content(content: Any) -> dict:
    """Decode message content into the response document.

    JSON numbers with a fraction decode to Decimal so amounts keep the
    digits the model wrote.

    Args:
        content: Message content, already structured or a JSON string.

    Returns:
        The top-level JSON object.

    Raises:
        MalformedResponseError: If content is not a JSON object.
    """
    if isinstance(content, str):
        text = strip_code_fence(content)
        try:
            document = json.loads(text, parse_float=Decimal)
        except ValueError:
            raise MalformedResponseError(
                "Model returned non-JSON output", byte_length=len(content.encode())
            )
    else:
        document = content

    if not isinstance(document, dict):
        raise MalformedResponseError(
            f"Expected a JSON object, got {type(document).__name__}"
        )
    return document


def extract_elements(document: dict) -> list:
    """Return the raw ``expenses`` array (empty when absent)."""
    if EXPENSES_FIELD not in document or document[EXPENSES_FIELD] is None:
        return []
    elements = document[EXPENSES_FIELD]
    if not isinstance(elements, list):
        raise MalformedResponseError(
            f"'{EXPENSES_FIELD}' must be an array, got {type(elements).__name__}"
        )
    return elements


def normalize_currency(value: object) -> str | None:
    """Return an ISO 4217 code, mapping common symbols; None if invalid."""
    if not isinstance(value, str):
        return None
    raw = value.strip()
    code = raw.upper()
    if _ISO_CURRENCY_RE.match(code):
        return code
    for symbol, mapped in CURRENCY_SYMBOLS.items():
        if raw == symbol:
            return mapped
    return None


def _coerce_line_index(value: object) -> int | None:
    if isinstance(value, bool):
        raise ValueError("boolean line_index")
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)) and math.isfinite(value) and value == int(value):
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValueError(f"invalid line_index: {type(value).__name__}")


def validate_element(element: object, infer_sign_from_text: bool = True) -> ParsedTransaction:
    """Validate one array element.

    Args:
        element: Raw element from the ``expenses`` array.
        infer_sign_from_text: Passed through to sign normalization.

    Returns:
        ParsedTransaction with normalized amount and currency.

    Raises:
        ValueError: If the element violates the contract.
    """
    if not isinstance(element, dict):
        raise ValueError(f"element is {type(element).__name__}, not object")

    unknown = set(element) - ALLOWED_FIELDS
    if unknown:
        raise ValueError(f"unexpected fields: {sorted(unknown)}")

    amount = parse_amount(element.get("amount"))
    if amount is None:
        raise ValueError("amount missing or not a number")

    currency = normalize_currency(element.get("currency"))
    if currency is None:
        raise ValueError("currency missing or not an ISO 4217 code")

    occurred_on = element.get("occurred_on")
    if not isinstance(occurred_on, str) or not occurred_on.strip():
        raise ValueError("occurred_on missing")

    optional: dict[str, str | None] = {}
    for key in OPTIONAL_STRING_FIELDS:
        value = element.get(key)
        if value is None:
            optional[key] = None
        elif isinstance(value, str):
            optional[key] = value.strip() or None
        else:
            raise ValueError(f"{key} must be a string")

    direction = element.get("direction")
    if direction is not None:
        if not isinstance(direction, str) or direction.lower() not in DIRECTION_VALUES:
            raise ValueError("direction must be debit or credit")

    line_index = None
    if element.get("line_index") is not None:
        line_index = _coerce_line_index(element["line_index"])

    signed = normalize_sign(
        amount,
        direction=direction,
        merchant=optional["merchant"],
        note=optional["note"],
        infer_from_text=infer_sign_from_text,
    )

    return ParsedTransaction(
        amount=signed,
        currency=currency,
        occurred_on=occurred_on.strip(),
        merchant=optional["merchant"],
        payment_method=optional["payment_method"],
        note=optional["note"],
        category=optional["category"],
        line_index=line_index,
    )


@dataclass
class ValidationReport:
    """Accepted elements plus the count of rejected ones."""

    accepted: list[ParsedTransaction] = field(default_factory=list)
    rejected: int = 0


def validate_elements(elements: list, infer_sign_from_text: bool = True) -> ValidationReport:
    """Validate all elements, keeping order of the accepted ones."""
    report = ValidationReport()
    for position, element in enumerate(elements):
        try:
            report.accepted.append(validate_element(element, infer_sign_from_text))
        except ValueError as e:
            report.rejected += 1
            # Reason only; never the element content
            logger.debug("Dropped expenses[%d]: %s", position, e)
    return report
