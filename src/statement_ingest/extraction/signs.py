"""
Amount parsing and sign normalization.

Sign convention: purchases/charges positive, refunds/credits negative.

The model is the primary source of sign; these rules only repair what can
be decided deterministically:
1. An explicit ``direction`` from the model wins (credit → negative,
   debit → positive)
2. Without a direction, refund-like wording flips a positive amount to
   negative, unless the text reads like an investment/savings transfer
3. Otherwise the model's sign is kept

This is a best-effort heuristic, not a guaranteed invariant.
"""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation

REFUND_LIKE_RE = re.compile(
    r"(refund|refunded|credit|\bcr\b|reversal|chargeback|payment received|cashback|"
    r"return|deposit credit|adjustment credit|credit interest|rebate|reimbursement)",
    re.IGNORECASE,
)

INVESTMENT_LIKE_RE = re.compile(
    r"(investment|invest|savings|save|transfer.*deposit|special deposit|rrsp|tfsa|401k|"
    r"\bira\b|mutual fund|stock|bond|etf)",
    re.IGNORECASE,
)

# Larger magnitudes are not statement amounts
MAX_AMOUNT = Decimal("1e12")

# Unicode minus, figure dash, en dash, em dash
_DASHES_RE = re.compile("[\u2212\u2012\u2013\u2014]")
_CREDIT_MARKER_RE = re.compile(r"\s*\bCR\b\s*|(?<=\d)CR$", re.IGNORECASE)
_CURRENCY_SYMBOL_RE = re.compile(r"(?:US|[CA])?\$|[€£₹¥]")
_CURRENCY_CODE_RE = re.compile(r"^[A-Z]{3}(?=[\s\d+\-.])|(?<=[\d\s.])[A-Z]{3}$")
_DECIMAL_COMMA_RE = re.compile(r"^[+-]?\d+,\d{1,2}-?$")
_THOUSANDS_RE = re.compile(r"^[+-]?\d{1,3}(?:,\d{3})+(?:\.\d+)?-?$")
_NUMBER_RE = re.compile(r"^([+-]?)(\d+(?:\.\d+)?|\.\d+)(-?)$")


def _bounded(number: Decimal) -> Decimal | None:
    if not number.is_finite() or abs(number) >= MAX_AMOUNT:
        return None
    return number


def parse_amount(value: object) -> Decimal | None:
    """Parse a model-supplied amount.

    Accepts numbers and numeric strings with a currency symbol or ISO
    code, thousands separators, a decimal comma, parentheses negatives,
    unicode minus, trailing minus, or a ``CR`` credit marker. Anything
    else in the string (exponents, extra words, a second number) makes
    it a non-amount.

    Returns:
        Decimal amount, or None if the value is not an amount.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return _bounded(value)
    if isinstance(value, int):
        return _bounded(Decimal(value))
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return _bounded(Decimal(repr(value)))
    if not isinstance(value, str):
        return None

    raw = value.strip()
    negative = False
    if raw.startswith("(") and raw.endswith(")"):
        negative = True
        raw = raw[1:-1].strip()

    raw, markers = _CREDIT_MARKER_RE.subn(" ", raw)
    if markers:
        negative = True

    raw = _DASHES_RE.sub("-", raw.strip())
    raw = _CURRENCY_SYMBOL_RE.sub("", raw, count=1)
    raw = _CURRENCY_CODE_RE.sub("", raw.strip(), count=1)
    raw = raw.strip()
    if raw[:1] in ("+", "-"):
        raw = raw[0] + raw[1:].lstrip()
    if raw.endswith("-"):
        raw = raw[:-1].rstrip() + "-"

    if _DECIMAL_COMMA_RE.match(raw):
        # "12,50 EUR": comma is the decimal separator
        raw = raw.replace(",", ".")
    elif _THOUSANDS_RE.match(raw):
        raw = raw.replace(",", "")

    match = _NUMBER_RE.match(raw)
    if match is None:
        return None
    sign, digits, trailing = match.groups()
    if sign and trailing:
        return None

    try:
        number = Decimal(digits)
    except InvalidOperation:
        return None
    if sign == "-" or trailing or negative:
        number = number.copy_negate()
    return _bounded(number)


def is_refund_like(*texts: str | None) -> bool:
    """Check whether merchant/note wording reads like a refund or credit."""
    joined = " ".join(t for t in texts if t)
    if not joined:
        return False
    if INVESTMENT_LIKE_RE.search(joined):
        return False
    return bool(REFUND_LIKE_RE.search(joined))


def normalize_sign(
    amount: Decimal,
    direction: str | None = None,
    merchant: str | None = None,
    note: str | None = None,
    infer_from_text: bool = True,
) -> Decimal:
    """Apply the sign convention to a parsed amount.

    Args:
        amount: Amount as returned by the model.
        direction: Optional "debit"/"credit" hint from the model.
        merchant: Merchant text, used for refund-like wording.
        note: Note text, used for refund-like wording.
        infer_from_text: Whether wording may flip the sign.

    Returns:
        Signed amount.
    """
    direction = (direction or "").lower()
    if direction == "credit":
        return -abs(amount)
    if direction == "debit":
        return abs(amount)
    if infer_from_text and amount > 0 and is_refund_like(merchant, note):
        return -amount
    return amount
