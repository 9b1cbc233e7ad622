"""
Offline statement parser.

Extracts expenses with date/amount pattern matching when outbound calls
are disabled (``extraction.disable_external``). Nothing leaves the
process and no credentials are needed.

Two strategies:
- Spreadsheet rows with a recognizable header row are read column by
  column (date, amount or debit/credit, currency, description, category,
  payment method)
- PDF text, and rows without a usable header, are read line by line:
  a line needs both a date and a two-decimal amount to count

This is the lowest-fidelity extraction path. Its output goes through the
same reconciliation as model output; it is never used as a fallback when
the service fails.
"""

from __future__ import annotations

import re
from collections import Counter
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Sequence

from ..schemas import ContentType, ParsedTransaction, RawStatementInput
from .normalizer import render_row
from .signs import is_refund_like, parse_amount
from .validation import normalize_currency

DEFAULT_CURRENCY = "USD"

# Header rows are searched for within the first rows only
HEADER_SCAN_ROWS = 10

HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "date": (
        "date",
        "transaction date",
        "txn date",
        "trans date",
        "posted date",
        "post date",
        "posting date",
        "date posted",
        "value date",
        "occurred on",
    ),
    "amount": (
        "amount",
        "transaction amount",
        "expense amount",
        "purchase amount",
        "amt",
        "amount cad",
        "amount usd",
        "amount inr",
    ),
    "debit": ("debit", "withdrawal", "charge", "spent", "dr", "debit amount"),
    "credit": ("credit", "deposit", "refund", "cr", "payment", "credit amount"),
    "currency": ("currency", "curr", "ccy", "currency code", "iso currency"),
    "description": (
        "description",
        "merchant",
        "details",
        "memo",
        "narration",
        "payee",
        "reference",
        "notes",
        "particulars",
        "statement description",
        "desc",
        "statement text",
    ),
    "category": ("category", "type", "expense category"),
    "payment_method": ("payment method", "method", "card", "channel", "account"),
}

# Currency cues in a single cell or line; a bare "$" is left to the fallback
CURRENCY_PATTERNS = [
    (re.compile(r"\bCAD\b|C\$"), "CAD"),
    (re.compile(r"\bAUD\b|A\$"), "AUD"),
    (re.compile(r"\bUSD\b|US\$"), "USD"),
    (re.compile(r"\bEUR\b|€"), "EUR"),
    (re.compile(r"\bGBP\b|£"), "GBP"),
    (re.compile(r"\bINR\b|₹"), "INR"),
    (re.compile(r"\bJPY\b|¥"), "JPY"),
]

MONTHS = {
    "jan": 1,
    "january": 1,
    "feb": 2,
    "february": 2,
    "mar": 3,
    "march": 3,
    "apr": 4,
    "april": 4,
    "may": 5,
    "jun": 6,
    "june": 6,
    "jul": 7,
    "july": 7,
    "aug": 8,
    "august": 8,
    "sep": 9,
    "sept": 9,
    "september": 9,
    "oct": 10,
    "october": 10,
    "nov": 11,
    "november": 11,
    "dec": 12,
    "december": 12,
}

_ISO_DATE_RE = re.compile(r"\b((?:19|20)\d{2})[-/](\d{1,2})[-/](\d{1,2})\b")
_DAY_MONTH_RE = re.compile(r"\b(\d{1,2})\s+([A-Za-z]{3,9})\.?(?:,?\s+((?:19|20)\d{2}))?\b")
_MONTH_DAY_RE = re.compile(r"\b([A-Za-z]{3,9})\.?\s+(\d{1,2})(?:,?\s+((?:19|20)\d{2}))?\b")
_SLASH_DATE_RE = re.compile(r"\b(\d{1,2})[/.-](\d{1,2})[/.-](\d{4}|\d{2})\b")
_YEAR_RE = re.compile(r"\b((?:19|20)\d{2})\b")

_AMOUNT_TOKEN_RE = re.compile(
    r"(?<![\d.,])-?\(?(?:(?:US|[CA])?\$|[€£₹¥])?\s?(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2}(?!\d|[.,]\d)\)?"
)
_LONG_NUMBER_RE = re.compile(r"\b\d{7,}\b")
_SEPARATORS_RE = re.compile(r"\s*[|;,]\s*")
_WHITESPACE_RE = re.compile(r"\s+")
_CURRENCY_NOISE_RE = re.compile(r"\b(?:CAD|USD|EUR|GBP|INR|AUD|JPY)\b|(?:US|[CA])?\$|[€£₹¥]")
_NOISE_WORDS_RE = re.compile(
    r"\b(TRANSACTION DATE|POSTING DATE|ACTIVITY DESCRIPTION|WITHDRAWALS?|DEPOSITS?|BALANCE|"
    r"FOREIGN CURRENCY|EXCHANGE RATE|VISA DEBIT PURCHASE|INTERAC|CONTACTLESS|"
    r"ATM WITHDRAWAL|AUTOMATIC PAYMENT|MISC PAYMENT|CR)\b",
    re.IGNORECASE,
)
_SUMMARY_LINE_RE = re.compile(
    r"(opening balance|closing balance|previous balance|new balance|statement period|"
    r"minimum payment|total (?:due|credits|debits|purchases))",
    re.IGNORECASE,
)

MAX_MERCHANT_LENGTH = 64

# Excel serial day 1 is 1900-01-01 (with the 1900 leap-year quirk)
EXCEL_EPOCH = date(1899, 12, 30)
MAX_EXCEL_SERIAL = 2958465


def normalize_header(cell: Any) -> str:
    """Lowercase a header cell, splitting camelCase and punctuation."""
    text = re.sub(r"([a-z])([A-Z])", r"\1 \2", "" if cell is None else str(cell))
    text = re.sub(r"[^a-z0-9]+", " ", text.lower())
    return text.strip()


def classify_header(cell: Any) -> str | None:
    """Return the column kind for a header cell, or None.

    Aliases match on whole words; the longest matching alias wins, so
    "Debit Amount" is a debit column and "Payment Method" is not a
    credit column.
    """
    header = normalize_header(cell)
    if not header:
        return None
    padded = f" {header} "
    best: tuple[int, str] | None = None
    for kind, aliases in HEADER_ALIASES.items():
        for alias in aliases:
            if f" {alias} " in padded and (best is None or len(alias) > best[0]):
                best = (len(alias), kind)
    return best[1] if best else None


def find_header_row(rows: Sequence[Any]) -> tuple[int, dict[str, int]] | None:
    """Locate the header row among the first rows.

    Returns:
        (row position, column map) for the best-scoring row that names a
        date column and an amount, debit or credit column; None otherwise.
    """
    best: tuple[int, dict[str, int]] | None = None
    best_score = 0
    for position, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        if isinstance(row, str):
            continue
        columns: dict[str, int] = {}
        for column, cell in enumerate(row):
            kind = classify_header(cell)
            if kind is not None and kind not in columns:
                columns[kind] = column
        usable = "date" in columns and bool({"amount", "debit", "credit"} & set(columns))
        if usable and len(columns) > best_score:
            best, best_score = (position, columns), len(columns)
    return best


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _expand_year(year: str) -> int:
    return 2000 + int(year) if len(year) == 2 else int(year)


def parse_text_date(text: str, default_year: int) -> date | None:
    """Find the first recognizable date in free text.

    Supports ISO (2024-01-05), day-month (05 Jan, 5 January 2024),
    month-day (Jan 5, 2024) and slash dates. For ambiguous slash dates
    the first part is the day unless it cannot be.
    """
    match = _ISO_DATE_RE.search(text)
    if match:
        parsed = _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        if parsed:
            return parsed

    for match in _DAY_MONTH_RE.finditer(text):
        month = MONTHS.get(match.group(2).lower())
        if month:
            year = int(match.group(3)) if match.group(3) else default_year
            parsed = _safe_date(year, month, int(match.group(1)))
            if parsed:
                return parsed

    for match in _MONTH_DAY_RE.finditer(text):
        month = MONTHS.get(match.group(1).lower())
        if month:
            year = int(match.group(3)) if match.group(3) else default_year
            parsed = _safe_date(year, month, int(match.group(2)))
            if parsed:
                return parsed

    match = _SLASH_DATE_RE.search(text)
    if match:
        first, second = int(match.group(1)), int(match.group(2))
        year = _expand_year(match.group(3))
        parsed = _safe_date(year, second, first) or _safe_date(year, first, second)
        if parsed:
            return parsed
    return None


def parse_cell_date(value: Any, default_year: int) -> date | None:
    """Parse a spreadsheet date cell.

    Accepts date/datetime values, Excel serial day numbers and date
    strings.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float, Decimal)):
        if 0 < value <= MAX_EXCEL_SERIAL:
            return EXCEL_EPOCH + timedelta(days=round(value))
        return None
    if isinstance(value, str):
        return parse_text_date(value.strip(), default_year)
    return None


def detect_currency(text: Any) -> str | None:
    """Currency code from a symbol or ISO code in ``text``."""
    if text is None or isinstance(text, (int, float, Decimal)):
        return None
    for pattern, code in CURRENCY_PATTERNS:
        if pattern.search(str(text).upper()):
            return code
    return None


def detect_document_currency(text: str) -> str:
    """Most likely currency of a whole statement.

    Explicit codes weigh more than symbols; "$" alone is ambiguous
    between USD, CAD and AUD and ties resolve to USD.
    """
    upper = text.upper()
    scores: Counter[str] = Counter({DEFAULT_CURRENCY: 0})
    if "$" in text:
        scores.update({"USD": 1, "CAD": 1, "AUD": 1})
    for symbol, code, weight in (("€", "EUR", 3), ("£", "GBP", 3), ("₹", "INR", 5), ("¥", "JPY", 3)):
        if symbol in text:
            scores[code] += weight
    for code in ("CAD", "USD", "EUR", "GBP", "INR", "AUD", "JPY"):
        scores[code] += 4 * len(re.findall(rf"\b{code}\b", upper))
    scores["CAD"] += 2 * len(re.findall(r"\b(?:CANADA|CANADIAN|ONTARIO|TORONTO)\b", upper))
    scores["USD"] += 2 * len(re.findall(r"\b(?:USA|UNITED STATES)\b", upper))

    best = DEFAULT_CURRENCY
    for code, score in scores.items():
        if score > scores[best]:
            best = code
    return best


def _cell_text(row: Sequence[Any], column: int | None) -> str | None:
    if column is None or column >= len(row) or row[column] is None:
        return None
    text = _WHITESPACE_RE.sub(" ", str(row[column])).strip()
    return text or None


def _cell(row: Sequence[Any], column: int | None) -> Any:
    if column is None or column >= len(row):
        return None
    return row[column]


def clean_merchant(text: str) -> str | None:
    """Strip separators, long reference numbers and statement boilerplate."""
    text = _LONG_NUMBER_RE.sub(" ", text)
    text = _CURRENCY_NOISE_RE.sub(" ", text)
    text = _NOISE_WORDS_RE.sub(" ", text)
    text = _SEPARATORS_RE.sub(" ", text)
    text = _WHITESPACE_RE.sub(" ", text).strip(" -:")
    return text[:MAX_MERCHANT_LENGTH].strip() or None


class LocalStatementParser:
    """Pattern-based expense extraction without the text-generation service."""

    def __init__(self, infer_sign_from_text: bool = True, default_year: int | None = None) -> None:
        """Initialize the parser.

        Args:
            infer_sign_from_text: Refund-like wording makes a line amount negative.
            default_year: Year for dates printed without one. Defaults to
                the most frequent year in the statement, else the current year.
        """
        self.infer_sign_from_text = infer_sign_from_text
        self.default_year = default_year

    def parse(self, raw: RawStatementInput) -> list[ParsedTransaction]:
        """Extract expenses from decoded statement content, in source order."""
        if raw.content_type == ContentType.SPREADSHEET:
            return self.parse_rows(raw.rows or ())
        return self.parse_text(raw.text or "")

    def _year_for(self, text: str) -> int:
        if self.default_year is not None:
            return self.default_year
        years = Counter(_YEAR_RE.findall(text))
        if years:
            return int(years.most_common(1)[0][0])
        return date.today().year

    def parse_rows(self, rows: Sequence[Any]) -> list[ParsedTransaction]:
        """Extract expenses from spreadsheet rows.

        ``line_index`` is the 1-based row position, the same numbering
        the rows get in an extraction request.
        """
        rendered = [render_row(row) for row in rows]
        document = "\n".join(rendered)
        year = self._year_for(document)
        fallback_currency = detect_document_currency(document)

        header = find_header_row(rows)
        expenses = []
        if header is None:
            for position, text in enumerate(rendered, start=1):
                tx = self.parse_line(text, year, fallback_currency, line_index=position)
                if tx is not None:
                    expenses.append(tx)
            return expenses

        header_position, columns = header
        for position, row in enumerate(rows[header_position + 1 :], start=header_position + 2):
            if isinstance(row, str):
                tx = self.parse_line(row, year, fallback_currency, line_index=position)
            else:
                tx = self._parse_columns(row, columns, year, line_index=position)
            if tx is not None:
                expenses.append(tx)
        return expenses

    def _parse_columns(
        self,
        row: Sequence[Any],
        columns: dict[str, int],
        year: int,
        line_index: int,
    ) -> ParsedTransaction | None:
        occurred_on = parse_cell_date(_cell(row, columns.get("date")), year)
        if occurred_on is None:
            return None

        if "amount" in columns:
            amount_cell = _cell(row, columns["amount"])
            amount = parse_amount(amount_cell)
        else:
            debit_cell = _cell(row, columns.get("debit"))
            credit_cell = _cell(row, columns.get("credit"))
            debit = parse_amount(debit_cell)
            credit = parse_amount(credit_cell)
            amount_cell = debit_cell if debit is not None else credit_cell
            if debit is None and credit is None:
                amount = None
            else:
                # Debits are spends, credits are refunds
                amount = abs(debit or Decimal(0)) - abs(credit or Decimal(0))
        if amount is None:
            return None

        currency = normalize_currency(_cell_text(row, columns.get("currency")))
        if currency is None:
            currency = detect_currency(amount_cell) or DEFAULT_CURRENCY

        return ParsedTransaction(
            amount=amount,
            currency=currency,
            occurred_on=occurred_on.isoformat(),
            merchant=_cell_text(row, columns.get("description")),
            payment_method=_cell_text(row, columns.get("payment_method")),
            category=_cell_text(row, columns.get("category")),
            line_index=line_index,
        )

    def parse_text(self, text: str) -> list[ParsedTransaction]:
        """Extract expenses from PDF-extracted text, one per matching line."""
        year = self._year_for(text)
        fallback_currency = detect_document_currency(text)
        expenses = []
        for line in text.splitlines():
            tx = self.parse_line(line, year, fallback_currency)
            if tx is not None:
                expenses.append(tx)
        return expenses

    def parse_line(
        self,
        line: str,
        year: int,
        fallback_currency: str = DEFAULT_CURRENCY,
        line_index: int | None = None,
    ) -> ParsedTransaction | None:
        """Extract one expense from a line with a date and an amount.

        Lines without both, and balance/summary lines, yield None. With
        several amounts on a line the one nearest the middle is taken,
        which skips a trailing running balance.
        """
        line = _WHITESPACE_RE.sub(" ", line).strip()
        if not line or _SUMMARY_LINE_RE.search(line):
            return None

        occurred_on = parse_text_date(line, year)
        if occurred_on is None:
            return None

        tokens = list(_AMOUNT_TOKEN_RE.finditer(line))
        if not tokens:
            return None
        middle = len(line) / 2
        token = min(tokens, key=lambda m: abs((m.start() + m.end()) / 2 - middle))
        amount = parse_amount(token.group(0))
        if amount is None:
            return None

        merchant_text = _ISO_DATE_RE.sub(" ", line)
        merchant_text = _SLASH_DATE_RE.sub(" ", merchant_text)
        merchant_text = _DAY_MONTH_RE.sub(lambda m: " " if m.group(2).lower() in MONTHS else m.group(0), merchant_text)
        merchant_text = _MONTH_DAY_RE.sub(lambda m: " " if m.group(1).lower() in MONTHS else m.group(0), merchant_text)
        merchant_text = _AMOUNT_TOKEN_RE.sub(" ", merchant_text)

        if self.infer_sign_from_text and amount > 0 and is_refund_like(line):
            amount = -amount

        return ParsedTransaction(
            amount=amount,
            currency=detect_currency(line) or fallback_currency,
            occurred_on=occurred_on.isoformat(),
            merchant=clean_merchant(merchant_text),
            line_index=line_index,
        )
