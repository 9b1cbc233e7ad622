"""
Reconciliation of validated transactions against the source input.

Enforces what the model is not trusted to uphold unaided. Actions are
only "keep" or "drop"; nothing is invented or inferred, and the order of
the surviving subsequence is preserved:
- A line_index outside 1..N (spreadsheet mode) → drop
- PDF mode carries no line anchors → line_index is removed
- occurred_on that is not a real YYYY-MM-DD calendar date → drop
"""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from ..schemas import ContentType, ParsedTransaction

logger = logging.getLogger(__name__)

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

PAYMENT_RECEIPT_RE = re.compile(
    r"(payment received|credit card payment|card payment|payment thank you|bill payment|"
    r"autopay|auto pay|payment processed|thank you for your payment)",
    re.IGNORECASE,
)


def is_iso_date(value: str) -> bool:
    """Check ``value`` is a valid ISO-8601 calendar date (YYYY-MM-DD)."""
    if not ISO_DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


@dataclass
class ReconciliationReport:
    """Surviving transactions and drop counts by reason."""

    kept: list[ParsedTransaction] = field(default_factory=list)
    dropped_line_index: int = 0
    dropped_date: int = 0

    @property
    def dropped(self) -> int:
        return self.dropped_line_index + self.dropped_date


def reconcile(
    transactions: Sequence[ParsedTransaction],
    content_type: ContentType,
    line_count: int = 0,
) -> ReconciliationReport:
    """Keep or drop each transaction against the source input.

    Args:
        transactions: Validated transactions in model order.
        content_type: Spreadsheet or PDF.
        line_count: Number of numbered input lines (spreadsheet mode).

    Returns:
        ReconciliationReport with the kept subsequence.
    """
    report = ReconciliationReport()
    for tx in transactions:
        if content_type == ContentType.PDF:
            if tx.line_index is not None:
                tx = dataclasses.replace(tx, line_index=None)
        elif tx.line_index is not None and not 1 <= tx.line_index <= line_count:
            report.dropped_line_index += 1
            logger.debug("Dropped transaction with dangling line_index %d (N=%d)", tx.line_index, line_count)
            continue

        if not is_iso_date(tx.occurred_on):
            report.dropped_date += 1
            logger.debug("Dropped transaction with non-ISO date")
            continue

        report.kept.append(tx)
    return report


def is_payment_receipt(tx: ParsedTransaction) -> bool:
    """Negative entry that reads like paying off the card itself."""
    if tx.amount >= 0:
        return False
    text = f"{tx.merchant or ''} {tx.note or ''}"
    return bool(PAYMENT_RECEIPT_RE.search(text))


def exclude_payment_receipts(
    transactions: Sequence[ParsedTransaction],
) -> tuple[list[ParsedTransaction], int]:
    """Drop card payment receipts; returns (kept, dropped_count)."""
    kept = [tx for tx in transactions if not is_payment_receipt(tx)]
    return kept, len(transactions) - len(kept)
