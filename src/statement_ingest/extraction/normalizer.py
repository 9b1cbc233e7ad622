"""
Line normalizer.

Turns decoded statement content into the canonical text block embedded
in the extraction prompt:
- Spreadsheet: one row → exactly one NumberedLine, in source order, with
  no filtering (blank rows keep their index so results map back)
- PDF: the extracted text passes through unchanged; no line anchors

This stage cannot fail; empty input yields an empty block.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Sequence

from ..schemas import ContentType, NumberedLine, RawStatementInput

_WHITESPACE_RE = re.compile(r"\s+")

CELL_SEPARATOR = " | "


def render_row(row: str | Sequence[object]) -> str:
    """Render one row as a single whitespace-collapsed line.

    Cell sequences are joined with `` | ``; None cells render empty.
    """
    if isinstance(row, str):
        text = row
    else:
        text = CELL_SEPARATOR.join("" if cell is None else str(cell).strip() for cell in row)
    return _WHITESPACE_RE.sub(" ", text).strip()


def number_rows(
    rows: Sequence[str | Sequence[object]],
    redact: Callable[[str], str] | None = None,
) -> list[NumberedLine]:
    """Assign contiguous 1-based indices to rows.

    Args:
        rows: Spreadsheet rows, as strings or cell sequences.
        redact: Optional text filter applied to each rendered row.

    Returns:
        One NumberedLine per row, indices 1..N.
    """
    lines = []
    for position, row in enumerate(rows, start=1):
        text = render_row(row)
        if redact is not None and text:
            # Redaction may introduce whitespace; keep one physical line per row
            text = _WHITESPACE_RE.sub(" ", redact(text)).strip()
        lines.append(NumberedLine(index=position, text=text))
    return lines


def render_lines(lines: Sequence[NumberedLine]) -> str:
    """Render numbered lines as the prompt's data block."""
    return "\n".join(line.render() for line in lines)


@dataclass(frozen=True)
class NormalizedStatement:
    """Normalizer output: the data block plus its line anchors."""

    content_type: ContentType
    body: str
    lines: tuple[NumberedLine, ...] = field(default_factory=tuple)

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to extract from."""
        if self.content_type == ContentType.SPREADSHEET:
            return not any(line.text for line in self.lines)
        return not self.body.strip()


def normalize_input(
    raw: RawStatementInput,
    redact: Callable[[str], str] | None = None,
) -> NormalizedStatement:
    """Normalize raw statement input.

    Args:
        raw: Decoded statement content.
        redact: Optional text filter (PII masking) applied before numbering.

    Returns:
        NormalizedStatement ready for prompt composition.
    """
    if raw.content_type == ContentType.SPREADSHEET:
        lines = number_rows(raw.rows or (), redact=redact)
        return NormalizedStatement(
            content_type=ContentType.SPREADSHEET,
            body=render_lines(lines),
            lines=tuple(lines),
        )

    text = raw.text or ""
    if redact is not None and text:
        text = redact(text)
    return NormalizedStatement(content_type=ContentType.PDF, body=text)
