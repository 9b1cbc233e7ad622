"""Prompt templates for statement extraction and duplicate detection.

Prompts are versioned so stored results can be traced to the instruction
set that produced them. Composition is pure string/schema construction:
identical input always yields a byte-identical request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..schemas import (
    SCHEMA_NAME,
    ContentType,
    ExistingTransaction,
    ExtractionRequest,
    expenses_schema,
)

# Prompt version
# v2.0: Shared rule set across spreadsheet and PDF modes
PROMPT_VERSION = "v2.0"


@dataclass
class StatementPrompt:
    """Prompt template for statement extraction.

    Attributes:
        version: Prompt version.
        system_template: System message; ``{source}`` names the input kind.
        spreadsheet_template: User message for numbered spreadsheet lines.
        pdf_template: User message for raw PDF text.
    """

    version: str = PROMPT_VERSION

    system_template: str = (
        "You are a finance assistant. Extract all expense transactions from the provided "
        "{source}. Return structured JSON only. Do not include any personally identifiable "
        "information (PII) and do not extract account summaries."
    )

    spreadsheet_template: str = """The input below is a list of NUMBERED LINES from a bank/credit card statement (from an Excel/CSV export). Extract transactions strictly from these lines.

{data}

Rules:
- Output a single object with an "expenses" array that follows the order of the numbered lines. Do not sort or group.
- Use ISO date YYYY-MM-DD. If two dates appear (e.g., transaction date and posting date), use the LATER/POSTED date for occurred_on.
- Currency codes must be ISO 4217 three-letter codes (e.g., CAD, USD, INR), never symbols.
- Signs: Purchases/charges must be positive; refunds/credits/reversals/cashbacks must be negative. Honor "CR" markers, minus signs and parentheses. Set "direction" to "credit" or "debit" when it is clear.
- If merchant is missing, omit the field.
- If payment method is missing, omit the field.
- Category is optional; include it only if obvious, else omit.
- Note: a short, human-friendly purpose (e.g., "Car rental", "Dinner at hotel"). Never include any dates in the note.
- Include very small amounts.
- Only extract transactions explicitly present in the lines. Do not invent, infer, summarize, or aggregate.
- If the same date/merchant/amount appears on separate numbered lines, output SEPARATE objects for each occurrence. Do NOT deduplicate or merge.
- Include "line_index" for each transaction: the NUMBER (1-based) of the line that contains the transaction.
- Output must conform to the provided JSON schema."""

    pdf_template: str = """The input below is raw text from a PDF bank statement. Extract distinct transactions.

{data}

Rules:
- Output a single object with an "expenses" array in the order transactions appear in the text.
- Use ISO date YYYY-MM-DD. If two dates appear for one transaction, use the LATER/POSTED date for occurred_on.
- Currency codes must be ISO 4217 three-letter codes, never symbols.
- Signs: Purchases positive, refunds/credits negative (look for "CR" markers or negative signs). Set "direction" to "credit" or "debit" when it is clear.
- If merchant, payment method or category cannot be determined, omit the field.
- Note: a short description. Never include any dates in the note.
- Do not hallucinate transactions that are not in the text.
- Output must conform to the provided JSON schema."""

    def system_prompt(self, content_type: ContentType) -> str:
        """Format the system message for a content type."""
        source = "bank statement text" if content_type == ContentType.PDF else "spreadsheet rows"
        return self.system_template.format(source=source)

    def format_user_message(self, content_type: ContentType, data: str) -> str:
        """Embed the data block into the user instructions.

        Args:
            content_type: Spreadsheet or PDF.
            data: Numbered lines (spreadsheet) or raw text (PDF).

        Returns:
            Formatted user message.
        """
        template = self.pdf_template if content_type == ContentType.PDF else self.spreadsheet_template
        # Substitute via replace: statement text may contain braces
        return template.replace("{data}", data)

    def compose(self, content_type: ContentType, data: str) -> ExtractionRequest:
        """Build the complete extraction request."""
        return ExtractionRequest(
            content_type=content_type,
            system_instruction=self.system_prompt(content_type),
            user_instruction=self.format_user_message(content_type, data),
            schema=expenses_schema(),
            schema_name=SCHEMA_NAME,
        )


@dataclass
class DuplicatePrompt:
    """Prompt template for duplicate detection over stored transactions.

    The contract is one-directional: the model names the redundant copies,
    never the entry they duplicate.
    """

    version: str = PROMPT_VERSION

    user_template: str = """You are a financial auditor. Identify duplicate expenses in this list.

A duplicate is:
- Exact match: same date, amount and merchant
- Double entry: same amount and merchant within 1-2 days
- Fuzzy match: same amount, similar merchant (e.g. "Starbucks" vs "Starbucks Coffee"), close dates

For every group of duplicates, keep the earliest entry as the original and report ONLY the other entries.
Never report the original itself. Only use IDs from the list below.

Return ONLY valid JSON (no markdown) with this structure:
{{"duplicate_ids": ["id2", "id3"]}}

If no duplicates are found, return: {{"duplicate_ids": []}}

Expenses:
{expenses}"""

    @staticmethod
    def format_candidate(candidate: ExistingTransaction) -> str:
        """Render one candidate as a single prompt line."""
        return (
            f"ID: {candidate.id} | Date: {candidate.occurred_on} | "
            f"Amount: {candidate.amount} {candidate.currency} | "
            f"Merchant: {candidate.merchant or 'N/A'} | Cat: {candidate.category} | "
            f"Note: {candidate.note or ''}"
        )

    def format_user_message(self, candidates: Sequence[ExistingTransaction]) -> str:
        """Format the user message listing every candidate."""
        listing = "\n".join(self.format_candidate(c) for c in candidates)
        return self.user_template.format(expenses=listing)
