"""
PII redaction before statement text leaves the process.

Masks values that are never needed to extract expenses: emails, card and
account numbers, phone numbers, and labelled personal fields. Dates and
amounts must survive untouched, so patterns are anchored on card/phone
grouping shapes rather than on generic digit runs.
"""

from __future__ import annotations

import re

from ..config import PrivacyConfig

EMAIL_RE = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)

# 4-4-4-4 groups, Amex 4-6-5 groups, or an unbroken 13-19 digit run
CARD_RE = re.compile(
    r"(?<![\d-])(?:\d{4}[ -]){3}\d{4}(?![\d-])"
    r"|(?<![\d-])\d{4}[ -]\d{6}[ -]\d{5}(?![\d-])"
    r"|(?<!\d)\d{13,19}(?!\d)"
)

PHONE_RE = re.compile(
    r"(?<![\w.])(?:\+\d{1,3}[\s.-]?)?(?:\(\d{3}\)\s?|\d{3}[\s.-])\d{3}[\s.-]\d{4}(?![\d.])"
)

ACCOUNT_RE = re.compile(
    r"(\b(?:account|acct|iban|routing|sort code)(?:\s+(?:number|no\.?))?\s*[:#]?\s*)"
    r"[A-Z]{0,2}\d[\d -]{3,}\d",
    re.IGNORECASE,
)

LABELLED_RE = re.compile(
    r"^(\s*(?:customer name|account holder|billing address|mailing address|"
    r"address|name|customer|holder|owner)\s*:).*$",
    re.IGNORECASE | re.MULTILINE,
)

# Strict mode only
LONG_DIGITS_RE = re.compile(r"\d{9,}")
IDENTITY_LINE_RE = re.compile(
    r"^.*\b(?:SSN|SIN|Passport|Driver'?s? License|DL No\.|PAN|Aadhaar|GSTIN)\b.*$",
    re.IGNORECASE | re.MULTILINE,
)


class Redactor:
    """Applies the configured PII masks to statement text."""

    def __init__(self, config: PrivacyConfig) -> None:
        self.config = config
        self._extra = [
            re.compile(re.escape(word), re.IGNORECASE)
            for word in config.extra_redact_words
            if word
        ]

    @property
    def enabled(self) -> bool:
        return self.config.redact_pii or bool(self._extra)

    def redact(self, text: str) -> str:
        """Return ``text`` with PII masked; line structure is preserved."""
        out = text
        if self.config.redact_pii:
            out = EMAIL_RE.sub("[EMAIL]", out)
            out = ACCOUNT_RE.sub(r"\1[REDACTED]", out)
            out = CARD_RE.sub("[CARD]", out)
            out = PHONE_RE.sub("[PHONE]", out)
            out = LABELLED_RE.sub(r"\1 [REDACTED]", out)

            if self.config.strict:
                out = LONG_DIGITS_RE.sub(lambda m: "X" * len(m.group()), out)
                out = IDENTITY_LINE_RE.sub("[REDACTED_LINE]", out)

        for pattern in self._extra:
            out = pattern.sub("[REDACTED]", out)
        return out
