"""
SSOT (Single Source of Truth) schemas for the pipeline.

These canonical schemas are the ONLY models used across all modules.
No duplicated "near-same" models allowed.
"""

from .expenses import (
    ALLOWED_FIELDS,
    DIRECTION_VALUES,
    EXPENSES_FIELD,
    EXPENSES_SCHEMA,
    OPTIONAL_STRING_FIELDS,
    REQUIRED_FIELDS,
    SCHEMA_NAME,
    expenses_schema,
)
from .statement import (
    ContentType,
    DuplicateQuery,
    DuplicateResult,
    ExistingTransaction,
    ExtractionRequest,
    ExtractionResult,
    NumberedLine,
    ParsedTransaction,
    RawStatementInput,
)

__all__ = [
    # Expenses schema
    "ALLOWED_FIELDS",
    "DIRECTION_VALUES",
    "EXPENSES_FIELD",
    "EXPENSES_SCHEMA",
    "OPTIONAL_STRING_FIELDS",
    "REQUIRED_FIELDS",
    "SCHEMA_NAME",
    "expenses_schema",
    # Statement models
    "ContentType",
    "DuplicateQuery",
    "DuplicateResult",
    "ExistingTransaction",
    "ExtractionRequest",
    "ExtractionResult",
    "NumberedLine",
    "ParsedTransaction",
    "RawStatementInput",
]
