"""Statement extraction and duplicate detection.

Implements the ingestion core: line normalization, prompt composition,
schema-constrained extraction with reconciliation, an offline pattern
parser, and closed-world duplicate detection.
"""

from .duplicates import DuplicateDetector, FreeformResult, StructuredResult, resolve_duplicate_ids
from .extractor import StatementExtractor
from .local_parser import LocalStatementParser
from .normalizer import NormalizedStatement, normalize_input, number_rows
from .prompts import PROMPT_VERSION, DuplicatePrompt, StatementPrompt

__all__ = [
    "PROMPT_VERSION",
    "DuplicateDetector",
    "DuplicatePrompt",
    "FreeformResult",
    "LocalStatementParser",
    "NormalizedStatement",
    "StatementExtractor",
    "StatementPrompt",
    "StructuredResult",
    "normalize_input",
    "number_rows",
    "resolve_duplicate_ids",
]
