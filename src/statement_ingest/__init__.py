"""
Statement → Numbered Lines → Schema-Constrained Extraction → Reconciled Expenses

A deterministic, testable pipeline that turns spreadsheet rows or PDF text
from bank statements into validated expense records, plus an LLM-assisted
duplicate check over already stored transactions with strict closed-world
filtering of returned identifiers.
"""

__version__ = "0.1.0"
