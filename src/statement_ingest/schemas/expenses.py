"""
Structural contract for extraction responses (SSOT).

This module defines THE JSON schema sent to the text-generation service
and the field sets the validator enforces on every returned element.
The same contract applies to structured and textual response payloads.
"""

import copy

SCHEMA_NAME = "expenses_schema"

# Top-level array field
EXPENSES_FIELD = "expenses"

REQUIRED_FIELDS = ("amount", "currency", "occurred_on")

OPTIONAL_STRING_FIELDS = ("merchant", "payment_method", "note", "category")

# Sign hint only; consumed by sign normalization, never surfaced
DIRECTION_VALUES = ("debit", "credit")

_ITEM_PROPERTIES = {
    "amount": {"type": "number"},
    "currency": {"type": "string"},
    "direction": {"type": "string", "enum": list(DIRECTION_VALUES)},
    "merchant": {"type": "string"},
    "payment_method": {"type": "string"},
    "note": {"type": "string"},
    "occurred_on": {"type": "string"},
    "category": {"type": "string"},
    "line_index": {"type": "integer"},
}

ALLOWED_FIELDS = frozenset(_ITEM_PROPERTIES)

EXPENSES_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        EXPENSES_FIELD: {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "properties": _ITEM_PROPERTIES,
                "required": list(REQUIRED_FIELDS),
            },
        }
    },
    "required": [EXPENSES_FIELD],
}


def expenses_schema() -> dict:
    """Return a private copy of the canonical schema descriptor."""
    return copy.deepcopy(EXPENSES_SCHEMA)
