"""Filter rules: value model, pydantic models, JSON loading and matching.

This package provides:
- Value: shape-discriminated string / list / bool values
- Filter and Operations models with pattern compilation
- Loading compiled filters from JSON documents
- Matching compiled filters against messages
"""

from notcoal.rules.loader import dump_filters, filters_from, filters_from_file
from notcoal.rules.matcher import REGEX_TIMEOUT, MessageContent, is_match
from notcoal.rules.models import VIRTUAL_FIELDS, Filter, Operations
from notcoal.rules.value import FieldValue, Value, parse_value

__all__ = [
    # Values
    "FieldValue",
    "Value",
    "parse_value",
    # Models
    "Filter",
    "Operations",
    "VIRTUAL_FIELDS",
    # Loading
    "dump_filters",
    "filters_from",
    "filters_from_file",
    # Matching
    "MessageContent",
    "REGEX_TIMEOUT",
    "is_match",
]
