"""Filtering engine.

This package provides:
- Operations executor applying tag, command and delete operations
- Filtering driver running filters over the messages carrying a query tag
- Dry-run driver reporting matches without changing anything
"""

from notcoal.engine.filtering import (
    apply_if_match,
    filter_dry,
    filter_dry_with_path,
    filter_messages,
    filter_with_path,
    validate_query_tag,
)
from notcoal.engine.operations import apply_operations, spawn_command

__all__ = [
    # Operations
    "apply_operations",
    "spawn_command",
    # Driver
    "apply_if_match",
    "filter_dry",
    "filter_dry_with_path",
    "filter_messages",
    "filter_with_path",
    "validate_query_tag",
]
