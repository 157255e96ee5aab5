"""Filtering driver: run filters over the messages carrying a query tag.

One pass queries the store for every message tagged with the query tag (for
example 'new'), runs each filter in order against each message, applies the
operations of matching filters, and finally removes the query tag from every
message that wasn't deleted. Because the tag is only removed once a message
has been fully processed, an interrupted pass can simply be run again.

Any error aborts the whole pass; there is no per-message recovery.

Usage:
    from notcoal.engine.filtering import filter_messages, filter_dry

    count = filter_messages(mailbox, "new", filters)
    count, matches = filter_dry(mailbox, "new", filters)
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from notcoal.core.errors import UnsupportedQueryError
from notcoal.core.logging import get_logger, run_context
from notcoal.engine.operations import apply_operations
from notcoal.rules.matcher import REGEX_TIMEOUT, is_match

if TYPE_CHECKING:
    from notcoal.mailbox.base import Mailbox, MailMessage
    from notcoal.rules.models import Filter

logger = get_logger(__name__)

# Characters that would let a tag escape the 'tag:' query term
_QUOTES = ('"', "'")


def validate_query_tag(tag: str) -> str:
    """Check a user supplied tag and turn it into a notmuch query.

    Args:
        tag: Tag selecting the messages to filter (e.g. 'new')

    Returns:
        The query string 'tag:<tag>'

    Raises:
        UnsupportedQueryError: If the tag is empty or contains whitespace or quotes
    """
    if not tag:
        raise UnsupportedQueryError("Tag to query can't be empty")
    if any(c.isspace() for c in tag) or any(q in tag for q in _QUOTES):
        raise UnsupportedQueryError(
            f"Query tag {tag!r} can't contain whitespace or quotes"
        )
    return f"tag:{tag}"


def apply_if_match(
    flt: Filter,
    message: MailMessage,
    mailbox: Mailbox,
    *,
    timeout: float = REGEX_TIMEOUT,
) -> tuple[bool, bool]:
    """Apply a filter's operations if the message matches it.

    Returns:
        (matched, deleted)
    """
    if not is_match(flt, message, mailbox, timeout=timeout):
        return False, False
    return True, apply_operations(flt.op, message, mailbox, flt.resolved_name())


def filter_messages(
    mailbox: Mailbox,
    query_tag: str,
    filters: list[Filter],
    *,
    timeout: float = REGEX_TIMEOUT,
) -> int:
    """Apply all filters to the messages carrying query_tag.

    Filters run in list order. A message deleted by a filter is not offered
    to the remaining filters. Surviving messages lose query_tag once every
    filter has run.

    Args:
        mailbox: Store opened read-write
        query_tag: Tag selecting the messages to process
        filters: Compiled filters
        timeout: Seconds allowed per pattern search

    Returns:
        Number of (message, filter) matches

    Raises:
        UnsupportedQueryError: If query_tag is unsafe
        NotcoalError: Any matching or operation failure, which ends the pass
    """
    query = validate_query_tag(query_tag)
    with run_context():
        return _filter_pass(mailbox, query, query_tag, filters, timeout)


def _filter_pass(
    mailbox: Mailbox,
    query: str,
    query_tag: str,
    filters: list[Filter],
    timeout: float,
) -> int:
    logger.info("filtering_started", query=query, filters=len(filters))

    matches = 0
    scanned = 0
    deleted = 0
    for message in mailbox.create_query(query).search_messages():
        scanned += 1
        message_deleted = False
        for flt in filters:
            matched, message_deleted = apply_if_match(flt, message, mailbox, timeout=timeout)
            if matched:
                matches += 1
                logger.debug(
                    "filter_applied",
                    filter=flt.resolved_name(),
                    message_id=message.message_id(),
                )
            if message_deleted:
                deleted += 1
                break

        if not message_deleted:
            message.remove_tag(query_tag)

    logger.info(
        "filtering_complete",
        scanned=scanned,
        matches=matches,
        deleted=deleted,
    )
    return matches


def filter_dry(
    mailbox: Mailbox,
    query_tag: str,
    filters: list[Filter],
    *,
    timeout: float = REGEX_TIMEOUT,
) -> tuple[int, list[str]]:
    """Report which filters match which messages without changing anything.

    Operations are never applied and query_tag is left in place, so running
    this twice gives the same answer.

    Returns:
        (number of matches, ["<message id>: <filter name>", ...])

    Raises:
        UnsupportedQueryError: If query_tag is unsafe
        NotcoalError: Any matching failure, which ends the pass
    """
    query = validate_query_tag(query_tag)
    with run_context():
        return _dry_pass(mailbox, query, filters, timeout)


def _dry_pass(
    mailbox: Mailbox,
    query: str,
    filters: list[Filter],
    timeout: float,
) -> tuple[int, list[str]]:
    logger.info("dry_run_started", query=query, filters=len(filters))

    matches: list[str] = []
    scanned = 0
    for message in mailbox.create_query(query).search_messages():
        scanned += 1
        for flt in filters:
            if is_match(flt, message, mailbox, timeout=timeout):
                matches.append(f"{message.message_id()}: {flt.resolved_name()}")

    logger.info("dry_run_complete", scanned=scanned, matches=len(matches))
    return len(matches), matches


def filter_with_path(
    db_path: Path | None,
    query_tag: str,
    filters: list[Filter],
    *,
    timeout: float = REGEX_TIMEOUT,
) -> int:
    """Open the notmuch database at db_path read-write and run filter_messages()."""
    from notcoal.mailbox.notmuch import open_mailbox

    with open_mailbox(db_path, "read-write") as mailbox:
        return filter_messages(mailbox, query_tag, filters, timeout=timeout)


def filter_dry_with_path(
    db_path: Path | None,
    query_tag: str,
    filters: list[Filter],
    *,
    timeout: float = REGEX_TIMEOUT,
) -> tuple[int, list[str]]:
    """Open the notmuch database at db_path read-only and run filter_dry()."""
    from notcoal.mailbox.notmuch import open_mailbox

    with open_mailbox(db_path, "read-only") as mailbox:
        return filter_dry(mailbox, query_tag, filters, timeout=timeout)
