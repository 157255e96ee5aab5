"""Evaluate compiled filters against messages.

A filter matches if any of its rules matches; a rule matches if all of its
fields match; a field matches if any of its patterns is found in any of the
values the field resolves to.

Field resolution:
- plain names are headers (case-insensitive); a missing header fails the field
- @tags: the message's tags
- @path: every file path of the message that decodes as UTF-8
- @thread-tags: the tags of the message's whole thread
- @body: decoded text of the primary body part
- @attachment: filenames of attachment parts
- @attachment-body: decoded text of text/* attachment parts

The last three need the message file parsed. That happens at most once per
is_match() call, however many rules and fields ask for it.

Usage:
    from notcoal.rules.matcher import is_match

    if is_match(flt, message, mailbox):
        ...
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from functools import cached_property
from pathlib import Path
from typing import TYPE_CHECKING

import regex

from notcoal.core.errors import RegexError, UnknownFieldError
from notcoal.core.logging import get_logger
from notcoal.mail.mime import ParsedMail, read_and_parse

if TYPE_CHECKING:
    from notcoal.mailbox.base import Mailbox, MailMessage, MailThread, PathLike
    from notcoal.rules.models import Filter

logger = get_logger(__name__)

# Seconds a single pattern search may run before it is treated as an error
REGEX_TIMEOUT = 1.0


class MessageContent:
    """Parsed message file, loaded on first use and kept for one match call."""

    def __init__(self, message: MailMessage):
        self._message = message

    @cached_property
    def parsed(self) -> ParsedMail:
        return read_and_parse(Path(self._message.filename()))


def _search_any(
    patterns: list[regex.Pattern],
    values: Iterable[str],
    field: str,
    timeout: float,
) -> bool:
    """Return True if any pattern is found in any value."""
    for value in values:
        for pattern in patterns:
            try:
                if pattern.search(value, timeout=timeout):
                    return True
            except TimeoutError as e:
                raise RegexError(
                    f"Pattern {pattern.pattern!r} for field '{field}' timed out "
                    f"after {timeout}s",
                    pattern=pattern.pattern,
                    field=field,
                ) from e
    return False


def _decodable_paths(filenames: Iterable[PathLike]) -> Iterator[str]:
    """Yield file paths as text, skipping any that aren't valid UTF-8."""
    for name in filenames:
        raw = os.fsencode(name)
        try:
            yield raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("path_not_utf8_skipped", path=repr(raw))


def _first_thread(message: MailMessage, mailbox: Mailbox) -> MailThread | None:
    query = mailbox.create_query(f"thread:{message.thread_id()}")
    return next(iter(query.search_threads()), None)


def _match_field(
    field_key: str,
    patterns: list[regex.Pattern],
    message: MailMessage,
    mailbox: Mailbox,
    content: MessageContent,
    timeout: float,
) -> bool:
    key = field_key.lower()
    values: Iterable[str]

    if not key.startswith("@"):
        header = message.header(field_key)
        if header is None:
            return False
        values = [header]
    elif key == "@tags":
        values = message.tags()
    elif key == "@path":
        values = _decodable_paths(message.filenames())
    elif key == "@thread-tags":
        thread = _first_thread(message, mailbox)
        if thread is None:
            return False
        values = thread.tags()
    elif key == "@body":
        values = [content.parsed.body_text()]
    elif key == "@attachment":
        values = content.parsed.attachment_filenames()
    elif key == "@attachment-body":
        values = content.parsed.attachment_texts()
    else:
        # Filter.compile() rejects these, so only hand-built caches get here
        raise UnknownFieldError(f"Unknown field '{field_key}'")

    return _search_any(patterns, values, field_key, timeout)


def is_match(
    flt: Filter,
    message: MailMessage,
    mailbox: Mailbox,
    *,
    timeout: float = REGEX_TIMEOUT,
) -> bool:
    """Check whether a message matches any rule of a filter.

    Args:
        flt: A compiled filter
        message: Message to test
        mailbox: Store the message belongs to (used for @thread-tags)
        timeout: Seconds allowed per pattern search

    Returns:
        True if any rule matched

    Raises:
        RegexUncompiledError: If the filter hasn't been compiled
        RegexError: If a pattern search times out
        NotcoalIOError: If the message file can't be read
        MailParseError: If the message file can't be parsed
        MailboxError: If the store fails a lookup
    """
    compiled = flt.compiled_rules
    content = MessageContent(message)

    for index, rule in enumerate(compiled):
        if all(
            _match_field(field_key, patterns, message, mailbox, content, timeout)
            for field_key, patterns in rule.items()
        ):
            logger.debug(
                "rule_matched",
                filter=flt.resolved_name(),
                rule_index=index,
                message_id=message.message_id(),
            )
            return True

    return False
