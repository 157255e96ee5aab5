"""Interfaces notcoal needs from the mail store.

The engine only depends on these protocols. NotmuchMailbox implements them
over the notmuch2 bindings; tests use an in-memory fake. Implementations must
raise MailboxError for store-side failures.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from typing import Protocol, Union

PathLike = Union[str, bytes, os.PathLike]


class MailThread(Protocol):
    def tags(self) -> Iterable[str]: ...


class MailMessage(Protocol):
    def message_id(self) -> str: ...

    def thread_id(self) -> str: ...

    def header(self, name: str) -> str | None:
        """Return the header value, or None if the message has no such header."""
        ...

    def tags(self) -> Iterable[str]: ...

    def filenames(self) -> Iterable[PathLike]:
        """All on-disk files indexed for this message."""
        ...

    def filename(self) -> str:
        """The message's primary file."""
        ...

    def add_tag(self, tag: str) -> None: ...

    def remove_tag(self, tag: str) -> None: ...

    def remove_all_tags(self) -> None: ...


class MailQuery(Protocol):
    def search_messages(self) -> Iterator[MailMessage]: ...

    def search_threads(self) -> Iterator[MailThread]: ...


class Mailbox(Protocol):
    def create_query(self, query: str) -> MailQuery: ...

    def remove_message(self, path: str) -> None:
        """Drop the index entry for a message file."""
        ...
