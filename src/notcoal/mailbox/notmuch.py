"""Mailbox implementation backed by a notmuch database.

Wraps the notmuch2 CFFI bindings so the engine sees the small interface from
notcoal.mailbox.base. Every notmuch error is re-raised as MailboxError.

Usage:
    from notcoal.mailbox.notmuch import open_mailbox

    with open_mailbox(Path("~/mail").expanduser(), "read-write") as mailbox:
        count = filter_messages(mailbox, "new", filters)
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Literal

import notmuch2

from notcoal.core.errors import MailboxError
from notcoal.core.logging import get_logger

logger = get_logger(__name__)

MailboxMode = Literal["read-only", "read-write"]

_MODES = {
    "read-only": notmuch2.Database.MODE.READ_ONLY,
    "read-write": notmuch2.Database.MODE.READ_WRITE,
}


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate notmuch errors raised inside the block into MailboxError."""
    try:
        yield
    except notmuch2.NotmuchError as e:
        raise MailboxError(f"notmuch {operation} failed: {e}", operation=operation) from e


class NotmuchThread:
    def __init__(self, thread: notmuch2.Thread):
        self._thread = thread

    def tags(self) -> list[str]:
        with _store_errors("thread_tags"):
            return list(self._thread.tags)


class NotmuchMessage:
    def __init__(self, message: notmuch2.Message):
        self._message = message

    def message_id(self) -> str:
        return self._message.messageid

    def thread_id(self) -> str:
        return self._message.threadid

    def header(self, name: str) -> str | None:
        try:
            return self._message.header(name)
        except LookupError:
            return None
        except notmuch2.NotmuchError as e:
            raise MailboxError(
                f"notmuch header lookup '{name}' failed for {self.message_id()}: {e}",
                operation="header",
            ) from e

    def tags(self) -> list[str]:
        with _store_errors("tags"):
            return list(self._message.tags)

    def filenames(self) -> list[bytes]:
        # Raw bytes, so names that aren't valid UTF-8 reach the matcher intact
        with _store_errors("filenames"):
            return list(self._message.filenamesb())

    def filename(self) -> str:
        with _store_errors("filename"):
            return str(self._message.path)

    def add_tag(self, tag: str) -> None:
        with _store_errors("add_tag"):
            self._message.tags.add(tag)

    def remove_tag(self, tag: str) -> None:
        with _store_errors("remove_tag"):
            self._message.tags.discard(tag)

    def remove_all_tags(self) -> None:
        with _store_errors("remove_all_tags"):
            self._message.tags.clear()


class NotmuchQuery:
    def __init__(self, db: notmuch2.Database, query: str):
        self._db = db
        self._query = query

    def search_messages(self) -> Iterator[NotmuchMessage]:
        with _store_errors("search_messages"):
            for message in self._db.messages(self._query):
                yield NotmuchMessage(message)

    def search_threads(self) -> Iterator[NotmuchThread]:
        with _store_errors("search_threads"):
            for thread in self._db.threads(self._query):
                yield NotmuchThread(thread)


class NotmuchMailbox:
    """A notmuch database opened for one filtering pass."""

    def __init__(self, db: notmuch2.Database):
        self._db = db

    def create_query(self, query: str) -> NotmuchQuery:
        return NotmuchQuery(self._db, query)

    def remove_message(self, path: str) -> None:
        with _store_errors("remove_message"):
            self._db.remove(path)

    def close(self) -> None:
        with _store_errors("close"):
            self._db.close()

    def __enter__(self) -> NotmuchMailbox:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def open_mailbox(path: Path | None, mode: MailboxMode = "read-only") -> NotmuchMailbox:
    """Open a notmuch database.

    Args:
        path: Database path, or None to let notmuch use its own configuration
        mode: 'read-only' or 'read-write'

    Returns:
        NotmuchMailbox; use it as a context manager to close the database

    Raises:
        MailboxError: If the database can't be opened
    """
    logger.debug("opening_database", path=str(path) if path else None, mode=mode)
    with _store_errors("open"):
        db = notmuch2.Database(path=path, mode=_MODES[mode])
    return NotmuchMailbox(db)
