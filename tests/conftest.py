"""Pytest fixtures and configuration for notcoal tests.

Provides an in-memory fake mailbox backed by real message files under
tmp_path, plus factories for filters and config files.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterable
from email.message import EmailMessage
from pathlib import Path
from typing import Any

import pytest

from notcoal.config import reset_config
from notcoal.core.errors import MailboxError
from notcoal.rules.models import Filter


@pytest.fixture(autouse=True)
def reset_config_singleton() -> Generator[None, None, None]:
    """Reset the config singleton before each test."""
    reset_config()
    yield
    reset_config()


# ---------------------------------------------------------------------------
# Fake mailbox
# ---------------------------------------------------------------------------


class FakeThread:
    def __init__(self, tags: Iterable[str]):
        self._tags = set(tags)

    def tags(self) -> list[str]:
        return sorted(self._tags)


class FakeMessage:
    """Message stored in a FakeMailbox.

    Operations named in fail_on raise MailboxError, to simulate store failures.
    """

    def __init__(
        self,
        message_id: str,
        path: Path,
        headers: dict[str, str],
        tags: Iterable[str],
        thread_id: str,
        extra_filenames: Iterable[str | bytes] = (),
    ):
        self._message_id = message_id
        self._path = path
        self._headers = {k.lower(): v for k, v in headers.items()}
        self._tags = set(tags)
        self._thread_id = thread_id
        self._extra_filenames = list(extra_filenames)
        self.fail_on: set[str] = set()
        self.calls: list[tuple[str, ...]] = []

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise MailboxError(f"fake {operation} failed", operation=operation)

    def message_id(self) -> str:
        return self._message_id

    def thread_id(self) -> str:
        return self._thread_id

    def header(self, name: str) -> str | None:
        self._check("header")
        return self._headers.get(name.lower())

    def tags(self) -> list[str]:
        return sorted(self._tags)

    def filenames(self) -> list[str | bytes]:
        return [str(self._path), *self._extra_filenames]

    def filename(self) -> str:
        return str(self._path)

    def add_tag(self, tag: str) -> None:
        self._check("add_tag")
        self.calls.append(("add_tag", tag))
        self._tags.add(tag)

    def remove_tag(self, tag: str) -> None:
        self._check("remove_tag")
        self.calls.append(("remove_tag", tag))
        self._tags.discard(tag)

    def remove_all_tags(self) -> None:
        self._check("remove_all_tags")
        self.calls.append(("remove_all_tags",))
        self._tags.clear()


class FakeQuery:
    def __init__(self, mailbox: FakeMailbox, query: str):
        self._mailbox = mailbox
        self._query = query

    def search_messages(self) -> Generator[FakeMessage, None, None]:
        term, _, value = self._query.partition(":")
        assert term == "tag", f"unsupported fake query {self._query!r}"
        # Snapshot, like a query cursor taken before any tag changes
        for message in [m for m in self._mailbox.messages if value in m.tags()]:
            yield message

    def search_threads(self) -> Generator[FakeThread, None, None]:
        term, _, value = self._query.partition(":")
        assert term == "thread", f"unsupported fake query {self._query!r}"
        if value in self._mailbox.threads:
            yield self._mailbox.threads[value]


class FakeMailbox:
    """In-memory mail store whose messages live in files under root."""

    def __init__(self, root: Path):
        self.root = root
        self.messages: list[FakeMessage] = []
        self.threads: dict[str, FakeThread] = {}
        self.queries: list[str] = []
        self.removed: list[str] = []
        self.fail_remove = False

    def add_message(
        self,
        message_id: str,
        headers: dict[str, str] | None = None,
        tags: Iterable[str] = ("new",),
        body: str = "Hello there",
        raw: bytes | None = None,
        thread_id: str = "0001",
        extra_filenames: Iterable[str | bytes] = (),
    ) -> FakeMessage:
        headers = headers if headers is not None else {"From": "someone@example.com"}
        path = self.root / "cur" / f"{len(self.messages):04d}:2,S"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(raw if raw is not None else make_raw(headers, body))
        message = FakeMessage(message_id, path, headers, tags, thread_id, extra_filenames)
        self.messages.append(message)
        return message

    def set_thread_tags(self, thread_id: str, tags: Iterable[str]) -> None:
        self.threads[thread_id] = FakeThread(tags)

    def create_query(self, query: str) -> FakeQuery:
        self.queries.append(query)
        return FakeQuery(self, query)

    def remove_message(self, path: str) -> None:
        if self.fail_remove:
            raise MailboxError("fake remove_message failed", operation="remove_message")
        self.removed.append(path)
        self.messages = [m for m in self.messages if m.filename() != path]


def make_raw(headers: dict[str, str], body: str) -> bytes:
    """Build a minimal single-part RFC 822 message."""
    lines = [f"{name}: {value}" for name, value in headers.items()]
    return ("\r\n".join(lines) + "\r\n\r\n" + body + "\r\n").encode("utf-8")


def make_multipart(
    body: str = "Plain body",
    attachments: Iterable[tuple[str | None, str, str | bytes, str]] = (),
) -> bytes:
    """Build a multipart message.

    Args:
        body: text/plain body
        attachments: (filename, mimetype, content, disposition) tuples
    """
    msg = EmailMessage()
    msg["From"] = "sender@example.com"
    msg["To"] = "me@example.com"
    msg["Subject"] = "With attachments"
    msg.set_content(body)
    for filename, mimetype, content, disposition in attachments:
        maintype, subtype = mimetype.split("/")
        if isinstance(content, str):
            msg.add_attachment(content, subtype=subtype, filename=filename, disposition=disposition)
        else:
            msg.add_attachment(
                content,
                maintype=maintype,
                subtype=subtype,
                filename=filename,
                disposition=disposition,
            )
    return msg.as_bytes()


@pytest.fixture
def mailbox(tmp_path: Path) -> FakeMailbox:
    """Return an empty fake mailbox rooted in a temp maildir."""
    return FakeMailbox(tmp_path / "mail")


@pytest.fixture
def build_multipart() -> Callable[..., bytes]:
    """Return the multipart message builder."""
    return make_multipart


@pytest.fixture
def make_filter() -> Callable[..., Filter]:
    """Return a factory building compiled filters from plain dicts."""

    def _make(
        rules: list[dict[str, Any]],
        op: dict[str, Any] | None = None,
        name: str | None = None,
    ) -> Filter:
        data: dict[str, Any] = {"rules": rules, "op": op or {}}
        if name is not None:
            data["name"] = name
        return Filter.model_validate(data).compile()

    return _make


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


@pytest.fixture
def temp_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_yaml() -> str:
    """Return a minimal valid config.yaml content."""
    return """
schema_version: 1

database:
  path: "/var/mail/notmuch"

filtering:
  query_tag: "inbox-new"
  rules_path: "/etc/notcoal/rules.json"
  regex_timeout_seconds: 2

logging:
  level: "INFO"
  json_output: true
"""


@pytest.fixture
def config_file(temp_config_dir: Path, sample_config_yaml: str) -> Path:
    """Create a temporary config file with valid content."""
    config_path = temp_config_dir / "config.yaml"
    config_path.write_text(sample_config_yaml)
    return config_path


@pytest.fixture
def set_config_env(config_file: Path) -> Generator[None, None, None]:
    """Set the NOTCOAL_CONFIG_PATH environment variable."""
    old_value = os.environ.get("NOTCOAL_CONFIG_PATH")
    os.environ["NOTCOAL_CONFIG_PATH"] = str(config_file)
    yield
    if old_value is None:
        del os.environ["NOTCOAL_CONFIG_PATH"]
    else:
        os.environ["NOTCOAL_CONFIG_PATH"] = old_value
