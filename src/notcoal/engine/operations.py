"""Apply a filter's operations to a matched message.

Operations run in a fixed order, each only if present:
1. rm  - remove tag(s); true removes every tag, false does nothing
2. add - add tag(s); booleans are rejected
3. run - spawn a command with NOTCOAL_* environment variables
4. del - delete the message file, then drop it from the database

Commands are fire-and-forget: the process is started and never waited on,
and its exit status is not reported anywhere. Because 'run' comes before
'del', the command's environment always carries the path and ID the message
had before deletion, but the command itself may still be starting up when
the file disappears. Commands that need the file must not rely on it existing
when a filter also deletes the message.
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

from notcoal.core.errors import NotcoalIOError
from notcoal.core.logging import get_logger

if TYPE_CHECKING:
    from notcoal.mailbox.base import Mailbox, MailMessage
    from notcoal.rules.models import Operations
    from notcoal.rules.value import Value

logger = get_logger(__name__)

ENV_FILE_NAME = "NOTCOAL_FILE_NAME"
ENV_MSG_ID = "NOTCOAL_MSG_ID"
ENV_FILTER_NAME = "NOTCOAL_FILTER_NAME"


def _remove_tags(rm: Value, message: MailMessage) -> None:
    if rm.is_bool:
        if rm.data:
            message.remove_all_tags()
        return
    for tag in rm.strings("'rm' operation"):
        message.remove_tag(tag)


def _add_tags(add: Value, message: MailMessage) -> None:
    for tag in add.strings("'add' operation"):
        message.add_tag(tag)


def spawn_command(argv: list[str], message: MailMessage, filter_name: str) -> None:
    """Start a command for a matched message without waiting for it.

    The child inherits stdout and the current environment, extended with
    NOTCOAL_FILE_NAME, NOTCOAL_MSG_ID and NOTCOAL_FILTER_NAME.

    Raises:
        NotcoalIOError: If the process can't be started (e.g. missing executable)
    """
    env = {
        **os.environ,
        ENV_FILE_NAME: message.filename(),
        ENV_MSG_ID: message.message_id(),
        ENV_FILTER_NAME: filter_name,
    }
    try:
        process = subprocess.Popen(argv, env=env)
    except OSError as e:
        raise NotcoalIOError(
            f"Filter '{filter_name}': failed to run {argv[0]!r}: {e}", path=argv[0]
        ) from e

    logger.info(
        "command_spawned",
        filter=filter_name,
        program=argv[0],
        pid=process.pid,
        message_id=message.message_id(),
    )


def _delete_message(message: MailMessage, mailbox: Mailbox, filter_name: str) -> None:
    path = message.filename()
    message_id = message.message_id()
    try:
        Path(path).unlink()
    except OSError as e:
        raise NotcoalIOError(
            f"Filter '{filter_name}': failed to delete message file {path}: {e}", path=path
        ) from e

    # Only drop the index entry once the file is gone
    mailbox.remove_message(path)
    logger.info("message_deleted", filter=filter_name, message_id=message_id, path=path)


def apply_operations(
    operations: Operations,
    message: MailMessage,
    mailbox: Mailbox,
    filter_name: str,
) -> bool:
    """Apply operations to a message, whether or not it matched.

    Args:
        operations: The filter's operations
        message: Message to modify
        mailbox: Store the message belongs to (used for deletion)
        filter_name: Resolved filter name, exported to spawned commands

    Returns:
        True if the message was deleted

    Raises:
        UnsupportedValueError: If 'add' holds a boolean
        NotcoalIOError: If a command can't be spawned or the file can't be deleted
        MailboxError: If the store fails a tag change or the index removal
    """
    if operations.rm is not None:
        _remove_tags(operations.rm, message)
    if operations.add is not None:
        _add_tags(operations.add, message)
    if operations.run:
        spawn_command(operations.run, message, filter_name)
    if operations.delete:
        _delete_message(message, mailbox, filter_name)
        return True
    return False
