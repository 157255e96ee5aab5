"""Structured logging for notcoal.

Events are rendered by structlog, as JSON lines or for the console, and always
written to stderr: stdout belongs to command output and to the commands that
filters spawn, which inherit it.

Each filtering pass runs inside run_context(), which tags every event logged
during the pass with the same short run ID and restores the previous ID when
the pass ends, even if it ends with an error.

Usage:
    from notcoal.core.logging import get_logger, run_context

    logger = get_logger(__name__)

    with run_context() as run_id:
        logger.info("filter_applied", message_id="abc@example.com", filter="money")
"""

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import IO, Any

import structlog

# Hex digits kept from a UUID4 for run IDs
RUN_ID_LENGTH = 12

_run_id: ContextVar[str | None] = ContextVar("run_id", default=None)


def new_run_id() -> str:
    return uuid.uuid4().hex[:RUN_ID_LENGTH]


def get_run_id() -> str | None:
    """Get the ID of the pass currently running, if any."""
    return _run_id.get()


@contextmanager
def run_context(run_id: str | None = None) -> Iterator[str]:
    """Bind a run ID for the duration of one filtering pass.

    Args:
        run_id: ID to bind; a fresh one is generated when omitted

    Yields:
        The bound run ID
    """
    bound = run_id or new_run_id()
    token = _run_id.set(bound)
    try:
        yield bound
    finally:
        _run_id.reset(token)


def add_run_id(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor adding the current run ID, outside a pass nothing."""
    run_id = _run_id.get()
    if run_id is not None:
        event_dict.setdefault("run_id", run_id)
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    stream: IO[str] | None = None,
) -> None:
    """Route structlog through the stdlib logging module.

    The CLI calls this once for --debug and again after reading the config
    file. Loggers aren't cached, so module-level loggers follow the latest call.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        json_output: One JSON object per line instead of console rendering
        stream: Where to write; stderr when omitted
    """
    stream = stream if stream is not None else sys.stderr
    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=getattr(logging, log_level.upper()),
        force=True,
    )

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_run_id,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        colors = hasattr(stream, "isatty") and stream.isatty()
        processors.append(structlog.dev.ConsoleRenderer(colors=colors))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a logger named after the calling module."""
    return structlog.get_logger(name)
