"""MIME parsing for body and attachment rule fields.

Parses raw message files with the standard library email package (default
policy) into a small structure exposing what rules can match on: the text of
the primary body part, and for every other MIME part its media type,
attachment flag, content-disposition filename and decoded text.

Usage:
    from notcoal.mail.mime import read_and_parse

    parsed = read_and_parse(Path("/path/to/maildir/cur/message"))
    parsed.body_text()
    parsed.attachment_filenames()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from email import errors as email_errors
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import collapse_rfc2231_value
from pathlib import Path

from notcoal.core.errors import MailParseError, NotcoalIOError
from notcoal.core.logging import get_logger

logger = get_logger(__name__)

# Defects that leave a multipart message impossible to split into parts
FATAL_DEFECTS = (
    email_errors.NoBoundaryInMultipartDefect,
    email_errors.StartBoundaryNotFoundDefect,
)


def _decode_text(part: EmailMessage) -> str:
    """Decode a leaf part's payload to text using its declared charset."""
    payload = part.get_payload(decode=True)
    if payload is None:
        return ""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except (LookupError, UnicodeError):
        # Unknown charset name, or a codec without 'replace' support (e.g. idna)
        return payload.decode("utf-8", errors="replace")


def _disposition_filename(part: EmailMessage) -> str | None:
    """Return the filename parameter of the Content-Disposition header, if any."""
    value = part.get_param("filename", header="content-disposition")
    if value is None:
        return None
    return collapse_rfc2231_value(value)


@dataclass(frozen=True)
class MailPart:
    """One MIME part below the message root.

    Attributes:
        mimetype: Lowercase media type (e.g. 'text/plain')
        is_attachment: True if Content-Disposition is 'attachment'
        filename: Content-Disposition filename parameter, if present
    """

    mimetype: str
    is_attachment: bool
    filename: str | None
    _part: EmailMessage = field(repr=False, compare=False)

    def body_text(self) -> str:
        return _decode_text(self._part)


@dataclass(frozen=True)
class ParsedMail:
    """A parsed message with the parts rules can match on."""

    message: EmailMessage = field(repr=False)
    parts: list[MailPart]

    def body_text(self) -> str:
        """Decoded text of the primary body part.

        For a single-part message this is the message payload itself. For a
        multipart message it is the preferred text/plain (then text/html)
        part that isn't an attachment; an empty string if there is none.
        """
        if not self.message.is_multipart():
            return _decode_text(self.message)
        body = self.message.get_body(preferencelist=("plain", "html"))
        if body is None:
            return ""
        return _decode_text(body)

    def attachment_filenames(self) -> list[str]:
        """Filenames of all attachment-flagged parts that declare one."""
        return [p.filename for p in self.parts if p.is_attachment and p.filename is not None]

    def attachment_texts(self) -> list[str]:
        """Decoded text of attachment-flagged parts with a text/* media type."""
        return [
            p.body_text() for p in self.parts if p.is_attachment and p.mimetype.startswith("text")
        ]


def _check_defects(message: EmailMessage) -> None:
    for part in message.walk():
        for defect in part.defects:
            if isinstance(defect, FATAL_DEFECTS):
                raise MailParseError(
                    f"Malformed MIME structure in {part.get_content_type()} part: "
                    f"{type(defect).__name__}"
                )


def parse_mail(raw: bytes) -> ParsedMail:
    """Parse raw RFC 822 bytes into a ParsedMail.

    Args:
        raw: Complete message as stored on disk

    Returns:
        ParsedMail with every non-root part listed in document order

    Raises:
        MailParseError: If the MIME structure is broken beyond recovery
    """
    try:
        message = BytesParser(policy=policy.default).parsebytes(raw)
        _check_defects(message)
        parts = [
            MailPart(
                mimetype=part.get_content_type(),
                is_attachment=part.get_content_disposition() == "attachment",
                filename=_disposition_filename(part),
                _part=part,
            )
            for part in message.walk()
            if part is not message
        ]
    except MailParseError:
        raise
    except (email_errors.MessageError, ValueError, LookupError) as e:
        raise MailParseError(f"Failed to parse message: {e}") from e

    return ParsedMail(message=message, parts=parts)


def read_and_parse(path: Path) -> ParsedMail:
    """Read a message file and parse it.

    Raises:
        NotcoalIOError: If the file can't be read
        MailParseError: If the content can't be parsed
    """
    try:
        raw = Path(path).read_bytes()
    except OSError as e:
        raise NotcoalIOError(f"Failed to read message file {path}: {e}", path=str(path)) from e

    logger.debug("message_parsed", path=str(path), size=len(raw))
    return parse_mail(raw)
