"""Message content parsing for body and attachment rule fields."""

from notcoal.mail.mime import MailPart, ParsedMail, parse_mail, read_and_parse

__all__ = [
    "MailPart",
    "ParsedMail",
    "parse_mail",
    "read_and_parse",
]
