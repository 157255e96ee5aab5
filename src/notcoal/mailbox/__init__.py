"""Mail store interfaces.

The engine depends on the protocols only. The notmuch-backed implementation
lives in notcoal.mailbox.notmuch and is imported on demand, since it needs
the notmuch2 bindings and libnotmuch.
"""

from notcoal.mailbox.base import Mailbox, MailMessage, MailQuery, MailThread

__all__ = [
    "Mailbox",
    "MailMessage",
    "MailQuery",
    "MailThread",
]
