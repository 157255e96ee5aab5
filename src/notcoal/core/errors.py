"""Custom exception types for notcoal.

Every failure the engine can report derives from NotcoalError so callers can
surface it and stop the run with one except clause. Messages follow the same
shape throughout:
- What failed (operation or component)
- Which input caused it (filter, field, pattern, path, message id)
- How to fix it, where that is actionable
"""


class NotcoalError(Exception):
    """Base exception for all notcoal errors."""

    pass


class ConfigValidationError(NotcoalError):
    """Raised when the YAML config fails Pydantic validation.

    Includes specific field errors with actionable messages.
    """

    pass


class ConfigLoadError(NotcoalError):
    """Raised when the YAML config cannot be loaded (file not found, parse error)."""

    pass


class NotcoalIOError(NotcoalError):
    """Raised when reading a file, deleting a file or spawning a command fails.

    Attributes:
        path: The file or program involved, if known
    """

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class RuleParseError(NotcoalError):
    """Raised when a rule document is not valid JSON or has the wrong structure."""

    pass


class RegexError(NotcoalError):
    """Raised when a rule pattern cannot be compiled or its search times out.

    Attributes:
        pattern: The offending regular expression
        field: The rule field the pattern belongs to
    """

    def __init__(self, message: str, pattern: str | None = None, field: str | None = None):
        super().__init__(message)
        self.pattern = pattern
        self.field = field


class RegexUncompiledError(NotcoalError):
    """Raised when a filter is matched before Filter.compile() has run."""

    pass


class UnsupportedValueError(NotcoalError):
    """Raised when a Value has a shape the context doesn't accept.

    Booleans are never valid as rule patterns or as tags to add.
    """

    pass


class UnknownFieldError(NotcoalError):
    """Raised when a rule uses an '@' field that isn't a known virtual field."""

    pass


class UnsupportedQueryError(NotcoalError):
    """Raised when a query tag is empty or could inject into the query language."""

    pass


class MailParseError(NotcoalError):
    """Raised when a message file can't be parsed into a MIME structure."""

    pass


class MailboxError(NotcoalError):
    """Raised when the mail store reports a failure.

    Attributes:
        operation: The store operation that failed (e.g. 'remove_tag')
    """

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation
