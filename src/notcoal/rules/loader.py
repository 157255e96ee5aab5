"""Load filter rule documents from JSON.

Loading is all-or-nothing: the document is validated against the Filter
models and every filter is compiled before the list is returned, so a bad
pattern anywhere stops the run before any message is touched.

Usage:
    from notcoal.rules.loader import filters_from_file

    filters = filters_from_file(Path("~/.config/notcoal/rules.json").expanduser())
"""

from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from notcoal.core.errors import NotcoalIOError, RuleParseError
from notcoal.core.logging import get_logger
from notcoal.rules.models import Filter

logger = get_logger(__name__)

_FILTER_LIST = TypeAdapter(list[Filter])


def _format_validation_errors(error: ValidationError) -> str:
    """Format Pydantic validation errors into one line per problem.

    Args:
        error: Pydantic ValidationError

    Returns:
        Formatted error message with the location of each problem
    """
    messages = []
    for err in error.errors():
        # Build location path (e.g., "0.rules.1.subject")
        location = ".".join(str(loc) for loc in err["loc"])
        err_type = err["type"]

        if err_type == "json_invalid":
            messages.append(f"  - Invalid JSON: {err['msg']}")
        elif err_type == "missing":
            messages.append(f"  - Missing required key '{location}'")
        elif err_type == "extra_forbidden":
            messages.append(f"  - Unknown key '{location}'")
        else:
            messages.append(f"  - '{location}': {err['msg']}")

    return "\n".join(messages)


def filters_from(buf: bytes | str) -> list[Filter]:
    """Deserialize and compile filters from a JSON document.

    Args:
        buf: JSON array of filter objects

    Returns:
        Compiled filters in document order

    Raises:
        RuleParseError: If the JSON is malformed or doesn't fit the filter schema
        RegexError: If any pattern fails to compile
        UnsupportedValueError: If a rule field holds a boolean
        UnknownFieldError: If a rule uses an unknown '@' field
    """
    try:
        filters = _FILTER_LIST.validate_json(buf)
    except ValidationError as e:
        raise RuleParseError(
            f"Rule document is invalid:\n{_format_validation_errors(e)}"
        ) from e

    compiled = [f.compile() for f in filters]
    logger.debug("filters_loaded", count=len(compiled))
    return compiled


def filters_from_file(path: Path) -> list[Filter]:
    """Read a rule document from disk and compile it.

    Args:
        path: Path to the JSON rule file

    Returns:
        Compiled filters in document order

    Raises:
        NotcoalIOError: If the file can't be read
        RuleParseError, RegexError, UnsupportedValueError, UnknownFieldError:
            As for filters_from()
    """
    try:
        buf = Path(path).read_bytes()
    except OSError as e:
        raise NotcoalIOError(f"Failed to read rule file {path}: {e}", path=str(path)) from e

    try:
        return filters_from(buf)
    except RuleParseError as e:
        raise RuleParseError(f"{path}: {e}") from e


def dump_filters(filters: list[Filter]) -> str:
    """Serialize filters back to a JSON rule document.

    Only explicit names are written; derived names are recomputed on load.
    """
    return _FILTER_LIST.dump_json(
        filters, by_alias=True, exclude_none=True, indent=4
    ).decode("utf-8")
