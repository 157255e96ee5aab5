"""Shape-discriminated values used by rules and operations.

Rule documents are written by hand, so a field may hold a single string, a
list of strings, or a boolean. The JSON shape alone decides which variant a
value is, tried in a fixed order: string, then list of strings, then boolean.
Anything else is rejected.

Usage:
    from notcoal.rules.value import Value, parse_value

    parse_value("inbox")            # Value(kind='single', data='inbox')
    parse_value(["inbox", "new"])   # Value(kind='multiple', data=('inbox', 'new'))
    parse_value(True)               # Value(kind='bool', data=True)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal

from pydantic import PlainSerializer, PlainValidator

from notcoal.core.errors import UnsupportedValueError

ValueKind = Literal["single", "multiple", "bool"]


@dataclass(frozen=True, slots=True)
class Value:
    """One of Single(str), Multiple(list of str) or Bool(bool).

    Attributes:
        kind: Which variant this value is
        data: The payload; a str, a tuple of str, or a bool depending on kind
    """

    kind: ValueKind
    data: str | tuple[str, ...] | bool

    @classmethod
    def single(cls, text: str) -> Value:
        return cls("single", text)

    @classmethod
    def multiple(cls, items: list[str] | tuple[str, ...]) -> Value:
        return cls("multiple", tuple(items))

    @classmethod
    def boolean(cls, flag: bool) -> Value:
        return cls("bool", flag)

    @property
    def is_bool(self) -> bool:
        return self.kind == "bool"

    def strings(self, context: str) -> tuple[str, ...]:
        """Return the string entries of a Single or Multiple value, in order.

        Args:
            context: Where the value is used, for the error message

        Raises:
            UnsupportedValueError: If the value is a boolean
        """
        if self.kind == "single":
            return (self.data,)  # type: ignore[return-value]
        if self.kind == "multiple":
            return self.data  # type: ignore[return-value]
        raise UnsupportedValueError(
            f"{context} doesn't support boolean values (got {str(self.data).lower()}); "
            "use a string or a list of strings"
        )

    def to_json(self) -> str | list[str] | bool:
        """Return the plain JSON shape this value was parsed from."""
        if self.kind == "multiple":
            return list(self.data)  # type: ignore[arg-type]
        return self.data  # type: ignore[return-value]


def parse_value(raw: Any) -> Value:
    """Turn a decoded JSON value into a Value by looking at its shape.

    Args:
        raw: A str, a list of str, a bool, or an existing Value

    Returns:
        The matching Value variant

    Raises:
        ValueError: If raw has any other shape (pydantic reports it as a
            validation error for the offending field)
    """
    if isinstance(raw, Value):
        return raw
    if isinstance(raw, str):
        return Value.single(raw)
    if isinstance(raw, list) and all(isinstance(item, str) for item in raw):
        return Value.multiple(raw)
    if isinstance(raw, bool):
        return Value.boolean(raw)
    raise ValueError(
        f"expected a string, a list of strings or a boolean, got {type(raw).__name__}"
    )


# Annotated type for pydantic models: validates by shape, serializes back to plain JSON
FieldValue = Annotated[
    Value,
    PlainValidator(parse_value),
    PlainSerializer(lambda value: value.to_json()),
]
