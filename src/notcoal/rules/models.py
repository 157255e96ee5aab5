"""Pydantic models for filter rule documents.

A rule document is a JSON array of filters. Each filter holds an OR-list of
rules, each rule an AND-combination of field patterns, plus the operations to
apply when any rule matches:

    [{
        "name": "money",
        "desc": "Money stuff",
        "rules": [
            {"from": "@(real\\\\.bank|gig-economy\\\\.career)",
             "subject": ["report", "month"]},
            {"from": "no-reply@trusted\\\\.bank", "subject": "statement"}
        ],
        "op": {"add": "money", "rm": ["inbox", "unread"]}
    }]

Patterns are compiled once by Filter.compile(); matching an uncompiled
filter raises RegexUncompiledError.

Usage:
    from notcoal.rules.models import Filter

    flt = Filter.model_validate(data).compile()
    print(flt.resolved_name())
"""

from __future__ import annotations

import hashlib
import json
from typing import Annotated

import regex
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, StrictBool

from notcoal.core.errors import (
    RegexError,
    RegexUncompiledError,
    UnknownFieldError,
    UnsupportedValueError,
)
from notcoal.core.logging import get_logger
from notcoal.rules.value import FieldValue, Value

logger = get_logger(__name__)

# Fields starting with '@' are resolved from message metadata or content
VIRTUAL_FIELDS = frozenset(
    {
        "@tags",
        "@path",
        "@attachment",
        "@attachment-body",
        "@body",
        "@thread-tags",
    }
)

# Length of the hex digest used for derived filter names
DERIVED_NAME_LENGTH = 16

CompiledRule = dict[str, list[regex.Pattern]]


class Operations(BaseModel):
    """Operations a filter applies to a matching message.

    The JSON key for deletion is 'del', which is a Python keyword, so the
    attribute is called 'delete'. Documents must still spell it 'del'.
    """

    model_config = ConfigDict(extra="forbid")

    rm: FieldValue | None = Field(
        default=None,
        description="Tag(s) to remove; true removes every tag",
    )
    add: FieldValue | None = Field(
        default=None,
        description="Tag(s) to add",
    )
    run: Annotated[list[str], Field(min_length=1)] | None = Field(
        default=None,
        description="Command to spawn: program followed by its arguments",
    )
    delete: StrictBool | None = Field(
        default=None,
        alias="del",
        description="Delete the message file and drop it from the database",
    )


class Filter(BaseModel):
    """A named OR-set of rules plus the operations applied on match."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(
        default=None,
        description="Explicit name; derived from the rules when missing",
    )
    desc: str | None = Field(
        default=None,
        description="Free-form description, not used for matching",
    )
    rules: list[dict[str, FieldValue]] = Field(
        description="Rules combined with OR; fields within a rule combine with AND",
    )
    op: Operations = Field(description="Operations applied when any rule matches")

    _compiled: list[CompiledRule] = PrivateAttr(default_factory=list)

    def resolved_name(self) -> str:
        """Return the explicit name, or a hash of the rules.

        The hash is taken over a canonical rendering of the rules in which
        each rule's fields are sorted by key, so two filters with the same
        rules get the same name whatever order their fields were written in.
        Derived names are not written back when filters are serialized.
        """
        if self.name is not None:
            return self.name
        digest = hashlib.sha256(self._canonical_rules().encode("utf-8"))
        return digest.hexdigest()[:DERIVED_NAME_LENGTH]

    def _canonical_rules(self) -> str:
        canonical = [
            [[key, value.kind, value.to_json()] for key, value in sorted(rule.items())]
            for rule in self.rules
        ]
        return json.dumps(canonical, ensure_ascii=False, separators=(",", ":"))

    @property
    def is_compiled(self) -> bool:
        return len(self._compiled) == len(self.rules)

    @property
    def compiled_rules(self) -> list[CompiledRule]:
        """Compiled patterns, index-aligned with rules.

        Raises:
            RegexUncompiledError: If compile() hasn't been called since the
                rules were last changed
        """
        if not self.is_compiled:
            raise RegexUncompiledError(
                f"Filter '{self.resolved_name()}' must be compiled before it is matched. "
                "Call Filter.compile() or load filters with filters_from()."
            )
        return self._compiled

    def compile(self) -> Filter:
        """Compile every rule pattern and cache the result.

        Returns:
            self, to allow chaining after model_validate()

        Raises:
            RegexError: If a pattern is not a valid regular expression
            UnsupportedValueError: If a rule field holds a boolean
            UnknownFieldError: If a rule uses an unknown '@' field
        """
        compiled: list[CompiledRule] = []
        for rule in self.rules:
            patterns: CompiledRule = {}
            for field_key, value in rule.items():
                patterns[field_key] = self._compile_field(field_key, value)
            compiled.append(patterns)

        self._compiled = compiled
        logger.debug(
            "filter_compiled",
            filter=self.resolved_name(),
            rules=len(self.rules),
        )
        return self

    def _compile_field(self, field_key: str, value: Value) -> list[regex.Pattern]:
        if field_key.startswith("@") and field_key.lower() not in VIRTUAL_FIELDS:
            raise UnknownFieldError(
                f"Filter '{self.resolved_name()}': unknown field '{field_key}'. "
                f"Fields starting with '@' must be one of: {', '.join(sorted(VIRTUAL_FIELDS))}"
            )
        if value.is_bool:
            raise UnsupportedValueError(
                f"Filter '{self.resolved_name()}': field '{field_key}' is not a regular "
                "expression; rules only accept a string or a list of strings"
            )

        compiled = []
        for pattern in value.strings(f"Rule field '{field_key}'"):
            try:
                compiled.append(regex.compile(pattern))
            except regex.error as e:
                raise RegexError(
                    f"Filter '{self.resolved_name()}': invalid pattern {pattern!r} "
                    f"for field '{field_key}': {e}",
                    pattern=pattern,
                    field=field_key,
                ) from e
        return compiled
