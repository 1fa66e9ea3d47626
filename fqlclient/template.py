"""Tokenizer for ``${name}`` query templates."""

from __future__ import annotations

import re
from enum import Enum
from typing import List, NamedTuple

from .errors import TemplateParseError

_PLACEHOLDER_REGEX = re.compile(
    r"\$(?:(?P<escaped>\$)|\{(?P<braced>[_a-zA-Z0-9]*)\}|(?P<invalid>))"
)


class TemplateCategory(str, Enum):
    LITERAL = "literal"
    VARIABLE = "variable"


class TemplatePart(NamedTuple):
    text: str
    category: TemplateCategory


def _byte_offset(text: str, index: int) -> int:
    return len(text[:index].encode("utf-8"))


def parse_template(text: str) -> List[TemplatePart]:
    """Split a template into literal and variable parts.

    ``$$`` is an escaped dollar sign and ``${name}`` a variable reference.
    Any other ``$`` is rejected.

    Args:
        text: The template source.

    Returns:
        The parts in source order.

    Raises:
        TemplateParseError: If the template contains an invalid placeholder.
            ``position`` is the UTF-8 byte offset of the invalid placeholder.
    """
    if not isinstance(text, str):
        raise TypeError("query template must be a string")

    parts: List[TemplatePart] = []
    position = 0
    for match in _PLACEHOLDER_REGEX.finditer(text):
        if match.group("invalid") is not None:
            raise TemplateParseError(_byte_offset(text, match.start("invalid")))

        escaped = match.group("escaped") or ""
        if position < match.start():
            parts.append(TemplatePart(text[position : match.start()] + escaped, TemplateCategory.LITERAL))
        elif escaped:
            parts.append(TemplatePart(escaped, TemplateCategory.LITERAL))

        variable = match.group("braced")
        if variable is not None:
            parts.append(TemplatePart(variable, TemplateCategory.VARIABLE))

        position = match.end()

    if position < len(text):
        parts.append(TemplatePart(text[position:], TemplateCategory.LITERAL))
    return parts


class Template:
    """A parsed template. Parsing happens once, on construction."""

    __slots__ = ("_text", "_parts")

    def __init__(self, text: str):
        self._text = text
        self._parts = tuple(parse_template(text))

    @property
    def text(self) -> str:
        return self._text

    @property
    def parts(self) -> tuple:
        return self._parts

    @property
    def variables(self) -> List[str]:
        return [part.text for part in self._parts if part.category is TemplateCategory.VARIABLE]

    def __repr__(self) -> str:
        return f"Template({self._text!r})"
