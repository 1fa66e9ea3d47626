"""Composable queries built from ``${name}`` templates."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

from .errors import NoArgumentsError, UndefinedVariableError
from .template import TemplateCategory, parse_template


class LiteralFragment:
    """Query source text, sent verbatim."""

    __slots__ = ("_text",)

    def __init__(self, text: str):
        if not isinstance(text, str):
            raise TypeError("literal fragment must be a string")
        self._text = text

    def get(self) -> str:
        return self._text

    def __eq__(self, other: object) -> bool:
        return isinstance(other, LiteralFragment) and other._text == self._text

    def __hash__(self) -> int:
        return hash(("literal", self._text))

    def __repr__(self) -> str:
        return f"LiteralFragment({self._text!r})"


class ValueFragment:
    """A host value interpolated into a query. The value may be another Query."""

    __slots__ = ("_value",)

    def __init__(self, value: Any):
        self._value = value

    def get(self) -> Any:
        return self._value

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ValueFragment) and other._value == self._value

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ValueFragment({self._value!r})"


Fragment = Union[LiteralFragment, ValueFragment]


class Query:
    """An immutable sequence of fragments.

    Queries nest: a Query passed as a template argument stays a structured
    value and is only flattened when encoded.
    """

    __slots__ = ("_fragments",)

    def __init__(self, fragments: Iterable[Fragment] = ()):
        items = tuple(fragments)
        for idx, fragment in enumerate(items):
            if not isinstance(fragment, (LiteralFragment, ValueFragment)):
                raise TypeError(f"fragments[{idx}] must be a LiteralFragment or ValueFragment")
        self._fragments: Tuple[Fragment, ...] = items

    @property
    def fragments(self) -> Tuple[Fragment, ...]:
        return self._fragments

    def __iter__(self) -> Iterator[Fragment]:
        return iter(self._fragments)

    def __len__(self) -> int:
        return len(self._fragments)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Query) and other._fragments == self._fragments

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Query({list(self._fragments)!r})"


def _merge_arguments(args: Tuple[Optional[Mapping[str, Any]], ...], kwargs: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    supplied = [mapping for mapping in args if mapping is not None]
    if not supplied and not kwargs:
        return None
    merged: Dict[str, Any] = {}
    for idx, mapping in enumerate(supplied):
        if not isinstance(mapping, Mapping):
            raise TypeError(f"fql() argument {idx + 1} must be a mapping of name -> value")
        merged.update(mapping)
    merged.update(kwargs)
    return merged


def fql(template: str, /, *args: Optional[Mapping[str, Any]], **kwargs: Any) -> Query:
    """Build a Query from a template and its arguments.

    Several argument mappings may be given; they are merged left to right
    and keyword arguments are applied last, so later values win.

    >>> inner = fql("Product.byName(${name})", {"name": "pizza"})
    >>> outer = fql("${products}.first()", products=inner)

    Raises:
        TemplateParseError: The template contains an invalid placeholder.
        NoArgumentsError: The template has variables but no arguments were given.
        UndefinedVariableError: A variable has no matching argument.
    """
    parts = parse_template(template)
    arguments = _merge_arguments(args, kwargs)

    fragments = []
    for part in parts:
        if part.category is TemplateCategory.LITERAL:
            fragments.append(LiteralFragment(part.text))
            continue
        if arguments is None:
            raise NoArgumentsError()
        if part.text not in arguments:
            raise UndefinedVariableError(part.text)
        fragments.append(ValueFragment(arguments[part.text]))
    return Query(fragments)
