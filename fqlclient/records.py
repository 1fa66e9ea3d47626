"""Declarative field metadata for encoding and decoding dataclass records.

A record is a dataclass whose wire fields are declared with :func:`wire_field`::

    @dataclass
    class Product:
        name: str = wire_field("name")
        price: float = wire_field("price")
        stocked_on: datetime = wire_field("stocked_on,date")
        internal: str = ""                      # not sent

Fields declared without ``wire_field`` are neither encoded nor decoded.
"""

from __future__ import annotations

import dataclasses
from functools import lru_cache
from typing import Any, NamedTuple, Optional, Tuple, Union

from typing_extensions import Annotated, get_args, get_origin, get_type_hints

WIRE_FIELD_KEY = "fqlclient.wire"
EXCLUDED_NAME = "-"
TYPE_HINTS = frozenset({"date", "time", "int", "long", "double"})


class IntWidth(NamedTuple):
    bits: int


Int32 = Annotated[int, IntWidth(32)]
Int64 = Annotated[int, IntWidth(64)]

INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1
INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1


class FieldSpec(NamedTuple):
    attr: str
    name: str
    hint: Optional[str]
    annotation: Any
    has_default: bool


def parse_field_tag(tag: str) -> Tuple[str, Optional[str]]:
    """Split a ``name[,hint]`` tag into its name and optional hint."""
    if not isinstance(tag, str):
        raise TypeError("wire field tag must be a string")
    name, _, hint = tag.partition(",")
    return name.strip(), (hint.strip() or None)


def wire_field(tag: str = "", **kwargs: Any) -> Any:
    """Declare a dataclass field that is sent to and read from the service.

    Args:
        tag: ``name[,hint]``. An empty name uses the attribute name, ``-``
            excludes the field. Hints: ``date``, ``time``, ``int``, ``long``,
            ``double``.
        **kwargs: Passed through to :func:`dataclasses.field`.
    """
    name, hint = parse_field_tag(tag)
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[WIRE_FIELD_KEY] = (name, hint)
    return dataclasses.field(metadata=metadata, **kwargs)


def is_record(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


@lru_cache(maxsize=None)
def record_fields(cls: type) -> Tuple[FieldSpec, ...]:
    """Return the wire fields of a dataclass, in declaration order."""
    if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
        raise TypeError(f"{cls!r} is not a dataclass type")
    hints = get_type_hints(cls, include_extras=True)
    specs = []
    for f in dataclasses.fields(cls):
        tag = f.metadata.get(WIRE_FIELD_KEY)
        if tag is None:
            continue
        name, hint = tag
        if name == EXCLUDED_NAME:
            continue
        has_default = f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING
        specs.append(FieldSpec(f.name, name or f.name, hint, hints.get(f.name, Any), has_default))
    return tuple(specs)


def int_width(annotation: Any) -> Optional[int]:
    """Return the declared integer width of an ``Int32``/``Int64`` annotation."""
    origin = get_origin(annotation)
    if origin is Annotated:
        for extra in get_args(annotation)[1:]:
            if isinstance(extra, IntWidth):
                return extra.bits
    elif origin is Union:
        # Optional[Int64] and friends
        widths = {int_width(arm) for arm in get_args(annotation) if arm is not type(None)}
        if len(widths) == 1:
            return widths.pop()
    return None
