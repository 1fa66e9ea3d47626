"""Conversion of host values and queries to the tagged wire format."""

from __future__ import annotations

import base64
import json
import math
from decimal import Decimal
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .errors import (
    EncodeError,
    InvalidTemporalValueError,
    NumericOverflowError,
    UnknownTypeHintError,
    UnsupportedTypeError,
)
from .models import (
    Document,
    DocumentReference,
    Module,
    NamedDocument,
    NamedDocumentReference,
    NullDocument,
    Page,
)
from .query import LiteralFragment, Query
from .records import (
    INT32_MAX,
    INT32_MIN,
    INT64_MAX,
    INT64_MIN,
    TYPE_HINTS,
    FieldSpec,
    int_width,
    is_record,
    record_fields,
)

TAG_INT = "@int"
TAG_LONG = "@long"
TAG_DOUBLE = "@double"
TAG_DATE = "@date"
TAG_TIME = "@time"
TAG_DOC = "@doc"
TAG_REF = "@ref"
TAG_MOD = "@mod"
TAG_OBJECT = "@object"
TAG_SET = "@set"
TAG_BYTES = "@bytes"

RESERVED_TAGS = frozenset(
    {
        TAG_INT,
        TAG_LONG,
        TAG_DOUBLE,
        TAG_DATE,
        TAG_TIME,
        TAG_DOC,
        TAG_REF,
        TAG_MOD,
        TAG_OBJECT,
        TAG_SET,
        TAG_BYTES,
    }
)

_NUMERIC_HINTS = ("int", "long", "double")
_TEMPORAL_HINTS = ("date", "time")


def needs_object_wrapper(keys: Iterable[str]) -> bool:
    """Whether a mapping with these keys could be mistaken for a tagged value."""
    names = list(keys)
    if any(isinstance(name, str) and name in RESERVED_TAGS for name in names):
        return True
    return len(names) == 1 and isinstance(names[0], str) and names[0].startswith("@")


def _check_hint(hint: Optional[str], allowed: Tuple[str, ...], value: Any) -> None:
    if hint is None:
        return
    if hint not in TYPE_HINTS:
        raise UnknownTypeHintError(hint)
    if hint not in allowed:
        raise EncodeError(f"type hint {hint!r} does not apply to {type(value).__name__} values")


def _format_time(value: datetime) -> str:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise InvalidTemporalValueError("datetime values must include timezone info")
    normalized = value.astimezone(timezone.utc).replace(tzinfo=None)
    return normalized.isoformat(timespec="microseconds") + "Z"


def _encode_datetime(value: datetime, hint: Optional[str]) -> Dict[str, str]:
    _check_hint(hint, _TEMPORAL_HINTS, value)
    if hint != "date":
        return {TAG_TIME: _format_time(value)}
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise InvalidTemporalValueError("datetime values must include timezone info")
    normalized = value.astimezone(timezone.utc)
    if (normalized.hour, normalized.minute, normalized.second, normalized.microsecond) != (0, 0, 0, 0):
        raise InvalidTemporalValueError(
            f"cannot encode {value.isoformat()} as a date: time of day is not midnight UTC"
        )
    return {TAG_DATE: normalized.date().isoformat()}


def _encode_date(value: date, hint: Optional[str]) -> Dict[str, str]:
    _check_hint(hint, _TEMPORAL_HINTS, value)
    if hint == "time":
        return {TAG_TIME: _format_time(datetime(value.year, value.month, value.day, tzinfo=timezone.utc))}
    return {TAG_DATE: value.isoformat()}


def _encode_int(value: int, hint: Optional[str], width: Optional[int]) -> Dict[str, str]:
    _check_hint(hint, _NUMERIC_HINTS, value)
    if hint == "double":
        return {TAG_DOUBLE: str(value)}
    if value < INT64_MIN or value > INT64_MAX:
        raise NumericOverflowError(value)
    if hint == "long" or width == 64:
        return {TAG_LONG: str(value)}
    if INT32_MIN <= value <= INT32_MAX:
        return {TAG_INT: str(value)}
    if hint == "int" or width == 32:
        raise NumericOverflowError(value, "int")
    return {TAG_LONG: str(value)}


def _format_double(value: float) -> str:
    # shortest round-trip digits, written without an exponent
    text = repr(value)
    if "e" not in text:
        return text
    return format(Decimal(text), "f")


def _encode_float(value: float, hint: Optional[str]) -> Dict[str, str]:
    _check_hint(hint, ("double",), value)
    if math.isnan(value) or math.isinf(value):
        raise EncodeError("float values must be finite")
    return {TAG_DOUBLE: _format_double(value)}


def _encode_module(value: Module) -> Dict[str, str]:
    return {TAG_MOD: value.name}


def _encode_ref(value: Union[DocumentReference, NamedDocumentReference]) -> Dict[str, Any]:
    if isinstance(value, DocumentReference):
        return {TAG_REF: {"id": value.id, "coll": _encode_module(value.coll)}}
    return {TAG_REF: {"name": value.name, "coll": _encode_module(value.coll)}}


def _encode_page(value: Page) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if value.data is not None:
        payload["data"] = [encode(item) for item in value.data]
    if value.after is not None:
        payload["after"] = value.after
    return {TAG_SET: payload}


def _encode_bytes(value: Union[bytes, bytearray, memoryview]) -> Dict[str, str]:
    return {TAG_BYTES: base64.b64encode(bytes(value)).decode("ascii")}


def _encode_mapping(value: Mapping[Any, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise UnsupportedTypeError(key)
        out[key] = encode(item)
    if needs_object_wrapper(out.keys()):
        return {TAG_OBJECT: out}
    return out


def _record_items(record: Any) -> List[Tuple[FieldSpec, Any]]:
    return [(spec, getattr(record, spec.attr)) for spec in record_fields(type(record))]


def _encode_record(record: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for spec, item in _record_items(record):
        try:
            out[spec.name] = _encode(item, spec.hint, spec.annotation)
        except UnknownTypeHintError as err:
            raise UnknownTypeHintError(err.hint, spec.attr) from None
    if needs_object_wrapper(out.keys()):
        return {TAG_OBJECT: out}
    return out


def _encode(value: Any, hint: Optional[str], annotation: Any) -> Any:
    if isinstance(value, Query):
        return encode_query(value)
    if value is None:
        return None
    if isinstance(value, bool):
        _check_hint(hint, (), value)
        return value
    if isinstance(value, int):
        return _encode_int(value, hint, int_width(annotation))
    if isinstance(value, float):
        return _encode_float(value, hint)
    if isinstance(value, str):
        _check_hint(hint, (), value)
        return value
    if isinstance(value, datetime):
        return _encode_datetime(value, hint)
    if isinstance(value, date):
        return _encode_date(value, hint)
    if isinstance(value, Module):
        return _encode_module(value)
    if isinstance(value, (DocumentReference, NamedDocumentReference)):
        return _encode_ref(value)
    if isinstance(value, (Document, NamedDocument)):
        return _encode_ref(value.ref)
    if isinstance(value, NullDocument):
        return _encode_ref(value.ref)
    if isinstance(value, Page):
        return _encode_page(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _encode_bytes(value)
    if isinstance(value, Mapping):
        return _encode_mapping(value)
    if isinstance(value, (list, tuple)):
        return [encode(item) for item in value]
    if is_record(value):
        return _encode_record(value)
    raise UnsupportedTypeError(value)


def encode(value: Any, hint: Optional[str] = None) -> Any:
    """Convert a host value to its tagged wire form.

    Args:
        value: The value to convert.
        hint: Optional encoding hint: ``date``, ``time``, ``int``, ``long``
            or ``double``.

    Returns:
        A JSON-serializable structure.

    Raises:
        UnsupportedTypeError: The value has no wire representation.
        NumericOverflowError: An integer does not fit the service's 64-bit range.
        UnknownTypeHintError: ``hint`` is not a recognised hint.
        InvalidTemporalValueError: A datetime is naive, or is not midnight
            under the ``date`` hint.
    """
    return _encode(value, hint, None)


def _contains_query(value: Any) -> bool:
    if isinstance(value, Query):
        return True
    if isinstance(value, Mapping):
        return any(_contains_query(item) for item in value.values())
    if isinstance(value, (list, tuple)):
        return any(_contains_query(item) for item in value)
    if is_record(value) and not isinstance(value, (Document, NamedDocument, Page)):
        return any(_contains_query(item) for _, item in _record_items(value))
    return False


def _encode_interpolated(value: Any, hint: Optional[str] = None, annotation: Any = None) -> Any:
    if isinstance(value, Query):
        return encode_query(value)
    if isinstance(value, Mapping) and (_contains_query(value) or needs_object_wrapper(value.keys())):
        out: Dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise UnsupportedTypeError(key)
            out[key] = _encode_interpolated(item)
        return {"object": out}
    if isinstance(value, (list, tuple)) and _contains_query(value):
        return {"array": [_encode_interpolated(item) for item in value]}
    if is_record(value) and not isinstance(value, (Document, NamedDocument, Page)) and _contains_query(value):
        return {
            "object": {spec.name: _encode_interpolated(item, spec.hint, spec.annotation) for spec, item in _record_items(value)}
        }
    return {"value": _encode(value, hint, annotation)}


def encode_query(query: Query) -> Dict[str, List[Any]]:
    """Encode a Query as ``{"fql": [...]}``, recursing into nested queries."""
    if not isinstance(query, Query):
        raise TypeError("encode_query() requires a Query")
    fragments: List[Any] = []
    for fragment in query:
        if isinstance(fragment, LiteralFragment):
            fragments.append(fragment.get())
        else:
            fragments.append(_encode_interpolated(fragment.get()))
    return {"fql": fragments}


def encode_request(
    query: Union[Query, str],
    arguments: Optional[Mapping[str, Any]] = None,
    typecheck: bool = True,
) -> Dict[str, Any]:
    """Build the body of a query request.

    A plain string is sent as FQL source as-is. ``arguments`` are encoded
    with :func:`encode` and left out when empty. ``typecheck`` is always sent.
    """
    if isinstance(query, Query):
        body: Dict[str, Any] = {"query": encode_query(query)}
    elif isinstance(query, str):
        body = {"query": query}
    else:
        raise TypeError("query must be a Query or a string")
    if arguments:
        encoded_args: Dict[str, Any] = {}
        for name, value in arguments.items():
            if not isinstance(name, str):
                raise UnsupportedTypeError(name)
            encoded_args[name] = encode(value)
        body["arguments"] = encoded_args
    body["typecheck"] = bool(typecheck)
    return body


def dumps(value: Any) -> str:
    """Encode ``value`` and serialize it to a JSON string."""
    return json.dumps(encode(value), separators=(",", ":"))
