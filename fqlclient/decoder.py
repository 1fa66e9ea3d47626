"""Conversion of tagged wire values back to host values and records."""

from __future__ import annotations

import base64
import binascii
import collections.abc
import dataclasses
import json
import re
import types
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from typing_extensions import Annotated, get_args, get_origin

from .errors import (
    DecodeError,
    InvalidTypeError,
    MalformedPayloadError,
    OverflowDecodeError,
    TypeMismatchError,
)
from .models import (
    Document,
    DocumentReference,
    Module,
    NamedDocument,
    NamedDocumentReference,
    NullDocument,
    Page,
    document_fields,
)
from .query import LiteralFragment, Query, ValueFragment
from .records import (
    INT32_MAX,
    INT32_MIN,
    INT64_MAX,
    INT64_MIN,
    IntWidth,
    record_fields,
)

_INTEGER_REGEX = re.compile(r"^[+-]?[0-9]+\Z")
_DATE_REGEX = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}\Z")
_TIME_REGEX = re.compile(
    r"^(?P<date>[0-9]{4}-[0-9]{2}-[0-9]{2})T(?P<hour>[0-9]{2}):(?P<minute>[0-9]{2}):(?P<second>[0-9]{2})"
    r"(?:\.(?P<fraction>[0-9]+))?(?P<offset>Z|z|[+-][0-9]{2}:[0-9]{2})\Z"
)

_UNION_TYPES = tuple(t for t in (Union, getattr(types, "UnionType", None)) if t is not None)


# Tag payload parsers


def _expect_string(tag: str, payload: Any) -> str:
    if not isinstance(payload, str):
        raise InvalidTypeError(tag, payload)
    return payload


def _parse_int(payload: Any) -> int:
    text = _expect_string("int", payload)
    if not _INTEGER_REGEX.match(text):
        raise InvalidTypeError("int", payload)
    value = int(text)
    if value < INT32_MIN or value > INT32_MAX:
        raise InvalidTypeError("int", payload)
    return value


def _parse_long(payload: Any) -> int:
    text = _expect_string("long", payload)
    if not _INTEGER_REGEX.match(text):
        raise InvalidTypeError("long", payload)
    value = int(text)
    if value < INT64_MIN or value > INT64_MAX:
        raise InvalidTypeError("long", payload)
    return value


def _parse_double(payload: Any) -> float:
    text = _expect_string("double", payload)
    try:
        return float(text)
    except ValueError:
        raise InvalidTypeError("double", payload) from None


def _parse_date(payload: Any) -> date:
    text = _expect_string("date", payload)
    if not _DATE_REGEX.match(text):
        raise InvalidTypeError("date", payload)
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise InvalidTypeError("date", payload) from None


def parse_time(text: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Any number of fractional digits is accepted; digits past microseconds
    are truncated.
    """
    match = _TIME_REGEX.match(text)
    if match is None:
        raise InvalidTypeError("time", text)
    fraction = (match.group("fraction") or "")[:6].ljust(6, "0")
    offset = match.group("offset")
    if offset in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if offset[0] == "-" else 1
        hours, minutes = int(offset[1:3]), int(offset[4:6])
        tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
    try:
        day = date.fromisoformat(match.group("date"))
        value = datetime(
            day.year,
            day.month,
            day.day,
            int(match.group("hour")),
            int(match.group("minute")),
            int(match.group("second")),
            int(fraction),
            tzinfo=tz,
        )
    except ValueError:
        raise InvalidTypeError("time", text) from None
    return value.astimezone(timezone.utc)


def _parse_time(payload: Any) -> datetime:
    return parse_time(_expect_string("time", payload))


def _parse_module(payload: Any) -> Module:
    name = _expect_string("mod", payload)
    if not name:
        raise InvalidTypeError("mod", payload)
    return Module(name)


def _parse_bytes(payload: Any) -> bytes:
    text = _expect_string("bytes", payload)
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidTypeError("bytes", payload) from None


def _compact_ref(tag: str, text: str) -> DocumentReference:
    try:
        return DocumentReference.from_string(text)
    except ValueError:
        raise InvalidTypeError(tag, text) from None


def _ref_parts(tag: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
    fields = {key: _decode_tagged(value) for key, value in payload.items()}
    coll = fields.get("coll")
    if isinstance(coll, str) and coll:
        coll = Module(coll)
    if not isinstance(coll, Module):
        raise MalformedPayloadError(f"{tag} payload requires a 'coll' module, got {coll!r}")
    fields["coll"] = coll
    if "id" not in fields and "name" not in fields:
        raise MalformedPayloadError(f"{tag} payload requires an 'id' or a 'name'")
    return fields


def _reference_from(tag: str, fields: Mapping[str, Any]) -> Union[DocumentReference, NamedDocumentReference]:
    if "id" in fields:
        return DocumentReference(fields["coll"], fields["id"])
    name = fields["name"]
    if not isinstance(name, str):
        raise MalformedPayloadError(f"{tag} name must be a string, got {name!r}")
    return NamedDocumentReference(fields["coll"], name)


def _null_document(tag: str, fields: Mapping[str, Any]) -> NullDocument:
    cause = fields.get("cause")
    return NullDocument(_reference_from(tag, fields), None if cause is None else str(cause))


def _parse_ref(payload: Any) -> Any:
    if isinstance(payload, str):
        return _compact_ref("ref", payload)
    if not isinstance(payload, dict):
        raise InvalidTypeError("ref", payload)
    fields = _ref_parts("ref", payload)
    if fields.get("exists") is False:
        return _null_document("ref", fields)
    return _reference_from("ref", fields)


def _parse_doc(payload: Any) -> Any:
    if isinstance(payload, str):
        return _compact_ref("doc", payload)
    if not isinstance(payload, dict):
        raise InvalidTypeError("doc", payload)
    fields = _ref_parts("doc", payload)
    if fields.get("exists") is False:
        return _null_document("doc", fields)
    ts = fields.get("ts")
    if ts is not None and not isinstance(ts, datetime):
        raise MalformedPayloadError(f"document ts must be a time, got {ts!r}")
    data = document_fields(fields)
    if "id" in fields:
        return Document(id=fields["id"], coll=fields["coll"], ts=ts, data=data)
    return NamedDocument(name=fields["name"], coll=fields["coll"], ts=ts, data=data)


def _parse_set(payload: Any) -> Page:
    if isinstance(payload, str):
        return Page(data=None, after=payload)
    if not isinstance(payload, dict):
        raise InvalidTypeError("set", payload)
    data = payload.get("data")
    after = payload.get("after")
    if data is not None and not isinstance(data, list):
        raise MalformedPayloadError(f"set data must be an array, got {type(data).__name__}")
    if after is not None and not isinstance(after, str):
        raise MalformedPayloadError(f"set cursor must be a string, got {type(after).__name__}")
    return Page(data=None if data is None else [_decode_tagged(item) for item in data], after=after)


def _parse_object(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise InvalidTypeError("object", payload)
    return {key: _decode_tagged(value) for key, value in payload.items()}


_TAG_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "@int": _parse_int,
    "@long": _parse_long,
    "@double": _parse_double,
    "@date": _parse_date,
    "@time": _parse_time,
    "@mod": _parse_module,
    "@ref": _parse_ref,
    "@doc": _parse_doc,
    "@set": _parse_set,
    "@object": _parse_object,
    "@bytes": _parse_bytes,
}


def _decode_tagged(wire: Any) -> Any:
    if isinstance(wire, dict):
        if len(wire) == 1:
            (key, payload), = wire.items()
            parser = _TAG_PARSERS.get(key)
            if parser is not None:
                return parser(payload)
        return {key: _decode_tagged(value) for key, value in wire.items()}
    if isinstance(wire, list):
        return [_decode_tagged(item) for item in wire]
    return wire


# Typed conversion


def _type_name(target: Any) -> str:
    return getattr(target, "__name__", None) or repr(target)


def _check_width(value: int, bits: Optional[int]) -> int:
    if bits == 32 and not INT32_MIN <= value <= INT32_MAX:
        raise OverflowDecodeError(value, "Int32")
    if bits == 64 and not INT64_MIN <= value <= INT64_MAX:
        raise OverflowDecodeError(value, "Int64")
    return value


def _to_int(value: Any, bits: Optional[int]) -> int:
    if isinstance(value, bool):
        raise TypeMismatchError("int", value)
    if isinstance(value, int):
        return _check_width(value, bits)
    if isinstance(value, float) and value.is_integer():
        return _check_width(int(value), bits)
    raise TypeMismatchError("int", value)


def _to_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeMismatchError("float", value)
    return float(value)


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    raise TypeMismatchError("datetime", value)


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        normalized = value.astimezone(timezone.utc)
        if normalized.time() != datetime.min.time():
            raise TypeMismatchError("date", value)
        return normalized.date()
    if isinstance(value, date):
        return value
    raise TypeMismatchError("date", value)


def _to_document_reference(value: Any) -> DocumentReference:
    if isinstance(value, DocumentReference):
        return value
    if isinstance(value, Document):
        return value.ref
    if isinstance(value, str):
        return _compact_ref("ref", value)
    raise TypeMismatchError("DocumentReference", value)


def _to_record(value: Any, target: type) -> Any:
    if isinstance(value, (Document, NamedDocument)):
        source: Mapping[str, Any] = {
            **value.data,
            "coll": value.coll,
            "ts": value.ts,
            **({"id": value.id} if isinstance(value, Document) else {"name": value.name}),
        }
    elif isinstance(value, Mapping):
        source = value
    else:
        raise TypeMismatchError(_type_name(target), value)

    kwargs: Dict[str, Any] = {}
    for spec in record_fields(target):
        if spec.name not in source:
            if spec.has_default:
                continue
            raise MalformedPayloadError(f"missing field {spec.name!r} for {target.__name__}")
        try:
            kwargs[spec.attr] = _convert(source[spec.name], spec.annotation)
        except DecodeError as err:
            err.field = spec.name if err.field is None else f"{spec.name}.{err.field}"
            raise
    try:
        return target(**kwargs)
    except TypeError as err:
        raise MalformedPayloadError(f"cannot build {target.__name__}: {err}") from err


def _convert_union(value: Any, arms: tuple) -> Any:
    if value is None and type(None) in arms:
        return None
    first_error: Optional[DecodeError] = None
    for arm in arms:
        if arm is type(None):
            continue
        try:
            return _convert(value, arm)
        except DecodeError as err:
            if first_error is None:
                first_error = err
    if first_error is None:
        raise TypeMismatchError(" | ".join(_type_name(arm) for arm in arms), value)
    raise first_error


def _convert_sequence(value: Any, origin: Any, args: tuple) -> Any:
    if not isinstance(value, list):
        raise TypeMismatchError(_type_name(origin), value)
    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple(_convert(item, args[0]) for item in value)
        if args:
            if len(args) != len(value):
                raise MalformedPayloadError(f"expected {len(args)} items, got {len(value)}")
            return tuple(_convert(item, arm) for item, arm in zip(value, args))
        return tuple(value)
    item_type = args[0] if args else Any
    return [_convert(item, item_type) for item in value]


def _convert_mapping(value: Any, args: tuple) -> Dict[str, Any]:
    if not isinstance(value, Mapping) or isinstance(value, (Document, NamedDocument)):
        raise TypeMismatchError("dict", value)
    value_type = args[1] if len(args) == 2 else Any
    return {key: _convert(item, value_type) for key, item in value.items()}


def _convert_page(value: Any, item_type: Any) -> Page:
    if not isinstance(value, Page):
        raise TypeMismatchError("Page", value)
    if value.data is None:
        return Page(data=None, after=value.after)
    return Page(data=[_convert(item, item_type) for item in value.data], after=value.after)


def _convert(value: Any, target: Any, bits: Optional[int] = None) -> Any:
    if target is Any or target is object or value is None:
        return value

    origin = get_origin(target)
    if origin is Annotated:
        base, *extras = get_args(target)
        width = next((extra.bits for extra in extras if isinstance(extra, IntWidth)), None)
        return _convert(value, base, width)
    if origin in _UNION_TYPES:
        return _convert_union(value, get_args(target))
    if origin in (list, tuple, collections.abc.Sequence, collections.abc.Iterable):
        return _convert_sequence(value, origin, get_args(target))
    if origin in (dict, collections.abc.Mapping, collections.abc.MutableMapping):
        return _convert_mapping(value, get_args(target))
    if origin is Page:
        return _convert_page(value, get_args(target)[0])
    if origin is not None:
        raise TypeError(f"unsupported decode target {target!r}")

    if target is bool:
        if not isinstance(value, bool):
            raise TypeMismatchError("bool", value)
        return value
    if target is int:
        return _to_int(value, bits)
    if target is float:
        return _to_float(value)
    if target is str:
        if not isinstance(value, str):
            raise TypeMismatchError("str", value)
        return value
    if target is bytes:
        if not isinstance(value, bytes):
            raise TypeMismatchError("bytes", value)
        return value
    if target is datetime:
        return _to_datetime(value)
    if target is date:
        return _to_date(value)
    if target is Module:
        if isinstance(value, str) and value:
            return Module(value)
        if not isinstance(value, Module):
            raise TypeMismatchError("Module", value)
        return value
    if target is DocumentReference:
        return _to_document_reference(value)
    if target in (list, tuple):
        return _convert_sequence(value, target, ())
    if target is dict:
        return _convert_mapping(value, ())
    if target in (NamedDocumentReference, Document, NamedDocument, NullDocument, Page):
        if not isinstance(value, target):
            raise TypeMismatchError(target.__name__, value)
        return value
    if isinstance(target, type) and dataclasses.is_dataclass(target):
        return _to_record(value, target)
    if isinstance(target, type):
        if not isinstance(value, target):
            raise TypeMismatchError(target.__name__, value)
        return value
    raise TypeError(f"unsupported decode target {target!r}")


def decode(wire: Any, target: Any = Any) -> Any:
    """Convert a parsed wire value into a host value of type ``target``.

    Args:
        wire: A JSON value as produced by :func:`json.loads`.
        target: The requested type. ``Any`` returns the natural host value
            of each tag. Records are dataclasses declared with
            :func:`fqlclient.records.wire_field`.

    Raises:
        InvalidTypeError: A tag carries a payload of the wrong shape.
        MalformedPayloadError: A structured payload is missing required parts.
        OverflowDecodeError: An integer does not fit the requested width.
        TypeMismatchError: The value cannot be converted to ``target``.
    """
    return _convert(_decode_tagged(wire), target)


def loads(data: Union[str, bytes, bytearray], target: Any = Any) -> Any:
    """Parse JSON text and decode it into ``target``."""
    try:
        wire = json.loads(data)
    except ValueError as err:
        raise MalformedPayloadError(f"invalid JSON: {err}") from err
    return decode(wire, target)


def _decode_interpolated(wire: Any) -> Any:
    if not isinstance(wire, dict) or len(wire) != 1:
        raise MalformedPayloadError(f"expected a query fragment, got {wire!r}")
    (key, payload), = wire.items()
    if key == "fql":
        return decode_query(wire)
    if key == "value":
        return decode(payload)
    if key == "object":
        if not isinstance(payload, dict):
            raise MalformedPayloadError("object fragment payload must be an object")
        return {name: _decode_interpolated(item) for name, item in payload.items()}
    if key == "array":
        if not isinstance(payload, list):
            raise MalformedPayloadError("array fragment payload must be an array")
        return [_decode_interpolated(item) for item in payload]
    raise MalformedPayloadError(f"unknown query fragment {key!r}")


def decode_query(wire: Any) -> Query:
    """Rebuild a Query from its ``{"fql": [...]}`` wire form."""
    if not isinstance(wire, dict) or set(wire) != {"fql"} or not isinstance(wire["fql"], list):
        raise MalformedPayloadError("query must be an object with a single 'fql' array")
    fragments: List[Any] = []
    for item in wire["fql"]:
        if isinstance(item, str):
            fragments.append(LiteralFragment(item))
        else:
            fragments.append(ValueFragment(_decode_interpolated(item)))
    return Query(fragments)
