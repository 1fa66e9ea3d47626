"""Query response envelope."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .decoder import decode
from .errors import DecodeError, ProtocolError
from .records import wire_field


@dataclass
class QueryStats:
    """Cost and timing figures the service reports for a query."""

    compute_ops: int = wire_field("compute_ops", default=0)
    read_ops: int = wire_field("read_ops", default=0)
    write_ops: int = wire_field("write_ops", default=0)
    query_time_ms: int = wire_field("query_time_ms", default=0)
    contention_retries: int = wire_field("contention_retries", default=0)
    storage_bytes_read: int = wire_field("storage_bytes_read", default=0)
    storage_bytes_write: int = wire_field("storage_bytes_write", default=0)
    rate_limits_hit: List[str] = wire_field("rate_limits_hit", default_factory=list)
    attempts: int = wire_field("attempts", default=0)


@dataclass
class ServiceErrorPayload:
    """The ``error`` member of a failed response.

    ``abort`` and ``constraint_failures`` are kept in wire form so callers
    can decode them into their own types.
    """

    code: str
    message: str
    abort: Any = None
    constraint_failures: Optional[List[Any]] = None

    @classmethod
    def from_wire(cls, payload: Any) -> "ServiceErrorPayload":
        if not isinstance(payload, Mapping):
            raise ProtocolError("error must be an object")
        code = payload.get("code")
        message = payload.get("message", "")
        if not isinstance(code, str):
            raise ProtocolError("error code must be a string")
        if not isinstance(message, str):
            raise ProtocolError("error message must be a string")
        failures = payload.get("constraint_failures")
        if failures is not None and not isinstance(failures, list):
            raise ProtocolError("constraint_failures must be a list when present")
        return cls(code, message, payload.get("abort"), failures)


@dataclass
class QueryResponse:
    data: Any = None
    static_type: Optional[str] = None
    summary: str = ""
    txn_ts: Optional[int] = None
    stats: QueryStats = field(default_factory=QueryStats)
    query_tags: Dict[str, str] = field(default_factory=dict)
    schema_version: Optional[int] = None
    headers: Dict[str, str] = field(default_factory=dict)
    status_code: int = 200
    error: Optional[ServiceErrorPayload] = None


def parse_query_tags(value: Any) -> Dict[str, str]:
    """Parse ``k=v,k2=v2`` query tags as echoed by the service."""
    if value is None or value == "":
        return {}
    if isinstance(value, Mapping):
        return {str(k): str(v) for k, v in value.items()}
    if not isinstance(value, str):
        raise ProtocolError("query_tags must be a string")
    tags: Dict[str, str] = {}
    for pair in value.split(","):
        key, _, tag_value = pair.partition("=")
        if key:
            tags[key] = tag_value
    return tags


def format_query_tags(tags: Mapping[str, str]) -> str:
    return ",".join(f"{key}={value}" for key, value in tags.items())


def _optional_int(body: Mapping[str, Any], key: str) -> Optional[int]:
    value = body.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProtocolError(f"{key} must be an integer when present")
    return value


def parse_envelope(
    body: Any,
    *,
    status_code: int = 200,
    headers: Optional[Mapping[str, str]] = None,
    target: Any = Any,
    decode_data: bool = True,
) -> QueryResponse:
    """Build a QueryResponse from a parsed response body.

    ``data`` is decoded into ``target`` only when the body carries no error.
    With ``decode_data=False`` it is left in wire form for the caller.
    """
    if not isinstance(body, Mapping):
        raise ProtocolError("response body must be a JSON object", status_code)

    summary = body.get("summary") or ""
    if not isinstance(summary, str):
        raise ProtocolError("summary must be a string", status_code)
    static_type = body.get("static_type")
    if static_type is not None and not isinstance(static_type, str):
        raise ProtocolError("static_type must be a string", status_code)

    txn_ts = _optional_int(body, "txn_ts")
    if txn_ts is None:
        txn_ts = _optional_int(body, "txn_time")

    try:
        stats = decode(body.get("stats") or {}, QueryStats)
    except DecodeError as err:
        raise ProtocolError(f"invalid stats: {err}", status_code) from err

    error = None
    if body.get("error") is not None:
        error = ServiceErrorPayload.from_wire(body["error"])

    data = None
    if error is None:
        data = decode(body.get("data"), target) if decode_data else body.get("data")

    return QueryResponse(
        data=data,
        static_type=static_type,
        summary=summary,
        txn_ts=txn_ts,
        stats=stats,
        query_tags=parse_query_tags(body.get("query_tags")),
        schema_version=_optional_int(body, "schema_version"),
        headers=dict(headers or {}),
        status_code=status_code,
        error=error,
    )
