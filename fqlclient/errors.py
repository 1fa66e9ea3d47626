"""Error types raised by fqlclient, and the service error classifier."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Mapping, Optional, Type

if TYPE_CHECKING:
    from .response import QueryStats, ServiceErrorPayload


class ErrorCode:
    """Client-side error codes. Service errors carry the code sent by the service."""
    UNKNOWN = "unknown"
    TEMPLATE = "invalid_template"
    UNDEFINED_VARIABLE = "undefined_variable"
    NO_ARGUMENTS = "no_arguments"
    UNSUPPORTED_TYPE = "unsupported_type"
    NUMERIC_OVERFLOW = "numeric_overflow"
    UNKNOWN_HINT = "unknown_type_hint"
    INVALID_TEMPORAL = "invalid_temporal_value"
    INVALID_TYPE = "invalid_type_payload"
    MALFORMED = "malformed_payload"
    OVERFLOW = "overflow"
    TYPE_MISMATCH = "type_mismatch"
    NETWORK = "network"
    PROTOCOL = "protocol"
    CLOSED = "closed"


class FqlClientError(Exception):
    """Base exception class for all fqlclient errors."""

    def __init__(self, message: str, code: str = ErrorCode.UNKNOWN):
        super().__init__(message)
        self.message = message
        self.code = code


# Template and query construction


class TemplateParseError(FqlClientError, ValueError):
    """Raised when a query template contains an invalid placeholder."""

    def __init__(self, position: int):
        super().__init__(f"invalid placeholder in template: position {position}", ErrorCode.TEMPLATE)
        self.position = position


class QueryBuildError(FqlClientError, ValueError):
    """Raised when template variables cannot be resolved against the arguments."""


class UndefinedVariableError(QueryBuildError):
    def __init__(self, name: str):
        super().__init__(f"template variable {name} not found in args", ErrorCode.UNDEFINED_VARIABLE)
        self.name = name


class NoArgumentsError(QueryBuildError):
    def __init__(self) -> None:
        super().__init__("found template variable, but args is nil", ErrorCode.NO_ARGUMENTS)


# Encoding


class EncodeError(FqlClientError, ValueError):
    """Raised when a host value has no wire representation."""


class UnsupportedTypeError(EncodeError, TypeError):
    def __init__(self, value: Any):
        super().__init__(f"unsupported type for encoding: {type(value)!r}", ErrorCode.UNSUPPORTED_TYPE)
        self.value = value


class NumericOverflowError(EncodeError):
    def __init__(self, value: int, wire_type: str = "long"):
        bits = 32 if wire_type == "int" else 64
        super().__init__(
            f"integer {value} does not fit in a signed {bits}-bit {wire_type}",
            ErrorCode.NUMERIC_OVERFLOW,
        )
        self.value = value
        self.wire_type = wire_type


class UnknownTypeHintError(EncodeError):
    def __init__(self, hint: str, field: Optional[str] = None):
        where = f" on field {field!r}" if field else ""
        super().__init__(f"unsupported type hint {hint!r}{where}", ErrorCode.UNKNOWN_HINT)
        self.hint = hint
        self.field = field


class InvalidTemporalValueError(EncodeError):
    def __init__(self, message: str):
        super().__init__(message, ErrorCode.INVALID_TEMPORAL)


# Decoding


class DecodeError(FqlClientError, ValueError):
    """Raised when a wire payload cannot be converted to the requested type.

    ``field`` holds the dotted wire path of the record field being decoded,
    when the failure happened inside a record.
    """

    field: Optional[str] = None

    def __str__(self) -> str:
        if self.field:
            return f"{self.message} (field {self.field!r})"
        return self.message


class InvalidTypeError(DecodeError):
    def __init__(self, tag: str, payload: Any = None):
        super().__init__(f"invalid payload for {tag}: {payload!r}", ErrorCode.INVALID_TYPE)
        self.tag = tag
        self.payload = payload


class MalformedPayloadError(DecodeError):
    def __init__(self, message: str):
        super().__init__(message, ErrorCode.MALFORMED)


class OverflowDecodeError(DecodeError):
    def __init__(self, value: int, target: str):
        super().__init__(f"value {value} overflows {target}", ErrorCode.OVERFLOW)
        self.value = value
        self.target = target


class TypeMismatchError(DecodeError, TypeError):
    def __init__(self, expected: str, value: Any):
        super().__init__(f"{type(value).__name__} is not a {expected}", ErrorCode.TYPE_MISMATCH)
        self.expected = expected
        self.value = value


# Transport


class NetworkError(FqlClientError):
    """Raised when the HTTP exchange itself fails."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.NETWORK)


class ProtocolError(FqlClientError):
    """Raised when the service answers with something that is not a query envelope."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, ErrorCode.PROTOCOL)
        self.status_code = status_code


class ClientClosedError(FqlClientError):
    def __init__(self, message: str = "client is closed"):
        super().__init__(message, ErrorCode.CLOSED)


# Service errors


class ServiceError(FqlClientError):
    """An error reported by the service for a query."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.UNKNOWN,
        *,
        status_code: Optional[int] = None,
        summary: str = "",
        abort: Any = None,
        constraint_failures: Optional[list] = None,
        stats: Optional["QueryStats"] = None,
        txn_ts: Optional[int] = None,
        query_tags: Optional[Mapping[str, str]] = None,
    ):
        super().__init__(message, code)
        self.status_code = status_code
        self.summary = summary
        self.abort = abort
        self.constraint_failures = constraint_failures
        self.stats = stats
        self.txn_ts = txn_ts
        self.query_tags = dict(query_tags or {})

    def __str__(self) -> str:
        if self.summary:
            return f"{self.message}\n{self.summary}"
        return self.message

    def abort_as(self, target: Any = Any) -> Any:
        """Decode the ``abort`` payload into ``target``."""
        from .decoder import decode

        return decode(self.abort, target)


class QueryCheckError(ServiceError):
    """The query failed validation before it ran."""


class QueryRuntimeError(ServiceError):
    """The query failed while running."""


class AuthenticationError(ServiceError):
    pass


class AuthorizationError(ServiceError):
    pass


class ThrottlingError(ServiceError):
    pass


class QueryTimeoutError(ServiceError):
    pass


class ServiceInternalError(ServiceError):
    pass


class ServiceTimeoutError(ServiceError):
    pass


HTTP_STATUS_QUERY_TIMEOUT = 440

QUERY_CHECK_FAILURE_CODES: FrozenSet[str] = frozenset(
    {
        "invalid_function_definition",
        "invalid_identifier",
        "invalid_query",
        "invalid_syntax",
        "invalid_type",
    }
)

# 400 is resolved separately, by error code
_STATUS_ERRORS: Dict[int, Type[ServiceError]] = {
    401: AuthenticationError,
    403: AuthorizationError,
    429: ThrottlingError,
    HTTP_STATUS_QUERY_TIMEOUT: QueryTimeoutError,
    500: ServiceInternalError,
    503: ServiceTimeoutError,
}


def classify_error(
    status_code: int,
    payload: Optional["ServiceErrorPayload"] = None,
    *,
    summary: str = "",
    stats: Optional["QueryStats"] = None,
    txn_ts: Optional[int] = None,
    query_tags: Optional[Mapping[str, str]] = None,
) -> Optional[ServiceError]:
    """Map an HTTP status and service error payload to a typed exception.

    Args:
        status_code: HTTP status of the response.
        payload: The ``error`` member of the response envelope, if any.
        summary: The response summary, appended to the message.
        stats: Query statistics reported with the error.
        txn_ts: Transaction timestamp reported with the error.
        query_tags: Query tags echoed by the service.

    Returns:
        A ServiceError subclass instance, or None when the response is not an error.
    """
    if status_code == 400:
        if payload is not None and payload.code in QUERY_CHECK_FAILURE_CODES:
            error_class: Optional[Type[ServiceError]] = QueryCheckError
        else:
            error_class = QueryRuntimeError
    else:
        error_class = _STATUS_ERRORS.get(status_code)

    if error_class is None:
        if payload is None:
            return None
        error_class = ServiceError

    code = payload.code if payload is not None else ErrorCode.UNKNOWN
    message = payload.message if payload is not None else ""
    return error_class(
        message,
        code,
        status_code=status_code,
        summary=summary,
        abort=payload.abort if payload is not None else None,
        constraint_failures=payload.constraint_failures if payload is not None else None,
        stats=stats,
        txn_ts=txn_ts,
        query_tags=query_tags,
    )
