"""Python client for the FQL document database: query templates, tagged wire codec and HTTP client."""

from ._version import __version__
from .client import Client, QueryOptions
from .config import ClientSettings
from .decoder import decode, decode_query, loads
from .encoder import dumps, encode, encode_query, encode_request
from .errors import (
    # Error types
    ErrorCode,
    FqlClientError,
    TemplateParseError,
    QueryBuildError,
    UndefinedVariableError,
    NoArgumentsError,
    EncodeError,
    UnsupportedTypeError,
    NumericOverflowError,
    UnknownTypeHintError,
    InvalidTemporalValueError,
    DecodeError,
    InvalidTypeError,
    MalformedPayloadError,
    OverflowDecodeError,
    TypeMismatchError,
    NetworkError,
    ProtocolError,
    ClientClosedError,
    ServiceError,
    QueryCheckError,
    QueryRuntimeError,
    AuthenticationError,
    AuthorizationError,
    ThrottlingError,
    QueryTimeoutError,
    ServiceInternalError,
    ServiceTimeoutError,
    classify_error,
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
from .query import LiteralFragment, Query, ValueFragment, fql
from .records import Int32, Int64, wire_field
from .response import QueryResponse, QueryStats, ServiceErrorPayload
from .template import Template, TemplateCategory, TemplatePart, parse_template

__all__ = [
    "version",
    "fql",
    "Query",
    "LiteralFragment",
    "ValueFragment",
    "Template",
    "TemplatePart",
    "TemplateCategory",
    "parse_template",
    "encode",
    "encode_query",
    "encode_request",
    "dumps",
    "decode",
    "decode_query",
    "loads",
    "wire_field",
    "Int32",
    "Int64",
    "Module",
    "DocumentReference",
    "NamedDocumentReference",
    "Document",
    "NamedDocument",
    "NullDocument",
    "Page",
    "Client",
    "ClientSettings",
    "QueryOptions",
    "QueryResponse",
    "QueryStats",
    "ServiceErrorPayload",
    # Error types
    "ErrorCode",
    "FqlClientError",
    "TemplateParseError",
    "QueryBuildError",
    "UndefinedVariableError",
    "NoArgumentsError",
    "EncodeError",
    "UnsupportedTypeError",
    "NumericOverflowError",
    "UnknownTypeHintError",
    "InvalidTemporalValueError",
    "DecodeError",
    "InvalidTypeError",
    "MalformedPayloadError",
    "OverflowDecodeError",
    "TypeMismatchError",
    "NetworkError",
    "ProtocolError",
    "ClientClosedError",
    "ServiceError",
    "QueryCheckError",
    "QueryRuntimeError",
    "AuthenticationError",
    "AuthorizationError",
    "ThrottlingError",
    "QueryTimeoutError",
    "ServiceInternalError",
    "ServiceTimeoutError",
    "classify_error",
]


def version() -> str:
    """Return the package version string."""
    return __version__
