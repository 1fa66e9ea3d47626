import pytest

from fqlclient import (
    AuthenticationError,
    AuthorizationError,
    DecodeError,
    EncodeError,
    ErrorCode,
    FqlClientError,
    QueryCheckError,
    QueryRuntimeError,
    QueryStats,
    QueryTimeoutError,
    ServiceError,
    ServiceErrorPayload,
    ServiceInternalError,
    ServiceTimeoutError,
    TemplateParseError,
    ThrottlingError,
    UndefinedVariableError,
    classify_error,
)


def payload(code: str, message: str = "boom", abort=None) -> ServiceErrorPayload:
    return ServiceErrorPayload(code=code, message=message, abort=abort)


@pytest.mark.parametrize(
    "code",
    ["invalid_function_definition", "invalid_identifier", "invalid_query", "invalid_syntax", "invalid_type"],
)
def test_400_with_check_code_is_query_check_error(code) -> None:
    assert type(classify_error(400, payload(code))) is QueryCheckError


def test_400_with_other_code_is_runtime_error() -> None:
    assert type(classify_error(400, payload("abort"))) is QueryRuntimeError
    assert type(classify_error(400)) is QueryRuntimeError


@pytest.mark.parametrize(
    "status,error_class",
    [
        (401, AuthenticationError),
        (403, AuthorizationError),
        (429, ThrottlingError),
        (440, QueryTimeoutError),
        (500, ServiceInternalError),
        (503, ServiceTimeoutError),
    ],
)
def test_status_table(status, error_class) -> None:
    assert type(classify_error(status, payload("invalid_syntax"))) is error_class
    assert type(classify_error(status)) is error_class


def test_unknown_status_without_payload_is_not_an_error() -> None:
    assert classify_error(200) is None
    assert classify_error(418) is None


def test_unknown_status_with_payload_is_generic_service_error() -> None:
    err = classify_error(418, payload("teapot", "short and stout"))
    assert type(err) is ServiceError
    assert err.code == "teapot"
    assert err.status_code == 418


def test_error_carries_response_context() -> None:
    stats = QueryStats(compute_ops=1)
    err = classify_error(
        400,
        payload("invalid_syntax", "invalid query"),
        summary="error: unexpected end of input",
        stats=stats,
        txn_ts=1700000000000000,
        query_tags={"team": "web"},
    )
    assert err.message == "invalid query"
    assert str(err) == "invalid query\nerror: unexpected end of input"
    assert err.stats is stats
    assert err.txn_ts == 1700000000000000
    assert err.query_tags == {"team": "web"}


def test_abort_payload_decodes_on_request() -> None:
    err = classify_error(400, payload("abort", "aborted", abort={"@int": "42"}))
    assert err.abort == {"@int": "42"}
    assert err.abort_as() == 42
    assert err.abort_as(float) == 42.0


def test_hierarchy() -> None:
    assert issubclass(QueryCheckError, ServiceError)
    assert issubclass(ServiceError, FqlClientError)
    assert issubclass(TemplateParseError, ValueError)
    assert issubclass(EncodeError, FqlClientError)
    assert issubclass(DecodeError, FqlClientError)


def test_client_side_codes_are_stable() -> None:
    assert UndefinedVariableError("x").code == ErrorCode.UNDEFINED_VARIABLE
    assert TemplateParseError(3).code == ErrorCode.TEMPLATE
