import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

import httpx
import pytest

from fqlclient import (
    AuthenticationError,
    Client,
    ClientClosedError,
    ClientSettings,
    Document,
    Int32,
    NetworkError,
    ProtocolError,
    QueryCheckError,
    QueryOptions,
    QueryRuntimeError,
    ThrottlingError,
    TypeMismatchError,
    fql,
    wire_field,
)

Handler = Callable[[httpx.Request], httpx.Response]


def make_client(handler: Handler, **kwargs: Any) -> Client:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return Client("secret", endpoint="https://db.test/", http_client=http, **kwargs)


def recording(responses: List[Dict[str, Any]], status_code: int = 200):
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = responses[min(len(seen), len(responses)) - 1]
        return httpx.Response(status_code, json=body)

    return seen, handler


def test_end_to_end_query_returns_decoded_int() -> None:
    seen, handler = recording([{"data": {"@int": "4"}, "static_type": "Int", "txn_ts": 1700000000000000}])
    with make_client(handler) as client:
        response = client.query(fql("${num} + 2", {"num": 2}), int)

    assert response.data == 4
    assert response.static_type == "Int"
    assert response.status_code == 200
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://db.test/query/1"
    assert json.loads(request.content) == {
        "query": {"fql": [{"value": {"@int": "2"}}, " + 2"]},
        "typecheck": True,
    }


def test_request_headers() -> None:
    seen, handler = recording([{"data": None}])
    client = make_client(handler, headers={"X-Custom": "1"}, query_tags={"team": "web", "env": "test"})
    client.query(
        fql("1"),
        options=QueryOptions(
            linearized=True,
            query_timeout_ms=250,
            max_contention_retries=2,
            query_tags={"env": "ci"},
            traceparent="00-abc-def-01",
            typecheck=False,
            additional_headers={"X-Extra": "yes"},
        ),
    )
    headers = seen[0].headers
    assert headers["Authorization"] == "Bearer secret"
    assert headers["X-Format"] == "tagged"
    assert headers["X-Driver"].startswith("python-fqlclient/")
    assert headers["X-Query-Timeout-Ms"] == "250"
    assert headers["X-Typecheck"] == "false"
    assert headers["X-Linearized"] == "true"
    assert headers["X-Max-Contention-Retries"] == "2"
    assert headers["X-Query-Tags"] == "team=web,env=ci"
    assert headers["Traceparent"] == "00-abc-def-01"
    assert headers["X-Custom"] == "1"
    assert headers["X-Extra"] == "yes"
    assert json.loads(seen[0].content)["typecheck"] is False


def test_default_headers_come_from_settings() -> None:
    seen, handler = recording([{"data": None}])
    settings = ClientSettings(query_timeout_ms=1234, typecheck=True, linearized=None)
    make_client(handler, settings=settings).query(fql("1"))
    headers = seen[0].headers
    assert headers["X-Query-Timeout-Ms"] == "1234"
    assert headers["X-Typecheck"] == "true"
    assert "X-Linearized" not in headers
    assert "X-Query-Tags" not in headers


def test_last_seen_txn_is_sent_and_only_moves_forward() -> None:
    seen, handler = recording(
        [
            {"data": 1, "txn_ts": 200},
            {"data": 2, "txn_ts": 100},
            {"data": 3, "txn_ts": 300},
        ]
    )
    client = make_client(handler)
    client.query(fql("1"))
    assert "X-Last-Seen-Txn" not in seen[0].headers
    client.query(fql("1"))
    assert seen[1].headers["X-Last-Seen-Txn"] == "200"
    client.query(fql("1"))
    assert seen[2].headers["X-Last-Seen-Txn"] == "200"
    assert client.last_txn_ts == 300


def test_txn_tracking_can_be_disabled() -> None:
    seen, handler = recording([{"data": 1, "txn_ts": 200}])
    client = make_client(handler, settings=ClientSettings(track_txn_time=False))
    client.query(fql("1"))
    client.query(fql("1"))
    assert "X-Last-Seen-Txn" not in seen[1].headers
    assert client.last_txn_ts is None


def test_txn_time_is_kept_when_data_does_not_fit_target() -> None:
    _, handler = recording([{"data": "x", "txn_ts": 99}])
    client = make_client(handler)
    with pytest.raises(TypeMismatchError):
        client.query(fql("1"), int)
    assert client.last_txn_ts == 99


def test_txn_time_is_per_client() -> None:
    _, handler = recording([{"data": 1, "txn_ts": 500}])
    first = make_client(handler)
    second = make_client(handler)
    first.query(fql("1"))
    assert first.last_txn_ts == 500
    assert second.last_txn_ts is None


def test_raw_string_query_with_arguments() -> None:
    seen, handler = recording([{"data": {"@int": "3"}}])
    response = make_client(handler).query("x + 1", arguments={"x": 2})
    assert response.data == 3
    assert json.loads(seen[0].content) == {
        "query": "x + 1",
        "arguments": {"x": {"@int": "2"}},
        "typecheck": True,
    }


@dataclass
class Product:
    name: str = wire_field("name")
    quantity: Int32 = wire_field("quantity")


def test_decodes_documents_into_records() -> None:
    body = {
        "data": {
            "@set": {
                "data": [
                    {"@doc": {"id": "1", "coll": {"@mod": "Product"}, "name": "pizza", "quantity": {"@int": "2"}}}
                ]
            }
        }
    }
    _, handler = recording([body])
    client = make_client(handler)
    page = client.query(fql("Product.all()")).data
    assert isinstance(page.data[0], Document)

    _, handler = recording([{"data": [{"name": "pizza", "quantity": {"@int": "2"}}]}])
    products = make_client(handler).query(fql("Product.all().map(.data)"), List[Product]).data
    assert products == [Product("pizza", 2)]


def test_stats_summary_and_tags_are_parsed() -> None:
    body = {
        "data": None,
        "summary": "",
        "query_tags": "team=web,env=ci",
        "schema_version": 7,
        "stats": {"compute_ops": 1, "read_ops": 2, "query_time_ms": 3, "rate_limits_hit": ["read"]},
    }
    _, handler = recording([body])
    response = make_client(handler).query(fql("1"))
    assert response.query_tags == {"team": "web", "env": "ci"}
    assert response.schema_version == 7
    assert response.stats.compute_ops == 1
    assert response.stats.read_ops == 2
    assert response.stats.write_ops == 0
    assert response.stats.rate_limits_hit == ["read"]


def test_check_error_from_400(caplog) -> None:
    body = {
        "error": {"code": "invalid_syntax", "message": "invalid query"},
        "summary": "error: unexpected end",
        "txn_ts": 42,
    }
    _, handler = recording([body], status_code=400)
    client = make_client(handler)
    with caplog.at_level(logging.INFO, logger="fqlclient"):
        with pytest.raises(QueryCheckError, match="invalid query") as info:
            client.query(fql("Product.all("))
    err = info.value
    assert err.status_code == 400
    assert err.summary == "error: unexpected end"
    assert err.txn_ts == 42
    assert client.last_txn_ts == 42
    assert "invalid_syntax" in caplog.text


def test_runtime_error_carries_abort_payload() -> None:
    body = {"error": {"code": "abort", "message": "aborted", "abort": {"@int": "7"}}}
    _, handler = recording([body], status_code=400)
    with pytest.raises(QueryRuntimeError) as info:
        make_client(handler).query(fql("abort(7)"))
    assert info.value.abort_as(int) == 7


def test_throttling_regardless_of_code() -> None:
    body = {"error": {"code": "invalid_syntax", "message": "slow down"}}
    _, handler = recording([body], status_code=429)
    with pytest.raises(ThrottlingError):
        make_client(handler).query(fql("1"))


def test_unauthorized() -> None:
    body = {"error": {"code": "unauthorized", "message": "access denied"}}
    _, handler = recording([body], status_code=401)
    with pytest.raises(AuthenticationError):
        make_client(handler).query(fql("1"))


def test_non_json_response_is_a_protocol_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>bad gateway</html>")

    with pytest.raises(ProtocolError) as info:
        make_client(handler).query(fql("1"))
    assert info.value.status_code == 502


def test_error_status_without_error_payload() -> None:
    _, handler = recording([{"data": None}], status_code=404)
    with pytest.raises(ProtocolError, match="unexpected status 404"):
        make_client(handler).query(fql("1"))


def test_transport_failure_is_a_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError, match="connection refused") as info:
        make_client(handler).query(fql("1"))
    assert isinstance(info.value.__cause__, httpx.ConnectError)


def test_debug_log_redacts_secret(caplog) -> None:
    _, handler = recording([{"data": 1}])
    with caplog.at_level(logging.DEBUG, logger="fqlclient"):
        make_client(handler).query(fql("1"))
    assert "Bearer secret" not in caplog.text
    assert "<redacted>" in caplog.text


def test_close_is_idempotent() -> None:
    _, handler = recording([{"data": 1}])
    client = make_client(handler)
    client.close()
    client.close()
    assert client.is_closed


def test_query_on_closed_client() -> None:
    _, handler = recording([{"data": 1}])
    with make_client(handler) as client:
        pass
    with pytest.raises(ClientClosedError, match="client is closed"):
        client.query(fql("1"))


def test_borrowed_http_client_is_left_open() -> None:
    _, handler = recording([{"data": 1}])
    http = httpx.Client(transport=httpx.MockTransport(handler))
    Client("secret", http_client=http).close()
    assert not http.is_closed


def test_secret_is_required() -> None:
    with pytest.raises(ValueError, match="secret"):
        Client("")


def test_from_env(monkeypatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("FAUNA_SECRET", "env-secret")
    monkeypatch.setenv("FAUNA_ENDPOINT", "http://localhost:8443/")
    with Client.from_env() as client:
        assert client.endpoint == "http://localhost:8443"


def test_from_env_without_secret(monkeypatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("FAUNA_SECRET", raising=False)
    with pytest.raises(ValueError, match="FAUNA_SECRET"):
        Client.from_env()
