"""HTTP client for the query endpoint."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

import httpx

from ._txn import LastTxnTime
from ._version import __version__
from .config import ClientSettings
from .decoder import decode
from .encoder import encode_request
from .errors import ClientClosedError, NetworkError, ProtocolError, classify_error
from .query import Query
from .response import QueryResponse, format_query_tags, parse_envelope

log = logging.getLogger(__name__)

QUERY_PATH = "/query/1"
DRIVER = f"python-fqlclient/{__version__}"


class Header:
    AUTHORIZATION = "Authorization"
    CONTENT_TYPE = "Content-Type"
    FORMAT = "X-Format"
    DRIVER = "X-Driver"
    QUERY_TIMEOUT_MS = "X-Query-Timeout-Ms"
    TYPECHECK = "X-Typecheck"
    LINEARIZED = "X-Linearized"
    MAX_CONTENTION_RETRIES = "X-Max-Contention-Retries"
    QUERY_TAGS = "X-Query-Tags"
    TRACEPARENT = "Traceparent"
    LAST_TXN_TS = "X-Last-Seen-Txn"


@dataclass
class QueryOptions:
    """Per-query overrides of the client defaults."""

    linearized: Optional[bool] = None
    query_timeout_ms: Optional[int] = None
    max_contention_retries: Optional[int] = None
    query_tags: Dict[str, str] = field(default_factory=dict)
    traceparent: Optional[str] = None
    typecheck: Optional[bool] = None
    additional_headers: Dict[str, str] = field(default_factory=dict)


def _bool_header(value: bool) -> str:
    return "true" if value else "false"


def _redacted(headers: Mapping[str, str]) -> Dict[str, str]:
    return {k: ("<redacted>" if k.lower() == "authorization" else v) for k, v in headers.items()}


class Client:
    """Connection handle for one database, identified by its secret.

    Each client tracks the last transaction time it has seen and sends it
    with every query, so reads through one client never go back in time.
    """

    def __init__(
        self,
        secret: str,
        *,
        endpoint: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        settings: Optional[ClientSettings] = None,
        headers: Optional[Mapping[str, str]] = None,
        query_tags: Optional[Mapping[str, str]] = None,
    ):
        if not isinstance(secret, str) or not secret:
            raise ValueError("secret must be a non-empty string")
        self._settings = settings if settings is not None else ClientSettings.model_construct()
        self._secret = secret
        self._endpoint = (endpoint or self._settings.endpoint).rstrip("/")
        self._headers = dict(headers or {})
        self._query_tags = dict(query_tags or {})
        self._owns_http = http_client is None
        self._http = http_client if http_client is not None else httpx.Client(
            timeout=self._settings.client_timeout_s
        )
        self._last_txn = LastTxnTime()
        self._closed = False
        self._settings.apply_logging()

    @classmethod
    def from_env(cls, **kwargs: Any) -> "Client":
        """Build a client from ``FAUNA_*`` environment settings."""
        settings = ClientSettings()
        if not settings.secret:
            raise ValueError("FAUNA_SECRET is not set")
        return cls(settings.secret, settings=settings, **kwargs)

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def last_txn_ts(self) -> Optional[int]:
        return self._last_txn.value

    def sync_last_txn_ts(self, value: int) -> None:
        """Advance the last seen transaction time, e.g. from another client."""
        self._last_txn.sync(value)

    def close(self) -> None:
        """Close the client. Calling close() more than once is a no-op."""
        if self._closed:
            return
        if self._owns_http:
            self._http.close()
        self._closed = True

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _assert_open(self) -> None:
        if self._closed:
            raise ClientClosedError()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _typecheck(self, options: QueryOptions) -> bool:
        return self._settings.typecheck if options.typecheck is None else options.typecheck

    def _request_headers(self, options: QueryOptions) -> Dict[str, str]:
        settings = self._settings
        headers = {
            Header.AUTHORIZATION: f"Bearer {self._secret}",
            Header.CONTENT_TYPE: "application/json; charset=utf-8",
            Header.FORMAT: "tagged",
            Header.DRIVER: DRIVER,
        }
        headers.update(self._headers)

        timeout_ms = options.query_timeout_ms or settings.query_timeout_ms
        headers[Header.QUERY_TIMEOUT_MS] = str(timeout_ms)

        headers[Header.TYPECHECK] = _bool_header(self._typecheck(options))

        linearized = settings.linearized if options.linearized is None else options.linearized
        if linearized is not None:
            headers[Header.LINEARIZED] = _bool_header(linearized)

        retries = options.max_contention_retries
        if retries is None:
            retries = settings.max_contention_retries
        if retries is not None:
            headers[Header.MAX_CONTENTION_RETRIES] = str(retries)

        tags = {**self._query_tags, **options.query_tags}
        if tags:
            headers[Header.QUERY_TAGS] = format_query_tags(tags)

        if options.traceparent:
            headers[Header.TRACEPARENT] = options.traceparent

        if settings.track_txn_time:
            last_seen = self._last_txn.header_value()
            if last_seen:
                headers[Header.LAST_TXN_TS] = last_seen

        headers.update(options.additional_headers)
        return headers

    def query(
        self,
        q: Union[Query, str],
        target: Any = Any,
        *,
        arguments: Optional[Mapping[str, Any]] = None,
        options: Optional[QueryOptions] = None,
    ) -> QueryResponse:
        """Run a query and decode its result.

        Args:
            q: A Query built with :func:`fqlclient.fql`, or raw FQL source.
            target: Type to decode the result ``data`` into.
            arguments: Values bound to top-level names in the query.
            options: Per-query overrides.

        Returns:
            The decoded response envelope.

        Raises:
            ClientClosedError: The client has been closed.
            NetworkError: The HTTP exchange failed.
            ProtocolError: The response is not a query envelope.
            ServiceError: The service reported an error for the query.
        """
        self._assert_open()
        opts = options if options is not None else QueryOptions()
        request = encode_request(q, arguments, self._typecheck(opts))
        body = json.dumps(request, separators=(",", ":"))
        headers = self._request_headers(opts)
        url = f"{self._endpoint}{QUERY_PATH}"

        log.debug("POST %s headers=%s body=%s", url, _redacted(headers), body)
        try:
            response = self._http.post(url, content=body.encode("utf-8"), headers=headers)
        except httpx.TransportError as err:
            raise NetworkError(f"request to {url} failed: {err}") from err
        log.debug("POST %s -> %d %s", url, response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError as err:
            raise ProtocolError(
                f"response body is not JSON (status {response.status_code})", response.status_code
            ) from err

        result = parse_envelope(
            payload,
            status_code=response.status_code,
            headers=response.headers,
            decode_data=False,
        )
        if self._settings.track_txn_time:
            self._last_txn.sync(result.txn_ts)

        if result.error is not None or response.status_code >= 400:
            error = classify_error(
                response.status_code,
                result.error,
                summary=result.summary,
                stats=result.stats,
                txn_ts=result.txn_ts,
                query_tags=result.query_tags,
            )
            if error is not None:
                log.info("query failed: status=%d code=%s", response.status_code, error.code)
                raise error
            raise ProtocolError(
                f"unexpected status {response.status_code} without an error payload",
                response.status_code,
            )
        result.data = decode(result.data, target)
        return result
