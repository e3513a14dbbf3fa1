from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
# credential and project scope never appear in logs or captured exchanges
REDACTED_HEADERS = frozenset({"gram-key", "gram-project", "authorization"})
DIAGNOSTIC_PATH_MARKER = "deployments"


@dataclass(frozen=True, slots=True)
class Exchange:
    """One captured request/response pair, sensitive headers already redacted.

    ``response_body`` holds the bytes handed to the caller's decoder;
    ``response_text`` is the same body after content decoding (gzip etc.),
    for reading by a human.
    """

    method: str
    url: str
    request_headers: tuple[tuple[str, str], ...]
    request_body: bytes
    status_code: int
    content_type: str | None
    response_body: bytes
    response_text: str


def redact_headers(headers: httpx.Headers) -> tuple[tuple[str, str], ...]:
    return tuple(
        (name, REDACTED if name.lower() in REDACTED_HEADERS else value)
        for name, value in headers.multi_items()
    )


class DiagnosticTransport(httpx.BaseTransport):
    """Wraps a transport and captures deployment traffic for troubleshooting.

    Bodies are read into owned buffers and handed back as fresh streams, so
    the wrapped transport sends, and the caller decodes, exactly the bytes
    that were captured. This is what makes it possible to tell a malformed
    request apart from a server that answered with an HTML error page.

    The response returned to the client is always unread, so httpx still
    times it and ``response.elapsed`` is available as usual.
    """

    def __init__(
        self,
        transport: httpx.BaseTransport,
        on_exchange: Callable[[Exchange], None] | None = None,
        path_marker: str = DIAGNOSTIC_PATH_MARKER,
    ) -> None:
        self._transport = transport
        self._on_exchange = on_exchange
        self._path_marker = path_marker

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        watched = self._path_marker in request.url.path
        headers = redact_headers(request.headers)

        request_body = b""
        if watched:
            request_body = request.read()
            request.stream = httpx.ByteStream(request_body)
            _log_request(request, headers, request_body)

        try:
            response = self._transport.handle_request(request)
        except httpx.RequestError as exc:
            raise type(exc)(
                f"error making HTTP request to {request.method} {request.url}: {exc}",
                request=request,
            ) from exc

        if not watched:
            return response

        response_body, restored = _buffer_response(request, response)

        exchange = Exchange(
            method=request.method,
            url=str(request.url),
            request_headers=headers,
            request_body=request_body,
            status_code=response.status_code,
            content_type=response.headers.get("content-type"),
            response_body=response_body,
            response_text=_decoded_text(restored.headers, response_body),
        )
        _log_response(exchange)
        if self._on_exchange is not None:
            self._on_exchange(exchange)
        return restored

    def close(self) -> None:
        self._transport.close()


def _buffer_response(
    request: httpx.Request,
    response: httpx.Response,
) -> tuple[bytes, httpx.Response]:
    """Read the body once and return it with a fresh, unread response over the same bytes."""
    headers = httpx.Headers(response.headers)
    if response.is_stream_consumed:
        # built from in-memory content: only the decoded body is left
        body = response.content
        if headers.pop("content-encoding", None) is not None and "content-length" in headers:
            headers["content-length"] = str(len(body))
    else:
        body = b"".join(response.iter_raw())

    restored = httpx.Response(
        status_code=response.status_code,
        headers=headers,
        stream=httpx.ByteStream(body),
        request=request,
        extensions=response.extensions,
    )
    return body, restored


def _decoded_text(headers: httpx.Headers, body: bytes) -> str:
    if "content-encoding" in headers:
        try:
            body = httpx.Response(200, headers=headers, content=body).content
        except httpx.DecodingError as exc:
            return f"<undecodable {headers['content-encoding']} body: {exc}>"
    return body.decode("utf-8", errors="replace")


def _log_request(
    request: httpx.Request,
    headers: tuple[tuple[str, str], ...],
    body: bytes,
) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug("request: %s %s", request.method, request.url)
    for name, value in headers:
        logger.debug("request header %s: %s", name, value)
    if body:
        logger.debug("request body:\n%s", body.decode("utf-8", errors="replace"))


def _log_response(exchange: Exchange) -> None:
    logger.debug(
        "response: %s %s -> HTTP %d, Content-Type: %s",
        exchange.method,
        exchange.url,
        exchange.status_code,
        exchange.content_type,
    )
    logger.debug("response body:\n%s", exchange.response_text)
