"""WSGI adapter.

Runs a Router once per WSGI request. Handlers write their output to the
current ``Response``:

    def show_user(user_id: str) -> None:
        response().write(f"user {user_id}")

    router = Router()
    router.get("/users/{id}", show_user)
    app = WSGIApp(router)
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from http import HTTPStatus
from typing import TYPE_CHECKING
from urllib.parse import quote

from regmux.request import Request

if TYPE_CHECKING:
    from collections.abc import Iterable
    from wsgiref.types import StartResponse, WSGIEnvironment

    from regmux.handlers import Handler
    from regmux.router import Router

logger = logging.getLogger(__name__)

ROUTE_ENVIRON_KEY = "regmux.route"
PARAMS_ENVIRON_KEY = "regmux.params"

_current_response: ContextVar[Response] = ContextVar("current_response")
_current_environ: ContextVar[WSGIEnvironment] = ContextVar("current_environ")

# CGI variables that carry headers without the HTTP_ prefix
_UNPREFIXED_HEADERS = ("CONTENT_TYPE", "CONTENT_LENGTH")


def response() -> Response:
    """Response of the request currently being dispatched."""
    try:
        return _current_response.get()
    except LookupError as e:
        msg = "response() called outside of a WSGIApp request"
        raise RuntimeError(msg) from e


def request_environ() -> WSGIEnvironment:
    """WSGI environ of the request being dispatched, e.g. to read the body."""
    try:
        return _current_environ.get()
    except LookupError as e:
        msg = "request_environ() called outside of a WSGIApp request"
        raise RuntimeError(msg) from e


class Response:
    """Buffered WSGI response, also the router's Transport for the request."""

    __slots__ = (
        "_capture_mark",
        "body",
        "headers",
        "params",
        "route",
        "status",
    )

    def __init__(self) -> None:
        self.status = "200 OK"
        self.headers: list[tuple[str, str]] = []
        self.body: list[bytes] = []
        self.route = ""
        self.params: tuple[str | None, ...] = ()
        self._capture_mark: int | None = None

    def set_status(self, code: int, reason: str | None = None) -> None:
        if reason is None:
            reason = HTTPStatus(code).phrase
        self.status = f"{code} {reason}"

    def add_header(self, name: str, value: str) -> None:
        self.headers.append((name, value))

    def write(self, data: str | bytes) -> None:
        self.body.append(data.encode("utf-8") if isinstance(data, str) else data)

    # --- Transport ------------------------------------------------------------
    def begin_capture(self) -> None:
        self._capture_mark = len(self.body)

    def discard_capture(self) -> None:
        if self._capture_mark is not None:
            del self.body[self._capture_mark :]
            self._capture_mark = None

    def not_found(self, protocol: str) -> None:
        logger.debug("%s 404 Not Found", protocol)
        self.set_status(404)

    def route_matched(self, pattern: str, params: tuple[str | None, ...]) -> None:
        self.route = pattern
        self.params = params


def request_headers(environ: WSGIEnvironment) -> dict[str, str]:
    """Rebuild request headers from CGI-style environ keys.

    HTTP_X_HTTP_METHOD_OVERRIDE -> X-Http-Method-Override
    """
    headers: dict[str, str] = {}
    for key, value in environ.items():
        if key.startswith("HTTP_"):
            name = key[5:]
        elif key in _UNPREFIXED_HEADERS:
            name = key
        else:
            continue
        headers["-".join(part.capitalize() for part in name.split("_"))] = value
    return headers


def request_from_environ(environ: WSGIEnvironment) -> Request:
    """Build the router's view of a WSGI request.

    REQUEST_URI is used when the server provides it, otherwise the uri is
    re-quoted from SCRIPT_NAME and PATH_INFO. Both hold the raw request bytes
    decoded as latin-1 (PEP 3333), so they are quoted byte for byte.
    """
    script_name = environ.get("SCRIPT_NAME", "")
    uri = environ.get("REQUEST_URI")
    if not uri:
        path = script_name + environ.get("PATH_INFO", "")
        uri = quote(path, encoding="latin-1")
        query = environ.get("QUERY_STRING", "")
        if query:
            uri += "?" + query
    return Request(
        method=environ.get("REQUEST_METHOD", "GET").upper(),
        uri=uri,
        headers=request_headers(environ),
        # SCRIPT_NAME is the mount point; the trailing slash makes it the base directory
        script_name=_decode_native(script_name) + "/",
        protocol=environ.get("SERVER_PROTOCOL", "HTTP/1.1"),
    )


def _decode_native(value: str) -> str:
    return value.encode("latin-1").decode("utf-8", errors="replace")


class WSGIApp:
    """WSGI application dispatching every request through router."""

    __slots__ = ("_finish", "_router")

    def __init__(self, router: Router, *, finish: Handler | None = None) -> None:
        self._router = router
        self._finish = finish

    def __call__(
        self, environ: WSGIEnvironment, start_response: StartResponse
    ) -> Iterable[bytes]:
        request = request_from_environ(environ)
        resp = Response()
        response_token = _current_response.set(resp)
        environ_token = _current_environ.set(environ)
        try:
            matched = self._router.run(request, self._finish, transport=resp)
        finally:
            _current_environ.reset(environ_token)
            _current_response.reset(response_token)
        logger.debug(
            "%s %s -> %s (matched=%s)",
            request.method,
            request.uri,
            resp.status,
            matched,
        )

        environ[ROUTE_ENVIRON_KEY] = resp.route
        environ[PARAMS_ENVIRON_KEY] = resp.params
        start_response(resp.status, resp.headers)
        return resp.body
