from collections.abc import Mapping

from regmux import Request


class MockTransport:
    """Mock transport that records everything the router signals."""

    def __init__(self) -> None:
        self.events: list[str] = []
        self.route: str | None = None
        self.params: tuple[str | None, ...] | None = None
        self.not_found_protocol: str | None = None

    def begin_capture(self) -> None:
        self.events.append("begin_capture")

    def discard_capture(self) -> None:
        self.events.append("discard_capture")

    def not_found(self, protocol: str) -> None:
        self.events.append("not_found")
        self.not_found_protocol = protocol

    def route_matched(self, pattern: str, params: tuple[str | None, ...]) -> None:
        self.events.append("route_matched")
        self.route = pattern
        self.params = params


def mock_request(
    uri: str = "/",
    method: str = "GET",
    headers: Mapping[str, str] | None = None,
    script_name: str = "/index.py",
) -> Request:
    return Request(
        method=method, uri=uri, headers=headers or {}, script_name=script_name
    )


def mock_environ(
    path: str = "/",
    method: str = "GET",
    query: str = "",
    headers: Mapping[str, str] | None = None,
    script_name: str = "",
) -> dict[str, object]:
    environ: dict[str, object] = {
        "REQUEST_METHOD": method,
        "SCRIPT_NAME": script_name,
        "PATH_INFO": path,
        "QUERY_STRING": query,
        "SERVER_NAME": "localhost",
        "SERVER_PORT": "8000",
        "SERVER_PROTOCOL": "HTTP/1.1",
        "REMOTE_ADDR": "127.0.0.1",
        "wsgi.url_scheme": "http",
    }
    for name, value in (headers or {}).items():
        key = name.upper().replace("-", "_")
        if key not in ("CONTENT_TYPE", "CONTENT_LENGTH"):
            key = "HTTP_" + key
        environ[key] = value
    return environ


class StartResponse:
    """Captures what a WSGI app passes to start_response."""

    def __init__(self) -> None:
        self.status: str | None = None
        self.headers: list[tuple[str, str]] | None = None

    def __call__(self, status, headers, exc_info=None):  # noqa: ANN001, ANN204
        self.status = status
        self.headers = headers
        return lambda data: None
