import io

import pytest
from conftest import StartResponse, mock_environ

from regmux import Router
from regmux.wsgi import (
    PARAMS_ENVIRON_KEY,
    ROUTE_ENVIRON_KEY,
    Response,
    WSGIApp,
    request_environ,
    request_from_environ,
    request_headers,
    response,
)


def _app() -> WSGIApp:
    router = Router()

    def home() -> None:
        response().write("home")

    def show_user(user_id: str) -> None:
        resp = response()
        resp.add_header("Content-Type", "text/plain")
        resp.write(f"user {user_id}")

    def create_user() -> None:
        response().set_status(201)

    def replace_user(user_id: str) -> None:
        response().write(f"replaced {user_id}")

    router.get("/", home)
    router.get("/users/{id}", show_user)
    router.post("/users", create_user)
    router.put("/users/{id}", replace_user)
    return WSGIApp(router)


def test_request_headers() -> None:
    environ = mock_environ(
        headers={"X-HTTP-Method-Override": "PUT", "Content-Type": "application/json"}
    )
    assert request_headers(environ) == {
        "X-Http-Method-Override": "PUT",
        "Content-Type": "application/json",
    }


def test_request_from_environ() -> None:
    environ = mock_environ(
        "/users/42", "post", query="a=1", headers={"Accept": "text/html"}
    )
    request = request_from_environ(environ)
    assert request.method == "POST"
    assert request.uri == "/users/42?a=1"
    assert request.header("accept") == "text/html"
    assert request.script_name == "/"
    assert request.protocol == "HTTP/1.1"


def test_request_from_environ_requotes_path_bytes() -> None:
    # PATH_INFO carries the utf-8 bytes of "/café menu" decoded as latin-1
    request = request_from_environ(mock_environ("/caf\xc3\xa9 menu"))
    assert request.uri == "/caf%C3%A9%20menu"


def test_wsgi_app_non_ascii_path() -> None:
    router = Router()
    router.get("/café", lambda: response().write("café"))
    router.get("/pages/{slug}", lambda slug: response().write(f"page {slug}"))
    app = WSGIApp(router)

    start_response = StartResponse()
    body = app(mock_environ("/caf\xc3\xa9"), start_response)
    assert start_response.status == "200 OK"
    assert b"".join(body) == "café".encode()

    body = app(mock_environ("/pages/na\xc3\xafve"), StartResponse())
    assert b"".join(body) == "page naïve".encode()


def test_wsgi_app_under_non_ascii_script_name() -> None:
    start_response = StartResponse()
    environ = mock_environ("/users/3", script_name="/caf\xc3\xa9")
    body = _app()(environ, start_response)
    assert start_response.status == "200 OK"
    assert b"".join(body) == b"user 3"


def test_request_from_environ_prefers_request_uri() -> None:
    environ = mock_environ("/users", script_name="/app")
    environ["REQUEST_URI"] = "/app/users?x=1"
    request = request_from_environ(environ)
    assert request.uri == "/app/users?x=1"
    assert request.script_name == "/app/"


def test_wsgi_app_dispatches() -> None:
    app = _app()
    start_response = StartResponse()
    environ = mock_environ("/users/42")

    body = app(environ, start_response)

    assert start_response.status == "200 OK"
    assert start_response.headers == [("Content-Type", "text/plain")]
    assert b"".join(body) == b"user 42"
    assert environ[ROUTE_ENVIRON_KEY] == "/users/{id}"
    assert environ[PARAMS_ENVIRON_KEY] == ("42",)


def test_wsgi_app_status() -> None:
    start_response = StartResponse()
    body = _app()(mock_environ("/users", "POST"), start_response)
    assert start_response.status == "201 Created"
    assert b"".join(body) == b""


def test_wsgi_app_not_found() -> None:
    start_response = StartResponse()
    environ = mock_environ("/missing")
    body = _app()(environ, start_response)
    assert start_response.status == "404 Not Found"
    assert b"".join(body) == b""
    assert environ[ROUTE_ENVIRON_KEY] == ""


def test_wsgi_app_head_has_no_body() -> None:
    start_response = StartResponse()
    body = _app()(mock_environ("/users/42", "HEAD"), start_response)
    assert start_response.status == "200 OK"
    assert start_response.headers == [("Content-Type", "text/plain")]
    assert b"".join(body) == b""


def test_wsgi_app_method_override() -> None:
    start_response = StartResponse()
    environ = mock_environ(
        "/users/9", "POST", headers={"X-HTTP-Method-Override": "PUT"}
    )
    body = _app()(environ, start_response)
    assert b"".join(body) == b"replaced 9"


def test_wsgi_app_under_script_name() -> None:
    start_response = StartResponse()
    environ = mock_environ("/users/3", script_name="/app")
    body = _app()(environ, start_response)
    assert b"".join(body) == b"user 3"


def test_wsgi_app_finish_callback() -> None:
    router = Router()
    router.get("/", lambda: response().write("a"))
    app = WSGIApp(router, finish=lambda: response().write("b"))

    body = app(mock_environ("/"), StartResponse())
    assert b"".join(body) == b"ab"


def test_response_capture() -> None:
    resp = Response()
    resp.write("kept")
    resp.begin_capture()
    resp.write("dropped")
    resp.write(b"dropped too")
    resp.discard_capture()
    resp.write("after")
    assert resp.body == [b"kept", b"after"]


def test_response_outside_request() -> None:
    with pytest.raises(RuntimeError):
        response()


def test_request_environ_during_dispatch() -> None:
    router = Router()

    def echo() -> None:
        response().write(request_environ()["wsgi.input"].read())

    router.post("/echo", echo)
    environ = mock_environ("/echo", "POST")
    environ["wsgi.input"] = io.BytesIO(b"payload")

    body = WSGIApp(router)(environ, StartResponse())
    assert b"".join(body) == b"payload"

    with pytest.raises(RuntimeError):
        request_environ()
