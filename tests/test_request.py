import pytest
from conftest import mock_request

from regmux.request import Request, derive_base_path, resolve_method, resolve_uri


# --- method resolution --------------------------------------------------------
@pytest.mark.parametrize("method", ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"])
def test_method_passthrough(method: str) -> None:
    assert resolve_method(mock_request(method=method)) == method


def test_head_is_served_as_get() -> None:
    assert resolve_method(mock_request(method="HEAD")) == "GET"


@pytest.mark.parametrize("override", ["PUT", "DELETE", "PATCH"])
def test_post_method_override(override: str) -> None:
    request = mock_request(method="POST", headers={"X-HTTP-Method-Override": override})
    assert resolve_method(request) == override


def test_method_override_header_name_is_case_insensitive() -> None:
    request = mock_request(method="POST", headers={"x-http-method-override": "PUT"})
    assert resolve_method(request) == "PUT"


@pytest.mark.parametrize("override", ["put", "GET", "OPTIONS", ""])
def test_method_override_value_must_be_exact(override: str) -> None:
    request = mock_request(method="POST", headers={"X-HTTP-Method-Override": override})
    assert resolve_method(request) == "POST"


def test_method_override_only_applies_to_post() -> None:
    request = mock_request(method="GET", headers={"X-HTTP-Method-Override": "DELETE"})
    assert resolve_method(request) == "GET"


def test_header_lookup() -> None:
    request = Request(method="GET", uri="/", headers={"Content-Type": "text/plain"})
    assert request.header("content-type") == "text/plain"
    assert request.header("accept") is None
    assert request.header("accept", "*/*") == "*/*"


# --- uri resolution -----------------------------------------------------------
@pytest.mark.parametrize(
    "script_name,expected",
    [
        ("/index.py", "/"),
        ("/app/index.py", "/app/"),
        ("/app/v1/index.py", "/app/v1/"),
        ("", "/"),
        ("/app/", "/app/"),
    ],
)
def test_derive_base_path(script_name: str, expected: str) -> None:
    assert derive_base_path(script_name) == expected


@pytest.mark.parametrize(
    "raw_uri,base_path,expected",
    [
        ("/", "/", "/"),
        ("/users/42", "/", "/users/42"),
        ("/users/42/", "/", "/users/42"),
        ("/users/42?tab=posts", "/", "/users/42"),
        ("/users/42/?tab=posts&x=/", "/", "/users/42"),
        ("/app/users", "/app/", "/users"),
        ("/app/", "/app/", "/"),
        ("/app", "/app/", "/"),
        ("/caf%C3%A9/menu", "/", "/café/menu"),
        ("/search/a%3Fb", "/", "/search/a"),  # decoded before the query is cut
        ("/a+b", "/", "/a+b"),
        ("//double//", "/", "/double"),
    ],
)
def test_resolve_uri(raw_uri: str, base_path: str, expected: str) -> None:
    assert resolve_uri(raw_uri, base_path) == expected
