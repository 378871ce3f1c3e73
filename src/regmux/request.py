"""The request as seen by the router, and how method and path are derived."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import unquote

METHOD_OVERRIDE_HEADER = "X-HTTP-Method-Override"
OVERRIDABLE_METHODS: frozenset[str] = frozenset({"PUT", "DELETE", "PATCH"})


@dataclass(frozen=True, slots=True)
class Request:
    """Everything the router needs from the transport.

    uri is the raw request target including any query string, script_name
    the path of the entry script (used to derive the base path when none is
    set on the router).
    """

    method: str
    uri: str
    headers: Mapping[str, str] = field(default_factory=dict)
    script_name: str = ""
    protocol: str = "HTTP/1.1"

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return default


def resolve_method(request: Request) -> str:
    """Effective method used for route table lookup.

    HEAD is served by GET routes. A POST may be tunnelled as PUT, DELETE or
    PATCH with the X-HTTP-Method-Override header (exact, case-sensitive value).
    """
    if request.method == "HEAD":
        return "GET"
    if request.method == "POST":
        override = request.header(METHOD_OVERRIDE_HEADER)
        if override in OVERRIDABLE_METHODS:
            return override
    return request.method


def derive_base_path(script_name: str) -> str:
    """Directory of the entry script, with a trailing slash.

    "/app/index.py" -> "/app/"
    ""              -> "/"
    """
    return "/".join(script_name.split("/")[:-1]) + "/"


def resolve_uri(raw_uri: str, base_path: str) -> str:
    """Path to match routes against: decoded, relative to base_path, no query."""
    uri = unquote(raw_uri)[len(base_path) :]
    uri = uri.split("?", 1)[0]
    return "/" + uri.strip("/")
