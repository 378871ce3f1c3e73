"""Ordered, method-keyed route storage.

Insertion order is match priority: the first registered primary route that
matches a request wins.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from regmux.handlers import HandlerRef, NamedMethodReference

SUPPORTED_METHODS: tuple[str, ...] = (
    "GET",
    "POST",
    "PUT",
    "DELETE",
    "OPTIONS",
    "PATCH",
    "HEAD",
)


@dataclass(frozen=True, slots=True)
class RouteEntry:
    pattern: str
    handler: HandlerRef


def normalize_methods(methods: str | Iterable[str]) -> tuple[str, ...]:
    """Upper-case a single method or a collection of methods."""
    if isinstance(methods, str):
        methods = (methods,)
    return tuple(method.upper() for method in methods)


class RouteTable:
    __slots__ = ("_routes",)
    _routes: dict[str, list[RouteEntry]]

    def __init__(self) -> None:
        self._routes = {}

    def add(
        self, methods: str | Iterable[str], pattern: str, handler: HandlerRef
    ) -> None:
        """Append one entry per method, preserving registration order."""
        for method in normalize_methods(methods):
            self._routes.setdefault(method, []).append(RouteEntry(pattern, handler))

    def entries(self, method: str) -> tuple[RouteEntry, ...]:
        return tuple(self._routes.get(method, ()))

    def methods(self) -> tuple[str, ...]:
        return tuple(self._routes)

    def __iter__(self) -> Iterator[tuple[str, RouteEntry]]:
        for method, entries in self._routes.items():
            for entry in entries:
                yield method, entry

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._routes.values())


def format_routes(routes: RouteTable, before: RouteTable | None = None) -> str:
    """Format registered routes as a column-aligned list, in match order.

        GET    /                 home
        GET    /users/{id}       show_user
        POST   /users            app.controllers.UserController@create

    Before routes, when given, are listed first under a ``before`` marker
    column:

        before   GET    /admin/.*    require_login
    """
    rows: list[tuple[str, str, str, str]] = []
    if before is not None:
        rows.extend(
            ("before", m, e.pattern, _handler_name(e.handler)) for m, e in before
        )
    rows.extend(("", m, e.pattern, _handler_name(e.handler)) for m, e in routes)
    if not rows:
        return ""

    kind_w = max(len(r[0]) for r in rows)
    method_w = max(len(r[1]) for r in rows)
    path_w = max(len(r[2]) for r in rows)

    lines: list[str] = []
    for kind, method, path, handler in rows:
        line = f"{method:<{method_w}}   {path:<{path_w}}   {handler}"
        if kind_w:
            line = f"{kind:<{kind_w}}   {line}"
        lines.append(line)
    return "\n".join(lines)


def _handler_name(handler: HandlerRef) -> str:
    if isinstance(handler, NamedMethodReference):
        return str(handler)
    if hasattr(handler, "__qualname__"):
        return str(handler.__qualname__)
    return repr(handler)
