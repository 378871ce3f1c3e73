"""Regex-pattern HTTP router with before middleware and mountable prefixes.

Routes are registered once at startup; dispatch only reads the route tables,
so a built router can serve concurrent requests.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Protocol

from regmux import pattern as _pattern
from regmux.errors import HandlerResolutionError
from regmux.handlers import (
    Handler,
    HandlerRef,
    ImportRegistry,
    TypeRegistry,
    parse_handler,
    resolve,
)
from regmux.request import Request, derive_base_path, resolve_method, resolve_uri
from regmux.table import SUPPORTED_METHODS, RouteEntry, RouteTable, format_routes

logger = logging.getLogger(__name__)

path_params: ContextVar[tuple[str | None, ...]] = ContextVar("path_params")
http_route: ContextVar[str] = ContextVar("http_route")


class Transport(Protocol):
    """What the router needs from the server side of a request."""

    def begin_capture(self) -> None:
        """Start capturing body output (HEAD requests)."""
        ...

    def discard_capture(self) -> None:
        """Drop body output captured since begin_capture."""
        ...

    def not_found(self, protocol: str) -> None:
        """Emit a plain 404 status line for the given protocol."""
        ...

    def route_matched(self, pattern: str, params: tuple[str | None, ...]) -> None:
        """Called with the primary route chosen for the request."""
        ...


class Router:
    __slots__ = (
        "_base_path",
        "_before_routes",
        "_namespace",
        "_not_found_handler",
        "_prefixes",
        "_registry",
        "_routes",
        "_strict",
    )
    _routes: RouteTable
    _before_routes: RouteTable
    _prefixes: list[str]
    _not_found_handler: HandlerRef | None

    def __init__(
        self,
        *,
        namespace: str = "",
        base_path: str | None = None,
        registry: TypeRegistry | None = None,
        not_found_handler: Handler | None = None,
        strict: bool = True,
    ) -> None:
        self._routes = RouteTable()
        self._before_routes = RouteTable()
        self._prefixes = []
        self._namespace = namespace
        self._base_path = base_path
        self._registry = registry if registry is not None else ImportRegistry()
        self._strict = strict
        self._not_found_handler = None
        if not_found_handler is not None:
            self.set_404(not_found_handler)

    # --- registration ---------------------------------------------------------
    @property
    def base_route(self) -> str:
        """Prefix currently applied to registered patterns by mount()."""
        return "".join(self._prefixes)

    def add(
        self, methods: str | Iterable[str], pattern: str, handler: Handler
    ) -> None:
        """Registers handler for pattern on each of methods."""
        self._routes.add(methods, *self._entry(pattern, handler))

    def before(
        self, methods: str | Iterable[str], pattern: str, handler: Handler
    ) -> None:
        """Registers before middleware for pattern on each of methods.

        Every matching before route runs, in registration order, ahead of the
        primary route.
        """
        self._before_routes.add(methods, *self._entry(pattern, handler))

    def before_all(self, pattern: str, handler: Handler) -> None:
        """Registers before middleware for pattern on every supported method."""
        self.before(SUPPORTED_METHODS, pattern, handler)

    def all(self, pattern: str, handler: Handler) -> None:
        """Registers handler for pattern on every supported method."""
        self.add(SUPPORTED_METHODS, pattern, handler)

    def get(self, pattern: str, handler: Handler) -> None:
        self.add("GET", pattern, handler)

    def post(self, pattern: str, handler: Handler) -> None:
        self.add("POST", pattern, handler)

    def put(self, pattern: str, handler: Handler) -> None:
        self.add("PUT", pattern, handler)

    def patch(self, pattern: str, handler: Handler) -> None:
        self.add("PATCH", pattern, handler)

    def delete(self, pattern: str, handler: Handler) -> None:
        self.add("DELETE", pattern, handler)

    def options(self, pattern: str, handler: Handler) -> None:
        self.add("OPTIONS", pattern, handler)

    def mount(self, prefix: str, register: Callable[[Router], object]) -> None:
        """Calls register with this router, prefixing everything it registers."""
        with self.group(prefix):
            register(self)

    @contextmanager
    def group(self, prefix: str) -> Iterator[Router]:
        """Context manager form of mount()."""
        self._prefixes.append(prefix)
        try:
            yield self
        finally:
            self._prefixes.pop()

    def set_404(self, handler: Handler) -> None:
        """Sets the handler called, without parameters, when nothing matches."""
        self._not_found_handler = parse_handler(handler, self._namespace)

    def set_namespace(self, namespace: str) -> None:
        """Sets the namespace prepended to 'Controller@method' handlers.

        Only affects handlers registered afterwards.
        """
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    def set_base_path(self, base_path: str | None) -> None:
        """Sets the base path stripped from request uris.

        None derives it from the request's script name.
        """
        self._base_path = base_path

    def base_path(self, request: Request) -> str:
        if self._base_path is not None:
            return self._base_path
        return derive_base_path(request.script_name)

    def format_routes(self) -> str:
        """Human-readable list of registered routes, in match order."""
        return format_routes(self._routes, self._before_routes)

    def _entry(self, pattern: str, handler: Handler) -> tuple[str, HandlerRef]:
        pattern = _pattern.normalize_pattern(pattern, self.base_route)
        _pattern.compile_pattern(pattern)  # fail fast on invalid patterns
        ref = parse_handler(handler, self._namespace)
        logger.debug("registered %s -> %r", pattern, ref)
        return pattern, ref

    # --- dispatch -------------------------------------------------------------
    def run(
        self,
        request: Request,
        finish: Handler | None = None,
        *,
        transport: Transport | None = None,
    ) -> bool:
        """Dispatches request, returning whether a primary route matched.

        All matching before routes run first, then the first matching primary
        route. If none matched the not-found handler runs, otherwise finish
        (if given) is called without parameters.
        """
        method = resolve_method(request)
        uri = resolve_uri(request.uri, self.base_path(request))
        is_head = request.method == "HEAD"
        if is_head and transport is not None:
            transport.begin_capture()
        try:
            self._handle(self._before_routes.entries(method), uri)
            num_handled = self._handle(
                self._routes.entries(method),
                uri,
                quit_after_run=True,
                transport=transport,
            )
            if num_handled == 0:
                self._handle_not_found(request, transport)
            elif finish is not None:
                self._invoke(parse_handler(finish, self._namespace), (), "")
        finally:
            if is_head and transport is not None:
                transport.discard_capture()
        return num_handled != 0

    def _handle(
        self,
        entries: Sequence[RouteEntry],
        uri: str,
        *,
        quit_after_run: bool = False,
        transport: Transport | None = None,
    ) -> int:
        """Runs matching entries in order, returning how many matched."""
        num_handled = 0
        for entry in entries:
            params = _pattern.match(entry.pattern, uri)
            if params is None:
                continue
            logger.debug("matched %s %s params=%r", uri, entry.pattern, params)
            if transport is not None and quit_after_run:
                transport.route_matched(entry.pattern, params)
            self._invoke(entry.handler, params, entry.pattern)
            num_handled += 1
            if quit_after_run:
                break
        return num_handled

    def _handle_not_found(self, request: Request, transport: Transport | None) -> None:
        if self._not_found_handler is not None:
            self._invoke(self._not_found_handler, (), "")
        elif transport is not None:
            transport.not_found(request.protocol)
        else:
            logger.debug("no route for %s %s", request.method, request.uri)

    def _invoke(
        self, handler: HandlerRef, params: tuple[str | None, ...], route: str
    ) -> None:
        try:
            target = resolve(handler, self._registry)
        except HandlerResolutionError:
            if self._strict:
                raise
            logger.warning(
                "skipping unresolvable handler for route %r", route, exc_info=True
            )
            return

        params_token = path_params.set(params)
        route_token = http_route.set(route)
        try:
            target(*params)
        finally:
            http_route.reset(route_token)
            path_params.reset(params_token)
