"""OpenTelemetry tracing and metrics middleware for WSGIApp.

Creates HTTP server spans and metrics with semantic conventions for each request.

Install with: pip install "regmux[otel]"
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from types import TracebackType
    from wsgiref.types import StartResponse, WSGIApplication, WSGIEnvironment

try:
    from opentelemetry import metrics, trace
    from opentelemetry.propagate import extract
    from opentelemetry.trace import (
        SpanKind,
        StatusCode,
        TracerProvider,
    )
except ImportError as e:
    msg = (
        "OpenTelemetry middleware requires the 'otel' extra. "
        "Install with: pip install 'regmux[otel]'"
    )
    raise ImportError(msg) from e

from regmux.wsgi import PARAMS_ENVIRON_KEY, ROUTE_ENVIRON_KEY, request_headers

_DURATION_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.075,
    0.1,
    0.25,
    0.5,
    0.75,
    1.0,
    2.5,
    5.0,
    7.5,
    10.0,
)


class _StatusRecorder:
    """Wraps start_response to capture the response status code for the span."""

    __slots__ = ("_start_response", "status")

    def __init__(self, start_response: StartResponse) -> None:
        self._start_response = start_response
        self.status: int | None = None

    def __call__(
        self,
        status: str,
        headers: list[tuple[str, str]],
        exc_info: tuple[type[BaseException], BaseException, TracebackType]
        | tuple[None, None, None]
        | None = None,
        /,
    ) -> Callable[[bytes], object]:
        self.status = int(status.split(" ", 1)[0])
        return self._start_response(status, headers, exc_info)


def otel(
    *,
    tracer_provider: TracerProvider | None = None,
    meter_provider: metrics.MeterProvider | None = None,
) -> Callable[[WSGIApplication], WSGIApplication]:
    """Create OpenTelemetry tracing and metrics middleware.

    Wraps a ``WSGIApp`` (or any WSGI app that sets ``regmux.route`` in the
    environ) and creates a server span per request, named after the matched
    route pattern.

    Extracts trace context from incoming request headers (e.g. ``traceparent``)
    for distributed tracing. Only depends on ``opentelemetry-api``; users bring
    their own SDK and exporters.

    Metrics emitted:
        - ``http.server.request.duration`` (histogram, seconds)
        - ``http.server.active_requests`` (up-down counter)

    Args:
        tracer_provider: Optional TracerProvider. If None, uses the global provider.
        meter_provider: Optional MeterProvider. If None, uses the global provider.

    Returns:
        Middleware function that wraps a WSGI app with tracing and metrics.

    Example:
        app = otel()(WSGIApp(router))
    """
    tracer = trace.get_tracer(
        "regmux",
        tracer_provider=tracer_provider,
    )
    meter = metrics.get_meter(
        "regmux",
        meter_provider=meter_provider,
    )
    duration_histogram = meter.create_histogram(
        "http.server.request.duration",
        unit="s",
        description="Duration of HTTP server requests.",
        explicit_bucket_boundaries_advisory=_DURATION_BUCKETS,
    )
    active_requests_counter = meter.create_up_down_counter(
        "http.server.active_requests",
        unit="{request}",
        description="Number of active HTTP server requests.",
    )

    def middleware(app: WSGIApplication) -> WSGIApplication:
        def traced_app(
            environ: WSGIEnvironment, start_response: StartResponse
        ) -> Iterable[bytes]:
            headers = {k.lower(): v for k, v in request_headers(environ).items()}

            # Extract propagated context from request headers
            ctx = extract(headers)

            method = environ.get("REQUEST_METHOD", "GET")
            scheme = environ.get("wsgi.url_scheme", "http")

            # Span attributes (stable HTTP semantic conventions)
            attributes: dict[str, str | int] = {
                "http.request.method": method,
                "url.path": environ.get("PATH_INFO", "") or "/",
                "url.scheme": scheme,
                "network.protocol.version": environ.get(
                    "SERVER_PROTOCOL", "HTTP/1.1"
                ).removeprefix("HTTP/"),
                "server.address": environ.get("SERVER_NAME", ""),
                "client.address": environ.get("REMOTE_ADDR", ""),
            }
            query = environ.get("QUERY_STRING", "")
            if query:
                attributes["url.query"] = query
            user_agent = headers.get("user-agent")
            if user_agent is not None:
                attributes["user_agent.original"] = user_agent

            active_attrs: dict[str, str | int] = {
                "http.request.method": method,
                "url.scheme": scheme,
            }

            active_requests_counter.add(1, active_attrs)
            start = time.perf_counter()

            with tracer.start_as_current_span(
                method,
                context=ctx,
                kind=SpanKind.SERVER,
                attributes=attributes,
                record_exception=True,
                set_status_on_exception=True,
            ) as span:
                recorder = _StatusRecorder(start_response)
                try:
                    result = app(environ, recorder)
                    try:
                        body = list(result)
                    finally:
                        close = getattr(result, "close", None)
                        if close is not None:
                            close()
                finally:
                    duration = time.perf_counter() - start
                    active_requests_counter.add(-1, active_attrs)
                    duration_attrs = dict(active_attrs)

                    # Matched route is only known once the router has run
                    route = environ.get(ROUTE_ENVIRON_KEY, "")
                    if route:
                        span.set_attribute("http.route", route)
                        span.update_name(f"{method} {route}")
                        duration_attrs["http.route"] = route
                    # not part of semantic conventions, but path params are useful
                    params = environ.get(PARAMS_ENVIRON_KEY, ())
                    for index, value in enumerate(params):
                        if value is not None:
                            span.set_attribute(f"http.route.param.{index}", value)

                    if recorder.status is not None:
                        span.set_attribute("http.response.status_code", recorder.status)
                        duration_attrs["http.response.status_code"] = recorder.status
                        if not route:
                            span.update_name(f"{method} {recorder.status}")
                        if recorder.status >= 500:
                            span.set_status(StatusCode.ERROR)
                    duration_histogram.record(duration, duration_attrs)
            return body

        return traced_app

    return middleware
