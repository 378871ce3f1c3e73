# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "regmux[otel]",
#     "opentelemetry-sdk>=1.27.0,<2.0.0",
# ]
#
# [tool.uv.sources]
# regmux = { path = "../", editable = true }
# ///
"""WSGI OpenTelemetry tracing middleware demo.

Shows usage of otel middleware with an in-memory exporter so traces can be
printed to the console without needing an external collector or server.
"""

import logging
import sys
from wsgiref.util import setup_testing_defaults

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from regmux import Router
from regmux.middleware.otel import otel
from regmux.wsgi import WSGIApp, response


# --- handlers ---
def hello() -> None:
    response().write("hello world")


def greet(name: str) -> None:
    response().write(f"hello {name}")


def not_found() -> None:
    response().set_status(404)
    response().write("not found")


# --- app setup ---
exporter = InMemorySpanExporter()
provider = TracerProvider()
provider.add_span_processor(SimpleSpanProcessor(exporter))

router = Router(not_found_handler=not_found)
router.get("/", hello)
router.get("/greet/{name}", greet)

app = otel(tracer_provider=provider)(WSGIApp(router))


# --- run ---
def request(method: str, path: str) -> None:
    environ: dict[str, object] = {"REQUEST_METHOD": method, "PATH_INFO": path}
    setup_testing_defaults(environ)

    def start_response(status, headers, exc_info=None):  # noqa: ANN001, ANN202
        print(f"{method} {path} -> {status}")
        return sys.stdout.buffer.write

    b"".join(app(environ, start_response))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    request("GET", "/")
    request("GET", "/greet/world")
    request("HEAD", "/greet/head")
    request("GET", "/missing")

    for span in exporter.get_finished_spans():
        attrs = dict(span.attributes or {})
        print(f"{span.name:<24} {attrs.get('http.response.status_code')}  {attrs}")
    provider.shutdown()


if __name__ == "__main__":
    main()
