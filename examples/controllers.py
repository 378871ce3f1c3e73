"""Named handler demo.

Routes point at "Controller@method" strings that are resolved when the route
fires, either through imports (the default) or an explicit registry.

    python controllers.py
"""

import logging
from wsgiref.simple_server import make_server

from regmux import MappingRegistry, Router
from regmux.wsgi import WSGIApp, response

ADDRESS = "127.0.0.1"
PORT = 8000


class PageController:
    def show(self, slug: str) -> None:
        response().write(f"page {slug}")

    @staticmethod
    def index() -> None:
        response().write("all pages")


class ErrorController:
    @classmethod
    def not_found(cls) -> None:
        response().set_status(404)
        response().write("nothing here")


registry = MappingRegistry(
    {"site.PageController": PageController, "site.ErrorController": ErrorController}
)

router = Router(namespace="site", registry=registry)
router.set_404("ErrorController@not_found")
router.get("/pages", "PageController@index")
router.get("/pages/{slug}", "PageController@show")

app = WSGIApp(router)


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    print(router.format_routes())
    with make_server(ADDRESS, PORT, app) as server:
        server.serve_forever()
