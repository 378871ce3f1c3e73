# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "regmux[server]",
# ]
#
# [tool.uv.sources]
# regmux = { path = "../", editable = true }
# ///
"""WSGI server demo.

Fully functional web server using Granian + regmux Router.

    curl localhost:8000/user/
    curl -X POST localhost:8000/user/ -d '{"name": "ada"}'
    curl -X POST localhost:8000/user/1 -d '{"name": "grace"}' \
        -H 'X-HTTP-Method-Override: PATCH'
"""

import json
import logging
import sqlite3
from json.decoder import JSONDecodeError

from granian import Granian
from granian.constants import Interfaces

from regmux import Router
from regmux.wsgi import WSGIApp, request_environ, response

ADDRESS = "127.0.0.1"
PORT = 8000

_db = sqlite3.connect(":memory:", check_same_thread=False)
_db.cursor().executescript("""
CREATE TABLE IF NOT EXISTS user (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS product (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL
);
""")


def build_router() -> Router:
    router = Router(not_found_handler=not_found)
    router.before_all("/.*", log_request)
    router.get("/", home)
    router.mount("/user", user_routes(_db))
    router.mount("/product", product_routes(_db))
    return router


def log_request() -> None:
    environ = request_environ()
    logging.getLogger("server").info(
        "%s %s", environ["REQUEST_METHOD"], environ.get("PATH_INFO", "")
    )


def not_found() -> None:
    _text(404, "Not found")


def home() -> None:
    _text(200, "Welcome home")


def user_routes(db: sqlite3.Connection):  # noqa: ANN201
    def register(router: Router) -> None:
        router.get("/", get_users(db))
        router.get(r"/(\d+)", get_user(db))
        router.post("/", create_user(db))
        router.patch(r"/(\d+)", update_user(db))

    return register


# closure over handler to inject dependencies
def get_users(db: sqlite3.Connection):  # noqa: ANN201
    def handler() -> None:
        cur = db.cursor()
        cur.execute("SELECT * FROM user")
        _json(200, [{"id": row[0], "name": row[1]} for row in cur.fetchall()])

    return handler


def get_user(db: sqlite3.Connection):  # noqa: ANN201
    def handler(user_id: str) -> None:
        cur = db.cursor()
        cur.execute("SELECT * FROM user WHERE id = ?", (int(user_id),))
        result = cur.fetchone()
        if result is None:
            _text(404, "Not found")
            return
        _json(200, {"id": result[0], "name": result[1]})

    return handler


def create_user(db: sqlite3.Connection):  # noqa: ANN201
    def handler() -> None:
        name = _read_name()
        if name is None:
            return
        cur = db.cursor()
        cur.execute("INSERT INTO user (name) VALUES (?) RETURNING *", (name,))
        result = cur.fetchone()
        _json(201, {"id": result[0], "name": result[1]})

    return handler


def update_user(db: sqlite3.Connection):  # noqa: ANN201
    def handler(user_id: str) -> None:
        name = _read_name()
        if name is None:
            return
        cur = db.cursor()
        cur.execute(
            "UPDATE user SET name = ? WHERE id = ? RETURNING *", (name, int(user_id))
        )
        result = cur.fetchone()
        if result is None:
            _text(404, "Not found")
            return
        _json(200, {"id": result[0], "name": result[1]})

    return handler


def product_routes(db: sqlite3.Connection):  # noqa: ANN201
    def register(router: Router) -> None:
        router.get("/", get_products(db))
        router.get("/{id}", get_product(db))

    return register


def get_products(db: sqlite3.Connection):  # noqa: ANN201
    def handler() -> None:
        cur = db.cursor()
        cur.execute("SELECT * FROM product")
        _json(200, [{"id": row[0], "name": row[1]} for row in cur.fetchall()])

    return handler


def get_product(db: sqlite3.Connection):  # noqa: ANN201
    def handler(product_id: str) -> None:
        try:
            product_id_int = int(product_id)
        except ValueError:
            _text(404, "Not found")
            return
        cur = db.cursor()
        cur.execute("SELECT * FROM product WHERE id = ?", (product_id_int,))
        result = cur.fetchone()
        if result is None:
            _text(404, "Not found")
            return
        _json(200, {"id": result[0], "name": result[1]})

    return handler


# --- helpers ---
def _read_name() -> str | None:
    environ = request_environ()
    length = int(environ.get("CONTENT_LENGTH") or 0)
    try:
        payload = json.loads(environ["wsgi.input"].read(length))
    except JSONDecodeError:
        _text(422, "Invalid json")
        return None
    try:
        return payload["name"]
    except KeyError:
        _text(422, "Missing name")
        return None


def _text(status: int, body: str) -> None:
    resp = response()
    resp.set_status(status)
    resp.add_header("Content-Type", "text/plain")
    resp.write(body)


def _json(status: int, payload: object) -> None:
    resp = response()
    resp.set_status(status)
    resp.add_header("Content-Type", "application/json")
    resp.write(json.dumps(payload))


app = WSGIApp(build_router())


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    Granian(
        "server:app",
        address=ADDRESS,
        port=PORT,
        interface=Interfaces.WSGI,
        log_access=True,
    ).serve()
