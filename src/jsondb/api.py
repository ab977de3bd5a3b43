"""Request/response boundary for JsonDB.

handle_request() maps an action name plus arguments onto JsonDB calls and
returns (http_status, body). serve() exposes it over HTTP:

    GET  /api?action=list
    POST /api?action=insert&collection=users      {"name": "John Doe"}
    POST /api?action=find&collection=users        {"age": {"$gt": 25}}
    POST /api?action=update&collection=users      {"query": {...}, "update": {"$set": {...}}}
    POST /api?action=delete&collection=users      {"age": {"$lt": 18}}
    GET  /api?action=drop&collection=users

Every body is JSON: {"success": true, ...} or {"success": false, "error": msg}.
"""

from __future__ import annotations

import json
import logging
import socketserver
import sys
import urllib.parse
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import TYPE_CHECKING, Any

from jsondb.errors import JsonDBError, PersistenceError

if TYPE_CHECKING:
    from jsondb.engine import JsonDB

logger = logging.getLogger("jsondb.api")

ACTIONS = ("ping", "list", "create", "insert", "find", "update", "delete", "drop")

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Requested-With",
}


class RequestError(JsonDBError):
    """Malformed request: missing collection, bad action."""


def _require_collection(collection: str) -> str:
    if not collection:
        msg = "Collection name required"
        raise RequestError(msg)
    return collection


def _dispatch(db: JsonDB, action: str, collection: str, payload: dict[str, Any]) -> dict[str, Any]:
    if action == "ping":
        return {"message": "API is online", "python": sys.version.split()[0]}
    if action == "list":
        return {"data": sorted(db.list_collections())}
    if action == "create":
        db.create_collection(_require_collection(collection))
        return {"message": f"Created {collection}"}
    if action == "insert":
        return {"data": db.insert(_require_collection(collection), payload)}
    if action == "find":
        return {"data": db.find(_require_collection(collection), payload)}
    if action == "update":
        query = payload.get("query") or {}
        update = payload.get("update") or {}
        return {"modified": db.update(collection, query, update)}
    if action == "delete":
        return {"deleted": db.delete(collection, payload)}
    if action == "drop":
        return {"dropped": db.drop_collection(collection)}
    msg = f"Invalid action: {action}"
    raise RequestError(msg)


def handle_request(
    db: JsonDB,
    action: str,
    collection: str = "",
    payload: Any = None,
) -> tuple[int, dict[str, Any]]:
    """Run one action. Never raises; errors come back as {"success": false}."""
    if not isinstance(payload, dict):
        payload = {}
    try:
        result = _dispatch(db, action or "ping", collection or "", payload)
    except PersistenceError as exc:
        logger.error("%s %s failed: %s", action, collection, exc)
        return 500, {"success": False, "error": str(exc)}
    except JsonDBError as exc:
        return 400, {"success": False, "error": str(exc)}
    except Exception as exc:
        logger.exception("%s %s crashed", action, collection)
        return 500, {"success": False, "error": f"Internal error: {exc}"}
    return 200, {"success": True, **result}


# ─── HTTP handler ─────────────────────────────────────────────────────────────

class _Handler(BaseHTTPRequestHandler):
    db: JsonDB  # injected via make_handler()

    def do_OPTIONS(self) -> None:
        self.send_response(204)
        self._cors()
        self.end_headers()

    def do_GET(self) -> None:
        self._api(payload=None)

    def do_POST(self) -> None:
        length = self._content_length()
        raw = self.rfile.read(length).decode(errors="replace") if length else ""
        try:
            payload = json.loads(raw) if raw else None
        except json.JSONDecodeError:
            payload = None
        self._api(payload)

    def _content_length(self) -> int:
        try:
            length = int(self.headers.get("Content-Length", 0))
        except ValueError:
            return 0
        return max(length, 0)

    def _api(self, payload: Any) -> None:
        parsed = urllib.parse.urlparse(self.path)
        if parsed.path.rstrip("/") not in ("", "/api"):
            self._json(404, {"success": False, "error": f"Not found: {parsed.path}"})
            return
        qs = urllib.parse.parse_qs(parsed.query)
        action = qs.get("action", ["ping"])[0]
        collection = qs.get("collection", [""])[0]
        status, body = handle_request(self.db, action, collection, payload)
        self._json(status, body)

    def _cors(self) -> None:
        for key, value in _CORS_HEADERS.items():
            self.send_header(key, value)

    def _json(self, status: int, body: dict[str, Any]) -> None:
        encoded = json.dumps(body).encode()
        self.send_response(status)
        self._cors()
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)


class ThreadingHTTPServer(socketserver.ThreadingMixIn, HTTPServer):
    daemon_threads = True


def make_handler(db: JsonDB) -> type[_Handler]:
    class _Bound(_Handler):
        pass
    _Bound.db = db
    return _Bound


def make_server(db: JsonDB, host: str, port: int) -> ThreadingHTTPServer:
    return ThreadingHTTPServer((host, port), make_handler(db))


def serve(db: JsonDB, host: str, port: int) -> None:
    """Start the JSON API (blocking until Ctrl+C)."""
    server = make_server(db, host, port)
    logger.info("serving %s on http://%s:%d/api", db.store.data_dir, host, port)
    print(f"jsondb api  →  http://{host}:{port}/api  (Ctrl+C to stop)")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
