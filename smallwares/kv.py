"""A bounded in-memory key-value store served over HTTP."""

from __future__ import annotations

import argparse
import sys

from .httpcore import HttpServer, Request, Response

DEFAULT_PORT = 7879
MAX_ENTRIES = 256
MAX_LOAD = MAX_ENTRIES * 3 // 4
MAX_KEY_LEN = 64
MAX_VAL_LEN = 256
MAX_REQUEST = 4096
_KEY_PREFIX = b"/key/"


class StoreFull(Exception):
    """Raised when a store already holds as many entries as it allows."""


def _check_key(key: bytes) -> bytes:
    key = bytes(key)
    if not 1 <= len(key) <= MAX_KEY_LEN:
        raise ValueError(f"key must be 1 to {MAX_KEY_LEN} bytes, got {len(key)}")
    return key


class KvStore:
    """Byte-string keys mapped to byte-string values, filled to 75% at most."""

    def __init__(self) -> None:
        self._entries: dict[bytes, bytes] = {}

    @property
    def capacity(self) -> int:
        """The number of slots the store is sized for."""
        return MAX_ENTRIES

    def get(self, key: bytes) -> bytes | None:
        """The value stored under ``key``, or None."""
        return self._entries.get(bytes(key))

    def put(self, key: bytes, value: bytes) -> None:
        """Store ``value`` (truncated to 256 bytes) under ``key``.

        Once the store holds its maximum load, every put fails, updates included.
        """
        key = _check_key(key)
        if len(self._entries) >= MAX_LOAD:
            raise StoreFull("store full")
        self._entries[key] = bytes(value[:MAX_VAL_LEN])

    def delete(self, key: bytes) -> None:
        """Remove ``key``; raises KeyError when it is absent."""
        key = bytes(key)
        try:
            del self._entries[key]
        except KeyError:
            raise KeyError(key) from None

    def __len__(self) -> int:
        return len(self._entries)


_NOT_FOUND_BODY = b"not found\n"


class KvApp:
    """Routes HTTP requests to a key-value store."""

    def __init__(self, store: KvStore | None = None) -> None:
        self.store = store if store is not None else KvStore()

    def respond(self, request: Request) -> Response:
        method, path = request.method, request.path
        if method == b"GET" and path == b"/stats":
            body = b"tiny-kv\ncount: %d\ncapacity: %d\n" % (len(self.store), MAX_ENTRIES)
            return Response("200 OK", body, route="GET /stats")
        if method in (b"GET", b"PUT", b"DELETE") and path.startswith(_KEY_PREFIX):
            label = method.decode("ascii")
            key = path[len(_KEY_PREFIX) :]
            if not 1 <= len(key) <= MAX_KEY_LEN:
                return Response("400 Bad Request", b"invalid key\n", route=f"{label} /key/")
            route = f"{label} /key/*"
            if method == b"GET":
                return self._get(key, route)
            if method == b"PUT":
                return self._put(key, request.body, route)
            return self._delete(key, route)
        return Response("404 Not Found", _NOT_FOUND_BODY)

    def _get(self, key: bytes, route: str) -> Response:
        value = self.store.get(key)
        if value is None:
            return Response("404 Not Found", _NOT_FOUND_BODY, route=route)
        return Response("200 OK", value, content_type="application/octet-stream", route=route)

    def _put(self, key: bytes, body: bytes, route: str) -> Response:
        try:
            self.store.put(key, body[:MAX_VAL_LEN])
        except StoreFull:
            return Response("507 Insufficient Storage", b"store full\n", route=route)
        return Response("200 OK", b"stored " + key + b"\n", route=route)

    def _delete(self, key: bytes, route: str) -> Response:
        try:
            self.store.delete(key)
        except KeyError:
            return Response("404 Not Found", _NOT_FOUND_BODY, route=route)
        return Response("200 OK", b"deleted " + key + b"\n", route=route)

    __call__ = respond


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="tiny-kv", description="Tiny key-value server.")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    app = KvApp()
    server = HttpServer(
        "tiny-kv",
        args.port,
        app.respond,
        max_request=MAX_REQUEST,
        max_body=MAX_VAL_LEN,
    )
    try:
        server.serve_forever()
    except (OSError, OverflowError) as exc:
        print(f"tiny-kv: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0