"""HTTP front end for the content-addressed object store."""

from __future__ import annotations

import argparse
import sys

from .fnv import format_hex64, parse_hex64
from .httpcore import HttpServer, Request, Response
from .objstore import MAX_OBJ_SIZE, MAX_OBJECTS, ObjectStore, ObjectStoreFull

DEFAULT_PORT = 7880
MAX_REQUEST = 8192
_OBJ_PATH = b"/obj"
_OBJ_PREFIX = b"/obj/"
_NOT_FOUND_BODY = b"not found\n"
_INVALID_ID_BODY = b"invalid hex id\n"


class ObjStoreApp:
    """Routes HTTP requests to an object store."""

    def __init__(self, store: ObjectStore | None = None) -> None:
        self.store = store if store is not None else ObjectStore()

    def respond(self, request: Request) -> Response:
        method, path = request.method, request.path
        if method == b"GET" and path == b"/stats":
            return self._stats()
        if method == b"PUT" and path == _OBJ_PATH:
            return self._put(request.body)
        if method in (b"GET", b"DELETE") and path.startswith(_OBJ_PREFIX):
            route = f"{method.decode('ascii')} /obj/*"
            try:
                object_id = parse_hex64(path[len(_OBJ_PREFIX) :])
            except ValueError:
                return Response("400 Bad Request", _INVALID_ID_BODY, route=route)
            if method == b"GET":
                return self._get(object_id, route)
            return self._delete(object_id, route)
        return Response("404 Not Found", _NOT_FOUND_BODY)

    def _stats(self) -> Response:
        body = b"tiny-objstore\nobjects: %d\nbytes: %d\ncapacity: %d\n" % (
            len(self.store),
            self.store.total_bytes(),
            MAX_OBJECTS,
        )
        return Response("200 OK", body, route="GET /stats")

    def _put(self, body: bytes) -> Response:
        data = bytes(body[:MAX_OBJ_SIZE])
        try:
            object_id, is_new = self.store.put(data)
        except ObjectStoreFull:
            return Response("507 Insufficient Storage", b"store full\n", route="PUT /obj")
        label = b"stored" if is_new else b"exists"
        text = b"%s\nid=%s\nsize=%d\n" % (
            label,
            format_hex64(object_id).encode("ascii"),
            len(data),
        )
        return Response("200 OK", text, route="PUT /obj")

    def _get(self, object_id: int, route: str) -> Response:
        data = self.store.get(object_id)
        if data is None:
            return Response("404 Not Found", _NOT_FOUND_BODY, route=route)
        return Response("200 OK", data, content_type="application/octet-stream", route=route)

    def _delete(self, object_id: int, route: str) -> Response:
        try:
            self.store.delete(object_id)
        except KeyError:
            return Response("404 Not Found", _NOT_FOUND_BODY, route=route)
        body = b"deleted " + format_hex64(object_id).encode("ascii") + b"\n"
        return Response("200 OK", body, route=route)

    __call__ = respond


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="tiny-objstore", description="Tiny object store server.")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    app = ObjStoreApp()
    server = HttpServer(
        "tiny-objstore",
        args.port,
        app.respond,
        max_request=MAX_REQUEST,
        max_body=MAX_OBJ_SIZE,
    )
    try:
        server.serve_forever()
    except (OSError, OverflowError) as exc:
        print(f"tiny-objstore: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0