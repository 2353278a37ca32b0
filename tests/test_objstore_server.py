import io
import socket

import pytest

from smallwares.fnv import fnv1a_64, format_hex64
from smallwares.httpcore import HttpServer, Request
from smallwares.objstore import MAX_OBJECTS, ObjectStore
from smallwares.objstore_server import ObjStoreApp


def _put(app, data):
    return app.respond(Request(b"PUT", b"/obj", len(data), data))


def _hex(data):
    return format_hex64(fnv1a_64(data)).encode("ascii")


def test_stats_on_empty_store():
    response = ObjStoreApp().respond(Request(b"GET", b"/stats"))
    assert response.status == "200 OK"
    assert response.body == b"tiny-objstore\nobjects: 0\nbytes: 0\ncapacity: 64\n"
    assert response.route == "GET /stats"


def test_put_empty_object_uses_fnv_offset_as_id():
    response = _put(ObjStoreApp(), b"")
    assert response.body == b"stored\nid=cbf29ce484222325\nsize=0\n"


def test_put_then_duplicate_reports_exists():
    app = ObjStoreApp()
    first = _put(app, b"payload")
    second = _put(app, b"payload")
    assert first.body == b"stored\nid=" + _hex(b"payload") + b"\nsize=7\n"
    assert second.body == b"exists\nid=" + _hex(b"payload") + b"\nsize=7\n"
    assert len(app.store) == 1


def test_stats_after_puts():
    app = ObjStoreApp()
    _put(app, b"abc")
    _put(app, b"defgh")
    response = app.respond(Request(b"GET", b"/stats"))
    assert response.body == b"tiny-objstore\nobjects: 2\nbytes: 8\ncapacity: 64\n"


def test_get_returns_stored_bytes():
    app = ObjStoreApp()
    _put(app, b"\x00\x01binary")
    response = app.respond(Request(b"GET", b"/obj/" + _hex(b"\x00\x01binary")))
    assert response.status == "200 OK"
    assert response.body == b"\x00\x01binary"
    assert response.content_type == "application/octet-stream"
    assert response.route == "GET /obj/*"


def test_get_accepts_upper_case_hex():
    app = ObjStoreApp()
    _put(app, b"data")
    response = app.respond(Request(b"GET", b"/obj/" + _hex(b"data").upper()))
    assert response.body == b"data"


def test_get_missing_object():
    response = ObjStoreApp().respond(Request(b"GET", b"/obj/" + _hex(b"nothing")))
    assert response.status == "404 Not Found"
    assert response.body == b"not found\n"
    assert response.route == "GET /obj/*"


@pytest.mark.parametrize("object_id", [b"", b"abc", b"zzzzzzzzzzzzzzzz", b"0123456789abcdef0"])
@pytest.mark.parametrize("method", [b"GET", b"DELETE"])
def test_invalid_hex_id(method, object_id):
    response = ObjStoreApp().respond(Request(method, b"/obj/" + object_id))
    assert response.status == "400 Bad Request"
    assert response.body == b"invalid hex id\n"
    assert response.route == method.decode() + " /obj/*"


def test_delete_removes_object():
    app = ObjStoreApp()
    _put(app, b"gone")
    response = app.respond(Request(b"DELETE", b"/obj/" + _hex(b"gone")))
    assert response.body == b"deleted " + _hex(b"gone") + b"\n"
    assert app.respond(Request(b"GET", b"/obj/" + _hex(b"gone"))).status == "404 Not Found"
    again = app.respond(Request(b"DELETE", b"/obj/" + _hex(b"gone")))
    assert again.status == "404 Not Found"
    assert again.route == "DELETE /obj/*"


def test_full_store_rejects_new_objects_but_accepts_duplicates():
    app = ObjStoreApp(ObjectStore())
    for i in range(MAX_OBJECTS):
        assert _put(app, b"obj%d" % i).status == "200 OK"
    full = _put(app, b"one more")
    assert full.status == "507 Insufficient Storage"
    assert full.body == b"store full\n"
    assert _put(app, b"obj0").body.startswith(b"exists\n")


def test_put_truncates_large_body():
    app = ObjStoreApp()
    response = _put(app, b"x" * 5000)
    assert response.body.endswith(b"\nsize=4096\n")
    assert app.store.total_bytes() == 4096


@pytest.mark.parametrize(
    "method,path",
    [(b"GET", b"/"), (b"GET", b"/obj"), (b"POST", b"/obj"), (b"PUT", b"/obj/x")],
)
def test_unknown_routes(method, path):
    response = ObjStoreApp().respond(Request(method, path))
    assert response.status == "404 Not Found"
    assert response.route == "?"


def test_server_handles_put_over_socket():
    app = ObjStoreApp()
    out = io.StringIO()
    server = HttpServer(
        "tiny-objstore", 0, app.respond, max_request=8192, max_body=4096, out=out
    )
    client, conn = socket.socketpair()
    with client, conn:
        client.sendall(b"PUT /obj HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello")
        response = server.handle(conn)
        reply = client.recv(4096)
    assert response.status == "200 OK"
    assert app.store.get(fnv1a_64(b"hello")) == b"hello"
    assert reply.startswith(b"HTTP/1.1 200 OK\r\n")
    assert out.getvalue() == "[#1] PUT /obj -> 200\n"