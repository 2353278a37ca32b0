import pytest

from smallwares.httpcore import Request
from smallwares.kv import (
    MAX_ENTRIES,
    MAX_KEY_LEN,
    MAX_LOAD,
    MAX_VAL_LEN,
    KvApp,
    KvStore,
    StoreFull,
)


def _fill(store, count):
    for n in range(count):
        store.put(b"k%d" % n, b"v%d" % n)


def test_put_then_get_returns_value():
    store = KvStore()
    store.put(b"alpha", b"one")
    assert store.get(b"alpha") == b"one"
    assert len(store) == 1


def test_get_missing_returns_none():
    assert KvStore().get(b"nothing") is None


def test_put_updates_in_place():
    store = KvStore()
    store.put(b"alpha", b"one")
    store.put(b"alpha", b"two")
    assert store.get(b"alpha") == b"two"
    assert len(store) == 1


def test_value_truncated_to_limit():
    store = KvStore()
    store.put(b"big", b"x" * (MAX_VAL_LEN + 50))
    assert store.get(b"big") == b"x" * MAX_VAL_LEN


def test_delete_removes_and_missing_raises():
    store = KvStore()
    store.put(b"alpha", b"one")
    store.delete(b"alpha")
    assert store.get(b"alpha") is None
    assert len(store) == 0
    with pytest.raises(KeyError):
        store.delete(b"alpha")


@pytest.mark.parametrize("key", [b"", b"k" * (MAX_KEY_LEN + 1)])
def test_invalid_key_rejected(key):
    with pytest.raises(ValueError):
        KvStore().put(key, b"v")


def test_store_full_at_load_limit():
    store = KvStore()
    _fill(store, MAX_LOAD)
    assert len(store) == MAX_LOAD
    with pytest.raises(StoreFull):
        store.put(b"extra", b"v")


def test_update_also_fails_when_full():
    store = KvStore()
    _fill(store, MAX_LOAD)
    with pytest.raises(StoreFull):
        store.put(b"k0", b"changed")
    assert store.get(b"k0") == b"v0"


def test_delete_makes_room_again():
    store = KvStore()
    _fill(store, MAX_LOAD)
    store.delete(b"k5")
    store.put(b"fresh", b"value")
    assert store.get(b"fresh") == b"value"


def test_stats_response():
    app = KvApp()
    app.store.put(b"a", b"1")
    response = app.respond(Request(b"GET", b"/stats"))
    assert response.status == "200 OK"
    assert response.body == b"tiny-kv\ncount: 1\ncapacity: %d\n" % MAX_ENTRIES
    assert response.route == "GET /stats"


def test_put_get_delete_cycle_over_http():
    app = KvApp()
    put = app.respond(Request(b"PUT", b"/key/color", body=b"blue"))
    assert put.status == "200 OK"
    assert put.body == b"stored color\n"
    assert put.route == "PUT /key/*"

    got = app.respond(Request(b"GET", b"/key/color"))
    assert got.body == b"blue"
    assert got.content_type == "application/octet-stream"
    assert got.route == "GET /key/*"

    deleted = app.respond(Request(b"DELETE", b"/key/color"))
    assert deleted.body == b"deleted color\n"
    assert deleted.route == "DELETE /key/*"

    missing = app.respond(Request(b"GET", b"/key/color"))
    assert missing.status == "404 Not Found"
    assert missing.body == b"not found\n"


def test_delete_missing_is_404():
    response = KvApp().respond(Request(b"DELETE", b"/key/ghost"))
    assert response.status == "404 Not Found"
    assert response.route == "DELETE /key/*"


@pytest.mark.parametrize("method", [b"GET", b"PUT", b"DELETE"])
@pytest.mark.parametrize("key", [b"", b"k" * (MAX_KEY_LEN + 1)])
def test_invalid_key_over_http(method, key):
    response = KvApp().respond(Request(method, b"/key/" + key, body=b"v"))
    assert response.status == "400 Bad Request"
    assert response.body == b"invalid key\n"
    assert response.route == f"{method.decode()} /key/"


def test_put_when_full_is_507():
    app = KvApp()
    _fill(app.store, MAX_LOAD)
    response = app.respond(Request(b"PUT", b"/key/more", body=b"v"))
    assert response.status == "507 Insufficient Storage"
    assert response.body == b"store full\n"


@pytest.mark.parametrize(
    "method,path", [(b"GET", b"/"), (b"POST", b"/key/a"), (b"GET", b"/keys")]
)
def test_unknown_route_is_404(method, path):
    response = KvApp().respond(Request(method, path))
    assert response.status == "404 Not Found"
    assert response.route == "?"


def test_response_wire_bytes():
    app = KvApp()
    app.store.put(b"x", b"hi")
    wire = app.respond(Request(b"GET", b"/key/x")).to_bytes()
    assert wire == (
        b"HTTP/1.1 200 OK\r\nContent-Type: application/octet-stream\r\n"
        b"Connection: close\r\nContent-Length: 2\r\n\r\nhi"
    )