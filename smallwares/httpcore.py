"""Minimal one-request-per-connection HTTP/1.1 server plumbing."""

from __future__ import annotations

import re
import socket
import sys
from dataclasses import dataclass, replace
from typing import Callable, TextIO

_HEADER_END = b"\r\n\r\n"
_CONTENT_LENGTH = b"content-length: "
_DIGITS = re.compile(rb"[0-9]*")
BAD_REQUEST = b"HTTP/1.1 400 Bad Request\r\n\r\n"


def find_header_end(data: bytes) -> int | None:
    """Index just past the blank line ending the headers, or None."""
    index = bytes(data).find(_HEADER_END)
    return None if index < 0 else index + len(_HEADER_END)


def parse_content_length(data: bytes, header_end: int) -> int:
    """The Content-Length value in the headers, or 0 when absent."""
    head = bytes(data[:header_end]).lower()
    index = head.find(_CONTENT_LENGTH)
    if index < 0 or index + len(_CONTENT_LENGTH) >= header_end:
        return 0
    match = _DIGITS.match(head, index + len(_CONTENT_LENGTH))
    digits = match.group() if match else b""
    return int(digits) if digits else 0


@dataclass(frozen=True)
class Request:
    """A parsed request: method, path and whatever body has been read."""

    method: bytes
    path: bytes
    content_length: int = 0
    body: bytes = b""


@dataclass(frozen=True)
class Response:
    """A response and the route label it is logged under."""

    status: str
    body: bytes = b""
    content_type: str = "text/plain"
    route: str = "?"

    def to_bytes(self) -> bytes:
        head = (
            f"HTTP/1.1 {self.status}\r\n"
            f"Content-Type: {self.content_type}\r\n"
            f"Connection: close\r\n"
            f"Content-Length: {len(self.body)}\r\n\r\n"
        )
        return head.encode("latin-1") + self.body


def parse_request(data: bytes) -> Request:
    """Parse a buffer holding at least the complete request headers."""
    data = bytes(data)
    header_end = find_header_end(data)
    if header_end is None:
        raise ValueError("incomplete request headers")
    method, _, rest = data.partition(b" ")
    path = rest.partition(b" ")[0]
    return Request(
        method=method,
        path=path,
        content_length=parse_content_length(data, header_end),
        body=data[header_end:],
    )


def format_log(count: int, route: str, status: str) -> str:
    """The log line written for the ``count``-th request."""
    return f"[#{count}] {route} -> {status}\n"


class HttpServer:
    """Serves one request per connection, one connection at a time."""

    def __init__(
        self,
        name: str,
        port: int,
        app: Callable[[Request], Response],
        max_request: int = 4096,
        max_body: int = 256,
        out: TextIO | None = None,
    ) -> None:
        self.name = name
        self.port = port
        self.app = app
        self.max_request = max_request
        self.max_body = max_body
        self.out = out if out is not None else sys.stdout
        self.request_count = 0

    def _write(self, text: str) -> None:
        self.out.write(text)
        self.out.flush()

    def handle(self, conn: socket.socket) -> Response | None:
        """Read one request from ``conn``, answer it and log it."""
        self.request_count += 1
        buffer = bytearray()
        while len(buffer) < self.max_request:
            chunk = conn.recv(self.max_request - len(buffer))
            if not chunk:
                break
            buffer += chunk
            if find_header_end(buffer) is not None:
                break
        data = bytes(buffer)
        if find_header_end(data) is None:
            conn.sendall(BAD_REQUEST)
            return None

        request = parse_request(data)
        body = request.body[: self.max_body]
        wanted = min(request.content_length, self.max_body)
        while len(body) < wanted:
            chunk = conn.recv(wanted - len(body))
            if not chunk:
                break
            body += chunk
        request = replace(request, body=body)

        response = self.app(request)
        conn.sendall(response.to_bytes())
        self._write(
            format_log(self.request_count, response.route, response.status.split(" ", 1)[0])
        )
        return response

    def serve_forever(self) -> None:
        """Listen on the configured port and serve requests until interrupted."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind(("", self.port))
            listener.listen(16)
            self._write(f"{self.name} listening on port {self.port}\n")
            while True:
                try:
                    conn, _ = listener.accept()
                except (InterruptedError, ConnectionAbortedError):
                    continue
                with conn:
                    try:
                        self.handle(conn)
                    except OSError:
                        pass