"""Protocol state machine for a minimal SMTP receiver."""

from __future__ import annotations

import enum
from dataclasses import dataclass

MAX_MSG_SIZE = 10240
LINE_CAPACITY = 512
ADDRESS_CAPACITY = 256

GREETING = b"220 tiny-smtp ready\r\n"
_OK = b"250 OK\r\n"
_BYE = b"221 Bye\r\n"
_SAY_EHLO = b"503 Say EHLO first\r\n"
_BAD_SEQUENCE = b"503 Bad sequence\r\n"
_EHLO_REPLY = b"250-tiny-smtp\r\n250-SIZE 10240\r\n250 OK\r\n"
_HELO_REPLY = b"250 tiny-smtp\r\n"
_START_DATA = b"354 Start mail input; end with <CRLF>.<CRLF>\r\n"
_TOO_LARGE = b"552 Message too large\r\n"
_UNRECOGNIZED = b"500 Unrecognized command\r\n"
_LINE_TOO_LONG = b"500 Line too long\r\n"
_TERMINATOR = b"\r\n.\r\n"


class State(enum.Enum):
    """Where a session stands in the SMTP dialogue."""

    INIT = enum.auto()
    GREETED = enum.auto()
    MAIL = enum.auto()
    RCPT = enum.auto()
    DATA = enum.auto()


@dataclass(frozen=True)
class ReceivedMessage:
    """A message accepted at the end of a DATA phase."""

    sender: bytes
    recipient: bytes
    size: int


def extract_angle_addr(line: bytes) -> bytes | None:
    """Return the first ``<...>`` span of ``line``, brackets included."""
    start = line.find(b"<")
    if start < 0:
        return None
    end = line.find(b">", start + 1)
    if end < 0:
        return None
    return line[start : end + 1]


def _address(line: bytes, prefix_len: int) -> bytes:
    addr = extract_angle_addr(line)
    if addr is None:
        addr = line[prefix_len:]
    return addr[:ADDRESS_CAPACITY]


def _starts_with_ci(line: bytes, prefix: bytes) -> bool:
    return line[: len(prefix)].lower() == prefix


class SmtpSession:
    """One client's SMTP conversation, driven by the bytes it sends."""

    def __init__(self) -> None:
        self.state = State.INIT
        self.sender = b""
        self.recipient = b""
        self.received: list[ReceivedMessage] = []
        self.closed = False
        self._line = bytearray()
        self._data = bytearray()

    def greeting(self) -> bytes:
        """The banner sent when a client connects."""
        return GREETING

    def feed(self, data: bytes) -> bytes:
        """Consume bytes from the client and return the replies to send."""
        replies = bytearray()
        pending = bytes(data)
        while pending and not self.closed:
            if self.state is State.DATA:
                room = MAX_MSG_SIZE - len(self._data)
                chunk, pending = pending[:room], pending[room:]
                self._data += chunk
                replies += self._check_data()
            else:
                room = LINE_CAPACITY - len(self._line)
                chunk, pending = pending[:room], pending[room:]
                self._line += chunk
                replies += self._process_lines()
                if not self.closed and len(self._line) >= LINE_CAPACITY:
                    replies += _LINE_TOO_LONG
                    self._line.clear()
        return bytes(replies)

    def _check_data(self) -> bytes:
        pos = self._data.find(_TERMINATOR)
        if pos >= 0:
            self.received.append(ReceivedMessage(self.sender, self.recipient, pos))
            self.state = State.GREETED
            self._data.clear()
            return _OK
        if len(self._data) >= MAX_MSG_SIZE:
            self.state = State.GREETED
            self._data.clear()
            return _TOO_LARGE
        return b""

    def _process_lines(self) -> bytes:
        replies = bytearray()
        while True:
            end = self._line.find(b"\r\n")
            if end < 0:
                return bytes(replies)
            line = bytes(self._line[:end])
            rest = bytes(self._line[end + 2 :])
            replies += self._command(line)
            if self.closed:
                return bytes(replies)
            if self.state is State.DATA:
                # Whatever followed the DATA line starts the message body;
                # it is not searched for the terminator until more arrives.
                self._data = bytearray(rest[:MAX_MSG_SIZE])
                self._line.clear()
                return bytes(replies)
            self._line = bytearray(rest)

    def _reset(self) -> None:
        self.state = State.GREETED
        self.sender = b""
        self.recipient = b""

    def _command(self, line: bytes) -> bytes:
        if _starts_with_ci(line, b"quit"):
            self.closed = True
            return _BYE
        if _starts_with_ci(line, b"noop"):
            return _OK
        if _starts_with_ci(line, b"rset"):
            if self.state is State.INIT:
                return _SAY_EHLO
            self._reset()
            return _OK
        is_ehlo = _starts_with_ci(line, b"ehlo")
        if is_ehlo or _starts_with_ci(line, b"helo"):
            self._reset()
            return _EHLO_REPLY if is_ehlo else _HELO_REPLY
        if _starts_with_ci(line, b"mail from:"):
            if self.state is State.INIT:
                return _SAY_EHLO
            if self.state is not State.GREETED:
                return _BAD_SEQUENCE
            self.sender = _address(line, len(b"mail from:"))
            self.state = State.MAIL
            return _OK
        if _starts_with_ci(line, b"rcpt to:"):
            if self.state not in (State.MAIL, State.RCPT):
                return _BAD_SEQUENCE
            self.recipient = _address(line, len(b"rcpt to:"))
            self.state = State.RCPT
            return _OK
        if _starts_with_ci(line, b"data"):
            if self.state is not State.RCPT:
                return _BAD_SEQUENCE
            self.state = State.DATA
            return _START_DATA
        return _UNRECOGNIZED