"""An append-only FNV-1a hash chain served over HTTP."""

from __future__ import annotations

import argparse
import struct
import sys
import time
from dataclasses import dataclass
from typing import Callable, Iterator

from .fnv import fnv1a_64, format_hex64
from .httpcore import HttpServer, Request, Response

DEFAULT_PORT = 7878
MAX_BLOCKS = 64
MAX_DATA_LEN = 256
MAX_REQUEST = 4096
RESPONSE_LIMIT = 4096
GENESIS_DATA = b"genesis"


class ChainFull(Exception):
    """Raised when a block is added to a chain already at capacity."""


def compute_block_hash(index: int, timestamp: int, data: bytes, prev_hash: int) -> int:
    """FNV-1a over the little-endian index, timestamp, data and previous hash."""
    payload = (
        struct.pack("<I", index)
        + struct.pack("<q", timestamp)
        + bytes(data)
        + struct.pack("<Q", prev_hash)
    )
    return fnv1a_64(payload)


@dataclass(frozen=True)
class Block:
    """One link of the chain."""

    index: int
    timestamp: int
    data: bytes
    prev_hash: int
    hash: int


def _now() -> int:
    return int(time.time())


class Chain:
    """A bounded chain of blocks, started with a genesis block."""

    def __init__(self, clock: Callable[[], int] | None = None) -> None:
        self._clock = clock if clock is not None else _now
        self._blocks: list[Block] = []
        self._append(GENESIS_DATA, 0)

    def _append(self, data: bytes, prev_hash: int) -> Block:
        index = len(self._blocks)
        timestamp = int(self._clock())
        data = bytes(data[:MAX_DATA_LEN])
        block = Block(
            index=index,
            timestamp=timestamp,
            data=data,
            prev_hash=prev_hash,
            hash=compute_block_hash(index, timestamp, data, prev_hash),
        )
        self._blocks.append(block)
        return block

    def add(self, data: bytes) -> Block:
        """Append a block holding ``data`` (truncated to 256 bytes)."""
        if len(self._blocks) >= MAX_BLOCKS:
            raise ChainFull("chain full")
        return self._append(bytes(data), self._blocks[-1].hash)

    @property
    def latest(self) -> Block:
        """The most recently added block."""
        return self._blocks[-1]

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(self._blocks)


_NOT_FOUND = Response("404 Not Found", b"not found\n")


class BlockchainApp:
    """Routes HTTP requests to a chain."""

    def __init__(self, chain: Chain | None = None) -> None:
        self.chain = chain if chain is not None else Chain()

    def respond(self, request: Request) -> Response:
        if request.method == b"GET" and request.path == b"/":
            return self._summary()
        if request.method == b"GET" and request.path == b"/chain":
            return self._dump()
        if request.method == b"POST" and request.path == b"/block":
            return self._add(request.body)
        return _NOT_FOUND

    def _summary(self) -> Response:
        body = b"tiny-blockchain\nblocks: %d\nlatest: %s\n" % (
            len(self.chain),
            format_hex64(self.chain.latest.hash).encode("ascii"),
        )
        return Response("200 OK", body[:RESPONSE_LIMIT], route="GET /")

    def _dump(self) -> Response:
        body = b"".join(
            b"[%d] %s prev=%s data=%s\n"
            % (
                block.index,
                format_hex64(block.hash).encode("ascii"),
                format_hex64(block.prev_hash).encode("ascii"),
                block.data,
            )
            for block in self.chain
        )
        return Response("200 OK", body[:RESPONSE_LIMIT], route="GET /chain")

    def _add(self, data: bytes) -> Response:
        try:
            block = self.chain.add(data[:MAX_DATA_LEN])
        except ChainFull:
            return Response("507 Insufficient Storage", b"chain full\n", route="POST /block")
        body = b"added block %d\nhash=%s\n" % (
            block.index,
            format_hex64(block.hash).encode("ascii"),
        )
        return Response("200 OK", body, route="POST /block")

    __call__ = respond


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="tiny-blockchain", description="Tiny hash chain server.")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    app = BlockchainApp()
    server = HttpServer(
        "tiny-blockchain",
        args.port,
        app.respond,
        max_request=MAX_REQUEST,
        max_body=MAX_DATA_LEN,
    )
    try:
        server.serve_forever()
    except (OSError, OverflowError) as exc:
        print(f"tiny-blockchain: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0