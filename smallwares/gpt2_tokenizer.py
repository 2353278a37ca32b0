"""Byte-level BPE tokenizer loaded from a compact binary file."""

from __future__ import annotations

import os
import struct
from typing import Iterable, Sequence

TOKEN_MAGIC = 0x544F4B4E
MAX_VOCAB = 50257
MAX_MERGES = 64000
VOCAB_DATA_CAPACITY = 512 * 1024
MAX_ENCODE_TOKENS = 2048

_HEADER = struct.Struct("<III")
_LENGTH = struct.Struct("<H")
_MERGE = struct.Struct("<III")


class TokenizerError(Exception):
    """Raised when a tokenizer file is malformed."""


class Tokenizer:
    """A vocabulary of byte strings and a ranked list of pair merges."""

    def __init__(
        self,
        vocab: Sequence[bytes],
        merges: Iterable[tuple[int, int, int]],
    ) -> None:
        self.vocab: list[bytes] = [bytes(token) for token in vocab]
        self.merges: list[tuple[int, int, int]] = [
            (int(a), int(b), int(result)) for a, b, result in merges
        ]
        self._ids: dict[bytes, int] = {}
        for token_id, token in enumerate(self.vocab):
            self._ids.setdefault(token, token_id)
        self._ranks: dict[tuple[int, int], tuple[int, int]] = {}
        for rank, (a, b, result) in enumerate(self.merges):
            self._ranks.setdefault((a, b), (rank, result))

    @classmethod
    def from_bytes(cls, data: bytes) -> "Tokenizer":
        """Parse the binary tokenizer format."""
        data = bytes(data)
        if len(data) < _HEADER.size:
            raise TokenizerError("tokenizer file too short")
        magic, vocab_size, n_merges = _HEADER.unpack_from(data, 0)
        if magic != TOKEN_MAGIC:
            raise TokenizerError("invalid tokenizer file magic")

        offset = _HEADER.size
        vocab: list[bytes] = []
        room = VOCAB_DATA_CAPACITY
        for _ in range(min(vocab_size, MAX_VOCAB)):
            if offset + _LENGTH.size > len(data):
                raise TokenizerError("truncated vocabulary")
            (length,) = _LENGTH.unpack_from(data, offset)
            offset += _LENGTH.size
            if offset + length > len(data):
                raise TokenizerError("truncated vocabulary")
            token = data[offset : offset + length]
            offset += length
            vocab.append(token[:room])
            room -= min(room, length)

        count = min(n_merges, MAX_MERGES)
        if offset + count * _MERGE.size > len(data):
            raise TokenizerError("truncated merge table")
        merges = [
            _MERGE.unpack_from(data, offset + i * _MERGE.size) for i in range(count)
        ]
        return cls(vocab, merges)

    @classmethod
    def load(cls, path: str | os.PathLike[str]) -> "Tokenizer":
        """Read and parse a tokenizer file."""
        with open(path, "rb") as handle:
            return cls.from_bytes(handle.read())

    @property
    def vocab_size(self) -> int:
        return len(self.vocab)

    def token_bytes(self, token_id: int) -> bytes:
        """The bytes of ``token_id``; empty for ids outside the vocabulary."""
        if 0 <= token_id < len(self.vocab):
            return self.vocab[token_id]
        return b""

    def find_token(self, data: bytes) -> int | None:
        """The lowest id whose bytes equal ``data``, or None."""
        return self._ids.get(bytes(data))

    def encode(self, text: bytes, max_tokens: int = MAX_ENCODE_TOKENS) -> list[int]:
        """Encode ``text`` by byte tokens merged in rank order.

        Bytes with no single-byte token become id 0.
        """
        text = bytes(text)[:MAX_ENCODE_TOKENS]
        tokens = [self._ids.get(bytes([byte]), 0) for byte in text]
        while len(tokens) > 1:
            best: tuple[int, int] | None = None
            best_pos = 0
            for pos, pair in enumerate(zip(tokens, tokens[1:])):
                found = self._ranks.get(pair)
                if found is not None and (best is None or found[0] < best[0]):
                    best = found
                    best_pos = pos
            if best is None:
                break
            tokens[best_pos : best_pos + 2] = [best[1]]
        return tokens[: max(max_tokens, 0)]

    def decode(self, token_id: int) -> bytes:
        """The bytes that ``token_id`` stands for."""
        return self.token_bytes(token_id)