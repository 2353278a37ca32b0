"""A tiny untrained character-level transformer that generates text greedily."""

from __future__ import annotations

import os
import sys
from typing import Iterator, Sequence

import numpy as np

from .gpt2_math import inv_sqrt, layer_norm as _layer_norm
from .xorshift import Rng

VOCAB_SIZE = 96
EMBED_DIM = 16
SEQ_LEN = 32
FF_DIM = 32
NUM_LAYERS = 1
SEED = 42
DEFAULT_PROMPT = b"hello "
DEFAULT_NUM_CHARS = 64
MAX_PROMPT = 128
MAX_ARGS = 8
_MASK32 = (1 << 32) - 1

_F = np.float32
_PI = _F(3.14159265)
_TWO_PI = _F(6.2831853)
_LN_10000 = _F(9.21034)
_MASKED = _F(-1e9)
_MIN_WEIGHT = _F(1e-8)


def _exp32(arr: np.ndarray) -> np.ndarray:
    with np.errstate(over="ignore", under="ignore", invalid="ignore"):
        y = np.clip(arr, _F(-88.0), _F(88.0)).astype(np.float32)
        y = _F(1.0) + y / _F(256.0)
        for _ in range(8):
            y = y * y
        return y.astype(np.float32)


def exp_approx(x):
    """exp(x) as (1 + x/256)^256 with x clamped to [-88, 88]; scalar or array."""
    arr = np.asarray(x, dtype=np.float32)
    result = _exp32(arr)
    return float(result) if np.ndim(x) == 0 else result


def inv_sqrt_approx(x) -> float:
    """1/sqrt(x) by range reduction and Newton steps; 1.0 for x <= 0."""
    return inv_sqrt(x)


def _reduce_angle(x) -> np.float32:
    t = _F(x)
    if not np.isfinite(t):
        raise ValueError(f"angle must be finite, got {x!r}")
    while t > _PI:
        t = t - _TWO_PI
    while t < -_PI:
        t = t + _TWO_PI
    return t


def sin_approx(x) -> float:
    """sin(x) from a five-term Taylor series after reduction to [-pi, pi]."""
    t = _reduce_angle(x)
    t2 = t * t
    t3 = t2 * t
    t5 = t3 * t2
    t7 = t5 * t2
    t9 = t7 * t2
    return float(t - t3 / _F(6.0) + t5 / _F(120.0) - t7 / _F(5040.0) + t9 / _F(362880.0))


def cos_approx(x) -> float:
    """cos(x) from a five-term Taylor series after reduction to [-pi, pi]."""
    t = _reduce_angle(x)
    t2 = t * t
    t4 = t2 * t2
    t6 = t4 * t2
    t8 = t6 * t2
    return float(_F(1.0) - t2 / _F(2.0) + t4 / _F(24.0) - t6 / _F(720.0) + t8 / _F(40320.0))


def _softmax_rows(matrix: np.ndarray) -> np.ndarray:
    with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
        shifted = (matrix - matrix.max(axis=1, keepdims=True)).astype(np.float32)
        e = _exp32(shifted)
        total = e.sum(axis=1, keepdims=True, dtype=np.float32)
        inv = np.where(total > 0, _F(1.0) / total, _F(1.0)).astype(np.float32)
        return (e * inv).astype(np.float32)


def softmax(values) -> np.ndarray:
    """A new float32 array holding the softmax of ``values``."""
    arr = np.array(values, dtype=np.float32).reshape(-1)
    if arr.size == 0:
        raise ValueError("softmax of an empty sequence")
    return _softmax_rows(arr[np.newaxis, :])[0]


def layer_norm(x, gamma, beta) -> np.ndarray:
    """Normalise ``x`` to zero mean and unit variance, then scale and shift."""
    return _layer_norm(x, gamma, beta)


def argmax(logits) -> int:
    """The character code of the highest logit (first one on ties)."""
    arr = np.asarray(logits, dtype=np.float32).reshape(-1)
    if arr.size == 0:
        raise ValueError("argmax of an empty sequence")
    return int(np.argmax(arr)) + 32


def parse_u32(text: str | bytes) -> int:
    """A wrapping unsigned 32-bit decimal value; 0 if any character is not a digit."""
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("latin-1")
    value = 0
    for ch in text:
        if not "0" <= ch <= "9":
            return 0
        value = (value * 10 + ord(ch) - ord("0")) & _MASK32
    return value


def _random_matrix(rng: Rng, rows: int, cols: int) -> np.ndarray:
    scale = _F(inv_sqrt_approx(cols))
    values = np.array([rng.next_centered() for _ in range(rows * cols)], dtype=np.float32)
    return (values.reshape(rows, cols) * scale).astype(np.float32)


def _positional_table() -> np.ndarray:
    table = np.zeros((SEQ_LEN, EMBED_DIM), dtype=np.float32)
    for pos in range(SEQ_LEN):
        for i in range(EMBED_DIM // 2):
            freq = _F(exp_approx(-_F(2 * i) / _F(EMBED_DIM) * _LN_10000))
            angle = _F(pos) * freq
            table[pos, 2 * i] = sin_approx(angle)
            table[pos, 2 * i + 1] = cos_approx(angle)
    return table


_ATTN_SCALE = _F(inv_sqrt_approx(EMBED_DIM))


class Model:
    """Randomly initialised single-head transformer over printable ASCII."""

    def __init__(self, rng: Rng | None = None) -> None:
        rng = rng if rng is not None else Rng(SEED)
        self.embed = _random_matrix(rng, VOCAB_SIZE, EMBED_DIM)
        self.wq = _random_matrix(rng, EMBED_DIM, EMBED_DIM)
        self.wk = _random_matrix(rng, EMBED_DIM, EMBED_DIM)
        self.wv = _random_matrix(rng, EMBED_DIM, EMBED_DIM)
        self.wo = _random_matrix(rng, EMBED_DIM, EMBED_DIM)
        self.ff1_w = _random_matrix(rng, FF_DIM, EMBED_DIM)
        self.ff1_b = np.zeros(FF_DIM, dtype=np.float32)
        self.ff2_w = _random_matrix(rng, EMBED_DIM, FF_DIM)
        self.ff2_b = np.zeros(EMBED_DIM, dtype=np.float32)
        self.ln1_gamma = np.ones(EMBED_DIM, dtype=np.float32)
        self.ln1_beta = np.zeros(EMBED_DIM, dtype=np.float32)
        self.ln2_gamma = np.ones(EMBED_DIM, dtype=np.float32)
        self.ln2_beta = np.zeros(EMBED_DIM, dtype=np.float32)
        self.unembed = _random_matrix(rng, VOCAB_SIZE, EMBED_DIM)
        self._positions = _positional_table()

    def forward(self, tokens: bytes) -> np.ndarray:
        """Logits over the vocabulary for the character after ``tokens``."""
        tokens = bytes(tokens)
        if not 1 <= len(tokens) <= SEQ_LEN:
            raise ValueError(f"sequence length must be 1 to {SEQ_LEN}, got {len(tokens)}")
        indices = np.array([b - 32 if 32 <= b < 128 else 0 for b in tokens], dtype=np.intp)
        hidden = (self.embed[indices] + self._positions[: len(tokens)]).astype(np.float32)
        for _ in range(NUM_LAYERS):
            hidden = self._block(hidden)
        return (self.unembed @ hidden[-1]).astype(np.float32)

    def _block(self, hidden: np.ndarray) -> np.ndarray:
        residual = hidden
        attended = self._attention(hidden)
        hidden = _norm_rows(attended + residual, self.ln1_gamma, self.ln1_beta)
        residual = hidden
        ff = np.maximum(hidden @ self.ff1_w.T + self.ff1_b, _F(0.0)).astype(np.float32)
        out = (ff @ self.ff2_w.T + self.ff2_b).astype(np.float32)
        return _norm_rows(out + residual, self.ln2_gamma, self.ln2_beta)

    def _attention(self, hidden: np.ndarray) -> np.ndarray:
        q = hidden @ self.wq.T
        k = hidden @ self.wk.T
        v = hidden @ self.wv.T
        n = len(hidden)
        causal = np.tril(np.ones((n, n), dtype=bool))
        scores = np.where(causal, (q @ k.T) * _ATTN_SCALE, _MASKED).astype(np.float32)
        weights = _softmax_rows(scores)
        weights = np.where(weights > _MIN_WEIGHT, weights, _F(0.0)).astype(np.float32)
        return ((weights @ v) @ self.wo.T).astype(np.float32)


def _norm_rows(matrix: np.ndarray, gamma: np.ndarray, beta: np.ndarray) -> np.ndarray:
    return np.stack([layer_norm(row, gamma, beta) for row in matrix])


def generate(model: Model, prompt: bytes, num_chars: int) -> Iterator[bytes]:
    """Yield ``num_chars`` greedily chosen characters following ``prompt``."""
    prompt = bytes(prompt)
    context = bytearray(b" " * SEQ_LEN)
    ctx_len = min(len(prompt), SEQ_LEN)
    context[:ctx_len] = prompt[:ctx_len]
    for _ in range(num_chars):
        logits = model.forward(bytes(context[: max(ctx_len, 1)]))
        nxt = argmax(logits)
        yield bytes([nxt])
        if ctx_len < SEQ_LEN:
            context[ctx_len] = nxt
            ctx_len += 1
        else:
            del context[0]
            context.append(nxt)


def parse_args(argv: Sequence[str | bytes]) -> tuple[bytes, int]:
    """The prompt and character count named by the command-line arguments."""
    args = [os.fsencode(a) if isinstance(a, str) else bytes(a) for a in argv]
    args = [a for a in args if a][:MAX_ARGS]
    prompt = DEFAULT_PROMPT
    num_chars = DEFAULT_NUM_CHARS
    if args:
        prompt = args[0][:MAX_PROMPT]
    if len(args) >= 2:
        num_chars = parse_u32(args[1]) or DEFAULT_NUM_CHARS
    return prompt, num_chars


def main(argv: Sequence[str] | None = None) -> int:
    prompt, num_chars = parse_args(sys.argv[1:] if argv is None else argv)
    model = Model(Rng(SEED))
    out = sys.stdout.buffer
    out.write(b"tiny-transformer: GPT-style text generation (untrained)\n")
    out.write(
        b"Architecture: %d layer, %dd embed, %dd FFN, %d vocab (ASCII 32-127)\n"
        % (NUM_LAYERS, EMBED_DIM, FF_DIM, VOCAB_SIZE)
    )
    out.write(b"Weights: random (untrained) -- output is gibberish by design\n\n")
    shown = min(len(prompt), SEQ_LEN)
    out.write(b'Prompt: "' + prompt + b'"\nOutput: ' + prompt[:shown])
    out.flush()
    generated = 0
    for ch in generate(model, prompt, num_chars):
        out.write(ch)
        out.flush()
        generated += 1
    out.write(b"\n\nGenerated %d characters.\n" % generated)
    out.flush()
    return 0