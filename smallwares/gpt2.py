"""GPT-2 inference from a flat float32 weight file, with KV caching."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Iterator, Mapping, Sequence

import numpy as np

from .gpt2_math import gelu, inv_sqrt, layer_norm, parse_f32, parse_u32, softmax
from .gpt2_tokenizer import Tokenizer, TokenizerError
from .xorshift import Rng

WEIGHT_MAGIC = 0x47505432
HEADER_SIZE = 16
GPT2_SMALL = {
    "vocab_size": 50257,
    "embed_dim": 768,
    "num_layers": 12,
    "num_heads": 12,
    "max_seq_len": 1024,
}
END_OF_TEXT = 50256
TOP_K = 40
SEED = 42
DEFAULT_N_TOKENS = 128
DEFAULT_TEMPERATURE = 0.8
MAX_PATH = 255
MAX_PROMPT = 512
MAX_ARGS = 8
MAX_PROMPT_TOKENS = 2048
USAGE = "Usage: tiny-gpt2 <weights.bin> <tokenizer.bin> [prompt] [n_tokens] [temp]"

_F = np.float32
_F32_LE = np.dtype("<f4")
_MIN_WEIGHT = _F(1e-8)


class WeightsError(Exception):
    """Raised when a weight file is malformed."""


@dataclass(frozen=True)
class LayerWeights:
    """The parameters of one transformer block."""

    ln1_weight: np.ndarray
    ln1_bias: np.ndarray
    c_attn_weight: np.ndarray
    c_attn_bias: np.ndarray
    c_proj_weight: np.ndarray
    c_proj_bias: np.ndarray
    ln2_weight: np.ndarray
    ln2_bias: np.ndarray
    fc_weight: np.ndarray
    fc_bias: np.ndarray
    proj_weight: np.ndarray
    proj_bias: np.ndarray


@dataclass(frozen=True)
class ModelWeights:
    """All model parameters, as views into the weight file."""

    wte: np.ndarray
    wpe: np.ndarray
    layers: tuple[LayerWeights, ...]
    ln_f_weight: np.ndarray
    ln_f_bias: np.ndarray
    num_heads: int

    @property
    def vocab_size(self) -> int:
        return self.wte.shape[0]

    @property
    def embed_dim(self) -> int:
        return self.wte.shape[1]

    @property
    def max_seq_len(self) -> int:
        return self.wpe.shape[0]

    @property
    def num_layers(self) -> int:
        return len(self.layers)

    @classmethod
    def from_bytes(cls, data, config: Mapping[str, int] | None = None) -> "ModelWeights":
        """Parse a weight file; ``config`` overrides GPT-2 Small dimensions."""
        dims = dict(GPT2_SMALL)
        if config:
            unknown = set(config) - set(GPT2_SMALL)
            if unknown:
                raise ValueError(f"unknown configuration keys: {sorted(unknown)}")
            dims.update(config)
        vocab = int(dims["vocab_size"])
        embed = int(dims["embed_dim"])
        n_layers = int(dims["num_layers"])
        heads = int(dims["num_heads"])
        max_seq = int(dims["max_seq_len"])
        if min(vocab, embed, n_layers, heads, max_seq) <= 0 or embed % heads:
            raise ValueError("invalid model dimensions")
        ff = 4 * embed

        buf = memoryview(data)
        size = buf.nbytes
        if size < HEADER_SIZE:
            raise WeightsError("weight file too short")
        if int.from_bytes(bytes(buf[:4]), "little") != WEIGHT_MAGIC:
            raise WeightsError("invalid weight file magic")

        offset = HEADER_SIZE

        def take(*shape: int) -> np.ndarray:
            nonlocal offset
            count = int(np.prod(shape))
            end = offset + count * _F32_LE.itemsize
            if end > size:
                raise WeightsError("truncated weight file")
            arr = np.frombuffer(buf, dtype=_F32_LE, count=count, offset=offset)
            offset = end
            return arr.astype(np.float32, copy=False).reshape(shape)

        wte = take(vocab, embed)
        wpe = take(max_seq, embed)
        layers = tuple(
            LayerWeights(
                ln1_weight=take(embed),
                ln1_bias=take(embed),
                c_attn_weight=take(3 * embed, embed),
                c_attn_bias=take(3 * embed),
                c_proj_weight=take(embed, embed),
                c_proj_bias=take(embed),
                ln2_weight=take(embed),
                ln2_bias=take(embed),
                fc_weight=take(ff, embed),
                fc_bias=take(ff),
                proj_weight=take(embed, ff),
                proj_bias=take(embed),
            )
            for _ in range(n_layers)
        )
        ln_f_weight = take(embed)
        ln_f_bias = take(embed)
        return cls(wte, wpe, layers, ln_f_weight, ln_f_bias, heads)

    @classmethod
    def load(cls, path: str | bytes | os.PathLike) -> "ModelWeights":
        """Map a GPT-2 Small weight file into memory and parse it."""
        try:
            mapped = np.memmap(os.fsdecode(path), dtype=np.uint8, mode="r")
        except ValueError:
            raise WeightsError("weight file is empty") from None
        return cls.from_bytes(mapped)


class Gpt2:
    """Runs the model one token at a time, caching keys and values."""

    def __init__(self, weights: ModelWeights) -> None:
        self.weights = weights
        shape = (weights.num_layers, weights.max_seq_len, weights.embed_dim)
        self._k_cache = np.zeros(shape, dtype=np.float32)
        self._v_cache = np.zeros(shape, dtype=np.float32)
        self._head_dim = weights.embed_dim // weights.num_heads
        self._scale = _F(inv_sqrt(self._head_dim))

    def forward(self, token: int, pos: int) -> np.ndarray:
        """Logits for the token following ``token`` placed at ``pos``."""
        w = self.weights
        if not 0 <= token < w.vocab_size:
            raise ValueError(f"token {token} outside vocabulary")
        if not 0 <= pos < w.max_seq_len:
            raise ValueError(f"position {pos} outside 0..{w.max_seq_len - 1}")
        hidden = (w.wte[token] + w.wpe[pos]).astype(np.float32)
        for index, layer in enumerate(w.layers):
            hidden = self._block(layer, index, hidden, pos)
        hidden = layer_norm(hidden, w.ln_f_weight, w.ln_f_bias)
        return (w.wte @ hidden).astype(np.float32)

    def _block(self, layer: LayerWeights, index: int, hidden: np.ndarray, pos: int) -> np.ndarray:
        embed = self.weights.embed_dim
        x = layer_norm(hidden, layer.ln1_weight, layer.ln1_bias)
        qkv = (layer.c_attn_weight @ x + layer.c_attn_bias).astype(np.float32)
        q = qkv[:embed]
        self._k_cache[index, pos] = qkv[embed : 2 * embed]
        self._v_cache[index, pos] = qkv[2 * embed :]
        keys = self._k_cache[index, : pos + 1]
        values = self._v_cache[index, : pos + 1]

        attn = np.zeros(embed, dtype=np.float32)
        for head in range(self.weights.num_heads):
            part = slice(head * self._head_dim, (head + 1) * self._head_dim)
            scores = (keys[:, part] @ q[part]) * self._scale
            weights = softmax(scores)
            weights = np.where(weights > _MIN_WEIGHT, weights, _F(0.0)).astype(np.float32)
            attn[part] = weights @ values[:, part]

        hidden = (layer.c_proj_weight @ attn + layer.c_proj_bias + hidden).astype(np.float32)
        x = layer_norm(hidden, layer.ln2_weight, layer.ln2_bias)
        ff = gelu((layer.fc_weight @ x + layer.fc_bias).astype(np.float32))
        return (layer.proj_weight @ ff + layer.proj_bias + hidden).astype(np.float32)


def sample_token(logits, temperature: float, rng: Rng) -> int:
    """Greedy below temperature 0.01, otherwise top-40 sampling."""
    arr = np.asarray(logits, dtype=np.float32).reshape(-1)
    if arr.size == 0:
        raise ValueError("no logits to sample from")
    if temperature < 0.01:
        return int(np.argmax(arr))

    scaled = (arr * (_F(1.0) / _F(temperature))).astype(np.float32)
    k = min(TOP_K, scaled.size)
    ids = list(range(k))
    vals = [scaled[i] for i in range(k)]
    min_idx = vals.index(min(vals))
    min_val = vals[min_idx]
    # Only values above the initial minimum can ever displace an entry.
    for i in np.flatnonzero(scaled[k:] > min_val) + k:
        value = scaled[i]
        if value > min_val:
            ids[min_idx] = int(i)
            vals[min_idx] = value
            min_idx = vals.index(min(vals))
            min_val = vals[min_idx]

    probs = softmax(vals)
    r = _F(rng.next_unit())
    hits = np.flatnonzero(r < np.cumsum(probs, dtype=np.float32))
    return ids[hits[0]] if hits.size else ids[-1]


def generate(
    model: Gpt2,
    tokenizer: Tokenizer,
    prompt_tokens: Sequence[int],
    n_generate: int,
    temperature: float,
) -> Iterator[bytes]:
    """Yield the decoded prompt tokens, then up to ``n_generate`` sampled ones."""
    rng = Rng(SEED)
    logits = np.zeros(model.weights.vocab_size, dtype=np.float32)
    pos = 0
    for token in prompt_tokens:
        logits = model.forward(token, pos)
        yield tokenizer.decode(token)
        pos += 1
    for _ in range(n_generate):
        if pos >= model.weights.max_seq_len:
            break
        token = sample_token(logits, temperature, rng)
        yield tokenizer.decode(token)
        logits = model.forward(token, pos)
        pos += 1


@dataclass(frozen=True)
class Args:
    """Command-line settings."""

    weights_path: bytes = b""
    tokenizer_path: bytes = b""
    prompt: bytes = b""
    n_tokens: int = DEFAULT_N_TOKENS
    temperature: float = DEFAULT_TEMPERATURE


def parse_args(argv: Sequence[str | bytes]) -> Args:
    """Positional weights, tokenizer, prompt, token count and temperature."""
    args = [os.fsencode(a) if isinstance(a, str) else bytes(a) for a in argv]
    args = [a for a in args if a][:MAX_ARGS]
    fields: dict = {}
    if len(args) >= 1:
        fields["weights_path"] = args[0][:MAX_PATH]
    if len(args) >= 2:
        fields["tokenizer_path"] = args[1][:MAX_PATH]
    if len(args) >= 3:
        fields["prompt"] = args[2][:MAX_PROMPT]
    if len(args) >= 4:
        n_tokens = parse_u32(args[3])
        if n_tokens > 0:
            fields["n_tokens"] = n_tokens
    if len(args) >= 5:
        temperature = parse_f32(args[4])
        if temperature > 0:
            fields["temperature"] = temperature
    return Args(**fields)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    if not args.weights_path or not args.tokenizer_path:
        print(USAGE, file=sys.stderr)
        return 1
    try:
        weights = ModelWeights.load(args.weights_path)
    except OSError:
        print("Error: cannot open weight file", file=sys.stderr)
        return 1
    except WeightsError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    try:
        tokenizer = Tokenizer.load(os.fsdecode(args.tokenizer_path))
    except OSError:
        print("Error: cannot open tokenizer file", file=sys.stderr)
        return 1
    except TokenizerError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    model = Gpt2(weights)
    out = sys.stdout.buffer
    temp = _F(args.temperature)
    temp_int = int(temp)
    temp_frac = int((temp - _F(temp_int)) * _F(10.0))
    out.write(b"tiny-gpt2: GPT-2 Small (124M) inference engine\n")
    out.write(b"Architecture: 12 layers, 12 heads, 768 dim, 50257 vocab\n")
    out.write(
        b"Temperature: %d.%d, Tokens to generate: %d\n\n" % (temp_int, temp_frac, args.n_tokens)
    )

    if args.prompt:
        prompt_tokens = tokenizer.encode(args.prompt, MAX_PROMPT_TOKENS)
    else:
        prompt_tokens = [END_OF_TEXT]
    out.write(b"Prompt tokens: %d\n---\n" % len(prompt_tokens))
    out.flush()

    for piece in generate(model, tokenizer, prompt_tokens, args.n_tokens, args.temperature):
        out.write(piece)
        out.flush()
    out.write(b"\n---\nDone.\n")
    out.flush()
    return 0