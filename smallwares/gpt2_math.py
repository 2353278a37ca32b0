"""Float32 numeric approximations used by the GPT-2 inference engine."""

from __future__ import annotations

import math
from typing import Union

import numpy as np

Number = Union[float, int]
_MASK32 = (1 << 32) - 1

_F = np.float32


def _exp32(arr: np.ndarray) -> np.ndarray:
    with np.errstate(over="ignore", invalid="ignore"):
        y = np.clip(arr, _F(-88.0), _F(88.0)).astype(np.float32)
        y = _F(1.0) + y / _F(1024.0)
        for _ in range(10):
            y = y * y
        return np.where(y < 0, _F(0.0), y).astype(np.float32)


def _tanh32(arr: np.ndarray) -> np.ndarray:
    with np.errstate(over="ignore", invalid="ignore"):
        e2x = _exp32(_F(2.0) * np.clip(arr, _F(-10.0), _F(10.0)))
        t = (e2x - _F(1.0)) / (e2x + _F(1.0))
        t = np.where(arr > 10, _F(1.0), np.where(arr < -10, _F(-1.0), t))
        return t.astype(np.float32)


def _gelu32(arr: np.ndarray) -> np.ndarray:
    with np.errstate(over="ignore", invalid="ignore"):
        c = _F(0.7978845608)
        inner = c * (arr + _F(0.044715) * arr * arr * arr)
        return (_F(0.5) * arr * (_F(1.0) + _tanh32(inner))).astype(np.float32)


def _apply(func, x):
    arr = np.asarray(x, dtype=np.float32)
    result = func(arr)
    return float(result) if np.ndim(x) == 0 else result


def exp_approx(x):
    """exp(x) as (1 + x/1024)^1024, clamped to [-88, 88]; scalar or array."""
    return _apply(_exp32, x)


def tanh_approx(x):
    """tanh built on :func:`exp_approx`, saturating beyond |x| > 10."""
    return _apply(_tanh32, x)


def gelu(x):
    """The tanh approximation of the GELU activation."""
    return _apply(_gelu32, x)


def inv_sqrt(x: Number) -> float:
    """1/sqrt(x) by range reduction and three Newton steps; 1.0 for x <= 0."""
    val = _F(x)
    if val <= 0:
        return 1.0
    if math.isinf(val):
        return 0.0
    y = _F(1.0)
    while val > 4:
        val = val * _F(0.25)
        y = y * _F(0.5)
    while val < 0.25:
        val = val * _F(4.0)
        y = y * _F(2.0)
    g = y
    for _ in range(3):
        g = g * (_F(1.5) - _F(0.5) * val * g * g)
    return float(g)


def softmax(values) -> np.ndarray:
    """A new float32 array holding the softmax of ``values``."""
    arr = np.array(values, dtype=np.float32).reshape(-1)
    if arr.size == 0:
        raise ValueError("softmax of an empty sequence")
    arr = _exp32(arr - arr.max())
    total = arr.sum(dtype=np.float32)
    if total > 0:
        arr = (arr * (_F(1.0) / total)).astype(np.float32)
    return arr


def layer_norm(x, weight, bias) -> np.ndarray:
    """Normalise ``x`` to zero mean and unit variance, then scale and shift."""
    arr = np.asarray(x, dtype=np.float32).reshape(-1)
    w = np.asarray(weight, dtype=np.float32).reshape(-1)
    b = np.asarray(bias, dtype=np.float32).reshape(-1)
    if arr.size == 0:
        raise ValueError("layer_norm of an empty vector")
    if not arr.size == w.size == b.size:
        raise ValueError("layer_norm input, weight and bias differ in length")
    n = _F(arr.size)
    mean = arr.sum(dtype=np.float32) / n
    centered = arr - mean
    var = (centered * centered).sum(dtype=np.float32) / n
    inv_std = _F(inv_sqrt(var + _F(1e-5)))
    return (centered * inv_std * w + b).astype(np.float32)


def _as_text(text: str | bytes) -> str:
    if isinstance(text, (bytes, bytearray)):
        return bytes(text).decode("latin-1")
    return text


def parse_u32(text: str | bytes) -> int:
    """Leading decimal digits as a wrapping unsigned 32-bit value."""
    value = 0
    for ch in _as_text(text):
        if not "0" <= ch <= "9":
            break
        value = (value * 10 + ord(ch) - ord("0")) & _MASK32
    return value


def parse_f32(text: str | bytes) -> float:
    """Digits before and after a '.' as a float; other characters are skipped."""
    int_part = 0
    frac_part = 0
    frac_digits = 0
    in_frac = False
    for ch in _as_text(text):
        if ch == ".":
            in_frac = True
        elif "0" <= ch <= "9":
            digit = ord(ch) - ord("0")
            if in_frac:
                frac_part = (frac_part * 10 + digit) & _MASK32
                frac_digits += 1
            else:
                int_part = (int_part * 10 + digit) & _MASK32
    result = _F(int_part)
    if frac_digits > 0:
        divisor = pow(10, frac_digits, 1 << 32)
        with np.errstate(divide="ignore", invalid="ignore"):
            result = result + _F(frac_part) / _F(divisor)
    return float(result)