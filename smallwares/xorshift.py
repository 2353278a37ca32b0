"""Deterministic xorshift64 pseudo-random generator."""

from __future__ import annotations

DEFAULT_SEED = 0x123456789ABCDEF0
_MASK64 = (1 << 64) - 1
_UNIT_SCALE = 16777216.0


class Rng:
    """xorshift64 generator; a zero seed is replaced by a fixed constant."""

    def __init__(self, seed: int) -> None:
        seed &= _MASK64
        self.state = seed if seed else DEFAULT_SEED

    def next_u64(self) -> int:
        """Advance the state and return it as an unsigned 64-bit integer."""
        x = self.state
        x ^= (x << 13) & _MASK64
        x ^= x >> 7
        x ^= (x << 17) & _MASK64
        self.state = x
        return x

    def next_unit(self) -> float:
        """A float in [0, 1) built from the low 24 bits of the next value."""
        return (self.next_u64() & 0xFFFFFF) / _UNIT_SCALE

    def next_centered(self) -> float:
        """A float in [-0.5, 0.5)."""
        return self.next_unit() - 0.5