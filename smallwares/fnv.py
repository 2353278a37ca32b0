"""64-bit FNV-1a hashing and fixed-width hex formatting of 64-bit values."""

from __future__ import annotations

FNV_OFFSET = 0xCBF29CE484222325
FNV_PRIME = 0x00000100000001B3
_MASK64 = (1 << 64) - 1
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def fnv1a_64(data: bytes) -> int:
    """The 64-bit FNV-1a hash of ``data``."""
    value = FNV_OFFSET
    for byte in bytes(data):
        value ^= byte
        value = (value * FNV_PRIME) & _MASK64
    return value


def format_hex64(value: int) -> str:
    """``value`` as exactly 16 lower-case hex digits."""
    if not 0 <= value <= _MASK64:
        raise ValueError(f"value out of 64-bit range: {value}")
    return f"{value:016x}"


def parse_hex64(text: str | bytes) -> int:
    """Parse exactly 16 hex digits (either case) into an integer."""
    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("ascii")
        except UnicodeDecodeError:
            raise ValueError("hex id must be ASCII") from None
    if len(text) != 16:
        raise ValueError(f"hex id must be 16 digits, got {len(text)}")
    if not set(text) <= _HEX_DIGITS:
        raise ValueError(f"invalid hex id: {text!r}")
    return int(text, 16)