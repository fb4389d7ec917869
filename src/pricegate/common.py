"""Common utilities and constants for pricegate.

This module defines store-level constants and the encoding helpers shared by
the ledger and the pricing code.
"""

from datetime import datetime, timezone
from typing import Optional

# Schema version as integer per store contract
SCHEMA_VERSION = 1

# Producer info - identifies the implementation that created records
PRODUCER = {
    "name": "pricegate",
    "version": "0.1.0",
}

# Default arithmetic word width (bits) for stored amounts
DEFAULT_WORD_BITS = 256

# Largest value an 8-byte ledger key can hold
COUNTER_MAX = (1 << 64) - 1


def utc_now_z() -> str:
    """Return current UTC time in RFC3339 format with Z suffix.

    Returns:
        ISO8601/RFC3339 timestamp ending in Z (e.g., "2025-02-02T12:00:00Z").
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def word_max(word_bits: Optional[int]) -> Optional[int]:
    """Largest value representable in an unsigned word.

    Args:
        word_bits: Word width in bits. None or 0 means unbounded.

    Returns:
        2**word_bits - 1, or None when unbounded.
    """
    if not word_bits:
        return None
    return (1 << word_bits) - 1


def check_amount(name: str, value, word_bits: Optional[int] = None) -> int:
    """Validate an unsigned integer amount.

    Args:
        name: Parameter name for error messages.
        value: Value to check.
        word_bits: Word width the value must fit in (None = unbounded).

    Returns:
        The value, unchanged.

    Raises:
        ValueError: If value is not a non-negative int or exceeds the word.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer: {value!r}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")
    limit = word_max(word_bits)
    if limit is not None and value > limit:
        raise ValueError(f"{name} exceeds {word_bits}-bit word: {value}")
    return value


def encode_counter(value: int) -> bytes:
    """Encode a counter value as 8-byte big-endian.

    Big-endian keeps LMDB's lexicographic key order equal to numeric order.

    Args:
        value: Counter value (must be non-negative).

    Returns:
        8-byte big-endian encoded bytes.
    """
    if value < 0:
        raise ValueError(f"Counter must be non-negative: {value}")
    if value > COUNTER_MAX:
        raise ValueError(f"Counter exceeds 64 bits: {value}")
    return value.to_bytes(8, byteorder="big")


def decode_counter(data: bytes) -> int:
    """Decode a counter value from 8-byte big-endian."""
    return int.from_bytes(data, byteorder="big")


def encode_amount(value: int) -> str:
    """Encode an amount for a msgpack record.

    msgpack integers stop at 64 bits, so amounts travel as decimal strings.
    """
    return str(value)


def decode_amount(data: str) -> int:
    """Decode an amount written by encode_amount."""
    return int(data)
