"""Comparators for keys stored in AVL trees."""

from __future__ import annotations

from typing import Union

_LEN_MASK = 0x00FFFFFF


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def _cstring(key: Union[str, bytes]) -> bytes:
    data = key.encode("utf-8") if isinstance(key, str) else bytes(key)
    return data.split(b"\0", 1)[0]


def compare_strings(k1: Union[str, bytes], k2: Union[str, bytes]) -> int:
    """Compare two strings bytewise; returns -1, 0 or 1."""
    a, b = _cstring(k1), _cstring(k2)
    return _sign((a > b) - (a < b))


def _raw_len(blob: bytes) -> int:
    if len(blob) < 4:
        raise ValueError("blob attribute shorter than its header")
    return int.from_bytes(blob[:4], "big") & _LEN_MASK


def compare_blobs(k1: bytes, k2: bytes) -> int:
    """Compare two blob attributes over the shorter of their raw lengths."""
    length = min(_raw_len(k1), _raw_len(k2))
    a, b = bytes(k1[:length]), bytes(k2[:length])
    return (a > b) - (a < b)