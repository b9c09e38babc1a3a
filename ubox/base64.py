"""Base64 encoding and strict decoding that tolerates whitespace."""

from __future__ import annotations

import binascii
from typing import Union

_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_PAD = "="
_WHITESPACE = " \t\n\v\f\r"


def encode(data: Union[bytes, bytearray, memoryview]) -> str:
    """Encode ``data`` as padded base64 text."""
    return binascii.b2a_base64(bytes(data), newline=False).decode("ascii")


def decode(text: Union[str, bytes, bytearray, memoryview]) -> bytes:
    """Decode base64 ``text``, skipping whitespace anywhere.

    Raises ValueError for characters outside the alphabet, missing or
    misplaced padding, trailing garbage and non-zero leftover bits.
    """
    if not isinstance(text, str):
        text = bytes(text).decode("latin-1")
    text = text.split("\0", 1)[0]

    out = bytearray()
    state = 0
    partial = 0
    pad_at = -1

    for index, char in enumerate(text):
        if char in _WHITESPACE:
            continue
        if char == _PAD:
            pad_at = index
            break
        value = _ALPHABET.find(char)
        if value < 0:
            raise ValueError(f"invalid base64 character {char!r}")
        if state == 0:
            partial = value << 2
            state = 1
        elif state == 1:
            out.append(partial | (value >> 4))
            partial = (value & 0x0F) << 4
            state = 2
        elif state == 2:
            out.append(partial | (value >> 2))
            partial = (value & 0x03) << 6
            state = 3
        else:
            out.append(partial | value)
            partial = 0
            state = 0

    if pad_at >= 0:
        if state in (0, 1):
            raise ValueError("misplaced base64 padding")
        rest = text[pad_at + 1:]
        if state == 2:
            rest = rest.lstrip(_WHITESPACE)
            if not rest.startswith(_PAD):
                raise ValueError("incomplete base64 padding")
            rest = rest[1:]
        if rest.strip(_WHITESPACE):
            raise ValueError("trailing characters after base64 padding")
        if partial:
            raise ValueError("non-zero trailing bits in base64 data")
    elif state != 0:
        raise ValueError("truncated base64 data")

    return bytes(out)