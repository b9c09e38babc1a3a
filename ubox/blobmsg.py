"""Named, typed messages built on top of blob attributes.

A message attribute has the *extended* flag set and starts its payload with
a header: a 16-bit big-endian name length, the NUL-terminated name and
padding up to a 4-byte boundary.  The value follows the header.
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Union

from ubox.blob import (
    ATTR_EXTENDED,
    ATTR_HDR_LEN,
    BlobAttr,
    BlobAttrType,
    BlobBuf,
    BlobError,
    BytesLike,
    check_type,
)
from ubox.blob import iter_attrs as _blob_iter_attrs

_NAMELEN_SIZE = 2
_ALIGN = 4


class BlobmsgType(enum.IntEnum):
    """Message attribute types."""

    UNSPEC = 0
    ARRAY = 1
    TABLE = 2
    STRING = 3
    INT64 = 4
    INT32 = 5
    INT16 = 6
    INT8 = 7
    BOOL = 7
    DOUBLE = 8
    LAST = 8
    CAST_INT64 = 9


_BLOB_TYPE = {
    BlobmsgType.INT8: BlobAttrType.INT8,
    BlobmsgType.INT16: BlobAttrType.INT16,
    BlobmsgType.INT32: BlobAttrType.INT32,
    BlobmsgType.INT64: BlobAttrType.INT64,
    BlobmsgType.DOUBLE: BlobAttrType.DOUBLE,
    BlobmsgType.STRING: BlobAttrType.STRING,
    BlobmsgType.UNSPEC: BlobAttrType.BINARY,
}

_INT_TYPES = (BlobmsgType.INT64, BlobmsgType.INT32, BlobmsgType.INT16, BlobmsgType.INT8)


@dataclass
class BlobmsgPolicy:
    """Expected name and type of one attribute for :func:`parse`."""

    name: Optional[str] = None
    type: int = BlobmsgType.UNSPEC


def _encode(text: Union[str, bytes, None]) -> bytes:
    if text is None:
        return b""
    if isinstance(text, str):
        return text.encode("utf-8", "surrogateescape")
    return bytes(text)


def hdrlen(namelen: int) -> int:
    """Size of the message header for a name of ``namelen`` bytes."""
    return (_NAMELEN_SIZE + namelen + 1 + _ALIGN - 1) & ~(_ALIGN - 1)


def _namelen(attr: BlobAttr) -> int:
    start = attr.offset + ATTR_HDR_LEN
    raw = attr.buf[start:start + _NAMELEN_SIZE]
    if len(raw) < _NAMELEN_SIZE:
        raise BlobError("truncated message header")
    return int.from_bytes(raw, "big")


def _data_offset(attr: BlobAttr) -> int:
    start = attr.offset + ATTR_HDR_LEN
    if attr.is_extended():
        start += hdrlen(_namelen(attr))
    return start


def name(attr: BlobAttr) -> str:
    """The attribute's name."""
    start = attr.offset + ATTR_HDR_LEN + _NAMELEN_SIZE
    raw = bytes(attr.buf[start:])
    return raw.split(b"\0", 1)[0].decode("utf-8", "surrogateescape")


def data_len(attr: Optional[BlobAttr]) -> int:
    """Length of the value, excluding the message header."""
    if attr is None:
        return 0
    return attr.length() - (_data_offset(attr) - attr.offset - ATTR_HDR_LEN)


def data(attr: Optional[BlobAttr]) -> Optional[bytes]:
    """The value bytes of ``attr``, or None for no attribute."""
    if attr is None:
        return None
    start = _data_offset(attr)
    return bytes(attr.buf[start:start + max(data_len(attr), 0)])


def _walk(buf: Union[bytes, bytearray], offset: int, length: int) -> Iterator[tuple[BlobAttr, int]]:
    rem = length
    pos = offset
    while rem >= ATTR_HDR_LEN and pos + ATTR_HDR_LEN <= len(buf):
        attr = BlobAttr(buf, pos)
        size = attr.pad_len()
        if size > rem or size < ATTR_HDR_LEN:
            return
        yield attr, rem
        rem -= size
        pos += size


def iter_attrs(attr: Optional[BlobAttr]) -> Iterator[BlobAttr]:
    """Yield the members of a table or array attribute."""
    if attr is None:
        return iter(())
    return _blob_iter_attrs(attr.buf, _data_offset(attr), max(data_len(attr), 0))


def _check_name(attr: BlobAttr, named: bool) -> bool:
    if not attr.is_extended():
        return not named
    length = attr.length()
    if length < _NAMELEN_SIZE:
        return False
    namelen = _namelen(attr)
    if named and namelen == 0:
        return False
    if length < hdrlen(namelen):
        return False
    return attr.buf[attr.offset + ATTR_HDR_LEN + _NAMELEN_SIZE + namelen] == 0


def check_attr_len(attr: BlobAttr, name: bool, length: int) -> bool:
    """Validate ``attr`` while reading no more than ``length`` bytes of it."""
    if length < ATTR_HDR_LEN:
        return False
    try:
        raw = attr.raw_len()
    except BlobError:
        return False
    if raw < ATTR_HDR_LEN or raw > length:
        return False
    if attr.offset + raw > len(attr.buf):
        return False
    if not _check_name(attr, name):
        return False
    type_id = attr.id()
    if type_id > BlobmsgType.LAST:
        return False
    blob_type = _BLOB_TYPE.get(type_id)
    if blob_type is None:
        return True
    return check_type(data(attr), blob_type)


def check_attr(attr: BlobAttr, name: bool) -> bool:
    """Validate ``attr``; ``name`` requires it to carry a non-empty name."""
    return check_attr_len(attr, name, attr.raw_len())


def check_array_len(attr: BlobAttr, type: int, length: int) -> int:
    """Validate a table or array and return its number of members.

    Every member must be valid and, unless ``type`` is UNSPEC, of that type.
    Raises BlobError otherwise.
    """
    if type > BlobmsgType.LAST:
        raise BlobError(f"invalid member type {type}")
    if not check_attr_len(attr, False, length):
        raise BlobError("invalid container attribute")
    kind = attr.id()
    if kind == BlobmsgType.TABLE:
        named = True
    elif kind == BlobmsgType.ARRAY:
        named = False
    else:
        raise BlobError(f"attribute of type {kind} is neither a table nor an array")

    size = 0
    for cur, rem in _walk(attr.buf, _data_offset(attr), max(data_len(attr), 0)):
        if type != BlobmsgType.UNSPEC and cur.id() != type:
            raise BlobError(f"member of type {cur.id()} where {type} was expected")
        if not check_attr_len(cur, named, rem):
            raise BlobError("invalid member attribute")
        size += 1
    return size


def check_array(attr: BlobAttr, type: int) -> int:
    """Like :func:`check_array_len`, bounded by the attribute's own length."""
    return check_array_len(attr, type, attr.raw_len())


def check_attr_list_len(attr: BlobAttr, type: int, length: int) -> bool:
    """True if :func:`check_array_len` accepts the container."""
    try:
        check_array_len(attr, type, length)
    except BlobError:
        return False
    return True


def check_attr_list(attr: BlobAttr, type: int) -> bool:
    """True if :func:`check_array` accepts the container."""
    return check_attr_list_len(attr, type, attr.raw_len())


def _parse_region(
    policy: Sequence[BlobmsgPolicy], buf: Union[bytes, bytearray], offset: int, length: int
) -> list[Optional[BlobAttr]]:
    table: list[Optional[BlobAttr]] = [None] * len(policy)
    if length <= 0:
        raise BlobError("no message data to parse")
    wanted = [None if p.name is None else _encode(p.name) for p in policy]

    for attr, rem in _walk(buf, offset, length):
        if not check_attr_len(attr, False, rem):
            raise BlobError("invalid attribute in message")
        if not attr.is_extended():
            continue
        attr_id = attr.id()
        namelen = _namelen(attr)
        start = attr.offset + ATTR_HDR_LEN + _NAMELEN_SIZE
        attr_name = bytes(attr.buf[start:start + namelen])
        for i, entry in enumerate(policy):
            expected = wanted[i]
            if expected is None:
                continue
            if entry.type == BlobmsgType.CAST_INT64:
                if attr_id not in _INT_TYPES:
                    continue
            elif entry.type != BlobmsgType.UNSPEC and attr_id != entry.type:
                continue
            if namelen != len(expected) & 0xFF:
                continue
            if table[i] is not None:
                continue
            if attr_name != expected:
                continue
            table[i] = attr
    return table


def parse(policy: Sequence[BlobmsgPolicy], data: BytesLike) -> list[Optional[BlobAttr]]:
    """Match the attributes in ``data`` against ``policy`` by name and type.

    Returns one entry per policy item; the first matching attribute wins.
    Raises BlobError for empty or malformed data.
    """
    if not data:
        raise BlobError("no message data to parse")
    buf = bytearray(data)
    return _parse_region(policy, buf, 0, len(buf))


def parse_attr(policy: Sequence[BlobmsgPolicy], attr: Optional[BlobAttr]) -> list[Optional[BlobAttr]]:
    """Like :func:`parse`, over the members of the table ``attr``."""
    if attr is None:
        raise BlobError("no message data to parse")
    return _parse_region(policy, attr.buf, _data_offset(attr), data_len(attr))


def _parse_array_region(
    policy: Sequence[BlobmsgPolicy], buf: Union[bytes, bytearray], offset: int, length: int
) -> list[Optional[BlobAttr]]:
    table: list[Optional[BlobAttr]] = [None] * len(policy)
    if not policy:
        return table
    i = 0
    for attr, rem in _walk(buf, offset, length):
        entry = policy[i]
        if entry.type != BlobmsgType.UNSPEC and attr.id() != entry.type:
            continue
        if not check_attr_len(attr, False, rem):
            raise BlobError("invalid attribute in array")
        if table[i] is not None:
            continue
        table[i] = attr
        i += 1
        if i == len(policy):
            break
    return table


def parse_array(policy: Sequence[BlobmsgPolicy], data: BytesLike) -> list[Optional[BlobAttr]]:
    """Match the attributes in ``data`` against ``policy`` by position and type."""
    buf = bytearray(data)
    return _parse_array_region(policy, buf, 0, len(buf))


def parse_array_attr(policy: Sequence[BlobmsgPolicy], attr: Optional[BlobAttr]) -> list[Optional[BlobAttr]]:
    """Like :func:`parse_array`, over the members of ``attr``."""
    if attr is None:
        return [None] * len(policy)
    return _parse_array_region(policy, attr.buf, _data_offset(attr), max(data_len(attr), 0))


def _unpack(attr: BlobAttr, fmt: str):
    payload = data(attr)
    size = struct.calcsize(fmt)
    if payload is None or len(payload) < size:
        raise BlobError(f"value too short for a {size}-byte field")
    return struct.unpack_from(fmt, payload)[0]


def get_u8(attr: BlobAttr) -> int:
    return _unpack(attr, ">B")


def get_bool(attr: BlobAttr) -> bool:
    return bool(get_u8(attr))


def get_u16(attr: BlobAttr) -> int:
    return _unpack(attr, ">H")


def get_u32(attr: BlobAttr) -> int:
    return _unpack(attr, ">I")


def get_u64(attr: BlobAttr) -> int:
    return _unpack(attr, ">Q")


def get_double(attr: BlobAttr) -> float:
    return _unpack(attr, ">d")


def get_string(attr: Optional[BlobAttr]) -> Optional[str]:
    """The value up to its first NUL byte, or None for no attribute."""
    if attr is None:
        return None
    return data(attr).split(b"\0", 1)[0].decode("utf-8", "surrogateescape")


def cast_u64(attr: BlobAttr) -> int:
    """Any integer attribute as an unsigned value; 0 for other types."""
    kind = attr.id()
    if kind == BlobmsgType.INT64:
        return get_u64(attr)
    if kind == BlobmsgType.INT32:
        return get_u32(attr)
    if kind == BlobmsgType.INT16:
        return get_u16(attr)
    if kind == BlobmsgType.INT8:
        return get_u8(attr)
    return 0


def cast_s64(attr: BlobAttr) -> int:
    """Any integer attribute as a signed value; 0 for other types."""
    kind = attr.id()
    if kind == BlobmsgType.INT64:
        return _unpack(attr, ">q")
    if kind == BlobmsgType.INT32:
        return _unpack(attr, ">i")
    if kind == BlobmsgType.INT16:
        return _unpack(attr, ">h")
    if kind == BlobmsgType.INT8:
        return _unpack(attr, ">b")
    return 0


class BlobmsgBuf(BlobBuf):
    """A blob buffer whose root is a table of named message attributes."""

    def __init__(self) -> None:
        super().__init__(BlobmsgType.TABLE)

    def _new(self, type: int, name: Optional[str], payload_len: int) -> tuple[BlobAttr, int]:
        encoded = _encode(name)
        namelen = len(encoded)
        attr = self.new(type, hdrlen(namelen) + payload_len)
        attr._set_id_len(attr._id_len() | ATTR_EXTENDED)

        start = attr.offset + ATTR_HDR_LEN
        name_end = start + _NAMELEN_SIZE + namelen
        data_start = start + hdrlen(namelen)
        self.buf[start:start + _NAMELEN_SIZE] = namelen.to_bytes(_NAMELEN_SIZE, "big")
        self.buf[start + _NAMELEN_SIZE:name_end] = encoded
        self.buf[name_end:data_start] = bytes(data_start - name_end)
        return attr, data_start

    def add_field(self, type: int, name: Optional[str], data: BytesLike) -> BlobAttr:
        """Append an attribute of ``type`` named ``name`` holding ``data``."""
        payload = bytes(data) if data is not None else b""
        attr, start = self._new(type, name, len(payload))
        self.buf[start:start + len(payload)] = payload
        return attr

    def add_double(self, name: Optional[str], value: float) -> BlobAttr:
        return self.add_field(BlobmsgType.DOUBLE, name, struct.pack(">d", value))

    def add_u8(self, name: Optional[str], value: int) -> BlobAttr:
        return self.add_field(BlobmsgType.INT8, name, struct.pack(">B", int(value) & 0xFF))

    def add_u16(self, name: Optional[str], value: int) -> BlobAttr:
        return self.add_field(BlobmsgType.INT16, name, struct.pack(">H", value & 0xFFFF))

    def add_u32(self, name: Optional[str], value: int) -> BlobAttr:
        return self.add_field(BlobmsgType.INT32, name, struct.pack(">I", value & 0xFFFFFFFF))

    def add_u64(self, name: Optional[str], value: int) -> BlobAttr:
        return self.add_field(BlobmsgType.INT64, name, struct.pack(">Q", value & 0xFFFFFFFFFFFFFFFF))

    def add_string(self, name: Optional[str], value: Union[str, bytes]) -> BlobAttr:
        encoded = _encode(value).split(b"\0", 1)[0]
        return self.add_field(BlobmsgType.STRING, name, encoded + b"\0")

    def add_blob(self, attr: BlobAttr) -> BlobAttr:
        """Append a copy of an existing message attribute."""
        return self.add_field(attr.id(), name(attr), data(attr))

    def open_nested(self, name: Optional[str], array: bool) -> int:
        """Open a table or array; returns a cookie for closing it."""
        kind = BlobmsgType.ARRAY if array else BlobmsgType.TABLE
        cookie = self.head_offset
        attr, _ = self._new(kind, name, 0)
        head = self.head()
        head._set_raw_len(head.pad_len() - hdrlen(len(_encode(name))))
        self.head_offset = attr.offset
        return cookie

    def open_array(self, name: Optional[str]) -> int:
        return self.open_nested(name, True)

    def open_table(self, name: Optional[str]) -> int:
        return self.open_nested(name, False)

    def close_array(self, cookie: int) -> None:
        self.nest_end(cookie)

    def close_table(self, cookie: int) -> None:
        self.nest_end(cookie)

    def _pending_string(self) -> tuple[BlobAttr, int]:
        attr = BlobAttr(self.buf, self._next_offset())
        return attr, attr.offset + attr.pad_len()

    def alloc_string_buffer(self, name: Optional[str], maxlen: int) -> int:
        """Reserve room for a string of up to ``maxlen`` bytes.

        The string is stored by :meth:`add_string_buffer`.  Returns the number
        of bytes available, including the terminating NUL.
        """
        maxlen += 1
        attr, _ = self._new(BlobmsgType.STRING, name, maxlen)
        head = self.head()
        head._set_raw_len(head.pad_len() - attr.pad_len())
        attr._set_raw_len(attr.raw_len() - maxlen)
        _, start = self._pending_string()
        return len(self.buf) - start

    def realloc_string_buffer(self, maxlen: int) -> int:
        """Make sure the pending string can hold ``maxlen`` bytes plus NUL."""
        _, start = self._pending_string()
        required = maxlen + 1 - (len(self.buf) - start)
        if required > 0:
            self.grow(required)
        return len(self.buf) - start

    def add_string_buffer(self, value: Union[str, bytes]) -> BlobAttr:
        """Store ``value`` in the reserved string and commit the attribute."""
        attr, start = self._pending_string()
        encoded = _encode(value).split(b"\0", 1)[0] + b"\0"
        if start + len(encoded) > len(self.buf):
            raise BlobError("string does not fit the reserved buffer")
        self.buf[start:start + len(encoded)] = encoded
        attr._set_raw_len(attr.raw_len() + len(encoded))
        attr._fill_pad()
        head = self.head()
        head._set_raw_len(head.raw_len() + attr.pad_len())
        return attr

    def printf(self, name: Optional[str], format: str, *args) -> int:
        """Append a string formatted printf-style; returns its length in bytes."""
        text = format % args
        encoded = _encode(text)
        self.alloc_string_buffer(name, len(encoded))
        self.add_string_buffer(encoded)
        return len(encoded)