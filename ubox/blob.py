"""Tagged binary attributes ("blobs") and a growable buffer that builds them.

Every attribute starts with a 32-bit big-endian header: bit 31 is the
*extended* flag, bits 24-30 hold the attribute id and bits 0-23 the total
length including the header.  Attributes are laid out on 4-byte boundaries.
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Sequence, Union

ATTR_ID_MASK = 0x7F000000
ATTR_ID_SHIFT = 24
ATTR_LEN_MASK = 0x00FFFFFF
ATTR_ALIGN = 4
ATTR_EXTENDED = 0x80000000
ATTR_HDR_LEN = 4

BytesLike = Union[bytes, bytearray, memoryview]


class BlobError(ValueError):
    """Raised for malformed attributes and buffers that cannot grow."""


class BlobAttrType(enum.IntEnum):
    """Payload types known to :func:`check_type`."""

    UNSPEC = 0
    NESTED = 1
    BINARY = 2
    STRING = 3
    INT8 = 4
    INT16 = 5
    INT32 = 6
    INT64 = 7
    DOUBLE = 8
    LAST = 9


_TYPE_MINLEN = {
    BlobAttrType.STRING: 1,
    BlobAttrType.INT8: 1,
    BlobAttrType.INT16: 2,
    BlobAttrType.INT32: 4,
    BlobAttrType.INT64: 8,
    BlobAttrType.DOUBLE: 8,
}


def pad_len(length: int) -> int:
    """Round ``length`` up to the attribute alignment."""
    return (length + ATTR_ALIGN - 1) & ~(ATTR_ALIGN - 1)


@dataclass
class BlobAttrInfo:
    """Validation policy for one attribute id used by :func:`parse`."""

    type: int = BlobAttrType.UNSPEC
    minlen: int = 0
    maxlen: int = 0
    validate: Optional[Callable[["BlobAttrInfo", "BlobAttr"], bool]] = None


class BlobAttr:
    """A view of one attribute at ``offset`` inside ``buf``."""

    __slots__ = ("buf", "offset")

    def __init__(self, buf: Union[bytes, bytearray], offset: int = 0) -> None:
        if offset < 0:
            raise ValueError("offset must not be negative")
        self.buf = buf
        self.offset = offset

    @classmethod
    def from_bytes(cls, data: BytesLike) -> "BlobAttr":
        """Wrap a private copy of ``data``, which must hold at least a header."""
        copy = bytearray(data)
        if len(copy) < ATTR_HDR_LEN:
            raise BlobError("data shorter than an attribute header")
        return cls(copy, 0)

    # ----- header -------------------------------------------------------

    def _id_len(self) -> int:
        raw = self.buf[self.offset:self.offset + ATTR_HDR_LEN]
        if len(raw) < ATTR_HDR_LEN:
            raise BlobError("truncated attribute header")
        return int.from_bytes(raw, "big")

    def _set_id_len(self, value: int) -> None:
        self.buf[self.offset:self.offset + ATTR_HDR_LEN] = (value & 0xFFFFFFFF).to_bytes(4, "big")

    def _set_raw_len(self, length: int) -> None:
        self._set_id_len((self._id_len() & ~ATTR_LEN_MASK) | (length & ATTR_LEN_MASK))

    def _fill_pad(self) -> None:
        start = self.offset + self.raw_len()
        end = self.offset + self.pad_len()
        if end <= start:
            return
        if end > len(self.buf):
            del self.buf[start:]
            self.buf.extend(bytes(end - start))
        else:
            self.buf[start:end] = bytes(end - start)

    def id(self) -> int:
        return (self._id_len() & ATTR_ID_MASK) >> ATTR_ID_SHIFT

    def is_extended(self) -> bool:
        return bool(self._id_len() & ATTR_EXTENDED)

    def length(self) -> int:
        """Payload length; negative if the header is malformed."""
        return (self._id_len() & ATTR_LEN_MASK) - ATTR_HDR_LEN

    def raw_len(self) -> int:
        """Length including the header."""
        return self.length() + ATTR_HDR_LEN

    def pad_len(self) -> int:
        """Length including the header and the alignment padding."""
        return pad_len(self.raw_len())

    # ----- content ------------------------------------------------------

    def data(self) -> bytes:
        length = max(self.length(), 0)
        start = self.offset + ATTR_HDR_LEN
        return bytes(self.buf[start:start + length])

    def to_bytes(self) -> bytes:
        """The attribute with its padding, as it is laid out in a buffer."""
        size = max(self.pad_len(), 0)
        raw = bytes(self.buf[self.offset:self.offset + size])
        return raw.ljust(size, b"\0")

    def children(self) -> Iterator["BlobAttr"]:
        """Yield the attributes nested in this one's payload."""
        return iter_attrs(self.buf, self.offset + ATTR_HDR_LEN, max(self.length(), 0))

    def _unpack(self, fmt: str) -> int:
        payload = self.data()
        size = struct.calcsize(fmt)
        if len(payload) < size:
            raise BlobError(f"payload of {len(payload)} bytes too short for a {size}-byte value")
        return struct.unpack_from(fmt, payload)[0]

    def get_u8(self) -> int:
        return self._unpack(">B")

    def get_u16(self) -> int:
        return self._unpack(">H")

    def get_u32(self) -> int:
        return self._unpack(">I")

    def get_u64(self) -> int:
        return self._unpack(">Q")

    def get_int8(self) -> int:
        return self._unpack(">b")

    def get_int16(self) -> int:
        return self._unpack(">h")

    def get_int32(self) -> int:
        return self._unpack(">i")

    def get_int64(self) -> int:
        return self._unpack(">q")

    def get_string(self) -> str:
        """The payload up to its first NUL byte, decoded as UTF-8."""
        return self.data().split(b"\0", 1)[0].decode("utf-8", "surrogateescape")

    def copy(self) -> "BlobAttr":
        """An independent attribute holding a copy of this one's bytes."""
        return BlobAttr(bytearray(self.to_bytes()), 0)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BlobAttr):
            return NotImplemented
        if self.pad_len() != other.pad_len():
            return False
        return self.to_bytes() == other.to_bytes()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"BlobAttr(id={self.id()}, length={self.length()}, offset={self.offset})"


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


def iter_attrs(buf: Union[bytes, bytearray], offset: int, length: int) -> Iterator[BlobAttr]:
    """Yield consecutive attributes found in ``buf[offset:offset + length]``.

    Iteration stops at the first attribute whose length does not fit.
    """
    for attr, _ in _walk(buf, offset, length):
        yield attr


def check_type(data: BytesLike, type: int) -> bool:
    """Check that ``data`` is a valid payload for the given attribute type."""
    if type < 0 or type >= BlobAttrType.LAST:
        return False
    minlen = _TYPE_MINLEN.get(BlobAttrType(type), 0)
    length = len(data)
    if BlobAttrType.INT8 <= type <= BlobAttrType.INT64:
        if length != minlen:
            return False
    elif length < minlen:
        return False
    if type == BlobAttrType.STRING and data[length - 1] != 0:
        return False
    return True


def _info_for(info: Optional[Sequence[Optional[BlobAttrInfo]]], attr_id: int) -> Optional[BlobAttrInfo]:
    if info is None or attr_id >= len(info):
        return None
    return info[attr_id]


def _parse_attr(
    attr: BlobAttr,
    attr_len: int,
    table: list,
    info: Optional[Sequence[Optional[BlobAttrInfo]]],
    max_id: int,
) -> None:
    if attr_len < ATTR_HDR_LEN:
        return
    attr_id = attr.id()
    if attr_id >= max_id:
        return
    length = attr.raw_len()
    if length > attr_len or length < ATTR_HDR_LEN:
        return

    entry = _info_for(info, attr_id)
    if entry is not None:
        if entry.type < BlobAttrType.LAST and not check_type(attr.data(), entry.type):
            return
        if entry.minlen and length < entry.minlen:
            return
        if entry.maxlen and length > entry.maxlen:
            return
        if entry.validate is not None and not entry.validate(entry, attr):
            return

    table[attr_id] = attr


def parse(
    attr: Optional[BlobAttr],
    info: Optional[Sequence[Optional[BlobAttrInfo]]],
    max_id: int,
) -> list[Optional[BlobAttr]]:
    """Index the children of a trusted ``attr`` by id.

    Returns a list of ``max_id`` entries; a later attribute with the same id
    replaces an earlier one, and attributes failing ``info`` are skipped.
    """
    table: list[Optional[BlobAttr]] = [None] * max(max_id, 0)
    if attr is None:
        return table
    for child, rem in _walk(attr.buf, attr.offset + ATTR_HDR_LEN, max(attr.length(), 0)):
        _parse_attr(child, rem, table, info, max_id)
    return table


def parse_untrusted(
    attr: Optional[BlobAttr],
    attr_len: int,
    info: Optional[Sequence[Optional[BlobAttrInfo]]],
    max_id: int,
) -> list[Optional[BlobAttr]]:
    """Like :func:`parse`, but first check ``attr`` fits in ``attr_len`` bytes."""
    table: list[Optional[BlobAttr]] = [None] * max(max_id, 0)
    if attr is None or attr_len < ATTR_HDR_LEN:
        return table
    length = attr.raw_len()
    if attr_len < length:
        return table
    for child, rem in _walk(attr.buf, attr.offset + ATTR_HDR_LEN, max(attr.length(), 0)):
        if rem >= attr_len:
            break
        _parse_attr(child, rem, table, info, max_id)
    return table


class BlobBuf:
    """A growable buffer holding one root attribute and its children."""

    def __init__(self, id: int = 0) -> None:
        self.buf = bytearray()
        self.head_offset = 0
        self.init(id)

    def init(self, id: int = 0) -> None:
        """Start over with an empty root attribute of the given id."""
        self.buf = bytearray()
        self.head_offset = 0
        self._add(0, id, 0)

    def head(self) -> BlobAttr:
        """The attribute new children are currently added to."""
        return BlobAttr(self.buf, self.head_offset)

    def to_bytes(self) -> bytes:
        """The root attribute with everything in it."""
        return BlobAttr(self.buf, 0).to_bytes()

    def grow(self, required: int) -> None:
        """Make room for at least ``required`` more bytes."""
        if len(self.buf) + required > ATTR_LEN_MASK:
            raise BlobError("blob buffer would exceed the maximum attribute length")
        delta = (required // 256 + 1) * 256
        self.buf.extend(bytes(delta))

    def _add(self, offset: int, id: int, payload: int) -> BlobAttr:
        if payload < 0:
            raise ValueError("payload length must not be negative")
        required = offset + ATTR_HDR_LEN + payload - len(self.buf)
        if required > 0:
            self.grow(required)
        attr = BlobAttr(self.buf, offset)
        attr._set_id_len(((id << ATTR_ID_SHIFT) & ATTR_ID_MASK) | ((payload + ATTR_HDR_LEN) & ATTR_LEN_MASK))
        attr._fill_pad()
        return attr

    def _next_offset(self) -> int:
        head = self.head()
        return head.offset + head.pad_len()

    def new(self, id: int, payload: int) -> BlobAttr:
        """Append an attribute with ``payload`` zeroed bytes and return it."""
        attr = self._add(self._next_offset(), id, payload)
        head = self.head()
        head._set_raw_len(head.pad_len() + attr.pad_len())
        return attr

    def put(self, id: int, data: BytesLike) -> BlobAttr:
        """Append an attribute whose payload is ``data``."""
        payload = bytes(data)
        attr = self.new(id, len(payload))
        start = attr.offset + ATTR_HDR_LEN
        self.buf[start:start + len(payload)] = payload
        return attr

    def put_raw(self, data: BytesLike) -> BlobAttr:
        """Append a complete attribute, header included, copied from ``data``."""
        raw = bytes(data)
        if len(raw) < ATTR_HDR_LEN:
            raise BlobError("raw attribute shorter than its header")
        attr = self._add(self._next_offset(), 0, len(raw) - ATTR_HDR_LEN)
        head = self.head()
        head._set_raw_len(head.pad_len() + len(raw))
        self.buf[attr.offset:attr.offset + len(raw)] = raw
        return attr

    def put_string(self, id: int, value: Union[str, bytes]) -> BlobAttr:
        encoded = value.encode("utf-8", "surrogateescape") if isinstance(value, str) else bytes(value)
        return self.put(id, encoded.split(b"\0", 1)[0] + b"\0")

    def put_u8(self, id: int, value: int) -> BlobAttr:
        return self.put(id, struct.pack(">B", value & 0xFF))

    def put_u16(self, id: int, value: int) -> BlobAttr:
        return self.put(id, struct.pack(">H", value & 0xFFFF))

    def put_u32(self, id: int, value: int) -> BlobAttr:
        return self.put(id, struct.pack(">I", value & 0xFFFFFFFF))

    def put_u64(self, id: int, value: int) -> BlobAttr:
        return self.put(id, struct.pack(">Q", value & 0xFFFFFFFFFFFFFFFF))

    def put_int8(self, id: int, value: int) -> BlobAttr:
        return self.put_u8(id, value)

    def put_int16(self, id: int, value: int) -> BlobAttr:
        return self.put_u16(id, value)

    def put_int32(self, id: int, value: int) -> BlobAttr:
        return self.put_u32(id, value)

    def put_int64(self, id: int, value: int) -> BlobAttr:
        return self.put_u64(id, value)

    def nest_start(self, id: int) -> int:
        """Open a nested attribute; returns a cookie for :meth:`nest_end`."""
        cookie = self.head_offset
        self.head_offset = self.new(id, 0).offset
        return cookie

    def nest_end(self, cookie: int) -> None:
        """Close the nested attribute opened by the matching :meth:`nest_start`."""
        parent = BlobAttr(self.buf, cookie)
        parent._set_raw_len(parent.pad_len() + self.head().length())
        self.head_offset = cookie