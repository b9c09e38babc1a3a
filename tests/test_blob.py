import pytest

from ubox.blob import (
    ATTR_EXTENDED,
    ATTR_LEN_MASK,
    BlobAttr,
    BlobAttrInfo,
    BlobAttrType,
    BlobBuf,
    BlobError,
    check_type,
    iter_attrs,
    pad_len,
    parse,
    parse_untrusted,
)


def test_wire_format_of_u32():
    buf = BlobBuf(0)
    buf.put_u32(BlobAttrType.INT32, 0x12345678)
    assert buf.to_bytes() == bytes.fromhex("0000000c" "06000008" "12345678")


def test_empty_buffer_has_empty_root():
    buf = BlobBuf(0)
    head = buf.head()
    assert head.offset == 0
    assert head.length() == 0
    assert list(head.children()) == []


def test_unsigned_round_trips():
    buf = BlobBuf(0)
    a8 = buf.put_u8(1, 200)
    a16 = buf.put_u16(2, 40000)
    a32 = buf.put_u32(3, 3000000000)
    a64 = buf.put_u64(4, 2**63 + 5)
    assert a8.get_u8() == 200
    assert a16.get_u16() == 40000
    assert a32.get_u32() == 3000000000
    assert a64.get_u64() == 2**63 + 5
    assert [a.id() for a in buf.head().children()] == [1, 2, 3, 4]


def test_signed_round_trips():
    buf = BlobBuf(0)
    assert buf.put_int8(1, -1).get_int8() == -1
    assert buf.put_int16(1, -300).get_int16() == -300
    assert buf.put_int32(1, -70000).get_int32() == -70000
    assert buf.put_int64(1, -5).get_int64() == -5


def test_signed_value_read_unsigned():
    buf = BlobBuf(0)
    assert buf.put_int8(1, -1).get_u8() == 0xFF


def test_string_round_trip_and_padding():
    buf = BlobBuf(0)
    first = buf.put_string(BlobAttrType.STRING, "abc")
    second = buf.put_string(BlobAttrType.STRING, "hello")
    assert first.get_string() == "abc"
    assert second.get_string() == "hello"
    assert first.length() == len("abc") + 1
    assert first.pad_len() % 4 == 0
    assert first.pad_len() >= first.raw_len()
    assert second.offset == first.offset + first.pad_len()
    assert check_type(first.data(), BlobAttrType.STRING)


def test_string_is_cut_at_nul():
    buf = BlobBuf(0)
    attr = buf.put_string(3, "ab\0cd")
    assert attr.get_string() == "ab"
    assert attr.length() == len("ab") + 1


def test_nested_attributes():
    buf = BlobBuf(0)
    cookie = buf.nest_start(BlobAttrType.NESTED)
    buf.put_u8(4, 1)
    buf.put_u16(5, 2)
    buf.nest_end(cookie)
    buf.put_u32(6, 3)

    root = buf.head()
    assert root.offset == 0
    kids = list(root.children())
    assert len(kids) == 2
    assert kids[0].id() == BlobAttrType.NESTED
    assert [c.id() for c in kids[0].children()] == [4, 5]
    assert [c.get_u8() if c.id() == 4 else c.get_u16() for c in kids[0].children()] == [1, 2]
    assert kids[1].get_u32() == 3
    assert root.raw_len() == len(buf.to_bytes())


def test_put_raw_copies_attribute():
    src = BlobBuf(0)
    original = src.put_string(3, "hi")
    dst = BlobBuf(0)
    copied = dst.put_raw(original.to_bytes())
    assert copied == original
    kids = list(dst.head().children())
    assert len(kids) == 1
    assert kids[0].get_string() == "hi"


def test_put_raw_rejects_short_data():
    buf = BlobBuf(0)
    with pytest.raises(BlobError):
        buf.put_raw(b"\x00\x01")


def test_new_rejects_negative_payload():
    buf = BlobBuf(0)
    with pytest.raises(ValueError):
        buf.new(1, -1)


def test_grow_beyond_limit_raises():
    buf = BlobBuf(0)
    with pytest.raises(BlobError):
        buf.grow(ATTR_LEN_MASK)


def test_many_attributes_grow_buffer():
    buf = BlobBuf(0)
    for i in range(200):
        buf.put_u32(1, i)
    assert [a.get_u32() for a in buf.head().children()] == list(range(200))
    assert len(buf.buf) % 256 == 0
    assert len(buf.buf) >= len(buf.to_bytes())


def test_init_resets_buffer():
    buf = BlobBuf(0)
    buf.put_u32(1, 1)
    buf.init(2)
    assert buf.head().length() == 0
    assert buf.head().id() == 2


def test_from_bytes_round_trip():
    buf = BlobBuf(0)
    buf.put_u32(1, 11)
    buf.put_u32(2, 22)
    attr = BlobAttr.from_bytes(buf.to_bytes())
    assert attr == buf.head()
    assert [c.get_u32() for c in attr.children()] == [11, 22]


def test_from_bytes_rejects_short_data():
    with pytest.raises(BlobError):
        BlobAttr.from_bytes(b"\x00")


def test_extended_flag():
    attr = BlobAttr.from_bytes((ATTR_EXTENDED | 4).to_bytes(4, "big"))
    assert attr.is_extended()
    assert attr.id() == 0
    assert attr.length() == 0
    buf = BlobBuf(0)
    assert not buf.put_u8(1, 1).is_extended()


def test_copy_is_equal_and_independent():
    buf = BlobBuf(0)
    attr = buf.put_u32(1, 5)
    dup = attr.copy()
    assert dup == attr
    assert dup.buf is not attr.buf
    other = buf.put_u32(1, 6)
    assert other != attr


def test_getter_on_short_payload_raises():
    buf = BlobBuf(0)
    attr = buf.put_u8(1, 1)
    with pytest.raises(BlobError):
        attr.get_u32()


def test_pad_len_invariant():
    for n in range(20):
        p = pad_len(n)
        assert p % 4 == 0
        assert n <= p < n + 4


def test_check_type():
    assert check_type(b"\x00\x01", BlobAttrType.INT16)
    assert not check_type(b"\x00\x01\x02", BlobAttrType.INT16)
    assert not check_type(b"ab", BlobAttrType.STRING)
    assert check_type(b"ab\0", BlobAttrType.STRING)
    assert not check_type(b"", BlobAttrType.STRING)
    assert check_type(b"\0" * 9, BlobAttrType.DOUBLE)
    assert not check_type(b"\0" * 7, BlobAttrType.DOUBLE)
    assert not check_type(b"x", BlobAttrType.LAST)
    assert check_type(b"", BlobAttrType.BINARY)


def _sample():
    buf = BlobBuf(0)
    buf.put_u32(1, 10)
    buf.put_u32(2, 20)
    buf.put_u32(2, 30)
    buf.put_u32(5, 50)
    return buf


def test_parse_indexes_by_id():
    buf = _sample()
    table = parse(buf.head(), None, 4)
    assert len(table) == 4
    assert table[0] is None
    assert table[1].get_u32() == 10
    assert table[2].get_u32() == 30
    assert table[3] is None


def test_parse_none_attr():
    assert parse(None, None, 3) == [None, None, None]


def test_parse_type_policy():
    buf = BlobBuf(0)
    buf.put_u16(1, 7)
    info = [BlobAttrInfo() for _ in range(2)]
    info[1] = BlobAttrInfo(type=BlobAttrType.INT32)
    assert parse(buf.head(), info, 2)[1] is None
    info[1] = BlobAttrInfo(type=BlobAttrType.INT16)
    assert parse(buf.head(), info, 2)[1].get_u16() == 7


def test_parse_length_and_validate_policy():
    buf = BlobBuf(0)
    attr = buf.put_u32(1, 20)
    info = [None, BlobAttrInfo(type=BlobAttrType.LAST, minlen=attr.raw_len() + 1)]
    assert parse(buf.head(), info, 2)[1] is None
    info[1] = BlobAttrInfo(type=BlobAttrType.LAST, maxlen=attr.raw_len() - 1)
    assert parse(buf.head(), info, 2)[1] is None
    info[1] = BlobAttrInfo(validate=lambda entry, a: a.get_u32() > 15)
    assert parse(buf.head(), info, 2)[1] == attr
    info[1] = BlobAttrInfo(validate=lambda entry, a: a.get_u32() > 25)
    assert parse(buf.head(), info, 2)[1] is None


def test_parse_untrusted_matches_parse():
    buf = _sample()
    raw = buf.to_bytes()
    attr = BlobAttr.from_bytes(raw)
    trusted = parse(buf.head(), None, 4)
    untrusted = parse_untrusted(attr, len(raw), None, 4)
    assert untrusted == trusted


def test_parse_untrusted_rejects_short_length():
    buf = _sample()
    raw = buf.to_bytes()
    attr = BlobAttr.from_bytes(raw)
    assert parse_untrusted(attr, len(raw) - 1, None, 4) == [None] * 4
    assert parse_untrusted(attr, 3, None, 4) == [None] * 4
    assert parse_untrusted(None, len(raw), None, 4) == [None] * 4