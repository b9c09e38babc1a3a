"""Conversion between JSON documents and message attributes."""

from __future__ import annotations

import json
import os
from typing import Any, Callable, Mapping, Optional, Union

from ubox import blobmsg
from ubox.blob import BlobAttr, BlobError, iter_attrs
from ubox.blobmsg import BlobmsgBuf, BlobmsgType

Formatter = Callable[[BlobAttr], Optional[str]]

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_MAX_INDENT_TABS = 16

_ESCAPES = {
    "\b": "\\b",
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
    '"': '\\"',
    "\\": "\\\\",
}


def add_object(buf: BlobmsgBuf, obj: Mapping[str, Any]) -> None:
    """Append every member of the JSON object ``obj`` to ``buf``."""
    for key, value in obj.items():
        add_json_element(buf, key, value)


def add_json_element(buf: BlobmsgBuf, name: Optional[str], obj: Any) -> None:
    """Append one JSON value to ``buf`` under ``name``.

    Raises TypeError for values that have no JSON counterpart.
    """
    if isinstance(obj, Mapping):
        cookie = buf.open_table(name)
        try:
            add_object(buf, obj)
        finally:
            buf.close_table(cookie)
    elif isinstance(obj, (list, tuple)):
        cookie = buf.open_array(name)
        try:
            for item in obj:
                add_json_element(buf, None, item)
        finally:
            buf.close_array(cookie)
    elif isinstance(obj, str):
        buf.add_string(name, obj)
    elif isinstance(obj, bool):
        buf.add_u8(name, 1 if obj else 0)
    elif isinstance(obj, int):
        value = min(max(obj, _INT64_MIN), _INT64_MAX)
        if _INT32_MIN <= value <= _INT32_MAX:
            buf.add_u32(name, value)
        else:
            buf.add_u64(name, value)
    elif isinstance(obj, float):
        buf.add_double(name, obj)
    elif obj is None:
        buf.add_field(BlobmsgType.UNSPEC, name, b"")
    else:
        raise TypeError(f"cannot store a value of type {type(obj).__name__}")


def _add_document(buf: BlobmsgBuf, document: Any) -> None:
    if not isinstance(document, Mapping):
        raise ValueError("JSON document is not an object")
    add_object(buf, document)


def add_json_from_string(buf: BlobmsgBuf, text: str) -> None:
    """Parse ``text`` as a JSON object and append its members to ``buf``.

    Raises ValueError if the text is not valid JSON or not an object.
    """
    _add_document(buf, json.loads(text))


def add_json_from_file(buf: BlobmsgBuf, path: Union[str, os.PathLike]) -> None:
    """Read a JSON object from ``path`` and append its members to ``buf``."""
    with open(path, "r", encoding="utf-8") as handle:
        document = json.load(handle)
    _add_document(buf, document)


class _JsonWriter:
    def __init__(self, formatter: Optional[Formatter], indent: Optional[int]) -> None:
        self.parts: list[str] = []
        self.formatter = formatter
        self.indent = indent is not None and indent >= 0
        self.level = indent if self.indent else 0

    def put(self, text: str) -> None:
        if text:
            self.parts.append(text)

    def separator(self) -> None:
        if self.indent:
            self.put("\n" + "\t" * min(max(self.level, 0), _MAX_INDENT_TABS))

    def string(self, raw: Union[bytes, str]) -> None:
        text = raw if isinstance(raw, str) else raw.decode("utf-8", "surrogateescape")
        escaped = []
        for char in text:
            replacement = _ESCAPES.get(char)
            if replacement is None and char < " ":
                replacement = "\\u%04x" % ord(char)
            escaped.append(replacement if replacement is not None else char)
        self.put('"' + "".join(escaped) + '"')

    def element(self, attr: BlobAttr, without_name: bool, head: bool) -> None:
        try:
            if not blobmsg.check_attr(attr, False):
                return
        except BlobError:
            return

        if not without_name:
            attr_name = blobmsg.name(attr)
            if attr_name:
                self.string(attr_name)
                self.put(": " if self.indent else ":")

        if not head and self.formatter is not None:
            custom = self.formatter(attr)
            if custom is not None:
                self.put(custom)
                return

        kind = attr.id()
        if kind == BlobmsgType.UNSPEC:
            self.put("null")
        elif kind == BlobmsgType.BOOL:
            self.put("true" if blobmsg.get_u8(attr) else "false")
        elif kind in (BlobmsgType.INT16, BlobmsgType.INT32, BlobmsgType.INT64):
            self.put(str(blobmsg.cast_s64(attr)))
        elif kind == BlobmsgType.DOUBLE:
            self.put("%f" % blobmsg.get_double(attr))
        elif kind == BlobmsgType.STRING:
            self.string(blobmsg.data(attr).split(b"\0", 1)[0])
        elif kind in (BlobmsgType.ARRAY, BlobmsgType.TABLE):
            self.members(attr, kind == BlobmsgType.ARRAY)

    def members(self, attr: BlobAttr, array: bool) -> None:
        offset = blobmsg._data_offset(attr)
        length = max(blobmsg.data_len(attr), 0)
        self.put("[" if array else "{")
        self.level += 1
        self.separator()
        first = True
        for child in iter_attrs(attr.buf, offset, length):
            if not first:
                self.put(",")
                self.separator()
            self.element(child, array, False)
            first = False
        self.level -= 1
        self.separator()
        self.put("]" if array else "}")

    def result(self, attr: BlobAttr) -> Optional[str]:
        text = "".join(self.parts)
        if not text:
            try:
                empty = attr.length() <= 0
            except BlobError:
                empty = True
            if empty:
                return None
        return text


def format_json(
    attr: BlobAttr,
    as_list: bool = False,
    formatter: Optional[Formatter] = None,
    indent: Optional[int] = None,
) -> Optional[str]:
    """Render ``attr`` as JSON text.

    With ``as_list`` the members of ``attr`` are rendered as an object, or as
    an array if ``attr`` is a message array.  ``formatter`` may return the
    text for an attribute, or None to use the default rendering.  A
    non-negative ``indent`` gives the starting depth of tab indentation.
    Returns None if nothing could be rendered from an empty attribute.
    """
    writer = _JsonWriter(formatter, indent)
    if as_list:
        array = attr.is_extended() and attr.id() == BlobmsgType.ARRAY
        writer.members(attr, array)
    else:
        writer.element(attr, False, False)
    return writer.result(attr)


def format_json_value(
    attr: BlobAttr,
    formatter: Optional[Formatter] = None,
    indent: Optional[int] = None,
) -> Optional[str]:
    """Render the value of ``attr`` as JSON text, leaving out its name."""
    writer = _JsonWriter(formatter, indent)
    writer.element(attr, True, False)
    return writer.result(attr)