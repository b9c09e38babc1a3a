"""Translate JSON into shell commands and build JSON from shell variables."""

from __future__ import annotations

import json
import math
import os
import re
import sys
from typing import Any, Iterable, Iterator, Mapping, Optional, Union

from ubox.avl import AvlNode, AvlTree, DuplicateKeyError
from ubox.blobmsg import BlobmsgBuf
from ubox.blobmsg_json import add_json_from_string, format_json

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_USAGE = "Usage: {prog} [-n] [-i] -r <message>|-R <file>|-o <file>|-p <prefix>|-w"
_PROG = "jshn"

_SPACE = "[ \t\n\v\f\r]*"
_INT_RE = re.compile(_SPACE + r"([+-]?\d+)")
_FLOAT_RE = re.compile(
    _SPACE + r"([+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)

_JSON_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "/": "\\/",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def _clamp64(value: int) -> int:
    return min(max(value, _INT64_MIN), _INT64_MAX)


def _atoll(text: str) -> int:
    match = _INT_RE.match(text)
    return _clamp64(int(match.group(1))) if match else 0


def _strtod(text: str) -> float:
    match = _FLOAT_RE.match(text)
    return float(match.group(1)) if match else 0.0


def _char_code(char: str) -> int:
    return 0 if char in ("=", "\0") else ord(char)


def env_compare(k1: str, k2: str) -> int:
    """Compare environment entries, treating ``=`` as the end of the name."""
    i = 0
    while i < len(k1) and k1[i] != "\0" and i < len(k2) and k1[i] == k2[i]:
        i += 1
    c1 = k1[i] if i < len(k1) else "\0"
    c2 = k2[i] if i < len(k2) else "\0"
    return _char_code(c1) - _char_code(c2)


def sanitize_key(key: str) -> str:
    """Replace every byte that is not an ASCII letter or digit with ``_``."""
    return "".join(
        chr(byte) if chr(byte).isascii() and chr(byte).isalnum() else "_"
        for byte in key.encode("utf-8", "surrogateescape")
    )


def _shell_quote(text: str) -> str:
    return text.split("\0", 1)[0].replace("'", "'\\''")


def _kind(value: Any) -> str:
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if isinstance(value, str):
        return "string"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "double"
    if value is None:
        return "null"
    raise TypeError(f"unsupported JSON value of type {type(value).__name__}")


def _shell_lines(key: str, value: Any) -> Iterator[str]:
    kind = _kind(value)
    prefix = f"json_add_{kind} '{sanitize_key(key)}"
    if kind == "object":
        yield prefix + "';\n"
        for name, member in value.items():
            yield from _shell_lines(name, member)
        yield "json_close_object;\n"
    elif kind == "array":
        yield prefix + "';\n"
        for index, member in enumerate(value):
            yield from _shell_lines(str(index), member)
        yield "json_close_array;\n"
    elif kind == "string":
        yield prefix + "' '" + _shell_quote(value) + "';\n"
    elif kind == "boolean":
        yield prefix + "' %d;\n" % (1 if value else 0)
    elif kind == "int":
        yield prefix + "' %d;\n" % _clamp64(value)
    elif kind == "double":
        yield prefix + "' %f;\n" % value
    else:
        yield prefix + "';\n"


def json_to_shell(text: Union[str, bytes]) -> str:
    """Turn a JSON object into the shell commands that rebuild it.

    Raises ValueError if ``text`` is not a JSON object.
    """
    try:
        document = json.loads(text)
    except ValueError as exc:
        raise ValueError("Failed to parse message data") from exc
    if not isinstance(document, dict):
        raise ValueError("Failed to parse message data")
    parts = ["json_init;\n"]
    for key, value in document.items():
        parts.extend(_shell_lines(key, value))
    return "".join(parts)


def _json_string(text: str) -> str:
    escaped = []
    for char in text:
        replacement = _JSON_ESCAPES.get(char)
        if replacement is None and char < " ":
            replacement = "\\u%04x" % ord(char)
        escaped.append(replacement if replacement is not None else char)
    return '"' + "".join(escaped) + '"'


def _json_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return repr(value)


def _to_json(value: Any) -> str:
    if isinstance(value, dict):
        if not value:
            return "{ }"
        members = ", ".join(f"{_json_string(k)}: {_to_json(v)}" for k, v in value.items())
        return "{ " + members + " }"
    if isinstance(value, list):
        if not value:
            return "[ ]"
        return "[ " + ", ".join(_to_json(v) for v in value) + " ]"
    if isinstance(value, str):
        return _json_string(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _json_float(value)
    if value is None:
        return "null"
    raise TypeError(f"unsupported JSON value of type {type(value).__name__}")


class Environment:
    """Shell variables, looked up the way the JSON builder needs them."""

    def __init__(
        self,
        environ: Optional[Union[Mapping[str, str], Iterable[str]]] = None,
        prefix: str = "",
    ) -> None:
        self.prefix = prefix
        self._tree = AvlTree(env_compare, False)
        if environ is None:
            environ = os.environ
        if isinstance(environ, Mapping):
            entries = [f"{key}={value}" for key, value in environ.items()]
        else:
            entries = list(environ)
        for entry in entries:
            _, sep, value = entry.partition("=")
            if not sep:
                continue
            try:
                self._tree.insert(AvlNode(entry, value))
            except DuplicateKeyError:
                pass

    def get(self, key: str) -> Optional[str]:
        """The value of variable ``key``, or None."""
        node = self._tree.find(key)
        return node.value if node is not None else None

    def keys(self, prefix: str) -> Optional[str]:
        """The space-separated member list recorded for container ``prefix``."""
        return self.get(f"{self.prefix}K_{prefix}")

    def _add_var(self, container: Any, array: bool, prefix: str, name: str) -> None:
        value = self.get(f"{self.prefix}{prefix}_{name}")
        kind = self.get(f"{self.prefix}T_{prefix}_{name}")
        renamed = self.get(f"{self.prefix}N_{prefix}_{name}")
        if renamed is not None:
            name = renamed
        if value is None or kind is None:
            return

        if kind == "array":
            new: Any = self._add_objects([], value, True)
        elif kind == "object":
            new = self._add_objects({}, value, False)
        elif kind == "string":
            new = value
        elif kind == "int":
            new = _atoll(value)
        elif kind == "double":
            new = _strtod(value)
        elif kind == "boolean":
            new = _atoll(value) & 0xFFFFFFFF != 0
        elif kind == "null":
            new = None
        else:
            return

        if array:
            container.append(new)
        else:
            container[name] = new

    def _add_objects(self, container: Any, prefix: str, array: bool) -> Any:
        keys = self.keys(prefix)
        if keys is None:
            return container
        for name in keys.split(" "):
            if name:
                self._add_var(container, array, prefix, name)
        return container

    def build(self) -> dict:
        """The JSON object described by the variables under ``J_V``."""
        return self._add_objects({}, "J_V", False)


def format_from_env(env: Environment, no_newline: bool = False, indent: bool = False) -> str:
    """Render the JSON object described by ``env`` as text.

    Raises ValueError if the indented rendering cannot be produced.
    """
    output = _to_json(env.build())
    if indent:
        buf = BlobmsgBuf()
        add_json_from_string(buf, output)
        formatted = format_json(buf.head(), True, None, 0)
        if formatted is None:
            raise ValueError("cannot format JSON output")
        output = formatted
    return output if no_newline else output + "\n"


class _UsageError(Exception):
    pass


_FLAGS = "niw"
_WITH_ARG = "prRo"


def _options(args: list) -> Iterator[tuple]:
    i = 0
    while i < len(args):
        token = args[i]
        i += 1
        if token == "--":
            return
        if not token.startswith("-") or token == "-":
            continue
        j = 1
        while j < len(token):
            opt = token[j]
            j += 1
            if opt in _WITH_ARG:
                if j < len(token):
                    value = token[j:]
                elif i < len(args):
                    value = args[i]
                    i += 1
                else:
                    raise _UsageError(f"option requires an argument -- '{opt}'")
                yield opt, value
                break
            if opt not in _FLAGS:
                raise _UsageError(f"invalid option -- '{opt}'")
            yield opt, None


def _usage() -> int:
    print(_USAGE.format(prog=_PROG), file=sys.stderr)
    return 2


def _parse_text(text: Union[str, bytes]) -> int:
    try:
        output = json_to_shell(text)
    except ValueError:
        print("Failed to parse message data", file=sys.stderr)
        return 1
    sys.stdout.write(output)
    sys.stdout.flush()
    return 0


def _parse_file(path: str) -> int:
    try:
        with open(path, "rb") as handle:
            content = handle.read()
    except OSError:
        print(f"Error opening {path}", file=sys.stderr)
        return 3
    return _parse_text(content)


def main(argv: Optional[list] = None) -> int:
    """Run the command line tool; returns the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    environ = dict(os.environ)
    prefix = ""
    no_newline = False
    indent = False

    try:
        for opt, value in _options(args):
            if opt == "p":
                prefix = value
            elif opt == "n":
                no_newline = True
            elif opt == "i":
                indent = True
            elif opt == "r":
                return _parse_text(value)
            elif opt == "R":
                return _parse_file(value)
            elif opt == "w":
                try:
                    output = format_from_env(Environment(environ, prefix), no_newline, indent)
                except ValueError:
                    return -1
                sys.stdout.write(output)
                return 0
            elif opt == "o":
                try:
                    handle = open(value, "w", encoding="utf-8")
                except OSError:
                    print(f"Error opening {value}", file=sys.stderr)
                    return 3
                with handle:
                    try:
                        handle.write(format_from_env(Environment(environ, prefix), no_newline, indent))
                    except ValueError:
                        return -1
                return 0
    except _UsageError as exc:
        print(f"{_PROG}: {exc}", file=sys.stderr)
        return _usage()

    return _usage()