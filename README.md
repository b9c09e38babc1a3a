# ubox

A small toolkit of data structures and message formats, using only the
standard library.

- `ubox.avl`: an AVL tree (`AvlTree`, `AvlNode`) that keeps its nodes in
  sorted order. It can allow duplicate keys, which stay in insertion order.
  It supports `find`, `find_lessequal` and `find_greaterequal`, and moving
  through the nodes with `first`, `last`, `next` and `prev`. Inserting a key
  twice into a tree that forbids duplicates raises `DuplicateKeyError`.
- `ubox.avl_iter`: `find_element` with an `AvlFindMode`, traversals
  (`iter_all`, `iter_all_reverse`, `iter_range`, `iter_range_reverse`,
  `iter_to_last`, `iter_first_to`) and `remove_all`, which empties a tree
  and yields the nodes it held.
- `ubox.keys`: comparators `compare_strings` and `compare_blobs`.
- `ubox.blob`: a tagged, length-prefixed, 4-byte aligned binary format.
  `BlobBuf` builds the data and supports nesting through `nest_start` and
  `nest_end`. `BlobAttr` reads it back with typed getters and `children()`.
  `parse` and `parse_untrusted` index the data by id, checked against a list
  of `BlobAttrInfo` entries. Malformed data raises `BlobError`.
- `ubox.blobmsg`: named attributes on top of blobs. `BlobmsgBuf` adds tables,
  arrays, strings, integers, booleans and doubles. The module also has
  validation helpers (`check_attr`, `check_array`, ...), getters and casts,
  and `parse` / `parse_array`, which match the data against a list of
  `BlobmsgPolicy` entries.
- `ubox.blobmsg_json`: converts JSON text or files into blobmsg data
  (`add_json_from_string`, `add_json_from_file`, `add_json_element`). It
  also formats blobmsg data as JSON, compact or tab-indented
  (`format_json`, `format_json_value`).
- `ubox.base64`: `encode`, and a strict `decode` that skips whitespace and
  raises `ValueError` on bad input.
- `ubox.jshn`: the `jshn` command, and the functions behind it.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

An AVL tree keyed by strings:

```python
from ubox.avl import AvlTree, AvlNode
from ubox.keys import compare_strings

tree = AvlTree(compare_strings, False)
for word in ("pear", "apple", "fig"):
    tree.insert(AvlNode(word, len(word)))

print([node.key for node in tree])        # ['apple', 'fig', 'pear']
print(tree.find_greaterequal("b").key)    # 'fig'
```

A blobmsg message rendered as JSON:

```python
from ubox.blobmsg import BlobmsgBuf
from ubox.blobmsg_json import add_json_from_string, format_json

buf = BlobmsgBuf()
buf.add_string("name", "value")
buf.add_u32("count", 3)
print(format_json(buf.head(), True))      # {"name":"value","count":3}

other = BlobmsgBuf()
add_json_from_string(other, '{"list": [1, 2]}')
print(format_json(other.head(), True, None, 0))
```

Base64:

```python
from ubox import base64

text = base64.encode(b"hello")
assert base64.decode(text) == b"hello"
```

## The `jshn` command

`jshn` turns a JSON object into shell commands. It can also build JSON back
from shell variables found in the environment: `K_<prefix>` lists the
members, `T_<prefix>_<name>` holds each member's type and `<prefix>_<name>`
its value, starting from `J_V`.

```
jshn -r '{"name": "value", "count": 3}'
```

prints

```
json_init;
json_add_string 'name' 'value';
json_add_int 'count' 3;
```

Options:

- `-r <message>`: parse a JSON object given on the command line
- `-R <file>`: parse a JSON object read from a file
- `-w`: write the JSON built from the environment to standard output
- `-o <file>`: write the JSON built from the environment to a file
- `-p <prefix>`: prefix of the environment variables to read
- `-n`: no trailing newline when writing
- `-i`: indent the written JSON with tabs

If the input is not a JSON object, `jshn` reports
`Failed to parse message data` and exits with status 1. A file that cannot
be opened gives status 3. Without an action, `jshn` prints the usage line
and exits with status 2.

The same work is available from Python through `json_to_shell`,
`Environment` and `format_from_env`.

## What is not included

The commands that `jshn -r` prints (`json_init`, `json_add_string`,
`json_close_object`, ...) are meant to be evaluated by a shell. The shell
functions that define them, and that set the variables `jshn -w` reads, are
not part of this package.