"""Lookup helpers and ordered traversals over an :class:`~ubox.avl.AvlTree`."""

from __future__ import annotations

import enum
from typing import Any, Iterator, Optional

from ubox.avl import AvlNode, AvlTree


class AvlFindMode(enum.Enum):
    """How :func:`find_element` matches a key."""

    EQUAL = 0
    LESSEQUAL = 1
    GREATEREQUAL = 2


def find_element(tree: AvlTree, key: Any, mode: AvlFindMode = AvlFindMode.EQUAL) -> Optional[AvlNode]:
    """Look up ``key`` in ``tree`` using the given match mode."""
    if mode is AvlFindMode.EQUAL:
        return tree.find(key)
    if mode is AvlFindMode.LESSEQUAL:
        return tree.find_lessequal(key)
    if mode is AvlFindMode.GREATEREQUAL:
        return tree.find_greaterequal(key)
    raise ValueError(f"unknown find mode: {mode!r}")


def _forward(tree: AvlTree, start: Optional[AvlNode], stop: Optional[AvlNode]) -> Iterator[AvlNode]:
    node = start
    while node is not None:
        following = tree.next(node)
        yield node
        if node is stop:
            return
        node = following


def _backward(tree: AvlTree, start: Optional[AvlNode], stop: Optional[AvlNode]) -> Iterator[AvlNode]:
    node = start
    while node is not None:
        preceding = tree.prev(node)
        yield node
        if node is stop:
            return
        node = preceding


def iter_range(tree: AvlTree, first: AvlNode, last: AvlNode) -> Iterator[AvlNode]:
    """Yield nodes from ``first`` to ``last`` inclusive, in key order.

    The node just yielded may be deleted from the tree during iteration.
    """
    return _forward(tree, first, last)


def iter_range_reverse(tree: AvlTree, first: AvlNode, last: AvlNode) -> Iterator[AvlNode]:
    """Yield nodes from ``last`` back to ``first`` inclusive.

    The node just yielded may be deleted from the tree during iteration.
    """
    return _backward(tree, last, first)


def iter_all(tree: AvlTree) -> Iterator[AvlNode]:
    """Yield every node of ``tree`` in key order."""
    return _forward(tree, tree.first(), tree.last())


def iter_all_reverse(tree: AvlTree) -> Iterator[AvlNode]:
    """Yield every node of ``tree`` in reverse key order."""
    return _backward(tree, tree.last(), tree.first())


def iter_to_last(tree: AvlTree, first: AvlNode) -> Iterator[AvlNode]:
    """Yield nodes from ``first`` to the end of the tree."""
    return _forward(tree, first, tree.last())


def iter_first_to(tree: AvlTree, last: AvlNode) -> Iterator[AvlNode]:
    """Yield nodes from the start of the tree up to ``last`` inclusive."""
    return _forward(tree, tree.first(), last)


def remove_all(tree: AvlTree) -> Iterator[AvlNode]:
    """Empty ``tree`` without rebalancing and yield each node it held.

    The tree is cleared before the first node is yielded; the yielded
    nodes are detached and may be inserted into a tree again.
    """
    nodes = list(tree)
    tree.root = None
    tree._first = None
    tree._last = None
    tree._count = 0
    for node in nodes:
        node.parent = node.left = node.right = None
        node._list_prev = node._list_next = None
        node.balance = 0
        node.leader = True
        node._tree = None
    return iter(nodes)