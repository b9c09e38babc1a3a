"""Balanced AVL tree with an ordered node list and optional duplicate keys."""

from __future__ import annotations

from typing import Any, Callable, Iterator, Optional

Comparator = Callable[[Any, Any], int]


class DuplicateKeyError(KeyError):
    """Raised when a key is inserted twice into a tree without duplicates."""


class AvlNode:
    """A member of an :class:`AvlTree` carrying a key and a value."""

    __slots__ = (
        "key",
        "value",
        "parent",
        "left",
        "right",
        "balance",
        "leader",
        "_list_prev",
        "_list_next",
        "_tree",
    )

    def __init__(self, key: Any, value: Any = None) -> None:
        self.key = key
        self.value = value
        self.parent: Optional[AvlNode] = None
        self.left: Optional[AvlNode] = None
        self.right: Optional[AvlNode] = None
        self.balance = 0
        self.leader = True
        self._list_prev: Optional[AvlNode] = None
        self._list_next: Optional[AvlNode] = None
        self._tree: Optional[AvlTree] = None

    def __repr__(self) -> str:
        return f"AvlNode(key={self.key!r}, value={self.value!r})"


class AvlTree:
    """AVL tree ordered by a three-way comparator ``comp(k1, k2) -> int``.

    Nodes are also kept in a doubly linked list in key order; nodes with
    equal keys (when allowed) follow each other in insertion order.
    """

    def __init__(self, comp: Comparator, allow_dups: bool = False) -> None:
        self.comp = comp
        self.allow_dups = allow_dups
        self.root: Optional[AvlNode] = None
        self._count = 0
        self._first: Optional[AvlNode] = None
        self._last: Optional[AvlNode] = None

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[AvlNode]:
        node = self._first
        while node is not None:
            following = node._list_next
            yield node
            node = following

    def is_empty(self) -> bool:
        return self._count == 0

    # ----- ordered list -------------------------------------------------

    def first(self) -> Optional[AvlNode]:
        return self._first

    def last(self) -> Optional[AvlNode]:
        return self._last

    def next(self, node: AvlNode) -> Optional[AvlNode]:
        return node._list_next

    def prev(self, node: AvlNode) -> Optional[AvlNode]:
        return node._list_prev

    def is_first(self, node: AvlNode) -> bool:
        return self._first is node

    def is_last(self, node: AvlNode) -> bool:
        return self._last is node

    def _link_before(self, pos: AvlNode, node: AvlNode) -> None:
        node._list_prev = pos._list_prev
        node._list_next = pos
        if pos._list_prev is None:
            self._first = node
        else:
            pos._list_prev._list_next = node
        pos._list_prev = node
        self._count += 1

    def _link_after(self, pos: AvlNode, node: AvlNode) -> None:
        node._list_next = pos._list_next
        node._list_prev = pos
        if pos._list_next is None:
            self._last = node
        else:
            pos._list_next._list_prev = node
        pos._list_next = node
        self._count += 1

    def _unlink(self, node: AvlNode) -> None:
        if node._list_prev is None:
            self._first = node._list_next
        else:
            node._list_prev._list_next = node._list_next
        if node._list_next is None:
            self._last = node._list_prev
        else:
            node._list_next._list_prev = node._list_prev
        node._list_prev = node._list_next = None
        self._count -= 1

    # ----- lookup -------------------------------------------------------

    def _find_rec(self, key: Any) -> tuple[AvlNode, int]:
        node = self.root
        assert node is not None
        while True:
            diff = self.comp(key, node.key)
            if diff < 0 and node.left is not None:
                node = node.left
            elif diff > 0 and node.right is not None:
                node = node.right
            else:
                return node, diff

    def find(self, key: Any) -> Optional[AvlNode]:
        """Return the first node with ``key``, or None."""
        if self.root is None:
            return None
        node, diff = self._find_rec(key)
        return node if diff == 0 else None

    def find_lessequal(self, key: Any) -> Optional[AvlNode]:
        """Return the last node whose key is less than or equal to ``key``."""
        if self.root is None:
            return None
        node, diff = self._find_rec(key)
        while diff < 0:
            if node._list_prev is None:
                return None
            node = node._list_prev
            diff = self.comp(key, node.key)
        candidate = node
        while diff >= 0:
            node = candidate
            if node._list_next is None:
                break
            candidate = node._list_next
            diff = self.comp(key, candidate.key)
        return node

    def find_greaterequal(self, key: Any) -> Optional[AvlNode]:
        """Return the first node whose key is greater than or equal to ``key``."""
        if self.root is None:
            return None
        node, diff = self._find_rec(key)
        while diff > 0:
            if node._list_next is None:
                return None
            node = node._list_next
            diff = self.comp(key, node.key)
        candidate = node
        while diff <= 0:
            node = candidate
            if node._list_prev is None:
                break
            candidate = node._list_prev
            diff = self.comp(key, candidate.key)
        return node

    # ----- insertion ----------------------------------------------------

    def insert(self, node: AvlNode) -> AvlNode:
        """Insert ``node``; raise DuplicateKeyError on a forbidden duplicate."""
        if node._tree is not None:
            raise ValueError("node is already part of a tree")

        node.parent = node.left = node.right = None
        node.balance = 0
        node.leader = True

        if self.root is None:
            node._list_prev = node._list_next = None
            self._first = self._last = node
            self.root = node
            self._count = 1
            node._tree = self
            return node

        found, _ = self._find_rec(node.key)

        last = found
        while last._list_next is not None and not last._list_next.leader:
            last = last._list_next

        diff = self.comp(node.key, found.key)

        if diff == 0:
            if not self.allow_dups:
                raise DuplicateKeyError(node.key)
            node.leader = False
            self._link_after(last, node)
            node._tree = self
            return node

        node._tree = self

        if found.balance == 1:
            self._link_before(found, node)
            found.balance = 0
            node.parent = found
            found.left = node
            return node

        if found.balance == -1:
            self._link_after(last, node)
            found.balance = 0
            node.parent = found
            found.right = node
            return node

        if diff < 0:
            self._link_before(found, node)
            found.balance = -1
            node.parent = found
            found.left = node
        else:
            self._link_after(last, node)
            found.balance = 1
            node.parent = found
            found.right = node
        self._post_insert(found)
        return node

    def _post_insert(self, node: AvlNode) -> None:
        while True:
            parent = node.parent
            if parent is None:
                return

            if node is parent.left:
                parent.balance -= 1
                if parent.balance == 0:
                    return
                if parent.balance == -1:
                    node = parent
                    continue
                if node.balance == -1:
                    self._rotate_right(parent)
                    return
                self._rotate_left(node)
                self._rotate_right(node.parent.parent)
                return

            parent.balance += 1
            if parent.balance == 0:
                return
            if parent.balance == 1:
                node = parent
                continue
            if node.balance == 1:
                self._rotate_left(parent)
                return
            self._rotate_right(node)
            self._rotate_left(node.parent.parent)
            return

    # ----- rotations ----------------------------------------------------

    def _replace_child(self, parent: Optional[AvlNode], old: AvlNode, new: Optional[AvlNode]) -> None:
        if parent is None:
            self.root = new
        elif parent.left is old:
            parent.left = new
        else:
            parent.right = new

    def _rotate_right(self, node: AvlNode) -> None:
        left = node.left
        parent = node.parent
        left.parent = parent
        node.parent = left
        self._replace_child(parent, node, left)

        node.left = left.right
        left.right = node
        if node.left is not None:
            node.left.parent = node

        node.balance += 1 - min(left.balance, 0)
        left.balance += 1 + max(node.balance, 0)

    def _rotate_left(self, node: AvlNode) -> None:
        right = node.right
        parent = node.parent
        right.parent = parent
        node.parent = right
        self._replace_child(parent, node, right)

        node.right = right.left
        right.left = node
        if node.right is not None:
            node.right.parent = node

        node.balance -= 1 + max(right.balance, 0)
        right.balance -= 1 - min(node.balance, 0)

    # ----- deletion -----------------------------------------------------

    def delete(self, node: AvlNode) -> None:
        """Remove ``node`` from the tree."""
        if node._tree is not self:
            raise ValueError("node is not part of this tree")

        if node.leader:
            following = node._list_next
            if self.allow_dups and following is not None and not following.leader:
                following.leader = True
                following.balance = node.balance
                parent, left, right = node.parent, node.left, node.right
                following.parent = parent
                following.left = left
                following.right = right
                self._replace_child(parent, node, following)
                if left is not None:
                    left.parent = following
                if right is not None:
                    right.parent = following
            else:
                self._delete_worker(node)

        self._unlink(node)
        node.parent = node.left = node.right = None
        node.balance = 0
        node._tree = None

    def _shrink(self, parent: AvlNode, left_side: bool) -> Optional[AvlNode]:
        """Rebalance after one side of ``parent`` lost height.

        Returns the node from which rebalancing continues upwards, or None.
        """
        if left_side:
            parent.balance += 1
            if parent.balance == 1:
                return None
            if parent.balance == 0:
                return parent
            sibling = parent.right
            if sibling.balance == 0:
                self._rotate_left(parent)
                return None
            if sibling.balance == 1:
                self._rotate_left(parent)
                return parent.parent
            self._rotate_right(sibling)
            self._rotate_left(parent)
            return parent.parent

        parent.balance -= 1
        if parent.balance == -1:
            return None
        if parent.balance == 0:
            return parent
        sibling = parent.left
        if sibling.balance == 0:
            self._rotate_right(parent)
            return None
        if sibling.balance == -1:
            self._rotate_right(parent)
            return parent.parent
        self._rotate_left(sibling)
        self._rotate_right(parent)
        return parent.parent

    def _post_delete(self, node: Optional[AvlNode]) -> None:
        while node is not None and node.parent is not None:
            parent = node.parent
            node = self._shrink(parent, node is parent.left)

    def _delete_worker(self, node: AvlNode) -> None:
        parent = node.parent

        if node.left is None and node.right is None:
            if parent is None:
                self.root = None
                return
            left_side = parent.left is node
            if left_side:
                parent.left = None
            else:
                parent.right = None
            self._post_delete(self._shrink(parent, left_side))
            return

        if node.left is None:
            child = node.right
            child.parent = parent
            self._replace_child(parent, node, child)
            if parent is not None:
                self._post_delete(child)
            return

        if node.right is None:
            child = node.left
            child.parent = parent
            self._replace_child(parent, node, child)
            if parent is not None:
                self._post_delete(child)
            return

        successor = node.right
        while successor.left is not None:
            successor = successor.left
        self._delete_worker(successor)
        parent = node.parent

        successor.balance = node.balance
        successor.parent = parent
        successor.left = node.left
        successor.right = node.right
        if successor.left is not None:
            successor.left.parent = successor
        if successor.right is not None:
            successor.right.parent = successor
        self._replace_child(parent, node, successor)