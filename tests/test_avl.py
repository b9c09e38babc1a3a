import random

import pytest

from ubox.avl import AvlNode, AvlTree, DuplicateKeyError


def cmp(a, b):
    return (a > b) - (a < b)


def height_checked(node, parent=None):
    if node is None:
        return 0
    assert node.parent is parent
    assert node.leader
    lh = height_checked(node.left, node)
    rh = height_checked(node.right, node)
    assert node.balance == rh - lh
    assert abs(node.balance) <= 1
    return 1 + max(lh, rh)


def count_tree(node):
    if node is None:
        return 0
    return 1 + count_tree(node.left) + count_tree(node.right)


def check_tree(tree):
    height_checked(tree.root)
    keys = [n.key for n in tree]
    assert keys == sorted(keys)
    assert len(keys) == len(tree)
    leaders = sum(1 for n in tree if n.leader)
    assert count_tree(tree.root) == leaders


def build(keys, allow_dups=False):
    tree = AvlTree(cmp, allow_dups)
    nodes = [tree.insert(AvlNode(k, str(k))) for k in keys]
    return tree, nodes


def test_empty_tree():
    tree = AvlTree(cmp)
    assert len(tree) == 0
    assert tree.is_empty()
    assert tree.first() is None
    assert tree.find(1) is None
    assert tree.find_lessequal(1) is None
    assert tree.find_greaterequal(1) is None


def test_insert_keeps_order_and_balance():
    rng = random.Random(1)
    keys = rng.sample(range(1000), 300)
    tree, _ = build(keys)
    check_tree(tree)
    assert [n.key for n in tree] == sorted(keys)
    assert not tree.is_empty()


def test_sequential_insert_stays_balanced():
    tree, _ = build(range(128))
    check_tree(tree)
    assert height_checked(tree.root) <= 8


def test_find_returns_matching_node():
    tree, nodes = build([5, 3, 8, 1, 4])
    for node in nodes:
        assert tree.find(node.key) is node
    assert tree.find(7) is None


def test_duplicate_rejected():
    tree, _ = build([1, 2])
    with pytest.raises(DuplicateKeyError):
        tree.insert(AvlNode(2))
    assert len(tree) == 2
    check_tree(tree)


def test_reinsert_node_rejected():
    tree, nodes = build([1])
    with pytest.raises(ValueError):
        tree.insert(nodes[0])


def test_delete_random_order():
    rng = random.Random(7)
    keys = rng.sample(range(500), 200)
    tree, nodes = build(keys)
    rng.shuffle(nodes)
    remaining = set(keys)
    for node in nodes:
        tree.delete(node)
        remaining.discard(node.key)
        check_tree(tree)
        assert [n.key for n in tree] == sorted(remaining)
        assert tree.find(node.key) is None
    assert tree.root is None
    assert tree.is_empty()


def test_delete_foreign_node_raises():
    tree, _ = build([1, 2])
    with pytest.raises(ValueError):
        tree.delete(AvlNode(1))


def test_duplicates_keep_insertion_order():
    tree = AvlTree(cmp, allow_dups=True)
    for key, value in [(1, "a"), (0, "x"), (1, "b"), (2, "y"), (1, "c")]:
        tree.insert(AvlNode(key, value))
    check_tree(tree)
    assert [n.value for n in tree] == ["x", "a", "b", "c", "y"]
    assert tree.find(1).value == "a"


def test_delete_duplicate_leader_promotes_next():
    tree = AvlTree(cmp, allow_dups=True)
    for key, value in [(2, "p"), (1, "a"), (3, "q"), (1, "b")]:
        tree.insert(AvlNode(key, value))
    leader = tree.find(1)
    tree.delete(leader)
    check_tree(tree)
    assert tree.find(1).value == "b"
    assert tree.find(1).leader
    assert [n.value for n in tree] == ["b", "p", "q"]


def test_find_lessequal_and_greaterequal():
    tree, _ = build([10, 20, 30])
    assert tree.find_lessequal(25).key == 20
    assert tree.find_lessequal(30).key == 30
    assert tree.find_lessequal(5) is None
    assert tree.find_greaterequal(25).key == 30
    assert tree.find_greaterequal(10).key == 10
    assert tree.find_greaterequal(35) is None


def test_lessequal_greaterequal_with_duplicates():
    tree = AvlTree(cmp, allow_dups=True)
    for key, value in [(0, "z"), (1, "a"), (1, "b"), (2, "y")]:
        tree.insert(AvlNode(key, value))
    assert tree.find_lessequal(1).value == "b"
    assert tree.find_greaterequal(1).value == "a"


def test_navigation():
    tree, _ = build([3, 1, 2])
    first = tree.first()
    last = tree.last()
    assert first.key == 1 and last.key == 3
    assert tree.is_first(first) and tree.is_last(last)
    assert tree.next(first).key == 2
    assert tree.prev(last).key == 2
    assert tree.prev(first) is None
    assert tree.next(last) is None


def test_iteration_survives_deleting_current():
    tree, _ = build(range(20))
    for node in tree:
        if node.key % 2:
            tree.delete(node)
    check_tree(tree)
    assert [n.key for n in tree] == list(range(0, 20, 2))