import pytest

from ubox.avl import AvlNode, AvlTree
from ubox.avl_iter import (
    AvlFindMode,
    find_element,
    iter_all,
    iter_all_reverse,
    iter_first_to,
    iter_range,
    iter_range_reverse,
    iter_to_last,
    remove_all,
)


def _cmp(a, b):
    return (a > b) - (a < b)


KEYS = [50, 20, 80, 10, 30, 70, 90, 60, 40]


def _tree(keys=KEYS, allow_dups=False):
    tree = AvlTree(_cmp, allow_dups)
    for k in keys:
        tree.insert(AvlNode(k, f"v{k}"))
    return tree


def _keys(nodes):
    return [n.key for n in nodes]


def test_find_equal():
    tree = _tree()
    node = find_element(tree, 30, AvlFindMode.EQUAL)
    assert node.key == 30
    assert node.value == "v30"
    assert find_element(tree, 35, AvlFindMode.EQUAL) is None


def test_find_default_mode_is_equal():
    tree = _tree()
    assert find_element(tree, 70).key == 70
    assert find_element(tree, 71) is None


def test_find_lessequal():
    tree = _tree()
    assert find_element(tree, 35, AvlFindMode.LESSEQUAL).key == 30
    assert find_element(tree, 30, AvlFindMode.LESSEQUAL).key == 30
    assert find_element(tree, 5, AvlFindMode.LESSEQUAL) is None
    assert find_element(tree, 1000, AvlFindMode.LESSEQUAL).key == max(KEYS)


def test_find_greaterequal():
    tree = _tree()
    assert find_element(tree, 35, AvlFindMode.GREATEREQUAL).key == 40
    assert find_element(tree, 40, AvlFindMode.GREATEREQUAL).key == 40
    assert find_element(tree, 1000, AvlFindMode.GREATEREQUAL) is None
    assert find_element(tree, 0, AvlFindMode.GREATEREQUAL).key == min(KEYS)


def test_find_on_empty_tree():
    tree = AvlTree(_cmp)
    for mode in AvlFindMode:
        assert find_element(tree, 1, mode) is None


def test_find_invalid_mode():
    with pytest.raises(ValueError):
        find_element(_tree(), 10, "bogus")


def test_iter_all_sorted():
    assert _keys(iter_all(_tree())) == sorted(KEYS)


def test_iter_all_reverse_sorted():
    assert _keys(iter_all_reverse(_tree())) == sorted(KEYS, reverse=True)


def test_iter_all_empty():
    tree = AvlTree(_cmp)
    assert list(iter_all(tree)) == []
    assert list(iter_all_reverse(tree)) == []


def test_iter_range():
    tree = _tree()
    first, last = tree.find(20), tree.find(60)
    expected = [k for k in sorted(KEYS) if 20 <= k <= 60]
    assert _keys(iter_range(tree, first, last)) == expected
    assert _keys(iter_range_reverse(tree, first, last)) == expected[::-1]


def test_iter_range_single():
    tree = _tree()
    node = tree.find(40)
    assert list(iter_range(tree, node, node)) == [node]
    assert list(iter_range_reverse(tree, node, node)) == [node]


def test_iter_to_last_and_first_to():
    tree = _tree()
    pivot = tree.find(50)
    assert _keys(iter_to_last(tree, pivot)) == [k for k in sorted(KEYS) if k >= 50]
    assert _keys(iter_first_to(tree, pivot)) == [k for k in sorted(KEYS) if k <= 50]


def test_iteration_with_deletion_of_current():
    tree = _tree()
    seen = []
    for node in iter_all(tree):
        seen.append(node.key)
        if node.key % 20 == 0:
            tree.delete(node)
    assert seen == sorted(KEYS)
    assert _keys(iter_all(tree)) == [k for k in sorted(KEYS) if k % 20 != 0]
    assert len(tree) == len([k for k in KEYS if k % 20 != 0])


def test_reverse_iteration_with_deletion_of_current():
    tree = _tree()
    for node in iter_all_reverse(tree):
        tree.delete(node)
    assert tree.is_empty()
    assert list(iter_all(tree)) == []


def test_duplicates_keep_insertion_order():
    tree = AvlTree(_cmp, allow_dups=True)
    nodes = [AvlNode(5, i) for i in range(3)] + [AvlNode(1, "a"), AvlNode(9, "b")]
    for n in nodes:
        tree.insert(n)
    values = [n.value for n in iter_all(tree)]
    assert values == ["a", 0, 1, 2, "b"]
    assert find_element(tree, 5).value == 0


def test_remove_all_empties_tree():
    tree = _tree()
    removed = list(remove_all(tree))
    assert _keys(removed) == sorted(KEYS)
    assert len(tree) == 0
    assert tree.is_empty()
    assert tree.root is None
    assert tree.first() is None
    assert list(iter_all(tree)) == []


def test_remove_all_nodes_can_be_reinserted():
    tree = _tree()
    nodes = list(remove_all(tree))
    other = AvlTree(_cmp)
    for n in reversed(nodes):
        other.insert(n)
    assert _keys(iter_all(other)) == sorted(KEYS)
    assert len(other) == len(KEYS)


def test_remove_all_then_reuse_tree():
    tree = _tree()
    list(remove_all(tree))
    tree.insert(AvlNode(3))
    assert _keys(iter_all(tree)) == [3]
    assert tree.is_first(tree.find(3))
    assert tree.is_last(tree.find(3))