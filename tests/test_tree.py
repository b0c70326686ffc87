# tests/test_tree.py
import pytest

from utils.errors import CycleDetected
from utils.tree import (
    ancestors_of, breadcrumb, check_bounds, depth_of, descendants_of, has_any_descendant_progress,
    is_leaf, leaf_descendants, leaf_nodes, leaf_numbers, renumber, root_of,
)


def node(id, parent_id, lft, rgt, name=None):
    return {"id": id, "parent_id": parent_id, "lft": lft, "rgt": rgt, "name": name or f"n{id}"}


@pytest.fixture()
def tree():
    # 1 (1,10)
    #   2 (2,7)
    #     3 (3,4)
    #     4 (5,6)
    #   5 (8,9)
    # 6 (11,12)
    return [
        node(1, None, 1, 10, "Struktur"),
        node(2, 1, 2, 7, "Pondasi"),
        node(3, 2, 3, 4, "Galian"),
        node(4, 2, 5, 6, "Urugan"),
        node(5, 1, 8, 9, "Sloof"),
        node(6, None, 11, 12, "Atap"),
    ]


def test_depth_and_leaves(tree):
    assert [depth_of(n, tree) for n in tree] == [0, 1, 2, 2, 1, 0]
    assert [n["id"] for n in leaf_nodes(tree)] == [3, 4, 5, 6]
    assert is_leaf(tree[2], tree)
    assert not is_leaf(tree[1], tree)


def test_descendants_and_ancestors(tree):
    assert [n["id"] for n in descendants_of(tree[0], tree)] == [2, 3, 4, 5]
    assert [n["id"] for n in ancestors_of(tree[3], tree)] == [1, 2]
    assert [n["id"] for n in leaf_descendants(tree[0], tree)] == [3, 4, 5]
    assert leaf_descendants(tree[5], tree) == []


def test_descendant_progress(tree):
    assert has_any_descendant_progress(tree[0], tree, {4})
    assert not has_any_descendant_progress(tree[1], tree, {5})
    # a node is not its own descendant
    assert not has_any_descendant_progress(tree[5], tree, {6})


def test_leaf_numbers_restart_per_parent(tree):
    assert leaf_numbers(tree) == {3: 1, 4: 2, 5: 1, 6: 1}


def test_breadcrumb_and_root(tree):
    assert breadcrumb(tree[3], tree) == "Struktur > Pondasi > Urugan"
    assert root_of(tree[3], tree)["id"] == 1
    assert root_of(tree[5], tree)["id"] == 6


def test_depth_detects_cycle():
    looped = [node(1, 2, 1, 2), node(2, 1, 3, 4)]
    with pytest.raises(CycleDetected):
        depth_of(looped[0], looped)


def test_check_bounds_clean_tree(tree):
    assert check_bounds(tree) == []


def test_check_bounds_reports_problems():
    broken = [
        node(1, None, 1, 6),
        node(2, 1, 2, 5),   # leaf with non-adjacent bounds
        node(3, 1, 4, 8),   # escapes parent, overlaps sibling 2
        node(4, None, 9, 9),
    ]
    problems = check_bounds(broken)
    flagged = {p.node_id for p in problems}
    assert {2, 3, 4} <= flagged
    assert any("overlaps sibling 2" in p.message for p in problems)
    assert any("not greater than" in p.message for p in problems if p.node_id == 4)


def test_renumber_rebuilds_from_parents(tree):
    scrambled = [dict(n, lft=0, rgt=0) for n in tree]
    # keep sibling order through ids when lft ties
    fresh = renumber(scrambled)
    assert fresh == {
        1: (1, 10), 2: (2, 7), 3: (3, 4), 4: (5, 6), 5: (8, 9), 6: (11, 12),
    }


def test_renumber_result_is_consistent(tree):
    fresh = renumber(tree)
    rebuilt = [dict(n, lft=fresh[n["id"]][0], rgt=fresh[n["id"]][1]) for n in tree]
    assert check_bounds(rebuilt) == []


def test_renumber_rejects_cycles():
    looped = [node(1, None, 1, 2), node(2, 3, 3, 4), node(3, 2, 5, 6)]
    with pytest.raises(CycleDetected):
        renumber(looped)
