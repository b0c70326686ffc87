# utils/tree.py
"""Nested-set helpers shared by the template catalog and project task trees.

Everything here is pure: functions take node objects (anything with ``id``,
``parent_id``, ``lft`` and ``rgt``) or dicts with the same keys, and never
touch the database. Session-bound mutation lives in ``utils.nested_set``.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from utils.errors import CycleDetected, InvariantViolation


def _get(node, key):
    if isinstance(node, dict):
        return node.get(key)
    return getattr(node, key, None)


def by_id(nodes: Iterable) -> Dict[int, object]:
    return {_get(n, "id"): n for n in nodes}


def sort_by_lft(nodes: Iterable) -> List:
    return sorted(nodes, key=lambda n: (_get(n, "lft") or 0, _get(n, "id") or 0))


def child_counts(nodes: Iterable) -> Dict[int, int]:
    counts: Dict[int, int] = defaultdict(int)
    for n in nodes:
        pid = _get(n, "parent_id")
        if pid is not None:
            counts[pid] += 1
    return counts


def is_leaf(node, nodes: Iterable) -> bool:
    node_id = _get(node, "id")
    return not any(_get(n, "parent_id") == node_id for n in nodes)


def leaf_nodes(nodes: Sequence) -> List:
    """Nodes that no other node points at, in ``lft`` order."""
    counts = child_counts(nodes)
    return [n for n in sort_by_lft(nodes) if counts.get(_get(n, "id"), 0) == 0]


def depth_of(node, nodes) -> int:
    """Ancestor hops from ``node`` up to its root, following ``parent_id``."""
    index = nodes if isinstance(nodes, dict) else by_id(nodes)
    depth = 0
    seen = {_get(node, "id")}
    current = _get(node, "parent_id")
    while current is not None and current in index:
        if current in seen:
            raise CycleDetected(current)
        seen.add(current)
        depth += 1
        current = _get(index[current], "parent_id")
    return depth


def descendants_of(node, nodes: Iterable) -> List:
    lft, rgt = _get(node, "lft"), _get(node, "rgt")
    return [n for n in sort_by_lft(nodes) if lft < _get(n, "lft") and _get(n, "rgt") < rgt]


def ancestors_of(node, nodes: Iterable) -> List:
    """Enclosing nodes, outermost first."""
    lft, rgt = _get(node, "lft"), _get(node, "rgt")
    return [n for n in sort_by_lft(nodes) if _get(n, "lft") < lft and rgt < _get(n, "rgt")]


def leaf_descendants(node, nodes: Sequence, leaves: Optional[Sequence] = None) -> List:
    if leaves is None:
        leaves = leaf_nodes(nodes)
    lft, rgt = _get(node, "lft"), _get(node, "rgt")
    return [leaf for leaf in leaves if lft < _get(leaf, "lft") and _get(leaf, "rgt") < rgt]


def has_any_descendant_progress(node, nodes: Sequence, task_ids_with_progress: Set[int]) -> bool:
    return any(_get(leaf, "id") in task_ids_with_progress for leaf in leaf_descendants(node, nodes))


def leaf_numbers(nodes: Sequence) -> Dict[int, int]:
    """1-based display numbers for leaves, counted per immediate parent."""
    counts = child_counts(nodes)
    running: Dict[Optional[int], int] = defaultdict(int)
    numbers: Dict[int, int] = {}
    for n in sort_by_lft(nodes):
        if counts.get(_get(n, "id"), 0):
            continue
        parent = _get(n, "parent_id")
        running[parent] += 1
        numbers[_get(n, "id")] = running[parent]
    return numbers


def breadcrumb(node, nodes, sep: str = " > ") -> str:
    index = nodes if isinstance(nodes, dict) else by_id(nodes)
    chain = [_get(node, "name")]
    seen = {_get(node, "id")}
    current = _get(node, "parent_id")
    while current is not None and current in index and current not in seen:
        seen.add(current)
        chain.append(_get(index[current], "name"))
        current = _get(index[current], "parent_id")
    return sep.join(reversed(chain))


def root_of(node, nodes):
    index = nodes if isinstance(nodes, dict) else by_id(nodes)
    current = node
    seen = set()
    while _get(current, "parent_id") in index and _get(current, "id") not in seen:
        seen.add(_get(current, "id"))
        current = index[_get(current, "parent_id")]
    return current


def check_bounds(nodes: Sequence) -> List[InvariantViolation]:
    """Report nested-set corruption instead of raising; callers decide."""
    problems: List[InvariantViolation] = []
    index = by_id(nodes)
    counts = child_counts(nodes)
    siblings: Dict[Optional[int], List] = defaultdict(list)

    for n in nodes:
        nid, lft, rgt = _get(n, "id"), _get(n, "lft"), _get(n, "rgt")
        siblings[_get(n, "parent_id")].append(n)
        if rgt <= lft:
            problems.append(InvariantViolation(nid, f"rgt {rgt} is not greater than lft {lft}"))
        if counts.get(nid, 0) == 0 and rgt != lft + 1:
            problems.append(InvariantViolation(nid, f"leaf bounds ({lft}, {rgt}) are not adjacent"))
        parent = index.get(_get(n, "parent_id"))
        if parent is not None and not (_get(parent, "lft") < lft and rgt < _get(parent, "rgt")):
            problems.append(InvariantViolation(nid, f"bounds ({lft}, {rgt}) escape parent {_get(parent, 'id')}"))

    for group in siblings.values():
        ordered = sort_by_lft(group)
        for left, right in zip(ordered, ordered[1:]):
            if _get(left, "rgt") >= _get(right, "lft"):
                problems.append(InvariantViolation(
                    _get(right, "id"),
                    f"overlaps sibling {_get(left, 'id')}",
                ))
    return problems


def renumber(nodes: Sequence, start: int = 1) -> Dict[int, Tuple[int, int]]:
    """Fresh bounds derived from parent pointers.

    Children keep their current relative order (``lft``, then ``id``).
    Nodes whose parent is missing from ``nodes`` are treated as roots.
    """
    index = by_id(nodes)
    children: Dict[Optional[int], List] = defaultdict(list)
    for n in sort_by_lft(nodes):
        pid = _get(n, "parent_id")
        children[pid if pid in index else None].append(n)

    bounds: Dict[int, Tuple[int, int]] = {}
    counter = start
    # iterative walk so deep trees cannot hit the recursion limit
    for root in children[None]:
        stack = [(root, iter(children[_get(root, "id")]))]
        lft_of = {_get(root, "id"): counter}
        counter += 1
        while stack:
            node, kids = stack[-1]
            child = next(kids, None)
            if child is None:
                stack.pop()
                bounds[_get(node, "id")] = (lft_of[_get(node, "id")], counter)
                counter += 1
                continue
            cid = _get(child, "id")
            if cid in lft_of:
                raise CycleDetected(cid)
            lft_of[cid] = counter
            counter += 1
            stack.append((child, iter(children[cid])))

    unreached = [_get(n, "id") for n in nodes if _get(n, "id") not in bounds]
    if unreached:
        raise CycleDetected(unreached[0])
    return bounds
