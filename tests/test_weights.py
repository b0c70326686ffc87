# tests/test_weights.py
from decimal import Decimal

import pytest

from models.task import Task
from models.task_template import TaskTemplate
from utils.cloner import clone_templates_for_project
from utils.errors import NotFoundError, ValidationError
from utils.nested_set import load_tree
from utils.templates import create_template, update_template
from utils.tree import leaf_nodes
from utils.weights import WEIGHT_TOLERANCE, normalize_leaf_weights, weight_sum, weights_balanced


def test_already_normalized_catalog_is_untouched(session, catalog):
    result = normalize_leaf_weights(session, "template")
    assert result.success
    assert result.updated_count == 0
    assert result.final_sum == Decimal("100.00")


def test_scales_to_exactly_100(session, catalog):
    for key, w in (("clean", 1), ("survey", 1), ("dig", 1), ("sand", 0)):
        update_template(session, catalog[key].id, weight=w)
    create_template(session, "Bekisting", weight=0, parent_id=catalog["found"].id)

    result = normalize_leaf_weights(session, "template")

    leaves = leaf_nodes(load_tree(session, TaskTemplate))
    assert result.success
    assert weight_sum(leaves) == Decimal("100.00")
    # 33.33 * 3 = 99.99, the residue goes to the first of the tied heaviest
    by_name = {t.name: t.weight for t in leaves}
    assert by_name["Pembersihan lokasi"] == Decimal("33.34")
    assert by_name["Pengukuran"] == Decimal("33.33")
    assert by_name["Galian tanah"] == Decimal("33.33")
    assert by_name["Urugan pasir"] == Decimal("0.00")
    assert result.updated_count == 3


def test_containers_are_ignored(session, catalog):
    update_template(session, catalog["struct"].id, weight=500)
    result = normalize_leaf_weights(session, "template")
    assert result.success
    assert result.updated_count == 0


def test_zero_sum_fails_without_writes(session, catalog):
    for key in ("clean", "survey", "dig", "sand"):
        update_template(session, catalog[key].id, weight=0)
    result = normalize_leaf_weights(session, "template")
    assert not result.success
    assert "weight sum is 0" in result.message
    assert weight_sum(leaf_nodes(load_tree(session, TaskTemplate))) == Decimal("0.00")


def test_empty_catalog_reports_no_leaves(session):
    result = normalize_leaf_weights(session, "template")
    assert not result.success
    assert result.message == "No leaf tasks found."


def test_task_scope_only_touches_one_project(session, catalog, project):
    clone_templates_for_project(session, project)
    tasks = load_tree(session, Task, project.id)
    for t in leaf_nodes(tasks):
        t.weight = Decimal("5")
        session.add(t)
    session.commit()

    result = normalize_leaf_weights(session, "task", project.id)
    assert result.success
    assert result.final_sum == Decimal("100.00")
    assert all(t.weight == Decimal("25.00") for t in leaf_nodes(load_tree(session, Task, project.id)))
    # catalog keeps its own weights
    assert catalog["sand"].weight == Decimal("40.00")


def test_task_scope_requires_project(session):
    with pytest.raises(ValidationError):
        normalize_leaf_weights(session, "task")
    with pytest.raises(NotFoundError):
        normalize_leaf_weights(session, "task", 999)


def test_balance_tolerance(catalog, session):
    leaves = leaf_nodes(load_tree(session, TaskTemplate))
    assert weights_balanced(leaves)
    leaves[0].weight = leaves[0].weight + WEIGHT_TOLERANCE * 2
    assert not weights_balanced(leaves)
