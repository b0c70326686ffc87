# tests/test_nested_set.py
from sqlmodel import select

from models.task_template import TaskTemplate
from utils.nested_set import load_tree, rebuild_bounds, verify_tree
from utils.templates import create_template, delete_template


def bounds(session):
    return {t.name: (t.lft, t.rgt) for t in load_tree(session, TaskTemplate)}


def test_append_keeps_bounds_valid(session, catalog):
    assert bounds(session) == {
        "Pekerjaan Persiapan": (1, 6),
        "Pembersihan lokasi": (2, 3),
        "Pengukuran": (4, 5),
        "Pekerjaan Struktur": (7, 14),
        "Pondasi": (8, 13),
        "Galian tanah": (9, 10),
        "Urugan pasir": (11, 12),
    }
    assert verify_tree(session, TaskTemplate) == []


def test_insert_in_middle_shifts_following_nodes(session, catalog):
    create_template(session, "Bowplank", volume=20, unit="m1", price=45000, weight=5,
                    parent_id=catalog["prep"].id)
    b = bounds(session)
    assert b["Bowplank"] == (6, 7)
    assert b["Pekerjaan Persiapan"] == (1, 8)
    assert b["Pekerjaan Struktur"] == (9, 16)
    assert b["Urugan pasir"] == (13, 14)
    assert verify_tree(session, TaskTemplate) == []


def test_delete_subtree_closes_gap(session, catalog):
    removed = delete_template(session, catalog["found"].id)
    assert removed == 3
    b = bounds(session)
    assert "Galian tanah" not in b
    assert b["Pekerjaan Struktur"] == (7, 8)
    assert verify_tree(session, TaskTemplate) == []


def test_rebuild_bounds_repairs_corruption(session, catalog):
    for t in session.exec(select(TaskTemplate)).all():
        t.lft, t.rgt = 0, 0
        session.add(t)
    session.commit()
    assert verify_tree(session, TaskTemplate)

    changed = rebuild_bounds(session, TaskTemplate)
    assert changed == 7
    assert verify_tree(session, TaskTemplate) == []
