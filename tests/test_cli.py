# tests/test_cli.py
from datetime import date
from decimal import Decimal

import pytest
from sqlmodel import select

import cli
from models.task import Task
from models.task_template import TaskTemplate
from utils.cloner import count_project_tasks
from utils.nested_set import load_tree
from utils.progress import record_progress
from utils.templates import update_template
from utils.tree import leaf_nodes
from utils.weights import weight_sum


@pytest.fixture(autouse=True)
def no_log_files(monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda: None)


def test_init_db(session, capsys):
    assert cli.main(["init-db"], session=session) == 0
    assert "✓" in capsys.readouterr().out


def test_import_templates(session, tmp_path, capsys):
    path = tmp_path / "templates.csv"
    path.write_text(
        "l1,l2,l3,l4,l5,l6,volume,unit,price,weight\n"
        "Persiapan,Pembersihan,,,,,100,m2,15000,40\n"
        ",Pengukuran,,,,,1,ls,2500000,60\n",
        encoding="utf-8",
    )
    assert cli.main(["import-templates", str(path)], session=session) == 0
    out = capsys.readouterr().out
    assert "Imported 2 template(s) and 1 group(s)" in out
    assert len(load_tree(session, TaskTemplate)) == 3


def test_import_missing_file(session, tmp_path, capsys):
    assert cli.main(["import-templates", str(tmp_path / "nope.csv")], session=session) == 1
    assert "File not found" in capsys.readouterr().out


def test_normalize_weights(session, catalog):
    update_template(session, catalog["sand"].id, weight=0)
    assert cli.main(["normalize-weights"], session=session) == 0
    assert weight_sum(leaf_nodes(load_tree(session, TaskTemplate))) == Decimal("100.00")


def test_normalize_task_scope_needs_project(session, capsys):
    assert cli.main(["normalize-weights", "--scope", "task"], session=session) == 1
    assert "❌" in capsys.readouterr().out


def test_clone_templates_guard(session, catalog, project, capsys):
    assert cli.main(["clone-templates", "--project-id", str(project.id)], session=session) == 0
    assert cli.main(["clone-templates", "--project-id", str(project.id)], session=session) == 1
    assert "use --force" in capsys.readouterr().out
    assert cli.main(["clone-templates", "--project-id", str(project.id), "--force"], session=session) == 0
    assert count_project_tasks(session, project.id) == 7


def test_reset_and_unknown_project(session, catalog, project, capsys):
    cli.main(["clone-templates", "--project-id", str(project.id)], session=session)
    assert cli.main(["reset-tasks", "--project-id", str(project.id)], session=session) == 0
    assert count_project_tasks(session, project.id) == 0
    assert cli.main(["reset-tasks", "--project-id", "999"], session=session) == 1
    assert "❌" in capsys.readouterr().out


def test_check_and_rebuild_tree(session, catalog, capsys):
    assert cli.main(["check-tree"], session=session) == 0
    catalog["sand"].lft, catalog["sand"].rgt = 40, 41
    session.add(catalog["sand"])
    session.commit()
    assert cli.main(["check-tree"], session=session) == 1
    assert cli.main(["rebuild-tree"], session=session) == 0
    assert cli.main(["check-tree"], session=session) == 0
    assert "bounds consistent" in capsys.readouterr().out


def test_rollup(session, catalog, project, user, capsys):
    cli.main(["clone-templates", "--project-id", str(project.id)], session=session)
    dig = session.exec(select(Task).where(Task.template_task_id == catalog["dig"].id)).one()
    record_progress(session, dig.id, project.id, user.id, 50, date(2025, 1, 1), today=date(2025, 1, 1))
    capsys.readouterr()

    assert cli.main(["rollup", "--project-id", str(project.id), "--date", "2025-01-01"], session=session) == 0
    out = capsys.readouterr().out
    # average of dig (50) and sand (no data)
    assert "Pondasi" in out
    assert "25.00%" in out
