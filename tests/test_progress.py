# tests/test_progress.py
from datetime import date
from decimal import Decimal

import pytest
from sqlmodel import select

from models.task import Task
from models.task_progress import TaskProgress
from utils import progress
from utils.cloner import clone_templates_for_project
from utils.errors import NotFoundError, ValidationError
from utils.progress import (
    LatestProgress, compute_progress, entry_unchanged, get_latest_progress, get_rollup, record_progress,
    task_has_descendant_progress, tasks_without_progress,
)

TODAY = date(2025, 3, 1)


@pytest.fixture()
def tasks(session, catalog, project):
    clone_templates_for_project(session, project)
    rows = session.exec(select(Task).where(Task.project_id == project.id)).all()
    by_template = {t.template_task_id: t for t in rows}
    return {key: by_template[tpl.id] for key, tpl in catalog.items()}


def record(session, project, user, task, pct, day, notes=None):
    return record_progress(session, task.id, project.id, user.id, pct, day, notes, today=TODAY)


def test_rollup_is_mean_of_leaves(session, project, user, tasks):
    record(session, project, user, tasks["dig"], 40, date(2025, 1, 1))
    record(session, project, user, tasks["sand"], 80, date(2025, 1, 1))

    rollup = get_rollup(session, project.id, date(2025, 1, 1))
    assert rollup[tasks["found"].id].percentage == Decimal("60.00")
    assert rollup[tasks["found"].id].leaf_count == 2
    assert rollup[tasks["struct"].id].percentage == Decimal("60.00")
    # no-data leaves count as zero
    assert rollup[tasks["prep"].id].percentage == Decimal("0.00")
    assert rollup[tasks["prep"].id].leaf_count == 2
    assert tasks["dig"].id not in rollup


def test_latest_progress_respects_as_of(session, project, user, tasks):
    record(session, project, user, tasks["clean"], 10, date(2025, 1, 1))
    record(session, project, user, tasks["clean"], 35, date(2025, 1, 5), notes="cleared east side")

    early = get_latest_progress(session, project.id, date(2025, 1, 3))
    late = get_latest_progress(session, project.id, date(2025, 2, 1))
    assert early[tasks["clean"].id].percentage == Decimal("10.00")
    assert late[tasks["clean"].id].percentage == Decimal("35.00")
    assert late[tasks["clean"].id].notes == "cleared east side"
    assert tasks["survey"].id not in late
    assert get_latest_progress(session, project.id, date(2024, 12, 31)) == {}


def test_weighted_mode(session, project, user, tasks):
    record(session, project, user, tasks["dig"], 100, date(2025, 1, 1))
    record(session, project, user, tasks["sand"], 50, date(2025, 1, 1))

    entries = session.exec(select(TaskProgress)).all()
    all_tasks = session.exec(select(Task).where(Task.project_id == project.id)).all()
    snap = compute_progress(all_tasks, entries, date(2025, 1, 1), mode="weighted")
    # (100*20 + 50*40) / 60
    assert snap.rollup[tasks["found"].id].percentage == Decimal("66.67")
    # (100*20 + 50*40) / 100
    assert snap.project == Decimal("40.00")
    assert snap.no_data == {tasks["clean"].id, tasks["survey"].id}


def test_weighted_mode_zero_weights():
    leaves = [Task(id=1, project_id=1, name="a", lft=1, rgt=2, weight=Decimal("0"))]
    entries = [TaskProgress(task_id=1, project_id=1, user_id=1, percentage=Decimal("50"),
                            progress_date=date(2025, 1, 1))]
    assert compute_progress(leaves, entries, date(2025, 1, 1), mode="weighted").project == Decimal("0.00")


def test_parent_without_leaves():
    # child points at the group but its bounds sit outside it
    lone = [Task(id=1, project_id=1, name="group", lft=1, rgt=2),
            Task(id=2, project_id=1, parent_id=1, name="sub", lft=3, rgt=4)]
    snap = compute_progress(lone, [], date(2025, 1, 1))
    assert snap.rollup[1].percentage == Decimal("0.00")
    assert snap.rollup[1].leaf_count == 0


def test_upsert_keeps_one_row_per_day(session, project, user, tasks):
    day = date(2025, 1, 1)
    record(session, project, user, tasks["clean"], 20, day)
    record(session, project, user, tasks["clean"], 25, day, notes="revised")

    rows = session.exec(select(TaskProgress).where(TaskProgress.task_id == tasks["clean"].id)).all()
    assert len(rows) == 1
    assert rows[0].percentage == Decimal("25.00")
    assert rows[0].notes == "revised"


@pytest.mark.parametrize("pct", [-1, "100.01", "abc", None])
def test_rejects_bad_percentage(session, project, user, tasks, pct):
    with pytest.raises(ValidationError) as exc:
        record(session, project, user, tasks["clean"], pct, date(2025, 1, 2))
    assert exc.value.field == "percentage"


def test_percentage_range_message(session, project, user, tasks):
    with pytest.raises(ValidationError, match="Percentage must be between 0 and 100."):
        record(session, project, user, tasks["clean"], 101, date(2025, 1, 2))


def test_rejects_future_and_out_of_range_dates(session, project, user, tasks):
    with pytest.raises(ValidationError, match="future"):
        record(session, project, user, tasks["clean"], 10, date(2025, 3, 2))
    with pytest.raises(ValidationError, match="project period"):
        record(session, project, user, tasks["clean"], 10, date(2024, 12, 31))


def test_accepts_date_strings(session, project, user, tasks):
    entry = record(session, project, user, tasks["clean"], "12.5", "2025-01-01")
    assert entry.progress_date == date(2025, 1, 1)
    assert entry.percentage == Decimal("12.50")


def test_rejects_parent_and_foreign_tasks(session, project, user, tasks):
    with pytest.raises(ValidationError):
        record(session, project, user, tasks["found"], 10, date(2025, 1, 1))
    with pytest.raises(NotFoundError):
        record_progress(session, tasks["clean"].id, 999, user.id, 10, date(2025, 1, 1), today=TODAY)
    with pytest.raises(NotFoundError):
        record_progress(session, 9999, project.id, user.id, 10, date(2025, 1, 1), today=TODAY)


def test_descendant_progress(session, project, user, tasks):
    assert not task_has_descendant_progress(session, tasks["struct"])
    record(session, project, user, tasks["sand"], 10, date(2025, 1, 1))
    assert task_has_descendant_progress(session, tasks["struct"])
    assert task_has_descendant_progress(session, tasks["found"])
    assert not task_has_descendant_progress(session, tasks["prep"])


def test_tasks_without_progress_grouped_by_root(session, project, user, tasks):
    record(session, project, user, tasks["clean"], 10, date(2025, 1, 1))
    groups = tasks_without_progress(session, project.id, date(2025, 1, 1), date(2025, 1, 7))

    assert list(groups) == ["Pekerjaan Persiapan", "Pekerjaan Struktur"]
    assert [i["name"] for i in groups["Pekerjaan Persiapan"]] == ["Pengukuran"]
    assert groups["Pekerjaan Struktur"][1]["path"] == "Pekerjaan Struktur > Pondasi > Urugan pasir"


def test_losing_insert_race_updates_existing_row(session, project, user, tasks, monkeypatch):
    day = date(2025, 1, 5)
    record(session, project, user, tasks["clean"], 10, day)

    real_find = progress._find_entry
    calls = []

    def miss_once(*args, **kwargs):
        calls.append(args)
        # the first lookup runs before the other writer's row is visible
        return None if len(calls) == 1 else real_find(*args, **kwargs)

    monkeypatch.setattr(progress, "_find_entry", miss_once)
    entry = record(session, project, user, tasks["clean"], 55, day, notes="second writer")

    rows = session.exec(
        select(TaskProgress).where(TaskProgress.task_id == tasks["clean"].id, TaskProgress.progress_date == day)
    ).all()
    assert len(rows) == 1
    assert rows[0].percentage == Decimal("55.00")
    assert rows[0].notes == "second writer"
    assert entry.id == rows[0].id
    assert len(calls) == 2


def test_entry_unchanged_only_for_same_day():
    stored = LatestProgress(Decimal("40.00"), date(2025, 1, 3), "east side")
    assert entry_unchanged(stored, date(2025, 1, 3), 40, "east side ")
    assert not entry_unchanged(stored, date(2025, 1, 3), "40.5", "east side")
    assert not entry_unchanged(stored, date(2025, 1, 3), 40, "")
    # carried over from an earlier day: confirming "still 40%" must be saved
    assert not entry_unchanged(stored, date(2025, 1, 4), 40, "east side")
    assert not entry_unchanged(None, date(2025, 1, 4), 0)
