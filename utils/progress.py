# utils/progress.py
"""Progress entry, latest-value lookup and rollup.

Progress is only ever recorded on leaf tasks. Parent percentages are never
stored; they are derived on read for whatever date is asked for.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from models.project import Project
from models.task import Task
from models.task_progress import TaskProgress
from utils.backfill import backfill_progress
from utils.dates import parse_date
from utils.decimals import HUNDRED, ZERO, round2, to_decimal
from utils.errors import NotFoundError, ValidationError
from utils.nested_set import load_tree
from utils.tree import breadcrumb, by_id, leaf_descendants, leaf_nodes, root_of

logger = logging.getLogger(__name__)

ROLLUP_MODES = ("average", "weighted")


@dataclass(frozen=True)
class LatestProgress:
    percentage: Decimal
    progress_date: date
    notes: Optional[str] = None


@dataclass(frozen=True)
class Rollup:
    percentage: Decimal
    leaf_count: int


@dataclass
class ProgressSnapshot:
    latest: Dict[int, LatestProgress] = field(default_factory=dict)
    rollup: Dict[int, Rollup] = field(default_factory=dict)
    no_data: Set[int] = field(default_factory=set)
    project: Decimal = ZERO


def latest_progress(entries: Iterable, as_of: date) -> Dict[int, LatestProgress]:
    latest: Dict[int, LatestProgress] = {}
    for e in entries:
        if e.progress_date > as_of:
            continue
        seen = latest.get(e.task_id)
        if seen is None or e.progress_date > seen.progress_date:
            latest[e.task_id] = LatestProgress(round2(e.percentage), e.progress_date, e.notes)
    return latest


def _aggregate(leaves: Sequence, latest: Dict[int, LatestProgress], mode: str) -> Decimal:
    if not leaves:
        return ZERO
    if mode == "weighted":
        total_weight = sum((to_decimal(leaf.weight) for leaf in leaves), ZERO)
        if total_weight == 0:
            return ZERO
        done = sum(
            (min(latest[leaf.id].percentage, HUNDRED) * to_decimal(leaf.weight)
             for leaf in leaves if leaf.id in latest),
            ZERO,
        )
        return round2(done / total_weight)
    # no-data leaves count as 0 but stay in the denominator
    total = sum((latest[leaf.id].percentage for leaf in leaves if leaf.id in latest), ZERO)
    return round2(total / len(leaves))


def compute_progress(tasks: Sequence, entries: Iterable, as_of: date, mode: str = "average") -> ProgressSnapshot:
    """Rollup for every parent task of one project as of ``as_of``.

    ``average`` is the plain mean of leaf percentages; ``weighted`` uses
    leaf weights, as the dashboard does.
    """
    if mode not in ROLLUP_MODES:
        raise ValidationError("mode", f"Mode must be one of {', '.join(ROLLUP_MODES)}.")
    latest = latest_progress(entries, as_of)
    leaves = leaf_nodes(tasks)
    leaf_ids = {leaf.id for leaf in leaves}

    snapshot = ProgressSnapshot(latest=latest)
    snapshot.no_data = {leaf.id for leaf in leaves if leaf.id not in latest}
    for task in tasks:
        if task.id in leaf_ids:
            continue
        under = leaf_descendants(task, tasks, leaves)
        snapshot.rollup[task.id] = Rollup(_aggregate(under, latest, mode), len(under))
    snapshot.project = _aggregate(leaves, latest, mode)
    return snapshot


def _entries_until(session: Session, project_id: int, as_of: date) -> List[TaskProgress]:
    return list(session.exec(
        select(TaskProgress)
        .where(TaskProgress.project_id == project_id, TaskProgress.progress_date <= as_of)
        .order_by(TaskProgress.task_id, TaskProgress.progress_date)
    ).all())


def get_latest_progress(session: Session, project_id: int, as_of: date) -> Dict[int, LatestProgress]:
    return latest_progress(_entries_until(session, project_id, as_of), as_of)


def get_snapshot(session: Session, project_id: int, as_of: date, mode: str = "average") -> ProgressSnapshot:
    tasks = load_tree(session, Task, project_id)
    return compute_progress(tasks, _entries_until(session, project_id, as_of), as_of, mode)


def get_rollup(session: Session, project_id: int, as_of: date, mode: str = "average") -> Dict[int, Rollup]:
    return get_snapshot(session, project_id, as_of, mode).rollup


def project_progress(session: Session, project_id: int, as_of: date, mode: str = "weighted") -> Decimal:
    return get_snapshot(session, project_id, as_of, mode).project


def _validate_percentage(value) -> Decimal:
    if value is None or value == "":
        raise ValidationError("percentage", "Percentage is required.")
    try:
        pct = to_decimal(value)
    except ValueError:
        raise ValidationError("percentage", "Percentage must be a number.") from None
    if not pct.is_finite():
        raise ValidationError("percentage", "Percentage must be a number.")
    if pct < 0 or pct > 100:
        raise ValidationError("percentage", "Percentage must be between 0 and 100.")
    return round2(pct)


def entry_unchanged(latest: Optional[LatestProgress], as_of: date, percentage, notes=None) -> bool:
    """True when saving would rewrite the entry already stored for ``as_of``.

    A value carried over from an earlier day never counts as unchanged.
    """
    if latest is None or latest.progress_date != as_of:
        return False
    return round2(latest.percentage) == round2(percentage) and (latest.notes or "") == (notes or "").strip()


def _find_entry(session: Session, task_id: int, project_id: int, progress_date: date) -> Optional[TaskProgress]:
    return session.exec(
        select(TaskProgress).where(
            TaskProgress.task_id == task_id,
            TaskProgress.project_id == project_id,
            TaskProgress.progress_date == progress_date,
        )
    ).first()


def _apply(entry: TaskProgress, percentage: Decimal, notes, user_id: int) -> None:
    entry.percentage = percentage
    entry.notes = notes
    entry.user_id = user_id
    entry.updated_at = datetime.now(timezone.utc)


def record_progress(session: Session, task_id: int, project_id: int, user_id: int, percentage,
                    progress_date, notes: Optional[str] = None, today: Optional[date] = None) -> TaskProgress:
    """Create or overwrite the entry for (task, project, day).

    The first entry ever stored for a task also backfills the days before
    it; a failed backfill raises BackfillError after the entry is saved.
    """
    pct = _validate_percentage(percentage)
    progress_date = parse_date(progress_date, "progress_date")
    today = today or date.today()
    if progress_date > today:
        raise ValidationError("progress_date", "Cannot save progress for future dates.")

    project = session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    if project.start_date and project.end_date and not (project.start_date <= progress_date <= project.end_date):
        raise ValidationError(
            "progress_date",
            f"Date must be within the project period ({project.start_date} to {project.end_date}).",
        )
    task = session.get(Task, task_id)
    if task is None or task.project_id != project_id:
        raise NotFoundError("Task", task_id)
    has_children = session.exec(select(Task.id).where(Task.parent_id == task_id).limit(1)).first()
    if has_children is not None:
        raise ValidationError("task_id", "Progress can only be recorded on leaf tasks.")
    notes = (notes or "").strip() or None

    entry = _find_entry(session, task_id, project_id, progress_date)
    if entry is not None:
        _apply(entry, pct, notes, user_id)
        session.add(entry)
        session.commit()
        session.refresh(entry)
        return entry

    entry = TaskProgress(task_id=task_id, project_id=project_id, user_id=user_id,
                         percentage=pct, progress_date=progress_date, notes=notes)
    session.add(entry)
    try:
        session.commit()
    except IntegrityError:
        # another writer stored the same day first; overwrite it
        session.rollback()
        logger.warning("Concurrent progress insert for task %s on %s, updating instead", task_id, progress_date)
        entry = _find_entry(session, task_id, project_id, progress_date)
        if entry is None:
            raise
        _apply(entry, pct, notes, user_id)
        session.add(entry)
        session.commit()
        session.refresh(entry)
        return entry
    session.refresh(entry)

    count = session.exec(
        select(func.count(TaskProgress.id))
        .where(TaskProgress.task_id == task_id, TaskProgress.project_id == project_id)
    ).one()
    if count == 1:
        backfill_progress(session, entry, project)
        session.refresh(entry)
    return entry


def task_has_descendant_progress(session: Session, task: Task) -> bool:
    found = session.exec(
        select(TaskProgress.id)
        .join(Task, Task.id == TaskProgress.task_id)
        .where(
            Task.project_id == task.project_id,
            TaskProgress.project_id == task.project_id,
            Task.lft > task.lft,
            Task.rgt < task.rgt,
            Task.rgt == Task.lft + 1,
        )
        .limit(1)
    ).first()
    return found is not None


def tasks_without_progress(session: Session, project_id: int, start: date, end: date) -> "OrderedDict[str, List[Dict]]":
    """Leaf tasks with no entry between ``start`` and ``end``, grouped by root task."""
    tasks = load_tree(session, Task, project_id)
    index = by_id(tasks)
    reported = set(session.exec(
        select(TaskProgress.task_id).where(
            TaskProgress.project_id == project_id,
            TaskProgress.progress_date >= start,
            TaskProgress.progress_date <= end,
        )
    ).all())
    groups: "OrderedDict[str, List[Dict]]" = OrderedDict()
    for leaf in leaf_nodes(tasks):
        if leaf.id in reported:
            continue
        root = root_of(leaf, index)
        groups.setdefault(root.name, []).append({
            "task_id": leaf.id,
            "name": leaf.name,
            "path": breadcrumb(leaf, index),
        })
    return groups
