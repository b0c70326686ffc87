# utils/backfill.py
"""Synthesize history for a task's first progress report.

When the first entry for a task lands after the project started, every
earlier day gets a row that follows a quadratic S-curve from 0 up to the
reported percentage, so charts do not jump from nothing to the first value.
"""
import logging
from datetime import timedelta
from decimal import Decimal
from fractions import Fraction
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from models.project import Project
from models.task_progress import TaskProgress
from utils.decimals import round2, to_decimal
from utils.errors import BackfillError

logger = logging.getLogger(__name__)

HALF = Fraction(1, 2)


def s_curve_shape(day_index: int, total_days: int) -> Fraction:
    t = Fraction(day_index, total_days)
    if t <= HALF:
        return 2 * t * t
    return 1 - 2 * (1 - t) * (1 - t)


def s_curve_percentage(target, day_index: int, total_days: int) -> Decimal:
    shape = s_curve_shape(day_index, total_days)
    scaled = to_decimal(target) * shape.numerator / shape.denominator
    return round2(scaled)


def backfill_progress(session: Session, entry: TaskProgress, project: Optional[Project]) -> int:
    """Insert S-curve rows for every day from project start up to the day
    before ``entry``. Returns the number of rows written (0 when skipped).
    """
    if project is None or project.start_date is None:
        return 0
    start = project.start_date
    end = entry.progress_date - timedelta(days=1)
    if end < start:
        return 0

    total_days = (end - start).days + 1
    rows = [
        TaskProgress(
            task_id=entry.task_id,
            project_id=entry.project_id,
            user_id=entry.user_id,
            percentage=s_curve_percentage(entry.percentage, i, total_days),
            progress_date=start + timedelta(days=i),
            notes=None,
        )
        for i in range(total_days)
    ]
    session.add_all(rows)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        logger.error("Backfill for task %s in project %s failed: %s", entry.task_id, entry.project_id, exc)
        raise BackfillError(entry, exc) from exc

    logger.info("Backfilled %s day(s) for task %s in project %s (%s to %s)",
                total_days, entry.task_id, entry.project_id, start, end)
    return total_days
