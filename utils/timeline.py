# utils/timeline.py
from datetime import date
from typing import Optional

import pandas as pd
from sqlmodel import Session, select

from models.project import Project
from models.task import Task
from models.task_progress import TaskProgress
from utils.dates import date_range
from utils.decimals import HUNDRED, ZERO, round2
from utils.nested_set import load_tree
from utils.progress import compute_progress

SERIES_COLUMNS = ["date", "planned", "actual"]


def planned_percentage(project: Project, day: date):
    """Straight-line plan from 0 on the start date to 100 on the end date."""
    if project.start_date is None or project.end_date is None:
        return None
    if day <= project.start_date:
        return ZERO if day < project.end_date else HUNDRED
    if day >= project.end_date:
        return HUNDRED
    span = (project.end_date - project.start_date).days
    return round2(HUNDRED * (day - project.start_date).days / span)


def progress_series(session: Session, project: Project, start: Optional[date] = None,
                    end: Optional[date] = None, today: Optional[date] = None) -> pd.DataFrame:
    """Daily planned vs. actual (weighted) progress for the S-curve chart.

    Days after ``today`` have a plan but no actual value.
    """
    today = today or date.today()
    entries = list(session.exec(
        select(TaskProgress).where(TaskProgress.project_id == project.id)
    ).all())
    start = start or project.start_date or min((e.progress_date for e in entries), default=None)
    end = end or project.end_date or today
    if start is None or end < start:
        return pd.DataFrame(columns=SERIES_COLUMNS)

    tasks = load_tree(session, Task, project.id)
    rows = []
    for day in date_range(start, end):
        actual = None
        if day <= today:
            actual = float(compute_progress(tasks, entries, day, mode="weighted").project)
        planned = planned_percentage(project, day)
        rows.append({
            "date": pd.Timestamp(day),
            "planned": float(planned) if planned is not None else None,
            "actual": actual,
        })
    return pd.DataFrame(rows, columns=SERIES_COLUMNS)
