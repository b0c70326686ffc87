# utils/tasks.py
"""Manual edits to one project's task tree."""
import logging
from typing import Optional

from sqlmodel import Session

from models.task import Task
from utils.errors import NotFoundError, ValidationError
from utils.nested_set import delete_subtree, insert_node
from utils.templates import clean_fields

logger = logging.getLogger(__name__)


def get_task(session: Session, task_id: int, project_id: Optional[int] = None) -> Task:
    task = session.get(Task, task_id)
    if task is None or (project_id is not None and task.project_id != project_id):
        raise NotFoundError("Task", task_id)
    return task


def create_task(session: Session, project_id: int, name: str, volume=0, unit=None,
                price=0, weight=0, parent_id: Optional[int] = None) -> Task:
    data = clean_fields(name, volume, unit, price, weight)
    parent = get_task(session, parent_id, project_id) if parent_id is not None else None
    task = Task(project_id=project_id, **data)
    insert_node(session, task, parent)
    session.commit()
    session.refresh(task)
    logger.info("Created task %s in project %s", task.id, project_id)
    return task


def update_task(session: Session, task_id: int, project_id: Optional[int] = None, **fields) -> Task:
    unknown = set(fields) - {"name", "volume", "unit", "price", "weight"}
    if unknown:
        raise ValidationError(sorted(unknown)[0], "Field cannot be edited.")
    task = get_task(session, task_id, project_id)
    for key, value in clean_fields(partial=True, **fields).items():
        setattr(task, key, value)
    session.add(task)
    session.commit()
    session.refresh(task)
    return task


def delete_task(session: Session, task_id: int, project_id: Optional[int] = None) -> int:
    """Delete a task, its subtree and their progress entries."""
    task = get_task(session, task_id, project_id)
    removed = delete_subtree(session, task)
    session.commit()
    return removed
