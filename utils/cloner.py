# utils/cloner.py
"""Project lifecycle: creating a project seeds its task tree from the catalog."""
import logging
from datetime import date
from typing import Dict, Optional

from sqlalchemy import delete, func
from sqlmodel import Session, select

from models.project import Project, PROJECT_STATUSES
from models.task import Task
from models.task_progress import TaskProgress
from models.task_template import TaskTemplate
from utils.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def clone_templates_for_project(session: Session, project: Project) -> int:
    """Copy the whole template catalog into ``project`` as tasks.

    Bounds are copied verbatim, so the task tree has the catalog's shape.
    Runs as one transaction; returns the number of tasks created. Calling
    it on a project that already has tasks duplicates the tree.
    """
    templates = session.exec(
        select(TaskTemplate).order_by(TaskTemplate.lft, TaskTemplate.id)
    ).all()
    if not templates:
        logger.info("Template catalog is empty, nothing cloned into project %s", project.id)
        return 0

    id_map: Dict[int, int] = {}
    try:
        for template in templates:
            task = Task(
                project_id=project.id,
                template_task_id=template.id,
                parent_id=id_map.get(template.parent_id) if template.parent_id else None,
                lft=template.lft,
                rgt=template.rgt,
                name=template.name,
                volume=template.volume,
                unit=template.unit,
                price=template.price,
                weight=template.weight,
            )
            session.add(task)
            # flush per row: children need the parent's new id
            session.flush()
            id_map[template.id] = task.id
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Cloning templates into project %s failed", project.id)
        raise

    logger.info("Cloned %s task(s) into project %s", len(id_map), project.id)
    return len(id_map)


def count_project_tasks(session: Session, project_id: int) -> int:
    return int(session.exec(select(func.count(Task.id)).where(Task.project_id == project_id)).one() or 0)


def delete_project_tasks(session: Session, project: Project) -> int:
    """Remove every task of ``project`` together with its progress entries."""
    count = count_project_tasks(session, project.id)
    try:
        session.execute(delete(TaskProgress).where(TaskProgress.project_id == project.id))
        session.execute(delete(Task).where(Task.project_id == project.id))
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.expire_all()
    logger.info("Deleted %s task(s) from project %s", count, project.id)
    return count


def get_project(session: Session, project_id: int) -> Project:
    project = session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    return project


def _validate_project(name, start_date, end_date, status):
    name = (name or "").strip()
    if not name:
        raise ValidationError("name", "Project name is required.")
    if start_date and end_date and end_date < start_date:
        raise ValidationError("end_date", "End date must be on or after the start date.")
    if status not in PROJECT_STATUSES:
        raise ValidationError("status", f"Status must be one of {', '.join(PROJECT_STATUSES)}.")
    return name


def create_project(session: Session, name: str, start_date: Optional[date] = None,
                   end_date: Optional[date] = None, description: Optional[str] = None,
                   status: str = "planning", clone: bool = True) -> Project:
    name = _validate_project(name, start_date, end_date, status)
    project = Project(name=name, description=description, start_date=start_date,
                      end_date=end_date, status=status)
    session.add(project)
    session.commit()
    session.refresh(project)
    logger.info("Created project %s (%s)", project.id, project.name)
    if clone:
        clone_templates_for_project(session, project)
    return project


def update_project(session: Session, project_id: int, **fields) -> Project:
    unknown = set(fields) - {"name", "description", "start_date", "end_date", "status"}
    if unknown:
        raise ValidationError(sorted(unknown)[0], "Field cannot be edited.")
    project = get_project(session, project_id)
    merged = {
        "name": fields.get("name", project.name),
        "start_date": fields.get("start_date", project.start_date),
        "end_date": fields.get("end_date", project.end_date),
        "status": fields.get("status", project.status),
    }
    merged["name"] = _validate_project(**merged)
    for key, value in {**fields, **merged}.items():
        setattr(project, key, value)
    session.add(project)
    session.commit()
    session.refresh(project)
    return project


def delete_project(session: Session, project_id: int) -> None:
    project = get_project(session, project_id)
    delete_project_tasks(session, project)
    session.delete(session.get(Project, project_id))
    session.commit()
    logger.info("Deleted project %s", project_id)
