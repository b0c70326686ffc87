# utils/nested_set.py
"""Bound-maintaining insert/delete for nested-set trees.

Templates form one global tree; tasks form one tree per project, so every
statement on ``Task`` is scoped by ``project_id``. These helpers do not
commit; the calling operation owns the transaction.
"""
import logging
from typing import List, Optional

from sqlalchemy import delete, func, update
from sqlmodel import Session, select

from models.task import Task
from models.task_progress import TaskProgress
from models.task_template import TaskTemplate
from models.template_change import TemplateChange
from utils.errors import ValidationError
from utils.tree import check_bounds, renumber

logger = logging.getLogger(__name__)


def _scope(model, project_id: Optional[int]) -> list:
    if model is Task:
        return [Task.project_id == project_id]
    return []


def load_tree(session: Session, model, project_id: Optional[int] = None) -> List:
    stmt = select(model).where(*_scope(model, project_id)).order_by(model.lft, model.id)
    return list(session.exec(stmt).all())


def insert_node(session: Session, node, parent=None):
    """Place ``node`` as the last child of ``parent`` (or as the last root)."""
    model = type(node)
    project_id = getattr(node, "project_id", None)
    scope = _scope(model, project_id)

    if parent is not None:
        if getattr(parent, "project_id", None) != project_id:
            raise ValidationError("parent_id", "Parent belongs to a different project.")
        pos = parent.rgt
    else:
        max_rgt = session.exec(select(func.max(model.rgt)).where(*scope)).one()
        pos = (max_rgt or 0) + 1

    session.execute(update(model).where(*scope, model.rgt >= pos).values(rgt=model.rgt + 2))
    session.execute(update(model).where(*scope, model.lft >= pos).values(lft=model.lft + 2))

    node.parent_id = parent.id if parent is not None else None
    node.lft = pos
    node.rgt = pos + 1
    session.add(node)
    session.flush()
    return node


def delete_subtree(session: Session, node) -> int:
    """Remove ``node`` and everything under it, then close the gap."""
    model = type(node)
    scope = _scope(model, getattr(node, "project_id", None))
    node_id, lft, rgt = node.id, node.lft, node.rgt
    width = rgt - lft + 1

    ids = list(session.exec(
        select(model.id).where(*scope, model.lft >= lft, model.rgt <= rgt)
    ).all())
    if node_id not in ids:
        ids.append(node_id)

    if model is Task:
        session.execute(delete(TaskProgress).where(TaskProgress.task_id.in_(ids)))
    else:
        session.execute(
            update(Task).where(Task.template_task_id.in_(ids)).values(template_task_id=None)
        )
        session.execute(delete(TemplateChange).where(TemplateChange.task_template_id.in_(ids)))

    session.execute(delete(model).where(model.id.in_(ids)))
    session.execute(update(model).where(*scope, model.rgt > rgt).values(rgt=model.rgt - width))
    session.execute(update(model).where(*scope, model.lft > rgt).values(lft=model.lft - width))
    session.flush()
    logger.info("Deleted %s %s node(s) under id=%s", len(ids), model.__tablename__, node_id)
    return len(ids)


def rebuild_bounds(session: Session, model, project_id: Optional[int] = None) -> int:
    """Rewrite every bound from parent pointers; returns how many rows moved."""
    nodes = load_tree(session, model, project_id)
    fresh = renumber(nodes)
    changed = 0
    for n in nodes:
        lft, rgt = fresh[n.id]
        if (n.lft, n.rgt) != (lft, rgt):
            n.lft, n.rgt = lft, rgt
            session.add(n)
            changed += 1
    session.commit()
    logger.info("Rebuilt %s bounds: %s of %s node(s) changed", model.__tablename__, changed, len(nodes))
    return changed


def verify_tree(session: Session, model, project_id: Optional[int] = None):
    problems = check_bounds(load_tree(session, model, project_id))
    for p in problems:
        logger.warning("%s node %s: %s", model.__tablename__, p.node_id, p.message)
    return problems
