# utils/templates.py
"""Authoring surface for the global template catalog."""
import logging
from typing import Dict, List, Optional, Tuple

import pandas as pd
from sqlalchemy import func
from sqlmodel import Session, select

from models.task import Task
from models.task_template import TaskTemplate
from models.template_change import TemplateChange, TRACKED_FIELDS
from utils.decimals import round2, to_decimal
from utils.errors import NotFoundError, ValidationError
from utils.nested_set import delete_subtree, insert_node, load_tree, rebuild_bounds
from utils.tree import by_id, child_counts, depth_of

logger = logging.getLogger(__name__)

NUMERIC_LIMITS = {
    "volume": to_decimal("99999.99"),
    "weight": to_decimal("999.99"),
    "price": to_decimal("9999999.99"),
}
LEVEL_COLUMNS = 6  # root, parent, sub-parent, child, sub-child, leaf


def clean_fields(name=None, volume=None, unit=None, price=None, weight=None, partial=False) -> Dict:
    """Validate template/task attributes; ``partial`` skips absent keys."""
    data = {}
    if name is not None or not partial:
        name = (name or "").strip()
        if not name:
            raise ValidationError("name", "Name is required.")
        if len(name) > 255:
            raise ValidationError("name", "Name may not be longer than 255 characters.")
        data["name"] = name
    for field, value in (("volume", volume), ("price", price), ("weight", weight)):
        if value is None and partial:
            continue
        try:
            number = round2(value or 0)
        except ValueError:
            raise ValidationError(field, f"{field.capitalize()} must be a number.") from None
        if number < 0:
            raise ValidationError(field, f"{field.capitalize()} must be at least 0.")
        if number > NUMERIC_LIMITS[field]:
            raise ValidationError(field, f"{field.capitalize()} may not be greater than {NUMERIC_LIMITS[field]}.")
        data[field] = number
    if unit is not None or not partial:
        data["unit"] = (unit or "").strip() or None
    return data


def get_template(session: Session, template_id: int) -> TaskTemplate:
    template = session.get(TaskTemplate, template_id)
    if template is None:
        raise NotFoundError("Template", template_id)
    return template


def list_templates(session: Session) -> List[Dict]:
    """Catalog rows in tree order with depth and leaf flags, for display."""
    templates = load_tree(session, TaskTemplate)
    index = by_id(templates)
    counts = child_counts(templates)
    usage = dict(session.exec(
        select(Task.template_task_id, func.count(Task.id))
        .where(Task.template_task_id.is_not(None))
        .group_by(Task.template_task_id)
    ).all())
    return [
        {
            "id": t.id,
            "parent_id": t.parent_id,
            "name": t.name,
            "volume": t.volume,
            "unit": t.unit,
            "price": t.price,
            "weight": t.weight,
            "depth": depth_of(t, index),
            "has_children": counts.get(t.id, 0) > 0,
            "tasks_count": usage.get(t.id, 0),
        }
        for t in templates
    ]


def create_template(session: Session, name: str, volume=0, unit: Optional[str] = None,
                    price=0, weight=0, parent_id: Optional[int] = None) -> TaskTemplate:
    data = clean_fields(name, volume, unit, price, weight)
    parent = get_template(session, parent_id) if parent_id is not None else None
    template = TaskTemplate(**data)
    insert_node(session, template, parent)
    session.commit()
    session.refresh(template)
    logger.info("Created template %s (%s) under %s", template.id, template.name, parent_id)
    return template


def template_usage(session: Session, template_id: int) -> Tuple[int, int]:
    """(projects, tasks) currently cloned from this template."""
    projects = session.exec(
        select(func.count(func.distinct(Task.project_id))).where(Task.template_task_id == template_id)
    ).one()
    tasks = session.exec(
        select(func.count(Task.id)).where(Task.template_task_id == template_id)
    ).one()
    return int(projects or 0), int(tasks or 0)


def _snapshot(template: TaskTemplate) -> Dict:
    out = {}
    for field in TRACKED_FIELDS:
        value = getattr(template, field)
        out[field] = str(round2(value)) if field in ("volume", "weight", "price") else value
    return out


def update_template(session: Session, template_id: int, user_id: Optional[int] = None, **fields) -> TaskTemplate:
    """Edit tracked fields; writes a TemplateChange when anything differs.

    Moving a template to another parent is not supported here: use
    delete/create so bounds stay consistent.
    """
    unknown = set(fields) - set(TRACKED_FIELDS)
    if unknown:
        raise ValidationError(sorted(unknown)[0], "Field cannot be edited.")
    template = get_template(session, template_id)
    data = clean_fields(partial=True, **fields)

    before = _snapshot(template)
    for key, value in data.items():
        setattr(template, key, value)
    after = _snapshot(template)

    if before != after:
        projects, tasks = template_usage(session, template_id)
        session.add(TemplateChange(
            task_template_id=template_id,
            user_id=user_id,
            old_values=before,
            new_values=after,
            affected_projects_count=projects,
            affected_tasks_count=tasks,
        ))
        logger.info("Template %s changed (%s project(s), %s task(s) cloned from it)", template_id, projects, tasks)
    session.add(template)
    session.commit()
    session.refresh(template)
    return template


def template_changes(session: Session, template_id: Optional[int] = None) -> List[TemplateChange]:
    stmt = select(TemplateChange).order_by(TemplateChange.created_at.desc(), TemplateChange.id.desc())
    if template_id is not None:
        stmt = stmt.where(TemplateChange.task_template_id == template_id)
    return list(session.exec(stmt).all())


def delete_template(session: Session, template_id: int) -> int:
    template = get_template(session, template_id)
    removed = delete_subtree(session, template)
    session.commit()
    return removed


def sync_template_to_projects(session: Session, template_id: int) -> Tuple[int, int]:
    """Push a template's values into every task cloned from it.

    Progress rows are left alone; total price is recomputed per task.
    """
    template = get_template(session, template_id)
    tasks = session.exec(select(Task).where(Task.template_task_id == template_id)).all()
    for task in tasks:
        task.name = template.name
        task.volume = template.volume
        task.unit = template.unit
        task.weight = template.weight
        task.price = template.price
        session.add(task)
    session.commit()
    projects = len({t.project_id for t in tasks})
    logger.info("Synced template %s into %s task(s) across %s project(s)", template_id, len(tasks), projects)
    return projects, len(tasks)


def template_stats(session: Session) -> Dict:
    templates = session.exec(select(TaskTemplate)).all()
    counts = child_counts(templates)
    return {
        "total_price": round2(sum((to_decimal(t.price) * to_decimal(t.volume) for t in templates), to_decimal(0))),
        "total_weight": round2(sum((to_decimal(t.weight) for t in templates), to_decimal(0))),
        "total_leaf_tasks": sum(1 for t in templates if counts.get(t.id, 0) == 0),
        "templates_with_data": sum(1 for t in templates if not t.is_container),
    }


def _cell(value) -> Optional[str]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def import_templates_csv(session: Session, source, replace: bool = True) -> Dict[str, int]:
    """Load a catalog spreadsheet export.

    Columns are positional: six hierarchy levels (root .. leaf), then
    volume, unit, price, weight. An empty level cell repeats the row above,
    down to the deepest level the row fills itself; a row that only fills
    the leaf column keeps the whole inherited path. Every row creates one
    template named after its deepest filled level, and missing ancestors
    are created as container nodes.
    """
    df = pd.read_csv(source, dtype=str, keep_default_na=False, na_values=[""])
    if df.shape[1] < LEVEL_COLUMNS + 4:
        raise ValidationError("file", f"Expected at least {LEVEL_COLUMNS + 4} columns, got {df.shape[1]}.")
    raw_levels = df.iloc[:, :LEVEL_COLUMNS - 1]
    levels = raw_levels.ffill()
    leaf = df.iloc[:, LEVEL_COLUMNS - 1]

    if replace:
        session.execute(Task.__table__.update().values(template_task_id=None))
        session.execute(TemplateChange.__table__.delete())
        session.execute(TaskTemplate.__table__.delete())
        counter = 0
    else:
        counter = session.exec(select(func.max(TaskTemplate.rgt))).one() or 0

    # path of names -> template id, for rows and auto-created containers alike
    nodes: Dict[Tuple[str, ...], int] = {}
    created = containers = skipped = 0
    for row_no in range(len(df)):
        own = [_cell(v) for v in raw_levels.iloc[row_no].tolist()]
        leaf_name = _cell(leaf.iloc[row_no])
        if not leaf_name and not any(own):
            skipped += 1
            logger.warning("Skipping empty row %s", row_no + 2)
            continue

        path = [_cell(v) for v in levels.iloc[row_no].tolist()]
        deepest = max((i for i, v in enumerate(own) if v), default=None)
        if deepest is not None:
            path = path[:deepest + 1]
        task_name = leaf_name or next(p for p in reversed(path) if p)

        parent_id = None
        so_far: List[str] = []
        for level_name in path:
            if not level_name or level_name == task_name:
                continue
            so_far.append(level_name)
            key = tuple(so_far)
            if key not in nodes:
                counter += 1
                node = TaskTemplate(name=level_name, parent_id=parent_id, lft=counter, rgt=counter)
                session.add(node)
                session.flush()
                nodes[key] = node.id
                containers += 1
            parent_id = nodes[key]

        raw = [_cell(v) for v in df.iloc[row_no, LEVEL_COLUMNS:LEVEL_COLUMNS + 4].tolist()]
        try:
            fields = clean_fields(task_name, raw[0], raw[1], raw[2], raw[3])
        except ValidationError as exc:
            raise ValidationError(exc.field, f"row {row_no + 2}: {exc.message}") from None
        counter += 1
        template = TaskTemplate(parent_id=parent_id, lft=counter, rgt=counter, **fields)
        session.add(template)
        session.flush()
        nodes.setdefault(tuple(so_far) + (task_name,), template.id)
        created += 1

    rebuild_bounds(session, TaskTemplate)
    total = session.exec(select(func.count(TaskTemplate.id))).one()
    logger.info("Imported %s template row(s), %s container(s), %s skipped", created, containers, skipped)
    return {"rows": created, "containers": containers, "skipped": skipped, "total": int(total)}
