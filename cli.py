# cli.py
# Usage examples:
#   lapju init-db
#   lapju import-templates data/templates.csv
#   lapju normalize-weights --scope template
#   lapju clone-templates --project-id 3 --force
#   lapju rollup --project-id 3 --date 2025-02-01 --weighted
#
# Notes:
# - Database comes from DATABASE_URL (default sqlite:///lapju.db), see db.py
# - Exit code 0 on success, 1 when the command reports a failure

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from sqlmodel import Session, SQLModel

from models.task import Task
from models.task_template import TaskTemplate
from utils.cloner import clone_templates_for_project, count_project_tasks, delete_project_tasks, get_project
from utils.dates import parse_date
from utils.errors import LapjuError
from utils.logging_setup import setup_logging
from utils.nested_set import load_tree, rebuild_bounds, verify_tree
from utils.progress import get_snapshot
from utils.templates import import_templates_csv
from utils.weights import normalize_leaf_weights

logger = logging.getLogger("lapju.cli")


def _tree_args(ns):
    if ns.scope == "task":
        if ns.project_id is None:
            raise LapjuError("--project-id is required with --scope task")
        return Task, ns.project_id
    return TaskTemplate, None


def cmd_init_db(session: Session, ns) -> int:
    SQLModel.metadata.create_all(session.get_bind())
    print("✓ Database schema is up to date.")
    return 0


def cmd_import_templates(session: Session, ns) -> int:
    if not ns.csv.exists():
        print(f"❌ File not found: {ns.csv}")
        return 1
    stats = import_templates_csv(session, ns.csv, replace=not ns.append)
    print(f"✓ Imported {stats['rows']} template(s) and {stats['containers']} group(s); "
          f"{stats['skipped']} row(s) skipped, {stats['total']} in catalog.")
    return 0


def cmd_normalize_weights(session: Session, ns) -> int:
    result = normalize_leaf_weights(session, ns.scope, ns.project_id)
    mark = "✓" if result.success else "⚠"
    print(f"{mark} {result.message} (updated {result.updated_count}, final sum {result.final_sum})")
    return 0 if result.success else 1


def cmd_clone_templates(session: Session, ns) -> int:
    project = get_project(session, ns.project_id)
    existing = count_project_tasks(session, project.id)
    if existing and not ns.force:
        print(f"❌ Project {project.id} already has {existing} task(s); use --force to replace them.")
        return 1
    if existing:
        delete_project_tasks(session, project)
    created = clone_templates_for_project(session, project)
    print(f"✓ Cloned {created} task(s) into project {project.id} ({project.name}).")
    return 0


def cmd_reset_tasks(session: Session, ns) -> int:
    project = get_project(session, ns.project_id)
    deleted = delete_project_tasks(session, project)
    print(f"✓ Deleted {deleted} task(s) from project {project.id}.")
    return 0


def cmd_rebuild_tree(session: Session, ns) -> int:
    model, project_id = _tree_args(ns)
    changed = rebuild_bounds(session, model, project_id)
    print(f"✓ Rebuilt bounds, {changed} node(s) changed.")
    return 0


def cmd_check_tree(session: Session, ns) -> int:
    model, project_id = _tree_args(ns)
    problems = verify_tree(session, model, project_id)
    if problems:
        for p in problems:
            print(f"❌ node {p.node_id}: {p.message}")
        return 1
    print(f"✓ {len(load_tree(session, model, project_id))} node(s), bounds consistent.")
    return 0


def cmd_rollup(session: Session, ns) -> int:
    project = get_project(session, ns.project_id)
    as_of = parse_date(ns.date, "date") if ns.date else date.today()
    mode = "weighted" if ns.weighted else "average"
    snapshot = get_snapshot(session, project.id, as_of, mode)
    print(f"{project.name} as of {as_of} ({mode}): {snapshot.project}%")
    for task in load_tree(session, Task, project.id):
        rollup = snapshot.rollup.get(task.id)
        if rollup is None:
            continue
        print(f"  {rollup.percentage:>6}%  {task.name}  ({rollup.leaf_count} leaf task(s))")
    return 0


COMMANDS = {
    "init-db": cmd_init_db,
    "import-templates": cmd_import_templates,
    "normalize-weights": cmd_normalize_weights,
    "clone-templates": cmd_clone_templates,
    "reset-tasks": cmd_reset_tasks,
    "rebuild-tree": cmd_rebuild_tree,
    "check-tree": cmd_check_tree,
    "rollup": cmd_rollup,
}


def parse_args(argv: List[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="lapju", description="Maintenance commands for the LAPJU progress tracker")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_scope(sp: argparse.ArgumentParser):
        sp.add_argument("--scope", choices=("template", "task"), default="template",
                        help="Template catalog or one project's task tree (default: template)")
        sp.add_argument("--project-id", type=int, help="Project for --scope task")

    sub.add_parser("init-db", help="Create missing tables")

    s_import = sub.add_parser("import-templates", help="Load the template catalog from a CSV export")
    s_import.add_argument("csv", type=Path, help="CSV file: six level columns, then volume, unit, price, weight")
    s_import.add_argument("--append", action="store_true", help="Keep the existing catalog and add to it")

    add_scope(sub.add_parser("normalize-weights", help="Scale leaf weights to sum to exactly 100"))

    s_clone = sub.add_parser("clone-templates", help="Copy the template catalog into a project")
    s_clone.add_argument("--project-id", type=int, required=True)
    s_clone.add_argument("--force", action="store_true", help="Replace existing tasks (drops their progress)")

    s_reset = sub.add_parser("reset-tasks", help="Delete every task and progress entry of a project")
    s_reset.add_argument("--project-id", type=int, required=True)

    add_scope(sub.add_parser("rebuild-tree", help="Recompute nested-set bounds from parent links"))
    add_scope(sub.add_parser("check-tree", help="Report nested-set inconsistencies"))

    s_rollup = sub.add_parser("rollup", help="Print parent task progress for a date")
    s_rollup.add_argument("--project-id", type=int, required=True)
    s_rollup.add_argument("--date", help="As-of date (default: today)")
    s_rollup.add_argument("--weighted", action="store_true", help="Weight leaves instead of a plain average")

    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None, session: Optional[Session] = None) -> int:
    ns = parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging()
    if session is None:
        import db
        with db.get_session() as s:
            return _run(s, ns)
    return _run(session, ns)


def _run(session: Session, ns) -> int:
    try:
        return COMMANDS[ns.cmd](session, ns)
    except LapjuError as exc:
        logger.error("%s failed: %s", ns.cmd, exc)
        print(f"❌ {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
