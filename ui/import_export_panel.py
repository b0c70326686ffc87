# ui/import_export_panel.py
import streamlit as st
import pandas as pd
from datetime import date

from db import get_session
from models.project import Project
from models.task import Task
from utils.errors import LapjuError
from utils.nested_set import load_tree
from utils.progress import get_snapshot
from utils.templates import import_templates_csv
from utils.tree import breadcrumb, by_id


def rollup_frame(tasks, snapshot) -> pd.DataFrame:
    index = by_id(tasks)
    rows = []
    for t in tasks:
        if t.id in snapshot.rollup:
            r = snapshot.rollup[t.id]
            pct, leaves = r.percentage, r.leaf_count
        else:
            latest = snapshot.latest.get(t.id)
            pct, leaves = (latest.percentage if latest else None), None
        rows.append({
            "task_id": t.id,
            "path": breadcrumb(t, index),
            "weight": t.weight,
            "total_price": t.total_price,
            "percentage": pct,
            "leaf_count": leaves,
        })
    return pd.DataFrame(rows)


def render_import_export(project: Project):
    st.subheader("Import & Export")

    st.markdown("**Progress export**")
    as_of = st.date_input("As of", value=date.today(), key=f"export_date_{project.id}")
    with get_session() as s:
        tasks = load_tree(s, Task, project.id)
        snapshot = get_snapshot(s, project.id, as_of)
    csv = rollup_frame(tasks, snapshot).to_csv(index=False)
    st.download_button("⬇️ Export CSV", data=csv,
                       file_name=f"project_{project.id}_progress_{as_of}.csv", mime="text/csv")

    st.markdown("---")
    st.markdown("**Template catalog import**")
    st.caption("Columns: root, parent, sub-parent, child, sub-child, leaf, volume, unit, price, weight. "
               "Empty level cells repeat the row above.")
    up = st.file_uploader("Template CSV", type=["csv"])
    replace = st.checkbox("Replace the current catalog", value=True)
    if up is not None and st.button("Import templates"):
        try:
            with get_session() as s:
                stats = import_templates_csv(s, up, replace=replace)
        except (LapjuError, ValueError) as e:
            st.error(f"Import failed: {e}")
        else:
            st.success(f"Imported {stats['rows']} template(s) and {stats['containers']} group(s); "
                       f"{stats['skipped']} empty row(s) skipped.")
