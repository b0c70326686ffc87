# ui/progress_panel.py
import streamlit as st
import pandas as pd
from datetime import date, timedelta

from db import get_session
from models.project import Project
from models.task import Task
from utils.decimals import round2
from utils.errors import BackfillError, LapjuError
from utils.nested_set import load_tree
from utils.progress import entry_unchanged, get_snapshot, record_progress, tasks_without_progress
from utils.tree import ancestors_of, by_id, child_counts, depth_of, leaf_numbers


def _expanded_key(pid: int) -> str:
    return f"progress_expanded_{pid}"


def _visible(task, index, expanded) -> bool:
    return all(a.id in expanded for a in ancestors_of(task, index.values()))


def _bounded_date(project: Project) -> tuple:
    today = date.today()
    lo = project.start_date
    hi = min(today, project.end_date) if project.end_date else today
    if lo and hi < lo:
        hi = lo
    return lo, hi


def render_progress_panel(project: Project, user: dict):
    st.subheader("Daily progress")

    lo, hi = _bounded_date(project)
    as_of = st.date_input("Progress date", value=hi, min_value=lo, max_value=hi,
                          key=f"progress_date_{project.id}")

    with get_session() as s:
        tasks = load_tree(s, Task, project.id)
        snapshot = get_snapshot(s, project.id, as_of)

    if not tasks:
        st.info("This project has no tasks. Clone the templates or add tasks first.")
        return

    index = by_id(tasks)
    counts = child_counts(tasks)
    parents = [t for t in tasks if counts.get(t.id, 0)]
    numbers = leaf_numbers(tasks)

    # expanded/collapsed state lives in the widget's session key
    key = _expanded_key(project.id)
    parent_ids = [t.id for t in parents]
    if key not in st.session_state:
        st.session_state[key] = [t.id for t in parents if t.parent_id is None]
    st.session_state[key] = [i for i in st.session_state[key] if i in index]
    c1, c2, c3 = st.columns([1, 1, 4])
    if c1.button("Expand all", key=f"exp_all_{project.id}"):
        st.session_state[key] = parent_ids
    if c2.button("Collapse all", key=f"col_all_{project.id}"):
        st.session_state[key] = []
    expanded = set(c3.multiselect(
        "Expanded groups",
        options=parent_ids,
        format_func=lambda i: index[i].name,
        key=key,
    ))

    st.metric("Project progress (average of leaves)", f"{snapshot.project}%")

    rows = []
    for t in tasks:
        if not _visible(t, index, expanded):
            continue
        indent = " " * depth_of(t, index)
        if counts.get(t.id, 0):
            r = snapshot.rollup.get(t.id)
            rows.append({"id": t.id, "No.": "", "Task": f"{indent}▸ {t.name}",
                         "Progress %": float(r.percentage) if r else 0.0,
                         "Notes": f"{r.leaf_count if r else 0} leaf task(s)", "Last update": None,
                         "leaf": False})
            continue
        latest = snapshot.latest.get(t.id)
        pct = float(latest.percentage) if latest else None
        notes = latest.notes if latest and latest.progress_date == as_of else ""
        rows.append({"id": t.id, "No.": str(numbers.get(t.id, "")), "Task": f"{indent}{t.name}",
                     "Progress %": pct, "Notes": notes or "",
                     "Last update": latest.progress_date if latest else None, "leaf": True})

    df = pd.DataFrame(rows)
    st.caption("Only leaf tasks can be edited; group rows show the average of the tasks under them. "
               "Empty progress means no data yet.")
    edited = st.data_editor(
        df,
        hide_index=True,
        use_container_width=True,
        disabled=["id", "No.", "Task", "Last update", "leaf"],
        column_order=["No.", "Task", "Progress %", "Notes", "Last update"],
        column_config={
            "Progress %": st.column_config.NumberColumn("Progress %", min_value=0, max_value=100,
                                                        step=0.01, format="%.2f"),
            "Last update": st.column_config.DateColumn("Last update"),
        },
        key=f"progress_editor_{project.id}_{as_of}",
    )

    if st.button("💾 Save progress", key=f"save_progress_{project.id}"):
        saved, errors, backfilled = 0, [], []
        with get_session() as s:
            for _, row in edited.iterrows():
                if not row["leaf"] or pd.isna(row["Progress %"]):
                    continue
                task_id = int(row["id"])
                pct = round2(row["Progress %"])
                notes = str(row["Notes"] or "").strip()
                if entry_unchanged(snapshot.latest.get(task_id), as_of, pct, notes):
                    continue
                try:
                    record_progress(s, task_id, project.id, user["id"], pct, as_of, notes or None)
                    saved += 1
                except BackfillError as e:
                    saved += 1
                    backfilled.append(str(e))
                except LapjuError as e:
                    errors.append(f"{index[task_id].name}: {e}")
        if saved:
            st.success(f"Saved {saved} progress entr{'y' if saved == 1 else 'ies'} for {as_of}.")
        for msg in backfilled:
            st.warning(msg)
        for msg in errors:
            st.error(msg)
        if saved and not errors:
            st.rerun()

    with st.expander("Tasks without progress"):
        d1, d2 = st.columns(2)
        w_start = d1.date_input("From", value=max(lo or as_of, as_of - timedelta(days=6)),
                                key=f"wp_from_{project.id}")
        w_end = d2.date_input("To", value=as_of, key=f"wp_to_{project.id}")
        with get_session() as s:
            groups = tasks_without_progress(s, project.id, w_start, w_end)
        if not groups:
            st.success("Every leaf task has at least one entry in this window.")
        for root_name, items in groups.items():
            st.markdown(f"**{root_name}** ({len(items)})")
            st.dataframe(pd.DataFrame([{"Task": i["name"], "Path": i["path"]} for i in items]),
                         hide_index=True, use_container_width=True)
