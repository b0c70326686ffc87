# ui/tasks_panel.py
import streamlit as st
import pandas as pd

from db import get_session
from models.project import Project
from models.task import Task
from utils.cloner import clone_templates_for_project, delete_project_tasks
from utils.errors import LapjuError
from utils.nested_set import load_tree
from utils.tasks import create_task, delete_task, update_task
from utils.tree import by_id, child_counts, depth_of
from utils.weights import normalize_leaf_weights


def _label(t, index) -> str:
    return f"{'  ' * depth_of(t, index)}{t.name} (#{t.id})"


def render_tasks_panel(project: Project):
    st.subheader("Task tree")

    with get_session() as s:
        tasks = load_tree(s, Task, project.id)
    index = by_id(tasks)
    counts = child_counts(tasks)

    if tasks:
        st.dataframe(pd.DataFrame([{
            "ID": t.id,
            "Task": f"{'  ' * depth_of(t, index)}{t.name}",
            "Volume": float(t.volume),
            "Unit": t.unit or "",
            "Price": float(t.price),
            "Total price": float(t.total_price),
            "Weight": float(t.weight) if not counts.get(t.id) else None,
            "From template": t.template_task_id,
        } for t in tasks]), hide_index=True, use_container_width=True)
    else:
        st.info("No tasks yet.")
        if st.button("Copy tasks from templates"):
            with get_session() as s:
                created = clone_templates_for_project(s, s.get(Project, project.id))
            st.success(f"Cloned {created} task(s).")
            st.rerun()

    left, right = st.columns(2)
    with left:
        st.markdown("**Add task**")
        with st.form(f"new_task_{project.id}", clear_on_submit=True):
            t_name = st.text_input("Name")
            t_parent = st.selectbox("Parent", [None] + list(index),
                                    format_func=lambda i: "(root)" if i is None else _label(index[i], index))
            f1, f2, f3, f4 = st.columns(4)
            t_volume = f1.number_input("Volume", min_value=0.0, step=0.01, format="%.2f")
            t_unit = f2.text_input("Unit")
            t_price = f3.number_input("Unit price", min_value=0.0, step=1000.0, format="%.2f")
            t_weight = f4.number_input("Weight", min_value=0.0, step=0.01, format="%.2f")
            submit_task = st.form_submit_button("Add task")
        if submit_task:
            try:
                with get_session() as s:
                    create_task(s, project.id, t_name, t_volume, t_unit, t_price, t_weight, parent_id=t_parent)
            except LapjuError as e:
                st.error(str(e))
            else:
                st.success("Task added")
                st.rerun()

    with right:
        st.markdown("**Edit task**")
        if tasks:
            tid = st.selectbox("Task", list(index), format_func=lambda i: _label(index[i], index),
                               key=f"task_pick_{project.id}")
            t = index[tid]
            with st.form(f"edit_task_{tid}"):
                e_name = st.text_input("Name", value=t.name)
                g1, g2, g3, g4 = st.columns(4)
                e_volume = g1.number_input("Volume", min_value=0.0, value=float(t.volume), step=0.01, format="%.2f")
                e_unit = g2.text_input("Unit", value=t.unit or "")
                e_price = g3.number_input("Unit price", min_value=0.0, value=float(t.price), step=1000.0, format="%.2f")
                e_weight = g4.number_input("Weight", min_value=0.0, value=float(t.weight), step=0.01, format="%.2f")
                save = st.form_submit_button("Save task")
            if save:
                try:
                    with get_session() as s:
                        update_task(s, tid, project.id, name=e_name, volume=e_volume, unit=e_unit,
                                    price=e_price, weight=e_weight)
                except LapjuError as e:
                    st.error(str(e))
                else:
                    st.success("Task saved")
                    st.rerun()
            confirm = st.checkbox("Delete this task, its subtasks and their progress", key=f"task_del_ok_{tid}")
            if st.button("Delete task", disabled=not confirm, key=f"task_del_{tid}"):
                with get_session() as s:
                    removed = delete_task(s, tid, project.id)
                st.success(f"Deleted {removed} task(s).")
                st.rerun()

    st.markdown("---")
    c1, c2 = st.columns(2)
    if c1.button("Normalize this project's leaf weights"):
        with get_session() as s:
            result = normalize_leaf_weights(s, "task", project.id)
        (st.success if result.success else st.warning)(
            f"{result.message} Updated {result.updated_count}, final sum {result.final_sum}."
        )
    with c2:
        confirm = st.checkbox("Replace all tasks with a fresh copy of the templates", key=f"reclone_ok_{project.id}")
        if st.button("Reset from templates", disabled=not confirm):
            with get_session() as s:
                p = s.get(Project, project.id)
                delete_project_tasks(s, p)
                created = clone_templates_for_project(s, p)
            st.success(f"Recreated {created} task(s); previous progress was removed.")
            st.rerun()
