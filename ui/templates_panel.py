# ui/templates_panel.py
import streamlit as st
import pandas as pd

from db import get_session
from models.template_change import TRACKED_FIELDS
from utils.errors import LapjuError
from utils.templates import (
    create_template, delete_template, get_template, list_templates, sync_template_to_projects,
    template_changes, template_stats, template_usage, update_template,
)
from utils.weights import normalize_leaf_weights


def _label(row: dict) -> str:
    return f"{'  ' * row['depth']}{row['name']} (#{row['id']})"


def render_templates_panel(user: dict):
    st.subheader("Task templates")

    with get_session() as s:
        stats = template_stats(s)
        rows = list_templates(s)

    c1, c2, c3, c4 = st.columns(4)
    with c1: st.metric("Total price", f"{stats['total_price']:,}")
    with c2: st.metric("Total weight", f"{stats['total_weight']}")
    with c3: st.metric("Leaf templates", stats["total_leaf_tasks"])
    with c4: st.metric("With volume/price", stats["templates_with_data"])

    if rows:
        df = pd.DataFrame([{
            "ID": r["id"],
            "Template": f"{'  ' * r['depth']}{r['name']}",
            "Volume": float(r["volume"]),
            "Unit": r["unit"] or "",
            "Price": float(r["price"]),
            "Weight": float(r["weight"]),
            "Used by tasks": r["tasks_count"],
        } for r in rows])
        st.dataframe(df, hide_index=True, use_container_width=True)
    else:
        st.info("The template catalog is empty. Add templates below or import a CSV.")

    by_id = {r["id"]: r for r in rows}
    left, right = st.columns(2)

    with left:
        st.markdown("**Add template**")
        with st.form("new_template", clear_on_submit=True):
            name = st.text_input("Name")
            parent = st.selectbox("Parent", [None] + list(by_id),
                                  format_func=lambda i: "(root)" if i is None else _label(by_id[i]))
            f1, f2 = st.columns(2)
            volume = f1.number_input("Volume", min_value=0.0, step=0.01, format="%.2f")
            unit = f2.text_input("Unit", placeholder="m2, m3, ls…")
            f3, f4 = st.columns(2)
            price = f3.number_input("Unit price", min_value=0.0, step=1000.0, format="%.2f")
            weight = f4.number_input("Weight", min_value=0.0, step=0.01, format="%.2f")
            add = st.form_submit_button("Add")
        if add:
            try:
                with get_session() as s:
                    create_template(s, name, volume, unit, price, weight, parent_id=parent)
            except LapjuError as e:
                st.error(str(e))
            else:
                st.success(f"Added {name}.")
                st.rerun()

    with right:
        st.markdown("**Edit template**")
        if not rows:
            st.caption("Nothing to edit yet.")
        else:
            tid = st.selectbox("Template", list(by_id), format_func=lambda i: _label(by_id[i]), key="tpl_edit_pick")
            with get_session() as s:
                tpl = get_template(s, tid)
                projects, tasks = template_usage(s, tid)
            if tasks:
                st.caption(f"Cloned into {tasks} task(s) across {projects} project(s).")
            with st.form(f"edit_template_{tid}"):
                e_name = st.text_input("Name", value=tpl.name)
                g1, g2 = st.columns(2)
                e_volume = g1.number_input("Volume", min_value=0.0, value=float(tpl.volume), step=0.01, format="%.2f")
                e_unit = g2.text_input("Unit", value=tpl.unit or "")
                g3, g4 = st.columns(2)
                e_price = g3.number_input("Unit price", min_value=0.0, value=float(tpl.price), step=1000.0, format="%.2f")
                e_weight = g4.number_input("Weight", min_value=0.0, value=float(tpl.weight), step=0.01, format="%.2f")
                sync = st.checkbox("Also update tasks cloned from this template", value=False)
                save = st.form_submit_button("Save")
            if save:
                try:
                    with get_session() as s:
                        update_template(s, tid, user_id=user["id"], name=e_name, volume=e_volume,
                                        unit=e_unit, price=e_price, weight=e_weight)
                        if sync:
                            p, t = sync_template_to_projects(s, tid)
                            st.success(f"Updated {t} task(s) in {p} project(s).")
                except LapjuError as e:
                    st.error(str(e))
                else:
                    st.success("Template saved.")
                    st.rerun()

            confirm = st.checkbox("Delete this template and everything under it", key=f"tpl_del_ok_{tid}")
            if st.button("Delete template", disabled=not confirm, key=f"tpl_del_{tid}"):
                with get_session() as s:
                    removed = delete_template(s, tid)
                st.success(f"Deleted {removed} template(s). Existing project tasks are kept.")
                st.rerun()

    st.markdown("---")
    st.markdown("**Weights**")
    if st.button("Normalize leaf weights to 100"):
        with get_session() as s:
            result = normalize_leaf_weights(s, "template")
        (st.success if result.success else st.warning)(
            f"{result.message} Updated {result.updated_count}, final sum {result.final_sum}."
        )

    with st.expander("Change log"):
        with get_session() as s:
            changes = template_changes(s)
        if not changes:
            st.caption("No template edits recorded yet.")
        else:
            log = []
            for ch in changes:
                diff = [f"{f}: {ch.old_values.get(f)} → {ch.new_values.get(f)}"
                        for f in TRACKED_FIELDS if ch.old_values.get(f) != ch.new_values.get(f)]
                log.append({
                    "When": ch.created_at,
                    "Template": ch.task_template_id,
                    "Changes": "; ".join(diff),
                    "Projects": ch.affected_projects_count,
                    "Tasks": ch.affected_tasks_count,
                })
            st.dataframe(pd.DataFrame(log), hide_index=True, use_container_width=True)
