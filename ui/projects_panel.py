# ui/projects_panel.py

import streamlit as st
from datetime import date
from sqlmodel import select

from db import get_session
from models.project import Project, PROJECT_STATUSES
from utils.cloner import count_project_tasks, create_project, delete_project, update_project
from utils.errors import LapjuError

__all__ = ["render_projects", "render_new_project", "render_project_settings"]


def render_projects():
    """Dropdown of all projects; returns the selected project id."""
    st.subheader("Projects")

    with get_session() as s:
        projects = s.exec(select(Project).order_by(Project.created_at.desc())).all()

    if not projects:
        st.info("No projects yet. Create one below.")
        return None

    proj_options = {f"{p.name} (#{p.id})": p.id for p in projects}
    labels = list(proj_options.keys())
    current = st.session_state.get("selected_project_id")
    idx = next((i for i, label in enumerate(labels) if proj_options[label] == current), 0)
    selected_label = st.selectbox("Open project", labels, index=idx)
    return proj_options.get(selected_label)


def render_new_project():
    """Form to create a new project; its task tree is cloned from the template catalog."""
    with st.expander("New project"):
        with st.form("new_project", clear_on_submit=True):
            p_name = st.text_input("Project name", placeholder="Gedung Kodim 0501 renovation")
            p_desc = st.text_area("Description", placeholder="Short project description…")
            c1, c2 = st.columns(2)
            p_start = c1.date_input("Start", value=date.today())
            p_end = c2.date_input("End", value=date.today())
            clone = st.checkbox("Copy tasks from templates", value=True)
            submitted = st.form_submit_button("Create project")

        if submitted:
            try:
                with get_session() as s:
                    p = create_project(s, p_name, p_start, p_end, description=p_desc or None, clone=clone)
                    created = count_project_tasks(s, p.id)
                    new_id = p.id
            except LapjuError as e:
                st.warning(str(e))
            else:
                st.session_state["selected_project_id"] = new_id
                st.success(f"Created project #{new_id} with {created} task(s).")
                st.rerun()


def render_project_settings(project: Project):
    with st.sidebar.expander("Manage current project"):
        with st.form(f"edit_project_{project.id}"):
            name = st.text_input("Name", value=project.name)
            desc = st.text_area("Description", value=project.description or "")
            c1, c2 = st.columns(2)
            start = c1.date_input("Start", value=project.start_date or date.today())
            end = c2.date_input("End", value=project.end_date or date.today())
            status = st.selectbox("Status", PROJECT_STATUSES, index=PROJECT_STATUSES.index(project.status))
            saved = st.form_submit_button("Save")
        if saved:
            try:
                with get_session() as s:
                    update_project(s, project.id, name=name, description=desc or None,
                                   start_date=start, end_date=end, status=status)
            except LapjuError as e:
                st.error(str(e))
            else:
                st.success("Project updated.")
                st.rerun()

        st.markdown("**Danger zone**")
        confirm = st.checkbox("I understand this deletes all tasks and progress", key=f"del_ok_{project.id}")
        if st.button("Delete project (irreversible)", disabled=not confirm):
            with get_session() as s:
                delete_project(s, project.id)
            st.session_state["selected_project_id"] = None
            st.success("Project deleted")
            st.rerun()
