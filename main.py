# main.py

#============================================================#
#                           LAPJU                            #
#============================================================#
# Created     : 2025-10-15                                   #
# Version     : V1.0.0                                       #
#------------------------------------------------------------#
# Purpose     : Construction progress tracker: template task #
#               trees cloned per project, daily leaf         #
#               progress, rollups and S-curve charts         #
#============================================================#

import streamlit as st

import db
from models.project import Project
from ui.analytics_panel import render_analytics_panel
from ui.import_export_panel import render_import_export
from ui.progress_panel import render_progress_panel
from ui.projects_panel import render_new_project, render_project_settings, render_projects
from ui.tasks_panel import render_tasks_panel
from ui.templates_panel import render_templates_panel
from utils.logging_setup import setup_logging


def force_rerun():
    fn = getattr(st, "rerun", None) or getattr(st, "experimental_rerun", None)
    if fn:
        fn()


st.set_page_config(
    page_title="LAPJU - Progress Tracker",
    page_icon="🏗️",
    layout="wide",
    initial_sidebar_state="expanded",
)

# ======================  GLOBAL CSS  ======================
st.markdown("""
<style>
:root{
  --tab-active:#2563eb;
  --tab-bg:#f6f7fb;
  --tab-text:#374151;
}
.stTabs [role="tablist"]{gap:10px;padding:6px 2px 14px 2px;border-bottom:0;}
.stTabs [role="tab"]{
  background:var(--tab-bg); color:var(--tab-text);
  border:1px solid #e5e7eb; border-radius:999px; padding:10px 16px;
  font-weight:600; transition:all .18s;
}
.stTabs [role="tab"][aria-selected="true"]{
  background:var(--tab-active); color:#fff; border-color:transparent;
}
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def _init_once():
    setup_logging()
    db.init_db()
    return True

_init_once()


# ======================  AUTH  ======================
def full_screen_login():
    st.markdown("""
    <style>
      [data-testid="stSidebar"] { display:none!important; }
      .main > div { padding-top: 6vh !important; }
    </style>
    """, unsafe_allow_html=True)
    _, col, _ = st.columns([1, 2.2, 1])
    with col:
        st.markdown("<h2 style='text-align:center;'>LAPJU</h2>", unsafe_allow_html=True)
        with st.form("login_form", clear_on_submit=False):
            email = st.text_input("Your email", placeholder="you@example.com")
            name = st.text_input("Your name (optional)")
            submitted = st.form_submit_button("Sign in / Continue", use_container_width=True)
        if submitted:
            if not email:
                st.warning("Please enter your email.")
            else:
                st.session_state["user"] = db.login(email, name or None)
                force_rerun()


user = st.session_state.get("user")
if not user:
    full_screen_login()
    st.stop()

with st.sidebar:
    st.caption(f"Signed in as **{user['email']}**")
    if st.button("Sign out"):
        st.session_state.clear()
        force_rerun()
    st.markdown("---")
    selected = render_projects()
    render_new_project()

if selected != st.session_state.get("selected_project_id"):
    st.session_state["selected_project_id"] = selected

with db.get_session() as s:
    current_project = s.get(Project, selected) if selected else None

# ---------- Tabs ----------
if current_project is None:
    st.title("LAPJU")
    st.info("Create or open a project from the sidebar.")
    (tab_tpl,) = st.tabs(["Templates"])
    with tab_tpl:
        render_templates_panel(user)
    st.stop()

render_project_settings(current_project)

st.title(current_project.name)
st.caption(f"{current_project.start_date or '?'} -> {current_project.end_date or '?'} · {current_project.status}")
if current_project.description:
    st.markdown(current_project.description)

tab1, tab2, tab3, tab4, tab5 = st.tabs(["Progress", "Project Analytics", "Tasks", "Templates", "Import & Export"])

with tab1:
    render_progress_panel(current_project, user)
with tab2:
    render_analytics_panel(current_project)
with tab3:
    render_tasks_panel(current_project)
with tab4:
    render_templates_panel(user)
with tab5:
    render_import_export(current_project)
