# ui/analytics_panel.py
import streamlit as st
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
from datetime import date

from db import get_session
from models.project import Project
from models.task import Task
from utils.nested_set import load_tree
from utils.progress import get_snapshot
from utils.timeline import progress_series, planned_percentage
from utils.weights import weight_sum, weights_balanced
from utils.tree import leaf_nodes

PLANNED_COLOR = "#9CA3AF"  # gray-400
ACTUAL_COLOR = "#2563EB"   # blue-600


def build_s_curve(df: pd.DataFrame) -> go.Figure:
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=df["date"], y=df["planned"], name="Planned",
                             mode="lines", line=dict(color=PLANNED_COLOR, dash="dash")))
    fig.add_trace(go.Scatter(x=df["date"], y=df["actual"], name="Actual",
                             mode="lines", line=dict(color=ACTUAL_COLOR, width=3)))
    fig.update_layout(yaxis=dict(title="% complete", range=[0, 100]), xaxis_title=None,
                      legend=dict(orientation="h", y=1.1), margin=dict(l=10, r=10, t=30, b=10))
    return fig


def render_analytics_panel(project: Project):
    st.subheader("Project Analytics")
    today = date.today()

    with get_session() as s:
        tasks = load_tree(s, Task, project.id)
        snapshot = get_snapshot(s, project.id, today, mode="weighted")
        series = progress_series(s, project, today=today)

    leaves = leaf_nodes(tasks)
    planned_now = planned_percentage(project, today)
    reported = len(leaves) - len(snapshot.no_data)

    c1, c2, c3, c4 = st.columns(4)
    with c1: st.metric("Actual (weighted)", f"{snapshot.project}%")
    with c2: st.metric("Planned today", f"{planned_now}%" if planned_now is not None else "–")
    with c3: st.metric("Leaf tasks reported", f"{reported}/{len(leaves)}")
    with c4: st.metric("Leaf weight sum", f"{weight_sum(leaves)}")
    if leaves and not weights_balanced(leaves):
        st.warning("Leaf weights do not add up to 100; run weight normalization for this project.")

    st.markdown("---")
    st.markdown("**S-curve**")
    if series.empty:
        st.info("Set project start and end dates to see the S-curve.")
    else:
        st.plotly_chart(build_s_curve(series), use_container_width=True)

    roots = [t for t in tasks if t.parent_id is None and t.id in snapshot.rollup]
    if roots:
        st.markdown("**Progress by work group**")
        df = pd.DataFrame([{"Group": t.name, "Progress %": float(snapshot.rollup[t.id].percentage)}
                           for t in roots])
        fig = px.bar(df, x="Progress %", y="Group", orientation="h", range_x=[0, 100],
                     color_discrete_sequence=[ACTUAL_COLOR])
        fig.update_yaxes(autorange="reversed")
        st.plotly_chart(fig, use_container_width=True)
