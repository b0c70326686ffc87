# models/template_change.py
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from typing import Optional, Dict, Any
from datetime import datetime, timezone

TRACKED_FIELDS = ("name", "volume", "unit", "weight", "price")


class TemplateChange(SQLModel, table=True):
    """Audit row for an edit to a template's tracked fields."""
    __tablename__ = "template_changes"
    __table_args__ = {"extend_existing": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    task_template_id: int = Field(foreign_key="task_templates.id", index=True)
    user_id: Optional[int] = Field(default=None, foreign_key="users.id")
    old_values: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    new_values: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    affected_projects_count: int = Field(default=0)
    affected_tasks_count: int = Field(default=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
