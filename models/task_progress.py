# models/task_progress.py
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Index, UniqueConstraint
from typing import Optional, TYPE_CHECKING
from datetime import date, datetime, timezone
from decimal import Decimal

if TYPE_CHECKING:
    from models.task import Task


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskProgress(SQLModel, table=True):
    __tablename__ = "task_progress"
    __table_args__ = (
        # one entry per task per project per day
        UniqueConstraint("task_id", "project_id", "progress_date", name="uq_task_progress_day"),
        Index("task_progress_project_date_idx", "project_id", "progress_date"),
        Index("task_progress_project_task_date_idx", "project_id", "task_id", "progress_date"),
        {"extend_existing": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="tasks.id")
    project_id: int = Field(foreign_key="projects.id")
    user_id: int = Field(foreign_key="users.id")
    percentage: Decimal = Field(default=Decimal("0"), max_digits=5, decimal_places=2)
    progress_date: date
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    task: "Task" = Relationship(back_populates="progress_entries")
