# models/task.py
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Index, event
from typing import Optional, List, TYPE_CHECKING
from decimal import Decimal

from utils.decimals import round2, to_decimal

if TYPE_CHECKING:
    from models.project import Project
    from models.task_progress import TaskProgress


class Task(SQLModel, table=True):
    """A node of one project's task tree, usually cloned from a template."""
    __tablename__ = "tasks"
    __table_args__ = (
        Index("tasks_project_parent_idx", "project_id", "parent_id"),
        Index("tasks_project_lft_rgt_idx", "project_id", "lft", "rgt"),
        {"extend_existing": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="projects.id")
    template_task_id: Optional[int] = Field(default=None, foreign_key="task_templates.id", index=True)
    parent_id: Optional[int] = Field(default=None, foreign_key="tasks.id")
    lft: int = Field(default=0)
    rgt: int = Field(default=0)

    name: str
    volume: Decimal = Field(default=Decimal("0"), max_digits=9, decimal_places=2)
    unit: Optional[str] = None
    price: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    weight: Decimal = Field(default=Decimal("0"), max_digits=7, decimal_places=2)
    total_price: Decimal = Field(default=Decimal("0"), max_digits=16, decimal_places=2)

    project: "Project" = Relationship(back_populates="tasks")
    progress_entries: List["TaskProgress"] = Relationship(
        back_populates="task",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


@event.listens_for(Task, "before_insert")
@event.listens_for(Task, "before_update")
def _compute_total_price(mapper, connection, target: Task) -> None:
    target.total_price = round2(to_decimal(target.price) * to_decimal(target.volume))
