# models/task_template.py
from sqlmodel import SQLModel, Field
from sqlalchemy import Index
from typing import Optional
from decimal import Decimal


class TaskTemplate(SQLModel, table=True):
    """One node of the global template catalog (nested set)."""
    __tablename__ = "task_templates"
    __table_args__ = (
        Index("task_templates_lft_rgt_idx", "lft", "rgt", "parent_id"),
        {"extend_existing": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    parent_id: Optional[int] = Field(default=None, foreign_key="task_templates.id", index=True)
    lft: int = Field(default=0)
    rgt: int = Field(default=0)

    name: str
    volume: Decimal = Field(default=Decimal("0"), max_digits=9, decimal_places=2)
    unit: Optional[str] = None
    price: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    weight: Decimal = Field(default=Decimal("0"), max_digits=7, decimal_places=2)

    @property
    def is_container(self) -> bool:
        return not self.volume and not self.price
