from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import List, Optional

from ..models.task import TaskPriority, TaskStatus
from ..utils import to_utc


class _CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class TaskBase(_CamelModel):
    """Base task schema with common fields."""
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    deadline: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        return value

    @field_validator("deadline")
    @classmethod
    def _deadline_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value)


class TaskCreate(TaskBase):
    """Schema for creating new tasks."""
    pass


class TaskUpdate(_CamelModel):
    """Schema for partial task updates; only the fields sent are applied."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    deadline: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        return value

    @field_validator("deadline")
    @classmethod
    def _deadline_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value)


class Task(TaskBase):
    """Complete task schema with all fields."""
    id: str
    created_at: datetime
    updated_at: datetime
    user_id: str


class TaskListResponse(_CamelModel):
    """One page of tasks plus the total matching count."""
    tasks: List[Task]
    total: int
    page: int
    limit: int
