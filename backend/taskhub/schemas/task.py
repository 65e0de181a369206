from pydantic import Field, field_validator
from typing import List, Optional
from datetime import datetime

from taskhub.models.task import Priority, Category, RecurrencePattern
from taskhub.schemas.base import CamelModel


# largest value a 64-bit integer primary key can hold
MAX_ID = 2 ** 63 - 1


def _blank_date_to_none(value):
    if value == "":
        return None
    return value


class TaskCreate(CamelModel):
    # title is checked in the route so a blank one yields 400, not 422
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    priority: Priority = Priority.medium
    category: Category = Category.personal
    due_date: Optional[datetime] = None
    tags: List[str] = []
    estimated_time: Optional[int] = Field(None, ge=0)
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    parent_task: Optional[int] = Field(None, ge=1, le=MAX_ID)

    @field_validator("due_date", mode="before")
    @classmethod
    def blank_due_date(cls, value):
        return _blank_date_to_none(value)


class TaskUpdate(CamelModel):
    """Only these fields can be changed through PUT; anything else is ignored."""

    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    completed: Optional[bool] = None
    priority: Optional[Priority] = None
    category: Optional[Category] = None
    due_date: Optional[datetime] = None
    tags: Optional[List[str]] = None
    assigned_to: Optional[int] = Field(None, ge=1, le=MAX_ID)
    time_spent: Optional[int] = Field(None, ge=0)
    estimated_time: Optional[int] = Field(None, ge=0)

    @field_validator("due_date", mode="before")
    @classmethod
    def blank_due_date(cls, value):
        return _blank_date_to_none(value)


class NoteCreate(CamelModel):
    content: Optional[str] = None


class AttachmentCreate(CamelModel):
    filename: Optional[str] = Field(None, max_length=255)
    url: Optional[str] = Field(None, max_length=1000)


class UserRef(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str


class NoteOut(CamelModel):
    id: int
    content: str
    created_at: datetime


class AttachmentOut(CamelModel):
    id: int
    filename: str
    url: str
    uploaded_at: datetime


class TaskOut(CamelModel):
    id: int
    title: str
    description: Optional[str]
    completed: bool
    priority: Priority
    category: Category
    due_date: Optional[datetime]
    tags: List[str]
    user: int
    assigned_to: Optional[UserRef]
    is_recurring: bool
    recurrence_pattern: Optional[RecurrencePattern]
    parent_task: Optional[int]
    subtasks: List[int]
    attachments: List[AttachmentOut]
    notes: List[NoteOut]
    time_spent: int
    estimated_time: Optional[int]
    created_at: datetime
    updated_at: datetime

    # derived at read time
    is_overdue: bool
    days_until_due: Optional[int]


class TaskListItem(TaskOut):
    subtasks: List[TaskOut]


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class TaskListResponse(CamelModel):
    tasks: List[TaskListItem]
    pagination: Pagination


class TaskEnvelope(CamelModel):
    message: str
    task: TaskOut


class DeletedTask(CamelModel):
    id: int
    title: str


class TaskDeleteResponse(CamelModel):
    message: str
    task: DeletedTask


class StatsOverview(CamelModel):
    total: int
    completed: int
    pending: int
    overdue: int
    completion_rate: int


class GroupCount(CamelModel):
    id: str = Field(alias="_id")
    count: int


class TaskStats(CamelModel):
    overview: StatsOverview
    by_category: List[GroupCount]
    by_priority: List[GroupCount]
