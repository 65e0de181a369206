import enum

from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, ForeignKey, Text, Enum, JSON, Table,
)
from sqlalchemy.orm import relationship
from taskhub.core.database import Base
from taskhub.core.deadlines import utcnow


def _enum_column(enum_cls, length):
    # Persist the enum values ("urgent"), not member names.
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        validate_strings=True,
        values_callable=lambda e: [m.value for m in e],
    )


class Priority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class Category(str, enum.Enum):
    work = "work"
    personal = "personal"
    health = "health"
    learning = "learning"
    finance = "finance"
    travel = "travel"
    other = "other"


class RecurrencePattern(str, enum.Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


# Ordered subtask references. Independent from Task.parent_task_id.
task_subtasks = Table(
    "task_subtasks",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("subtask_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    completed = Column(Boolean, default=False, nullable=False, index=True)
    priority = Column(_enum_column(Priority, 10), default=Priority.medium, nullable=False)
    category = Column(_enum_column(Category, 10), default=Category.personal, nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=True)
    tags = Column(JSON, default=list, nullable=False)
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=True)
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_pattern = Column(_enum_column(RecurrencePattern, 10), nullable=True)
    parent_task_id = Column(Integer, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True)
    time_spent = Column(Integer, default=0, nullable=False)  # minutes
    estimated_time = Column(Integer, nullable=True)  # minutes
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    assignee = relationship("User", foreign_keys=[assigned_to], lazy="raise")
    subtasks = relationship(
        "Task",
        secondary=task_subtasks,
        primaryjoin=lambda: Task.id == task_subtasks.c.task_id,
        secondaryjoin=lambda: Task.id == task_subtasks.c.subtask_id,
        order_by=lambda: Task.id,
        lazy="raise",
    )
    notes = relationship("TaskNote", order_by="TaskNote.id", lazy="raise")
    attachments = relationship("TaskAttachment", order_by="TaskAttachment.id", lazy="raise")

    def __repr__(self):
        return f"<Task {self.id} {self.title!r}>"


class TaskNote(Base):
    __tablename__ = "task_notes"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class TaskAttachment(Base):
    __tablename__ = "task_attachments"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    url = Column(String(1000), nullable=False)
    uploaded_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
