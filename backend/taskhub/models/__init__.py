from taskhub.models.user import User, Theme
from taskhub.models.task import (
    Task, TaskNote, TaskAttachment, task_subtasks, Priority, Category, RecurrencePattern,
)

__all__ = [
    "User",
    "Theme",
    "Task",
    "TaskNote",
    "TaskAttachment",
    "task_subtasks",
    "Priority",
    "Category",
    "RecurrencePattern",
]
