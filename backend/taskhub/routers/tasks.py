import logging
import math
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic.alias_generators import to_camel
from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskhub.core.database import get_db
from taskhub.core.deadlines import days_until_due, ensure_utc, is_overdue, utcnow
from taskhub.models.task import (
    Category, Priority, Task, TaskAttachment, TaskNote, task_subtasks,
)
from taskhub.models.user import User
from taskhub.routers.auth import get_current_user
from taskhub.schemas.task import (
    AttachmentCreate, AttachmentOut, DeletedTask, GroupCount, NoteCreate, NoteOut, Pagination,
    StatsOverview, TaskCreate, TaskDeleteResponse, TaskEnvelope, TaskListItem, TaskListResponse,
    TaskOut, TaskStats, TaskUpdate, UserRef,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/tasks",
    tags=["tasks"],
    responses={404: {"description": "Not found"}},
)

DEFAULT_SORT = "-createdAt"
SORTABLE_FIELDS = {
    "createdAt": Task.created_at,
    "updatedAt": Task.updated_at,
    "title": Task.title,
    "dueDate": Task.due_date,
    "priority": Task.priority,
    "category": Task.category,
    "completed": Task.completed,
    "timeSpent": Task.time_spent,
    "estimatedTime": Task.estimated_time,
}

# Columns that PUT may set but never to null.
NON_NULLABLE_UPDATES = ("title", "completed", "priority", "category", "tags", "time_spent")

_TASK_ID_RE = re.compile(r"[1-9][0-9]{0,17}")

_DETAIL_LOAD = (
    selectinload(Task.assignee),
    selectinload(Task.notes),
    selectinload(Task.attachments),
    selectinload(Task.subtasks),
)

_LIST_LOAD = (
    selectinload(Task.assignee),
    selectinload(Task.notes),
    selectinload(Task.attachments),
    selectinload(Task.subtasks).options(*_DETAIL_LOAD),
)


def valid_task_id(task_id: str) -> int:
    """Path dependency: a malformed id is a 400, never a 404."""
    if not _TASK_ID_RE.fullmatch(task_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid task ID")
    return int(task_id)


def server_error(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


def _task_not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")


def _task_fields(task: Task, now) -> dict:
    return dict(
        id=task.id,
        title=task.title,
        description=task.description,
        completed=task.completed,
        priority=task.priority,
        category=task.category,
        due_date=ensure_utc(task.due_date),
        tags=list(task.tags or []),
        user=task.user_id,
        assigned_to=UserRef.model_validate(task.assignee) if task.assignee else None,
        is_recurring=task.is_recurring,
        recurrence_pattern=task.recurrence_pattern,
        parent_task=task.parent_task_id,
        attachments=[
            AttachmentOut(id=a.id, filename=a.filename, url=a.url, uploaded_at=ensure_utc(a.uploaded_at))
            for a in task.attachments
        ],
        notes=[NoteOut(id=n.id, content=n.content, created_at=ensure_utc(n.created_at)) for n in task.notes],
        time_spent=task.time_spent,
        estimated_time=task.estimated_time,
        created_at=ensure_utc(task.created_at),
        updated_at=ensure_utc(task.updated_at),
        is_overdue=is_overdue(task.due_date, task.completed, now),
        days_until_due=days_until_due(task.due_date, now),
    )


def serialize_task(task: Task, now=None) -> TaskOut:
    now = now or utcnow()
    return TaskOut(**_task_fields(task, now), subtasks=[s.id for s in task.subtasks])


def serialize_list_item(task: Task, now=None) -> TaskListItem:
    now = now or utcnow()
    return TaskListItem(
        **_task_fields(task, now),
        subtasks=[serialize_task(s, now) for s in task.subtasks],
    )


def _parse_enum_filter(enum_cls, value: Optional[str], name: str):
    if not value or value == "all":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {name}: {value}")


def _parse_sort(sort: str):
    descending = sort.startswith("-")
    field = sort[1:] if descending else sort
    column = SORTABLE_FIELDS.get(field)
    if column is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid sort field: {field}")
    if descending:
        return column.desc(), Task.id.desc()
    return column.asc(), Task.id.asc()


async def _get_owned_task(db: AsyncSession, task_id: int, user: User, *options) -> Optional[Task]:
    result = await db.execute(
        select(Task)
        .where(Task.id == task_id, Task.user_id == user.id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


@router.get("", response_model=TaskListResponse)
async def get_tasks(
    completed: Optional[bool] = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
    sort: str = DEFAULT_SORT,
    limit: int = Query(50, ge=1),
    page: int = Query(1, ge=1),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List the caller's tasks, filtered, sorted and paginated."""
    filters = [Task.user_id == current_user.id]
    if completed is not None:
        filters.append(Task.completed == completed)
    category_value = _parse_enum_filter(Category, category, "category")
    if category_value is not None:
        filters.append(Task.category == category_value)
    priority_value = _parse_enum_filter(Priority, priority, "priority")
    if priority_value is not None:
        filters.append(Task.priority == priority_value)
    order_by = _parse_sort(sort or DEFAULT_SORT)

    try:
        total = await db.scalar(select(func.count(Task.id)).where(*filters))
        result = await db.execute(
            select(Task)
            .where(*filters)
            .order_by(*order_by)
            .offset((page - 1) * limit)
            .limit(limit)
            .options(*_LIST_LOAD)
        )
        tasks = result.scalars().all()
    except SQLAlchemyError:
        logger.exception("Listing tasks failed for user %s", current_user.id)
        raise server_error("Server error fetching tasks")

    now = utcnow()
    return TaskListResponse(
        tasks=[serialize_list_item(t, now) for t in tasks],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.get("/stats/overview", response_model=TaskStats)
async def get_stats_overview(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Counts and per-category / per-priority breakdowns for the caller.

    The queries run one after another in the request's session without a
    serializable transaction, so a concurrent write from another client can
    make the figures briefly disagree with each other.
    """
    mine = Task.user_id == current_user.id
    try:
        total = await db.scalar(select(func.count(Task.id)).where(mine))
        completed = await db.scalar(select(func.count(Task.id)).where(mine, Task.completed.is_(True)))
        overdue = await db.scalar(
            select(func.count(Task.id)).where(
                mine,
                Task.completed.is_(False),
                Task.due_date.is_not(None),
                Task.due_date < utcnow(),
            )
        )
        by_category = await db.execute(
            select(Task.category, func.count(Task.id).label("count"))
            .where(mine)
            .group_by(Task.category)
            .order_by(func.count(Task.id).desc(), Task.category)
        )
        by_priority = await db.execute(
            select(Task.priority, func.count(Task.id).label("count"))
            .where(mine)
            .group_by(Task.priority)
            .order_by(func.count(Task.id).desc(), Task.priority)
        )
        by_category = by_category.all()
        by_priority = by_priority.all()
    except SQLAlchemyError:
        logger.exception("Stats failed for user %s", current_user.id)
        raise server_error("Server error fetching statistics")

    # halves round up (12.5 -> 13), unlike round()
    completion_rate = math.floor(completed / total * 100 + 0.5) if total > 0 else 0
    return TaskStats(
        overview=StatsOverview(
            total=total,
            completed=completed,
            pending=total - completed,
            overdue=overdue,
            completion_rate=completion_rate,
        ),
        by_category=[GroupCount(id=key.value, count=count) for key, count in by_category],
        by_priority=[GroupCount(id=key.value, count=count) for key, count in by_priority],
    )


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(
    task_id: int = Depends(valid_task_id),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        task = await _get_owned_task(db, task_id, current_user, *_DETAIL_LOAD)
    except SQLAlchemyError:
        logger.exception("Fetching task %s failed", task_id)
        raise server_error("Server error fetching task")
    if task is None:
        raise _task_not_found()
    return serialize_task(task)


@router.post("", response_model=TaskEnvelope, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_in: TaskCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a task owned by the caller. A `user` key in the body is ignored."""
    if not task_in.title:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Task title is required")

    try:
        if task_in.parent_task is not None:
            parent = await _get_owned_task(db, task_in.parent_task, current_user)
            if parent is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parent task not found")

        task = Task(
            user_id=current_user.id,
            title=task_in.title,
            description=task_in.description or None,
            priority=task_in.priority,
            category=task_in.category,
            due_date=ensure_utc(task_in.due_date),
            tags=task_in.tags,
            estimated_time=task_in.estimated_time,
            is_recurring=task_in.is_recurring,
            recurrence_pattern=task_in.recurrence_pattern,
            parent_task_id=task_in.parent_task,
        )
        db.add(task)
        await db.flush()
        if task_in.parent_task is not None:
            await db.execute(insert(task_subtasks).values(task_id=task_in.parent_task, subtask_id=task.id))
        await db.commit()

        task = await _get_owned_task(db, task.id, current_user, *_DETAIL_LOAD)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Creating task failed for user %s", current_user.id)
        raise server_error("Server error creating task")

    logger.info("User %s created task %s", current_user.id, task.id)
    return TaskEnvelope(message="Task created successfully", task=serialize_task(task))


@router.put("/{task_id}", response_model=TaskEnvelope)
async def update_task(
    task_in: TaskUpdate,
    task_id: int = Depends(valid_task_id),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Partial update limited to the TaskUpdate fields; owner and ids cannot change."""
    updates = task_in.model_dump(exclude_unset=True)

    for field in NON_NULLABLE_UPDATES:
        if field in updates and updates[field] is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{to_camel(field)} cannot be null",
            )
    if "title" in updates and not updates["title"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Task title cannot be empty")
    if "due_date" in updates:
        updates["due_date"] = ensure_utc(updates["due_date"])

    try:
        task = await _get_owned_task(db, task_id, current_user)
        if task is None:
            raise _task_not_found()

        if updates.get("assigned_to") is not None:
            assignee = await db.scalar(select(User.id).where(User.id == updates["assigned_to"]))
            if assignee is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Assigned user not found")

        for field, value in updates.items():
            setattr(task, field, value)
        await db.commit()

        task = await _get_owned_task(db, task_id, current_user, *_DETAIL_LOAD)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Updating task %s failed", task_id)
        raise server_error("Server error updating task")

    return TaskEnvelope(message="Task updated successfully", task=serialize_task(task))


@router.delete("/{task_id}", response_model=TaskDeleteResponse)
async def delete_task(
    task_id: int = Depends(valid_task_id),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a task and the tasks whose parentTask points at it.

    The cascade is a single pass: grandchildren survive with their
    parentTask cleared.
    """
    try:
        task = await _get_owned_task(db, task_id, current_user)
        if task is None:
            raise _task_not_found()
        deleted = DeletedTask(id=task.id, title=task.title)

        children = await db.scalars(select(Task.id).where(Task.parent_task_id == task_id))
        removed = [task_id, *children.all()]

        await db.execute(
            update(Task)
            .where(Task.parent_task_id.in_(removed[1:]))
            .values(parent_task_id=None)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            delete(task_subtasks).where(
                or_(task_subtasks.c.task_id.in_(removed), task_subtasks.c.subtask_id.in_(removed))
            )
        )
        await db.execute(delete(TaskNote).where(TaskNote.task_id.in_(removed)))
        await db.execute(delete(TaskAttachment).where(TaskAttachment.task_id.in_(removed)))
        await db.execute(
            delete(Task).where(Task.id.in_(removed)).execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Deleting task %s failed", task_id)
        raise server_error("Server error deleting task")

    logger.info("User %s deleted task %s (%d child tasks)", current_user.id, task_id, len(removed) - 1)
    return TaskDeleteResponse(message="Task deleted successfully", task=deleted)


@router.post("/{task_id}/notes", response_model=TaskEnvelope)
async def add_note(
    note_in: NoteCreate,
    task_id: int = Depends(valid_task_id),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not note_in.content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Note content is required")

    try:
        task = await _get_owned_task(db, task_id, current_user)
        if task is None:
            raise _task_not_found()
        db.add(TaskNote(task_id=task.id, content=note_in.content, created_at=utcnow()))
        task.updated_at = utcnow()
        await db.commit()

        task = await _get_owned_task(db, task_id, current_user, *_DETAIL_LOAD)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Adding note to task %s failed", task_id)
        raise server_error("Server error adding note")

    return TaskEnvelope(message="Note added successfully", task=serialize_task(task))


@router.post("/{task_id}/attachments", response_model=TaskEnvelope)
async def add_attachment(
    attachment_in: AttachmentCreate,
    task_id: int = Depends(valid_task_id),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not attachment_in.filename or not attachment_in.url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Attachment filename and url are required",
        )

    try:
        task = await _get_owned_task(db, task_id, current_user)
        if task is None:
            raise _task_not_found()
        db.add(TaskAttachment(
            task_id=task.id,
            filename=attachment_in.filename,
            url=attachment_in.url,
            uploaded_at=utcnow(),
        ))
        task.updated_at = utcnow()
        await db.commit()

        task = await _get_owned_task(db, task_id, current_user, *_DETAIL_LOAD)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Adding attachment to task %s failed", task_id)
        raise server_error("Server error adding attachment")

    return TaskEnvelope(message="Attachment added successfully", task=serialize_task(task))
