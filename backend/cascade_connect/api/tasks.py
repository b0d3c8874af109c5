"""
Cascade Connect - Tasks API
============================

Staff tasks and quick notes. A task without an assignee is a note.
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog
from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select

from cascade_connect.api.deps import DbSession, Email, StaffUser
from cascade_connect.core.database import as_utc
from cascade_connect.core.models import Task, User
from cascade_connect.core.schemas import TaskCreate, TaskResponse, TaskUpdate

router = APIRouter(prefix="/tasks", tags=["Tasks"])
logger = structlog.get_logger()


def sort_tasks(tasks: list[Task]) -> list[Task]:
    """Active tasks newest first, then completed tasks oldest first."""
    active = sorted(
        (t for t in tasks if not t.is_completed),
        key=lambda t: as_utc(t.created_at),
        reverse=True,
    )
    completed = sorted(
        (t for t in tasks if t.is_completed),
        key=lambda t: as_utc(t.created_at),
    )
    return active + completed


async def get_task_or_404(task_id: UUID, db) -> Task:
    task = await db.get(Task, task_id)
    if task is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Task not found",
        )
    return task


async def notify_assignee(task: Task, assigned_by: User, db, email) -> bool:
    if task.assigned_to_id is None or task.assigned_to_id == assigned_by.id:
        return False
    assignee = await db.get(User, task.assigned_to_id)
    if assignee is None or not assignee.email_notify_task_assigned:
        return False
    return await email.notify_task_assigned(
        to=assignee.email,
        task_title=task.title,
        assigned_by=assigned_by.name,
        context_label=task.context_label,
    )


@router.get("", response_model=list[TaskResponse], summary="List tasks")
async def list_tasks(
    current_user: StaffUser,
    db: DbSession,
    claim_id: Optional[UUID] = Query(None),
    notes_only: bool = Query(False, description="Only tasks without an assignee"),
) -> list[TaskResponse]:
    query = select(Task)
    if claim_id:
        query = query.where(Task.claim_id == claim_id)
    if notes_only:
        query = query.where(Task.assigned_to_id.is_(None))

    result = await db.execute(query)
    return [TaskResponse.model_validate(t) for t in sort_tasks(list(result.scalars().all()))]


@router.post(
    "",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create task or note",
)
async def create_task(
    data: TaskCreate,
    current_user: StaffUser,
    db: DbSession,
    email: Email,
) -> TaskResponse:
    if data.assigned_to_id and await db.get(User, data.assigned_to_id) is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Assignee not found",
        )

    task = Task(
        id=uuid4(),
        title=data.content,
        content=data.content,
        description=data.description,
        claim_id=data.claim_id,
        context_label=data.context_label,
        assigned_to_id=data.assigned_to_id,
        assigned_by_id=current_user.id if data.assigned_to_id else None,
        due_date=data.due_date,
        related_claim_ids=[str(cid) for cid in data.related_claim_ids],
        is_completed=False,
    )
    db.add(task)
    await db.commit()
    await db.refresh(task)

    logger.info("task_created", task_id=str(task.id), assigned_to=str(task.assigned_to_id))
    await notify_assignee(task, current_user, db, email)
    return TaskResponse.model_validate(task)


@router.get("/{task_id}", response_model=TaskResponse, summary="Get task")
async def get_task(task_id: UUID, current_user: StaffUser, db: DbSession) -> TaskResponse:
    return TaskResponse.model_validate(await get_task_or_404(task_id, db))


@router.patch(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Update task",
    responses={400: {"description": "No fields to update"}},
)
async def update_task(
    task_id: UUID,
    data: TaskUpdate,
    current_user: StaffUser,
    db: DbSession,
    email: Email,
) -> TaskResponse:
    update_data = data.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update",
        )

    task = await get_task_or_404(task_id, db)
    previous_assignee = task.assigned_to_id

    if "content" in update_data:
        task.title = update_data["content"]
    for field, value in update_data.items():
        setattr(task, field, value)

    reassigned = task.assigned_to_id is not None and task.assigned_to_id != previous_assignee
    if reassigned:
        task.assigned_by_id = current_user.id

    await db.commit()
    await db.refresh(task)

    if reassigned:
        await notify_assignee(task, current_user, db, email)
    return TaskResponse.model_validate(task)


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete task",
)
async def delete_task(task_id: UUID, current_user: StaffUser, db: DbSession) -> None:
    task = await get_task_or_404(task_id, db)
    await db.delete(task)
    await db.commit()
