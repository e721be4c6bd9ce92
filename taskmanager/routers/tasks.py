from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import NotFoundOrUnauthorized
from ..models import User
from ..notifications import Notifier
from ..query import TaskFilters
from ..schemas.task import Task as TaskSchema, TaskCreate, TaskListResponse, TaskUpdate
from ..services import get_notifier
from ..storage import Storage
from .auth import require_user_or_admin

router = APIRouter()


def page_response(page) -> dict:
    return {"tasks": page.items, "total": page.total, "page": page.page, "limit": page.limit}


@router.get("/tasks", response_model=TaskListResponse)
def get_tasks(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    current_user: User = Depends(require_user_or_admin),
    db: Session = Depends(get_db),
):
    """List the caller's tasks with filtering, sorting and pagination."""
    filters = TaskFilters.from_params(
        status=status, priority=priority, search=search, sort=sort, page=page, limit=limit
    )
    return page_response(Storage(db).get_tasks(str(current_user.id), filters))


@router.post("/tasks", response_model=TaskSchema, status_code=status.HTTP_201_CREATED)
def create_task(
    task: TaskCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_user_or_admin),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Create a new task for the caller."""
    db_task = Storage(db).create_task(str(current_user.id), task)
    background_tasks.add_task(notifier.task_created, db_task)
    return db_task


@router.get("/tasks/{task_id}", response_model=TaskSchema)
def get_task(
    task_id: str,
    current_user: User = Depends(require_user_or_admin),
    db: Session = Depends(get_db),
):
    """Get one of the caller's tasks by ID."""
    task = Storage(db).get_owned_task(task_id, str(current_user.id))
    if not task:
        raise NotFoundOrUnauthorized("Task not found")
    return task


@router.put("/tasks/{task_id}", response_model=TaskSchema)
def update_task(
    task_id: str,
    task_update: TaskUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_user_or_admin),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Partially update one of the caller's tasks."""
    task = Storage(db).update_task(task_id, str(current_user.id), task_update)
    background_tasks.add_task(notifier.task_updated, task)
    return task


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: str,
    current_user: User = Depends(require_user_or_admin),
    db: Session = Depends(get_db),
):
    """Delete one of the caller's tasks; unknown ids are a no-op."""
    Storage(db).delete_task(task_id, str(current_user.id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
