from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import NotFoundOrUnauthorized
from ..models import User
from ..query import TaskFilters
from ..schemas.task import TaskListResponse
from ..schemas.user import RoleUpdate, User as UserSchema
from ..storage import Storage
from .auth import require_admin
from .tasks import page_response

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/users", response_model=List[UserSchema])
def get_all_users(db: Session = Depends(get_db)):
    """List every user (no password hashes)."""
    return Storage(db).get_all_users()


@router.put("/users/{user_id}/role", response_model=UserSchema)
def update_user_role(
    user_id: str,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
):
    """Change a user's role."""
    user = Storage(db).update_user_role(user_id, payload.role)
    if not user:
        raise NotFoundOrUnauthorized("User not found")
    return user


@router.get("/tasks", response_model=TaskListResponse)
def get_all_tasks(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """List tasks across all users."""
    filters = TaskFilters.from_params(
        status=status, priority=priority, search=search, sort=sort, page=page, limit=limit
    )
    return page_response(Storage(db).get_all_tasks(filters))


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_any_task(task_id: str, db: Session = Depends(get_db)):
    """Delete any task regardless of owner."""
    Storage(db).admin_delete_task(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
