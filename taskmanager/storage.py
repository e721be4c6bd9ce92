"""Ownership-scoped repository over the users and tasks tables."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import InternalError, NotFoundOrUnauthorized, ValidationError
from .models import Task, TaskStatus, User, UserRole
from .query import TaskFilters, TaskPage, TaskScope, query_tasks
from .schemas.task import TaskCreate, TaskUpdate
from .utils import to_utc, utcnow

logger = logging.getLogger(__name__)

# Columns a partial update may not set to null.
_NON_NULLABLE_FIELDS = ("title", "priority", "status")


def _get_update_data(task_update: TaskUpdate) -> dict:
    if hasattr(task_update, "model_dump"):
        return task_update.model_dump(exclude_unset=True)
    return task_update.dict(exclude_unset=True)


class Storage:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Database commit failed")
            raise InternalError("Database error") from exc

    # Users

    def get_user(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def create_user(
        self,
        username: str,
        hashed_password: str,
        role: UserRole = UserRole.USER,
        email: Optional[str] = None,
    ) -> User:
        user = User(username=username, hashed_password=hashed_password, role=role, email=email)
        self.db.add(user)
        self._commit()
        self.db.refresh(user)
        logger.info("Created user %s (%s)", user.username, user.role.value)
        return user

    def get_all_users(self) -> List[User]:
        return self.db.query(User).order_by(User.created_at.asc(), User.id.asc()).all()

    def update_user_role(self, user_id: str, role: UserRole) -> Optional[User]:
        user = self.get_user(user_id)
        if not user:
            return None
        user.role = role
        user.updated_at = utcnow()
        self._commit()
        self.db.refresh(user)
        logger.info("User %s role set to %s", user.username, role.value)
        return user

    # Tasks

    def get_tasks(self, user_id: str, filters: Optional[TaskFilters] = None) -> TaskPage:
        return query_tasks(self.db, TaskScope.owner(user_id), filters)

    def get_all_tasks(self, filters: Optional[TaskFilters] = None) -> TaskPage:
        return query_tasks(self.db, TaskScope.everyone(), filters)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.db.query(Task).filter(Task.id == task_id).first()

    def get_owned_task(self, task_id: str, user_id: str) -> Optional[Task]:
        return self.db.query(Task).filter(Task.id == task_id, Task.user_id == user_id).first()

    def create_task(self, user_id: str, task: TaskCreate) -> Task:
        now = utcnow()
        db_task = Task(
            title=task.title,
            description=task.description,
            priority=task.priority,
            status=task.status,
            deadline=task.deadline,
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )
        self.db.add(db_task)
        self._commit()
        self.db.refresh(db_task)
        return db_task

    def update_task(self, task_id: str, user_id: str, task_update: TaskUpdate) -> Task:
        """Apply a partial update to a task owned by ``user_id``.

        Ownership is part of the lookup, so a task owned by someone else is
        reported exactly like a missing one.
        """
        task = self.get_owned_task(task_id, user_id)
        if not task:
            raise NotFoundOrUnauthorized("Task not found")

        changes = _get_update_data(task_update)
        for field_name in _NON_NULLABLE_FIELDS:
            if field_name in changes and changes[field_name] is None:
                raise ValidationError(f"{field_name} cannot be null", field=field_name)

        for field_name, value in changes.items():
            setattr(task, field_name, value)

        task.updated_at = max(utcnow(), to_utc(task.updated_at))

        self._commit()
        self.db.refresh(task)
        return task

    def delete_task(self, task_id: str, user_id: str) -> None:
        """Delete a task owned by ``user_id``; unknown or foreign ids are a no-op."""
        deleted = (
            self.db.query(Task)
            .filter(Task.id == task_id, Task.user_id == user_id)
            .delete(synchronize_session=False)
        )
        self._commit()
        if deleted:
            logger.info("Task %s deleted by owner %s", task_id, user_id)

    def admin_delete_task(self, task_id: str) -> None:
        deleted = self.db.query(Task).filter(Task.id == task_id).delete(synchronize_session=False)
        self._commit()
        if deleted:
            logger.info("Task %s deleted by admin", task_id)

    def scan_open_tasks(self, due_before: datetime, limit: int) -> List[Task]:
        """Open tasks whose deadline falls before ``due_before``, latest deadline first.

        Newest deadlines lead the batch so a backlog of long-overdue tasks
        cannot crowd out tasks that only just entered the window.
        """
        return (
            self.db.query(Task)
            .filter(
                Task.deadline.is_not(None),
                Task.deadline < due_before,
                Task.status != TaskStatus.COMPLETED,
            )
            .order_by(Task.deadline.desc(), Task.id.asc())
            .limit(limit)
            .all()
        )
