"""
Task query engine.

Turns a declarative filter/sort/page request into a deterministic page of
tasks plus the total number of matching rows, scoped to one owner or to
every task (admin view).

Predicates are ANDed; ``search`` is an OR across title and description.
A missing filter, an empty string or ``"all"`` means "no constraint".
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from sqlalchemy import case, or_
from sqlalchemy.orm import Session

from .errors import ValidationError
from .models import Task, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
MAX_PAGE = 1_000_000

_NO_CONSTRAINT = ("", "all")


class TaskSort(str, enum.Enum):
    PRIORITY = "priority"
    CREATED_AT = "createdAt"
    DEADLINE = "deadline"


@dataclass(frozen=True)
class TaskScope:
    """Ownership boundary of a query: one user, or everyone when ``user_id`` is None."""

    user_id: Optional[str] = None

    @classmethod
    def owner(cls, user_id: str) -> "TaskScope":
        return cls(user_id=str(user_id))

    @classmethod
    def everyone(cls) -> "TaskScope":
        return cls()

    @property
    def is_global(self) -> bool:
        return self.user_id is None


@dataclass(frozen=True)
class TaskFilters:
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    search: Optional[str] = None
    sort: TaskSort = TaskSort.CREATED_AT
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_params(
        cls,
        status: Any = None,
        priority: Any = None,
        search: Optional[str] = None,
        sort: Any = None,
        page: Any = None,
        limit: Any = None,
    ) -> "TaskFilters":
        """Validate raw request values into filters.

        ``page < 1`` becomes 1, ``limit <= 0`` falls back to the default and
        ``limit`` is capped at MAX_LIMIT. A page above MAX_PAGE and enum
        values outside the allowed set raise ValidationError naming the
        offending field.
        """
        search = (search or "").strip() or None

        page = _parse_int(page, "page", DEFAULT_PAGE)
        limit = _parse_int(limit, "limit", DEFAULT_LIMIT)
        if page > MAX_PAGE:
            raise ValidationError(f"Invalid page {page}; must be at most {MAX_PAGE}", field="page")
        if page < 1:
            page = DEFAULT_PAGE
        if limit <= 0:
            limit = DEFAULT_LIMIT
        limit = min(limit, MAX_LIMIT)

        return cls(
            status=_parse_enum(TaskStatus, status, "status"),
            priority=_parse_enum(TaskPriority, priority, "priority"),
            search=search,
            sort=_parse_enum(TaskSort, sort, "sort") or TaskSort.CREATED_AT,
            page=page,
            limit=limit,
        )


@dataclass
class TaskPage:
    items: List[Task] = field(default_factory=list)
    total: int = 0
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT


def _parse_enum(enum_cls, value, field_name: str):
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    raw = str(value).strip()
    if raw.lower() in _NO_CONSTRAINT:
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field_name} '{raw}'; expected one of: {allowed}", field=field_name)


def _parse_int(value, field_name: str, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name} '{value}'; expected an integer", field=field_name)


def _conditions(scope: TaskScope, filters: TaskFilters) -> list:
    conditions = []
    if not scope.is_global:
        conditions.append(Task.user_id == scope.user_id)
    if filters.status is not None:
        conditions.append(Task.status == filters.status)
    if filters.priority is not None:
        conditions.append(Task.priority == filters.priority)
    if filters.search:
        conditions.append(
            or_(
                Task.title.icontains(filters.search, autoescape=True),
                Task.description.icontains(filters.search, autoescape=True),
            )
        )
    return conditions


# Declared order of the priority enum: high > medium > low.
_PRIORITY_RANK = case(
    (Task.priority == TaskPriority.HIGH, 0),
    (Task.priority == TaskPriority.MEDIUM, 1),
    else_=2,
)


def _order_by(sort: TaskSort) -> list:
    if sort == TaskSort.PRIORITY:
        primary = [_PRIORITY_RANK.asc()]
    elif sort == TaskSort.DEADLINE:
        # Tasks without a deadline sort last.
        primary = [Task.deadline.is_(None).asc(), Task.deadline.asc()]
    else:
        primary = []
    return primary + [Task.created_at.desc(), Task.id.asc()]


def query_tasks(db: Session, scope: TaskScope, filters: Optional[TaskFilters] = None) -> TaskPage:
    """Run a scoped, filtered, sorted and paginated task query.

    ``total`` comes from a separate COUNT over the same predicates, so a
    concurrent write between the two statements can make it disagree with
    the page contents.
    """
    filters = filters or TaskFilters()
    conditions = _conditions(scope, filters)

    base = db.query(Task).filter(*conditions)
    total = base.count()

    items = (
        base.order_by(*_order_by(filters.sort))
        .offset(filters.offset)
        .limit(filters.limit)
        .all()
    )
    logger.debug(
        "Task query scope=%s filters=%s -> %d of %d",
        scope.user_id or "*",
        filters,
        len(items),
        total,
    )
    return TaskPage(items=items, total=total, page=filters.page, limit=filters.limit)
