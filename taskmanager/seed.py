import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from .models import TaskPriority, TaskStatus, UserRole
from .routers.auth import get_password_hash
from .schemas.task import TaskCreate
from .storage import Storage
from .utils import utcnow

logger = logging.getLogger(__name__)


def seed_database(db: Session) -> bool:
    """Create the demo and admin accounts plus sample tasks; no-op once seeded."""
    storage = Storage(db)
    if storage.get_user_by_username("demo"):
        return False

    user = storage.create_user("demo", get_password_hash("demo1234"))
    if not storage.get_user_by_username("admin"):
        storage.create_user("admin", get_password_hash("admin1234"), role=UserRole.ADMIN)

    now = utcnow()
    samples = [
        TaskCreate(
            title="Review Project Proposal",
            description="Review the new project proposal and provide feedback by EOD.",
            priority=TaskPriority.HIGH,
            status=TaskStatus.PENDING,
            deadline=now + timedelta(days=1),
        ),
        TaskCreate(
            title="Team Meeting",
            description="Weekly sync with the engineering team.",
            priority=TaskPriority.MEDIUM,
            status=TaskStatus.COMPLETED,
        ),
        TaskCreate(
            title="Update Documentation",
            description="Update the API documentation to reflect recent changes.",
            priority=TaskPriority.LOW,
            status=TaskStatus.IN_PROGRESS,
            deadline=now + timedelta(days=7),
        ),
    ]
    for sample in samples:
        storage.create_task(str(user.id), sample)

    logger.info("Database seeded with demo user, admin user, and tasks.")
    return True
