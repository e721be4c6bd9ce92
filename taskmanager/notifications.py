"""
In-memory notification log and the notifier that feeds it.

The log is a time-ordered, oldest-first sequence kept for the lifetime of
the process. Nothing here is durable: a restart drops every entry.
"""
import enum
import html
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Deque, List, Optional, Tuple

from sqlalchemy.orm import sessionmaker

from .database import get_session
from .mailer import Mailer
from .models import Task
from .storage import Storage
from .utils import utcnow

logger = logging.getLogger(__name__)


class NotificationType(str, enum.Enum):
    TASK_CREATED = "TASK_CREATED"
    TASK_UPDATED = "TASK_UPDATED"
    TASK_DEADLINE_APPROACHING = "TASK_DEADLINE_APPROACHING"
    TASK_OVERDUE = "TASK_OVERDUE"


@dataclass(frozen=True)
class Notification:
    type: NotificationType
    user_id: str
    task_id: str
    message: str
    timestamp: datetime

    @classmethod
    def for_task(cls, type: NotificationType, task: Task, message: str, now: Optional[datetime] = None) -> "Notification":
        return cls(
            type=type,
            user_id=str(task.user_id),
            task_id=str(task.id),
            message=message,
            timestamp=now or utcnow(),
        )


class NotificationLog:
    """Append-only, oldest-first notification sequence with prefix trimming.

    Writers are the request threadpool and the scheduler thread, so every
    access goes through one lock.
    """

    def __init__(self) -> None:
        self._entries: Deque[Notification] = deque()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, notification: Notification) -> None:
        with self._lock:
            if not self._entries or self._entries[-1].timestamp <= notification.timestamp:
                self._entries.append(notification)
                return
            # Out-of-order timestamp: insert so the sequence stays sorted.
            index = len(self._entries)
            while index > 0 and self._entries[index - 1].timestamp > notification.timestamp:
                index -= 1
            self._entries.insert(index, notification)

    def query_by_user(self, user_id: str, since: Optional[datetime] = None) -> List[Notification]:
        with self._lock:
            return [
                n for n in self._entries
                if n.user_id == str(user_id) and (since is None or n.timestamp >= since)
            ]

    def all(self) -> List[Notification]:
        with self._lock:
            return list(self._entries)

    def trim_older_than(self, cutoff: datetime) -> int:
        """Drop entries with ``timestamp < cutoff`` from the head; returns how many."""
        removed = 0
        with self._lock:
            while self._entries and self._entries[0].timestamp < cutoff:
                self._entries.popleft()
                removed += 1
        return removed

    def cleanup(self, retention: timedelta, now: Optional[datetime] = None) -> int:
        removed = self.trim_older_than((now or utcnow()) - retention)
        if removed:
            logger.info("Cleaned up %d old notifications", removed)
        return removed


_EMAIL_TEMPLATES = {
    NotificationType.TASK_CREATED: (
        "New Task Created",
        "You created a new task: {message}",
        "#4F46E5",
        "New Task Created",
        None,
    ),
    NotificationType.TASK_UPDATED: (
        "Task Updated",
        "Your task was updated: {message}",
        "#4F46E5",
        "Task Updated",
        None,
    ),
    NotificationType.TASK_DEADLINE_APPROACHING: (
        "Task Deadline Approaching",
        "Reminder: {message}",
        "#F59E0B",
        "Deadline Approaching",
        "Don't forget to complete this task before the deadline!",
    ),
    NotificationType.TASK_OVERDUE: (
        "Task Overdue!",
        "URGENT: {message}",
        "#DC2626",
        "Task Overdue",
        "This task is past its deadline. Please take action immediately!",
    ),
}


def render_email(notification: Notification) -> Tuple[str, str, str]:
    """Build (subject, html, text) for a notification."""
    subject, text_fmt, color, heading, callout = _EMAIL_TEMPLATES[notification.type]
    text = text_fmt.format(message=notification.message)
    message = html.escape(notification.message)
    parts = [
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">',
        f'<h2 style="color: {color};">{heading}</h2>',
        f'<p style="font-size: 16px; color: #333;">{message}</p>',
        f'<p style="color: #666; font-size: 14px;">Task ID: {html.escape(notification.task_id)}</p>',
    ]
    if callout:
        parts.append(
            f'<div style="margin-top: 20px; padding: 15px; border-left: 4px solid {color};">'
            f'<p style="margin: 0;">{callout}</p></div>'
        )
    parts.append("</div>")
    return subject, "\n".join(parts), text


class Notifier:
    """Records notifications and emails them, best effort.

    ``notify`` never raises: a failure to look up the recipient or to send
    is logged and the notification stays in the log.
    """

    def __init__(
        self,
        log: NotificationLog,
        mailer: Mailer,
        session_factory: Optional[sessionmaker] = None,
        fallback_email: Optional[str] = None,
        resolve_email: Optional[Callable[[str], Optional[str]]] = None,
    ):
        self.log = log
        self.mailer = mailer
        self.session_factory = session_factory
        self.fallback_email = fallback_email
        self._resolve_email = resolve_email or self._lookup_user_email

    def _lookup_user_email(self, user_id: str) -> Optional[str]:
        with get_session(self.session_factory) as session:
            user = Storage(session).get_user(user_id)
        if user is not None and user.email:
            return user.email
        return self.fallback_email

    def notify(self, notification: Notification) -> bool:
        """Record and email ``notification``; returns True when an email went out."""
        try:
            self.log.append(notification)
            logger.info(
                "%s: %s (user=%s task=%s)",
                notification.type.value,
                notification.message,
                notification.user_id,
                notification.task_id,
            )

            if not self.mailer.enabled:
                logger.debug("Mail transport disabled; not emailing task %s", notification.task_id)
                return False

            recipient = self._resolve_email(notification.user_id)
            if not recipient:
                logger.warning("No email found for user %s", notification.user_id)
                return False

            subject, html_body, text = render_email(notification)
            return self.mailer.send(recipient, subject, html_body, text)
        except Exception:
            logger.exception("Failed to deliver %s for task %s", notification.type.value, notification.task_id)
            return False

    def task_created(self, task: Task) -> bool:
        return self.notify(
            Notification.for_task(NotificationType.TASK_CREATED, task, f"New task created: {task.title}")
        )

    def task_updated(self, task: Task) -> bool:
        return self.notify(
            Notification.for_task(
                NotificationType.TASK_UPDATED,
                task,
                f"Task updated: {task.title} - Status: {task.status.value}",
            )
        )
