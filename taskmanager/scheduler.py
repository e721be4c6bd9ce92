"""
Deadline notification scheduler.

Two asyncio loops:
- the deadline loop scans open tasks once at startup and then on a fixed
  interval, emitting TASK_DEADLINE_APPROACHING / TASK_OVERDUE;
- the cleanup loop trims the notification log to the retention window.

Scans do their database and mail work in a worker thread so the event
loop keeps serving requests. To stop, call ``stop()`` (cancels both loops).
"""
import asyncio
import enum
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import sessionmaker

from .database import get_session
from .models import Task, TaskStatus
from .notifications import Notification, NotificationLog, NotificationType, Notifier
from .storage import Storage
from .utils import utcnow

logger = logging.getLogger(__name__)


class DeadlineState(str, enum.Enum):
    NO_DEADLINE = "no-deadline"
    UPCOMING = "upcoming"
    APPROACHING = "approaching"
    OVERDUE = "overdue"
    SUPPRESSED = "suppressed"


_STATE_NOTIFICATIONS = {
    DeadlineState.APPROACHING: NotificationType.TASK_DEADLINE_APPROACHING,
    DeadlineState.OVERDUE: NotificationType.TASK_OVERDUE,
}


def classify_deadline(task: Task, now: datetime, window: timedelta = timedelta(hours=24)) -> DeadlineState:
    """Deadline state of ``task`` at ``now``, recomputed from scratch."""
    if task.status == TaskStatus.COMPLETED:
        return DeadlineState.SUPPRESSED
    if task.deadline is None:
        return DeadlineState.NO_DEADLINE
    if task.deadline < now:
        return DeadlineState.OVERDUE
    if task.deadline < now + window:
        return DeadlineState.APPROACHING
    return DeadlineState.UPCOMING


def _deadline_message(task: Task, state: DeadlineState) -> str:
    if state == DeadlineState.OVERDUE:
        return f'Task "{task.title}" is overdue!'
    return f'Task "{task.title}" deadline is approaching (due: {task.deadline:%Y-%m-%d %H:%M} UTC)'


class DeadlineScheduler:
    def __init__(
        self,
        notifier: Notifier,
        session_factory: Optional[sessionmaker] = None,
        *,
        interval_seconds: float = 60 * 60,
        window: timedelta = timedelta(hours=24),
        batch_limit: int = 1000,
        renotify_every_scan: bool = False,
        retention: timedelta = timedelta(days=7),
        cleanup_interval_seconds: float = 24 * 60 * 60,
    ):
        self.notifier = notifier
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.window = window
        self.batch_limit = batch_limit
        self.renotify_every_scan = renotify_every_scan
        self.retention = retention
        self.cleanup_interval_seconds = cleanup_interval_seconds

        # task_id -> (state, deadline) last notified
        self._notified: Dict[str, Tuple[DeadlineState, datetime]] = {}
        self._scan_in_flight = False
        self._tasks: List[asyncio.Task] = []

    @property
    def log(self) -> NotificationLog:
        return self.notifier.log

    def scan(self, now: Optional[datetime] = None) -> List[Notification]:
        """Run one scan cycle and return the notifications it emitted.

        A task is notified once per (state, deadline) pair unless
        ``renotify_every_scan`` is set; it is notified again when it moves
        from approaching to overdue or its deadline changes.
        """
        now = now or utcnow()
        with get_session(self.session_factory) as session:
            tasks = Storage(session).scan_open_tasks(now + self.window, self.batch_limit)

        emitted: List[Notification] = []
        seen = set()
        for task in tasks:
            state = classify_deadline(task, now, self.window)
            notification_type = _STATE_NOTIFICATIONS.get(state)
            if notification_type is None:
                continue

            task_id = str(task.id)
            seen.add(task_id)
            marker = (state, task.deadline)
            if not self.renotify_every_scan and self._notified.get(task_id) == marker:
                continue

            notification = Notification.for_task(notification_type, task, _deadline_message(task, state), now)
            self.notifier.notify(notification)
            self._notified[task_id] = marker
            emitted.append(notification)

        # Forget tasks that left the window (completed, deleted, rescheduled).
        # A full batch may have cut off older overdue tasks, so keep their state.
        if len(tasks) < self.batch_limit:
            for task_id in list(self._notified):
                if task_id not in seen:
                    del self._notified[task_id]

        logger.info("Deadline scan checked %d tasks, emitted %d notifications", len(tasks), len(emitted))
        return emitted

    async def run_scan(self) -> List[Notification]:
        """One guarded scan: skipped if another is running, errors logged."""
        if self._scan_in_flight:
            logger.warning("Deadline scan still running; skipping this cycle")
            return []

        self._scan_in_flight = True
        try:
            return await asyncio.to_thread(self.scan)
        except Exception:
            logger.exception("Error checking task deadlines")
            return []
        finally:
            self._scan_in_flight = False

    def cleanup(self, now: Optional[datetime] = None) -> int:
        return self.log.cleanup(self.retention, now)

    async def run_deadline_loop(self) -> None:
        while True:
            await self.run_scan()
            await asyncio.sleep(self.interval_seconds)

    async def run_cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval_seconds)
            try:
                self.cleanup()
            except Exception:
                logger.exception("Notification cleanup failed")

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self.run_deadline_loop(), name="deadline-scan"),
            asyncio.create_task(self.run_cleanup_loop(), name="notification-cleanup"),
        ]
        logger.info("Deadline checker started (checking every %s seconds)", self.interval_seconds)

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            logger.info("Deadline checker stopped")
