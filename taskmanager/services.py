"""Process-wide services, built once per app and kept on ``app.state.services``."""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import sessionmaker

from . import config
from .mailer import Mailer
from .notifications import NotificationLog, Notifier
from .scheduler import DeadlineScheduler


@dataclass
class AppServices:
    notification_log: NotificationLog
    mailer: Mailer
    notifier: Notifier
    scheduler: DeadlineScheduler


def build_services(session_factory: sessionmaker, mailer: Optional[Mailer] = None) -> AppServices:
    log = NotificationLog()
    mailer = mailer or Mailer()
    notifier = Notifier(log, mailer, session_factory=session_factory, fallback_email=config.ADMIN_EMAIL)
    scheduler = DeadlineScheduler(
        notifier,
        session_factory,
        interval_seconds=config.DEADLINE_CHECK_INTERVAL_SECONDS,
        window=timedelta(hours=config.DEADLINE_WINDOW_HOURS),
        batch_limit=config.DEADLINE_SCAN_BATCH_LIMIT,
        renotify_every_scan=config.DEADLINE_RENOTIFY_EVERY_SCAN,
        retention=timedelta(days=config.NOTIFICATION_RETENTION_DAYS),
        cleanup_interval_seconds=config.NOTIFICATION_CLEANUP_INTERVAL_SECONDS,
    )
    return AppServices(notification_log=log, mailer=mailer, notifier=notifier, scheduler=scheduler)


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_notifier(request: Request) -> Notifier:
    return get_services(request).notifier
