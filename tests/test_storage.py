from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from taskmanager.errors import InternalError, NotFoundOrUnauthorized, ValidationError
from taskmanager.models import Task, TaskPriority, TaskStatus, UserRole
from taskmanager.schemas.task import TaskCreate, TaskUpdate
from taskmanager.utils import utcnow


def test_create_task_applies_defaults_and_timestamps(storage, alice):
    task = storage.create_task(str(alice.id), TaskCreate(title="Write report"))

    fetched = storage.get_task(task.id)
    assert fetched.id
    assert fetched.title == "Write report"
    assert fetched.description is None
    assert fetched.priority == TaskPriority.MEDIUM
    assert fetched.status == TaskStatus.PENDING
    assert fetched.deadline is None
    assert fetched.user_id == alice.id
    assert fetched.created_at == fetched.updated_at


def test_create_task_keeps_provided_fields(storage, alice):
    deadline = utcnow() + timedelta(days=2)
    task = storage.create_task(
        str(alice.id),
        TaskCreate(
            title="Ship",
            description="release 1.0",
            priority=TaskPriority.HIGH,
            status=TaskStatus.IN_PROGRESS,
            deadline=deadline,
        ),
    )

    assert task.priority == TaskPriority.HIGH
    assert task.status == TaskStatus.IN_PROGRESS
    assert task.deadline == deadline
    assert task.description == "release 1.0"


def test_update_merges_fields_and_advances_updated_at(db, storage, alice, make_task):
    task = make_task(alice, "Draft")
    task.updated_at = task.created_at = utcnow() - timedelta(minutes=5)
    db.commit()
    previous = task.updated_at

    updated = storage.update_task(task.id, str(alice.id), TaskUpdate(status=TaskStatus.COMPLETED))

    assert updated.status == TaskStatus.COMPLETED
    assert updated.title == "Draft"
    assert updated.updated_at >= previous
    assert updated.updated_at > updated.created_at


def test_update_can_clear_optional_fields(storage, alice, make_task):
    task = make_task(alice, "Draft", description="x", deadline=utcnow() + timedelta(days=1))

    updated = storage.update_task(task.id, str(alice.id), TaskUpdate(description=None, deadline=None))

    assert updated.description is None
    assert updated.deadline is None


def test_update_rejects_null_for_required_fields(storage, alice, make_task):
    task = make_task(alice, "Draft")

    with pytest.raises(ValidationError) as excinfo:
        storage.update_task(task.id, str(alice.id), TaskUpdate(priority=None))

    assert excinfo.value.field == "priority"


def test_update_of_foreign_task_is_not_found(db, storage, alice, bob, make_task):
    task = make_task(alice, "Private")

    with pytest.raises(NotFoundOrUnauthorized):
        storage.update_task(task.id, str(bob.id), TaskUpdate(title="hijacked"))

    db.expire_all()
    assert storage.get_task(task.id).title == "Private"


def test_update_of_missing_task_is_not_found(storage, alice):
    with pytest.raises(NotFoundOrUnauthorized):
        storage.update_task("missing", str(alice.id), TaskUpdate(title="x"))


def test_delete_is_scoped_to_owner(db, storage, alice, bob, make_task):
    task_id = make_task(alice, "Keep me").id

    storage.delete_task(task_id, str(bob.id))
    db.expire_all()
    assert storage.get_task(task_id) is not None

    storage.delete_task(task_id, str(alice.id))
    db.expire_all()
    assert storage.get_task(task_id) is None


def test_delete_missing_task_is_a_no_op(storage, alice):
    storage.delete_task("does-not-exist", str(alice.id))
    storage.admin_delete_task("does-not-exist")


def test_admin_delete_ignores_ownership(db, storage, alice, make_task):
    task = make_task(alice, "Anything")

    storage.admin_delete_task(task.id)

    db.expire_all()
    assert db.query(Task).count() == 0


def test_update_user_role(storage, alice):
    user = storage.update_user_role(alice.id, UserRole.ADMIN)

    assert user.role == UserRole.ADMIN
    assert storage.update_user_role("nobody", UserRole.ADMIN) is None


def test_scan_open_tasks_skips_completed_undated_and_distant(storage, alice, make_task):
    now = utcnow()
    make_task(alice, "undated")
    make_task(alice, "done", deadline=now, status=TaskStatus.COMPLETED)
    make_task(alice, "far", deadline=now + timedelta(days=10))
    make_task(alice, "later", deadline=now + timedelta(days=1))
    make_task(alice, "sooner", deadline=now - timedelta(days=1))

    tasks = storage.scan_open_tasks(now + timedelta(days=2), limit=10)

    assert [t.title for t in tasks] == ["later", "sooner"]
    assert [t.title for t in storage.scan_open_tasks(now + timedelta(days=2), limit=1)] == ["later"]


def test_timestamps_come_back_as_aware_utc(session_factory, storage, alice):
    deadline = datetime(2030, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    task_id = storage.create_task(str(alice.id), TaskCreate(title="Zoned", deadline=deadline)).id

    with session_factory() as session:
        fetched = session.get(Task, task_id)

    assert fetched.deadline == datetime(2030, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert fetched.deadline.tzinfo is not None
    assert fetched.deadline.utcoffset() == timedelta(0)
    assert fetched.created_at.utcoffset() == timedelta(0)
    assert fetched.updated_at.utcoffset() == timedelta(0)


def test_failed_commit_raises_internal_error(db, storage, alice, monkeypatch):
    def failing_commit():
        raise OperationalError("INSERT INTO tasks", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(InternalError) as excinfo:
        storage.create_task(str(alice.id), TaskCreate(title="Lost"))

    assert excinfo.value.status_code == 500
    monkeypatch.undo()
    assert db.query(Task).count() == 0
