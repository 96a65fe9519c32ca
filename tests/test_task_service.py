"""Tests for the task service without the HTTP layer."""

from datetime import datetime, timedelta, timezone

import pytest

from errors import NotFound, ValidationError
from schemas import TaskStatus

BASE = datetime(2099, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def owner(user):
    return user.user.id


@pytest.fixture
def stranger(other_user):
    return other_user.user.id


def add_tasks(task_service, owner_id, count):
    return [
        task_service.create_task(owner_id, {"title": f"task {i}", "deadline": BASE + timedelta(days=i % 4)})
        for i in range(count)
    ]


class TestCreate:
    def test_create_binds_owner(self, task_service, owner):
        task = task_service.create_task(owner, {"title": "Write spec", "deadline": "2099-01-01T00:00:00Z"})
        assert task.user == owner
        assert task.status is TaskStatus.PENDING
        assert task.deadline == BASE
        assert task.created_at == task.updated_at

    def test_naive_deadline_is_utc(self, task_service, owner):
        task = task_service.create_task(owner, {"title": "x", "deadline": "2099-01-01T00:00:00"})
        assert task.deadline == BASE

    def test_invalid_fields(self, task_service, owner):
        with pytest.raises(ValidationError) as exc_info:
            task_service.create_task(owner, {"title": "", "deadline": "2099-01-01T00:00:00Z"})
        assert exc_info.value.errors[0]["field"] == "title"
        assert exc_info.value.status_code == 400


class TestList:
    @pytest.mark.parametrize("sort_by", ["deadline", "createdAt", "status", "bogus"])
    @pytest.mark.parametrize("limit", [1, 3, 4, 10])
    def test_pages_are_exhaustive_and_disjoint(self, task_service, owner, sort_by, limit):
        created = {t.id for t in add_tasks(task_service, owner, 9)}

        first = task_service.list_tasks(owner, sort_by=sort_by, limit=limit)
        assert first.pagination.total_tasks == 9
        assert first.pagination.total_pages == -(-9 // limit)

        seen = []
        for page in range(1, first.pagination.total_pages + 1):
            seen.extend(t.id for t in task_service.list_tasks(owner, sort_by=sort_by, page=page, limit=limit).tasks)
        assert len(seen) == len(created)
        assert set(seen) == created

    def test_created_at_newest_first(self, db, task_service, owner):
        for title, hours in [("old", 0), ("new", 2), ("mid", 1)]:
            created_at = BASE + timedelta(hours=hours)
            db.tasks.insert({
                "title": title,
                "description": "",
                "status": "Pending",
                "deadline": BASE,
                "user": owner,
                "createdAt": created_at,
                "updatedAt": created_at,
            })
        page = task_service.list_tasks(owner, sort_by="createdAt")
        assert [t.title for t in page.tasks] == ["new", "mid", "old"]

    def test_deadline_ascending(self, task_service, owner):
        add_tasks(task_service, owner, 6)
        deadlines = [t.deadline for t in task_service.list_tasks(owner).tasks]
        assert deadlines == sorted(deadlines)

    def test_status_filter(self, task_service, owner):
        add_tasks(task_service, owner, 3)
        task_service.create_task(owner, {"title": "done", "status": "Done", "deadline": BASE})
        page = task_service.list_tasks(owner, status="Done")
        assert [t.title for t in page.tasks] == ["done"]
        assert task_service.list_tasks(owner, status="done").pagination.total_tasks == 4

    def test_owner_scoped(self, task_service, owner, stranger):
        add_tasks(task_service, owner, 3)
        assert task_service.list_tasks(stranger).pagination.total_tasks == 0

    @pytest.mark.parametrize("page, limit", [(0, 10), (1, 0), (-1, 5)])
    def test_rejects_bad_paging(self, task_service, owner, page, limit):
        with pytest.raises(ValidationError):
            task_service.list_tasks(owner, page=page, limit=limit)


class TestUpdate:
    def test_status_only(self, task_service, owner):
        task = task_service.create_task(owner, {"title": "t", "description": "d", "deadline": BASE})
        updated = task_service.update_task(owner, task.id, {"status": "In Progress"})
        assert updated.status is TaskStatus.IN_PROGRESS
        assert (updated.title, updated.description, updated.deadline) == (task.title, task.description, task.deadline)
        assert updated.updated_at >= task.updated_at

    def test_null_description_clears_it(self, task_service, owner):
        task = task_service.create_task(owner, {"title": "t", "description": "d", "deadline": BASE})
        assert task_service.update_task(owner, task.id, {"description": None}).description == ""

    def test_empty_update_changes_nothing(self, task_service, owner):
        task = task_service.create_task(owner, {"title": "t", "deadline": BASE})
        updated = task_service.update_task(owner, task.id, {})
        assert (updated.title, updated.status, updated.deadline) == (task.title, task.status, task.deadline)

    def test_stranger_gets_not_found(self, task_service, owner, stranger):
        task = task_service.create_task(owner, {"title": "t", "deadline": BASE})
        with pytest.raises(NotFound):
            task_service.update_task(stranger, task.id, {"title": "mine now"})
        # Ownership is checked before the payload, so a bad payload is still NotFound
        with pytest.raises(NotFound):
            task_service.update_task(stranger, task.id, {"title": ""})
        assert task_service.list_tasks(owner).tasks[0].title == "t"

    def test_invalid_value(self, task_service, owner):
        task = task_service.create_task(owner, {"title": "t", "deadline": BASE})
        with pytest.raises(ValidationError):
            task_service.update_task(owner, task.id, {"title": "x" * 201})

    def test_numeric_deadline_rejected(self, task_service, owner):
        task = task_service.create_task(owner, {"title": "t", "deadline": BASE})
        with pytest.raises(ValidationError) as exc_info:
            task_service.update_task(owner, task.id, {"deadline": 1700000000})
        assert exc_info.value.errors[0]["field"] == "deadline"
        assert task_service.list_tasks(owner).tasks[0].deadline == BASE


class TestDelete:
    def test_delete(self, task_service, owner):
        task = task_service.create_task(owner, {"title": "t", "deadline": BASE})
        task_service.delete_task(owner, task.id)
        assert task_service.list_tasks(owner).pagination.total_tasks == 0

    def test_stranger_gets_not_found(self, task_service, owner, stranger):
        task = task_service.create_task(owner, {"title": "t", "deadline": BASE})
        with pytest.raises(NotFound):
            task_service.delete_task(stranger, task.id)
        assert task_service.list_tasks(owner).pagination.total_tasks == 1

    def test_unknown_id(self, task_service, owner):
        with pytest.raises(NotFound):
            task_service.delete_task(owner, "not-an-id")
