import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

from database import Database, SortSpec
from errors import NotFound, ValidationError, validate_model
from schemas import Pagination, Task, TaskCreate, TaskPage, TaskStatus, TaskUpdate

logger = logging.getLogger(__name__)

TASK_NOT_FOUND = "Task not found"

STATUS_VALUES = {status.value for status in TaskStatus}

# sortBy value -> sort order; the id keeps equal keys in a fixed order across pages
SORT_OPTIONS: Dict[str, SortSpec] = {
    "deadline": [("deadline", 1), ("_id", 1)],
    "createdAt": [("createdAt", -1), ("_id", 1)],
    "status": [("status", 1), ("_id", 1)],
}
DEFAULT_SORT = "deadline"


class TaskService:
    """Task records of a single owner: listing, create, update and delete.

    Every query carries the owner's id, so a task that belongs to someone else
    behaves exactly like one that does not exist.
    """

    def __init__(self, db: Database):
        self.tasks = db.tasks

    def list_tasks(
        self,
        owner_id: str,
        status: Optional[str] = None,
        sort_by: Optional[str] = DEFAULT_SORT,
        page: int = 1,
        limit: int = 10,
    ) -> TaskPage:
        if page < 1:
            raise ValidationError("page must be at least 1")
        if limit < 1:
            raise ValidationError("limit must be at least 1")

        query: Dict[str, Any] = {"user": owner_id}
        # Unknown status values are ignored rather than rejected
        if status in STATUS_VALUES:
            query["status"] = status
        sort = SORT_OPTIONS.get(sort_by or DEFAULT_SORT, SORT_OPTIONS[DEFAULT_SORT])

        documents = self.tasks.find(query, sort=sort, skip=(page - 1) * limit, limit=limit)
        total = self.tasks.count(query)

        return TaskPage(
            tasks=[Task.model_validate(d) for d in documents],
            pagination=Pagination(
                current_page=page,
                total_pages=math.ceil(total / limit),
                total_tasks=total,
                limit=limit,
            ),
        )

    def create_task(self, owner_id: str, data: Union[TaskCreate, Mapping[str, Any]]) -> Task:
        task_in = validate_model(TaskCreate, data)
        now = datetime.now(timezone.utc)
        document = self.tasks.insert({
            "title": task_in.title,
            "description": task_in.description,
            "status": task_in.status.value,
            "deadline": task_in.deadline,
            "user": owner_id,
            "createdAt": now,
            "updatedAt": now,
        })
        logger.info("User %s created task %s", owner_id, document["_id"])
        return Task.model_validate(document)

    def update_task(self, owner_id: str, task_id: str, data: Union[TaskUpdate, Mapping[str, Any]]) -> Task:
        # Find the task and verify ownership before looking at the payload
        if self.tasks.find_one({"_id": task_id, "user": owner_id}) is None:
            raise NotFound(TASK_NOT_FOUND)

        changes = validate_model(TaskUpdate, data).changes()
        changes["updatedAt"] = datetime.now(timezone.utc)
        document = self.tasks.update_one({"_id": task_id, "user": owner_id}, changes)
        if document is None:
            # Deleted by another request in the meantime
            raise NotFound(TASK_NOT_FOUND)
        logger.info("User %s updated task %s (%s)", owner_id, task_id, ", ".join(sorted(changes)))
        return Task.model_validate(document)

    def delete_task(self, owner_id: str, task_id: str) -> None:
        if self.tasks.delete_one({"_id": task_id, "user": owner_id}) is None:
            raise NotFound(TASK_NOT_FOUND)
        logger.info("User %s deleted task %s", owner_id, task_id)
