import logging
from dataclasses import dataclass
from typing import Any

from taskhub.core.errors import ForbiddenError, NotFoundError, ValidationFailedError
from taskhub.models import Priority, Task, TaskStatus
from taskhub.repositories.task_repository import SORTABLE_COLUMNS, TaskRepository
from taskhub.repositories.user_repository import UserRepository
from taskhub.schemas import (
    DashboardStats,
    MessageResponse,
    NotificationRead,
    TaskCreate,
    TaskRead,
    TaskUpdate,
)
from taskhub.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


@dataclass
class TaskChange:
    """A mutated task plus the assignment notification it triggered, if any."""

    task: TaskRead
    notification: NotificationRead | None = None


class TaskService:
    """
    Task lifecycle rules.

    Status may move between any two states. Only the creator may delete a
    task; the creator or the current assignee may update it.
    """

    def __init__(
        self,
        tasks: TaskRepository,
        users: UserRepository,
        notifications: NotificationService,
    ):
        self.tasks = tasks
        self.users = users
        self.notifications = notifications

    async def _ensure_user_exists(self, user_id: str) -> None:
        if await self.users.find_by_id(user_id) is None:
            raise NotFoundError("Assigned user not found")

    async def create_task(self, data: TaskCreate, creator_id: str) -> TaskChange:
        if data.assigned_to_id is not None:
            await self._ensure_user_exists(data.assigned_to_id)

        task = await self.tasks.create(
            title=data.title,
            description=data.description,
            due_date=data.due_date,
            priority=data.priority,
            status=data.status,
            creator_id=creator_id,
            assigned_to_id=data.assigned_to_id,
        )
        logger.info("Task %s created by %s", task.id, creator_id)

        notification = None
        if data.assigned_to_id and data.assigned_to_id != creator_id:
            notification = await self.notifications.create_notification(
                user_id=data.assigned_to_id,
                message=f"You have been assigned a new task: {data.title}",
                task_id=task.id,
            )

        return TaskChange(task=TaskRead.model_validate(task), notification=notification)

    async def get_all_tasks(
        self,
        status: TaskStatus | None = None,
        priority: Priority | None = None,
        sort_by: str | None = None,
    ) -> list[TaskRead]:
        sort_by = sort_by or "createdAt"
        if sort_by not in SORTABLE_COLUMNS:
            raise ValidationFailedError(
                f"sortBy must be one of: {', '.join(SORTABLE_COLUMNS)}"
            )
        tasks = await self.tasks.find_all(status=status, priority=priority, sort_by=sort_by)
        return [TaskRead.model_validate(t) for t in tasks]

    async def _get(self, task_id: str) -> Task:
        task = await self.tasks.find_by_id(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def get_task_by_id(self, task_id: str) -> TaskRead:
        return TaskRead.model_validate(await self._get(task_id))

    async def update_task(self, task_id: str, patch: TaskUpdate, user_id: str) -> TaskChange:
        task = await self._get(task_id)
        if user_id not in (task.creator_id, task.assigned_to_id):
            raise ForbiddenError("Only the creator or assignee can update this task")

        changes: dict[str, Any] = patch.model_dump(exclude_unset=True)
        previous_assignee = task.assigned_to_id
        new_assignee = changes.get("assigned_to_id", previous_assignee)
        if "assigned_to_id" in changes and new_assignee is not None:
            await self._ensure_user_exists(new_assignee)

        task = await self.tasks.update(task, changes)
        logger.info("Task %s updated by %s fields=%s", task.id, user_id, sorted(changes))

        notification = None
        if (
            new_assignee is not None
            and new_assignee != previous_assignee
            and new_assignee != user_id
        ):
            notification = await self.notifications.create_notification(
                user_id=new_assignee,
                message=f"You have been assigned to task: {task.title}",
                task_id=task.id,
            )

        return TaskChange(task=TaskRead.model_validate(task), notification=notification)

    async def delete_task(self, task_id: str, user_id: str) -> MessageResponse:
        task = await self._get(task_id)
        if task.creator_id != user_id:
            raise ForbiddenError("Unauthorized to delete this task")

        await self.tasks.delete(task)
        logger.info("Task %s deleted by %s", task_id, user_id)
        return MessageResponse(message="Task deleted successfully")

    async def get_dashboard_stats(self, user_id: str) -> DashboardStats:
        # One AsyncSession cannot run statements concurrently, so the three
        # reads are issued back to back on the request's session.
        assigned_to_me = await self.tasks.find_by_assigned_to(user_id)
        created_by_me = await self.tasks.find_by_creator(user_id)
        overdue = await self.tasks.find_overdue()

        mine = [t for t in overdue if user_id in (t.creator_id, t.assigned_to_id)]

        return DashboardStats(
            assigned_to_me=[TaskRead.model_validate(t) for t in assigned_to_me],
            created_by_me=[TaskRead.model_validate(t) for t in created_by_me],
            overdue=[TaskRead.model_validate(t) for t in mine],
        )
