from datetime import datetime, timezone
from typing import Any

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskhub.models import Priority, Task, TaskStatus

# Public sort keys (as sent in ?sortBy=) -> columns
SORTABLE_COLUMNS = {
    "createdAt": Task.created_at,
    "updatedAt": Task.updated_at,
    "dueDate": Task.due_date,
    "priority": Task.priority,
    "status": Task.status,
    "title": Task.title,
}


class TaskRepository:
    """
    Task queries.

    ``creator`` and ``assigned_to`` are selectin-loaded by the mapper, so every
    Task returned here can be serialized without further I/O.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        *,
        title: str,
        description: str,
        due_date: datetime,
        priority: Priority,
        status: TaskStatus,
        creator_id: str,
        assigned_to_id: str | None = None,
    ) -> Task:
        task = Task(
            title=title,
            description=description,
            due_date=due_date,
            priority=priority,
            status=status,
            creator_id=creator_id,
            assigned_to_id=assigned_to_id,
        )
        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)
        return task

    async def find_by_id(self, task_id: str) -> Task | None:
        return await self.db.get(Task, task_id)

    async def find_all(
        self,
        status: TaskStatus | None = None,
        priority: Priority | None = None,
        sort_by: str = "createdAt",
    ) -> list[Task]:
        query = select(Task)
        if status is not None:
            query = query.where(Task.status == status)
        if priority is not None:
            query = query.where(Task.priority == priority)
        query = query.order_by(SORTABLE_COLUMNS[sort_by].desc())

        result = await self.db.exec(query)
        return list(result.all())

    async def update(self, task: Task, changes: dict[str, Any]) -> Task:
        task.sqlmodel_update(changes)
        task.updated_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(task)
        return task

    async def delete(self, task: Task) -> None:
        await self.db.delete(task)
        await self.db.commit()

    async def find_by_assigned_to(self, user_id: str) -> list[Task]:
        result = await self.db.exec(
            select(Task).where(Task.assigned_to_id == user_id).order_by(Task.due_date)
        )
        return list(result.all())

    async def find_by_creator(self, user_id: str) -> list[Task]:
        result = await self.db.exec(
            select(Task)
            .where(Task.creator_id == user_id)
            .order_by(Task.created_at.desc())
        )
        return list(result.all())

    async def find_overdue(self, now: datetime | None = None) -> list[Task]:
        now = now or datetime.now(timezone.utc)
        result = await self.db.exec(
            select(Task)
            .where(Task.due_date < now, Task.status != TaskStatus.COMPLETED)
            .order_by(Task.due_date)
        )
        return list(result.all())
