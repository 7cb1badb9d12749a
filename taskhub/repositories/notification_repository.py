from datetime import datetime

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskhub.models import Notification


class NotificationRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self, *, user_id: str, message: str, task_id: str | None = None
    ) -> Notification:
        notification = Notification(user_id=user_id, message=message, task_id=task_id)
        self.db.add(notification)
        await self.db.commit()
        await self.db.refresh(notification)
        return notification

    async def find_by_user_id(self, user_id: str) -> list[Notification]:
        result = await self.db.exec(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
        )
        return list(result.all())

    async def find_owned(self, notification_id: str, user_id: str) -> Notification | None:
        result = await self.db.exec(
            select(Notification).where(
                Notification.id == notification_id, Notification.user_id == user_id
            )
        )
        return result.first()

    async def mark_as_read(self, notification: Notification) -> Notification:
        notification.read = True
        await self.db.commit()
        await self.db.refresh(notification)
        return notification

    async def delete(self, notification: Notification) -> None:
        await self.db.delete(notification)
        await self.db.commit()

    async def _delete_where(self, *criteria) -> int:
        result = await self.db.exec(select(Notification).where(*criteria))
        rows = result.all()
        for row in rows:
            await self.db.delete(row)
        await self.db.commit()
        return len(rows)

    async def delete_all(self, user_id: str) -> int:
        return await self._delete_where(Notification.user_id == user_id)

    async def delete_read_before(self, user_id: str, cutoff: datetime) -> int:
        return await self._delete_where(
            Notification.user_id == user_id,
            Notification.read == True,  # noqa: E712
            Notification.created_at < cutoff,
        )
