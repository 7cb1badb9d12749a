from datetime import datetime, timedelta, timezone

from taskhub.core.errors import NotFoundError
from taskhub.repositories.notification_repository import NotificationRepository
from taskhub.schemas import NotificationRead


class NotificationService:
    """
    Per-user notifications.

    Every operation addressed at a single notification checks that it belongs
    to the caller; someone else's notification is reported exactly like a
    missing one.
    """

    def __init__(self, notifications: NotificationRepository):
        self.notifications = notifications

    async def create_notification(
        self, user_id: str, message: str, task_id: str | None = None
    ) -> NotificationRead:
        notification = await self.notifications.create(
            user_id=user_id, message=message, task_id=task_id
        )
        return NotificationRead.model_validate(notification)

    async def get_user_notifications(self, user_id: str) -> list[NotificationRead]:
        return [
            NotificationRead.model_validate(n)
            for n in await self.notifications.find_by_user_id(user_id)
        ]

    async def _get_owned(self, notification_id: str, user_id: str):
        notification = await self.notifications.find_owned(notification_id, user_id)
        if notification is None:
            raise NotFoundError("Notification not found")
        return notification

    async def mark_as_read(self, notification_id: str, user_id: str) -> NotificationRead:
        notification = await self._get_owned(notification_id, user_id)
        notification = await self.notifications.mark_as_read(notification)
        return NotificationRead.model_validate(notification)

    async def delete_notification(self, notification_id: str, user_id: str) -> None:
        notification = await self._get_owned(notification_id, user_id)
        await self.notifications.delete(notification)

    async def delete_all_notifications(self, user_id: str) -> int:
        return await self.notifications.delete_all(user_id)

    async def purge_read(self, user_id: str, days_old: int = 30) -> int:
        """Delete the user's read notifications older than ``days_old`` days."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=days_old)
        return await self.notifications.delete_read_before(user_id, cutoff)
