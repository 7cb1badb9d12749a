from fastapi import APIRouter, Query, Response, status

from taskhub.dependencies import CurrentUserId, NotificationServiceDep
from taskhub.schemas import NotificationEnvelope, NotificationList, PurgeResult

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationList)
async def get_notifications(user_id: CurrentUserId, service: NotificationServiceDep):
    return NotificationList(notifications=await service.get_user_notifications(user_id))


@router.patch("/{notification_id}/read", response_model=NotificationEnvelope)
async def mark_as_read(
    notification_id: str, user_id: CurrentUserId, service: NotificationServiceDep
):
    notification = await service.mark_as_read(notification_id, user_id)
    return NotificationEnvelope(notification=notification)


@router.delete("/read", response_model=PurgeResult)
async def purge_read(
    user_id: CurrentUserId,
    service: NotificationServiceDep,
    older_than_days: int = Query(default=30, ge=0, alias="olderThanDays"),
):
    """Remove read notifications older than the given age"""
    return PurgeResult(deleted=await service.purge_read(user_id, older_than_days))


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: str, user_id: CurrentUserId, service: NotificationServiceDep
):
    await service.delete_notification(notification_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_all_notifications(user_id: CurrentUserId, service: NotificationServiceDep):
    await service.delete_all_notifications(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
