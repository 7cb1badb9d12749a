from fastapi import APIRouter

from taskhub.dependencies import AuthServiceDep, CurrentUserId
from taskhub.schemas import UserSummary

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserSummary])
async def list_users(user_id: CurrentUserId, service: AuthServiceDep):
    """Directory of every user, used to pick assignees"""
    return await service.get_all_users()
