from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel.ext.asyncio.session import AsyncSession
from typing_extensions import Annotated

from taskhub.core.config import Settings
from taskhub.core.errors import UnauthorizedError
from taskhub.core.events import EventBroadcaster
from taskhub.core.security import TokenIssuer
from taskhub.database import get_db
from taskhub.repositories.notification_repository import NotificationRepository
from taskhub.repositories.task_repository import TaskRepository
from taskhub.repositories.user_repository import UserRepository
from taskhub.services.auth_service import AuthService
from taskhub.services.notification_service import NotificationService
from taskhub.services.task_service import TaskService

bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.tokens


def get_broadcaster(request: Request) -> EventBroadcaster:
    return request.app.state.broadcaster


AppSettings = Annotated[Settings, Depends(get_app_settings)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
Tokens = Annotated[TokenIssuer, Depends(get_token_issuer)]
Broadcaster = Annotated[EventBroadcaster, Depends(get_broadcaster)]


async def get_current_user_id(
    request: Request,
    settings: AppSettings,
    tokens: Tokens,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Authenticate from the Bearer header, falling back to the session cookie."""
    token = credentials.credentials if credentials else request.cookies.get(settings.cookie_name)
    if not token:
        raise UnauthorizedError("Authentication required")
    return tokens.verify_token(token)


CurrentUserId = Annotated[str, Depends(get_current_user_id)]


def get_auth_service(db: DbSession, tokens: Tokens) -> AuthService:
    return AuthService(UserRepository(db), tokens)


def get_notification_service(db: DbSession) -> NotificationService:
    return NotificationService(NotificationRepository(db))


def get_task_service(db: DbSession) -> TaskService:
    return TaskService(
        TaskRepository(db),
        UserRepository(db),
        NotificationService(NotificationRepository(db)),
    )


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]
