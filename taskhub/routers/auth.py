from fastapi import APIRouter, Response, status

from taskhub.core.config import Settings
from taskhub.dependencies import AppSettings, AuthServiceDep, CurrentUserId
from taskhub.schemas import (
    AuthResult,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UpdateProfileRequest,
    UserEnvelope,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def _cookie_options(settings: Settings) -> dict:
    # Cross-site frontends need SameSite=None, which browsers only accept with Secure
    if settings.is_production:
        return {"httponly": True, "secure": True, "samesite": "none"}
    return {"httponly": True, "secure": False, "samesite": "lax"}


def _set_auth_cookie(response: Response, token: str, settings: Settings):
    response.set_cookie(
        settings.cookie_name,
        token,
        max_age=settings.token_expire_days * 24 * 60 * 60,
        **_cookie_options(settings),
    )


@router.post("/register", response_model=AuthResult, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest, response: Response, service: AuthServiceDep, settings: AppSettings
):
    """Create an account and start a session"""
    result = await service.register(data.email, data.password, data.name)
    _set_auth_cookie(response, result.token, settings)
    return result


@router.post("/login", response_model=AuthResult)
async def login(
    data: LoginRequest, response: Response, service: AuthServiceDep, settings: AppSettings
):
    result = await service.login(data.email, data.password)
    _set_auth_cookie(response, result.token, settings)
    return result


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response, settings: AppSettings):
    """Tokens are stateless; logging out only drops the session cookie."""
    response.delete_cookie(settings.cookie_name, **_cookie_options(settings))
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserEnvelope)
async def me(user_id: CurrentUserId, service: AuthServiceDep):
    return UserEnvelope(user=await service.get_user_by_id(user_id))


@router.patch("/profile", response_model=UserEnvelope)
async def update_profile(
    data: UpdateProfileRequest, user_id: CurrentUserId, service: AuthServiceDep
):
    return UserEnvelope(user=await service.update_profile(user_id, data.name))
