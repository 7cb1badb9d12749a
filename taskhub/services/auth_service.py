import logging

from sqlalchemy.exc import IntegrityError

from taskhub.core.errors import ConflictError, InvalidCredentialsError, NotFoundError
from taskhub.core.security import TokenIssuer, get_password_hash, verify_password
from taskhub.repositories.user_repository import UserRepository
from taskhub.schemas import AuthResult, UserProfile, UserPublic, UserSummary

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, users: UserRepository, tokens: TokenIssuer):
        self.users = users
        self.tokens = tokens

    async def register(self, email: str, password: str, name: str) -> AuthResult:
        if await self.users.find_by_email(email):
            raise ConflictError("User already exists")

        try:
            user = await self.users.create(
                email=email, password_hash=get_password_hash(password), name=name
            )
        except IntegrityError as e:
            # lost a race with a concurrent registration of the same email
            await self.users.db.rollback()
            raise ConflictError("User already exists") from e

        logger.info("Registered user id=%s", user.id)
        return AuthResult(
            user=UserPublic.model_validate(user),
            token=self.tokens.create_access_token(user.id),
        )

    async def login(self, email: str, password: str) -> AuthResult:
        user = await self.users.find_by_email(email)
        # Same error either way so callers cannot probe which emails exist
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Failed login attempt")
            raise InvalidCredentialsError("Invalid credentials")

        return AuthResult(
            user=UserPublic.model_validate(user),
            token=self.tokens.create_access_token(user.id),
        )

    async def get_user_by_id(self, user_id: str) -> UserProfile:
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return UserProfile.model_validate(user)

    async def update_profile(self, user_id: str, name: str) -> UserPublic:
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        user = await self.users.update(user, name=name)
        return UserPublic.model_validate(user)

    async def get_all_users(self) -> list[UserSummary]:
        return [UserSummary.model_validate(u) for u in await self.users.find_all()]
