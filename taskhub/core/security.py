from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from taskhub.core.config import Settings
from taskhub.core.errors import UnauthorizedError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class TokenIssuer:
    """Signs and verifies the single-claim (``userId``) bearer tokens."""

    def __init__(self, settings: Settings):
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm
        self.lifetime = timedelta(days=settings.token_expire_days)

    def create_access_token(self, user_id: str, expires_delta: timedelta | None = None) -> str:
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta if expires_delta is not None else self.lifetime)
        payload = {"userId": user_id, "iat": now, "exp": expire}
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify_token(self, token: str) -> str:
        """Return the user id carried by ``token`` or raise UnauthorizedError."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError as e:
            raise UnauthorizedError("Invalid or expired token") from e
        user_id = payload.get("userId")
        if not isinstance(user_id, str) or not user_id:
            raise UnauthorizedError("Invalid or expired token")
        return user_id
