from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./taskhub.db"
    sql_echo: bool = False

    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    token_expire_days: int = 7
    cookie_name: str = "token"

    environment: str = "development"  # development, production, test
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = ["http://localhost:3000"]
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    redis_dsn: str | None = None  # realtime relay is local-only when unset
    redis_channel: str = "taskhub:events"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()

