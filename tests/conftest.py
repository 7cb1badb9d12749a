# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient

from taskhub.core.config import Settings
from taskhub.database import create_db_and_tables
from taskhub.main import create_app
from taskhub.repositories.notification_repository import NotificationRepository
from taskhub.repositories.task_repository import TaskRepository
from taskhub.repositories.user_repository import UserRepository
from taskhub.services.notification_service import NotificationService
from taskhub.services.task_service import TaskService

from fakes import API


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Settings pointing at a throwaway SQLite file.

    ``_env_file=None`` keeps a developer's local .env out of the tests.
    """
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'taskhub.sqlite3'}",
        jwt_secret="test-secret",
        environment="test",
        redis_dsn=None,
    )


@pytest.fixture()
async def app(settings: Settings):
    # ASGITransport does not run the lifespan, so tables are created here
    app = create_app(settings)
    await create_db_and_tables(app.state.engine)
    yield app
    await app.state.engine.dispose()


@pytest.fixture()
async def client(app) -> AsyncClient:
    async with AsyncClient(transport=ASGITransport(app=app), base_url=f"http://test{API}") as c:
        yield c


@pytest.fixture()
async def session(app):
    async with app.state.session_factory() as s:
        yield s


@pytest.fixture()
async def users(session) -> SimpleNamespace:
    """Three users created straight through the repository (no hashing cost)."""
    repo = UserRepository(session)
    alice = await repo.create(email="alice@example.com", password_hash="x", name="Alice")
    bob = await repo.create(email="bob@example.com", password_hash="x", name="Bob")
    carol = await repo.create(email="carol@example.com", password_hash="x", name="Carol")
    return SimpleNamespace(a=alice.id, b=bob.id, c=carol.id)


@pytest.fixture()
def task_service(session) -> TaskService:
    return TaskService(
        TaskRepository(session),
        UserRepository(session),
        NotificationService(NotificationRepository(session)),
    )


@pytest.fixture()
def notification_service(session) -> NotificationService:
    return NotificationService(NotificationRepository(session))
