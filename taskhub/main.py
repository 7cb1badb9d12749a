import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskhub.core.config import Settings, get_settings
from taskhub.core.errors import register_error_handlers
from taskhub.core.events import build_broadcaster
from taskhub.core.logging_setup import setup_logging
from taskhub.core.security import TokenIssuer
from taskhub.core.websocket import ConnectionManager
from taskhub.database import build_engine, build_session_factory, create_db_and_tables
from taskhub.routers import auth, notifications, realtime, tasks, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_db_and_tables(app.state.engine)
    await app.state.broadcaster.start()
    logger.info("TaskHub API started env=%s", app.state.settings.environment)
    yield
    await app.state.broadcaster.stop()
    await app.state.engine.dispose()
    logger.info("TaskHub API stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application and every long-lived component it uses."""
    settings = settings or get_settings()

    app = FastAPI(
        title="TaskHub API",
        description="Collaborative task management with live updates",
        swagger_ui_parameters={"displayRequestDuration": True},
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.session_factory = build_session_factory(app.state.engine)
    app.state.tokens = TokenIssuer(settings)
    app.state.connections = ConnectionManager()
    app.state.broadcaster = build_broadcaster(settings, app.state.connections)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    register_error_handlers(app, expose_details=not settings.is_production)

    # Include routers
    for module in (auth, users, tasks, notifications, realtime):
        app.include_router(module.router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


def run():
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
