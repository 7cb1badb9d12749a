import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TaskHubError(Exception):
    """Base class for errors raised by services and surfaced to clients."""

    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailedError(TaskHubError):
    default_message = "Validation failed"


class ConflictError(TaskHubError):
    default_message = "Resource already exists"


class InvalidCredentialsError(TaskHubError):
    default_message = "Invalid credentials"


class NotFoundError(TaskHubError):
    default_message = "Resource not found"


class ForbiddenError(TaskHubError):
    default_message = "Access denied"


class UnauthorizedError(TaskHubError):
    default_message = "Authentication required"


ERROR_STATUS: dict[type[TaskHubError], int] = {
    ValidationFailedError: status.HTTP_400_BAD_REQUEST,
    InvalidCredentialsError: status.HTTP_401_UNAUTHORIZED,
    UnauthorizedError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
}


def status_for(exc: TaskHubError) -> int:
    for klass in type(exc).__mro__:
        if klass in ERROR_STATUS:
            return ERROR_STATUS[klass]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _field_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for err in exc.errors():
        # loc is e.g. ("body", "title") or ("query", "sortBy")
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "")})
    return errors


def register_error_handlers(app: FastAPI, *, expose_details: bool) -> None:
    """Install the single error-to-response mapping on ``app``."""

    @app.exception_handler(TaskHubError)
    async def handle_domain_error(request: Request, exc: TaskHubError):
        code = status_for(exc)
        headers = None
        if code == status.HTTP_401_UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}
        logger.info(
            "%s %s -> %s %s", request.method, request.url.path, code, exc.message
        )
        return JSONResponse(
            status_code=code, content={"message": exc.message}, headers=headers
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Validation failed", "errors": _field_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        content = {"message": "Internal server error"}
        if expose_details:
            content["detail"] = str(exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content
        )
