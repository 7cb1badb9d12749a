from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from taskhub.models import Priority, TaskStatus

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def as_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes are taken as UTC; aware ones are converted to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire"""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


# ---- auth / users ----


class RegisterRequest(CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=6, max_length=128)
    name: str = Field(min_length=1, max_length=100)


class LoginRequest(CamelModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UpdateProfileRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)


class UserPublic(CamelModel):
    id: str
    email: str
    name: str


class UserProfile(UserPublic):
    created_at: UtcDatetime


class UserSummary(CamelModel):
    id: str
    name: str
    email: str


class AuthResult(CamelModel):
    user: UserPublic
    token: str


class UserEnvelope(CamelModel):
    user: UserPublic | UserProfile


# ---- tasks ----


class TaskCreate(CamelModel):
    """Schema for creating a task"""

    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1)
    due_date: UtcDatetime
    priority: Priority
    status: TaskStatus
    assigned_to_id: str | None = None

    @field_validator("assigned_to_id")
    @classmethod
    def blank_means_unassigned(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value


class TaskUpdate(CamelModel):
    """
    Schema for updating a task - all fields optional.

    Only the fields the client actually sent are applied (see
    ``model_fields_set``). ``assignedToId`` may be sent as null or "" to
    unassign; the other fields may be omitted but never nulled.
    """

    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, min_length=1)
    due_date: UtcDatetime | None = None
    priority: Priority | None = None
    status: TaskStatus | None = None
    assigned_to_id: str | None = None

    @field_validator("title", "description", "due_date", "priority", "status", mode="before")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value

    @field_validator("assigned_to_id")
    @classmethod
    def blank_means_unassigned(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value


class TaskRead(CamelModel):
    id: str
    title: str
    description: str
    due_date: UtcDatetime
    priority: Priority
    status: TaskStatus
    creator_id: str
    assigned_to_id: str | None = None
    creator: UserSummary | None = None
    assigned_to: UserSummary | None = None
    created_at: UtcDatetime
    updated_at: UtcDatetime | None = None


class TaskEnvelope(CamelModel):
    task: TaskRead


class TaskList(CamelModel):
    tasks: list[TaskRead]


class DashboardStats(CamelModel):
    assigned_to_me: list[TaskRead]
    created_by_me: list[TaskRead]
    overdue: list[TaskRead]


# ---- notifications ----


class NotificationRead(CamelModel):
    id: str
    user_id: str
    message: str
    task_id: str | None = None
    read: bool
    created_at: UtcDatetime


class NotificationEnvelope(CamelModel):
    notification: NotificationRead


class NotificationList(CamelModel):
    notifications: list[NotificationRead]


class PurgeResult(CamelModel):
    deleted: int


class MessageResponse(CamelModel):
    message: str
