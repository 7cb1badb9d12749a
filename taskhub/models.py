import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, String, Text
from sqlmodel import Column, Field, Relationship, SQLModel


def get_utc_now():
    """Helper function to get current UTC time with timezone"""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class TaskStatus(str, Enum):
    """
    Task workflow state.

    The member value is the public form ("In Progress"). The persisted form
    replaces spaces with underscores ("In_Progress") and is only ever produced
    by the column type below, so services and schemas never see it.
    """

    TO_DO = "To Do"
    IN_PROGRESS = "In Progress"
    REVIEW = "Review"
    COMPLETED = "Completed"

    @property
    def storage(self) -> str:
        return self.value.replace(" ", "_")

    @classmethod
    def from_storage(cls, raw: str) -> "TaskStatus":
        return cls(raw.replace("_", " "))


def _status_storage_values(enum_cls) -> list[str]:
    return [member.storage for member in enum_cls]


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True)
    email: str = Field(
        sa_column=Column(String(255), unique=True, index=True, nullable=False)
    )
    password_hash: str = Field(sa_column=Column(String(255), nullable=False))
    name: str = Field(sa_column=Column(String(100), nullable=False))
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )


class Task(SQLModel, table=True):
    __tablename__ = "tasks"

    id: str = Field(default_factory=new_id, primary_key=True)
    title: str = Field(sa_column=Column(String(100), nullable=False, index=True))
    description: str = Field(sa_column=Column(Text, nullable=False))
    due_date: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    priority: Priority = Field(
        sa_column=Column(
            SAEnum(Priority, name="task_priority", values_callable=_enum_values),
            nullable=False,
        )
    )
    status: TaskStatus = Field(
        default=TaskStatus.TO_DO,
        sa_column=Column(
            SAEnum(
                TaskStatus,
                name="task_status",
                values_callable=_status_storage_values,
            ),
            nullable=False,
            index=True,
        ),
    )
    creator_id: str = Field(
        sa_column=Column(String, ForeignKey("users.id"), nullable=False, index=True)
    )
    assigned_to_id: str | None = Field(
        default=None,
        sa_column=Column(String, ForeignKey("users.id"), nullable=True, index=True),
    )
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    creator: Optional["User"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "[Task.creator_id]", "lazy": "selectin"}
    )
    assigned_to: Optional["User"] = Relationship(
        sa_relationship_kwargs={
            "foreign_keys": "[Task.assigned_to_id]",
            "lazy": "selectin",
        }
    )


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(
        sa_column=Column(
            String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    message: str = Field(sa_column=Column(Text, nullable=False))
    task_id: str | None = Field(
        default=None,
        sa_column=Column(
            String, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True
        ),
    )
    read: bool = Field(default=False)
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
