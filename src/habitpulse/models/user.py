"""User model owning habits."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import ClassVar, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel


class User(SQLModel, table=True):
    """Application user; admin accounts never receive scheduled reminders."""

    __tablename__: ClassVar[str] = "user"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(nullable=False, unique=True, index=True, max_length=255)
    name: str = Field(default="", max_length=100)
    is_admin: bool = Field(default=False, nullable=False, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    habits = Relationship(
        back_populates="user",
        sa_relationship=relationship(
            "Habit", back_populates="user", cascade="all, delete-orphan"
        ),
    )
