"""
eTuition Backend - User SQLAlchemy Model
========================================

What:  ORM model for the `users` table (students, tutors and admins).
How:   Rows are created by POST /users at registration; admins later edit
       role/status through the user management routes.

Table Design:
    - email is the login identity and the key every token carries, so it is
      unique and stored lower-cased.
    - role/status are stored as their display values ("Student", "Active").
    - created_at index: tutor listings and the admin user table sort newest first.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from etuition.database import Base
from etuition.models.enums import Role, UserStatus, enum_column_type


class User(Base):
    """A registered marketplace account."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    email: Mapped[str] = mapped_column(
        String(254),
        nullable=False,
        unique=True,
        comment="Login identity, lower-cased",
    )
    name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    photo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    role: Mapped[Role] = mapped_column(
        enum_column_type(Role),
        nullable=False,
        default=Role.STUDENT,
    )
    status: Mapped[UserStatus] = mapped_column(
        enum_column_type(UserStatus),
        nullable=False,
        default=UserStatus.ACTIVE,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_users_role_created_at", "role", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<User(email='{self.email}', role='{self.role.value}')>"
