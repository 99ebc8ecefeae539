"""Closed value sets shared by models, schemas and the role gate."""

import enum

from sqlalchemy import Enum as SAEnum


class Role(str, enum.Enum):
    """Marketplace roles. Every token carries exactly one."""

    STUDENT = "Student"
    TUTOR = "Tutor"
    ADMIN = "Admin"


class UserStatus(str, enum.Enum):
    ACTIVE = "Active"
    BLOCKED = "Blocked"


class TuitionStatus(str, enum.Enum):
    """Moderation state of a tuition post. Only admins move it."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ApplicationStatus(str, enum.Enum):
    """A tutor application becomes Approved only through a verified payment."""

    PENDING = "Pending"
    APPROVED = "Approved"


def enum_column_type(enum_cls: type[enum.Enum]) -> SAEnum:
    """
    Column type storing the enum's *value* ("Student") as a plain VARCHAR.

    native_enum=False keeps the column portable (no CREATE TYPE on PostgreSQL,
    works on SQLite in tests); the CHECK constraint still rejects stray values.
    """
    return SAEnum(
        enum_cls,
        name=enum_cls.__name__.lower(),
        native_enum=False,
        create_constraint=True,
        length=20,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
