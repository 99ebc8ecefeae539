"""
eTuition Backend - Tuition Post SQLAlchemy Model
================================================

What:  ORM model for the `tuitions` table: a student's request for a tutor.

Lifecycle:
    1. Created by a Student through POST /add-tuition (status = 'Pending')
    2. Moderated by an Admin: Pending → Approved | Rejected (and back)
    3. Edited or deleted only by the owning student; edits never touch status

Query Patterns:
    - Public listing: WHERE status = 'Approved' ORDER BY created_at | budget
    - Student dashboard: WHERE student_email = :email [AND status = ...]
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from etuition.database import Base
from etuition.models.enums import TuitionStatus, enum_column_type


class Tuition(Base):
    """A tuition post owned by one student (by email)."""

    __tablename__ = "tuitions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    student_email: Mapped[str] = mapped_column(String(254), nullable=False)
    student_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    subject: Mapped[str] = mapped_column(String(120), nullable=False)
    # `class` is a Python keyword; the column keeps the public name
    tuition_class: Mapped[str] = mapped_column("class", String(60), nullable=False)
    location: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    budget: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    days_per_week: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[TuitionStatus] = mapped_column(
        enum_column_type(TuitionStatus),
        nullable=False,
        default=TuitionStatus.PENDING,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_tuitions_status_created_at", "status", "created_at"),
        Index("idx_tuitions_student_email", "student_email"),
    )

    def __repr__(self) -> str:
        return f"<Tuition(id={self.id}, subject='{self.subject}', status='{self.status.value}')>"
