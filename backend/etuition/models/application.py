"""
eTuition Backend - Tutor Application SQLAlchemy Model
=====================================================

What:  ORM model for `applied_tuitions`: a tutor's bid on a tuition post.

Lifecycle:
    1. Created through POST /apply-tuition (status = 'Pending')
    2. Edited or withdrawn by the tutor while still Pending
    3. Set to 'Approved' (with the Stripe payment intent id) only by payment
       reconciliation; from then on the tutor can no longer touch it

Constraints:
    uq_applied_tuitions_tuition_tutor: one application per (post, tutor). The
    service checks first for a friendly answer; the constraint settles races.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from etuition.database import Base
from etuition.models.enums import ApplicationStatus, enum_column_type


class Application(Base):
    """A tutor's application to one tuition post."""

    __tablename__ = "applied_tuitions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    tuition_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tuitions.id", ondelete="CASCADE"),
        nullable=False,
    )
    tutor_email: Mapped[str] = mapped_column(String(254), nullable=False)
    tutor_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    qualifications: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    experience: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    expected_salary: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[ApplicationStatus] = mapped_column(
        enum_column_type(ApplicationStatus),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )
    # Stripe payment intent id, set when the application is paid for
    transaction_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("tuition_id", "tutor_email", name="uq_applied_tuitions_tuition_tutor"),
        Index("idx_applied_tuitions_tutor_email", "tutor_email", "applied_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Application(id={self.id}, tutor='{self.tutor_email}', "
            f"status='{self.status.value}')>"
        )
