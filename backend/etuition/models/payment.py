"""
eTuition Backend - Payment SQLAlchemy Model
===========================================

What:  ORM model for `payments`: one row per successfully paid Stripe
       checkout session.

Table Design:
    - session_id is unique: replaying the success callback for the same
      checkout session must never produce a second row.
    - application_id / tuition_id are plain references (no foreign keys) so the
      financial record survives a post or application being deleted later.
    - subject/class/tutor name are copied at payment time for the same reason.
    - amount is in major currency units (Stripe's amount_total / 100).
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Index, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from etuition.database import Base


class Payment(Base):
    """A reconciled checkout session."""

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    session_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    application_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    tuition_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    student_email: Mapped[Optional[str]] = mapped_column(String(254), nullable=True)
    tutor_email: Mapped[str] = mapped_column(String(254), nullable=False)
    tutor_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    subject: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    tuition_class: Mapped[Optional[str]] = mapped_column("class", String(60), nullable=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_status: Mapped[str] = mapped_column(String(30), nullable=False)

    paid_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_payments_student_email", "student_email", "paid_at"),
        Index("idx_payments_tutor_email", "tutor_email"),
    )

    def __repr__(self) -> str:
        return f"<Payment(session_id='{self.session_id}', amount={self.amount} {self.currency})>"
