"""
eTuition Backend - Payment Schemas
==================================

What:  Models for starting a Stripe checkout, the reconciled payment record
       and the payment reports.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import AliasChoices, EmailStr, Field, field_validator

from etuition.schemas.common import CamelModel, GroupCount
from etuition.schemas.user import normalize_email


class CheckoutRequest(CamelModel):
    """
    Body of POST /payment-checkout-session, sent by the student from the
    applied-tutors page.

    expectedSalary is in major currency units; the gateway charges
    expectedSalary * 100 minor units.
    """
    application_id: uuid.UUID
    tuition_id: uuid.UUID
    expected_salary: int = Field(gt=0)
    tutor_email: EmailStr
    tutor_name: Optional[str] = None
    student_email: Optional[EmailStr] = None
    subject: str = ""
    # Older clients send the post's "class" key unchanged
    tuition_class: str = Field(default="", validation_alias=AliasChoices("tuitionClass", "class"))

    @field_validator("tutor_email", "student_email", mode="after")
    @classmethod
    def _normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return normalize_email(v) if v else v

    @field_validator("tuition_class", mode="before")
    @classmethod
    def _class_as_text(cls, v):
        return str(v) if isinstance(v, int) else v


class CheckoutResponse(CamelModel):
    url: str


class PaymentResponse(CamelModel):
    id: uuid.UUID
    session_id: str
    application_id: uuid.UUID
    tuition_id: uuid.UUID
    student_email: Optional[str] = None
    tutor_email: str
    tutor_name: Optional[str] = None
    subject: Optional[str] = None
    tuition_class: Optional[str] = Field(default=None, alias="class")
    amount: float
    currency: str
    transaction_id: Optional[str] = None
    payment_status: str
    paid_at: datetime

    @field_validator("paid_at", mode="after")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        # SQLite hands timestamps back naive; they were written in UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class PaymentNotCompleted(CamelModel):
    """Reconciliation answer when Stripe does not report the session as paid."""

    success: bool = False


class AdminReport(CamelModel):
    total_earnings: float
    transactions: List[PaymentResponse]


class AdminStats(CamelModel):
    user_stats: List[GroupCount]
    role_stats: List[GroupCount]
    tuition_stats: List[GroupCount]
    total_tuitions: int
