"""
eTuition Backend - Tuition Post Schemas
=======================================

What:  Request/response models for tuition posts, the public listing and the
       student/admin dashboards.
"""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import EmailStr, Field, field_validator

from etuition.models.enums import TuitionStatus
from etuition.schemas.common import CamelModel
from etuition.schemas.user import normalize_email


class TuitionCreate(CamelModel):
    """
    Body of POST /add-tuition.

    studentEmail may be omitted; the token email is used. If present it must
    match the token (checked by the service).
    """
    student_email: Optional[EmailStr] = None
    student_name: Optional[str] = Field(default=None, max_length=120)
    subject: str = Field(min_length=1, max_length=120)
    tuition_class: str = Field(alias="class", min_length=1, max_length=60)
    location: str = Field(default="", max_length=200)
    budget: int = Field(ge=0)
    days_per_week: Optional[int] = Field(default=None, ge=1, le=7)
    description: Optional[str] = None

    @field_validator("student_email", mode="after")
    @classmethod
    def _normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return normalize_email(v) if v else v

    @field_validator("tuition_class", mode="before")
    @classmethod
    def _class_as_text(cls, v):
        # Clients send class either as "10" or 10
        return str(v) if isinstance(v, int) else v


class TuitionUpdate(CamelModel):
    """
    Body of PATCH /tuition/{id}. Owner edits only; status and ownership are
    not part of this model, so they cannot be changed through it.
    """
    student_name: Optional[str] = Field(default=None, max_length=120)
    subject: Optional[str] = Field(default=None, min_length=1, max_length=120)
    tuition_class: Optional[str] = Field(default=None, alias="class", min_length=1, max_length=60)
    location: Optional[str] = Field(default=None, max_length=200)
    budget: Optional[int] = Field(default=None, ge=0)
    days_per_week: Optional[int] = Field(default=None, ge=1, le=7)
    description: Optional[str] = None

    @field_validator("tuition_class", mode="before")
    @classmethod
    def _class_as_text(cls, v):
        return str(v) if isinstance(v, int) else v


class TuitionStatusUpdate(CamelModel):
    """
    Body of PATCH /tuitions/{id} (admin).

    Left untyped so a missing, unknown or non-string value reaches the
    service and is answered with 400 rather than FastAPI's 422.
    """
    status: Optional[Any] = None


class TuitionResponse(CamelModel):
    id: uuid.UUID
    student_email: str
    student_name: Optional[str] = None
    subject: str
    tuition_class: str = Field(alias="class")
    location: str
    budget: int
    days_per_week: Optional[int] = None
    description: Optional[str] = None
    status: TuitionStatus
    created_at: datetime


class TuitionPage(CamelModel):
    """Response of GET /all-tuitions."""

    total: int
    page: int
    limit: int
    data: List[TuitionResponse]


class TuitionFilters(CamelModel):
    """Distinct dropdown values across Approved posts."""

    classes: List[str]
    subjects: List[str]
    locations: List[str]


class StudentStats(CamelModel):
    total_posts: int
    approved: int
    pending: int
    rejected: int
