"""
eTuition Backend - Tutor Application Schemas
============================================

What:  Request/response models for applying to a post, the tutor's own
       application list and the student's view of applicants.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from etuition.models.enums import ApplicationStatus
from etuition.schemas.common import CamelModel
from etuition.schemas.tuition import TuitionResponse
from etuition.schemas.user import normalize_email


class ApplicationCreate(CamelModel):
    """Body of POST /apply-tuition."""

    tuition_id: uuid.UUID
    tutor_email: EmailStr
    tutor_name: Optional[str] = Field(default=None, max_length=120)
    qualifications: Optional[str] = None
    experience: Optional[str] = None
    expected_salary: int = Field(gt=0)

    @field_validator("tutor_email", mode="after")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        return normalize_email(v)


class ApplicationUpdate(CamelModel):
    """Body of PATCH /applications/{id}. The tutor edits their own bid only."""

    tutor_name: Optional[str] = Field(default=None, max_length=120)
    qualifications: Optional[str] = None
    experience: Optional[str] = None
    expected_salary: Optional[int] = Field(default=None, gt=0)


class ApplyResult(CamelModel):
    """
    Response of POST /apply-tuition.

    A duplicate apply is not an HTTP error: success is false and no id is
    returned.
    """
    success: bool
    message: str
    inserted_id: Optional[uuid.UUID] = None


class ApplicationResponse(CamelModel):
    id: uuid.UUID
    tuition_id: uuid.UUID
    tutor_email: str
    tutor_name: Optional[str] = None
    qualifications: Optional[str] = None
    experience: Optional[str] = None
    expected_salary: int
    status: ApplicationStatus
    transaction_id: Optional[str] = None
    applied_at: datetime


class ApplicationWithTuition(ApplicationResponse):
    """An application joined with the post it targets (student dashboard)."""

    tuition_info: TuitionResponse


class TutorStats(CamelModel):
    total_applications: int
    approved_applications: int
    pending_applications: int
    # Applications are never rejected; the key stays for dashboard clients
    rejected_applications: int = 0
