"""
eTuition Backend - Tutor Application Route Handlers
===================================================

Routes:
    POST   /apply-tuition                      public, de-duplicated
    GET    /applications/student/{email}       student, self-only
    GET    /my-applications/tutor/{email}      tutor, self-only
    PATCH  /applications/{application_id}      tutor, own and not Approved
    DELETE /applications/{application_id}      tutor, own and not Approved
    GET    /tuitions/ongoing/{email}           tutor, self-only
    GET    /tutor/stats/{email}                tutor, self-only
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from etuition.auth import Principal, RoleGate, require_tutor
from etuition.database import get_db_session
from etuition.models.enums import Role
from etuition.schemas.application import (
    ApplicationCreate,
    ApplicationResponse,
    ApplicationUpdate,
    ApplicationWithTuition,
    ApplyResult,
    TutorStats,
)
from etuition.schemas.common import DeleteResult, ErrorResponse, UpdateResult
from etuition.services.application_service import application_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Applications"])


@router.post(
    "/apply-tuition",
    response_model=ApplyResult,
    responses={404: {"description": "Tuition not found", "model": ErrorResponse}},
    summary="Apply to a tuition post",
    description="A repeat application by the same tutor answers success=false with HTTP 200.",
)
async def apply_tuition(
    payload: ApplicationCreate,
    db: AsyncSession = Depends(get_db_session),
) -> ApplyResult:
    return await application_service.apply(db, payload)


@router.get(
    "/applications/student/{email}",
    response_model=List[ApplicationWithTuition],
    summary="Applicants to the student's approved posts",
)
async def student_applications(
    email: str,
    principal: Principal = Depends(RoleGate(Role.STUDENT, owner_param="email", resource="applications")),
    db: AsyncSession = Depends(get_db_session),
) -> List[ApplicationWithTuition]:
    return await application_service.for_student(db, email)


@router.get(
    "/my-applications/tutor/{email}",
    response_model=List[ApplicationResponse],
    summary="The tutor's applications, newest first",
)
async def tutor_applications(
    email: str,
    principal: Principal = Depends(RoleGate(Role.TUTOR, owner_param="email", resource="applications")),
    db: AsyncSession = Depends(get_db_session),
) -> List[ApplicationResponse]:
    return await application_service.for_tutor(db, email)


@router.patch("/applications/{application_id}", response_model=UpdateResult, summary="Edit own application")
async def update_application(
    application_id: UUID,
    payload: ApplicationUpdate,
    principal: Principal = Depends(require_tutor),
    db: AsyncSession = Depends(get_db_session),
) -> UpdateResult:
    """Approved applications are locked; the update then matches zero rows."""
    return await application_service.update_own(db, principal, application_id, payload)


@router.delete("/applications/{application_id}", response_model=DeleteResult, summary="Withdraw own application")
async def delete_application(
    application_id: UUID,
    principal: Principal = Depends(require_tutor),
    db: AsyncSession = Depends(get_db_session),
) -> DeleteResult:
    return await application_service.delete_own(db, principal, application_id)


@router.get(
    "/tuitions/ongoing/{email}",
    response_model=List[ApplicationResponse],
    summary="The tutor's approved (paid) applications",
)
async def ongoing_tuitions(
    email: str,
    principal: Principal = Depends(RoleGate(Role.TUTOR, owner_param="email", resource="ongoing tuitions")),
    db: AsyncSession = Depends(get_db_session),
) -> List[ApplicationResponse]:
    return await application_service.ongoing(db, email)


@router.get("/tutor/stats/{email}", response_model=TutorStats, summary="Tutor dashboard counts")
async def tutor_stats(
    email: str,
    principal: Principal = Depends(RoleGate(Role.TUTOR, owner_param="email", resource="stats")),
    db: AsyncSession = Depends(get_db_session),
) -> TutorStats:
    return await application_service.tutor_stats(db, email)
