"""
eTuition Backend - Tuition Post Route Handlers
==============================================

Routes:
    GET    /latest-tuitions          public
    GET    /tuition/{tuition_id}     public (404 if absent)
    GET    /all-tuitions             public, filtered/sorted/paginated
    GET    /tuition-filters          public
    POST   /add-tuition              student
    GET    /my-tuitions?email=       student, self-only
    PATCH  /tuition/{tuition_id}     student, owner-scoped
    DELETE /tuition/{tuition_id}     student, owner-scoped
    GET    /student/stats/{email}    student, self-only
    GET    /tuitions                 admin
    PATCH  /tuitions/{tuition_id}    admin, status moderation
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from etuition.auth import Principal, RoleGate, require_admin, require_student
from etuition.database import get_db_session
from etuition.models.enums import Role
from etuition.schemas.common import DeleteResult, ErrorResponse, InsertResult, UpdateResult
from etuition.schemas.tuition import (
    StudentStats,
    TuitionCreate,
    TuitionFilters,
    TuitionPage,
    TuitionResponse,
    TuitionStatusUpdate,
    TuitionUpdate,
)
from etuition.services.tuition_service import DEFAULT_SORT, tuition_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tuitions"])


# ── Public ────────────────────────────────────────────────────────────────

@router.get("/latest-tuitions", response_model=List[TuitionResponse], summary="Four newest approved posts")
async def latest_tuitions(db: AsyncSession = Depends(get_db_session)) -> List[TuitionResponse]:
    return await tuition_service.latest(db)


@router.get(
    "/tuition/{tuition_id}",
    response_model=TuitionResponse,
    responses={404: {"description": "Tuition not found", "model": ErrorResponse}},
    summary="Single tuition post",
)
async def get_tuition(
    tuition_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> TuitionResponse:
    return await tuition_service.get(db, tuition_id)


@router.get(
    "/all-tuitions",
    response_model=TuitionPage,
    summary="Browse approved tuition posts",
    description=(
        "Case-insensitive substring filters on class, subject and location are "
        "combined with AND; `search` matches any of the three. Sort keys: "
        "budget-asc, budget-desc, date-asc, date-desc."
    ),
)
async def all_tuitions(
    search: str = Query(default="", description="Free text matched against subject, location and class"),
    tuition_class: str = Query(default="", alias="class"),
    subject: str = Query(default=""),
    location: str = Query(default=""),
    sort: str = Query(default=DEFAULT_SORT),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=8, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
) -> TuitionPage:
    """
    Example:
        GET /all-tuitions?class=10&sort=budget-asc&page=1&limit=8
        → {"total": 3, "page": 1, "limit": 8, "data": [...cheapest first...]}
    """
    return await tuition_service.list_approved(
        db,
        search=search,
        tuition_class=tuition_class,
        subject=subject,
        location=location,
        sort=sort,
        page=page,
        limit=limit,
    )


@router.get("/tuition-filters", response_model=TuitionFilters, summary="Dropdown values for browsing")
async def tuition_filters(db: AsyncSession = Depends(get_db_session)) -> TuitionFilters:
    return await tuition_service.filters(db)


# ── Student ───────────────────────────────────────────────────────────────

@router.post(
    "/add-tuition",
    response_model=InsertResult,
    responses={403: {"description": "Not a student, or posting for someone else", "model": ErrorResponse}},
    summary="Post a tuition request",
)
async def add_tuition(
    payload: TuitionCreate,
    principal: Principal = Depends(require_student),
    db: AsyncSession = Depends(get_db_session),
) -> InsertResult:
    """New posts are owned by the token email and start Pending until an admin approves."""
    return await tuition_service.add(db, principal, payload)


@router.get("/my-tuitions", response_model=List[TuitionResponse], summary="The student's approved posts")
async def my_tuitions(
    email: str = Query(default=""),
    principal: Principal = Depends(RoleGate(Role.STUDENT, owner_param="email", resource="tuitions")),
    db: AsyncSession = Depends(get_db_session),
) -> List[TuitionResponse]:
    return await tuition_service.my_tuitions(db, email)


@router.patch("/tuition/{tuition_id}", response_model=UpdateResult, summary="Edit own tuition post")
async def update_tuition(
    tuition_id: UUID,
    payload: TuitionUpdate,
    principal: Principal = Depends(require_student),
    db: AsyncSession = Depends(get_db_session),
) -> UpdateResult:
    return await tuition_service.update_own(db, principal, tuition_id, payload)


@router.delete("/tuition/{tuition_id}", response_model=DeleteResult, summary="Delete own tuition post")
async def delete_tuition(
    tuition_id: UUID,
    principal: Principal = Depends(require_student),
    db: AsyncSession = Depends(get_db_session),
) -> DeleteResult:
    return await tuition_service.delete_own(db, principal, tuition_id)


@router.get("/student/stats/{email}", response_model=StudentStats, summary="Student dashboard counts")
async def student_stats(
    email: str,
    principal: Principal = Depends(RoleGate(Role.STUDENT, owner_param="email", resource="stats")),
    db: AsyncSession = Depends(get_db_session),
) -> StudentStats:
    return await tuition_service.student_stats(db, email)


# ── Admin ─────────────────────────────────────────────────────────────────

@router.get("/tuitions", response_model=List[TuitionResponse], summary="Every post, newest first (admin)")
async def list_all_tuitions(
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> List[TuitionResponse]:
    return await tuition_service.list_all(db)


@router.patch(
    "/tuitions/{tuition_id}",
    response_model=UpdateResult,
    responses={400: {"description": "Invalid status value", "model": ErrorResponse}},
    summary="Approve or reject a post (admin)",
)
async def moderate_tuition(
    tuition_id: UUID,
    payload: TuitionStatusUpdate,
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> UpdateResult:
    return await tuition_service.set_status(db, tuition_id, payload.status)
