"""
eTuition Backend - Tuition Post Service
=======================================

What:  Everything that reads or writes the `tuitions` table: the public
       listing, student post management and admin moderation.
How:   Stateless service; each call receives the request's AsyncSession.
Who:   Called by routes/tuitions.py.

Visibility rules:
    Public and "my tuitions" reads only return Approved posts. Pending and
    Rejected posts are visible to the admin listing and counted in the
    student's stats.

Ownership:
    Student edits and deletes filter on (id, student_email = token email) in
    the same statement, so a foreign or missing post simply matches zero rows.
    Status is never part of a student edit.
"""

import logging
from typing import Any, List
from uuid import UUID

from sqlalchemy import asc, delete, desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from etuition.auth.tokens import Principal
from etuition.exceptions import AuthorizationError, NotFoundError, ValidationError
from etuition.models.enums import TuitionStatus
from etuition.models.tuition import Tuition
from etuition.schemas.common import DeleteResult, InsertResult, UpdateResult
from etuition.schemas.tuition import (
    StudentStats,
    TuitionCreate,
    TuitionFilters,
    TuitionPage,
    TuitionResponse,
    TuitionUpdate,
)

logger = logging.getLogger(__name__)

LATEST_TUITIONS_LIMIT = 4
DEFAULT_SORT = "date-desc"

# Public sort keys → ORDER BY clause. id breaks ties so pages never overlap.
SORT_MAP = {
    "budget-asc": (asc(Tuition.budget), asc(Tuition.id)),
    "budget-desc": (desc(Tuition.budget), asc(Tuition.id)),
    "date-asc": (asc(Tuition.created_at), asc(Tuition.id)),
    "date-desc": (desc(Tuition.created_at), asc(Tuition.id)),
}


def _contains(column, text: str):
    """Case-insensitive substring match with LIKE wildcards escaped."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return column.ilike(f"%{escaped}%", escape="\\")


class TuitionService:
    """
    Business logic for tuition posts.

    Public:   latest(), get(), list_approved(), filters()
    Student:  add(), my_tuitions(), update_own(), delete_own(), student_stats()
    Admin:    list_all(), set_status()
    """

    # ── Public ────────────────────────────────────────────────────────────

    async def latest(self, db: AsyncSession) -> List[TuitionResponse]:
        result = await db.execute(
            select(Tuition)
            .where(Tuition.status == TuitionStatus.APPROVED)
            .order_by(Tuition.created_at.desc())
            .limit(LATEST_TUITIONS_LIMIT)
        )
        return [TuitionResponse.model_validate(t) for t in result.scalars().all()]

    async def get(self, db: AsyncSession, tuition_id: UUID) -> TuitionResponse:
        """
        Raises:
            NotFoundError: no post with this id.
        """
        tuition = await db.get(Tuition, tuition_id)
        if tuition is None:
            raise NotFoundError(resource="tuition", resource_id=str(tuition_id))
        return TuitionResponse.model_validate(tuition)

    async def list_approved(
        self,
        db: AsyncSession,
        search: str = "",
        tuition_class: str = "",
        subject: str = "",
        location: str = "",
        sort: str = DEFAULT_SORT,
        page: int = 1,
        limit: int = 8,
    ) -> TuitionPage:
        """
        Filtered, sorted, offset-paginated listing of Approved posts.

        Query shape:
            WHERE status = 'Approved'
              AND class ILIKE %class% AND subject ILIKE %subject%
              AND location ILIKE %location%            (each only if given)
              AND (subject ILIKE %q% OR location ILIKE %q% OR class ILIKE %q%)
            ORDER BY <sort> OFFSET (page - 1) * limit LIMIT limit

        `total` counts every matching row, not just the page.
        An unknown sort key falls back to newest first.
        """
        conditions = [Tuition.status == TuitionStatus.APPROVED]
        if tuition_class:
            conditions.append(_contains(Tuition.tuition_class, tuition_class))
        if subject:
            conditions.append(_contains(Tuition.subject, subject))
        if location:
            conditions.append(_contains(Tuition.location, location))
        if search:
            conditions.append(
                or_(
                    _contains(Tuition.subject, search),
                    _contains(Tuition.location, search),
                    _contains(Tuition.tuition_class, search),
                )
            )

        total_result = await db.execute(select(func.count(Tuition.id)).where(*conditions))
        total = total_result.scalar() or 0

        order_by = SORT_MAP.get(sort, SORT_MAP[DEFAULT_SORT])
        result = await db.execute(
            select(Tuition)
            .where(*conditions)
            .order_by(*order_by)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        data = [TuitionResponse.model_validate(t) for t in result.scalars().all()]

        return TuitionPage(total=total, page=page, limit=limit, data=data)

    async def filters(self, db: AsyncSession) -> TuitionFilters:
        """Distinct class/subject/location values of Approved posts, for dropdowns."""
        approved = Tuition.status == TuitionStatus.APPROVED

        async def distinct(column) -> List[str]:
            result = await db.execute(
                select(column).where(approved).distinct().order_by(column)
            )
            return [value for value in result.scalars().all() if value]

        return TuitionFilters(
            classes=await distinct(Tuition.tuition_class),
            subjects=await distinct(Tuition.subject),
            locations=await distinct(Tuition.location),
        )

    # ── Student ───────────────────────────────────────────────────────────

    async def add(self, db: AsyncSession, principal: Principal, payload: TuitionCreate) -> InsertResult:
        """
        Create a post owned by the caller. Status always starts at Pending.

        Raises:
            AuthorizationError: the body names a different student.
        """
        if payload.student_email and not principal.owns(payload.student_email):
            raise AuthorizationError("Forbidden: You can only post tuitions for yourself")

        tuition = Tuition(
            student_email=principal.email,
            student_name=payload.student_name,
            subject=payload.subject,
            tuition_class=payload.tuition_class,
            location=payload.location,
            budget=payload.budget,
            days_per_week=payload.days_per_week,
            description=payload.description,
            status=TuitionStatus.PENDING,
        )
        db.add(tuition)
        await db.flush()

        logger.info("Tuition %s posted by %s (Pending)", tuition.id, principal.email)
        return InsertResult(inserted_id=tuition.id)

    async def my_tuitions(self, db: AsyncSession, email: str) -> List[TuitionResponse]:
        result = await db.execute(
            select(Tuition)
            .where(
                Tuition.student_email == email.strip().lower(),
                Tuition.status == TuitionStatus.APPROVED,
            )
            .order_by(Tuition.created_at.desc())
        )
        return [TuitionResponse.model_validate(t) for t in result.scalars().all()]

    async def update_own(
        self,
        db: AsyncSession,
        principal: Principal,
        tuition_id: UUID,
        payload: TuitionUpdate,
    ) -> UpdateResult:
        """
        Owner edit. A post that is missing or owned by someone else matches
        zero rows.

        Raises:
            ValidationError: the body carries no editable field.
        """
        values = payload.model_dump(exclude_unset=True)
        if not values:
            raise ValidationError("No fields to update")

        result = await db.execute(
            update(Tuition)
            .where(Tuition.id == tuition_id, Tuition.student_email == principal.email)
            .values({getattr(Tuition, key): value for key, value in values.items()})
            .execution_options(synchronize_session=False)
        )
        return UpdateResult(matched_count=result.rowcount, modified_count=result.rowcount)

    async def delete_own(self, db: AsyncSession, principal: Principal, tuition_id: UUID) -> DeleteResult:
        result = await db.execute(
            delete(Tuition)
            .where(Tuition.id == tuition_id, Tuition.student_email == principal.email)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info("Tuition %s deleted by %s", tuition_id, principal.email)
        return DeleteResult(deleted_count=result.rowcount)

    async def student_stats(self, db: AsyncSession, email: str) -> StudentStats:
        email = email.strip().lower()
        result = await db.execute(
            select(Tuition.status, func.count(Tuition.id))
            .where(Tuition.student_email == email)
            .group_by(Tuition.status)
        )
        counts = {status: count for status, count in result.all()}
        return StudentStats(
            total_posts=sum(counts.values()),
            approved=counts.get(TuitionStatus.APPROVED, 0),
            pending=counts.get(TuitionStatus.PENDING, 0),
            rejected=counts.get(TuitionStatus.REJECTED, 0),
        )

    # ── Admin ─────────────────────────────────────────────────────────────

    async def list_all(self, db: AsyncSession) -> List[TuitionResponse]:
        result = await db.execute(select(Tuition).order_by(Tuition.created_at.desc()))
        return [TuitionResponse.model_validate(t) for t in result.scalars().all()]

    async def set_status(self, db: AsyncSession, tuition_id: UUID, status: Any) -> UpdateResult:
        """
        Moderate a post.

        Raises:
            ValidationError: status is not Pending, Approved or Rejected.
        """
        try:
            new_status = TuitionStatus(status)
        except (ValueError, TypeError):
            raise ValidationError("Invalid status value", field="status")

        result = await db.execute(
            update(Tuition)
            .where(Tuition.id == tuition_id)
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info("Tuition %s moderated to %s", tuition_id, new_status.value)
        return UpdateResult(matched_count=result.rowcount, modified_count=result.rowcount)


# ── Singleton Instance ────────────────────────────────────────────────────
tuition_service = TuitionService()
