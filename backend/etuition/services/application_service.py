"""
eTuition Backend - Tutor Application Service
============================================

What:  Applying to tuition posts, the tutor's own application management and
       the student's view of who applied to their posts.
Who:   Called by routes/applications.py.

De-duplication:
    At most one application per (tuition, tutor). A repeat apply is answered
    with {success: false} and HTTP 200, never a second row. The pre-check
    handles the ordinary case; the uq_applied_tuitions_tuition_tutor
    constraint turns a concurrent duplicate into the same answer.

Approved applications:
    Only payment reconciliation approves an application. After that the
    tutor's edit/delete statements filter it out (status != 'Approved'), so
    they match zero rows.
"""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from etuition.auth.tokens import Principal
from etuition.exceptions import NotFoundError, ValidationError
from etuition.models.application import Application
from etuition.models.enums import ApplicationStatus, TuitionStatus
from etuition.models.tuition import Tuition
from etuition.schemas.application import (
    ApplicationCreate,
    ApplicationResponse,
    ApplicationUpdate,
    ApplicationWithTuition,
    ApplyResult,
    TutorStats,
)
from etuition.schemas.common import DeleteResult, UpdateResult
from etuition.schemas.tuition import TuitionResponse

logger = logging.getLogger(__name__)

ALREADY_APPLIED = "You have already applied for this tuition."
APPLIED = "Application submitted successfully!"


class ApplicationService:
    """
    Business logic for tutor applications.

    Public:   apply()
    Student:  for_student()
    Tutor:    for_tutor(), update_own(), delete_own(), ongoing(), tutor_stats()
    """

    async def apply(self, db: AsyncSession, payload: ApplicationCreate) -> ApplyResult:
        """
        Record a tutor's application to a post.

        Returns:
            ApplyResult with success=True and the new id, or success=False
            when this tutor already applied to this post.

        Raises:
            NotFoundError: the tuition post does not exist.
        """
        tuition = await db.get(Tuition, payload.tuition_id)
        if tuition is None:
            raise NotFoundError(resource="tuition", resource_id=str(payload.tuition_id))

        if await self._has_applied(db, payload.tuition_id, payload.tutor_email):
            logger.info("Duplicate application by %s for %s", payload.tutor_email, payload.tuition_id)
            return ApplyResult(success=False, message=ALREADY_APPLIED)

        application = Application(
            tuition_id=payload.tuition_id,
            tutor_email=payload.tutor_email,
            tutor_name=payload.tutor_name,
            qualifications=payload.qualifications,
            experience=payload.experience,
            expected_salary=payload.expected_salary,
            status=ApplicationStatus.PENDING,
        )
        try:
            async with db.begin_nested():
                db.add(application)
        except IntegrityError:
            # A concurrent request inserted the same (tuition, tutor) pair first
            logger.info("Duplicate application by %s for %s (race)", payload.tutor_email, payload.tuition_id)
            return ApplyResult(success=False, message=ALREADY_APPLIED)

        logger.info("Application %s by %s for %s", application.id, payload.tutor_email, payload.tuition_id)
        return ApplyResult(success=True, message=APPLIED, inserted_id=application.id)

    async def for_student(self, db: AsyncSession, email: str) -> List[ApplicationWithTuition]:
        """Applications to the student's Approved posts, each with its post attached."""
        result = await db.execute(
            select(Application, Tuition)
            .join(Tuition, Application.tuition_id == Tuition.id)
            .where(
                Tuition.student_email == email.strip().lower(),
                Tuition.status == TuitionStatus.APPROVED,
            )
            .order_by(Application.applied_at.desc())
        )
        return [
            ApplicationWithTuition(
                **ApplicationResponse.model_validate(application).model_dump(),
                tuition_info=TuitionResponse.model_validate(tuition),
            )
            for application, tuition in result.all()
        ]

    async def for_tutor(self, db: AsyncSession, email: str) -> List[ApplicationResponse]:
        result = await db.execute(
            select(Application)
            .where(Application.tutor_email == email.strip().lower())
            .order_by(Application.applied_at.desc())
        )
        return [ApplicationResponse.model_validate(a) for a in result.scalars().all()]

    async def ongoing(self, db: AsyncSession, email: str) -> List[ApplicationResponse]:
        result = await db.execute(
            select(Application)
            .where(
                Application.tutor_email == email.strip().lower(),
                Application.status == ApplicationStatus.APPROVED,
            )
            .order_by(Application.applied_at.desc())
        )
        return [ApplicationResponse.model_validate(a) for a in result.scalars().all()]

    async def update_own(
        self,
        db: AsyncSession,
        principal: Principal,
        application_id: UUID,
        payload: ApplicationUpdate,
    ) -> UpdateResult:
        """
        Tutor edit of a not-yet-approved application.

        Raises:
            ValidationError: the body carries no editable field.
        """
        values = payload.model_dump(exclude_unset=True)
        if not values:
            raise ValidationError("No fields to update")

        result = await db.execute(
            update(Application)
            .where(
                Application.id == application_id,
                Application.tutor_email == principal.email,
                Application.status != ApplicationStatus.APPROVED,
            )
            .values({getattr(Application, key): value for key, value in values.items()})
            .execution_options(synchronize_session=False)
        )
        return UpdateResult(matched_count=result.rowcount, modified_count=result.rowcount)

    async def delete_own(self, db: AsyncSession, principal: Principal, application_id: UUID) -> DeleteResult:
        result = await db.execute(
            delete(Application)
            .where(
                Application.id == application_id,
                Application.tutor_email == principal.email,
                Application.status != ApplicationStatus.APPROVED,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info("Application %s withdrawn by %s", application_id, principal.email)
        return DeleteResult(deleted_count=result.rowcount)

    async def tutor_stats(self, db: AsyncSession, email: str) -> TutorStats:
        result = await db.execute(
            select(Application.status, func.count(Application.id))
            .where(Application.tutor_email == email.strip().lower())
            .group_by(Application.status)
        )
        counts = {status: count for status, count in result.all()}
        return TutorStats(
            total_applications=sum(counts.values()),
            approved_applications=counts.get(ApplicationStatus.APPROVED, 0),
            pending_applications=counts.get(ApplicationStatus.PENDING, 0),
        )

    async def _has_applied(self, db: AsyncSession, tuition_id: UUID, tutor_email: str) -> bool:
        result = await db.execute(
            select(Application.id).where(
                Application.tuition_id == tuition_id,
                Application.tutor_email == tutor_email,
            )
        )
        return result.scalar_one_or_none() is not None


# ── Singleton Instance ────────────────────────────────────────────────────
application_service = ApplicationService()
