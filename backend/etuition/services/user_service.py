"""
eTuition Backend - User Service
===============================

What:  Registration, token issuance, the role lookup, public tutor listings
       and admin user management.
How:   Stateless; every method receives the request's AsyncSession. Writes
       are flushed here and committed by the session dependency.
Who:   Called by routes/users.py.

Registration race:
    The email pre-check gives the common case a clean 409. Two concurrent
    registrations can both pass it; the unique constraint on users.email then
    fails the second flush, which is reported as the same 409.
"""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from etuition.auth.tokens import issue_token
from etuition.exceptions import ConflictError, NotFoundError, ValidationError
from etuition.models.enums import Role, UserStatus
from etuition.models.user import User
from etuition.schemas.common import DeleteResult, InsertResult, UpdateResult
from etuition.schemas.user import UserCreate, UserResponse, UserUpdate, normalize_email

logger = logging.getLogger(__name__)

# Homepage shows a fixed-size strip of the newest tutors
LATEST_TUTORS_LIMIT = 4


class UserService:
    """
    Business logic for user accounts.

    Public:   register(), issue_token(), latest_tutors(), all_tutors()
    Any role: get_role()
    Admin:    list_users(), update_user(), delete_user()
    """

    async def register(self, db: AsyncSession, payload: UserCreate) -> InsertResult:
        """
        Create an account. Role defaults to Student; status is always Active.

        Raises:
            ConflictError: the email is already registered.
        """
        if await self._email_taken(db, payload.email):
            raise ConflictError("User already exists", context={"email": payload.email})

        user = User(
            email=payload.email,
            name=payload.name,
            photo_url=payload.photo_url,
            phone=payload.phone,
            role=payload.role,
            status=UserStatus.ACTIVE,
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Lost the race to a concurrent registration of the same email
            await db.rollback()
            raise ConflictError("User already exists", context={"email": payload.email})

        logger.info("Registered %s as %s", user.email, user.role.value)
        return InsertResult(inserted_id=user.id)

    async def issue_token(self, db: AsyncSession, email: str) -> str:
        """
        Sign a token carrying the stored role for `email`.

        The identity provider has already authenticated the caller; this only
        binds the email to the role on record.

        Raises:
            NotFoundError: no account for `email`.
        """
        email = normalize_email(email)
        result = await db.execute(select(User.role).where(User.email == email))
        role = result.scalar_one_or_none()
        if role is None:
            raise NotFoundError(resource="user", resource_id=email)

        logger.info("Issued token for %s (%s)", email, role.value)
        return issue_token(email, role)

    async def get_role(self, db: AsyncSession, email: str) -> str:
        """Stored role for `email`, or "user" when there is no account."""
        result = await db.execute(
            select(User.role).where(User.email == normalize_email(email))
        )
        role = result.scalar_one_or_none()
        return role.value if role is not None else "user"

    async def latest_tutors(self, db: AsyncSession) -> List[UserResponse]:
        return await self._tutors(db, limit=LATEST_TUTORS_LIMIT)

    async def all_tutors(self, db: AsyncSession) -> List[UserResponse]:
        return await self._tutors(db)

    async def _tutors(self, db: AsyncSession, limit: int = 0) -> List[UserResponse]:
        query = (
            select(User)
            .where(User.role == Role.TUTOR)
            .order_by(User.created_at.desc())
        )
        if limit:
            query = query.limit(limit)
        result = await db.execute(query)
        return [UserResponse.model_validate(u) for u in result.scalars().all()]

    async def list_users(self, db: AsyncSession) -> List[UserResponse]:
        result = await db.execute(select(User).order_by(User.created_at.desc()))
        return [UserResponse.model_validate(u) for u in result.scalars().all()]

    async def update_user(self, db: AsyncSession, user_id: UUID, payload: UserUpdate) -> UpdateResult:
        """
        Admin edit of role, status and profile fields.

        Raises:
            ValidationError: the body carries no field to change.
        """
        values = payload.model_dump(exclude_unset=True)
        if not values:
            raise ValidationError("No fields to update")

        result = await db.execute(
            update(User)
            .where(User.id == user_id)
            .values({getattr(User, key): value for key, value in values.items()})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info("Admin updated user %s: %s", user_id, sorted(values))
        return UpdateResult(matched_count=result.rowcount, modified_count=result.rowcount)

    async def delete_user(self, db: AsyncSession, user_id: UUID) -> DeleteResult:
        result = await db.execute(delete(User).where(User.id == user_id))
        if result.rowcount:
            logger.info("Admin deleted user %s", user_id)
        return DeleteResult(deleted_count=result.rowcount)

    async def _email_taken(self, db: AsyncSession, email: str) -> bool:
        result = await db.execute(select(User.id).where(User.email == email))
        return result.scalar_one_or_none() is not None


# ── Singleton Instance ────────────────────────────────────────────────────
user_service = UserService()
