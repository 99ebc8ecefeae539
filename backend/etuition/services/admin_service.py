"""
eTuition Backend - Admin Dashboard Service
==========================================

What:  Aggregate counts for the admin dashboard home page.
How:   Three GROUP BY queries and one COUNT. They run one after another: an
       AsyncSession holds a single connection and cannot execute statements
       concurrently.
"""

import logging
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from etuition.models.tuition import Tuition
from etuition.models.user import User
from etuition.schemas.common import GroupCount
from etuition.schemas.payment import AdminStats

logger = logging.getLogger(__name__)


class AdminService:
    async def stats(self, db: AsyncSession) -> AdminStats:
        """
        Returns:
            userStats    users grouped by status (Active / Blocked)
            roleStats    users grouped by role
            tuitionStats posts grouped by moderation status
            totalTuitions
        """
        user_stats = await self._group_counts(db, User.status)
        role_stats = await self._group_counts(db, User.role)
        tuition_stats = await self._group_counts(db, Tuition.status)

        total = await db.execute(select(func.count(Tuition.id)))

        return AdminStats(
            user_stats=user_stats,
            role_stats=role_stats,
            tuition_stats=tuition_stats,
            total_tuitions=total.scalar() or 0,
        )

    async def _group_counts(self, db: AsyncSession, column) -> List[GroupCount]:
        result = await db.execute(
            select(column, func.count()).group_by(column).order_by(column)
        )
        return [GroupCount(key=key.value, count=count) for key, count in result.all()]


# ── Singleton Instance ────────────────────────────────────────────────────
admin_service = AdminService()
