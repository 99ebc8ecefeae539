"""Admin dashboard aggregates. User and post management live with their resources."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from etuition.auth import Principal, require_admin
from etuition.database import get_db_session
from etuition.schemas.payment import AdminStats
from etuition.services.admin_service import admin_service

router = APIRouter(tags=["Admin"])


@router.get("/admin/stats", response_model=AdminStats, summary="Dashboard counts (admin)")
async def admin_stats(
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> AdminStats:
    return await admin_service.stats(db)
