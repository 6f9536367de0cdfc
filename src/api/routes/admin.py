"""
Admin / observability endpoints
===============================

GET /api/v1/admin/reminders -- pending departure reminders
GET /api/v1/admin/health    -- simple health check
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_user
from src.api.middleware import limiter
from src.api.schemas import HealthResponse, ReminderJobResponse
from src.config import settings
from src.infrastructure.repositories import ReminderJobRepository

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/reminders",
    response_model=list[ReminderJobResponse],
    summary="List pending departure reminders",
    dependencies=[Depends(require_user)],
)
@limiter.limit(settings.rate_limit)
async def list_reminders(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    jobs = await ReminderJobRepository(db).list_pending()
    return [ReminderJobResponse.from_entity(j.to_entity()) for j in jobs]


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
