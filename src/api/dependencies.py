"""FastAPI dependency injection helpers."""

from datetime import timedelta
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.exceptions import AuthenticationError
from src.infrastructure.cas import CasClient
from src.infrastructure.database import async_session_factory
from src.services.auth import AuthService, decode_token
from src.services.notifier import NotificationDispatcher
from src.services.ride_lifecycle import RideLifecycleService


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_notifier(request: Request) -> NotificationDispatcher:
    return request.app.state.notifier


def get_ride_service(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> RideLifecycleService:
    return RideLifecycleService(
        db, notifier, reminder_lead=timedelta(hours=settings.reminder_lead_hours)
    )


def get_cas_client() -> CasClient:
    return CasClient(settings)


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    cas: CasClient = Depends(get_cas_client),
) -> AuthService:
    return AuthService(db, cas, settings)


async def require_user(
    authorization: Optional[str] = Header(None),
) -> Optional[dict]:
    """Decode the bearer token; a no-op when auth is disabled."""
    if not settings.auth_enabled:
        return None
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Missing Authorization header")
    return decode_token(authorization.split(" ", 1)[1], settings)
