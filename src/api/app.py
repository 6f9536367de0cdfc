"""
FastAPI application factory.

* Registers routes for auth, rides and admin.
* Maps domain errors to HTTP responses.
* Starts / stops the background reminder worker via lifespan events and
  drains in-flight notification mail on shutdown.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, auth, rides
from src.config import settings
from src.domain.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    StoreError,
    TransportError,
)
from src.domain.notifications import NotificationComposer
from src.infrastructure.mailer import SmtpMailGateway
from src.infrastructure.redis_client import close_redis
from src.services.notifier import NotificationDispatcher
from src.workers import reminders as _reminders

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# Domain error -> HTTP status
ERROR_STATUS: dict[type, int] = {
    NotFoundError: 404,
    ConflictError: 403,
    AuthenticationError: 401,
    StoreError: 500,
    TransportError: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the reminder worker on startup; stop it and flush mail on shutdown."""
    notifier: NotificationDispatcher = app.state.notifier
    await _reminders.start_reminder_loop(notifier.mailer, notifier.composer)
    yield
    await _reminders.stop_reminder_loop()
    await notifier.drain()
    await close_redis()


async def _domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status = ERROR_STATUS.get(type(exc), 500)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Campus Carpool API",
        description=(
            "Lets members of a university community post rides and join or "
            "leave them.  Riders get an email on every membership change "
            "and a reminder the day before departure."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    composer = NotificationComposer(
        settings.notification_timezone, settings.ride_link_base
    )
    app.state.notifier = NotificationDispatcher(SmtpMailGateway(settings), composer)

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    for exc_class in ERROR_STATUS:
        app.add_exception_handler(exc_class, _domain_error_handler)

    # Routers
    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
