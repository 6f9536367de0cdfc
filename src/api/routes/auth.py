"""
Auth endpoint
=============

GET /api/v1/auth?ticket=... -- exchange a CAS ticket for a JWT
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from src.api.dependencies import get_auth_service
from src.api.middleware import limiter
from src.api.schemas import LoginResponse, LoginUser
from src.config import settings
from src.domain.exceptions import AuthenticationError
from src.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get(
    "",
    response_model=LoginResponse,
    summary="Validate a CAS ticket",
    responses={
        400: {"description": "No ticket supplied."},
        401: {"description": "The identity provider rejected the ticket."},
    },
)
@limiter.limit(settings.rate_limit)
async def login(
    request: Request,
    ticket: str | None = None,
    service: AuthService = Depends(get_auth_service),
):
    if not ticket:
        raise HTTPException(status_code=400, detail="A ticket is required")
    try:
        result = await service.login(ticket)
    except AuthenticationError:
        return JSONResponse(
            status_code=401,
            content={"success": False, "message": "CAS authentication failed"},
        )
    return LoginResponse(
        is_new=result.is_new,
        user=LoginUser(id=result.user.id, token=result.token),
    )
