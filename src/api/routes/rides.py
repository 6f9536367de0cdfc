"""
Ride endpoints
==============

GET    /api/v1/rides                         -- all rides
GET    /api/v1/rides/past/all                -- rides that already left
GET    /api/v1/rides/past/user/{user_id}     -- a user's past rides
GET    /api/v1/rides/future/all              -- upcoming rides
GET    /api/v1/rides/future/user/{user_id}   -- a user's upcoming rides
GET    /api/v1/rides/user/{username}         -- rides a username is on
GET    /api/v1/rides/{ride_id}               -- one ride
POST   /api/v1/rides                         -- create a ride
POST   /api/v1/rides/{ride_id}/book          -- join a ride
DELETE /api/v1/rides/{ride_id}/{user_id}     -- leave a ride
DELETE /api/v1/rides/{ride_id}               -- delete a ride

Domain errors are turned into responses by the handlers registered in
``create_app``: not found -> 404, already booked -> 403, store -> 500.
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_ride_service, require_user
from src.api.middleware import limiter
from src.api.schemas import (
    BookRequest,
    DeleteRideResponse,
    RideCreateRequest,
    RideResponse,
)
from src.config import settings
from src.services.ride_lifecycle import RideLifecycleService

router = APIRouter(
    prefix="/rides", tags=["rides"], dependencies=[Depends(require_user)]
)


def _many(rides) -> list[RideResponse]:
    return [RideResponse.from_entity(r) for r in rides]


# ── Queries ───────────────────────────────────────────────────────────


@router.get("", response_model=list[RideResponse], summary="List all rides")
@limiter.limit(settings.rate_limit)
async def list_rides(
    request: Request,
    service: RideLifecycleService = Depends(get_ride_service),
):
    return _many(await service.list_rides())


@router.get("/past/all", response_model=list[RideResponse], summary="List past rides")
@limiter.limit(settings.rate_limit)
async def list_past_rides(
    request: Request,
    service: RideLifecycleService = Depends(get_ride_service),
):
    return _many(await service.list_past_rides())


@router.get(
    "/past/user/{user_id}",
    response_model=list[RideResponse],
    summary="List a user's past rides",
)
@limiter.limit(settings.rate_limit)
async def list_user_past_rides(
    request: Request,
    user_id: int,
    service: RideLifecycleService = Depends(get_ride_service),
):
    return _many(await service.list_user_past_rides(user_id))


@router.get(
    "/future/all", response_model=list[RideResponse], summary="List upcoming rides"
)
@limiter.limit(settings.rate_limit)
async def list_future_rides(
    request: Request,
    service: RideLifecycleService = Depends(get_ride_service),
):
    return _many(await service.list_future_rides())


@router.get(
    "/future/user/{user_id}",
    response_model=list[RideResponse],
    summary="List a user's upcoming rides",
)
@limiter.limit(settings.rate_limit)
async def list_user_future_rides(
    request: Request,
    user_id: int,
    service: RideLifecycleService = Depends(get_ride_service),
):
    return _many(await service.list_user_future_rides(user_id))


@router.get(
    "/user/{username}",
    response_model=list[RideResponse],
    summary="List every ride a username is on",
)
@limiter.limit(settings.rate_limit)
async def list_rides_for_username(
    request: Request,
    username: str,
    service: RideLifecycleService = Depends(get_ride_service),
):
    return _many(await service.list_rides_for_username(username))


@router.get("/{ride_id}", response_model=RideResponse, summary="Get a ride")
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: int,
    service: RideLifecycleService = Depends(get_ride_service),
):
    return RideResponse.from_entity(await service.get_ride(ride_id))


# ── Lifecycle ─────────────────────────────────────────────────────────


@router.post(
    "",
    response_model=RideResponse,
    summary="Create a ride",
    description=(
        "Creates a ride whose only rider is the creator and schedules the "
        "departure reminder when the ride leaves more than a day from now."
    ),
)
@limiter.limit(settings.rate_limit)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    service: RideLifecycleService = Depends(get_ride_service),
):
    ride = await service.create(
        body.user_id,
        departing_datetime=body.ride.departing_datetime,
        arriving_at=body.ride.arriving_at,
        departing_from=body.ride.departing_from,
        number_riders=body.ride.number_riders,
        comments=body.ride.comments,
    )
    return RideResponse.from_entity(ride)


@router.post(
    "/{ride_id}/book",
    response_model=RideResponse,
    summary="Join a ride",
    responses={403: {"description": "User already on the ride."}},
)
@limiter.limit(settings.rate_limit)
async def book_ride(
    request: Request,
    ride_id: int,
    body: BookRequest,
    service: RideLifecycleService = Depends(get_ride_service),
):
    return RideResponse.from_entity(await service.book(ride_id, body.user_id))


@router.delete(
    "/{ride_id}/{user_id}",
    response_model=RideResponse,
    summary="Leave a ride",
    description="Removing the last rider deletes the ride and its reminder.",
)
@limiter.limit(settings.rate_limit)
async def unbook_ride(
    request: Request,
    ride_id: int,
    user_id: int,
    service: RideLifecycleService = Depends(get_ride_service),
):
    return RideResponse.from_entity(await service.unbook(ride_id, user_id))


@router.delete(
    "/{ride_id}", response_model=DeleteRideResponse, summary="Delete a ride"
)
@limiter.limit(settings.rate_limit)
async def delete_ride(
    request: Request,
    ride_id: int,
    service: RideLifecycleService = Depends(get_ride_service),
):
    deleted = await service.delete_ride(ride_id)
    return DeleteRideResponse(ride_id=ride_id, deleted=deleted)
