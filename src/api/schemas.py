"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

from src.domain.entities import ReminderJob, Ride


# ── Requests ──────────────────────────────────────────────────────────


class RideFields(BaseModel):
    departing_datetime: datetime
    arriving_at: str = Field(..., min_length=1, max_length=255)
    departing_from: str = Field(..., min_length=1, max_length=255)
    number_riders: int = Field(0, ge=0, description="Advisory capacity, not enforced.")
    comments: str = Field(
        "",
        validation_alias=AliasChoices("comments", "comments_input"),
    )


class RideCreateRequest(BaseModel):
    user_id: int
    ride: RideFields


class BookRequest(BaseModel):
    user_id: int


# ── Responses ─────────────────────────────────────────────────────────


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = {"from_attributes": True}


class RideResponse(BaseModel):
    id: int
    departing_datetime: datetime
    arriving_at: str
    departing_from: str
    number_riders: int
    comments: str
    riders: list[UserResponse] = []
    created_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, ride: Ride) -> RideResponse:
        return cls(
            id=ride.id,
            departing_datetime=ride.departing_datetime,
            arriving_at=ride.arriving_at,
            departing_from=ride.departing_from,
            number_riders=ride.number_riders,
            comments=ride.comments,
            riders=[UserResponse.model_validate(r) for r in ride.riders],
            created_at=ride.created_at,
        )


class DeleteRideResponse(BaseModel):
    ride_id: int
    deleted: bool


class LoginUser(BaseModel):
    id: int
    token: str


class LoginResponse(BaseModel):
    success: bool = True
    message: str = "CAS authentication success"
    is_new: bool
    user: LoginUser


class ReminderJobResponse(BaseModel):
    ride_id: int
    fire_at: datetime
    recipients: list[str]
    attempts: int = 0
    last_error: Optional[str] = None

    @classmethod
    def from_entity(cls, job: ReminderJob) -> ReminderJobResponse:
        return cls(
            ride_id=job.ride_id,
            fire_at=job.fire_at,
            recipients=job.recipients,
            attempts=job.attempts,
            last_error=job.last_error,
        )


class HealthResponse(BaseModel):
    status: str = "ok"
