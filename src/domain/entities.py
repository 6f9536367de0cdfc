"""
Domain entities with business logic.

Patterns used
-------------
- ``RiderSet`` is an ordered set of users keyed by user id: appending a
  member twice raises ``ConflictError``, removing a non-member raises
  ``NotFoundError``.
- ``Ride.state`` derives the lifecycle state (ABSENT | ACTIVE) from the
  rider count; an empty rider set means the ride must be deleted.
- ``ReminderJob`` carries the recipient list of the departure reminder.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Iterator, Optional

from .enums import RideEvent, RideState
from .exceptions import ConflictError, NotFoundError


# ── Entities ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class User:
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        """"first last" when both names are known, else the username."""
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.username


class RiderSet:
    """Ordered, id-unique collection of the users on a ride."""

    def __init__(self, riders: Iterable[User] = ()):
        self._riders: list[User] = []
        for rider in riders:
            if rider.id not in self:
                self._riders.append(rider)

    def __iter__(self) -> Iterator[User]:
        return iter(self._riders)

    def __len__(self) -> int:
        return len(self._riders)

    def __contains__(self, item) -> bool:
        user_id = item.id if isinstance(item, User) else item
        return any(r.id == user_id for r in self._riders)

    def __eq__(self, other) -> bool:
        if not isinstance(other, RiderSet):
            return NotImplemented
        return self._riders == other._riders

    def __repr__(self) -> str:
        return f"RiderSet({[r.username for r in self._riders]!r})"

    def add(self, user: User) -> None:
        if user.id in self:
            raise ConflictError(f"User {user.id} is already on this ride")
        self._riders.append(user)

    def remove(self, user_id: int) -> User:
        for i, rider in enumerate(self._riders):
            if rider.id == user_id:
                return self._riders.pop(i)
        raise NotFoundError(f"User {user_id} is not on this ride")

    def emails(self) -> list[str]:
        return [r.email for r in self._riders]


@dataclass
class Ride:
    id: Optional[int] = None
    departing_datetime: Optional[datetime] = None
    arriving_at: str = ""
    departing_from: str = ""
    number_riders: int = 0  # advisory only, never enforced
    comments: str = ""
    riders: RiderSet = field(default_factory=RiderSet)
    created_at: Optional[datetime] = None

    @property
    def state(self) -> RideState:
        return RideState.ACTIVE if len(self.riders) else RideState.ABSENT

    def reminder_time(self, lead: timedelta) -> datetime:
        """Instant the departure reminder should fire."""
        return self.departing_datetime - lead


@dataclass
class ReminderJob:
    ride_id: int
    fire_at: datetime
    recipients: list[str] = field(default_factory=list)
    id: Optional[int] = None
    attempts: int = 0
    last_error: Optional[str] = None


@dataclass(frozen=True)
class NotificationEvent:
    """A membership transition worth emailing about.

    ``ride`` is the snapshot the mail should describe; for DELETED it is
    the last state the ride had before it was removed.
    """

    kind: RideEvent
    ride: Ride
    user: User
