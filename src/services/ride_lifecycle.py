"""
Ride lifecycle operations
=========================

Create, book, unbook and delete, each run as a pipeline:

    load -> mutate -> persist (commit) -> sync reminder job -> notify

Only the ride write is authoritative.  It is committed on its own; a
failure there rolls back and raises ``StoreError``.  The reminder-job sync
that follows runs in a second transaction, and its failures are logged and
rolled back without touching the result.  Notifications are handed to the
``NotificationDispatcher`` and never awaited.

Membership changes use single-row INSERT / DELETE on ``ride_riders`` under
a row lock on the ride (``SELECT ... FOR UPDATE``), so concurrent book and
unbook calls on one ride run one after another and the last rider out
always deletes the ride.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import NotificationEvent, Ride, User
from src.domain.enums import RideEvent, RideState
from src.domain.exceptions import ConflictError, NotFoundError, StoreError
from src.infrastructure.repositories import (
    ReminderJobRepository,
    RideRepository,
    UserRepository,
)
from src.services.notifier import NotificationDispatcher

logger = logging.getLogger(__name__)


def utc(when: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RideLifecycleService:
    def __init__(
        self,
        session: AsyncSession,
        notifier: NotificationDispatcher,
        *,
        reminder_lead: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.session = session
        self.notifier = notifier
        self.reminder_lead = reminder_lead
        self.clock = clock
        self.users = UserRepository(session)
        self.rides = RideRepository(session)
        self.jobs = ReminderJobRepository(session)

    # ── Loading ───────────────────────────────────────────────────────

    async def _get_user(self, user_id: int) -> User:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError(f"Could not find user with id {user_id}")
        return user.to_entity()

    async def get_ride(self, ride_id: int) -> Ride:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFoundError(f"Could not find ride with id {ride_id}")
        return ride.to_entity()

    async def _lock_ride(self, ride_id: int) -> Ride:
        """Load the ride with its row locked until the membership write commits."""
        ride = await self.rides.get_by_id_for_update(ride_id)
        if ride is None:
            raise NotFoundError(f"Could not find ride with id {ride_id}")
        return ride.to_entity()

    async def _reload(self, ride: Ride) -> Ride:
        model = await self.rides.get_by_id(ride.id)
        return model.to_entity() if model is not None else ride

    # ── Transaction helpers ───────────────────────────────────────────

    async def _commit(self, action: str) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(f"Could not {action}") from exc

    async def _sync_job(self, action: str, ride_id: int, op, *args) -> None:
        """Run a reminder-job operation after the ride write has committed.

        Failures are reported and rolled back; the ride state stands.
        """
        try:
            await op(*args)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception(
                "Reminder job for ride %s out of sync: could not %s", ride_id, action
            )

    # ── Lifecycle operations ──────────────────────────────────────────

    async def create(
        self,
        user_id: int,
        *,
        departing_datetime: datetime,
        arriving_at: str,
        departing_from: str,
        number_riders: int = 0,
        comments: str = "",
    ) -> Ride:
        user = await self._get_user(user_id)
        try:
            model = await self.rides.create_ride(
                creator_id=user.id,
                departing_datetime=utc(departing_datetime),
                arriving_at=arriving_at,
                departing_from=departing_from,
                number_riders=number_riders,
                comments=comments,
            )
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError("Could not create ride") from exc
        await self._commit("create ride")
        ride = model.to_entity()
        logger.info("Ride %s created by user %s", ride.id, user.id)

        send_time = ride.reminder_time(self.reminder_lead)
        if send_time > self.clock():
            await self._sync_job(
                "schedule reminder",
                ride.id,
                self.jobs.create_at,
                ride.id,
                send_time,
                ride.riders.emails(),
            )
            logger.info("Reminder for ride %s scheduled at %s", ride.id, send_time)
        else:
            logger.info(
                "No reminder for ride %s: it departs within %s", ride.id, self.reminder_lead
            )

        self.notifier.notify(NotificationEvent(RideEvent.CREATED, ride, user))
        return ride

    async def book(self, ride_id: int, user_id: int) -> Ride:
        user = await self._get_user(user_id)
        ride = await self._lock_ride(ride_id)

        try:
            ride.riders.add(user)
        except ConflictError:
            logger.info("User %s already exists on ride %s", user.id, ride.id)
            raise

        try:
            await self.rides.add_rider(ride.id, user.id)
        except IntegrityError as exc:
            # The ride was deleted before the lock was taken, or the row
            # already exists.
            await self.session.rollback()
            if await self.rides.get_by_id(ride.id) is None:
                raise NotFoundError(f"Could not find ride with id {ride.id}") from exc
            raise ConflictError(f"User {user.id} is already on this ride") from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError("Error saving user into ride") from exc
        await self._commit("save user into ride")
        logger.info("User %s booked onto ride %s", user.id, ride.id)

        ride = await self._reload(ride)
        await self._sync_job(
            "add reminder recipient", ride.id, self.jobs.add_recipient, ride.id, user.email
        )
        self.notifier.notify(NotificationEvent(RideEvent.JOINED, ride, user))
        return ride

    async def unbook(self, ride_id: int, user_id: int) -> Ride:
        ride = await self._lock_ride(ride_id)

        if ride.state is RideState.ABSENT:
            # Left behind by an earlier partial failure; clean up first.
            logger.warning("Ride %s was already empty; deleting it", ride.id)
            await self._delete(ride.id)

        user = ride.riders.remove(user_id)

        try:
            removed = await self.rides.remove_rider(ride.id, user.id)
            remaining = await self.rides.count_riders(ride.id) if removed else 0
            if removed and remaining == 0:
                await self.rides.delete(ride.id)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError("Error removing user from ride") from exc
        if not removed:
            # Someone else removed this user between our read and write.
            await self.session.rollback()
            raise NotFoundError(f"User {user.id} is not on this ride")
        await self._commit("remove user from ride")
        logger.info("Removed user %s from ride %s", user.id, ride.id)

        if remaining == 0:
            await self._sync_job(
                "cancel reminder", ride.id, self.jobs.cancel_by_ride_id, ride.id
            )
            logger.info("Ride %s is now empty and was deleted", ride.id)
            self.notifier.notify(NotificationEvent(RideEvent.DELETED, ride, user))
            return ride

        ride = await self._reload(ride)
        await self._sync_job(
            "remove reminder recipient",
            ride.id,
            self.jobs.remove_recipient,
            ride.id,
            user.email,
        )
        self.notifier.notify(NotificationEvent(RideEvent.LEFT, ride, user))
        return ride

    async def _delete(self, ride_id: int) -> bool:
        try:
            deleted = await self.rides.delete(ride_id)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(f"Could not delete ride {ride_id}") from exc
        await self._commit(f"delete ride {ride_id}")
        await self._sync_job("cancel reminder", ride_id, self.jobs.cancel_by_ride_id, ride_id)
        return deleted

    async def delete_ride(self, ride_id: int) -> bool:
        """Delete regardless of riders.  A missing ride counts as deleted."""
        deleted = await self._delete(ride_id)
        if deleted:
            logger.info("Ride %s was successfully deleted", ride_id)
        else:
            logger.info("Ride %s did not exist; nothing to delete", ride_id)
        return deleted

    # ── Queries ───────────────────────────────────────────────────────

    async def list_rides(self) -> list[Ride]:
        return [r.to_entity() for r in await self.rides.list_all()]

    async def list_past_rides(self) -> list[Ride]:
        rides = await self.rides.list_departing(before=self.clock())
        return [r.to_entity() for r in rides]

    async def list_future_rides(self) -> list[Ride]:
        rides = await self.rides.list_departing(since=self.clock())
        return [r.to_entity() for r in rides]

    async def list_user_past_rides(self, user_id: int) -> list[Ride]:
        user = await self._get_user(user_id)
        rides = await self.rides.list_departing(before=self.clock(), user_id=user.id)
        return [r.to_entity() for r in rides]

    async def list_user_future_rides(self, user_id: int) -> list[Ride]:
        user = await self._get_user(user_id)
        rides = await self.rides.list_departing(since=self.clock(), user_id=user.id)
        return [r.to_entity() for r in rides]

    async def list_rides_for_username(self, username: str) -> list[Ride]:
        user = await self.users.get_by_username(username)
        if user is None:
            return []
        rides = await self.rides.list_departing(user_id=user.id)
        return [r.to_entity() for r in rides]
