"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Nothing here commits; the caller decides
where the transaction boundaries are.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload, joinedload

from .models import ReminderJobModel, RideModel, RideRiderModel, UserModel


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_by_username(self, username: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.username == username.lower())
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        *,
        username: str,
        email: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> UserModel:
        user = UserModel(
            username=username.lower(),
            email=email,
            first_name=first_name,
            last_name=last_name,
        )
        self.session.add(user)
        await self.session.flush()
        return user


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _query():
        # Always reload membership so callers never see a stale rider list.
        return (
            select(RideModel)
            .options(
                selectinload(RideModel.rider_links).joinedload(RideRiderModel.user)
            )
            .execution_options(populate_existing=True)
        )

    async def create_ride(
        self,
        *,
        creator_id: int,
        departing_datetime: datetime,
        arriving_at: str,
        departing_from: str,
        number_riders: int = 0,
        comments: str = "",
    ) -> RideModel:
        """Insert a ride whose only rider is its creator."""
        ride = RideModel(
            departing_datetime=departing_datetime,
            arriving_at=arriving_at,
            departing_from=departing_from,
            number_riders=number_riders,
            comments=comments,
        )
        self.session.add(ride)
        await self.session.flush()
        self.session.add(RideRiderModel(ride_id=ride.id, user_id=creator_id))
        await self.session.flush()
        return await self.get_by_id(ride.id)

    async def get_by_id(self, ride_id: int) -> Optional[RideModel]:
        result = await self.session.execute(
            self._query().where(RideModel.id == ride_id)
        )
        return result.scalar_one_or_none()

    async def get_by_id_for_update(self, ride_id: int) -> Optional[RideModel]:
        """SELECT ... FOR UPDATE on the ride row to serialise membership changes."""
        result = await self.session.execute(
            self._query().where(RideModel.id == ride_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def add_rider(self, ride_id: int, user_id: int) -> None:
        """Atomic "add unique element": raises ``IntegrityError`` on duplicates."""
        self.session.add(RideRiderModel(ride_id=ride_id, user_id=user_id))
        await self.session.flush()

    async def remove_rider(self, ride_id: int, user_id: int) -> bool:
        """Atomic "remove element".  Returns False if the user was not on the ride."""
        result = await self.session.execute(
            delete(RideRiderModel).where(
                RideRiderModel.ride_id == ride_id,
                RideRiderModel.user_id == user_id,
            )
        )
        return result.rowcount > 0

    async def count_riders(self, ride_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(RideRiderModel)
            .where(RideRiderModel.ride_id == ride_id)
        )
        return result.scalar() or 0

    async def delete(self, ride_id: int) -> bool:
        """Delete the ride and its memberships.  Returns False if nothing matched."""
        await self.session.execute(
            delete(RideRiderModel).where(RideRiderModel.ride_id == ride_id)
        )
        result = await self.session.execute(
            delete(RideModel).where(RideModel.id == ride_id)
        )
        return result.rowcount > 0

    async def list_all(self) -> list[RideModel]:
        result = await self.session.execute(
            self._query().order_by(RideModel.departing_datetime)
        )
        return list(result.scalars().all())

    async def list_departing(
        self,
        *,
        before: datetime | None = None,
        since: datetime | None = None,
        user_id: int | None = None,
    ) -> list[RideModel]:
        """Rides departing strictly before *before* and/or at or after *since*."""
        query = self._query()
        if before is not None:
            query = query.where(RideModel.departing_datetime < before)
        if since is not None:
            query = query.where(RideModel.departing_datetime >= since)
        if user_id is not None:
            query = query.where(
                RideModel.id.in_(
                    select(RideRiderModel.ride_id).where(
                        RideRiderModel.user_id == user_id
                    )
                )
            )
        result = await self.session.execute(
            query.order_by(RideModel.departing_datetime)
        )
        return list(result.scalars().all())


class ReminderJobRepository:
    """One pending departure reminder per ride, keyed by ``ride_id``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_at(
        self, ride_id: int, fire_at: datetime, recipients: list[str]
    ) -> ReminderJobModel:
        job = ReminderJobModel(
            ride_id=ride_id, fire_at=fire_at, recipients=list(recipients)
        )
        self.session.add(job)
        await self.session.flush()
        return job

    async def get_by_ride_id(self, ride_id: int) -> Optional[ReminderJobModel]:
        result = await self.session.execute(
            select(ReminderJobModel)
            .where(ReminderJobModel.ride_id == ride_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_ride_id_for_update(
        self, ride_id: int
    ) -> Optional[ReminderJobModel]:
        """SELECT ... FOR UPDATE so recipient edits never overwrite each other."""
        result = await self.session.execute(
            select(ReminderJobModel)
            .where(ReminderJobModel.ride_id == ride_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def save(self, job: ReminderJobModel) -> ReminderJobModel:
        self.session.add(job)
        await self.session.flush()
        return job

    async def add_recipient(self, ride_id: int, email: str) -> bool:
        """Returns False when the ride has no reminder job."""
        job = await self.get_by_ride_id_for_update(ride_id)
        if job is None:
            return False
        if email not in job.recipients:
            # Reassign so the JSON column is flagged dirty.
            job.recipients = [*job.recipients, email]
            await self.save(job)
        return True

    async def remove_recipient(self, ride_id: int, email: str) -> bool:
        """Returns False when the ride has no reminder job."""
        job = await self.get_by_ride_id_for_update(ride_id)
        if job is None:
            return False
        job.recipients = [r for r in job.recipients if r != email]
        await self.save(job)
        return True

    async def cancel_by_ride_id(self, ride_id: int) -> int:
        result = await self.session.execute(
            delete(ReminderJobModel).where(ReminderJobModel.ride_id == ride_id)
        )
        return result.rowcount or 0

    async def get_due(self, now: datetime, max_attempts: int) -> list[ReminderJobModel]:
        result = await self.session.execute(
            select(ReminderJobModel)
            .where(
                ReminderJobModel.fire_at <= now,
                ReminderJobModel.attempts < max_attempts,
            )
            .order_by(ReminderJobModel.fire_at)
        )
        return list(result.scalars().all())

    async def list_pending(self) -> list[ReminderJobModel]:
        result = await self.session.execute(
            select(ReminderJobModel).order_by(ReminderJobModel.fire_at)
        )
        return list(result.scalars().all())

    async def delete(self, job: ReminderJobModel) -> None:
        await self.session.delete(job)
        await self.session.flush()
