"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``          -- community members, created on first CAS login
* ``rides``          -- posted carpools
* ``ride_riders``    -- ride membership; the surrogate ``id`` keeps join order
* ``reminder_jobs``  -- at most one pending departure reminder per ride

Indexes
-------
* **Unique** on ``ride_riders (ride_id, user_id)`` so booking is a single
  atomic INSERT and a duplicate booking fails at the database.
* **Unique** on ``reminder_jobs.ride_id`` (one job per ride).
* **B-Tree** on ``rides.departing_datetime`` and ``reminder_jobs.fire_at``
  for the past / future listings and the reminder worker.
"""

from datetime import timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from src.domain.entities import ReminderJob, Ride, RiderSet, User


def _aware(value):
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(64), unique=True, nullable=False)
    email = Column(String(255), nullable=False)
    first_name = Column(String(120), nullable=True)
    last_name = Column(String(120), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_entity(self) -> User:
        return User(
            id=self.id,
            username=self.username,
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
        )


class RideRiderModel(Base):
    __tablename__ = "ride_riders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(
        Integer, ForeignKey("rides.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship(UserModel, lazy="joined")

    __table_args__ = (
        UniqueConstraint("ride_id", "user_id", name="uq_ride_riders_ride_user"),
        Index("idx_ride_riders_user", "user_id"),
    )


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    departing_datetime = Column(DateTime(timezone=True), nullable=False)
    arriving_at = Column(String(255), nullable=False)
    departing_from = Column(String(255), nullable=False)
    number_riders = Column(Integer, default=0, nullable=False)
    comments = Column(Text, default="", nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    rider_links = relationship(
        RideRiderModel,
        order_by=RideRiderModel.id,
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (Index("idx_rides_departing", "departing_datetime"),)

    def to_entity(self) -> Ride:
        return Ride(
            id=self.id,
            departing_datetime=_aware(self.departing_datetime),
            arriving_at=self.arriving_at,
            departing_from=self.departing_from,
            number_riders=self.number_riders,
            comments=self.comments or "",
            riders=RiderSet(link.user.to_entity() for link in self.rider_links),
            created_at=_aware(self.created_at),
        )


class ReminderJobModel(Base):
    __tablename__ = "reminder_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, nullable=False, unique=True)
    fire_at = Column(DateTime(timezone=True), nullable=False)
    recipients = Column(JSON, nullable=False, default=list)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_reminder_jobs_fire_at", "fire_at"),)

    def to_entity(self) -> ReminderJob:
        return ReminderJob(
            id=self.id,
            ride_id=self.ride_id,
            fire_at=_aware(self.fire_at),
            recipients=list(self.recipients or []),
            attempts=self.attempts or 0,
            last_error=self.last_error,
        )
