"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 8 sample users
  - 6 sample rides (mix of past, within-a-day and next-week departures)
  - extra riders booked onto some of them

Rides go through ``RideLifecycleService`` so reminder jobs are scheduled
exactly as they would be for real requests.  Mail is printed, not sent.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from src.config import settings
from src.domain.notifications import NotificationComposer
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.repositories import UserRepository
from src.services.notifier import NotificationDispatcher
from src.services.ride_lifecycle import RideLifecycleService


USERS = [
    {"username": "ab12", "first_name": "Alice", "last_name": "Brown"},
    {"username": "cd34", "first_name": "Carlos", "last_name": "Diaz"},
    {"username": "ef56", "first_name": "Emma", "last_name": "Fischer"},
    {"username": "gh78", "first_name": None, "last_name": None},
    {"username": "ij90", "first_name": "Isha", "last_name": "Jain"},
    {"username": "kl11", "first_name": "Kenji", "last_name": "Lee"},
    {"username": "mn22", "first_name": None, "last_name": None},
    {"username": "op33", "first_name": "Olivia", "last_name": "Park"},
]

# (creator index, hours from now, from, to, extra rider indexes)
RIDES = [
    (0, 72, "Rice University", "IAH Airport", [1, 2]),
    (3, 48, "Rice University", "Hobby Airport", [4]),
    (5, 12, "Rice Village", "Galleria", [6]),
    (1, 170, "Rice University", "Austin", [7, 0]),
    (2, -30, "Rice University", "IAH Airport", []),
    (7, 30, "Medical Center", "Hobby Airport", []),
]


class _PrintMailer:
    async def send(self, to, subject, html):
        print(f"  [mail] {list(to)}: {subject}")


async def seed():
    composer = NotificationComposer(
        settings.notification_timezone, settings.ride_link_base
    )
    notifier = NotificationDispatcher(_PrintMailer(), composer)

    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        users = UserRepository(session)
        user_ids = []
        for u in USERS:
            m = await users.create(
                username=u["username"],
                email=f"{u['username']}@{settings.email_domain}",
                first_name=u["first_name"],
                last_name=u["last_name"],
            )
            user_ids.append(m.id)
        await session.commit()
        print(f"  Created {len(user_ids)} users")

        # ── Rides ─────────────────────────────────────────────────────
        service = RideLifecycleService(
            session,
            notifier,
            reminder_lead=timedelta(hours=settings.reminder_lead_hours),
        )
        now = datetime.now(timezone.utc)
        for creator, hours, frm, to, extra in RIDES:
            ride = await service.create(
                user_ids[creator],
                departing_datetime=now + timedelta(hours=hours),
                departing_from=frm,
                arriving_at=to,
                number_riders=4,
            )
            for idx in extra:
                await service.book(ride.id, user_ids[idx])
        print(f"  Created {len(RIDES)} rides")

    await notifier.drain()
    print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
