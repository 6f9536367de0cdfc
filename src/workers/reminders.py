"""
Background Reminder Worker
==========================

Runs every ``REMINDER_POLL_INTERVAL_SECONDS`` (default 30 s) and fires the
departure reminders that have come due.

Concurrency safety
------------------
* **Redis distributed lock** ensures only one API process fires reminders
  in a given cycle, so nobody receives the same reminder twice.
* The lock is renewed before every send, so a slow SMTP server cannot let
  it expire under a running cycle.  If renewal fails the cycle stops.
* Each job is committed on its own: a crash mid-cycle never re-sends the
  reminders that already went out.

Algorithm per cycle
-------------------
1. Fetch jobs with ``fire_at <= now`` that have attempts left.
2. Drop jobs whose ride is gone or whose recipient list is empty.
3. Render the reminder from the ride's current state and send it.
4. On success delete the job; on failure bump ``attempts`` and keep the
   error for the admin listing.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from src.config import settings
from src.domain.exceptions import TransportError
from src.domain.notifications import NotificationComposer
from src.infrastructure.database import async_session_factory
from src.infrastructure.locks import DistributedLock
from src.infrastructure.redis_client import get_redis
from src.infrastructure.repositories import ReminderJobRepository, RideRepository

logger = logging.getLogger(__name__)

# Must stay above smtp_timeout_seconds; the lock is renewed before each send.
LOCK_TTL_SECONDS = 60

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_reminder_loop(mailer, composer: NotificationComposer) -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop(mailer, composer))
    logger.info(
        "Reminder worker started (interval=%ds)",
        settings.reminder_poll_interval_seconds,
    )


async def stop_reminder_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Reminder worker stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop(mailer, composer: NotificationComposer) -> None:
    """Periodic loop: run a reminder cycle then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_reminder_cycle(mailer, composer)
        except Exception:
            logger.exception("Unhandled error in reminder cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.reminder_poll_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def run_reminder_cycle(
    mailer,
    composer: NotificationComposer,
    *,
    session_factory=async_session_factory,
    now: datetime | None = None,
) -> int:
    """Execute one reminder cycle.  Returns the number of reminders sent."""
    redis = await get_redis()
    lock = DistributedLock(redis, "reminder_worker", ttl_seconds=LOCK_TTL_SECONDS)

    if not await lock.acquire():
        logger.debug("Lock held by another worker – skipping cycle")
        return 0

    sent = 0
    now = now or datetime.now(timezone.utc)
    try:
        async with session_factory() as session:
            job_repo = ReminderJobRepository(session)
            ride_repo = RideRepository(session)

            for job in await job_repo.get_due(now, settings.reminder_max_attempts):
                # Each send may block for the SMTP timeout; keep the lock alive.
                if not await lock.extend():
                    logger.warning("Reminder lock expired mid-cycle; stopping early")
                    break
                ride = await ride_repo.get_by_id(job.ride_id)
                if ride is None or not job.recipients:
                    logger.info("Dropping reminder for ride %s: nothing to send", job.ride_id)
                    await job_repo.delete(job)
                    await session.commit()
                    continue

                mail = composer.compose_reminder(ride.to_entity(), job.recipients)
                try:
                    await mailer.send(mail.recipients, mail.subject, mail.html)
                except TransportError as exc:
                    job.attempts += 1
                    job.last_error = str(exc)
                    await job_repo.save(job)
                    await session.commit()
                    logger.warning(
                        "Reminder for ride %s failed (attempt %d): %s",
                        job.ride_id, job.attempts, exc,
                    )
                    continue

                await job_repo.delete(job)
                await session.commit()
                sent += 1

        if sent:
            logger.info("Reminder cycle: %d reminders sent", sent)
    except Exception:
        logger.exception("Error in reminder cycle")
    finally:
        await lock.release()

    return sent
