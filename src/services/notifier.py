"""
Fire-and-forget notification dispatch.

Mail goes out on detached ``asyncio`` tasks so a slow or failing SMTP
server never delays or fails the membership change that triggered it.
Outcomes are only ever observed by the logger.
"""

from __future__ import annotations

import asyncio
import logging

from src.domain.entities import NotificationEvent
from src.domain.notifications import NotificationComposer, OutgoingMail

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, mailer, composer: NotificationComposer):
        self.mailer = mailer
        self.composer = composer
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def notify(self, event: NotificationEvent) -> list[asyncio.Task]:
        """Compose the mails for *event* and send each one in the background."""
        mails = self.composer.compose(event)
        logger.info(
            "Dispatching %d %s mail(s) for ride %s",
            len(mails), event.kind.value, event.ride.id,
        )
        return [self.dispatch(mail) for mail in mails]

    def dispatch(self, mail: OutgoingMail) -> asyncio.Task:
        task = asyncio.create_task(self._send(mail))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _send(self, mail: OutgoingMail) -> None:
        try:
            await self.mailer.send(mail.recipients, mail.subject, mail.html)
        except Exception:
            logger.exception(
                "Failed to send %r to %s", mail.subject, list(mail.recipients)
            )

    async def drain(self) -> None:
        """Wait for every in-flight mail (shutdown and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
