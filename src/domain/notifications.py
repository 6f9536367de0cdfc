"""
Notification composer
=====================

Pure mapping from a ``NotificationEvent`` to the emails it produces.

Audiences
---------
* **others**   -- every current rider except the triggering user.  Only
  JOINED and LEFT events have this audience, and only when it is
  non-empty.
* **personal** -- the triggering user, always, with its own wording.

Body
----
Route, departure date and time (rendered in a fixed reference zone) and,
for JOINED / LEFT, the rider list.  A DELETED body describes the ride as it
was before deletion and carries no link, since the ride page is gone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Callable
from zoneinfo import ZoneInfo

from .entities import NotificationEvent, Ride
from .enums import BROADCAST_EVENTS, RideEvent


@dataclass(frozen=True)
class OutgoingMail:
    recipients: tuple[str, ...]
    subject: str
    html: str


@dataclass(frozen=True)
class _Template:
    personal_subject: Callable[[str, str], str]
    personal_message: Callable[[str, str, str], str]
    others_subject: Callable[[str, str, str], str] | None = None
    others_message: Callable[[str], str] | None = None


# Arguments: subject(arriving, date), message(departing, arriving, date),
# others_subject(name, arriving, date), others_message(name).
TEMPLATES: dict[RideEvent, _Template] = {
    RideEvent.CREATED: _Template(
        personal_subject=lambda to, on: f"You have created a ride to {to} on {on}",
        personal_message=lambda frm, to, on: (
            f"You have created a ride from {frm} to {to} on {on}!"
        ),
    ),
    RideEvent.JOINED: _Template(
        personal_subject=lambda to, on: f"You have joined a ride to {to} on {on}",
        personal_message=lambda frm, to, on: (
            f"You have joined a ride from {frm} to {to} on {on}!"
        ),
        others_subject=lambda name, to, on: (
            f"User {name} has joined your ride to {to} on {on}!"
        ),
        others_message=lambda name: f"<p>User {name} has joined your ride. </p>",
    ),
    RideEvent.LEFT: _Template(
        personal_subject=lambda to, on: f"You have left a ride to {to} on {on}",
        personal_message=lambda frm, to, on: (
            f"You have left a ride from {frm} to {to} on {on}!"
        ),
        others_subject=lambda name, to, on: f"User {name} has left your ride!",
        others_message=lambda name: f"<p>User {name} has left your ride. </p>",
    ),
    RideEvent.DELETED: _Template(
        personal_subject=lambda to, on: f"You have left a ride to {to} on {on}",
        personal_message=lambda frm, to, on: (
            f"You have left a ride from {frm} to {to} on {on}! "
            "Because you were the only person previously in this ride, "
            "the ride has been deleted."
        ),
    ),
}


class NotificationComposer:
    def __init__(self, timezone: str, link_base: str):
        self.tz = ZoneInfo(timezone)
        self.link_base = link_base

    # ── Formatting helpers ────────────────────────────────────────────

    def format_date(self, when: datetime) -> str:
        local = when.astimezone(self.tz)
        return f"{local.month}/{local.day}/{local.year}"

    def format_time(self, when: datetime) -> str:
        local = when.astimezone(self.tz)
        return f"{local.strftime('%I:%M %p')} {local.tzname()}"

    def ride_link(self, ride_id) -> str:
        return f"{self.link_base}{ride_id}"

    def _rider_list(self, ride: Ride) -> str:
        items = "".join(
            f"<li>{escape(r.display_name)}</li>" for r in ride.riders
        )
        return f"<h4>Riders ({len(ride.riders)})</h4><ul>{items}</ul>"

    def _details(self, ride: Ride, header: str) -> str:
        when = ride.departing_datetime
        return (
            f"<p>{header}</p>"
            f"<p><b>Departing from</b>: {escape(ride.departing_from)}</p>"
            f"<p><b>Arriving at</b>: {escape(ride.arriving_at)}</p>"
            f"<p><b>Departure time</b>: {self.format_date(when)} "
            f"{self.format_time(when)}</p>"
        )

    def render_body(self, kind: RideEvent, ride: Ride) -> str:
        if kind is RideEvent.DELETED:
            return self._details(ride, "The ride's information was previously as such: ")

        body = self._details(ride, "The ride's information is now as follows: ")
        if kind in BROADCAST_EVENTS:
            body += self._rider_list(ride)
        link = escape(self.ride_link(ride.id), quote=True)
        body += f'<br/><p> To view the ride page, <a href="{link}">click here</a>.</p>'
        return body

    # ── Public API ────────────────────────────────────────────────────

    def others_audience(self, event: NotificationEvent) -> tuple[str, ...]:
        """Emails of the current riders, minus the triggering user."""
        if event.kind not in BROADCAST_EVENTS:
            return ()
        return tuple(
            r.email
            for r in event.ride.riders
            if r.id != event.user.id
            and r.username != event.user.username
            and r.email != event.user.email
        )

    def compose(self, event: NotificationEvent) -> list[OutgoingMail]:
        template = TEMPLATES[event.kind]
        ride, user = event.ride, event.user
        frm = escape(ride.departing_from)
        to = escape(ride.arriving_at)
        on = self.format_date(ride.departing_datetime)
        # subjects are plain text, bodies are HTML
        subject_to = ride.arriving_at
        body = self.render_body(event.kind, ride)

        mails: list[OutgoingMail] = []
        others = self.others_audience(event)
        if others and template.others_subject is not None:
            mails.append(
                OutgoingMail(
                    recipients=others,
                    subject=template.others_subject(user.display_name, subject_to, on),
                    html=template.others_message(escape(user.display_name)) + body,
                )
            )

        mails.append(
            OutgoingMail(
                recipients=(user.email,),
                subject=template.personal_subject(subject_to, on),
                html=template.personal_message(frm, to, on) + body,
            )
        )
        return mails

    def compose_reminder(self, ride: Ride, recipients: list[str]) -> OutgoingMail:
        """The mail a reminder job sends when it fires."""
        to = escape(ride.arriving_at)
        on = self.format_date(ride.departing_datetime)
        html = (
            f"<p>Your ride to {to} departs at "
            f"{self.format_time(ride.departing_datetime)} on {on}.</p>"
            + self._details(ride, "The ride's information is as follows: ")
            + self._rider_list(ride)
            + f'<br/><p> To view the ride page, <a href="'
            f'{escape(self.ride_link(ride.id), quote=True)}">click here</a>.</p>'
        )
        return OutgoingMail(
            recipients=tuple(recipients),
            subject=f"Reminder: your ride to {ride.arriving_at} leaves on {on}",
            html=html,
        )
