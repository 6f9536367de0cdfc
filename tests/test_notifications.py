"""Unit tests for the notification composer (pure, no I/O)."""

from datetime import datetime, timezone

import pytest

from src.domain.entities import NotificationEvent, Ride, RiderSet, User
from src.domain.enums import RideEvent
from src.domain.notifications import TEMPLATES

ALICE = User(id=1, username="alice", email="alice@rice.edu", first_name="Alice", last_name="Adams")
BOB = User(id=2, username="bob", email="bob@rice.edu", first_name="Bob", last_name="Baker")
CAROL = User(id=3, username="carol", email="carol@rice.edu")

# 19:30 UTC on 21 Oct 2026 is 2:30 PM Central Daylight Time.
DEPARTS = datetime(2026, 10, 21, 19, 30, tzinfo=timezone.utc)


def make_ride(*riders: User) -> Ride:
    return Ride(
        id=7,
        departing_datetime=DEPARTS,
        departing_from="Rice University",
        arriving_at="IAH Airport",
        number_riders=4,
        riders=RiderSet(riders),
    )


class TestFormatting:
    def test_date_in_reference_zone(self, composer):
        assert composer.format_date(DEPARTS) == "10/21/2026"

    def test_time_in_reference_zone(self, composer):
        assert composer.format_time(DEPARTS) == "02:30 PM CDT"

    def test_late_utc_departure_keeps_local_date(self, composer):
        late = datetime(2026, 10, 22, 3, 0, tzinfo=timezone.utc)
        assert composer.format_date(late) == "10/21/2026"
        assert composer.format_time(late) == "10:00 PM CDT"

    def test_standard_time_after_dst_ends(self, composer):
        winter = datetime(2026, 12, 1, 18, 0, tzinfo=timezone.utc)
        assert composer.format_time(winter) == "12:00 PM CST"


class TestCompose:
    def test_exactly_four_templates(self):
        assert set(TEMPLATES) == set(RideEvent)

    def test_created_is_personal_only(self, composer):
        mails = composer.compose(NotificationEvent(RideEvent.CREATED, make_ride(ALICE), ALICE))
        assert len(mails) == 1
        mail = mails[0]
        assert mail.recipients == ("alice@rice.edu",)
        assert mail.subject == "You have created a ride to IAH Airport on 10/21/2026"
        assert mail.html.startswith(
            "You have created a ride from Rice University to IAH Airport on 10/21/2026!"
        )
        assert "<h4>Riders" not in mail.html
        assert "https://carpool.example.edu/rides/7" in mail.html

    def test_joined_notifies_others_and_joiner(self, composer):
        ride = make_ride(ALICE, CAROL, BOB)
        event = NotificationEvent(RideEvent.JOINED, ride, BOB)
        others, personal = composer.compose(event)

        assert others.recipients == ("alice@rice.edu", "carol@rice.edu")
        assert others.subject == "User Bob Baker has joined your ride to IAH Airport on 10/21/2026!"
        assert others.html.startswith("<p>User Bob Baker has joined your ride. </p>")
        assert "<h4>Riders (3)</h4>" in others.html
        assert "<li>Alice Adams</li><li>carol</li><li>Bob Baker</li>" in others.html

        assert personal.recipients == ("bob@rice.edu",)
        assert personal.subject == "You have joined a ride to IAH Airport on 10/21/2026"

    def test_left_notifies_remaining_riders(self, composer):
        ride = make_ride(ALICE)
        event = NotificationEvent(RideEvent.LEFT, ride, BOB)
        others, personal = composer.compose(event)
        assert others.recipients == ("alice@rice.edu",)
        assert others.subject == "User Bob Baker has left your ride!"
        assert "<h4>Riders (1)</h4>" in others.html
        assert personal.subject == "You have left a ride to IAH Airport on 10/21/2026"
        assert personal.html.startswith(
            "You have left a ride from Rice University to IAH Airport on 10/21/2026!"
        )

    def test_no_others_mail_when_nobody_else_is_on_the_ride(self, composer):
        event = NotificationEvent(RideEvent.JOINED, make_ride(BOB), BOB)
        mails = composer.compose(event)
        assert [m.recipients for m in mails] == [("bob@rice.edu",)]

    def test_deleted_describes_previous_state(self, composer):
        event = NotificationEvent(RideEvent.DELETED, make_ride(), ALICE)
        (mail,) = composer.compose(event)
        assert mail.recipients == ("alice@rice.edu",)
        assert "the ride has been deleted" in mail.html
        assert "was previously as such" in mail.html
        assert "<b>Departure time</b>: 10/21/2026 02:30 PM CDT" in mail.html
        assert "click here" not in mail.html
        assert "<h4>Riders" not in mail.html

    def test_triggering_user_excluded_even_if_listed(self, composer):
        duplicate = User(id=99, username="bob", email="bob@rice.edu")
        ride = make_ride(ALICE, duplicate)
        event = NotificationEvent(RideEvent.JOINED, ride, BOB)
        others = composer.compose(event)[0]
        assert others.recipients == ("alice@rice.edu",)

    def test_username_fallback_in_subject_and_list(self, composer):
        ride = make_ride(ALICE, CAROL)
        event = NotificationEvent(RideEvent.JOINED, ride, CAROL)
        others = composer.compose(event)[0]
        assert others.subject.startswith("User carol has joined")
        assert "<li>carol</li>" in others.html

    @pytest.mark.parametrize("kind", list(RideEvent))
    def test_never_raises_for_nameless_riders(self, composer, kind):
        ride = make_ride(CAROL, User(id=4, username="dave", email="dave@rice.edu"))
        event = NotificationEvent(kind, ride, CAROL)
        assert composer.compose(event)

    def test_user_text_is_escaped_in_html_only(self, composer):
        ride = make_ride(ALICE)
        ride.arriving_at = "A&B <Terminal>"
        (mail,) = composer.compose(NotificationEvent(RideEvent.CREATED, ride, ALICE))
        assert mail.subject == "You have created a ride to A&B <Terminal> on 10/21/2026"
        assert "A&amp;B &lt;Terminal&gt;" in mail.html
        assert "<Terminal>" not in mail.html


class TestReminder:
    def test_reminder_lists_riders(self, composer):
        ride = make_ride(ALICE, BOB)
        mail = composer.compose_reminder(ride, ["alice@rice.edu", "bob@rice.edu"])
        assert mail.recipients == ("alice@rice.edu", "bob@rice.edu")
        assert mail.subject == "Reminder: your ride to IAH Airport leaves on 10/21/2026"
        assert "02:30 PM CDT" in mail.html
        assert "<li>Alice Adams</li><li>Bob Baker</li>" in mail.html
