"""Domain enumerations."""

import enum


class RideState(str, enum.Enum):
    ABSENT = "ABSENT"
    ACTIVE = "ACTIVE"


class RideEvent(str, enum.Enum):
    CREATED = "CREATED"
    JOINED = "JOINED"
    LEFT = "LEFT"
    DELETED = "DELETED"


# Events that also notify the other riders, not just the triggering user.
BROADCAST_EVENTS: frozenset[RideEvent] = frozenset({RideEvent.JOINED, RideEvent.LEFT})
