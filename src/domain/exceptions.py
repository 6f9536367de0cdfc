"""Error taxonomy shared by the service, worker and API layers."""


class CarpoolError(Exception):
    """Base class for all carpool domain errors."""


class NotFoundError(CarpoolError):
    """A ride or user id does not resolve, or the user is not on the ride."""


class ConflictError(CarpoolError):
    """The user is already a member of the ride."""


class StoreError(CarpoolError):
    """The authoritative ride write failed."""


class TransportError(CarpoolError):
    """A mail or CAS call failed."""


class AuthenticationError(CarpoolError):
    """The identity provider rejected the ticket or the token is invalid."""
