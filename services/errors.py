"""
Failure types raised by the reconciliation engine.

Each one is contained at the smallest unit of work (one participant, or one
participant and one date) by the poller; none of them stop a poll cycle.
"""


class ReconciliationError(Exception):
    """Base class for failures while refreshing daily summaries."""


class ParticipantUnavailable(ReconciliationError):
    """The participant cannot be refreshed at all this cycle; skip it."""


class MissingCredential(ParticipantUnavailable):
    """The participant has no API key for the time-tracking service."""

    def __init__(self, user_id):
        super().__init__(f"No API key found for user {user_id}")
        self.user_id = user_id


class InvalidTimezone(ParticipantUnavailable):
    """The participant's stored timezone is not a known IANA identifier."""

    def __init__(self, timezone_name):
        super().__init__(f"Unknown timezone {timezone_name!r}")
        self.timezone_name = timezone_name


class UpstreamError(ReconciliationError):
    """The summary API failed, timed out or returned an unusable payload."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


class StoreError(ReconciliationError):
    """Reading or writing a daily summary row failed."""


class ChallengeError(ValueError):
    """A challenge/team action was refused; the message is shown to the user."""
