"""
Turn a UTC heartbeat range into the local calendar days that need resyncing.
"""
from helpers.timezone_utils import date_range, local_date


def compute_sync_dates(timezone_name, challenge_started, challenge_ended, heartbeats_start, heartbeats_end):
    """
    Local dates touched by [heartbeats_start, heartbeats_end] that also fall
    inside the challenge's own local date range.

    An open-ended challenge is bounded by the local date of heartbeats_end.
    Raises InvalidTimezone when timezone_name is not a known identifier.
    """
    heartbeat_days = date_range(
        local_date(heartbeats_start, timezone_name),
        local_date(heartbeats_end, timezone_name)
    )

    challenge_start = local_date(challenge_started, timezone_name)
    if challenge_ended is not None:
        challenge_end = local_date(challenge_ended, timezone_name)
    else:
        challenge_end = local_date(heartbeats_end, timezone_name)

    return [day for day in heartbeat_days if challenge_start <= day <= challenge_end]


def dates_for_participant(participant, heartbeats_start, heartbeats_end):
    """compute_sync_dates for a participant with team.challenge loaded"""
    challenge = participant.team.challenge
    return compute_sync_dates(
        participant.timezone,
        challenge.started_time,
        challenge.ended_time,
        heartbeats_start,
        heartbeats_end
    )
