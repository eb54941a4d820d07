import math
from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from config import get_default_minimum_time_minutes
from helpers.timezone_utils import local_date
from models.challenge import Challenge
from models.challenge_participant import ChallengeParticipant
from models.challenge_team import ChallengeTeam
from services.errors import InvalidTimezone

STATUS_NONE = "none"
STATUS_PARTIAL = "partial"
STATUS_MET = "met"


def classify_time(time_seconds, threshold_seconds):
    """none = nothing logged, partial = below the daily minimum, met = at or above it"""
    if time_seconds <= 0:
        return STATUS_NONE
    if time_seconds < threshold_seconds:
        return STATUS_PARTIAL
    return STATUS_MET


def classify_team(member_statuses, member_seconds):
    """A team only meets the day when every member met it individually"""
    if member_statuses and all(status == STATUS_MET for status in member_statuses):
        return STATUS_MET
    if any(seconds > 0 for seconds in member_seconds):
        return STATUS_PARTIAL
    return STATUS_NONE


def rank_teams(team_totals):
    """
    Order [(team_id, seconds)] by seconds descending.

    Ties keep team id ascending so repeated computation gives the same order.
    """
    by_id = sorted(team_totals, key=lambda t: t[0])
    return sorted(by_id, key=lambda t: t[1], reverse=True)


def _daily_seconds_by_member(teams):
    """{participant_id: {date: seconds}} for every member of every team"""
    seconds = {}
    for team in teams:
        for member in team.members:
            seconds[member.id] = {s.date: s.total_seconds for s in member.daily_summaries}
    return seconds


def _day_title(challenge, day, timezone_name):
    if challenge.started_time is None:
        return day.isoformat()

    try:
        start_day = local_date(challenge.started_time, timezone_name)
    except InvalidTimezone:
        start_day = local_date(challenge.started_time, "UTC")
    day_number = (day - start_day).days + 1

    if challenge.ended_time is None:
        return f"Day {day_number}"

    total_days = math.ceil((challenge.ended_time - challenge.started_time).total_seconds() / 86400)
    return f"Day {day_number}/{total_days}"


def build_leaderboard_view(challenge, teams, viewer_external_id, threshold_seconds):
    """
    Turn stored daily summaries into per-day rankings from one viewer's point of view.

    Args:
        challenge: the Challenge being viewed
        teams: its ChallengeTeams with members, member.person and member.daily_summaries loaded
        viewer_external_id: external id of the person looking at the board
        threshold_seconds: daily minimum for a "met" status

    Returns:
        {"challenge_id": ..., "days": [...]} with the most recent date first.
        A viewer without a team in the challenge gets no days.
    """
    view = {"challenge_id": challenge.id, "challenge_name": challenge.name, "days": []}

    viewer = None
    for team in teams:
        for member in team.members:
            if member.person.external_id == viewer_external_id:
                viewer = member
    if viewer is None:
        return view

    member_seconds = _daily_seconds_by_member(teams)
    teams_by_id = {team.id: team for team in teams}
    viewer_team = teams_by_id[viewer.team_id]

    # Only days with at least one stored summary anywhere in the challenge
    all_dates = set()
    for per_day in member_seconds.values():
        all_dates.update(per_day.keys())

    for day in sorted(all_dates, reverse=True):
        def participant_entry(member):
            seconds = member_seconds[member.id].get(day, 0)
            return {
                "participant_id": member.id,
                "external_id": member.person.external_id,
                "handle": member.person.handle,
                "status": classify_time(seconds, threshold_seconds),
                "time_seconds": seconds
            }

        team_totals = [
            (team.id, sum(member_seconds[m.id].get(day, 0) for m in team.members))
            for team in teams
        ]
        ranked = rank_teams(team_totals)
        totals = dict(ranked)
        places = {team_id: place for place, (team_id, _) in enumerate(ranked, 1)}
        top_team_id = ranked[0][0]

        participants = sorted(
            (participant_entry(m) for m in viewer_team.members),
            key=lambda p: p["time_seconds"],
            reverse=True
        )
        top_participants = sorted(
            (participant_entry(m) for m in teams_by_id[top_team_id].members),
            key=lambda p: p["time_seconds"],
            reverse=True
        )

        view["days"].append({
            "title": _day_title(challenge, day, viewer.timezone),
            "date": day,
            "team_status": classify_team(
                [p["status"] for p in participants],
                [p["time_seconds"] for p in participants]
            ),
            "participants": participants,
            "leaderboard": {
                "my_team": {
                    "team_id": viewer_team.id,
                    "team_place": places[viewer_team.id],
                    "team_time_seconds": totals[viewer_team.id],
                    "total_teams": len(ranked)
                },
                "top_team": {
                    "team_id": top_team_id,
                    "team_place": 1,
                    "team_time_seconds": totals[top_team_id],
                    "total_teams": len(ranked),
                    "participants": top_participants
                }
            }
        })

    return view


async def get_leaderboard_view(challenge_id, viewer_external_id, session, default_minimum_minutes=None):
    """Load a challenge's teams and summaries and build the viewer's leaderboard"""
    challenge = await session.get(Challenge, challenge_id)
    if challenge is None:
        logger.warning(f"Leaderboard requested for unknown challenge {challenge_id}")
        return {"challenge_id": challenge_id, "challenge_name": None, "days": []}

    result = await session.execute(
        select(ChallengeTeam)
        .where(ChallengeTeam.challenge_id == challenge_id)
        .options(
            selectinload(ChallengeTeam.members).selectinload(ChallengeParticipant.person),
            selectinload(ChallengeTeam.members).selectinload(ChallengeParticipant.daily_summaries)
        )
        .order_by(ChallengeTeam.id)
    )
    teams = result.scalars().all()

    if default_minimum_minutes is None:
        default_minimum_minutes = get_default_minimum_time_minutes()
    threshold_seconds = challenge.minimum_time_seconds(default_minimum_minutes)

    view = build_leaderboard_view(challenge, teams, viewer_external_id, threshold_seconds)
    logger.info(f"Built leaderboard for challenge {challenge_id} viewer {viewer_external_id}: {len(view['days'])} days")
    return view
