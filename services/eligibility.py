"""
Which of a user's challenge participations should be refreshed right now.

A participation qualifies when its challenge has started and is either still
running or ended within the trailing window (7 days by default), so late
heartbeats for a just-finished challenge are still picked up.
"""
from datetime import datetime

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from config import get_trailing_window
from models.challenge import Challenge
from models.challenge_participant import ChallengeParticipant
from models.challenge_team import ChallengeTeam
from models.person import Person


async def get_eligible_participations(user_id: str, session, now: datetime, trailing_window=None):
    """
    Return the user's ChallengeParticipant rows that need a refresh.

    `user_id` is the heartbeat source id: a linked tracking_user_id, or the
    external id for people who never linked one.

    Each returned participant has `person` and `team.challenge` loaded.
    """
    if trailing_window is None:
        trailing_window = get_trailing_window()

    stmt = (
        select(ChallengeParticipant)
        .join(Person, ChallengeParticipant.person_id == Person.id)
        .join(ChallengeTeam, ChallengeParticipant.team_id == ChallengeTeam.id)
        .join(Challenge, ChallengeTeam.challenge_id == Challenge.id)
        .where(
            func.coalesce(Person.tracking_user_id, Person.external_id) == user_id,
            Challenge.started_time.isnot(None)
        )
        .options(
            selectinload(ChallengeParticipant.person),
            selectinload(ChallengeParticipant.team).selectinload(ChallengeTeam.challenge)
        )
        .order_by(ChallengeParticipant.id)
    )
    result = await session.execute(stmt)
    participations = result.scalars().all()

    eligible = [
        p for p in participations
        if p.team.challenge.is_refresh_eligible(now, trailing_window)
    ]
    logger.debug(f"User {user_id}: {len(eligible)} of {len(participations)} participations eligible for refresh")
    return eligible
