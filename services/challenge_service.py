"""
Challenge, team and person bookkeeping used by the bot commands.

Every function takes the caller's session and commits its own changes.
User-facing refusals are raised as ChallengeError with a displayable message.
"""
import secrets
import string
from datetime import timedelta

from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from config import get_join_code_length
from helpers.timezone_utils import is_valid_timezone, utcnow
from models.challenge import Challenge, ChallengeState, ChallengeType
from models.challenge_participant import ChallengeParticipant
from models.challenge_team import ChallengeTeam
from models.person import Person
from services.errors import ChallengeError

JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_join_code(length=None):
    """Random uppercase [A-Z0-9] code"""
    length = length or get_join_code_length()
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(length))


async def find_or_create_person(external_id: str, handle: str, session):
    """Upsert a person on first contact, keeping the handle current."""
    person = await Person.find_by_external_id(external_id, session)
    if person:
        if handle and person.handle != handle:
            person.handle = handle
            await session.commit()
        return person

    person = Person(external_id=external_id, handle=handle, admin=False)
    session.add(person)
    await session.commit()
    logger.info(f"Created person {person.id} for {external_id}")
    return person


async def link_tracking_account(person_id: int, tracking_user_id: str, session):
    """Record which time-tracking account a person codes under."""
    tracking_user_id = (tracking_user_id or "").strip()
    if not tracking_user_id:
        raise ChallengeError("A time-tracking user id is required")

    owner = await Person.find_by_tracking_user_id(tracking_user_id, session)
    if owner and owner.id != person_id:
        raise ChallengeError("That time-tracking account is already linked to someone else")

    person = await session.get(Person, person_id)
    person.tracking_user_id = tracking_user_id
    await session.commit()
    logger.info(f"Linked person {person_id} to tracking user {tracking_user_id}")
    return person


async def get_challenge(challenge_id: int, session):
    challenge = await session.get(Challenge, challenge_id)
    if challenge is None:
        raise ChallengeError("Challenge not found")
    return challenge


async def create_challenge(session, name: str, challenge_type=ChallengeType.DAILY, minimum_time_minutes=None,
                           editor_constraint=None, language_constraint=None, minimum_team_size=1):
    """Create a challenge that is open for signups until it is started."""
    name = name.strip()
    if not name:
        raise ChallengeError("Challenge name is required")

    existing = await session.execute(select(Challenge).where(Challenge.name == name))
    if existing.scalar_one_or_none():
        raise ChallengeError(f"A challenge named \"{name}\" already exists")

    if minimum_time_minutes is not None and minimum_time_minutes < 0:
        raise ChallengeError("Minimum time cannot be negative")
    if minimum_team_size < 1:
        raise ChallengeError("Minimum team size must be at least 1")

    challenge = Challenge(
        name=name,
        challenge_type=ChallengeType(challenge_type),
        minimum_time_minutes=minimum_time_minutes,
        editor_constraint=editor_constraint or None,
        language_constraint=language_constraint or None,
        minimum_team_size=minimum_team_size
    )
    session.add(challenge)
    await session.commit()
    logger.info(f"Created challenge {challenge.id} ({name})")
    return challenge


async def start_challenge(challenge_id: int, session, duration_days=None, now=None):
    """Start now; with a duration the end time is fixed, otherwise it stays open-ended."""
    now = now or utcnow()
    challenge = await get_challenge(challenge_id, session)
    if challenge.started_time is not None:
        raise ChallengeError("This challenge has already been started")
    if duration_days is not None and duration_days <= 0:
        raise ChallengeError("Duration must be at least one day")

    challenge.started_time = now
    challenge.ended_time = now + timedelta(days=duration_days) if duration_days else None
    await session.commit()
    logger.info(f"Started challenge {challenge.id} at {now} (ends {challenge.ended_time})")
    return challenge


async def end_challenge(challenge_id: int, session, now=None):
    now = now or utcnow()
    challenge = await get_challenge(challenge_id, session)
    if challenge.state(now) != ChallengeState.STARTED:
        raise ChallengeError("Only a running challenge can be ended")

    challenge.ended_time = now
    await session.commit()
    logger.info(f"Ended challenge {challenge.id} at {now}")
    return challenge


async def list_active_challenges(session, now=None):
    """Challenges that have not ended yet (open for signups or running)"""
    now = now or utcnow()
    result = await session.execute(
        select(Challenge)
        .where(or_(Challenge.ended_time.is_(None), Challenge.ended_time > now))
        .order_by(Challenge.id)
    )
    return result.scalars().all()


async def list_participations_for_person(person_id: int, session):
    result = await session.execute(
        select(ChallengeParticipant)
        .where(ChallengeParticipant.person_id == person_id)
        .options(selectinload(ChallengeParticipant.team))
    )
    return result.scalars().all()


async def _remove_participation(participation, session):
    """Delete a participation and its team when nobody is left on it."""
    team_id = participation.team_id
    await session.delete(participation)
    await session.flush()

    remaining = await session.execute(
        select(func.count(ChallengeParticipant.id)).where(ChallengeParticipant.team_id == team_id)
    )
    if remaining.scalar_one() == 0:
        team = await session.get(ChallengeTeam, team_id)
        if team:
            await session.delete(team)
            await session.flush()
            logger.info(f"Deleted empty team {team_id}")


def _check_timezone(timezone):
    if not is_valid_timezone(timezone):
        raise ChallengeError(f"Unknown timezone \"{timezone}\". Use an IANA name like America/New_York")


async def create_team(challenge_id: int, person_id: int, timezone: str, session, now=None):
    """Create a team with a fresh join code and its first participant."""
    now = now or utcnow()
    challenge = await get_challenge(challenge_id, session)
    if challenge.state(now) != ChallengeState.OPEN_FOR_SIGNUPS:
        raise ChallengeError("Cannot create teams after the challenge has started")
    _check_timezone(timezone)

    existing = await ChallengeParticipant.find_for_person_in_challenge(person_id, challenge_id, session)
    if existing:
        raise ChallengeError(
            f"You're already in a team for this challenge (Team Code: {existing.team.join_code})"
        )

    join_code = generate_join_code()
    while await ChallengeTeam.find_by_code(challenge_id, join_code, session):
        join_code = generate_join_code()

    team = ChallengeTeam(challenge_id=challenge_id, join_code=join_code)
    team.members.append(ChallengeParticipant(person_id=person_id, timezone=timezone))
    session.add(team)
    await session.commit()
    logger.info(f"Person {person_id} created team {team.id} ({join_code}) in challenge {challenge_id}")
    return team


async def join_team(challenge_id: int, person_id: int, join_code: str, timezone: str, session, now=None):
    """Join a team by code, leaving any previous team in the same challenge."""
    now = now or utcnow()
    challenge = await get_challenge(challenge_id, session)
    if challenge.state(now) == ChallengeState.ENDED:
        raise ChallengeError("This challenge has already ended")
    _check_timezone(timezone)

    team = await ChallengeTeam.find_by_code(challenge_id, join_code, session)
    if team is None:
        raise ChallengeError("Team not found. Please check the code and try again")

    current = await ChallengeParticipant.find_for_person_in_challenge(person_id, challenge_id, session)
    if current:
        if current.team_id == team.id:
            raise ChallengeError("You're already in this team!")
        if challenge.state(now) == ChallengeState.STARTED:
            raise ChallengeError("Cannot switch teams after the challenge has started")
        await _remove_participation(current, session)

    participant = ChallengeParticipant(team_id=team.id, person_id=person_id, timezone=timezone)
    session.add(participant)
    await session.commit()
    logger.info(f"Person {person_id} joined team {team.id} in challenge {challenge_id}")
    return participant


async def leave_team(challenge_id: int, person_id: int, session, now=None):
    now = now or utcnow()
    challenge = await get_challenge(challenge_id, session)
    if challenge.state(now) != ChallengeState.OPEN_FOR_SIGNUPS:
        raise ChallengeError("Cannot leave teams after the challenge has started")

    current = await ChallengeParticipant.find_for_person_in_challenge(person_id, challenge_id, session)
    if current is None:
        raise ChallengeError("You're not in a team for this challenge")

    await _remove_participation(current, session)
    await session.commit()
    logger.info(f"Person {person_id} left challenge {challenge_id}")


async def challenge_overview(challenge_id: int, session):
    """Team and people counts, split by whether teams reach the minimum size"""
    challenge = await get_challenge(challenge_id, session)
    result = await session.execute(
        select(ChallengeTeam.id, func.count(ChallengeParticipant.id))
        .outerjoin(ChallengeParticipant, ChallengeParticipant.team_id == ChallengeTeam.id)
        .where(ChallengeTeam.challenge_id == challenge_id)
        .group_by(ChallengeTeam.id)
    )
    member_counts = [count for _, count in result.all()]
    complete = [count for count in member_counts if count >= challenge.minimum_team_size]

    return {
        "challenge_id": challenge.id,
        "total_teams": len(member_counts),
        "total_people": sum(member_counts),
        "complete_teams": len(complete),
        "people_in_complete_teams": sum(complete)
    }
