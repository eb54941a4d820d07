import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum, func, select
from sqlalchemy.orm import relationship
from database.models_base import Base
from helpers.timezone_utils import utcnow


class ChallengeType(str, enum.Enum):
    DAILY = "DAILY"
    CUMULATIVE = "CUMULATIVE"


class ChallengeState(str, enum.Enum):
    OPEN_FOR_SIGNUPS = "open_for_signups"
    STARTED = "started"
    ENDED = "ended"


class Challenge(Base):
    __tablename__ = 'challenges'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), unique=True, nullable=False)
    started_time = Column(DateTime, nullable=True)  # NULL = still open for signups
    ended_time = Column(DateTime, nullable=True)    # NULL = open-ended
    challenge_type = Column(Enum(ChallengeType), nullable=False, default=ChallengeType.DAILY)
    minimum_time_minutes = Column(Integer, nullable=True)
    editor_constraint = Column(String(128), nullable=True)
    language_constraint = Column(String(128), nullable=True)
    minimum_team_size = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    teams = relationship("ChallengeTeam", back_populates="challenge", cascade="all, delete-orphan")

    def state(self, now: datetime) -> ChallengeState:
        """Derive the lifecycle state from the two timestamps (naive UTC)."""
        if self.started_time is None:
            return ChallengeState.OPEN_FOR_SIGNUPS
        if self.ended_time is not None and now >= self.ended_time:
            return ChallengeState.ENDED
        if now >= self.started_time:
            return ChallengeState.STARTED
        return ChallengeState.OPEN_FOR_SIGNUPS

    def is_refresh_eligible(self, now: datetime, trailing_window) -> bool:
        """Started, and either still running or ended no more than trailing_window ago."""
        if self.started_time is None or self.started_time > now:
            return False
        if self.ended_time is None:
            return True
        return self.ended_time >= now - trailing_window

    def minimum_time_seconds(self, default_minutes: int) -> int:
        minutes = self.minimum_time_minutes if self.minimum_time_minutes is not None else default_minutes
        return minutes * 60

    @classmethod
    async def first_challenge_start_at(cls, session):
        """Earliest started_time across all challenges, or None."""
        result = await session.execute(select(func.min(cls.started_time)))
        return result.scalar_one_or_none()

    def __repr__(self):
        return f"<Challenge({self.id}: {self.name})>"
