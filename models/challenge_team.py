from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, select
from sqlalchemy.orm import relationship
from database.models_base import Base
from helpers.timezone_utils import utcnow


class ChallengeTeam(Base):
    __tablename__ = 'challenge_teams'

    id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_id = Column(Integer, ForeignKey('challenges.id'), nullable=False)
    join_code = Column(String(16), nullable=False)  # Stored uppercase
    created_at = Column(DateTime, default=utcnow)

    challenge = relationship("Challenge", back_populates="teams")
    members = relationship("ChallengeParticipant", back_populates="team", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint('challenge_id', 'join_code', name='uq_team_join_code'),
    )

    @classmethod
    async def find_by_code(cls, challenge_id: int, join_code: str, session):
        """Case-insensitive join code lookup within one challenge."""
        result = await session.execute(
            select(cls).where(
                cls.challenge_id == challenge_id,
                cls.join_code == join_code.strip().upper()
            )
        )
        return result.scalar_one_or_none()

    def __repr__(self):
        return f"<ChallengeTeam({self.id}: {self.join_code})>"
