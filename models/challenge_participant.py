from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, select
from sqlalchemy.orm import relationship, selectinload
from database.models_base import Base
from helpers.timezone_utils import utcnow


class ChallengeParticipant(Base):
    __tablename__ = 'challenge_participants'

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey('challenge_teams.id'), nullable=False)
    person_id = Column(Integer, ForeignKey('people.id'), nullable=False)
    timezone = Column(String(64), nullable=False)  # IANA name captured when joining
    created_at = Column(DateTime, default=utcnow)

    team = relationship("ChallengeTeam", back_populates="members")
    person = relationship("Person", back_populates="participations")
    daily_summaries = relationship(
        "ChallengeParticipantDailySummary",
        back_populates="participant",
        cascade="all, delete-orphan"
    )

    @classmethod
    async def find_for_person_in_challenge(cls, person_id: int, challenge_id: int, session):
        """A person has at most one participation per challenge."""
        from models.challenge_team import ChallengeTeam

        result = await session.execute(
            select(cls)
            .join(ChallengeTeam, cls.team_id == ChallengeTeam.id)
            .where(cls.person_id == person_id, ChallengeTeam.challenge_id == challenge_id)
            .options(selectinload(cls.team))
        )
        return result.scalars().first()

    def __repr__(self):
        return f"<ChallengeParticipant({self.id}: person {self.person_id}, team {self.team_id})>"
