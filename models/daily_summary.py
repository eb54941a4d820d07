from sqlalchemy import Column, Integer, String, Date, DateTime, JSON, ForeignKey, UniqueConstraint, Index, func, select
from sqlalchemy.orm import relationship
from database.models_base import Base


def total_seconds_from_payload(payload) -> int:
    """Sum every category total in a summary payload; missing data counts as zero."""
    if not payload:
        return 0
    categories = payload.get("categories") or []
    return int(sum((category or {}).get("total") or 0 for category in categories))


class ChallengeParticipantDailySummary(Base):
    """
    Authoritative time total for one participant on one local calendar day.

    Rows are only ever created or fully replaced, never merged or deleted.
    """
    __tablename__ = 'challenge_participant_daily_summaries'

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False)
    challenge_participant_id = Column(Integer, ForeignKey('challenge_participants.id'), nullable=False)
    timezone = Column(String(64), nullable=False)
    json = Column(JSON, nullable=False)
    json_last_updated = Column(DateTime, nullable=False)

    participant = relationship("ChallengeParticipant", back_populates="daily_summaries")

    __table_args__ = (
        UniqueConstraint('date', 'challenge_participant_id', name='uq_summary_date_participant'),
        Index('idx_summary_last_updated', 'json_last_updated'),
    )

    @property
    def total_seconds(self) -> int:
        return total_seconds_from_payload(self.json)

    @classmethod
    async def find(cls, day, participant_id: int, session):
        result = await session.execute(
            select(cls).where(cls.date == day, cls.challenge_participant_id == participant_id)
        )
        return result.scalar_one_or_none()

    @classmethod
    async def upsert(cls, day, participant_id: int, timezone: str, payload, updated_at, session):
        """Create the (date, participant) row or fully replace its payload and timestamp."""
        summary = await cls.find(day, participant_id, session)

        if summary:
            summary.timezone = timezone
            summary.json = payload
            summary.json_last_updated = updated_at
        else:
            summary = cls(
                date=day,
                challenge_participant_id=participant_id,
                timezone=timezone,
                json=payload,
                json_last_updated=updated_at
            )
            session.add(summary)

        await session.commit()
        return summary

    @classmethod
    async def last_successful_summary_at(cls, session):
        """Most recent json_last_updated across every row, or None."""
        result = await session.execute(select(func.max(cls.json_last_updated)))
        return result.scalar_one_or_none()

    def __repr__(self):
        return f"<ChallengeParticipantDailySummary({self.challenge_participant_id} @ {self.date})>"
