from sqlalchemy import Column, Integer, String, DateTime, Boolean, select
from sqlalchemy.orm import relationship
from database.models_base import Base
from helpers.timezone_utils import utcnow


class Person(Base):
    __tablename__ = 'people'

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(64), unique=True, nullable=False)  # Discord user id
    tracking_user_id = Column(String(64), unique=True, nullable=True)  # Heartbeat source user id, once linked
    handle = Column(String(128), nullable=True)
    admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    participations = relationship("ChallengeParticipant", back_populates="person")

    @property
    def tracking_id(self):
        """Id used against the heartbeat source and summary API; unlinked people use their external id."""
        return self.tracking_user_id or self.external_id

    @classmethod
    async def find_by_external_id(cls, external_id: str, session):
        result = await session.execute(
            select(cls).where(cls.external_id == external_id)
        )
        return result.scalar_one_or_none()

    @classmethod
    async def find_by_tracking_user_id(cls, tracking_user_id: str, session):
        result = await session.execute(
            select(cls).where(cls.tracking_user_id == tracking_user_id)
        )
        return result.scalar_one_or_none()

    def __repr__(self):
        return f"<Person({self.id}: {self.external_id})>"
