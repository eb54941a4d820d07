from sqlalchemy import Column, String, DateTime, select
from database.models_base import Base

HEARTBEAT_WATERMARK_KEY = "heartbeat_watermark"


class PollerState(Base):
    """Durable key/instant pairs owned by the heartbeat poller."""
    __tablename__ = 'poller_state'

    key = Column(String(64), primary_key=True)
    value = Column(DateTime, nullable=False)

    @classmethod
    async def get_value(cls, key: str, session):
        result = await session.execute(select(cls.value).where(cls.key == key))
        return result.scalar_one_or_none()

    @classmethod
    async def set_value(cls, key: str, value, session):
        state = await session.get(cls, key)
        if state:
            state.value = value
        else:
            session.add(cls(key=key, value=value))
        await session.commit()
