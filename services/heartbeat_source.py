"""
Read-only access to the time-tracking service's own database.

Two questions are asked of it: which users produced heartbeats since an
instant, and what API key a user authenticates with.
"""
from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from config import get_heartbeat_database_url
from helpers.timezone_utils import as_utc, ensure_datetime

# heartbeats.time holds unix epoch seconds
USERS_WITH_HEARTBEATS_SINCE = text("""
    SELECT
        u.id AS user_id,
        COUNT(h.id) AS new_heartbeat_count,
        MIN(h.time) AS earliest_heartbeat,
        MAX(h.time) AS latest_heartbeat
    FROM
        heartbeats h
        JOIN users u ON u.id = h.user_id
    WHERE
        h.time >= :since
    GROUP BY
        u.id
""")

API_KEY_FOR_USER = text("""
    SELECT api_key
    FROM users
    WHERE id = :user_id
""")


@dataclass(frozen=True)
class HeartbeatActivity:
    """One user's heartbeat window since the last poll (naive UTC bounds)."""
    user_id: str
    earliest_heartbeat_utc: datetime
    latest_heartbeat_utc: datetime
    new_heartbeat_count: int = 0

    def merged_with(self, other):
        """Smallest window covering both activities of the same user."""
        return HeartbeatActivity(
            user_id=self.user_id,
            earliest_heartbeat_utc=min(self.earliest_heartbeat_utc, other.earliest_heartbeat_utc),
            latest_heartbeat_utc=max(self.latest_heartbeat_utc, other.latest_heartbeat_utc),
            new_heartbeat_count=self.new_heartbeat_count + other.new_heartbeat_count
        )


class HeartbeatSource:
    def __init__(self, engine):
        self.engine = engine

    @classmethod
    def from_config(cls):
        url = get_heartbeat_database_url()
        if not url:
            raise RuntimeError("HEARTBEAT_DATABASE_URL is not set")
        return cls(create_async_engine(url, echo=False))

    async def users_with_heartbeats_since(self, since: datetime) -> list[HeartbeatActivity]:
        """One row per distinct user with at least one heartbeat at or after `since`."""
        async with self.engine.connect() as conn:
            result = await conn.execute(
                USERS_WITH_HEARTBEATS_SINCE,
                {"since": as_utc(since).timestamp()}
            )
            rows = result.fetchall()

        activity = [
            HeartbeatActivity(
                user_id=str(row.user_id),
                earliest_heartbeat_utc=ensure_datetime(row.earliest_heartbeat),
                latest_heartbeat_utc=ensure_datetime(row.latest_heartbeat),
                new_heartbeat_count=int(row.new_heartbeat_count or 0)
            )
            for row in rows
        ]
        logger.debug(f"Found {len(activity)} users with heartbeats since {since}")
        return activity

    async def api_key_for_user(self, user_id: str):
        """Return the user's API key, or None when there is no usable one."""
        async with self.engine.connect() as conn:
            result = await conn.execute(API_KEY_FOR_USER, {"user_id": user_id})
            row = result.first()

        if row is None or not row.api_key:
            return None
        return row.api_key

    async def dispose(self):
        await self.engine.dispose()
