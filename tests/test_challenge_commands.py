"""
Tests for the challenge slash commands, called directly with a mocked context.
"""
import pytest
import pytest_asyncio
import tempfile
import os
from unittest.mock import AsyncMock, MagicMock, patch

from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine

from cogs.challenge_commands import ChallengeCommands
from database.db_session import AsyncSessionLocal
from database.models_base import Base
from models import Challenge, Person


class MockContext:
    """Mock application context for testing"""
    def __init__(self, user_id: int, name: str):
        self.author = MagicMock()
        self.author.id = user_id
        self.author.name = name
        self.defer = AsyncMock()
        self.followup = MagicMock()
        self.followup.send = AsyncMock()

    @property
    def sent_message(self):
        return self.followup.send.call_args.args[0]


@pytest_asyncio.fixture
async def test_db():
    """Create a temporary test database"""
    temp_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
    temp_db.close()

    engine = create_async_engine(f"sqlite+aiosqlite:///{temp_db.name}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    AsyncSessionLocal.configure(bind=engine)

    yield engine

    await engine.dispose()
    os.unlink(temp_db.name)


@pytest.fixture
def cog():
    return ChallengeCommands(MagicMock())


@pytest.mark.asyncio
async def test_create_challenge_without_minimum_uses_configured_default(test_db, cog):
    ctx = MockContext(111, "admin")

    with patch("cogs.challenge_commands.get_default_minimum_time_minutes", return_value=20):
        await cog.create_challenge.callback(cog, ctx, "Sprint")

    assert "Minimum Time: 20 minutes/day" in ctx.sent_message
    async with AsyncSessionLocal() as session:
        challenge = (await session.execute(select(Challenge))).scalar_one()
    # Stored empty so later config changes still apply
    assert challenge.minimum_time_minutes is None


@pytest.mark.asyncio
async def test_create_challenge_with_explicit_minimum(test_db, cog):
    ctx = MockContext(111, "admin")

    await cog.create_challenge.callback(cog, ctx, "Marathon", minimum_minutes=45)

    assert "Minimum Time: 45 minutes/day" in ctx.sent_message
    async with AsyncSessionLocal() as session:
        challenge = (await session.execute(select(Challenge))).scalar_one()
    assert challenge.minimum_time_minutes == 45


@pytest.mark.asyncio
async def test_link_account_stores_tracking_user_id(test_db, cog):
    ctx = MockContext(222, "alice")

    await cog.link_account.callback(cog, ctx, " alice-hackatime ")

    assert "alice-hackatime" in ctx.sent_message
    async with AsyncSessionLocal() as session:
        person = await Person.find_by_external_id("222", session)
    assert person.tracking_user_id == "alice-hackatime"
