"""Shared permission decorators for challenge bot commands."""
from discord.ext import commands

from database.db_session import db_session
from models.person import Person


async def is_challenge_admin(ctx):
    """True for the bot owner or a person flagged as admin in the store."""
    if await ctx.bot.is_owner(ctx.author):
        return True
    async with db_session() as session:
        person = await Person.find_by_external_id(str(ctx.author.id), session)
    return bool(person and person.admin)


def has_challenge_admin():
    """Check if user is the bot owner OR an admin person."""
    return commands.check(is_challenge_admin)
