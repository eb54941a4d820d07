import discord
from discord.ext import commands
from loguru import logger

from config import get_default_minimum_time_minutes, get_default_timezone
from database.db_session import db_session
from helpers.permissions import has_challenge_admin
from helpers.timezone_utils import utcnow
from leaderboard_config import STATE_LABELS, CHALLENGE_LIST_COLOR
from services import challenge_service
from services.errors import ChallengeError


class ChallengeCommands(commands.Cog):
    """Create challenges and manage team membership"""

    def __init__(self, bot):
        self.bot = bot
        logger.info("Challenge commands registered")

    async def _person_for(self, ctx, session):
        return await challenge_service.find_or_create_person(
            str(ctx.author.id), ctx.author.name, session
        )

    async def _respond_error(self, ctx, error):
        await ctx.followup.send(f"❌ {error}", ephemeral=True)

    @discord.slash_command(name="challenges", description="List challenges that are open or running")
    async def challenges(self, ctx):
        await ctx.defer(ephemeral=True)
        now = utcnow()
        try:
            async with db_session() as session:
                person = await self._person_for(ctx, session)
                active = await challenge_service.list_active_challenges(session, now)
                participations = await challenge_service.list_participations_for_person(person.id, session)
                teams_by_challenge = {p.team.challenge_id: p.team for p in participations}

                embed = discord.Embed(title="Challenges", color=CHALLENGE_LIST_COLOR)
                if not active:
                    embed.description = "There are no challenges right now."

                for challenge in active:
                    overview = await challenge_service.challenge_overview(challenge.id, session)
                    minimum = challenge.minimum_time_minutes
                    if minimum is None:
                        minimum = get_default_minimum_time_minutes()
                    lines = [
                        STATE_LABELS[challenge.state(now).value],
                        f"Type: {challenge.challenge_type.value}",
                        f"Minimum Time: {minimum} minutes/day",
                    ]
                    if challenge.minimum_team_size > 1:
                        lines.append(
                            f"{overview['complete_teams']} teams registered "
                            f"({overview['people_in_complete_teams']} people)"
                        )
                    else:
                        lines.append(f"{overview['total_teams']} teams total ({overview['total_people']} people)")

                    team = teams_by_challenge.get(challenge.id)
                    if team:
                        lines.append(f"Your team code: `{team.join_code}`")

                    embed.add_field(name=f"#{challenge.id} {challenge.name}", value="\n".join(lines), inline=False)

            await ctx.followup.send(embed=embed, ephemeral=True)
        except Exception as e:
            logger.error(f"Error in challenges command: {e}")
            await ctx.followup.send("An unexpected error occurred. Please contact an administrator.", ephemeral=True)

    @discord.slash_command(name="create_challenge", description="Create a new coding challenge")
    @discord.option("name", description="Challenge name")
    @discord.option("challenge_type", description="How time is counted", choices=["DAILY", "CUMULATIVE"], default="DAILY")
    @discord.option("minimum_minutes", description="Minimum coding time per day (leave empty for the configured default)", required=False, default=None)
    @discord.option("minimum_team_size", description="Members needed for a team to count", default=1)
    @discord.option("editor", description="Only count time in this editor", required=False, default=None)
    @discord.option("language", description="Only count time in this language", required=False, default=None)
    @has_challenge_admin()
    async def create_challenge(self, ctx, name: str, challenge_type: str = "DAILY", minimum_minutes: int = None,
                               minimum_team_size: int = 1, editor: str = None, language: str = None):
        await ctx.defer(ephemeral=True)
        try:
            async with db_session() as session:
                challenge = await challenge_service.create_challenge(
                    session,
                    name,
                    challenge_type=challenge_type,
                    minimum_time_minutes=minimum_minutes,
                    editor_constraint=editor,
                    language_constraint=language,
                    minimum_team_size=minimum_team_size
                )
            await ctx.followup.send(
                f"🎉 Challenge \"{challenge.name}\" (#{challenge.id}) has been created!\n"
                f"• Type: {challenge_type}\n"
                f"• Minimum Time: {minimum_minutes if minimum_minutes is not None else get_default_minimum_time_minutes()} minutes/day",
                ephemeral=True
            )
        except ChallengeError as e:
            await self._respond_error(ctx, e)

    @discord.slash_command(name="start_challenge", description="Start a challenge now")
    @discord.option("challenge_id", description="Challenge number")
    @discord.option("duration_days", description="Length in days (leave empty for open-ended)", required=False, default=None)
    @has_challenge_admin()
    async def start_challenge(self, ctx, challenge_id: int, duration_days: int = None):
        await ctx.defer(ephemeral=True)
        try:
            async with db_session() as session:
                challenge = await challenge_service.start_challenge(challenge_id, session, duration_days)
            await ctx.followup.send(f"🟢 \"{challenge.name}\" has started!", ephemeral=True)
        except ChallengeError as e:
            await self._respond_error(ctx, e)

    @discord.slash_command(name="end_challenge", description="End a running challenge now")
    @discord.option("challenge_id", description="Challenge number")
    @has_challenge_admin()
    async def end_challenge(self, ctx, challenge_id: int):
        await ctx.defer(ephemeral=True)
        try:
            async with db_session() as session:
                challenge = await challenge_service.end_challenge(challenge_id, session)
            await ctx.followup.send(f"🏁 \"{challenge.name}\" has ended.", ephemeral=True)
        except ChallengeError as e:
            await self._respond_error(ctx, e)

    @discord.slash_command(name="create_team", description="Create a team for a challenge")
    @discord.option("challenge_id", description="Challenge number")
    @discord.option("timezone", description="Your IANA timezone, e.g. America/New_York", required=False, default=None)
    async def create_team(self, ctx, challenge_id: int, timezone: str = None):
        await ctx.defer(ephemeral=True)
        timezone = timezone or get_default_timezone()
        try:
            async with db_session() as session:
                person = await self._person_for(ctx, session)
                team = await challenge_service.create_team(challenge_id, person.id, timezone, session)
            await ctx.followup.send(
                f"🎉 Your team has been created!\n"
                f"Share this code with others to let them join: **`{team.join_code}`** (case-insensitive)\n"
                f"Your activity will be tracked in the {timezone} timezone.",
                ephemeral=True
            )
        except ChallengeError as e:
            await self._respond_error(ctx, e)

    @discord.slash_command(name="join_team", description="Join a team with its code")
    @discord.option("challenge_id", description="Challenge number")
    @discord.option("code", description="Team join code")
    @discord.option("timezone", description="Your IANA timezone, e.g. America/New_York", required=False, default=None)
    async def join_team(self, ctx, challenge_id: int, code: str, timezone: str = None):
        await ctx.defer(ephemeral=True)
        timezone = timezone or get_default_timezone()
        try:
            async with db_session() as session:
                person = await self._person_for(ctx, session)
                await challenge_service.join_team(challenge_id, person.id, code, timezone, session)
            await ctx.followup.send(f"✅ You joined team `{code.upper()}`!", ephemeral=True)
        except ChallengeError as e:
            await self._respond_error(ctx, e)

    @discord.slash_command(name="leave_team", description="Leave your team before the challenge starts")
    @discord.option("challenge_id", description="Challenge number")
    async def leave_team(self, ctx, challenge_id: int):
        await ctx.defer(ephemeral=True)
        try:
            async with db_session() as session:
                person = await self._person_for(ctx, session)
                await challenge_service.leave_team(challenge_id, person.id, session)
            await ctx.followup.send("👋 You left your team.", ephemeral=True)
        except ChallengeError as e:
            await self._respond_error(ctx, e)

    @discord.slash_command(name="link_account", description="Link your time-tracking account so your coding time is counted")
    @discord.option("tracking_user_id", description="Your user id on the time-tracking service")
    async def link_account(self, ctx, tracking_user_id: str):
        await ctx.defer(ephemeral=True)
        try:
            async with db_session() as session:
                person = await self._person_for(ctx, session)
                await challenge_service.link_tracking_account(person.id, tracking_user_id, session)
            await ctx.followup.send(f"🔗 Linked to time-tracking account `{tracking_user_id.strip()}`.", ephemeral=True)
        except ChallengeError as e:
            await self._respond_error(ctx, e)


def setup(bot):
    bot.add_cog(ChallengeCommands(bot))
