import discord
from discord.ext import commands
from loguru import logger

from database.db_session import db_session
from services.leaderboard_service import get_leaderboard_view
from services.leaderboard_formatter import create_progress_embed


class LeaderboardCog(commands.Cog):
    """Cog for showing challenge progress and team rankings"""
    def __init__(self, bot):
        self.bot = bot
        logger.info("Leaderboard commands registered")

    @discord.slash_command(name="progress", description="Show your team's daily progress in a challenge")
    @discord.option("challenge_id", description="Challenge number")
    @discord.option(
        "visibility",
        description="Who can see the progress?",
        required=False,
        choices=["Just me", "Everyone"],
        default="Just me"
    )
    async def progress(self, ctx, challenge_id: int, visibility: str = "Just me"):
        """Display the per-day leaderboard for the caller's team"""
        hidden_message = visibility == "Just me"
        await ctx.defer(ephemeral=hidden_message)

        viewer_id = str(ctx.author.id)
        logger.info(f"Generating progress for challenge {challenge_id}, viewer {viewer_id}")

        try:
            async with db_session() as session:
                view = await get_leaderboard_view(challenge_id, viewer_id, session)
            embed = create_progress_embed(view)
            await ctx.followup.send(embed=embed, ephemeral=hidden_message)
        except Exception as e:
            logger.error(f"Error in progress command: {e}")
            await ctx.followup.send("An error occurred while fetching progress. Please try again later.", ephemeral=True)


def setup(bot):
    bot.add_cog(LeaderboardCog(bot))
