from loguru import logger
import discord
import os
import asyncio
from discord.ext import commands
from dotenv import load_dotenv
from database.db_session import init_db
from helpers.logging_setup import configure_logging

configure_logging("challengebot")


def load_extensions(bot):
    for filename in os.listdir("./cogs"):
        if filename.endswith(".py") and not filename.startswith("_"):
            try:
                bot.load_extension(f"cogs.{filename[:-3]}")
                logger.info(f"Loaded extension: {filename[:-3]}")
            except Exception as e:
                logger.error(f"Failed to load extension {filename}: {e}")


async def main():
    load_dotenv()

    intents = discord.Intents.default()
    intents.guilds = True

    TOKEN = os.getenv("BOT_TOKEN")
    if not TOKEN:
        raise SystemExit("BOT_TOKEN is not set")

    bot = commands.Bot(command_prefix="!", intents=intents)

    @bot.event
    async def on_ready():
        try:
            await bot.sync_commands()
            logger.info("Successfully synced commands")
        except Exception as e:
            logger.error(f"Failed to sync commands: {e}")
        logger.info(f"Logged in as {bot.user}!")

    load_extensions(bot)
    await init_db()

    # Run the bot
    await bot.start(TOKEN)

if __name__ == "__main__":
    asyncio.run(main())
