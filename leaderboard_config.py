"""
Display settings for challenge progress boards.

Status keys come from services/leaderboard_service.py; this module only
decides how they look.
"""

import discord

# Helper function for formatting team places
def get_medal(rank):
    """Return rank with medal emoji for top 3 positions"""
    if rank == 1:
        return "🥇"
    elif rank == 2:
        return "🥈"
    elif rank == 3:
        return "🥉"
    else:
        return f"#{rank}"


STATUS_ICONS = {
    "none": "🟥",     # No time logged
    "partial": "🟨",  # Some time, below the daily minimum
    "met": "✅"       # Met the daily minimum
}

STATE_LABELS = {
    "open_for_signups": "🟡 Open for Signups",
    "started": "🟢 In Progress",
    "ended": "🏁 Ended"
}

PROGRESS_COLOR = discord.Color.blue()
CHALLENGE_LIST_COLOR = discord.Color.green()

# Discord allows 25 fields per embed
MAX_DAYS_SHOWN = 10


def format_minutes(seconds):
    return f"{round(seconds / 60)}m"
