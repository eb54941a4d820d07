import discord
from datetime import datetime
from leaderboard_config import (
    STATUS_ICONS, PROGRESS_COLOR, MAX_DAYS_SHOWN, get_medal, format_minutes
)


def format_participant_line(participant):
    name = f"<@{participant['external_id']}>"
    icon = STATUS_ICONS.get(participant["status"], "")
    return f"{name}: {icon} {format_minutes(participant['time_seconds'])}"


def format_day_field(day):
    """Return (name, value) for one day of a progress view"""
    my_team = day["leaderboard"]["my_team"]
    top_team = day["leaderboard"]["top_team"]

    lines = [
        f"Team Status: {STATUS_ICONS.get(day['team_status'], '')}",
        f"Team Place: {get_medal(my_team['team_place'])} {my_team['team_place']}/{my_team['total_teams']} "
        f"({format_minutes(my_team['team_time_seconds'])})",
        ""
    ]
    lines.extend(format_participant_line(p) for p in day["participants"])

    if top_team["team_id"] != my_team["team_id"]:
        top_members = ", ".join(
            f"<@{p['external_id']}> {format_minutes(p['time_seconds'])}" for p in top_team["participants"]
        )
        lines.append("")
        lines.append(f"Leader: {format_minutes(top_team['team_time_seconds'])} ({top_members})")

    name = f"{day['title']} - {day['date'].isoformat()}"
    return name, "\n".join(lines)


def create_progress_embed(view):
    """Create an embed from a leaderboard view (see get_leaderboard_view)"""
    title = f"{view.get('challenge_name') or 'Challenge'} Progress"
    embed = discord.Embed(
        title=title,
        color=PROGRESS_COLOR,
        timestamp=datetime.now()
    )

    if not view["days"]:
        embed.description = "No progress yet. Days show up once someone on a team logs time."
        return embed

    for day in view["days"][:MAX_DAYS_SHOWN]:
        name, value = format_day_field(day)
        embed.add_field(name=name, value=value[:1024], inline=False)

    if len(view["days"]) > MAX_DAYS_SHOWN:
        embed.set_footer(text=f"Showing the latest {MAX_DAYS_SHOWN} of {len(view['days'])} days")
    else:
        embed.set_footer(text="Updated regularly")

    return embed
