from __future__ import annotations

import discord

ANNOUNCEMENTS_CHANNEL = "team-announcements"


async def ensure_channels(guild: discord.Guild) -> discord.TextChannel:
    """
    Ensure the announcements channel exists in ``guild`` and return it.
    """

    channel = discord.utils.get(guild.text_channels, name=ANNOUNCEMENTS_CHANNEL)
    if channel is None:
        channel = await guild.create_text_channel(ANNOUNCEMENTS_CHANNEL)
    return channel
