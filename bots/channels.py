from __future__ import annotations

import logging
from typing import Final

import discord

log: Final = logging.getLogger("tiktok-verifier")


async def resolve_text_channel(
    bot: discord.Client,
    channel_id: int | None,
    guild: discord.Guild | None = None,
) -> discord.TextChannel | None:
    """Return the configured text channel, or None if it cannot be used.

    Looks in the guild cache, then the client cache, then falls back to a REST
    fetch. A channel from another guild than ``guild`` is rejected.
    """
    if not channel_id:
        return None

    channel = guild.get_channel(channel_id) if guild is not None else None
    if channel is None:
        channel = bot.get_channel(channel_id)
    if channel is None:
        try:
            channel = await bot.fetch_channel(channel_id)
        except discord.NotFound:
            log.warning("Channel %s not found", channel_id)
            return None
        except discord.Forbidden:
            log.warning("No access to channel %s – check bot permissions", channel_id)
            return None
        except discord.HTTPException as exc:
            log.warning("Cannot fetch channel %s – HTTP error: %s", channel_id, exc)
            return None

    if not isinstance(channel, discord.TextChannel):
        log.warning("Channel ID %s is not a text channel", channel_id)
        return None
    if guild is not None and channel.guild.id != guild.id:
        log.warning(
            "Channel %s belongs to guild %s, not %s",
            channel_id,
            channel.guild.id,
            guild.id,
        )
        return None
    return channel
