"""Discord implementations of the engine's outbound interfaces."""

from __future__ import annotations

import logging
from typing import Final

import discord

from bio_verifier import DispatchError, Identity, VerificationError, VerificationNotice

from .channels import resolve_text_channel
from .config import ShadowConfig

log: Final = logging.getLogger("tiktok-verifier")


def render_notice(notice: VerificationNotice, guild_name: str) -> str:
    """Member-facing DM text for an engine notice."""
    if notice.kind == "verified":
        return (
            "🎉 **Verification successful!**\n\n"
            f"I found the code **{notice.matched_code}** in the bio of "
            f"**@{notice.handle}**.\n"
            f"You've been given the verified role in **{guild_name}**.\n\n"
            "You can remove the code from your bio now."
        )
    if notice.kind == "manually_verified":
        return (
            f"✅ An admin of **{guild_name}** verified you as "
            f"**@{notice.handle}**."
        )
    if notice.kind == "not_found":
        return (
            f"❌ The profile **@{notice.handle}** does not exist, so your "
            f"verification in **{guild_name}** was cancelled.\n"
            "Please start again with the correct username."
        )
    return (
        f"⌛ Your pending verification in **{guild_name}** expired. "
        "Start again to get a new code."
    )


class DiscordDispatcher:
    """Grants roles and sends DMs; in shadow mode only reports the intent."""

    def __init__(
        self,
        bot: discord.Client,
        shadow: ShadowConfig,
        *,
        admin_log_channel_id: int | None = None,
    ) -> None:
        self._bot = bot
        self._shadow = shadow
        self._admin_log_channel_id = admin_log_channel_id

    async def _member(self, identity: Identity) -> tuple[discord.Guild, discord.Member]:
        guild = self._bot.get_guild(identity.community_id)
        if guild is None:
            raise DispatchError(f"Guild {identity.community_id} is not available")
        member = guild.get_member(identity.member_id)
        if member is not None:
            return guild, member
        try:
            member = await guild.fetch_member(identity.member_id)
        except discord.NotFound as exc:
            raise DispatchError(
                f"Member {identity.member_id} is no longer in guild {guild.id}"
            ) from exc
        except discord.HTTPException as exc:
            raise DispatchError(f"Could not fetch member {identity}: {exc}") from exc
        return guild, member

    def _role(self, guild: discord.Guild, role_id: int) -> discord.Role:
        role = guild.get_role(role_id)
        if role is None:
            raise DispatchError(f"Role {role_id} not found in guild {guild.id}")
        return role

    async def _shadow_report(self, guild: discord.Guild | None, message: str) -> None:
        channel = await resolve_text_channel(self._bot, self._shadow.channel_id, guild)
        if channel is None:
            log.info("[SHADOW] %s", message)
            return
        try:
            await channel.send(message)
        except discord.HTTPException as exc:
            log.warning("Failed to send shadow report to %s: %s", channel.id, exc)

    async def grant_role(self, identity: Identity, role_id: int) -> None:
        guild, member = await self._member(identity)
        role = self._role(guild, role_id)
        if self._shadow.enabled:
            await self._shadow_report(
                guild, f"[verify] would grant {role.name} to {member.mention}"
            )
            return
        try:
            await member.add_roles(role, reason="Passed bio-code verification")
        except discord.Forbidden as exc:
            raise DispatchError(
                "Bot lacks Manage Roles permission or the role hierarchy is incorrect"
            ) from exc
        except discord.HTTPException as exc:
            raise DispatchError(f"Discord error adding role: {exc}") from exc

    async def revoke_role(self, identity: Identity, role_id: int) -> None:
        guild, member = await self._member(identity)
        role = self._role(guild, role_id)
        if self._shadow.enabled:
            await self._shadow_report(
                guild, f"[unverify] would remove {role.name} from {member.mention}"
            )
            return
        try:
            await member.remove_roles(role, reason="Verification revoked")
        except discord.Forbidden as exc:
            raise DispatchError(
                "Bot lacks Manage Roles permission or the role hierarchy is incorrect"
            ) from exc
        except discord.HTTPException as exc:
            raise DispatchError(f"Discord error removing role: {exc}") from exc

    async def notify(self, identity: Identity, notice: VerificationNotice) -> None:
        guild, member = await self._member(identity)
        text = render_notice(notice, guild.name)
        if self._shadow.enabled:
            await self._shadow_report(
                guild, f"[notify] would DM {member.mention}: {notice.kind}"
            )
            return
        try:
            await member.send(text)
        except discord.Forbidden as exc:
            raise DispatchError(f"{member} has DMs disabled") from exc
        except discord.HTTPException as exc:
            raise DispatchError(f"Discord error sending DM: {exc}") from exc

    async def alert_operator(self, community_id: int, error: VerificationError) -> None:
        guild = self._bot.get_guild(community_id)
        channel = await resolve_text_channel(
            self._bot, self._admin_log_channel_id, guild
        )
        if channel is None:
            log.error("Operator alert for guild %s: %s", community_id, error)
            return
        try:
            await channel.send(f"⚠️ Verification problem: {error}")
        except discord.Forbidden as exc:
            raise DispatchError(f"No send permission in log channel {channel.id}") from exc
        except discord.HTTPException as exc:
            raise DispatchError(f"Failed to post operator alert: {exc}") from exc


class GuildDirectory:
    """Names used to derive a guild's proof-code prefix."""

    def __init__(self, bot: discord.Client) -> None:
        self._bot = bot

    async def owner_name(self, community_id: int) -> str | None:
        guild = self._bot.get_guild(community_id)
        if guild is None:
            return None
        owner = await guild.fetch_owner()
        return owner.display_name or owner.name

    async def community_name(self, community_id: int) -> str | None:
        guild = self._bot.get_guild(community_id)
        return guild.name if guild is not None else None
