"""Discord runtime that wires the verification engine to a bot client."""

from __future__ import annotations

import asyncio
import logging

import boto3
import discord
from discord.ext import tasks

from bio_verifier import (
    CodeGenerator,
    CodeMatcher,
    DynamoBackend,
    EngineSettings,
    Identity,
    LocalFileBackend,
    ProfileFetcher,
    Reconciler,
    VerificationEngine,
    VerificationStore,
)

from .config import (
    EnvironmentConfig,
    ShadowConfig,
    read_engine_settings,
    read_shadow_config,
)
from .dispatcher import DiscordDispatcher, GuildDirectory

log = logging.getLogger("tiktok-verifier")

FIRST_SWEEP_DELAY_SECONDS = 120
FIRST_HEALTH_CHECK_DELAY_SECONDS = 60


def build_store(config: EnvironmentConfig, dynamodb_resource=None) -> VerificationStore:
    durable = None
    if config.table_name:
        dynamodb = dynamodb_resource or boto3.resource(
            "dynamodb", region_name=config.aws_region
        )
        durable = DynamoBackend(dynamodb.Table(config.table_name))
    else:
        log.info("DDB_TABLE_NAME not set; storing verifications in %s", config.data_file)
    return VerificationStore(
        LocalFileBackend(config.data_file),
        durable,
        mirror_to_file=config.mirror_to_file,
    )


class VerifierRuntime:
    def __init__(
        self,
        config: EnvironmentConfig,
        settings: EngineSettings,
        shadow: ShadowConfig,
        *,
        client: discord.Client | None = None,
        store: VerificationStore | None = None,
        fetcher: ProfileFetcher | None = None,
    ) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True

        self.config = config
        self.settings = settings
        self.shadow = shadow
        self.bot = client or discord.Client(intents=intents)
        self.store = store or build_store(config)
        self.fetcher = fetcher or ProfileFetcher(timeout=settings.fetch_timeout_seconds)
        self.dispatcher = DiscordDispatcher(
            self.bot, shadow, admin_log_channel_id=config.admin_log_channel_id
        )
        self.reconciler = Reconciler(
            self.store,
            self.fetcher,
            CodeMatcher(settings.typo_substitution),
            self.dispatcher,
            settings,
        )
        self.engine = VerificationEngine(
            self.store,
            self.reconciler,
            CodeGenerator(GuildDirectory(self.bot)),
            self.dispatcher,
            settings,
        )

        self.sweep_loop = tasks.loop(minutes=settings.sweep_interval_minutes)(
            self.run_sweep
        )
        self.sweep_loop.before_loop(self._before_sweep)
        self.health_loop = tasks.loop(hours=settings.health_check_interval_hours)(
            self.run_health_check
        )
        self.health_loop.before_loop(self._before_health_check)

        self.bot.event(self.on_ready)
        self.bot.event(self.on_member_update)

    # ---------- scheduled work ----------
    async def run_sweep(self) -> None:
        try:
            await self.engine.sweep()
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("Background sweep failed: %s", exc)

    async def run_health_check(self) -> None:
        try:
            await self.engine.health_check()
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("Health check failed: %s", exc)

    async def _before_sweep(self) -> None:
        await self.bot.wait_until_ready()
        await asyncio.sleep(FIRST_SWEEP_DELAY_SECONDS)

    async def _before_health_check(self) -> None:
        await self.bot.wait_until_ready()
        await asyncio.sleep(FIRST_HEALTH_CHECK_DELAY_SECONDS)

    # ---------- events ----------
    async def on_ready(self) -> None:
        if self.shadow.enabled:
            log.info("Verifier running in SHADOW mode")
        if not self.sweep_loop.is_running():
            self.sweep_loop.start()
        if not self.health_loop.is_running():
            self.health_loop.start()
        log.info(
            "Bot ready as %s (%s); sweeping every %s minutes",
            self.bot.user,
            self.bot.user.id if self.bot.user else None,
            self.settings.sweep_interval_minutes,
        )

    async def on_member_update(
        self, before: discord.Member, after: discord.Member
    ) -> None:
        try:
            role_id = self.reconciler.trust_role_id(after.guild.id)
            if role_id is None:
                return
            had_role = any(role.id == role_id for role in before.roles)
            has_role = any(role.id == role_id for role in after.roles)
            if had_role and not has_role:
                identity = Identity(community_id=after.guild.id, member_id=after.id)
                if await self.engine.handle_role_removed(identity):
                    log.info("Trust role removed from %s - unverified", after)
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("Error handling role change for %s: %s", after, exc)

    # ---------- lifecycle ----------
    async def run(self) -> None:
        try:
            async with self.bot:
                await self.bot.start(self.config.discord_token)
        finally:
            await self.fetcher.close()

    @classmethod
    def create(cls) -> VerifierRuntime:
        return cls(
            EnvironmentConfig.load(),
            read_engine_settings(),
            read_shadow_config(default_enabled=False),
        )


async def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    runtime = VerifierRuntime.create()
    await runtime.run()


__all__ = ["VerifierRuntime", "build_store", "main"]
