import logging
import time
from typing import Optional

import discord
from discord.ext import commands

from .automod import AutomodConfig
from .cogs import AutomodCog, ModerationCog, RestrictionsCog
from .config import Settings
from .restrictions import RestrictionManager
from .storage import RecordStore
from .utils import format_uptime

logger = logging.getLogger(__name__)


class CardinalBot(commands.Bot):
    """Discord client hosting the moderation cogs."""

    def __init__(self, coordinator: "CardinalCoordinator"):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        intents.guilds = True
        super().__init__(
            command_prefix=commands.when_mentioned_or(coordinator.settings.command_prefix),
            intents=intents,
            help_command=None,
        )
        self.coordinator = coordinator

    async def setup_hook(self) -> None:
        await self.add_cog(ModerationCog(self.coordinator))
        await self.add_cog(RestrictionsCog(self.coordinator))
        await self.add_cog(AutomodCog(self.coordinator))
        # Commands are synced in on_ready once the guild is reachable

    async def on_ready(self) -> None:
        if self.coordinator.ready_once:
            self.coordinator.record_discord_reconnect()
            logger.info("Discord bot reconnected as %s", self.user)
        await self.coordinator.on_discord_ready()
        logger.info("Discord bot connected as %s", self.user)

    async def on_resume(self) -> None:
        self.coordinator.record_discord_reconnect()
        logger.info("Discord bot session resumed")

    async def on_disconnect(self) -> None:
        logger.warning("Discord bot disconnected")
        self.coordinator.record_error()


class CardinalCoordinator:
    """Owns the shared services and the Discord client."""

    def __init__(self, settings: Settings, store: Optional[RecordStore] = None):
        self.settings = settings
        self.store = store or RecordStore(settings.data_path)
        self.restrictions = RestrictionManager(self.store)
        self.automod = AutomodConfig(self.store)
        self.discord_bot = CardinalBot(self)
        self.ready_once = False
        self._slash_synced = False
        # Health tracking
        self._start_time = time.time()
        self._error_count = 0
        self._last_error_time: Optional[float] = None
        self._discord_reconnect_count = 0

    def get_uptime(self) -> float:
        return time.time() - self._start_time

    def record_error(self) -> None:
        self._error_count += 1
        self._last_error_time = time.time()

    def record_discord_reconnect(self) -> None:
        self._discord_reconnect_count += 1

    def get_health_stats(self) -> dict:
        """Get system health statistics."""
        uptime_seconds = self.get_uptime()
        discord_ready = self.discord_bot.is_ready()

        health_status = "healthy"
        if not discord_ready:
            health_status = "degraded"
        if self._error_count > 100 or (self._last_error_time and (time.time() - self._last_error_time) < 60):
            health_status = "unhealthy"

        return {
            "uptime_seconds": uptime_seconds,
            "uptime_formatted": format_uptime(uptime_seconds),
            "error_count": self._error_count,
            "last_error_time": self._last_error_time,
            "discord_connected": discord_ready,
            "discord_reconnect_count": self._discord_reconnect_count,
            "health_status": health_status,
        }

    async def on_discord_ready(self) -> None:
        self.ready_once = True
        if self._slash_synced:
            return

        tree = self.discord_bot.tree
        guild_id = self.settings.discord_guild_id
        try:
            if guild_id is not None:
                guild = discord.Object(id=guild_id)
                tree.copy_global_to(guild=guild)
                await tree.sync(guild=guild)
            else:
                await tree.sync()
        except discord.HTTPException:
            logger.exception("Failed to sync application commands for %s", guild_id or "global")
            return
        logger.info("Slash commands synced for %s", guild_id or "global")
        self._slash_synced = True

    async def start_discord(self) -> None:
        await self.discord_bot.start(self.settings.discord_token)

    async def shutdown(self) -> None:
        if not self.discord_bot.is_closed():
            await self.discord_bot.close()
