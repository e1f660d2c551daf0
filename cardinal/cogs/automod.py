from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from ..automod import AutomodRule
from ..checks import restricted
from ..errors import GENERIC_FAILURE, send_command_error
from ..formatters import and_list
from ..utils import build_embed

if TYPE_CHECKING:
    from ..bot import CardinalCoordinator


class AutomodCog(commands.Cog):
    """Slash commands for switching automod rules on and off."""

    automod = app_commands.Group(
        name="automod",
        description="Configure automated moderation rules",
        default_permissions=discord.Permissions(manage_guild=True),
        guild_only=True,
    )

    def __init__(self, coordinator: "CardinalCoordinator"):
        self.coordinator = coordinator

    async def _toggle(self, interaction: discord.Interaction, rule: AutomodRule, enabled: bool) -> None:
        config = self.coordinator.automod
        toggle = config.enable_rule if enabled else config.disable_rule
        if not await toggle(interaction.guild.id, rule):
            await interaction.response.send_message(embed=build_embed(GENERIC_FAILURE, style="fail"), ephemeral=True)
            return
        state = "enabled" if enabled else "disabled"
        await interaction.response.send_message(
            embed=build_embed(f"**{rule.label}** automod is now {state}.", style="success"),
            ephemeral=True,
        )

    @automod.command(name="enable", description="Turn an automod rule on.")
    @app_commands.describe(rule="Rule to enable")
    @restricted()
    async def enable(self, interaction: discord.Interaction, rule: AutomodRule) -> None:
        await self._toggle(interaction, rule, True)

    @automod.command(name="disable", description="Turn an automod rule off.")
    @app_commands.describe(rule="Rule to disable")
    @restricted()
    async def disable(self, interaction: discord.Interaction, rule: AutomodRule) -> None:
        await self._toggle(interaction, rule, False)

    @automod.command(name="status", description="Show which automod rules are enabled.")
    @restricted()
    async def status(self, interaction: discord.Interaction) -> None:
        settings = await self.coordinator.automod.list_settings(interaction.guild.id)
        enabled = [rule.label for rule, setting in settings.items() if setting.get("enabled")]
        disabled = [rule.label for rule in AutomodRule if rule.label not in enabled]

        embed = build_embed(
            f"Enabled: {and_list(enabled)}" if enabled else "No automod rules are enabled.",
            title="Automod",
        )
        if disabled:
            embed.add_field(name="Disabled", value=and_list(disabled), inline=False)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    async def cog_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        await send_command_error(interaction, error)
