"""Tests for automod rule switches."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from cardinal.automod import AutomodConfig, AutomodRule
from cardinal.cogs.automod import AutomodCog
from cardinal.storage import StorageError


@pytest.fixture
def automod(record_store):
    return AutomodConfig(record_store)


def test_rule_labels():
    assert AutomodRule.BANNED_WORDS.label == "Banned Words"
    assert AutomodRule.SPAM.label == "Spam"


@pytest.mark.asyncio
async def test_unconfigured_rule(automod):
    assert await automod.get_setting(1, AutomodRule.SPAM) is None
    assert await automod.list_settings(1) == {}


@pytest.mark.asyncio
async def test_enable_and_disable(automod):
    assert await automod.enable_rule(1, AutomodRule.SPAM) is True
    assert await automod.get_setting(1, AutomodRule.SPAM) == {"guild_id": "1", "enabled": True}

    assert await automod.disable_rule(1, AutomodRule.SPAM) is True
    assert (await automod.get_setting("1", AutomodRule.SPAM))["enabled"] is False


@pytest.mark.asyncio
async def test_toggling_keeps_other_rules(automod):
    await automod.enable_rule(1, AutomodRule.SPAM)
    await automod.enable_rule(1, AutomodRule.LINKS)
    await automod.disable_rule(1, AutomodRule.LINKS)

    settings = await automod.list_settings(1)
    assert set(settings) == {AutomodRule.SPAM, AutomodRule.LINKS}
    assert settings[AutomodRule.SPAM]["enabled"] is True
    assert settings[AutomodRule.LINKS]["enabled"] is False


@pytest.mark.asyncio
async def test_toggling_keeps_rule_fields(record_store, automod):
    guilds = record_store.collection("guilds")
    await guilds.create("1", {"guild_id": "1", "banned_words": {"enabled": False, "words": ["foo"]}})

    await automod.enable_rule(1, AutomodRule.BANNED_WORDS)

    setting = await automod.get_setting(1, AutomodRule.BANNED_WORDS)
    assert setting["enabled"] is True
    assert setting["words"] == ["foo"]


@pytest.mark.asyncio
async def test_non_dict_setting_is_ignored(record_store, automod):
    await record_store.collection("guilds").create("1", {"spam": "yes"})

    assert await automod.get_setting(1, AutomodRule.SPAM) is None


@pytest.mark.asyncio
async def test_storage_failure():
    collection = MagicMock()
    collection.find_one = AsyncMock(side_effect=StorageError("offline"))
    collection.upsert = AsyncMock(side_effect=StorageError("offline"))
    automod = AutomodConfig(collection)

    assert await automod.get_setting(1, AutomodRule.SPAM) is None
    assert await automod.enable_rule(1, AutomodRule.SPAM) is False


def _cog(automod):
    coordinator = MagicMock()
    coordinator.automod = automod
    return AutomodCog(coordinator)


def _interaction(guild_id=1):
    interaction = MagicMock()
    interaction.guild.id = guild_id
    interaction.response.send_message = AsyncMock()
    return interaction


@pytest.mark.asyncio
async def test_enable_command(automod):
    cog = _cog(automod)
    interaction = _interaction()

    await cog.enable.callback(cog, interaction, AutomodRule.INVITE_LINKS)

    embed = interaction.response.send_message.call_args.kwargs["embed"]
    assert embed.description == "**Invite Links** automod is now enabled."
    assert (await automod.get_setting(1, AutomodRule.INVITE_LINKS))["enabled"] is True


@pytest.mark.asyncio
async def test_status_command(automod):
    await automod.enable_rule(1, AutomodRule.SPAM)
    await automod.enable_rule(1, AutomodRule.LINKS)
    cog = _cog(automod)
    interaction = _interaction()

    await cog.status.callback(cog, interaction)

    embed = interaction.response.send_message.call_args.kwargs["embed"]
    assert embed.description == "Enabled: Links and Spam"
    assert "Banned Words" in embed.fields[0].value
