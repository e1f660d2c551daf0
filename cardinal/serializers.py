# JSON shapes of Discord objects exposed by the HTTP API
from __future__ import annotations

import logging
from typing import Any, Optional

import discord

from .models import LoginData, OAuthGuild

logger = logging.getLogger(__name__)

MANAGE_GUILD = 0x20


def _asset_key(asset: Optional[discord.Asset]) -> Optional[str]:
    return asset.key if asset is not None else None


def _id(value: Optional[int]) -> Optional[str]:
    return str(value) if value is not None else None


def flatten_user(user: discord.abc.User) -> dict[str, Any]:
    return {
        "id": str(user.id),
        "username": user.name,
        "globalName": getattr(user, "global_name", None),
        "discriminator": getattr(user, "discriminator", "0"),
        "avatar": _asset_key(getattr(user, "avatar", None)),
        "bot": bool(getattr(user, "bot", False)),
    }


def flatten_guild(guild: discord.Guild) -> dict[str, Any]:
    me = guild.me
    return {
        "id": str(guild.id),
        "name": guild.name,
        "icon": _asset_key(guild.icon),
        "banner": _asset_key(guild.banner),
        "splash": _asset_key(guild.splash),
        "description": guild.description,
        "ownerId": _id(guild.owner_id),
        "afkChannelId": _id(guild.afk_channel.id if guild.afk_channel else None),
        "afkTimeout": guild.afk_timeout,
        "systemChannelId": _id(guild.system_channel.id if guild.system_channel else None),
        "vanityURLCode": guild.vanity_url_code,
        "approximateMemberCount": guild.member_count,
        "premiumTier": guild.premium_tier,
        "premiumSubscriptionCount": guild.premium_subscription_count,
        "preferredLocale": str(guild.preferred_locale),
        "verificationLevel": guild.verification_level.value,
        "mfaLevel": guild.mfa_level.value,
        "explicitContentFilter": guild.explicit_content_filter.value,
        "verified": "VERIFIED" in guild.features,
        "partnered": "PARTNERED" in guild.features,
        "joinedTimestamp": int(me.joined_at.timestamp() * 1000) if me is not None and me.joined_at else None,
        "channels": [
            {"id": str(channel.id), "name": channel.name, "type": channel.type.value, "position": channel.position}
            for channel in guild.channels
        ],
        "roles": [
            {
                "id": str(role.id),
                "name": role.name,
                "color": role.colour.value,
                "position": role.position,
                "permissions": str(role.permissions.value),
            }
            for role in guild.roles
        ],
    }


def _placeholder_guild(user_id: str, data: OAuthGuild) -> dict[str, Any]:
    """Shape of a guild the bot has not joined, built from the OAuth payload alone."""
    return {
        "id": data.id,
        "name": data.name,
        "icon": data.icon,
        "banner": None,
        "splash": None,
        "description": None,
        "ownerId": user_id if data.owner else None,
        "afkChannelId": None,
        "afkTimeout": 0,
        "systemChannelId": None,
        "vanityURLCode": None,
        "approximateMemberCount": None,
        "premiumTier": 0,
        "premiumSubscriptionCount": None,
        "preferredLocale": "en-US",
        "verificationLevel": 0,
        "mfaLevel": 0,
        "explicitContentFilter": 0,
        "verified": False,
        "partnered": False,
        "joinedTimestamp": None,
        "channels": [],
        "roles": [],
    }


def can_manage(guild: discord.Guild, member: discord.Member) -> bool:
    if guild.owner_id == member.id:
        return True
    return member.guild_permissions.administrator


async def is_manageable(user_id: str, data: OAuthGuild, guild: Optional[discord.Guild]) -> bool:
    if data.owner:
        return True
    if guild is None:
        try:
            permissions = int(data.permissions)
        except ValueError:
            return False
        return (permissions & MANAGE_GUILD) == MANAGE_GUILD

    member = guild.get_member(int(user_id))
    if member is None:
        try:
            member = await guild.fetch_member(int(user_id))
        except discord.HTTPException:
            return False
    return can_manage(guild, member)


async def transform_guild(client: discord.Client, user_id: str, data: OAuthGuild) -> dict[str, Any]:
    guild = client.get_guild(int(data.id))
    serialized = _placeholder_guild(user_id, data) if guild is None else flatten_guild(guild)
    return {
        **serialized,
        "permissions": data.permissions,
        "manageable": await is_manageable(user_id, data, guild),
        "cardinalIsIn": guild is not None,
    }


async def transform_oauth_guilds_and_user(client: discord.Client, login: LoginData) -> dict[str, Any]:
    user = login.user.model_dump() if login.user is not None else None
    if login.user is None or login.guilds is None:
        guilds = [guild.model_dump() for guild in login.guilds] if login.guilds is not None else None
        return {"user": user, "guilds": guilds}

    transformed = [await transform_guild(client, login.user.id, guild) for guild in login.guilds]
    return {"user": user, "transformedGuilds": transformed}
