from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AppealSubmission(BaseModel):
    """Payload for a mute or ban appeal submitted through the web form."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Client generated appeal identifier.")
    guild_id: str = Field(..., alias="guildId", description="Guild the punishment happened in.")
    user_id: str = Field(..., alias="userId", description="Member appealing.")
    mute_or_ban: str = Field(..., alias="muteOrBan", description="Which punishment is appealed.")
    reason: str = Field(..., description="Reason the member was given.")
    appeal: str = Field(..., description="The member's appeal text.")
    extra: str = Field(..., description="Anything else the member wants staff to know.")


class OAuthUser(BaseModel):
    """Subset of the Discord ``/users/@me`` payload forwarded by the web frontend."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., pattern=r"^\d+$")
    username: str
    global_name: Optional[str] = None
    avatar: Optional[str] = None


class OAuthGuild(BaseModel):
    """Partial guild object from Discord's ``/users/@me/guilds``."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., pattern=r"^\d+$")
    name: str
    icon: Optional[str] = None
    owner: bool = False
    permissions: str = "0"


class LoginData(BaseModel):
    user: Optional[OAuthUser] = None
    guilds: Optional[list[OAuthGuild]] = None
