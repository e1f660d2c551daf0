import logging
import secrets
from typing import Optional, TYPE_CHECKING

import discord
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from pydantic import ValidationError
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from . import __version__
from .config import Settings
from .models import AppealSubmission, LoginData
from .serializers import flatten_guild, flatten_user, transform_oauth_guilds_and_user
from .storage import AlreadyExists, StorageError

if TYPE_CHECKING:
    from .bot import CardinalCoordinator

logger = logging.getLogger(__name__)

APPEALS_COLLECTION = "appeals"
APPEAL_RATE_LIMIT = "5/minute"


def create_app(coordinator: "CardinalCoordinator", settings: Settings) -> FastAPI:
    app = FastAPI(
        title="Cardinal API",
        version=__version__,
        description="Appeals and dashboard endpoints for the Cardinal moderation bot",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # One limiter per app so separate instances never share counters
    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    async def require_bot_token(authorization: Optional[str] = Header(None)) -> None:
        """Reject requests that do not carry ``Bot <token>``."""
        if authorization is None:
            raise HTTPException(status_code=401, detail="Authentication required")
        if not secrets.compare_digest(authorization, f"Bot {settings.discord_token}"):
            raise HTTPException(status_code=401, detail="Invalid authentication credentials")

    @app.get("/health")
    @limiter.limit(settings.api_rate_limit)
    async def health(request: Request):
        """Liveness check with uptime, error and gateway counters."""
        bot = coordinator.discord_bot
        return {
            "status": "ok",
            **coordinator.get_health_stats(),
            "guilds": len(bot.guilds),
            "latency_ms": bot.latency * 1000 if bot.latency else 0.0,
        }

    @app.post("/guilds/{guild_id}/appeals")
    @limiter.limit(APPEAL_RATE_LIMIT)
    async def submit_appeal(request: Request, guild_id: str):
        """Store a ban or mute appeal for a guild."""
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Request body must be JSON")

        try:
            appeal = AppealSubmission.model_validate(body)
        except ValidationError as e:
            logger.info("Rejected appeal for guild %s: %s", guild_id, e.errors())
            raise HTTPException(status_code=400, detail="Invalid appeal")

        if appeal.guild_id != guild_id:
            raise HTTPException(status_code=400, detail="Appeal guild does not match the request path")

        appeals = coordinator.store.collection(APPEALS_COLLECTION)
        try:
            stored = await appeals.create(appeal.id, appeal.model_dump(by_alias=True))
        except AlreadyExists:
            raise HTTPException(status_code=409, detail="Appeal already submitted")
        except StorageError:
            logger.exception("Failed to store appeal %s for guild %s", appeal.id, guild_id)
            raise HTTPException(status_code=500, detail="Failed to store appeal")

        logger.info("Stored %s appeal %s from user %s in guild %s", appeal.mute_or_ban, appeal.id, appeal.user_id, guild_id)
        return stored

    @app.get("/users/@me", dependencies=[Depends(require_bot_token)])
    @limiter.limit(settings.api_rate_limit)
    async def get_current_user(request: Request, x_user_id: Optional[str] = Header(None)):
        """Return the user and the guilds it shares with the bot."""
        if x_user_id is None:
            raise HTTPException(status_code=401, detail="Authentication required")
        try:
            user_id = int(x_user_id)
        except ValueError:
            raise HTTPException(status_code=401, detail="Invalid user id")

        client = coordinator.discord_bot
        user = client.get_user(user_id)
        if user is None:
            try:
                user = await client.fetch_user(user_id)
            except discord.HTTPException as e:
                logger.warning("Could not fetch user %s: %s", user_id, e)
                raise HTTPException(status_code=500, detail="Failed to fetch user")

        guilds = [flatten_guild(guild) for guild in client.guilds if guild.get_member(user.id) is not None]
        return {**flatten_user(user), "guilds": guilds}

    @app.post("/oauth/guilds", dependencies=[Depends(require_bot_token)])
    @limiter.limit(settings.api_rate_limit)
    async def oauth_guilds(request: Request, login: LoginData):
        """Decorate OAuth guilds with bot membership and manage rights."""
        return await transform_oauth_guilds_and_user(coordinator.discord_bot, login)

    return app
