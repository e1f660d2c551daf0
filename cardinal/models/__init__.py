from .appeal import AppealSubmission, LoginData, OAuthGuild, OAuthUser

__all__ = ["AppealSubmission", "LoginData", "OAuthGuild", "OAuthUser"]
