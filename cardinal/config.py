import base64
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENCRYPTED_PREFIX = "encrypted:"


def _get_decryption_key() -> Optional[bytes]:
    """Get the Fernet key from ENCRYPTION_KEY or the key file.

    Fernet keys are already base64-encoded, so the raw text is returned as bytes.
    """
    key_str = os.getenv("ENCRYPTION_KEY")
    if key_str:
        return key_str.strip().encode()

    key_file = os.getenv("ENCRYPTION_KEY_FILE", ".encryption_key")
    if os.path.exists(key_file):
        try:
            with open(key_file, "rb") as f:
                return f.read().strip()
        except OSError as e:
            logger.warning("Failed to read encryption key file: %s", e)
    return None


def load_environment() -> None:
    """Load the .env file, decrypting it first when it was stored encrypted."""
    env_path = Path(os.getenv("ENV_FILE", ".env"))
    if not env_path.exists():
        env_path = Path(".env.encrypted")
    if not env_path.exists():
        load_dotenv()
        return

    key = _get_decryption_key()
    if key is not None:
        try:
            decrypted = Fernet(key).decrypt(env_path.read_bytes())
        except (InvalidToken, ValueError):
            # Not encrypted (or wrong key), load it as plain text
            decrypted = None
        if decrypted is not None:
            with tempfile.NamedTemporaryFile(mode="w", delete=False, suffix=".env") as tmp:
                tmp.write(decrypted.decode())
                tmp_path = tmp.name
            try:
                load_dotenv(tmp_path, override=True)
            finally:
                os.unlink(tmp_path)
            logger.info("Loaded encrypted environment from %s", env_path)
            return

    load_dotenv(env_path)


def _decrypt_value(encrypted_value: str) -> Optional[str]:
    """Decrypt a single ``encrypted:<base64>`` environment value."""
    if not encrypted_value.startswith(ENCRYPTED_PREFIX):
        return encrypted_value

    key = _get_decryption_key()
    if key is None:
        logger.warning("Encrypted value detected but no decryption key available")
        return None

    try:
        token = base64.urlsafe_b64decode(encrypted_value[len(ENCRYPTED_PREFIX):].encode())
        return Fernet(key).decrypt(token).decode()
    except (InvalidToken, ValueError) as e:
        logger.error("Failed to decrypt value: %s", e)
        return None


def encrypt_value(value: str, key: bytes) -> str:
    """Produce the ``encrypted:<base64>`` form read back by :func:`_decrypt_value`."""
    token = Fernet(key).encrypt(value.encode())
    return ENCRYPTED_PREFIX + base64.urlsafe_b64encode(token).decode()


def _get_env(name: str, *, required: bool = True, default: Optional[str] = None) -> Optional[str]:
    """Read an environment variable and optionally enforce its presence.

    Values prefixed with ``encrypted:`` are decrypted transparently.
    """
    value = os.getenv(name, default)
    if value is None and required:
        raise RuntimeError(f"Missing required environment variable: {name}")

    if value and value.startswith(ENCRYPTED_PREFIX):
        decrypted = _decrypt_value(value)
        if decrypted is None:
            raise RuntimeError(f"Failed to decrypt encrypted environment variable: {name}")
        return decrypted

    return value


def _parse_optional_int(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer value: {raw}") from exc


def _parse_bool(raw: Optional[str], default: bool = False) -> bool:
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    discord_token: str
    discord_guild_id: Optional[int] = None
    command_prefix: str = ">"
    data_path: str = "data/cardinal_state.json"
    moderation_log_channel_id: Optional[int] = None
    clean_scan_limit: int = 100
    temporary_message_seconds: int = 10
    api_enabled: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_rate_limit: str = "30/minute"

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            discord_token=_get_env("DISCORD_TOKEN"),
            discord_guild_id=_parse_optional_int(_get_env("DISCORD_GUILD_ID", required=False)),
            command_prefix=_get_env("COMMAND_PREFIX", required=False, default=">"),
            data_path=_get_env("DATA_PATH", required=False, default="data/cardinal_state.json"),
            moderation_log_channel_id=_parse_optional_int(_get_env("MODERATION_LOG_CHANNEL_ID", required=False)),
            clean_scan_limit=int(_get_env("CLEAN_SCAN_LIMIT", required=False, default="100")),
            temporary_message_seconds=int(_get_env("TEMPORARY_MESSAGE_SECONDS", required=False, default="10")),
            api_enabled=_parse_bool(_get_env("API_ENABLED", required=False), default=True),
            api_host=_get_env("API_HOST", required=False, default="0.0.0.0"),
            api_port=int(_get_env("API_PORT", required=False, default="8000")),
            api_rate_limit=_get_env("API_RATE_LIMIT", required=False, default="30/minute"),
        )
        logger.debug("Loaded settings for guild %s", settings.discord_guild_id or "global")
        return settings

    def validate(self) -> list[str]:
        """Validate settings and return list of errors (empty if valid)."""
        errors = []

        if not self.discord_token or self.discord_token == "replace-me":
            errors.append("DISCORD_TOKEN is required and must not be 'replace-me'")

        if not self.command_prefix or self.command_prefix.strip() != self.command_prefix:
            errors.append("COMMAND_PREFIX must be a non-empty string without surrounding whitespace")

        if not (1 <= self.clean_scan_limit <= 100):
            errors.append(f"CLEAN_SCAN_LIMIT must be between 1 and 100 (got {self.clean_scan_limit})")

        if self.temporary_message_seconds < 0:
            errors.append("TEMPORARY_MESSAGE_SECONDS must be >= 0")

        if not (1 <= self.api_port <= 65535):
            errors.append(f"API_PORT must be between 1 and 65535 (got {self.api_port})")

        if "/" not in self.api_rate_limit:
            errors.append(f"API_RATE_LIMIT must look like '30/minute' (got {self.api_rate_limit!r})")

        return errors


def validate_settings(settings: Settings) -> None:
    """Validate settings and raise RuntimeError if invalid."""
    errors = settings.validate()
    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors)
        logger.error(error_msg)
        raise RuntimeError(error_msg)
