"""beebot configuration management."""

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    TomlConfigSettingsSource,
)

from .errors import StartupError

logger = logging.getLogger("beebot.config")


class BeebotSettings(BaseSettings):
    """Settings loaded from a config file, overridable by environment variables."""

    # Beeminder
    beeminder_username: str = Field(description="Beeminder account name")
    beeminder_goal: str = Field(description="Goal slug that receives data points")
    beeminder_auth_token: SecretStr = Field(description="Beeminder personal auth token")
    beeminder_base_url: str = Field(
        default="https://www.beeminder.com/api/v1",
        description="Beeminder API root",
    )

    # Matrix
    matrix_homeserver_url: str = Field(description="Homeserver base URL, e.g. https://matrix.org")
    matrix_username: str = Field(description="Bot account localpart or full user id")
    matrix_password: SecretStr = Field(description="Bot account password")
    matrix_device_name: str = Field(default="Beeminder", description="Device display name used at login")
    matrix_sync_timeout_ms: int = Field(default=30_000, ge=0, description="Long-poll timeout for /sync")
    matrix_retry_interval: float = Field(default=5.0, ge=0, description="Pause after a failed /sync")

    # Update protocol
    status_delay: float = Field(
        default=30.0,
        ge=0,
        description="Seconds to wait after uploading before reading goal stats",
    )
    http_timeout: float = Field(default=30.0, gt=0, description="Timeout for each HTTP request")

    # Logging
    log_file: Optional[str] = Field(default=None, description="Also write logs to this file")

    model_config = {"env_prefix": "BEEBOT_", "extra": "ignore", "frozen": True}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over values read from the config file
        return (env_settings, init_settings)


def _read_config_file(path: Path) -> dict:
    """Read a TOML or JSON config file into a plain dict."""
    suffix = path.suffix.lower()
    if suffix == ".toml":
        source = TomlConfigSettingsSource(BeebotSettings, toml_file=path)
    elif suffix == ".json":
        source = JsonConfigSettingsSource(BeebotSettings, json_file=path)
    else:
        raise StartupError(f"Unsupported config format '{suffix or path.name}' (use .toml or .json)")
    return source()


def load_settings(config_path: str) -> BeebotSettings:
    """Load settings from a config file.

    Raises:
        StartupError: The file is missing, unreadable, or does not describe
            a complete configuration.
    """
    path = Path(config_path).expanduser()
    if not path.is_file():
        raise StartupError(f"Config file not found: {path}")

    try:
        data = _read_config_file(path)
    except StartupError:
        raise
    except Exception as e:
        raise StartupError(f"Could not parse config file {path}: {e}") from e

    try:
        settings = BeebotSettings(**data)
    except ValidationError as e:
        raise StartupError(f"Invalid config file {path}:\n{e}") from e

    if not settings.matrix_homeserver_url.startswith(("http://", "https://")):
        raise StartupError(
            f"matrix_homeserver_url must start with http:// or https:// (got {settings.matrix_homeserver_url!r})"
        )
    if settings.matrix_homeserver_url.startswith("http://"):
        logger.warning(
            "Homeserver URL is not HTTPS. The Matrix password and access token "
            "will be sent in clear text."
        )

    logger.debug(f"Loaded settings from {path}")
    return settings
