"""
Runtime configuration loaded from environment variables.

The entry point calls load_dotenv() first, so values may also come from a
local .env file.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .errors import ConfigError

DEFAULT_TOKEN_URL = "https://open.ezvizlife.com/api/lapp/token/get"

# Area domain used when a credential does not carry its own (South America)
DEFAULT_AREA_DOMAIN = "https://isaopen.ezvizlife.com"

DEFAULT_CREDENTIAL_PARAM = "accessToken"


@dataclass(frozen=True)
class Settings:
    """Broker settings."""

    app_key: str
    app_secret: str
    token_url: str = DEFAULT_TOKEN_URL
    default_domain: str = DEFAULT_AREA_DOMAIN
    credential_param: str = DEFAULT_CREDENTIAL_PARAM
    retry_delay: float = 300.0
    renewal_hour: int = 2
    acquire_timeout: float = 10.0
    proxy_timeout: float = 30.0
    http_host: str = "0.0.0.0"
    http_port: int = 8080
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    sentry_dsn: str = ""
    environment: str = "production"


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}", cause=e)


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        Populated Settings

    Raises:
        ConfigError: If EZVIZ_APP_KEY / EZVIZ_APP_SECRET are missing or a
            numeric setting cannot be parsed
    """
    if env is None:
        env = os.environ

    app_key = env.get("EZVIZ_APP_KEY", "").strip()
    app_secret = env.get("EZVIZ_APP_SECRET", "").strip()
    if not app_key or not app_secret:
        raise ConfigError("EZVIZ_APP_KEY and EZVIZ_APP_SECRET must be configured")

    renewal_hour = _number(env, "EZVIZ_RENEWAL_HOUR", 2, int)
    if not 0 <= renewal_hour <= 23:
        raise ConfigError(f"EZVIZ_RENEWAL_HOUR must be between 0 and 23, got {renewal_hour}")

    origins = [o.strip() for o in env.get("CORS_ORIGINS", "*").split(",") if o.strip()]

    return Settings(
        app_key=app_key,
        app_secret=app_secret,
        token_url=env.get("EZVIZ_TOKEN_URL") or DEFAULT_TOKEN_URL,
        default_domain=(env.get("EZVIZ_DEFAULT_DOMAIN") or DEFAULT_AREA_DOMAIN).rstrip("/"),
        credential_param=env.get("EZVIZ_CREDENTIAL_PARAM") or DEFAULT_CREDENTIAL_PARAM,
        retry_delay=_number(env, "EZVIZ_RETRY_DELAY", 300.0, float),
        renewal_hour=renewal_hour,
        acquire_timeout=_number(env, "EZVIZ_ACQUIRE_TIMEOUT", 10.0, float),
        proxy_timeout=_number(env, "EZVIZ_PROXY_TIMEOUT", 30.0, float),
        http_host=env.get("HTTP_HOST") or "0.0.0.0",
        http_port=_number(env, "HTTP_PORT", 8080, int),
        cors_origins=origins or ["*"],
        sentry_dsn=env.get("SENTRY_DSN", ""),
        environment=env.get("ENVIRONMENT") or "production",
    )
