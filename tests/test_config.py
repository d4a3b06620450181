"""
Tests for environment-driven settings.
"""

import pytest

from ezviz_broker.config import (
    DEFAULT_AREA_DOMAIN,
    DEFAULT_CREDENTIAL_PARAM,
    DEFAULT_TOKEN_URL,
    load_settings,
)
from ezviz_broker.errors import ConfigError

BASE_ENV = {"EZVIZ_APP_KEY": "key", "EZVIZ_APP_SECRET": "secret"}


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings(BASE_ENV)

        assert settings.app_key == "key"
        assert settings.app_secret == "secret"
        assert settings.token_url == DEFAULT_TOKEN_URL
        assert settings.default_domain == DEFAULT_AREA_DOMAIN
        assert settings.credential_param == DEFAULT_CREDENTIAL_PARAM
        assert settings.retry_delay == 300.0
        assert settings.renewal_hour == 2
        assert settings.proxy_timeout == 30.0
        assert settings.http_port == 8080
        assert settings.cors_origins == ["*"]
        assert settings.sentry_dsn == ""

    def test_overrides(self):
        settings = load_settings({
            **BASE_ENV,
            "EZVIZ_DEFAULT_DOMAIN": "https://open.ezvizlife.com/",
            "EZVIZ_CREDENTIAL_PARAM": "credential",
            "EZVIZ_RETRY_DELAY": "60",
            "EZVIZ_RENEWAL_HOUR": "0",
            "HTTP_PORT": "9000",
            "CORS_ORIGINS": "https://a.example, https://b.example",
            "ENVIRONMENT": "staging",
        })

        assert settings.default_domain == "https://open.ezvizlife.com"
        assert settings.credential_param == "credential"
        assert settings.retry_delay == 60.0
        assert settings.renewal_hour == 0
        assert settings.http_port == 9000
        assert settings.cors_origins == ["https://a.example", "https://b.example"]
        assert settings.environment == "staging"

    @pytest.mark.parametrize("env", [
        {},
        {"EZVIZ_APP_KEY": "key"},
        {"EZVIZ_APP_SECRET": "secret"},
        {"EZVIZ_APP_KEY": "  ", "EZVIZ_APP_SECRET": "secret"},
    ])
    def test_missing_app_credentials(self, env):
        with pytest.raises(ConfigError):
            load_settings(env)

    def test_non_numeric_value(self):
        with pytest.raises(ConfigError, match="EZVIZ_RETRY_DELAY"):
            load_settings({**BASE_ENV, "EZVIZ_RETRY_DELAY": "soon"})

    def test_renewal_hour_out_of_range(self):
        with pytest.raises(ConfigError, match="EZVIZ_RENEWAL_HOUR"):
            load_settings({**BASE_ENV, "EZVIZ_RENEWAL_HOUR": "24"})

    def test_blank_number_uses_default(self):
        settings = load_settings({**BASE_ENV, "EZVIZ_PROXY_TIMEOUT": ""})
        assert settings.proxy_timeout == 30.0
