"""Tests for caller identity and settings loading."""

import json
from pathlib import Path

import pytest

from dispatch.domain.models import DiscordConfig, RateLimit, SlackConfig
from dispatch.infra.config import (
    ConfigError,
    Settings,
    load_callers,
    load_callers_from_env,
    load_callers_from_file,
    validate_callers,
)

KEY_A = "a" * 24
KEY_B = "b" * 24

EXAMPLE_CONFIG = Path(__file__).resolve().parent.parent / "config" / "apps.example.json"


def _app(**overrides):
    app = {
        "name": "Website",
        "apiKey": KEY_A,
        "channels": {"discord": {"webhookUrl": "https://discord.example/hook"}},
    }
    app.update(overrides)
    return app


class TestValidateCallers:
    def test_valid_config(self):
        validate_callers({"website": _app()})

    def test_comment_keys_skipped(self):
        validate_callers({"_comment": "docs only", "website": _app()})

    @pytest.mark.parametrize("field", ["name", "apiKey"])
    def test_missing_required_field(self, field):
        app = _app()
        del app[field]
        with pytest.raises(ConfigError, match=field):
            validate_callers({"website": app})

    def test_short_api_key(self):
        with pytest.raises(ConfigError, match="at least 20"):
            validate_callers({"website": _app(apiKey="short")})

    def test_duplicate_api_key(self):
        with pytest.raises(ConfigError, match="Duplicate API key"):
            validate_callers({"one": _app(), "two": _app(name="Two")})

    def test_channels_required(self):
        with pytest.raises(ConfigError, match="channels"):
            validate_callers({"website": _app(channels=None)})

    def test_channel_without_webhook(self):
        with pytest.raises(ConfigError, match='slack channel missing "webhookUrl"'):
            validate_callers({"website": _app(channels={"slack": {}})})

    @pytest.mark.parametrize(
        "channels, message",
        [
            ({"discord": {"webhookUrl": "https://x", "defaultEmbed": "blue"}}, "defaultEmbed\" must be an object"),
            ({"slack": {"webhookUrl": "https://x", "defaultFormat": ["#fff"]}}, "defaultFormat\" must be an object"),
            ({"discord": {"webhookUrl": "https://x", "defaultEmbed": {"color": "#fff"}}}, "color\" must be an integer"),
            ({"discord": {"webhookUrl": "https://x", "defaultEmbed": {"color": True}}}, "color\" must be an integer"),
            ({"slack": {"webhookUrl": "https://x", "defaultFormat": {"color": 255}}}, "color\" must be a string"),
            ({"slack": {"webhookUrl": "https://x", "defaultFormat": {"footer": 7}}}, "footer\" must be a string"),
        ],
    )
    def test_display_defaults_type_checked(self, channels, message):
        with pytest.raises(ConfigError, match=message):
            validate_callers({"website": _app(channels=channels)})

    def test_display_defaults_accepted(self):
        validate_callers(
            {
                "website": _app(
                    channels={
                        "discord": {"webhookUrl": "https://x", "defaultEmbed": {"color": 255, "footer": "Site"}},
                        "slack": {"webhookUrl": "https://y", "defaultFormat": {"color": "#fff"}},
                    }
                )
            }
        )

    def test_bad_display_defaults_raise_config_error_on_load(self, tmp_path):
        path = tmp_path / "apps.json"
        path.write_text(
            json.dumps({"website": _app(channels={"discord": {"webhookUrl": "https://x", "defaultEmbed": 5}})}),
            encoding="utf-8",
        )
        with pytest.raises(ConfigError):
            load_callers_from_file(path)


class TestLoadFromFile:
    def test_builds_identities(self, tmp_path):
        path = tmp_path / "apps.json"
        path.write_text(
            json.dumps(
                {
                    "_comment": "example",
                    "website": _app(
                        rateLimit={"windowMs": 60000, "maxRequests": 20},
                        channels={
                            "discord": {
                                "webhookUrl": "https://discord.example/hook",
                                "defaultEmbed": {"color": 255, "footer": "Site"},
                            },
                            "slack": {
                                "webhookUrl": "https://slack.example/hook",
                                "defaultFormat": {"color": "#000000"},
                            },
                        },
                    ),
                    "shop": _app(name="Shop", apiKey=KEY_B),
                }
            ),
            encoding="utf-8",
        )

        identities = {identity.id: identity for identity in load_callers_from_file(path)}

        assert set(identities) == {"website", "shop"}
        website = identities["website"]
        assert website.display_name == "Website"
        assert website.rate_limit == RateLimit(window_ms=60000, max_requests=20)
        assert website.channels["discord"] == DiscordConfig(
            webhook_url="https://discord.example/hook", color=255, footer="Site"
        )
        assert website.channels["slack"] == SlackConfig(
            webhook_url="https://slack.example/hook", color="#000000"
        )
        assert not identities["shop"].has_channel("slack")

    def test_identity_channels_are_read_only(self, tmp_path):
        path = tmp_path / "apps.json"
        path.write_text(json.dumps({"website": _app()}), encoding="utf-8")
        identity = load_callers_from_file(path)[0]
        with pytest.raises(TypeError):
            identity.channels["slack"] = SlackConfig(webhook_url="https://x")

    def test_shipped_example_is_valid(self):
        identities = {identity.id: identity for identity in load_callers_from_file(EXAMPLE_CONFIG)}
        assert set(identities) == {"website", "shop"}
        assert identities["shop"].channels["slack"].footer == "Shop Alerts"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_callers_from_file(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "apps.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="not valid JSON"):
            load_callers_from_file(path)


class TestLoadFromEnv:
    def test_builds_identities(self):
        env = {
            "DISPATCH_APPS": "website, shop",
            "DISPATCH_WEBSITE_API_KEY": KEY_A,
            "DISPATCH_WEBSITE_NAME": "My Website",
            "DISPATCH_WEBSITE_DISCORD_WEBHOOK": "https://discord.example/hook",
            "DISPATCH_WEBSITE_DISCORD_COLOR": "16711680",
            "DISPATCH_SHOP_API_KEY": KEY_B,
            "DISPATCH_SHOP_SLACK_WEBHOOK": "https://slack.example/hook",
            "DISPATCH_SHOP_SLACK_FOOTER": "Shop Alerts",
        }

        identities = {identity.id: identity for identity in load_callers_from_env(env)}

        assert identities["website"].display_name == "My Website"
        assert identities["website"].channels["discord"].color == 16711680
        assert identities["shop"].display_name == "shop"
        assert identities["shop"].channels["slack"].footer == "Shop Alerts"

    def test_dispatch_apps_required(self):
        with pytest.raises(ConfigError, match="DISPATCH_APPS"):
            load_callers_from_env({})

    def test_api_key_required(self):
        env = {"DISPATCH_APPS": "website", "DISPATCH_WEBSITE_DISCORD_WEBHOOK": "https://x"}
        with pytest.raises(ConfigError, match="DISPATCH_WEBSITE_API_KEY"):
            load_callers_from_env(env)

    def test_channel_required(self):
        env = {"DISPATCH_APPS": "website", "DISPATCH_WEBSITE_API_KEY": KEY_A}
        with pytest.raises(ConfigError, match="at least one channel"):
            load_callers_from_env(env)

    def test_bad_color(self):
        env = {
            "DISPATCH_APPS": "website",
            "DISPATCH_WEBSITE_API_KEY": KEY_A,
            "DISPATCH_WEBSITE_DISCORD_WEBHOOK": "https://x",
            "DISPATCH_WEBSITE_DISCORD_COLOR": "blue",
        }
        with pytest.raises(ConfigError, match="DISCORD_COLOR"):
            load_callers_from_env(env)

    def test_load_callers_prefers_env(self, tmp_path):
        env = {
            "DISPATCH_APPS": "website",
            "DISPATCH_WEBSITE_API_KEY": KEY_A,
            "DISPATCH_WEBSITE_SLACK_WEBHOOK": "https://x",
            "APPS_CONFIG_PATH": str(tmp_path / "ignored.json"),
        }
        assert [identity.id for identity in load_callers(env)] == ["website"]


class TestSettings:
    def test_from_env(self):
        settings = Settings.from_env({"ADMIN_API_KEY": "admin", "DISPATCH_HTTP_TIMEOUT": "2.5"})
        assert settings.admin_api_key == "admin"
        assert settings.http_timeout == 2.5

    def test_defaults(self):
        settings = Settings.from_env({"ADMIN_API_KEY": "admin"})
        assert settings.http_timeout == 10.0
        assert settings.environment == "development"

    def test_admin_key_required(self):
        with pytest.raises(ConfigError, match="ADMIN_API_KEY"):
            Settings.from_env({})

    @pytest.mark.parametrize("value", ["soon", "0", "-1"])
    def test_bad_timeout(self, value):
        with pytest.raises(ConfigError, match="DISPATCH_HTTP_TIMEOUT"):
            Settings.from_env({"ADMIN_API_KEY": "admin", "DISPATCH_HTTP_TIMEOUT": value})

    def test_rate_limit_defaults(self):
        settings = Settings.from_env({"ADMIN_API_KEY": "admin"})
        assert settings.rate_limit_window_ms == 900000
        assert settings.rate_limit_max_requests == 100
        assert settings.rate_limit_enabled is True

    def test_rate_limit_from_env(self):
        settings = Settings.from_env(
            {
                "ADMIN_API_KEY": "admin",
                "RATE_LIMIT_WINDOW_MS": "60000",
                "RATE_LIMIT_MAX_REQUESTS": "5",
                "RATE_LIMIT_ENABLED": "false",
            }
        )
        assert settings.rate_limit_window_ms == 60000
        assert settings.rate_limit_max_requests == 5
        assert settings.rate_limit_enabled is False

    @pytest.mark.parametrize("name", ["RATE_LIMIT_WINDOW_MS", "RATE_LIMIT_MAX_REQUESTS"])
    @pytest.mark.parametrize("value", ["lots", "0", "-5"])
    def test_bad_rate_limit(self, name, value):
        with pytest.raises(ConfigError, match=name):
            Settings.from_env({"ADMIN_API_KEY": "admin", name: value})
