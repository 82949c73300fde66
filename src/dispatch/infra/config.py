"""Caller identity and service configuration.

Caller identities come from one of (first match wins):
1. DISPATCH_APPS + DISPATCH_<APP>_* environment variables (production)
2. A JSON file at APPS_CONFIG_PATH
3. ./config/apps.json (local dev)

JSON layout, keyed by caller id (keys starting with "_" are comments)::

    {
      "website": {
        "name": "My Website",
        "apiKey": "at-least-twenty-characters",
        "rateLimit": {"windowMs": 60000, "maxRequests": 20},
        "channels": {
          "discord": {"webhookUrl": "...", "defaultEmbed": {"color": 5814783, "footer": "..."}},
          "slack": {"webhookUrl": "...", "defaultFormat": {"color": "#58B9FF", "footer": "..."}}
        }
      }
    }
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from dispatch.domain.models import CallerIdentity, ChannelConfig, DiscordConfig, RateLimit, SlackConfig

MIN_API_KEY_LENGTH = 20
DEFAULT_APPS_CONFIG_PATH = "./config/apps.json"
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_RATE_LIMIT_WINDOW_MS = 15 * 60 * 1000
DEFAULT_RATE_LIMIT_MAX_REQUESTS = 100


class ConfigError(RuntimeError):
    """Configuration is missing or invalid. The service must not start."""


# channel -> (display defaults key, color type, color type in messages)
_CHANNEL_DEFAULTS: dict[str, tuple[str, type, str]] = {
    "discord": ("defaultEmbed", int, "an integer"),
    "slack": ("defaultFormat", str, "a string"),
}


def _is_comment_key(key: str) -> bool:
    return key.startswith("_")


def validate_callers(raw: Mapping[str, Any]) -> None:
    """Validate raw caller config before it is turned into identities.

    Raises:
        ConfigError: On the first problem found.
    """
    seen_keys: set[str] = set()

    for app_id, app in raw.items():
        if _is_comment_key(app_id):
            continue
        if not isinstance(app, Mapping):
            raise ConfigError(f'App "{app_id}": entry must be an object')

        name = app.get("name")
        if not name or not isinstance(name, str):
            raise ConfigError(f'App "{app_id}": missing or invalid "name" field')

        api_key = app.get("apiKey")
        if not api_key or not isinstance(api_key, str):
            raise ConfigError(f'App "{app_id}": missing or invalid "apiKey" field')
        if len(api_key) < MIN_API_KEY_LENGTH:
            raise ConfigError(f'App "{app_id}": apiKey must be at least {MIN_API_KEY_LENGTH} characters')
        if api_key in seen_keys:
            raise ConfigError("Duplicate API key found across apps. Each app must have a unique apiKey.")
        seen_keys.add(api_key)

        channels = app.get("channels")
        if not isinstance(channels, Mapping):
            raise ConfigError(f'App "{app_id}": missing or invalid "channels" field')

        for channel_name in ("discord", "slack"):
            channel = channels.get(channel_name)
            if channel is None:
                continue
            webhook_url = channel.get("webhookUrl") if isinstance(channel, Mapping) else None
            if not webhook_url or not isinstance(webhook_url, str):
                raise ConfigError(f'App "{app_id}": {channel_name} channel missing "webhookUrl"')
            _validate_display_defaults(app_id, channel_name, channel)


def _validate_display_defaults(app_id: str, channel_name: str, channel: Mapping[str, Any]) -> None:
    key, color_type, color_desc = _CHANNEL_DEFAULTS[channel_name]
    defaults = channel.get(key)
    if defaults is None:
        return
    if not isinstance(defaults, Mapping):
        raise ConfigError(f'App "{app_id}": {channel_name} "{key}" must be an object')

    color = defaults.get("color")
    # bool is an int subclass but never a valid color
    if color is not None and (isinstance(color, bool) or not isinstance(color, color_type)):
        raise ConfigError(f'App "{app_id}": {channel_name} "{key}.color" must be {color_desc}')

    footer = defaults.get("footer")
    if footer is not None and not isinstance(footer, str):
        raise ConfigError(f'App "{app_id}": {channel_name} "{key}.footer" must be a string')


def _build_channels(raw_channels: Mapping[str, Any]) -> dict[str, ChannelConfig]:
    channels: dict[str, ChannelConfig] = {}

    discord = raw_channels.get("discord")
    if discord:
        embed = discord.get("defaultEmbed") or {}
        channels["discord"] = DiscordConfig(
            webhook_url=discord["webhookUrl"],
            color=embed.get("color"),
            footer=embed.get("footer"),
        )

    slack = raw_channels.get("slack")
    if slack:
        fmt = slack.get("defaultFormat") or {}
        channels["slack"] = SlackConfig(
            webhook_url=slack["webhookUrl"],
            color=fmt.get("color"),
            footer=fmt.get("footer"),
        )

    return channels


def _build_rate_limit(app_id: str, raw: Any) -> RateLimit | None:
    if raw is None:
        return None
    try:
        return RateLimit(window_ms=int(raw["windowMs"]), max_requests=int(raw["maxRequests"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f'App "{app_id}": "rateLimit" needs integer windowMs and maxRequests') from exc


def build_identities(raw: Mapping[str, Any]) -> list[CallerIdentity]:
    """Validate raw config and convert it into immutable identities."""
    validate_callers(raw)
    return [
        CallerIdentity(
            id=app_id,
            display_name=app["name"],
            secret=app["apiKey"],
            channels=_build_channels(app["channels"]),
            rate_limit=_build_rate_limit(app_id, app.get("rateLimit")),
        )
        for app_id, app in raw.items()
        if not _is_comment_key(app_id)
    ]


def load_callers_from_file(path: str | Path) -> list[CallerIdentity]:
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"Apps config not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Apps config is not valid JSON: {exc.msg}") from exc
    if not isinstance(raw, Mapping):
        raise ConfigError("Apps config must be a JSON object keyed by app id")
    return build_identities(raw)


def load_callers_from_env(env: Mapping[str, str] | None = None) -> list[CallerIdentity]:
    """Build identities from DISPATCH_APPS and per-app DISPATCH_<APP>_* vars."""
    env = os.environ if env is None else env

    apps_str = env.get("DISPATCH_APPS")
    if not apps_str:
        raise ConfigError("DISPATCH_APPS environment variable is required (comma-separated app names)")

    app_ids = [s.strip() for s in apps_str.split(",") if s.strip()]
    if not app_ids:
        raise ConfigError("DISPATCH_APPS must contain at least one app name")

    raw: dict[str, Any] = {}
    for app_id in app_ids:
        prefix = f"DISPATCH_{app_id.upper()}"

        api_key = env.get(f"{prefix}_API_KEY")
        if not api_key:
            raise ConfigError(f'{prefix}_API_KEY is required for app "{app_id}"')

        channels: dict[str, Any] = {}

        discord_webhook = env.get(f"{prefix}_DISCORD_WEBHOOK")
        if discord_webhook:
            embed: dict[str, Any] = {}
            color = env.get(f"{prefix}_DISCORD_COLOR")
            if color:
                try:
                    embed["color"] = int(color, 10)
                except ValueError as exc:
                    raise ConfigError(f"{prefix}_DISCORD_COLOR must be a decimal integer") from exc
            if env.get(f"{prefix}_DISCORD_FOOTER"):
                embed["footer"] = env[f"{prefix}_DISCORD_FOOTER"]
            channels["discord"] = {"webhookUrl": discord_webhook, "defaultEmbed": embed}

        slack_webhook = env.get(f"{prefix}_SLACK_WEBHOOK")
        if slack_webhook:
            fmt: dict[str, Any] = {}
            if env.get(f"{prefix}_SLACK_COLOR"):
                fmt["color"] = env[f"{prefix}_SLACK_COLOR"]
            if env.get(f"{prefix}_SLACK_FOOTER"):
                fmt["footer"] = env[f"{prefix}_SLACK_FOOTER"]
            channels["slack"] = {"webhookUrl": slack_webhook, "defaultFormat": fmt}

        if not channels:
            raise ConfigError(
                f'App "{app_id}" must have at least one channel configured '
                f"(e.g., {prefix}_DISCORD_WEBHOOK or {prefix}_SLACK_WEBHOOK)"
            )

        raw[app_id] = {
            "name": env.get(f"{prefix}_NAME") or app_id,
            "apiKey": api_key,
            "channels": channels,
        }

    return build_identities(raw)


def load_callers(env: Mapping[str, str] | None = None) -> list[CallerIdentity]:
    """Load identities from env vars, APPS_CONFIG_PATH, or the default file."""
    env = os.environ if env is None else env
    if env.get("DISPATCH_APPS"):
        return load_callers_from_env(env)
    return load_callers_from_file(env.get("APPS_CONFIG_PATH") or DEFAULT_APPS_CONFIG_PATH)


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive")
    return value


@dataclass(frozen=True)
class Settings:
    """Process-wide settings read once at startup."""

    admin_api_key: str
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    environment: str = "development"
    rate_limit_window_ms: int = DEFAULT_RATE_LIMIT_WINDOW_MS
    rate_limit_max_requests: int = DEFAULT_RATE_LIMIT_MAX_REQUESTS
    rate_limit_enabled: bool = True

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if env is None else env

        admin_api_key = env.get("ADMIN_API_KEY", "")
        if not admin_api_key:
            raise ConfigError("ADMIN_API_KEY is required")

        raw_timeout = env.get("DISPATCH_HTTP_TIMEOUT")
        try:
            http_timeout = float(raw_timeout) if raw_timeout else DEFAULT_HTTP_TIMEOUT
        except ValueError as exc:
            raise ConfigError("DISPATCH_HTTP_TIMEOUT must be a number of seconds") from exc
        if http_timeout <= 0:
            raise ConfigError("DISPATCH_HTTP_TIMEOUT must be positive")

        return cls(
            admin_api_key=admin_api_key,
            http_timeout=http_timeout,
            environment=env.get("APP_ENV", "development"),
            rate_limit_window_ms=_positive_int(env, "RATE_LIMIT_WINDOW_MS", DEFAULT_RATE_LIMIT_WINDOW_MS),
            rate_limit_max_requests=_positive_int(env, "RATE_LIMIT_MAX_REQUESTS", DEFAULT_RATE_LIMIT_MAX_REQUESTS),
            rate_limit_enabled=env.get("RATE_LIMIT_ENABLED", "true").strip().lower() not in ("0", "false", "no", "off"),
        )
