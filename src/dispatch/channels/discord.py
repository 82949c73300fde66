"""Discord adapter: one rich embed per notification, posted to a webhook."""

from __future__ import annotations

from typing import Any

from dispatch.domain.models import DiscordConfig, NotifyRequest
from dispatch.infra.time import iso_timestamp

from .base import ChannelAdapter, build_title, footer_text, metadata_fields

DEFAULT_COLOR = 5814783  # #58B9FF

SENDER_NAME_LABEL = "Från"
SENDER_EMAIL_LABEL = "Email"


def _field(name: str, value: str) -> dict[str, Any]:
    return {"name": name, "value": value, "inline": True}


class DiscordAdapter(ChannelAdapter):
    name = "discord"
    label = "Discord"

    def build_payload(
        self,
        config: DiscordConfig,
        request: NotifyRequest,
        caller_display_name: str,
    ) -> dict[str, Any]:
        fields: list[dict[str, Any]] = []
        if request.sender_name:
            fields.append(_field(SENDER_NAME_LABEL, request.sender_name))
        if request.sender_email:
            fields.append(_field(SENDER_EMAIL_LABEL, request.sender_email))
        fields.extend(_field(key, value) for key, value in metadata_fields(request))

        embed: dict[str, Any] = {
            "title": build_title(request),
            "description": request.body,
            "color": config.color if config.color is not None else DEFAULT_COLOR,
            "footer": {"text": footer_text(config.footer, caller_display_name)},
            "timestamp": iso_timestamp(),
        }
        if fields:
            embed["fields"] = fields

        return {"embeds": [embed]}
