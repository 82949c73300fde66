"""Slack adapter: Block Kit message wrapped in a colored attachment."""

from __future__ import annotations

from typing import Any

from dispatch.domain.models import NotifyRequest, SlackConfig
from dispatch.infra.time import iso_timestamp

from .base import ChannelAdapter, build_title, footer_text, metadata_fields

DEFAULT_COLOR = "#58B9FF"

# Slack rejects header blocks whose plain_text exceeds this
HEADER_MAX_LENGTH = 150


def _header_text(request: NotifyRequest) -> str:
    title = build_title(request)
    if len(title) > HEADER_MAX_LENGTH:
        return title[: HEADER_MAX_LENGTH - 3] + "..."
    return title


def _mrkdwn_field(label: str, value: str) -> dict[str, str]:
    return {"type": "mrkdwn", "text": f"*{label}:*\n{value}"}


class SlackAdapter(ChannelAdapter):
    name = "slack"
    label = "Slack"

    def build_payload(
        self,
        config: SlackConfig,
        request: NotifyRequest,
        caller_display_name: str,
    ) -> dict[str, Any]:
        blocks: list[dict[str, Any]] = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": _header_text(request), "emoji": True},
            },
            {"type": "section", "text": {"type": "mrkdwn", "text": request.body}},
        ]

        fields: list[dict[str, str]] = []
        if request.sender_name:
            fields.append(_mrkdwn_field("From", request.sender_name))
        if request.sender_email:
            fields.append(_mrkdwn_field("Email", request.sender_email))
        fields.extend(_mrkdwn_field(key, value) for key, value in metadata_fields(request))
        if fields:
            blocks.append({"type": "section", "fields": fields})

        blocks.append({"type": "divider"})
        blocks.append(
            {
                "type": "context",
                "elements": [
                    {
                        "type": "mrkdwn",
                        "text": f"{footer_text(config.footer, caller_display_name)} | {iso_timestamp()}",
                    }
                ],
            }
        )

        return {
            "attachments": [
                {
                    "color": config.color or DEFAULT_COLOR,
                    "blocks": blocks,
                }
            ]
        }
