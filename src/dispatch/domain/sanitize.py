"""Input sanitization for notification text.

Strips markup and script vectors so that stored and forwarded text is inert.
Non-ASCII letters (å, ä, ö, é, ...) pass through untouched.
"""

import re
from typing import Any

_TAG_PATTERN = re.compile(r"<[^>]*>")
_ANGLE_BRACKETS = re.compile(r"[<>]")
# Only real URI prefixes: a word that merely ends in "data" followed by a colon
# ("Metadata:", "Form data: x") is ordinary prose.
_PROTOCOL_PATTERN = re.compile(
    r"\bjavascript\s*:|\bdata:(?=[\w.+-]+/[\w.+-]+[;,])",
    re.IGNORECASE,
)
_EVENT_HANDLER_PATTERN = re.compile(r"\bon\w+\s*=\s*\S*", re.IGNORECASE)
_INLINE_WHITESPACE = re.compile(r"[^\S\n]+")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def sanitize(value: Any) -> str:
    """Remove HTML, protocol prefixes and event handlers; normalize spacing.

    Tag stripping repeats until nothing changes so nested input such as
    ``<<script>>`` cannot reassemble a tag after one pass.
    """
    text = _as_text(value)

    previous = None
    while previous != text:
        previous = text
        text = _TAG_PATTERN.sub("", text)
    text = _ANGLE_BRACKETS.sub("", text)

    text = _PROTOCOL_PATTERN.sub("", text)
    text = _EVENT_HANDLER_PATTERN.sub("", text)

    # newlines are kept, all other whitespace runs collapse to one space
    text = _INLINE_WHITESPACE.sub(" ", text)
    return text.strip()


def sanitize_email(value: Any) -> str:
    """Trim and lowercase an email address."""
    return _as_text(value).strip().lower()


def truncate(value: str | None, max_length: int) -> str:
    if not value:
        return ""
    return value[:max_length]
