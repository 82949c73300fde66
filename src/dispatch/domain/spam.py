"""Spam classification for notification bodies.

Rules are evaluated in declaration order and the first match wins, so the
position of a rule decides which category is reported when several apply.
"""

import re
from dataclasses import dataclass
from typing import Any

from .models import NOT_SPAM, SpamResult


@dataclass(frozen=True)
class SpamRule:
    pattern: re.Pattern[str]
    category: str
    reason: str

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _rule(pattern: str, category: str, reason: str, flags: int = re.IGNORECASE) -> SpamRule:
    return SpamRule(re.compile(pattern, flags), category, reason)


_PROMOTIONAL = "Contains promotional content"
_FINANCIAL = "Contains financial content"
_ADULT = "Contains adult content"

SPAM_RULES: tuple[SpamRule, ...] = (
    # BBCode-style link markup
    _rule(r"\[url=", "marketing", "Contains URL markup"),
    _rule(r"\b(viagra|cialis|pharmacy)\b", "medical", "Contains prohibited medical content"),
    _rule(r"\b(casino|gambling|betting|poker)\b", "gambling", "Contains gambling content"),
    _rule(r"\b(crypto|bitcoin|ethereum|nft)\b", "crypto", "Contains cryptocurrency content"),
    _rule(r"\$\d+", "marketing", "Contains dollar amounts", flags=0),
    _rule(r"\b(porn|xxx)\b", "adult", _ADULT),
    _rule(r"\badult\b", "adult", _ADULT),
    _rule(r"buy now", "marketing", _PROMOTIONAL),
    _rule(r"\bdiscount\b", "marketing", _PROMOTIONAL),
    _rule(r"free offer", "marketing", _PROMOTIONAL),
    _rule(r"limited time", "marketing", _PROMOTIONAL),
    _rule(r"best price", "marketing", _PROMOTIONAL),
    _rule(r"\b(earn|make).{0,20}money\b", "financial", "Contains financial spam"),
    _rule(r"\binvestment\b", "financial", _FINANCIAL),
    _rule(r"\bprofit\b", "financial", _FINANCIAL),
    _rule(r"\bincome\b", "financial", _FINANCIAL),
    _rule(r"\brich\b", "financial", _FINANCIAL),
    # five or more identical characters in a row
    _rule(r"(.)\1{4,}", "spam", "Contains repetitive characters", flags=0),
    # Arabic block
    _rule(r"[\u0600-\u06FF]{5,}", "spam", "Contains blocks of non-Latin characters", flags=0),
    # The dispatcher classifies sanitized text, which never contains these three
    # markers; they only fire when classify() is handed raw input.
    _rule(r"<script", "security", "Contains script injection"),
    _rule(r"\bjavascript\s*:", "security", "Contains javascript protocol"),
    _rule(r"\bdata:(?=[\w.+-]+/[\w.+-]+[;,])", "security", "Contains data protocol"),
    _rule(r"\b(whatsapp|telegram|viber)\b", "spam", "Contains external contact methods"),
)


def classify(text: Any) -> SpamResult:
    """Classify already-sanitized text against SPAM_RULES.

    Returns NOT_SPAM for empty input or when no rule matches.
    """
    if text is None or text == "":
        return NOT_SPAM

    value = text if isinstance(text, str) else str(text)

    for rule in SPAM_RULES:
        if rule.matches(value):
            return SpamResult(is_spam=True, category=rule.category, reason=rule.reason)

    return NOT_SPAM
