"""Tests for the dispatch pipeline."""

import json
from unittest.mock import MagicMock

import pytest

from dispatch.domain.dispatcher import TEST_SUBJECT, Dispatcher
from dispatch.domain.errors import (
    ChannelError,
    ForbiddenError,
    InternalError,
    InvalidChannelError,
    SpamDetectedError,
    UnauthorizedError,
    ValidationError,
)
from dispatch.domain.models import DeliveryResult, MessageStatus

from .helpers import ADMIN_KEY, SHOP_KEY, WEBSITE_KEY

BODY = "Hello, I would like to know more about your services."


def _adapter(result=None, side_effect=None):
    adapter = MagicMock()
    if side_effect is not None:
        adapter.send.side_effect = side_effect
    else:
        adapter.send.return_value = result or DeliveryResult(success=True, response={"status": 204, "body": None})
    return adapter


@pytest.fixture
def discord():
    return _adapter()


@pytest.fixture
def slack():
    return _adapter()


@pytest.fixture
def dispatcher(credentials, ledger, discord, slack):
    return Dispatcher(credentials, ledger, {"discord": discord, "slack": slack})


class TestAuthentication:
    def test_missing_key(self, dispatcher, ledger):
        with pytest.raises(UnauthorizedError, match="Missing API key"):
            dispatcher.dispatch(None, {"channel": "discord", "body": BODY})
        assert ledger.records == {}

    def test_unknown_key(self, dispatcher, ledger, discord):
        with pytest.raises(UnauthorizedError, match="Invalid API key"):
            dispatcher.dispatch("not-a-key", {"channel": "discord", "body": BODY})
        assert ledger.records == {}
        discord.send.assert_not_called()

    def test_admin_key_cannot_notify(self, dispatcher, ledger):
        with pytest.raises(ForbiddenError):
            dispatcher.dispatch(ADMIN_KEY, {"channel": "discord", "body": BODY})
        assert ledger.records == {}

    def test_auth_checked_before_payload(self, dispatcher):
        with pytest.raises(UnauthorizedError):
            dispatcher.dispatch("not-a-key", None)


class TestValidationStage:
    def test_invalid_payload_not_persisted(self, dispatcher, ledger):
        with pytest.raises(ValidationError):
            dispatcher.dispatch(WEBSITE_KEY, {"channel": "discord", "body": "short"})
        assert ledger.records == {}

    def test_unconfigured_channel_not_persisted(self, dispatcher, ledger, discord):
        with pytest.raises(InvalidChannelError):
            dispatcher.dispatch(SHOP_KEY, {"channel": "discord", "body": BODY})
        assert ledger.records == {}
        discord.send.assert_not_called()


class TestDelivery:
    def test_success(self, dispatcher, ledger, discord, website):
        payload = {
            "channel": "discord",
            "subject": "New Contact Form",
            "body": BODY,
            "sender": {"name": "John Doe", "email": "John@Example.com"},
            "metadata": {"page": "/contact"},
        }

        receipt = dispatcher.dispatch(WEBSITE_KEY, payload, source_address="10.0.0.1")

        assert receipt.channel == "discord"
        record = ledger.get(receipt.message_id)
        assert record.status is MessageStatus.SENT
        assert record.sent_at is not None
        assert record.caller_id == "website"
        assert record.sender_email == "john@example.com"
        assert json.loads(record.metadata_json) == {"page": "/contact"}
        assert record.source_address == "10.0.0.1"

        config, request, display_name = discord.send.call_args.args
        assert config is website.channels["discord"]
        assert request.body == BODY
        assert display_name == "My Website"

    def test_channel_failure_recorded(self, dispatcher, ledger, slack):
        slack.send.return_value = DeliveryResult(
            success=False, error="Slack webhook returned 429: rate limited"
        )

        with pytest.raises(ChannelError) as exc_info:
            dispatcher.dispatch(SHOP_KEY, {"channel": "slack", "body": BODY})

        record = ledger.get(exc_info.value.message_id)
        assert record.status is MessageStatus.FAILED
        assert "429" in record.error_text
        assert record.sent_at is None
        assert exc_info.value.message == "Slack webhook returned 429: rate limited"

    def test_adapter_exception_recorded_as_failure(self, credentials, ledger):
        dispatcher = Dispatcher(credentials, ledger, {"discord": _adapter(side_effect=RuntimeError("bug"))})

        with pytest.raises(ChannelError):
            dispatcher.dispatch(WEBSITE_KEY, {"channel": "discord", "body": BODY})

        [record] = ledger.records.values()
        assert record.status is MessageStatus.FAILED
        assert record.error_text == "Channel adapter error: RuntimeError"

    def test_missing_adapter_finalizes_record(self, credentials, ledger):
        dispatcher = Dispatcher(credentials, ledger, {})

        with pytest.raises(InvalidChannelError):
            dispatcher.dispatch(WEBSITE_KEY, {"channel": "discord", "body": BODY})

        [record] = ledger.records.values()
        assert record.status is MessageStatus.FAILED
        assert record.error_text == "Unsupported channel: discord"

    def test_exactly_one_record_per_accepted_request(self, dispatcher, ledger):
        for _ in range(3):
            dispatcher.dispatch(WEBSITE_KEY, {"channel": "discord", "body": BODY})
        assert len(ledger.records) == 3
        assert all(r.status is MessageStatus.SENT for r in ledger.records.values())


class TestSpam:
    def test_spam_persisted_and_never_delivered(self, dispatcher, ledger, discord):
        with pytest.raises(SpamDetectedError) as exc_info:
            dispatcher.dispatch(WEBSITE_KEY, {"channel": "discord", "body": "Buy cheap viagra online now"})

        assert exc_info.value.category == "medical"
        record = ledger.get(exc_info.value.message_id)
        assert record.status is MessageStatus.SPAM
        assert record.error_text == "Contains prohibited medical content"
        discord.send.assert_not_called()


class TestUnexpectedErrors:
    def test_ledger_failure_becomes_internal_error(self, credentials):
        ledger = MagicMock()
        ledger.create.side_effect = RuntimeError("connection reset by db-host.internal")
        dispatcher = Dispatcher(credentials, ledger, {"discord": _adapter()})

        with pytest.raises(InternalError) as exc_info:
            dispatcher.dispatch(WEBSITE_KEY, {"channel": "discord", "body": BODY})

        assert exc_info.value.message == "Internal server error"
        assert "db-host" not in str(exc_info.value)


class TestSendTest:
    def test_sends_fixed_message(self, dispatcher, slack, ledger):
        dispatcher.send_test("shop", "slack")

        config, request, display_name = slack.send.call_args.args
        assert request.subject == TEST_SUBJECT
        assert "shop" in request.body
        assert display_name == "Shop"
        assert ledger.records == {}

    def test_app_required(self, dispatcher):
        with pytest.raises(ValidationError, match="'app' is required"):
            dispatcher.send_test(None, "slack")

    def test_unknown_app(self, dispatcher):
        with pytest.raises(ValidationError, match="not found"):
            dispatcher.send_test("nope", "slack")

    def test_channel_not_configured(self, dispatcher):
        with pytest.raises(InvalidChannelError):
            dispatcher.send_test("shop", "discord")

    def test_delivery_failure(self, dispatcher, slack):
        slack.send.return_value = DeliveryResult(success=False, error="Slack webhook returned 500: oops")
        with pytest.raises(ChannelError, match="500"):
            dispatcher.send_test("shop", "slack")
