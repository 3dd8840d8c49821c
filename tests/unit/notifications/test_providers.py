"""Unit tests for the SMS and email providers."""

from __future__ import annotations

import smtplib
from unittest import mock

import pytest
import requests
from django.core import mail
from twilio.base.exceptions import TwilioRestException

from modules.notifications.models import Channel
from modules.notifications.providers import (
    NETWORK,
    RATE_LIMITED,
    REJECTED,
    TIMEOUT,
    DjangoEmailProvider,
    NotificationFailed,
    TwilioSMSProvider,
    build_providers,
)

pytestmark = pytest.mark.unit


def _twilio(client=None, **overrides):
    options = {
        "account_sid": "AC123",
        "auth_token": "secret",
        "sender_id": "AgriTech",
        "client": client,
    }
    options.update(overrides)
    return TwilioSMSProvider(**options)


class TestTwilioSMSProvider:
    def test_sends_through_client(self):
        client = mock.Mock()
        client.messages.create.return_value = mock.Mock(sid="SM42")

        provider_id = _twilio(client).send("+2348030000001", "New order")

        assert provider_id == "SM42"
        client.messages.create.assert_called_once_with(
            to="+2348030000001", from_="AgriTech", body="New order"
        )

    @pytest.mark.parametrize(
        ("overrides", "configured"),
        [
            ({}, True),
            ({"account_sid": ""}, False),
            ({"auth_token": ""}, False),
            ({"sender_id": ""}, False),
        ],
    )
    def test_is_configured_needs_credentials_and_sender(self, overrides, configured):
        assert _twilio(**overrides).is_configured is configured

    @pytest.mark.parametrize(
        ("status", "error_class"),
        [(429, RATE_LIMITED), (400, REJECTED), (401, REJECTED), (500, NETWORK), (503, NETWORK)],
    )
    def test_rest_errors_are_classified(self, status, error_class):
        client = mock.Mock()
        client.messages.create.side_effect = TwilioRestException(status, "/Messages", msg="boom")

        with pytest.raises(NotificationFailed) as excinfo:
            _twilio(client).send("+2348030000001", "hi")

        assert excinfo.value.error_class == error_class

    @pytest.mark.parametrize(
        ("error", "error_class"),
        [
            (requests.Timeout("read timed out"), TIMEOUT),
            (requests.ConnectionError("connection reset"), NETWORK),
        ],
    )
    def test_transport_errors_are_classified(self, error, error_class):
        client = mock.Mock()
        client.messages.create.side_effect = error

        with pytest.raises(NotificationFailed) as excinfo:
            _twilio(client).send("+2348030000001", "hi")

        assert excinfo.value.error_class == error_class

    def test_from_settings(self, settings):
        settings.TWILIO_ACCOUNT_SID = "AC999"
        settings.TWILIO_AUTH_TOKEN = "token"
        settings.SMS_SENDER_ID = "AgroHub"

        assert TwilioSMSProvider.from_settings().is_configured


class TestDjangoEmailProvider:
    def _provider(self, **overrides):
        options = {
            "from_email": "AgroHub <noreply@agrohub.com>",
            "backend": "django.core.mail.backends.locmem.EmailBackend",
        }
        options.update(overrides)
        return DjangoEmailProvider(**options)

    def test_sends_text_and_html(self):
        message_id = self._provider().send(
            "ada@example.com", "plain body", subject="Hello", html_message="<p>html</p>"
        )

        assert len(mail.outbox) == 1
        sent = mail.outbox[0]
        assert sent.to == ["ada@example.com"]
        assert sent.subject == "Hello"
        assert sent.body == "plain body"
        assert sent.alternatives[0][0] == "<p>html</p>"
        assert sent.extra_headers["Message-ID"] == message_id

    def test_smtp_backend_requires_host(self):
        smtp = "django.core.mail.backends.smtp.EmailBackend"

        assert not self._provider(backend=smtp, host="").is_configured
        assert self._provider(backend=smtp, host="smtp.example.com").is_configured
        assert not self._provider(from_email="").is_configured

    @pytest.mark.parametrize(
        ("error", "error_class"),
        [
            (smtplib.SMTPRecipientsRefused({"ada@example.com": (550, b"no")}), REJECTED),
            (smtplib.SMTPServerDisconnected("gone"), NETWORK),
            (TimeoutError("timed out"), TIMEOUT),
            (ConnectionRefusedError("refused"), NETWORK),
        ],
    )
    def test_send_errors_are_classified(self, error, error_class):
        with mock.patch(
            "django.core.mail.EmailMultiAlternatives.send", side_effect=error
        ):
            with pytest.raises(NotificationFailed) as excinfo:
                self._provider().send("ada@example.com", "body", subject="s")

        assert excinfo.value.error_class == error_class

    def test_nothing_delivered_is_rejected(self):
        with mock.patch("django.core.mail.EmailMultiAlternatives.send", return_value=0):
            with pytest.raises(NotificationFailed) as excinfo:
                self._provider().send("ada@example.com", "body")

        assert excinfo.value.error_class == REJECTED


def test_build_providers_keys_by_channel():
    providers = build_providers()

    assert isinstance(providers[Channel.SMS], TwilioSMSProvider)
    assert isinstance(providers[Channel.EMAIL], DjangoEmailProvider)
    # The test settings carry no Twilio credentials.
    assert not providers[Channel.SMS].is_configured
    assert providers[Channel.EMAIL].is_configured
