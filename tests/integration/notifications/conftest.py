import pytest

from modules.notifications.models import Channel
from modules.notifications.providers import DjangoEmailProvider, NotificationFailed


class FakeSMSProvider:
    """Stands in for Twilio; optionally fails every send."""

    def __init__(self):
        self.sent = []
        self.error = None

    @property
    def is_configured(self):
        return True

    def send(self, recipient, message, subject="", html_message=""):
        if self.error:
            raise self.error
        self.sent.append((recipient, message))
        return f"SM{len(self.sent)}"


class FailingEmailProvider:
    @property
    def is_configured(self):
        return True

    def send(self, recipient, message, subject="", html_message=""):
        raise NotificationFailed("network", "SMTP server unreachable")


@pytest.fixture()
def sms_provider():
    return FakeSMSProvider()


@pytest.fixture()
def providers(monkeypatch, sms_provider):
    """Providers used by every dispatcher built during the test."""
    configured = {
        Channel.SMS: sms_provider,
        Channel.EMAIL: DjangoEmailProvider.from_settings(),
    }
    monkeypatch.setattr(
        "modules.notifications.dispatcher.build_providers", lambda: configured
    )
    return configured


@pytest.fixture()
def failing_email(providers):
    providers[Channel.EMAIL] = FailingEmailProvider()
    return providers
