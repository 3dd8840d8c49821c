"""Unit tests for NotificationDispatcher.

Every send produces exactly one Notification row, whatever the
provider does.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from django.utils import timezone

from modules.notifications.dispatcher import NotificationDispatcher
from modules.notifications.dtos import DeliveryRequest
from modules.notifications.models import Audience, Channel, Notification, Outcome
from modules.notifications.providers import RATE_LIMITED, UNEXPECTED, NotificationFailed
from modules.notifications.repositories.django_repository import (
    NotificationDjangoRepository,
)

pytestmark = pytest.mark.unit


class FakeProvider:
    def __init__(self, configured=True, error=None, provider_id="msg-1"):
        self.configured = configured
        self.error = error
        self.provider_id = provider_id
        self.sent = []

    @property
    def is_configured(self):
        return self.configured

    def send(self, recipient, message, subject="", html_message=""):
        self.sent.append((recipient, message, subject))
        if self.error:
            raise self.error
        return self.provider_id


def _dispatcher(sms=None, email=None, clock=timezone.now):
    providers = {}
    if sms is not None:
        providers[Channel.SMS] = sms
    if email is not None:
        providers[Channel.EMAIL] = email
    return NotificationDispatcher(providers, NotificationDjangoRepository(), clock=clock)


def _sms_request(order, **overrides):
    data = {
        "rule": "farmer_new_order_sms",
        "channel": Channel.SMS,
        "audience": Audience.FARMER,
        "recipient": "+2348030000001",
        "message": "New order",
        "order_id": order.id,
        "correlation_id": "cid-1",
    }
    data.update(overrides)
    return DeliveryRequest(**data)


@pytest.fixture()
def order(place_order):
    return place_order()


class TestSend:
    def test_sent_outcome_is_recorded(self, order):
        sms = FakeProvider(provider_id="SM42")

        outcome = _dispatcher(sms=sms).send(_sms_request(order))

        record = Notification.objects.get()
        assert outcome.outcome == Outcome.SENT
        assert outcome.notification_id == record.id
        assert record.outcome == Outcome.SENT
        assert record.provider_message_id == "SM42"
        assert record.order_id == order.id
        assert record.correlation_id == "cid-1"
        assert record.attempt == 1
        assert sms.sent == [("+2348030000001", "New order", "")]

    def test_provider_failure_is_recorded_as_failed(self, order):
        sms = FakeProvider(error=NotificationFailed(RATE_LIMITED, "slow down"))

        outcome = _dispatcher(sms=sms).send(_sms_request(order))

        record = Notification.objects.get()
        assert outcome.outcome == Outcome.FAILED
        assert record.error_class == RATE_LIMITED
        assert record.error_message == "slow down"

    def test_unclassified_provider_error_is_still_recorded(self, order):
        sms = FakeProvider(error=ValueError("unexpected SDK error"))

        outcome = _dispatcher(sms=sms).send(_sms_request(order))

        record = Notification.objects.get()
        assert outcome.outcome == Outcome.FAILED
        assert record.outcome == Outcome.FAILED
        assert record.error_class == UNEXPECTED
        assert "unexpected SDK error" in record.error_message

    def test_unconfigured_provider_is_skipped_without_calling_it(self, order):
        sms = FakeProvider(configured=False)

        outcome = _dispatcher(sms=sms).send(_sms_request(order))

        assert outcome.outcome == Outcome.SKIPPED
        assert outcome.error_class == "not_configured"
        assert sms.sent == []
        assert Notification.objects.get().outcome == Outcome.SKIPPED

    def test_missing_provider_is_skipped(self, order):
        outcome = _dispatcher().send(_sms_request(order))

        assert outcome.outcome == Outcome.SKIPPED
        assert Notification.objects.count() == 1

    def test_missing_recipient_is_skipped(self, order):
        sms = FakeProvider()

        outcome = _dispatcher(sms=sms).send(_sms_request(order, recipient=""))

        assert outcome.outcome == Outcome.SKIPPED
        assert outcome.error_class == "missing_recipient"
        assert sms.sent == []

    def test_farmer_correlated_record(self, verified_farmer):
        email = FakeProvider(provider_id="<id@agrohub>")
        request = DeliveryRequest(
            rule="farmer_approved_email",
            channel=Channel.EMAIL,
            audience=Audience.FARMER,
            recipient=verified_farmer.email,
            message="Welcome",
            subject="Approved",
            farmer_id=verified_farmer.id,
        )

        _dispatcher(email=email).send(request)

        record = Notification.objects.get()
        assert record.farmer_id == verified_farmer.id
        assert record.order_id is None


class TestOrdering:
    def test_sent_at_never_goes_backwards_per_order(self, order):
        """A late-finishing older send is clamped to the latest timestamp."""
        now = timezone.now()
        sms = FakeProvider()

        _dispatcher(sms=sms, clock=lambda: now).send(_sms_request(order))
        _dispatcher(sms=sms, clock=lambda: now - timedelta(seconds=5)).send(
            _sms_request(order, rule="customer_order_shipped_sms")
        )

        records = list(Notification.objects.filter(order=order).order_by("sent_at", "created_at"))
        assert [r.sent_at for r in records] == [now, now]


class TestRetryRequest:
    def test_retry_points_at_original(self, order):
        sms = FakeProvider(error=NotificationFailed("network", "down"))
        _dispatcher(sms=sms).send(_sms_request(order))
        original = Notification.objects.get()

        retry = DeliveryRequest.retry_of(original, correlation_id="sweep")
        _dispatcher(sms=FakeProvider()).send(retry)

        follow_up = Notification.objects.exclude(pk=original.pk).get()
        original.refresh_from_db()
        assert follow_up.retry_of_id == original.id
        assert follow_up.attempt == 2
        assert follow_up.outcome == Outcome.SENT
        assert follow_up.correlation_id == "sweep"
        assert original.outcome == Outcome.FAILED
