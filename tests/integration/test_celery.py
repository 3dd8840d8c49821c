"""Celery wiring: app, serialization and the periodic jobs."""

import pytest
from kombu.exceptions import OperationalError

from modules.notifications.tasks import enqueue

pytestmark = pytest.mark.integration


class TestCeleryConfig:
    def test_celery_app_exported_from_init(self):
        from config import celery_app

        assert celery_app.main == "agrohub"

    def test_celery_serializer_is_json(self, settings):
        assert settings.CELERY_TASK_SERIALIZER == "json"
        assert settings.CELERY_RESULT_SERIALIZER == "json"
        assert settings.CELERY_ACCEPT_CONTENT == ["json"]

    def test_celery_timezone_matches_django(self, settings):
        assert settings.CELERY_TIMEZONE == settings.TIME_ZONE

    def test_beat_schedule_runs_sweep_and_store_refresh(self, settings):
        tasks = {entry["task"] for entry in settings.CELERY_BEAT_SCHEDULE.values()}
        assert tasks == {
            "notifications.retry_failed_notifications",
            "core.refresh_store_selection",
        }

    def test_tasks_are_registered(self):
        from config import celery_app

        celery_app.loader.import_default_modules()
        assert "notifications.deliver_order_notification" in celery_app.tasks
        assert "core.refresh_store_selection" in celery_app.tasks


class FakeTask:
    name = "fake"

    def __init__(self):
        self.applied = []

    def delay(self, *args):
        raise OperationalError("broker unreachable")

    def apply(self, args=()):
        self.applied.append(args)


def test_enqueue_runs_in_process_when_broker_is_down():
    task = FakeTask()

    enqueue(task, "order-id", "farmer_new_order_sms")

    assert task.applied == [("order-id", "farmer_new_order_sms")]
