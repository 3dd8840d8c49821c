"""
Celery configuration for the AgroHub orders project.

``DJANGO_SETTINGS_MODULE`` is set before the app is instantiated so the
worker reads the Django settings (``CELERY_`` prefix).
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("agrohub")

# Reads Django settings with the CELERY_ prefix
app.config_from_object("django.conf:settings", namespace="CELERY")

# Discovers tasks.py in every installed app
app.autodiscover_tasks()
