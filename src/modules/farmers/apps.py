from django.apps import AppConfig


class FarmersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.farmers"
    label = "farmers"
