from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.notifications"
    label = "notifications"

    def ready(self) -> None:
        from modules.farmers.events import FarmerVerificationDecided
        from modules.notifications.handlers import (
            farmer_verification_handler,
            order_created_handler,
            order_status_changed_handler,
        )
        from modules.orders.events import OrderCreated, OrderStatusChanged
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(OrderCreated, order_created_handler)
        event_bus.subscribe(OrderStatusChanged, order_status_changed_handler)
        event_bus.subscribe(FarmerVerificationDecided, farmer_verification_handler)
