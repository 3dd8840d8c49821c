"""Order URL configuration.

Routes::

    orders/                      list, checkout
    orders/send-confirmation/    best-effort confirmation email
    orders/{id}/                 detail
    orders/{id}/status/          admin status change (PUT/PATCH)
    orders/{id}/cancel/          cancellation by owner or admin
"""

from __future__ import annotations

from rest_framework.routers import SimpleRouter

from modules.orders.views import OrderViewSet

router = SimpleRouter(trailing_slash=True)
router.register("orders", OrderViewSet, basename="order")

urlpatterns = router.urls
