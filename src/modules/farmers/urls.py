"""Farmer URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.farmers.views import FarmerViewSet

router = DefaultRouter(trailing_slash=True)
router.register("farmers", FarmerViewSet, basename="farmer")

urlpatterns = router.urls
